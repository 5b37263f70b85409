"""Local repository setup connecting provisioning and checkpointing.

Drives one source path through the setup stages:
probe → provision → checkpoint → done.

Provisioning faults are classified into a single SetupError and end the
invocation. The checkpoint runs on its own failure channel: its result is
logged and attached to the outcome but can never turn a provisioned
working directory into a failure.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import structlog

from workspace_setup.checkpoint.git import (
    CheckpointManager,
    CheckpointResult,
    GitIdentity,
)
from workspace_setup.config import SetupSettings, get_settings
from workspace_setup.errors import SetupError, classify_fault
from workspace_setup.provisioner.workspace import (
    ProvisionedWorkspace,
    WorkspaceConfig,
    WorkspaceProvisionError,
    WorkspaceProvisioner,
    resolve_source_path,
)
from workspace_setup.state.models import SetupStage, SetupTrace

logger = structlog.get_logger(__name__)


@dataclass
class SetupOutcome:
    """Result of one setup invocation: a working directory or an error.

    Exactly one of ``working_dir`` and ``error`` is set.

    Attributes:
        trace: Stage history of the invocation.
        working_dir: Absolute working directory on success.
        copied: True when the working directory is a scratch copy.
        checkpoint: Result of the best-effort checkpoint on success.
        error: The classified failure otherwise.
    """

    trace: SetupTrace
    working_dir: Optional[Path] = None
    copied: bool = False
    checkpoint: Optional[CheckpointResult] = None
    error: Optional[SetupError] = None

    def __post_init__(self):
        if (self.working_dir is None) == (self.error is None):
            raise ValueError(
                "SetupOutcome needs exactly one of working_dir and error"
            )

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Path:
        """Return the working directory or raise the setup error."""
        if self.working_dir is None:
            raise self.error
        return self.working_dir


class LocalRepoSetup:
    """Produces a writable, checkpointed working directory for a path.

    Attributes:
        provisioner: Decides between in-place use and a scratch copy.
        checkpoints: Records the baseline git commit.
    """

    def __init__(
        self,
        provisioner: WorkspaceProvisioner,
        checkpoints: CheckpointManager,
    ):
        self.provisioner = provisioner
        self.checkpoints = checkpoints

    @classmethod
    def from_settings(
        cls, settings: SetupSettings, cwd: Optional[Path] = None
    ) -> "LocalRepoSetup":
        """Build a setup with components configured from settings."""
        workspace_config = WorkspaceConfig(
            scratch_root=settings.resolved_scratch_root(cwd),
        )
        identity = GitIdentity(
            name=settings.git_user_name,
            email=settings.git_user_email,
            message=settings.checkpoint_message,
            git_executable=settings.git_executable,
        )
        return cls(
            provisioner=WorkspaceProvisioner(workspace_config),
            checkpoints=CheckpointManager(identity),
        )

    async def run(self, repo_path: Union[str, Path]) -> SetupOutcome:
        """Set up a working directory for ``repo_path``.

        Args:
            repo_path: Directory the caller wants to operate on, relative
                or absolute.

        Returns:
            SetupOutcome holding the working directory or a SetupError.
        """
        trace = SetupTrace(source_path=str(repo_path))

        try:
            workspace = await self._provision(repo_path, trace)
        except SetupError as exc:
            return self._fail(trace, repo_path, exc)
        except (WorkspaceProvisionError, OSError) as exc:
            return self._fail(trace, repo_path, classify_fault(exc, repo_path))

        trace.advance(
            SetupStage.PROVISIONED,
            {"working_dir": str(workspace.path), "copied": workspace.copied},
        )

        checkpoint = await self.checkpoints.create_checkpoint(workspace.path)
        if not checkpoint.succeeded:
            logger.warning(
                "Continuing without complete checkpoint",
                working_dir=str(workspace.path),
                warnings=checkpoint.warnings,
            )
        trace.advance(
            SetupStage.CHECKPOINTED,
            {"committed": checkpoint.committed, "warnings": checkpoint.warnings},
        )
        trace.advance(SetupStage.DONE)

        return SetupOutcome(
            trace=trace,
            working_dir=workspace.path,
            copied=workspace.copied,
            checkpoint=checkpoint,
        )

    async def _provision(
        self, repo_path: Union[str, Path], trace: SetupTrace
    ) -> ProvisionedWorkspace:
        source = resolve_source_path(repo_path)
        writable = self.provisioner.probe(source)
        trace.advance(
            SetupStage.PROBED, {"source": str(source), "writable": writable}
        )
        return await self.provisioner.provision(source, writable=writable)

    def _fail(
        self,
        trace: SetupTrace,
        repo_path: Union[str, Path],
        error: SetupError,
    ) -> SetupOutcome:
        logger.error(
            "Local repository setup failed",
            repo_path=str(repo_path),
            kind=error.kind.value,
            error=error.context.get("underlying_message", error.message),
        )
        if trace.current_stage == SetupStage.START:
            trace.advance(SetupStage.PROBED, {"source": str(repo_path)})
        trace.advance(SetupStage.FAILED, {"error": error.message})
        return SetupOutcome(trace=trace, error=error)


async def setup_local_repo(
    repo_path: Union[str, Path],
    settings: Optional[SetupSettings] = None,
) -> Path:
    """Return a writable, checkpointed working directory for ``repo_path``.

    Args:
        repo_path: Directory the caller wants to operate on.
        settings: Configuration; loaded from the environment when omitted.

    Returns:
        Absolute path of the working directory.

    Raises:
        SetupError: If no working directory could be produced.
    """
    setup = LocalRepoSetup.from_settings(settings or get_settings())
    outcome = await setup.run(repo_path)
    return outcome.unwrap()
