"""Git checkpointing for provisioned working directories.

Ensures a working directory is a git repository with a local commit
identity and records a baseline commit that later changes can be diffed
against.

The checkpoint is a convenience, not a correctness requirement of setup:
each step runs even when an earlier one failed, and failures are logged
as warnings and reported in the returned CheckpointResult instead of
being raised.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple

import structlog

logger = structlog.get_logger(__name__)

GIT_METADATA_DIR = ".git"
DEFAULT_CHECKPOINT_MESSAGE = "Initial checkpoint: Local repository setup"


@dataclass(frozen=True)
class GitIdentity:
    """Commit identity and command settings used for checkpoints.

    Attributes:
        name: Value written to ``user.name``.
        email: Value written to ``user.email``.
        message: Commit message of the checkpoint.
        git_executable: Name or path of the git binary.
    """

    name: str = "Workspace Agent"
    email: str = "agent@localhost"
    message: str = DEFAULT_CHECKPOINT_MESSAGE
    git_executable: str = "git"


@dataclass
class CheckpointState:
    """Version-control state of a working directory.

    Attributes:
        has_metadata: Whether the ``.git`` marker exists.
        commit_count: Number of commits reachable from HEAD.
    """

    has_metadata: bool
    commit_count: int


@dataclass
class CheckpointResult:
    """Outcome of a best-effort checkpoint.

    Attributes:
        working_dir: Directory the checkpoint was attempted in.
        initialized: True when this call ran ``git init``.
        configured: True when the identity was written.
        committed: True when the checkpoint commit was created.
        warnings: One message per failed step.
    """

    working_dir: Path
    initialized: bool = False
    configured: bool = False
    committed: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.committed and not self.warnings


class GitCommandError(Exception):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr or f"exit status {returncode}"
        super().__init__(f"git {' '.join(self.command)} failed: {detail}")


class CheckpointManager:
    """Initializes git metadata and commits a baseline checkpoint.

    Attributes:
        identity: Commit identity and git executable to use.
    """

    def __init__(self, identity: GitIdentity = GitIdentity()):
        self.identity = identity

    async def create_checkpoint(self, working_dir: Path) -> CheckpointResult:
        """Record the current state of a working directory as a commit.

        Runs three independent steps: initialize the repository if the
        ``.git`` marker is missing, write the commit identity, then stage
        everything and commit with ``--allow-empty``.

        Args:
            working_dir: Writable directory to checkpoint.

        Returns:
            CheckpointResult describing which steps succeeded.
        """
        result = CheckpointResult(working_dir=working_dir)

        try:
            result.initialized = await self._ensure_repository(working_dir)
        except (GitCommandError, OSError) as exc:
            self._record_warning(result, "init", exc)

        try:
            await self._configure_identity(working_dir)
            result.configured = True
        except (GitCommandError, OSError) as exc:
            self._record_warning(result, "config", exc)

        try:
            await self._commit_all(working_dir)
            result.committed = True
        except (GitCommandError, OSError) as exc:
            self._record_warning(result, "commit", exc)

        if result.committed:
            logger.info("Initial checkpoint created", working_dir=str(working_dir))
        return result

    async def read_state(self, working_dir: Path) -> CheckpointState:
        """Read metadata presence and commit history length.

        A directory without git metadata, without commits, or without a
        usable git binary reports zero commits.
        """
        has_metadata = (working_dir / GIT_METADATA_DIR).exists()
        if not has_metadata:
            return CheckpointState(has_metadata=False, commit_count=0)

        try:
            stdout, _ = await self._run_git(
                working_dir, "rev-list", "--count", "HEAD"
            )
            commit_count = int(stdout.strip() or 0)
        except (GitCommandError, OSError, ValueError):
            commit_count = 0
        return CheckpointState(has_metadata=True, commit_count=commit_count)

    async def _ensure_repository(self, working_dir: Path) -> bool:
        """Run ``git init`` unless the metadata marker already exists.

        Returns:
            True if a repository was initialized by this call.
        """
        if (working_dir / GIT_METADATA_DIR).exists():
            logger.debug("Git metadata present", working_dir=str(working_dir))
            return False

        await self._run_git(working_dir, "init")
        logger.info("Git repository initialized", working_dir=str(working_dir))
        return True

    async def _configure_identity(self, working_dir: Path) -> None:
        await self._run_git(working_dir, "config", "user.name", self.identity.name)
        await self._run_git(
            working_dir, "config", "user.email", self.identity.email
        )

    async def _commit_all(self, working_dir: Path) -> None:
        await self._run_git(working_dir, "add", "-A")
        await self._run_git(
            working_dir,
            "-c",
            "commit.gpgsign=false",
            "commit",
            "--allow-empty",
            "-m",
            self.identity.message,
        )

    async def _run_git(self, working_dir: Path, *args: str) -> Tuple[str, str]:
        """Run a git command inside the working directory.

        Returns:
            Tuple of (stdout_text, stderr_text).

        Raises:
            GitCommandError: If git exits with a non-zero status.
            OSError: If the git executable cannot be started.
        """
        process = await asyncio.create_subprocess_exec(
            self.identity.git_executable,
            *args,
            cwd=str(working_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        stdout_text = stdout.decode(errors="replace")
        stderr_text = stderr.decode(errors="replace").strip()

        if process.returncode != 0:
            raise GitCommandError(args, process.returncode, stderr_text)
        return stdout_text, stderr_text

    def _record_warning(
        self, result: CheckpointResult, step: str, exc: Exception
    ) -> None:
        message = f"{step}: {exc}"
        result.warnings.append(message)
        logger.warning(
            "Git setup warning",
            step=step,
            working_dir=str(result.working_dir),
            error=str(exc),
        )
