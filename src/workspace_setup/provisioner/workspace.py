"""Workspace provisioning for local repository setup.

Decides whether a source directory can be used in place or whether an
isolated copy must be created under the scratch root. Once returned, a
working directory belongs to the caller; nothing here removes it later.

Concurrent setups of the same unwritable source each receive their own
uniquely named copy; no locking or deduplication is performed.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set, Union

import structlog

logger = structlog.get_logger(__name__)

WORKSPACE_DIR_PREFIX = "workspace-"
WORKSPACE_DIR_PERMISSIONS = 0o755


@dataclass
class WorkspaceConfig:
    """Configuration for workspace provisioning.

    Attributes:
        scratch_root: Absolute directory under which workspace copies
            are created when a source is not writable.
    """

    scratch_root: Path


@dataclass
class ProvisionedWorkspace:
    """Result of a successful workspace provisioning.

    Attributes:
        path: Absolute path of the working directory.
        source_path: Resolved path of the original source directory.
        copied: True when ``path`` is a fresh copy under the scratch root.
    """

    path: Path
    source_path: Path
    copied: bool = False


class WorkspaceProvisionError(Exception):
    """Raised when a workspace copy cannot be created."""

    def __init__(self, source_path: Union[str, Path], message: str):
        self.source_path = str(source_path)
        self.reason = message
        super().__init__(message)


def is_writable(path: Union[str, Path]) -> bool:
    """Check whether the current process may write to a directory.

    Never touches the filesystem beyond the access check. Any failure,
    including a missing path, is reported as not writable.
    """
    try:
        return os.access(path, os.W_OK)
    except (OSError, ValueError):
        return False


def resolve_source_path(source_path: Union[str, Path]) -> Path:
    """Make a source path absolute.

    A leading ``~`` is an ordinary path component, not the home directory.

    Raises:
        WorkspaceProvisionError: If the path cannot be resolved, e.g. it
            contains a NUL byte or runs into a symlink loop.
    """
    try:
        return Path(source_path).resolve()
    except (OSError, ValueError, RuntimeError) as exc:
        raise WorkspaceProvisionError(
            source_path, f"Failed to resolve {source_path!r}: {exc}"
        ) from exc


class WorkspaceProvisioner:
    """Produces a writable working directory for a source directory.

    Writable sources are used in place. Unwritable sources are copied into
    a uniquely named ``workspace-*`` directory under the scratch root.

    Attributes:
        config: Workspace configuration.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        writable_check: Callable[[Path], bool] = is_writable,
    ):
        self.config = config
        self._writable_check = writable_check

    def probe(self, source: Path) -> bool:
        """Report whether ``source`` can be used in place."""
        return self._writable_check(source)

    async def provision(
        self, source_path: Union[str, Path], writable: Optional[bool] = None
    ) -> ProvisionedWorkspace:
        """Provision a working directory for the given source.

        Args:
            source_path: Directory the caller wants to operate on.
            writable: Result of an earlier ``probe`` of the resolved
                source; probed here when omitted.

        Returns:
            ProvisionedWorkspace pointing at the source itself or at a copy.

        Raises:
            WorkspaceProvisionError: If the source cannot be resolved or
                the scratch root or copy cannot be created.
        """
        source = resolve_source_path(source_path)
        if writable is None:
            writable = self.probe(source)

        if writable:
            logger.debug("Source is writable, using in place", source=str(source))
            return ProvisionedWorkspace(path=source, source_path=source)

        self._ensure_scratch_root(source)
        workspace_path = self._create_workspace_directory(source)

        logger.warning(
            "Repository not writable, creating workspace copy",
            source=str(source),
            workspace=str(workspace_path),
        )
        self._copy_source(source, workspace_path)
        self._set_directory_permissions(source, workspace_path)
        logger.info("Workspace copy created", workspace=str(workspace_path))

        return ProvisionedWorkspace(
            path=workspace_path, source_path=source, copied=True
        )

    def _ensure_scratch_root(self, source: Path) -> None:
        try:
            self.config.scratch_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceProvisionError(
                source,
                f"Failed to create scratch root {self.config.scratch_root}: {exc}",
            ) from exc

    def _create_workspace_directory(self, source: Path) -> Path:
        """Create a uniquely named workspace directory.

        Raises:
            WorkspaceProvisionError: If directory creation fails.
        """
        try:
            created = tempfile.mkdtemp(
                prefix=WORKSPACE_DIR_PREFIX, dir=self.config.scratch_root
            )
        except OSError as exc:
            raise WorkspaceProvisionError(
                source,
                f"Failed to create workspace under {self.config.scratch_root}: {exc}",
            ) from exc
        return Path(created).resolve()

    def _copy_source(self, source: Path, workspace_path: Path) -> None:
        """Recursively copy the source into the workspace.

        Entries already present at the destination are skipped, never
        overwritten. A failed copy removes the workspace directory.

        Raises:
            WorkspaceProvisionError: If the copy fails.
        """
        try:
            shutil.copytree(
                source,
                workspace_path,
                symlinks=True,
                ignore=_skip_existing(source, workspace_path),
                dirs_exist_ok=True,
            )
        except (OSError, ValueError) as exc:
            self._discard_partial_workspace(workspace_path)
            raise WorkspaceProvisionError(
                source, f"Failed to copy {source} to {workspace_path}: {exc}"
            ) from exc

    def _set_directory_permissions(self, source: Path, workspace_path: Path) -> None:
        """Make the workspace root writable again.

        copytree carries the source root's mode over, which is read-only
        for exactly the sources that get copied.

        Raises:
            WorkspaceProvisionError: If permission setting fails.
        """
        try:
            workspace_path.chmod(WORKSPACE_DIR_PERMISSIONS)
        except OSError as exc:
            self._discard_partial_workspace(workspace_path)
            raise WorkspaceProvisionError(
                source, f"Failed to set permissions on {workspace_path}: {exc}"
            ) from exc

    def _discard_partial_workspace(self, workspace_path: Path) -> None:
        try:
            shutil.rmtree(workspace_path)
        except OSError:
            logger.warning(
                "Failed to remove partial workspace",
                workspace=str(workspace_path),
                exc_info=True,
            )


def _skip_existing(
    source: Path, destination: Path
) -> Callable[[str, List[str]], Set[str]]:
    """Build a copytree ignore hook that skips entries already copied.

    Directories that already exist are still descended into so their
    missing children get copied.
    """

    def ignore(directory: str, names: List[str]) -> Set[str]:
        target_dir = destination / Path(directory).relative_to(source)
        skipped = set()
        for name in names:
            target = target_dir / name
            if os.path.lexists(target) and not (
                target.is_dir() and not target.is_symlink()
            ):
                skipped.add(name)
        return skipped

    return ignore
