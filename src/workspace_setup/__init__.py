"""Writable, checkpointed working directories for agent runs.

This package prepares a target directory before an agent operates on it:
- Uses the directory in place when it is writable, otherwise copies it
  into a uniquely named workspace under a scratch root
- Initializes git metadata and commits a baseline checkpoint
- Reports failure as a single typed SetupError
"""

from workspace_setup.checkpoint.git import (
    CheckpointManager,
    CheckpointResult,
    CheckpointState,
    GitIdentity,
)
from workspace_setup.config import SetupSettings, get_settings
from workspace_setup.errors import ErrorKind, SetupError, classify_fault
from workspace_setup.orchestrator import LocalRepoSetup, SetupOutcome, setup_local_repo
from workspace_setup.provisioner.workspace import (
    ProvisionedWorkspace,
    WorkspaceConfig,
    WorkspaceProvisionError,
    WorkspaceProvisioner,
    is_writable,
    resolve_source_path,
)

__all__ = [
    "CheckpointManager",
    "CheckpointResult",
    "CheckpointState",
    "ErrorKind",
    "GitIdentity",
    "LocalRepoSetup",
    "ProvisionedWorkspace",
    "SetupError",
    "SetupOutcome",
    "SetupSettings",
    "WorkspaceConfig",
    "WorkspaceProvisionError",
    "WorkspaceProvisioner",
    "classify_fault",
    "get_settings",
    "is_writable",
    "resolve_source_path",
    "setup_local_repo",
]
