"""Workspace setup configuration using pydantic-settings.

This module defines the SetupSettings class that reads configuration
from environment variables with the WORKSPACE_SETUP_ prefix. Every field
has a default, so settings load without any environment present.

The scratch root is resolved to an absolute path once, when settings are
turned into component configuration, so the provisioner itself never
consults the process working directory.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SetupSettings(BaseSettings):
    """Workspace setup configuration from environment variables.

    All environment variables are prefixed with WORKSPACE_SETUP_
    (e.g., WORKSPACE_SETUP_SCRATCH_ROOT).
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACE_SETUP_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Workspace Configuration
    # -------------------------------------------------------------------------
    # Parent directory for workspace copies; relative paths are taken
    # against the process working directory
    scratch_root: str = "repos"

    # -------------------------------------------------------------------------
    # Checkpoint Configuration
    # -------------------------------------------------------------------------
    # Executable used for version-control commands
    git_executable: str = "git"

    # Commit identity written to the working directory's local config
    git_user_name: str = "Workspace Agent"
    git_user_email: str = "agent@localhost"

    # Message of the baseline commit
    checkpoint_message: str = "Initial checkpoint: Local repository setup"

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------
    log_level: str = "INFO"

    # Render log events as JSON instead of the console format
    log_json: bool = False

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator(
        "scratch_root",
        "git_executable",
        "git_user_name",
        "git_user_email",
        "checkpoint_message",
    )
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that string settings are not blank."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level names a stdlib logging level."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    def resolved_scratch_root(self, cwd: Optional[Path] = None) -> Path:
        """Return the scratch root as an absolute path.

        Args:
            cwd: Base for a relative scratch root. Defaults to the
                process working directory.

        Returns:
            Absolute scratch root path.
        """
        root = Path(self.scratch_root)
        if not root.is_absolute():
            root = (cwd or Path.cwd()) / root
        return root.resolve()


def get_settings() -> SetupSettings:
    """Create and return a SetupSettings instance.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    return SetupSettings()
