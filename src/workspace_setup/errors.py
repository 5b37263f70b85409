"""Typed errors for local workspace setup.

This module defines the single public failure type of the subsystem,
SetupError, and the classifier that turns provisioning faults into it.

Only provisioning faults (writability probe, scratch root creation,
workspace copy) ever reach the classifier. Version-control faults are
absorbed by the checkpoint manager and never become a SetupError.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union


class ErrorKind(str, Enum):
    """Closed set of error kinds raised by workspace setup.

    Attributes:
        FILESYSTEM: Scratch root creation or workspace copy failed.
    """

    FILESYSTEM = "filesystem"


class SetupError(Exception):
    """Raised when a working directory could not be produced.

    Instances are built fully populated by the ``filesystem`` factory or
    by ``classify_fault``; there is no path that yields a partial error.

    Attributes:
        message: Human-readable error message.
        kind: Error category, always ``ErrorKind.FILESYSTEM`` here.
        retryable: Whether retrying the same call could succeed.
        context: Diagnostic context with ``source_path`` and
            ``underlying_message``.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        retryable: bool,
        context: Dict[str, Any],
    ):
        self.message = message
        self.kind = kind
        self.retryable = retryable
        self.context = dict(context)
        super().__init__(message)

    @classmethod
    def filesystem(
        cls, source_path: Union[str, Path], underlying_message: str
    ) -> "SetupError":
        """Build a non-retryable filesystem error for a source path."""
        return cls(
            f"Local repository setup failed: {underlying_message}",
            kind=ErrorKind.FILESYSTEM,
            retryable=False,
            context={
                "source_path": str(source_path),
                "underlying_message": underlying_message,
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "kind": self.kind.value,
            "retryable": self.retryable,
            "context": dict(self.context),
        }


def classify_fault(
    fault: BaseException, source_path: Union[str, Path]
) -> SetupError:
    """Wrap a provisioning fault into a SetupError.

    A fault that is already a SetupError is returned as-is so that it is
    never wrapped twice.

    Args:
        fault: Exception raised while probing or provisioning.
        source_path: The path the caller originally supplied.

    Returns:
        A fully populated SetupError.
    """
    if isinstance(fault, SetupError):
        return fault
    return SetupError.filesystem(source_path, _describe(fault))


def _describe(fault: BaseException) -> str:
    message = str(fault)
    return message if message else type(fault).__name__
