"""Setup invocation state tracking.

This module models the stages of a single setup invocation:
- start → probed → provisioned → checkpointed → done
- probed → failed when provisioning fails
"""

from workspace_setup.state.models import (
    InvalidTransitionError,
    SetupStage,
    SetupTrace,
    StageTransition,
    VALID_TRANSITIONS,
    is_terminal_stage,
    is_valid_transition,
)

__all__ = [
    "InvalidTransitionError",
    "SetupStage",
    "SetupTrace",
    "StageTransition",
    "VALID_TRANSITIONS",
    "is_terminal_stage",
    "is_valid_transition",
]
