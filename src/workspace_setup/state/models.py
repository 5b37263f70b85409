"""Setup state machine models.

This module defines the data models for tracking one setup invocation:
- SetupStage: Enum of all setup stages
- StageTransition: Record of a stage transition with timestamp and details
- SetupTrace: Ordered transition history that enforces VALID_TRANSITIONS
- VALID_TRANSITIONS: Map defining allowed stage transitions

The models use Pydantic for validation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SetupStage(str, Enum):
    """Stages a single setup invocation moves through.

    Stage Flow:
        start → probed → provisioned → checkpointed → done

    Only the probed stage may move to 'failed'; a checkpoint problem
    never fails the invocation.

    Attributes:
        START: Invocation received a source path.
        PROBED: Source writability has been determined.
        PROVISIONED: A working directory exists (in place or copied).
        CHECKPOINTED: The best-effort checkpoint has been attempted.
        DONE: The working directory has been returned to the caller.
        FAILED: Provisioning failed; a SetupError was produced.
    """

    START = "start"
    PROBED = "probed"
    PROVISIONED = "provisioned"
    CHECKPOINTED = "checkpointed"
    DONE = "done"
    FAILED = "failed"


# Valid state transitions map
#
# - PROBED is the only stage with two exits (provisioned or failed)
# - CHECKPOINTED is reached unconditionally from PROVISIONED
# - DONE and FAILED are terminal
VALID_TRANSITIONS: Dict[SetupStage, List[SetupStage]] = {
    SetupStage.START: [SetupStage.PROBED],
    SetupStage.PROBED: [SetupStage.PROVISIONED, SetupStage.FAILED],
    SetupStage.PROVISIONED: [SetupStage.CHECKPOINTED],
    SetupStage.CHECKPOINTED: [SetupStage.DONE],
    SetupStage.DONE: [],
    SetupStage.FAILED: [],
}


def is_valid_transition(from_stage: SetupStage, to_stage: SetupStage) -> bool:
    """Check if a transition between two stages is allowed."""
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: SetupStage) -> bool:
    return not VALID_TRANSITIONS.get(stage)


class InvalidTransitionError(Exception):
    """Raised when a trace is asked to make a disallowed transition.

    Attributes:
        from_stage: The current stage.
        to_stage: The attempted target stage.
    """

    def __init__(self, from_stage: SetupStage, to_stage: SetupStage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )


class StageTransition(BaseModel):
    """Record of a stage transition in one setup invocation."""

    from_stage: SetupStage = Field(
        ...,
        description="The setup stage before this transition",
    )

    to_stage: SetupStage = Field(
        ...,
        description="The setup stage after this transition",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the transition occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Optional metadata about the transition",
    )


class SetupTrace(BaseModel):
    """Stage history of one setup invocation.

    Attributes:
        source_path: The path the caller supplied.
        current_stage: The stage the invocation is in.
        history: Ordered list of all transitions.
    """

    source_path: str = Field(
        ...,
        description="The path the caller supplied",
    )

    current_stage: SetupStage = Field(
        default=SetupStage.START,
        description="The current stage of the invocation",
    )

    history: List[StageTransition] = Field(
        default_factory=list,
        description="Ordered list of all stage transitions",
    )

    def advance(
        self, to_stage: SetupStage, details: Optional[Dict[str, Any]] = None
    ) -> StageTransition:
        """Move to ``to_stage`` and record the transition.

        Raises:
            InvalidTransitionError: If the move is not in VALID_TRANSITIONS.
        """
        if not is_valid_transition(self.current_stage, to_stage):
            raise InvalidTransitionError(self.current_stage, to_stage)

        transition = StageTransition(
            from_stage=self.current_stage,
            to_stage=to_stage,
            details=details or {},
        )
        self.history.append(transition)
        self.current_stage = to_stage
        return transition

    @property
    def stages(self) -> List[SetupStage]:
        """All stages visited so far, starting with START."""
        return [SetupStage.START] + [t.to_stage for t in self.history]
