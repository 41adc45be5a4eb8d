"""Results returned to the transport layer."""

from typing import Any, Optional
from pydantic import BaseModel, Field

from nightfall.errors import RejectionReason
from nightfall.events import GameEvent
from nightfall.models import GameAction, GamePhase, Side, Vote


class PhaseEndResult(BaseModel):
    """What a phase transition did."""

    previous_phase: GamePhase
    new_phase: GamePhase
    day_number: int
    events: list[GameEvent] = Field(default_factory=list)
    game_ended: bool = False
    winning_side: Optional[Side] = None
    winners: list[str] = Field(default_factory=list)


class VoteResult(BaseModel):
    """Outcome of ``cast_vote``."""

    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    vote: Optional[Vote] = None
    replaced: bool = False
    all_voted: bool = False
    phase_end: Optional[PhaseEndResult] = None


class ActionResult(BaseModel):
    """Outcome of a night action, hunter shot or ready mark."""

    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    action: Optional[GameAction] = None
    result: dict[str, Any] = Field(default_factory=dict)
    all_actions_complete: bool = False
    phase_end: Optional[PhaseEndResult] = None
