"""Votes and night actions submitted by players."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models.game import GamePhase, new_id, utcnow
from nightfall.models.roles import ActionType


class Vote(BaseModel):
    """A ballot; ``target_id`` None is an explicit skip.

    Unique per (game, voter, phase, day, round); a new ballot for the same key
    replaces the old one.
    """

    id: str = Field(default_factory=new_id)
    game_id: str
    voter_id: str
    target_id: Optional[str] = None
    phase: GamePhase = GamePhase.VOTING
    day_number: int
    round: int = 1
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str, GamePhase, int, int]:
        return (self.game_id, self.voter_id, self.phase, self.day_number, self.round)


class GameAction(BaseModel):
    """A night action waiting for resolution.

    At most one unprocessed action per (actor, phase, day). ``processed`` only
    ever goes from False to True.
    """

    id: str = Field(default_factory=new_id)
    game_id: str
    player_id: str
    action: ActionType
    target_id: str
    secondary_target_id: Optional[str] = None
    phase: GamePhase = GamePhase.NIGHT
    day_number: int
    processed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
