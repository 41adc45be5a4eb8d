"""Game record, lifecycle enums and game settings."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models.roles import Role, Side


def new_id() -> str:
    """Generate an opaque record id."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time, timezone aware."""
    return datetime.now(timezone.utc)


class GameStatus(str, Enum):
    """Lifecycle status of a game."""

    LOBBY = "LOBBY"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class GamePhase(str, Enum):
    """Phases of the day/night cycle plus the pre-game and terminal states."""

    WAITING = "WAITING"
    NIGHT = "NIGHT"
    DISCUSSION = "DISCUSSION"
    VOTING = "VOTING"
    EXECUTION = "EXECUTION"
    GAME_OVER = "GAME_OVER"


def default_role_counts() -> dict[Role, int]:
    return {
        Role.WEREWOLF: 1,
        Role.SEER: 1,
        Role.DOCTOR: 0,
        Role.WITCH: 0,
        Role.HUNTER: 0,
        Role.CUPID: 0,
        Role.VILLAGER: 3,
    }


class GameSettings(BaseModel):
    """Per-game configuration chosen by the host.

    Durations are in seconds. An ``execution_time`` of 0 means the
    elimination announcement has no timer of its own.
    """

    min_players: int = 5
    max_players: int = 20
    discussion_time: int = 180
    voting_time: int = 60
    night_time: int = 30
    execution_time: int = 10
    roles: dict[Role, int] = Field(default_factory=default_role_counts)

    def total_roles(self) -> int:
        return sum(self.roles.values())

    def duration_for(self, phase: GamePhase) -> int:
        """Timer length for a phase (0 means no timer)."""
        if phase == GamePhase.NIGHT:
            return self.night_time
        if phase == GamePhase.DISCUSSION:
            return self.discussion_time
        if phase == GamePhase.VOTING:
            return self.voting_time
        if phase == GamePhase.EXECUTION:
            return self.execution_time
        return 0


class Game(BaseModel):
    """Authoritative game record.

    ``phase`` is meaningful only while IN_PROGRESS; ``winning_side`` is set
    exactly when the game is COMPLETED. ``version`` increases on every commit.
    """

    id: str = Field(default_factory=new_id)
    code: str
    status: GameStatus = GameStatus.LOBBY
    phase: GamePhase = GamePhase.WAITING
    day_number: int = 0
    settings: GameSettings = Field(default_factory=GameSettings)
    winning_side: Optional[Side] = None
    winners: list[str] = Field(default_factory=list)  # user ids
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in (GameStatus.LOBBY, GameStatus.IN_PROGRESS)
