"""Event records emitted by the engine.

Events are append-only. Each one carries a visibility class that decides who
may see it once it leaves the core:

- PUBLIC: everyone at the table
- PRIVATE: only the users listed in ``visible_to``
- ROLE: players holding ``role`` (narrowed to ``visible_to`` when non-empty)
- DEAD: only players who are dead
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from nightfall.models.game import GamePhase, new_id, utcnow
from nightfall.models.roles import Role


class EventType(str, Enum):
    """Kinds of game events."""

    GAME_CREATED = "GAME_CREATED"
    PLAYER_JOINED = "PLAYER_JOINED"
    PLAYER_LEFT = "PLAYER_LEFT"
    HOST_CHANGED = "HOST_CHANGED"
    PLAYER_DISCONNECTED = "PLAYER_DISCONNECTED"
    PLAYER_RECONNECTED = "PLAYER_RECONNECTED"
    GAME_STARTED = "GAME_STARTED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    PHASE_CHANGED = "PHASE_CHANGED"
    PLAYER_VOTED = "PLAYER_VOTED"
    PLAYER_READY = "PLAYER_READY"
    NIGHT_ACTION_RECORDED = "NIGHT_ACTION_RECORDED"
    PLAYER_KILLED = "PLAYER_KILLED"
    NO_ONE_KILLED = "NO_ONE_KILLED"
    PLAYER_ELIMINATED = "PLAYER_ELIMINATED"
    NO_ELIMINATION = "NO_ELIMINATION"
    ROLE_REVEALED = "ROLE_REVEALED"
    LOVERS_LINKED = "LOVERS_LINKED"
    HUNTER_TRIGGERED = "HUNTER_TRIGGERED"
    HUNTER_SHOT = "HUNTER_SHOT"
    GAME_ENDED = "GAME_ENDED"
    GAME_CANCELLED = "GAME_CANCELLED"


class EventVisibility(str, Enum):
    """Who may observe an event."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    ROLE = "ROLE"
    DEAD = "DEAD"


class DeathCause(str, Enum):
    """Cause of death carried in kill/elimination payloads."""

    NIGHT_KILL = "NIGHT_KILL"
    BANISHMENT = "BANISHMENT"
    HEARTBREAK = "HEARTBREAK"
    HUNTER_SHOT = "HUNTER_SHOT"


class GameEvent(BaseModel):
    """A single immutable log entry.

    ``sequence`` is assigned by the repository when the event is appended and
    orders events within a game.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    game_id: str
    type: EventType
    data: dict[str, Any] = Field(default_factory=dict)
    visibility: EventVisibility = EventVisibility.PUBLIC
    visible_to: tuple[str, ...] = ()  # user ids
    role: Optional[Role] = None
    day_number: int = 0
    phase: GamePhase = GamePhase.WAITING
    sequence: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    def __str__(self) -> str:
        return f"{self.type.value}(day={self.day_number}, phase={self.phase.value}, {self.visibility.value})"


# ============================================================================
# Constructors
# ============================================================================


def public_event(
    game_id: str,
    type: EventType,
    day_number: int,
    phase: GamePhase,
    **data: Any,
) -> GameEvent:
    """Event everyone at the table sees."""
    return GameEvent(
        game_id=game_id,
        type=type,
        data=data,
        visibility=EventVisibility.PUBLIC,
        day_number=day_number,
        phase=phase,
    )


def private_event(
    game_id: str,
    type: EventType,
    recipients: list[str],
    day_number: int,
    phase: GamePhase,
    **data: Any,
) -> GameEvent:
    """Event only the listed users see."""
    return GameEvent(
        game_id=game_id,
        type=type,
        data=data,
        visibility=EventVisibility.PRIVATE,
        visible_to=tuple(recipients),
        day_number=day_number,
        phase=phase,
    )


def role_event(
    game_id: str,
    type: EventType,
    role: Role,
    day_number: int,
    phase: GamePhase,
    recipients: Optional[list[str]] = None,
    **data: Any,
) -> GameEvent:
    """Event seen by holders of a role, optionally narrowed to some of them."""
    return GameEvent(
        game_id=game_id,
        type=type,
        data=data,
        visibility=EventVisibility.ROLE,
        role=role,
        visible_to=tuple(recipients or ()),
        day_number=day_number,
        phase=phase,
    )


def dead_event(
    game_id: str,
    type: EventType,
    day_number: int,
    phase: GamePhase,
    **data: Any,
) -> GameEvent:
    """Event only dead players see."""
    return GameEvent(
        game_id=game_id,
        type=type,
        data=data,
        visibility=EventVisibility.DEAD,
        day_number=day_number,
        phase=phase,
    )
