"""Per-viewer projection of events and game state.

The core always works on a full ``GameSnapshot``. This module is the single
place where hidden information is stripped before anything reaches a client:

- Roles and role states are only shown to their owner
- Events are filtered by their visibility class and recipient list
"""

from datetime import datetime
from typing import Iterable, Optional
from pydantic import BaseModel, Field

from nightfall.events.game_events import GameEvent, EventVisibility
from nightfall.models import (
    GamePhase,
    GameSettings,
    GameSnapshot,
    GameStatus,
    Player,
    Role,
    RoleState,
    Side,
)


# ============================================================================
# Viewer-facing models
# ============================================================================


class PlayerView(BaseModel):
    """A seat as seen by one viewer."""

    id: str
    user_id: str
    nickname: str
    player_number: int
    is_alive: bool
    is_host: bool
    is_connected: bool
    role: Optional[Role] = None  # only filled for the viewer's own seat


class GameView(BaseModel):
    """A game as seen by one viewer."""

    id: str
    code: str
    status: GameStatus
    phase: GamePhase
    day_number: int
    settings: GameSettings
    winning_side: Optional[Side] = None
    winners: list[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    players: list[PlayerView] = Field(default_factory=list)
    my_player_id: Optional[str] = None
    my_role: Optional[Role] = None
    my_role_state: Optional[RoleState] = None
    my_partner_id: Optional[str] = None


# ============================================================================
# Event filtering
# ============================================================================


def can_view(event: GameEvent, viewer: Optional[Player]) -> bool:
    """Check whether a seated player (or an outsider, when None) may see an event."""
    if event.visibility == EventVisibility.PUBLIC:
        return True
    if viewer is None:
        return False

    if event.visibility == EventVisibility.PRIVATE:
        return viewer.user_id in event.visible_to

    if event.visibility == EventVisibility.ROLE:
        if viewer.role is None or viewer.role != event.role:
            return False
        return not event.visible_to or viewer.user_id in event.visible_to

    if event.visibility == EventVisibility.DEAD:
        return not viewer.is_alive

    return False


def events_for_viewer(
    events: Iterable[GameEvent],
    snapshot: GameSnapshot,
    user_id: Optional[str],
) -> list[GameEvent]:
    """Filter an event log down to what one user may see.

    Args:
        events: Events in append order
        snapshot: Current snapshot, used to resolve the viewer's role and alive state
        user_id: Viewer's user id, or None for an outsider

    Returns:
        Visible events, order preserved
    """
    viewer = snapshot.find_player_by_user(user_id) if user_id else None
    return [event for event in events if can_view(event, viewer)]


# ============================================================================
# State projection
# ============================================================================


def project_game(snapshot: GameSnapshot, user_id: Optional[str]) -> GameView:
    """Build the viewer-specific game view.

    Only the viewer's own role, role state and lover partner are included.
    """
    game = snapshot.game
    viewer = snapshot.find_player_by_user(user_id) if user_id else None

    players = [
        PlayerView(
            id=p.id,
            user_id=p.user_id,
            nickname=p.nickname,
            player_number=p.player_number,
            is_alive=p.is_alive,
            is_host=p.is_host,
            is_connected=p.is_connected,
            role=p.role if viewer is not None and p.id == viewer.id else None,
        )
        for p in snapshot.players
    ]

    view = GameView(
        id=game.id,
        code=game.code,
        status=game.status,
        phase=game.phase,
        day_number=game.day_number,
        settings=game.settings,
        winning_side=game.winning_side,
        winners=list(game.winners),
        started_at=game.started_at,
        players=players,
    )

    if viewer is not None:
        view.my_player_id = viewer.id
        view.my_role = viewer.role
        role_state = snapshot.role_state_for(viewer.id)
        if role_state is not None:
            view.my_role_state = role_state.model_copy()
        pair = snapshot.lover_pair_for(viewer.id)
        if pair is not None:
            view.my_partner_id = pair.partner_of(viewer.id)

    return view
