"""Lobby management - seating, leaving, host transfer and connection state.

Functions here mutate a working copy of a snapshot and return the events the
change produces. Committing is left to the caller.
"""

import logging
from typing import Optional

from nightfall.errors import ConflictError, ErrorCode, NotFoundError
from nightfall.events import EventType, GameEvent, public_event
from nightfall.models import GameSnapshot, GameStatus, Identity, Player, utcnow

logger = logging.getLogger(__name__)


def _event(snapshot: GameSnapshot, type: EventType, **data) -> GameEvent:
    game = snapshot.game
    return public_event(game.id, type, game.day_number, game.phase, **data)


def seat_player(snapshot: GameSnapshot, identity: Identity, is_host: bool = False) -> Player:
    """Seat a new player at the lowest free player number."""
    player = Player(
        game_id=snapshot.game.id,
        user_id=identity.user_id,
        nickname=identity.nickname,
        player_number=snapshot.next_player_number(),
        is_host=is_host,
    )
    snapshot.players.append(player)
    return player


def join(snapshot: GameSnapshot, identity: Identity) -> tuple[Player, list[GameEvent]]:
    """Add a user to a lobby, or reconnect a user already seated.

    Raises:
        ConflictError: If the game already started (for new users) or is full.
    """
    existing = snapshot.find_player_by_user(identity.user_id)
    if existing is not None:
        return existing, reconnect(snapshot, existing)

    if snapshot.game.status != GameStatus.LOBBY:
        raise ConflictError("Game has already started")

    if len(snapshot.players) >= snapshot.game.settings.max_players:
        raise ConflictError("Game is full", code=ErrorCode.GAME_FULL)

    player = seat_player(snapshot, identity)
    event = _event(
        snapshot,
        EventType.PLAYER_JOINED,
        player_id=player.id,
        nickname=player.nickname,
        player_number=player.player_number,
    )
    return player, [event]


def leave(snapshot: GameSnapshot, user_id: str) -> tuple[bool, list[GameEvent]]:
    """Remove a user from a lobby.

    Returns:
        Tuple of (game_emptied, events). When the last player leaves the game
        should be deleted and the events are moot.

    Raises:
        NotFoundError: If the user is not seated.
        ConflictError: If the game is past the lobby.
    """
    player = snapshot.find_player_by_user(user_id)
    if player is None:
        raise NotFoundError("Player not in game", code=ErrorCode.PLAYER_NOT_FOUND)

    if snapshot.game.status != GameStatus.LOBBY:
        raise ConflictError("Cannot leave game after it has started")

    snapshot.players.remove(player)
    if not snapshot.players:
        return True, []

    events: list[GameEvent] = []
    if player.is_host:
        player.is_host = False
        new_host = transfer_host(snapshot)
        if new_host is not None:
            events.append(_host_changed(snapshot, new_host))

    events.append(
        _event(snapshot, EventType.PLAYER_LEFT, player_id=player.id, nickname=player.nickname)
    )
    return False, events


def transfer_host(snapshot: GameSnapshot, alive_only: bool = False) -> Optional[Player]:
    """Hand the host flag to the earliest-joined eligible player.

    Clears the flag from every other player so exactly one host remains.
    """
    candidates = snapshot.alive_players() if alive_only else snapshot.players
    if not candidates:
        return None
    new_host = candidates[0]
    for player in snapshot.players:
        player.is_host = player.id == new_host.id
    return new_host


def _host_changed(snapshot: GameSnapshot, new_host: Player) -> GameEvent:
    return _event(
        snapshot,
        EventType.HOST_CHANGED,
        new_host_id=new_host.id,
        new_host_nickname=new_host.nickname,
    )


def ensure_alive_host(snapshot: GameSnapshot) -> list[GameEvent]:
    """Move the host flag off a dead host during a game."""
    host = snapshot.host()
    if host is not None and host.is_alive:
        return []
    new_host = transfer_host(snapshot, alive_only=True)
    if new_host is None:
        return []
    logger.info("Host of game %s passed to player %d", snapshot.game.code, new_host.player_number)
    return [_host_changed(snapshot, new_host)]


def disconnect(snapshot: GameSnapshot, player: Player) -> list[GameEvent]:
    """Mark a player reconnect-eligible; they keep their seat and phase duties."""
    if player.disconnected_at is not None:
        return []
    player.disconnected_at = utcnow()
    return [_event(snapshot, EventType.PLAYER_DISCONNECTED, player_id=player.id, nickname=player.nickname)]


def reconnect(snapshot: GameSnapshot, player: Player) -> list[GameEvent]:
    if player.disconnected_at is None:
        return []
    player.disconnected_at = None
    return [_event(snapshot, EventType.PLAYER_RECONNECTED, player_id=player.id, nickname=player.nickname)]
