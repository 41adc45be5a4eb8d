"""Persistence collaborator interface and an in-memory implementation.

The repository is the source of truth. Engine code loads a snapshot, works on
a deep copy, and writes everything that belongs together (player deaths,
processed flags, resource flags, events) through one ``UnitOfWork`` so it
commits as a whole or not at all.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from nightfall.errors import PersistenceError
from nightfall.events.game_events import GameEvent
from nightfall.models import GameSnapshot

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Writes staged for one atomic commit."""

    def __init__(self):
        self.saved: dict[str, GameSnapshot] = {}
        self.deleted: set[str] = set()
        self.events: dict[str, list[GameEvent]] = {}
        self.committed_events: list[GameEvent] = []

    def save(self, snapshot: GameSnapshot) -> None:
        """Stage a snapshot write (optimistic on ``game.version``)."""
        self.saved[snapshot.game.id] = snapshot.copy_for_update()

    def delete(self, game_id: str) -> None:
        self.saved.pop(game_id, None)
        self.deleted.add(game_id)

    def add_events(self, game_id: str, events: list[GameEvent]) -> None:
        self.events.setdefault(game_id, []).extend(events)


class GameRepository(Protocol):
    """What the engine needs from persistence."""

    def get(self, game_id: str) -> Optional[GameSnapshot]:
        """Load a game with all its records, or None."""
        ...

    def find_by_code(self, code: str) -> Optional[GameSnapshot]:
        """Load an active (LOBBY or IN_PROGRESS) game by join code."""
        ...

    def code_exists(self, code: str) -> bool:
        """Check whether an active game already uses a code."""
        ...

    def list_events(self, game_id: str, after_sequence: int = 0) -> list[GameEvent]:
        """Events of a game in append order."""
        ...

    def unit_of_work(self):
        """Context manager yielding a ``UnitOfWork``; commits on clean exit."""
        ...


class InMemoryGameRepository:
    """Process-local repository with all-or-nothing commits.

    Snapshots are copied on the way in and out so callers can never mutate
    stored state without going through a unit of work.
    """

    def __init__(self):
        self._games: dict[str, GameSnapshot] = {}
        self._events: dict[str, list[GameEvent]] = {}
        self._lock = threading.RLock()

    def get(self, game_id: str) -> Optional[GameSnapshot]:
        with self._lock:
            snapshot = self._games.get(game_id)
            return snapshot.copy_for_update() if snapshot else None

    def find_by_code(self, code: str) -> Optional[GameSnapshot]:
        code = code.upper()
        with self._lock:
            for snapshot in self._games.values():
                if snapshot.game.code == code and snapshot.game.is_active:
                    return snapshot.copy_for_update()
        return None

    def code_exists(self, code: str) -> bool:
        return self.find_by_code(code) is not None

    def list_events(self, game_id: str, after_sequence: int = 0) -> list[GameEvent]:
        with self._lock:
            return [e for e in self._events.get(game_id, []) if e.sequence > after_sequence]

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        uow = UnitOfWork()
        yield uow
        with self._lock:
            self._check(uow)
            self._apply(uow)

    def _check(self, uow: UnitOfWork) -> None:
        for game_id, snapshot in uow.saved.items():
            stored = self._games.get(game_id)
            stored_version = stored.game.version if stored else 0
            if snapshot.game.version != stored_version:
                raise PersistenceError(
                    f"Stale write for game {game_id}: "
                    f"version {snapshot.game.version}, stored {stored_version}"
                )

    def _apply(self, uow: UnitOfWork) -> None:
        for game_id, snapshot in uow.saved.items():
            snapshot.game.version += 1
            self._games[game_id] = snapshot

        for game_id, events in uow.events.items():
            log = self._events.setdefault(game_id, [])
            sequence = log[-1].sequence if log else 0
            for event in events:
                sequence += 1
                stored = event.model_copy(update={"sequence": sequence})
                log.append(stored)
                uow.committed_events.append(stored)

        for game_id in uow.deleted:
            self._games.pop(game_id, None)
            self._events.pop(game_id, None)
            logger.debug("Deleted game %s", game_id)
