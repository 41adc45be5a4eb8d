"""GameService - the facade the transport layer calls.

Every mutating call follows the same path:

    lock(game) -> load snapshot -> work on a copy -> commit (one unit of work)
    -> publish committed events -> re-arm the phase timer

The per-game lock serializes submissions against one game; a phase-end fired
by the last vote and one fired by the timer can therefore never both resolve
the same phase. The loser sees the new phase and is a no-op (timer) or a
WRONG_PHASE rejection (submission).
"""

import asyncio
import logging
import random
from typing import Any, Optional, Union

from nightfall.config import merge_settings, validate_game_settings
from nightfall.engine.action_validator import ActionValidator, Rejected
from nightfall.engine.code_generator import generate_unique_game_code, normalize_code
from nightfall.engine import lobby
from nightfall.engine.night_action_resolver import NightActionResolver
from nightfall.engine.outcomes import ActionResult, PhaseEndResult, VoteResult
from nightfall.engine.phase_machine import PhaseStateMachine
from nightfall.engine.timers import PhaseTimerScheduler
from nightfall.engine.vote_resolver import VoteResolver
from nightfall.errors import (
    AuthorizationError,
    ConflictError,
    ErrorCode,
    GameError,
    NotFoundError,
    PersistenceError,
)
from nightfall.events import (
    EventBroadcaster,
    EventType,
    GameEvent,
    GameEventLog,
    GameView,
    events_for_viewer,
    project_game,
    public_event,
)
from nightfall.models import (
    ActionType,
    Game,
    GamePhase,
    GameSettings,
    GameSnapshot,
    GameStatus,
    Identity,
    Player,
)
from nightfall.storage import GameRepository

logger = logging.getLogger(__name__)


class GameService:
    """Lifecycle, submission and query operations for all games.

    Args:
        repository: Source of truth for game state and events
        broadcaster: Receives committed events for delivery (optional)
        timers: Phase timer scheduler (optional; without it phases only end
            early or through ``force_advance_phase``)
        rng: Random source for codes and role assignment
    """

    def __init__(
        self,
        repository: GameRepository,
        broadcaster: Optional[EventBroadcaster] = None,
        timers: Optional[PhaseTimerScheduler] = None,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository
        self.broadcaster = broadcaster
        self.timers = timers
        self._rng = rng
        self.validator = ActionValidator()
        self.machine = PhaseStateMachine(rng=rng)
        self._locks: dict[str, asyncio.Lock] = {}

    # =========================================================================
    # Lobby
    # =========================================================================

    async def create_game(
        self,
        host: Identity,
        settings: Union[GameSettings, dict[str, Any], None] = None,
    ) -> Game:
        """Create a lobby with ``host`` seated as player 1.

        Raises:
            GameValidationError: Settings out of range.
            ConflictError: No free join code could be generated.
        """
        if isinstance(settings, GameSettings):
            settings = validate_game_settings(settings)
        else:
            settings = merge_settings(settings)

        code = generate_unique_game_code(self.repository.code_exists, self._rng)
        snapshot = GameSnapshot(game=Game(code=code, settings=settings))
        player = lobby.seat_player(snapshot, host, is_host=True)

        game = snapshot.game
        events = [
            public_event(
                game.id,
                EventType.GAME_CREATED,
                game.day_number,
                game.phase,
                code=code,
                host_id=player.id,
            ),
            public_event(
                game.id,
                EventType.PLAYER_JOINED,
                game.day_number,
                game.phase,
                player_id=player.id,
                nickname=player.nickname,
                player_number=player.player_number,
            ),
        ]
        stored = self._commit(snapshot, events)
        logger.info("Game %s created by user %s", code, host.user_id)
        return stored.game

    async def join_game(self, code: str, identity: Identity) -> tuple[Game, Player]:
        """Join a lobby by code, or reconnect to a game already joined.

        Raises:
            NotFoundError: No active game has this code.
            ConflictError: Game started (for newcomers) or full.
        """
        found = self.repository.find_by_code(normalize_code(code))
        if found is None:
            raise NotFoundError("Game not found")

        async with self._lock(found.game.id):
            snapshot = self._load(found.game.id)
            player, events = lobby.join(snapshot, identity)
            stored = self._commit(snapshot, events)

        if any(e.type == EventType.PLAYER_JOINED for e in events):
            logger.info("Player %d joined game %s", player.player_number, stored.game.code)
        return stored.game, stored.get_player(player.id)

    async def leave_game(self, game_id: str, user_id: str) -> Optional[Game]:
        """Leave a lobby. Returns None when the last player left and the game was deleted."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            emptied, events = lobby.leave(snapshot, user_id)
            if emptied:
                self._commit(snapshot, events, delete=True)
                logger.info("Game %s deleted after last player left", snapshot.game.code)
                return None
            stored = self._commit(snapshot, events)

        logger.info("User %s left game %s", user_id, stored.game.code)
        return stored.game

    async def start_game(self, game_id: str, requester_user_id: str) -> Game:
        """Assign roles and enter the first night.

        Raises:
            AuthorizationError: Requester is not the host.
            ConflictError: Game already started.
            GameValidationError: Not enough players.
        """
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            events = self.machine.start(snapshot, requester_user_id)
            events.extend(self._integrity_events(snapshot))
            stored = self._commit(snapshot, events)
            self._arm_timer(stored)
        return stored.game

    async def cancel_game(self, game_id: str, requester_user_id: str) -> Game:
        """Cancel a lobby (host only)."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            requester = snapshot.find_player_by_user(requester_user_id)
            if requester is None or not requester.is_host:
                raise AuthorizationError("Only the host can cancel the game")
            if snapshot.game.status != GameStatus.LOBBY:
                raise ConflictError("Only a game in the lobby can be cancelled")

            events = self.machine.cancel(snapshot, "Cancelled by host")
            stored = self._commit(snapshot, events)

        logger.info("Game %s cancelled by host", stored.game.code)
        return stored.game

    async def mark_disconnected(self, game_id: str, user_id: str) -> None:
        """Record a dropped connection; the player keeps their seat."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            player = snapshot.find_player_by_user(user_id)
            if player is None:
                raise NotFoundError("Player not in game", code=ErrorCode.PLAYER_NOT_FOUND)
            events = lobby.disconnect(snapshot, player)
            if events:
                self._commit(snapshot, events)

    # =========================================================================
    # Submissions
    # =========================================================================

    async def cast_vote(self, game_id: str, user_id: str, target_id: Optional[str]) -> VoteResult:
        """Cast or replace a ballot; ``target_id`` None skips.

        Voting ends as soon as every alive player has a ballot in.
        """
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            validation = self.validator.validate_vote(snapshot, user_id, target_id)
            if isinstance(validation, Rejected):
                logger.debug("Vote in game %s rejected: %s", game_id, validation.reason.value)
                return VoteResult(accepted=False, reason=validation.reason, message=validation.message)

            voter = snapshot.get_player(validation.actor_id)
            vote, replaced, events = self.machine.record_vote(snapshot, voter, target_id)
            all_voted = VoteResolver.all_voted(snapshot)
            phase_end = self._end_phase_if_complete(snapshot, events)
            stored = self._commit(snapshot, events)
            if phase_end is not None:
                self._arm_timer(stored)

        logger.debug("Player %d voted in game %s", voter.player_number, stored.game.code)
        return VoteResult(
            accepted=True,
            vote=vote,
            replaced=replaced,
            all_voted=all_voted,
            phase_end=phase_end,
        )

    async def perform_night_action(
        self,
        game_id: str,
        user_id: str,
        action: ActionType,
        target_id: Optional[str],
        secondary_target_id: Optional[str] = None,
    ) -> ActionResult:
        """Record a night action; the night ends once every required role has acted."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            validation = self.validator.validate_night_action(
                snapshot, user_id, action, target_id, secondary_target_id
            )
            if isinstance(validation, Rejected):
                logger.debug("Night action in game %s rejected: %s", game_id, validation.reason.value)
                return ActionResult(accepted=False, reason=validation.reason, message=validation.message)

            actor = snapshot.get_player(validation.actor_id)
            game_action, events = self.machine.record_action(
                snapshot, actor, action, target_id, secondary_target_id
            )
            complete = NightActionResolver.actions_complete(snapshot)
            phase_end = self._end_phase_if_complete(snapshot, events)
            stored = self._commit(snapshot, events)
            if phase_end is not None:
                self._arm_timer(stored)

        logger.debug("Player %d acted in game %s", actor.player_number, stored.game.code)
        return ActionResult(
            accepted=True,
            action=game_action,
            result={"action": action.value},
            all_actions_complete=complete,
            phase_end=phase_end,
        )

    async def hunter_shoot(self, game_id: str, user_id: str, target_id: Optional[str]) -> ActionResult:
        """Take a dead hunter's final shot."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            validation = self.validator.validate_hunter_shot(snapshot, user_id, target_id)
            if isinstance(validation, Rejected):
                logger.debug("Hunter shot in game %s rejected: %s", game_id, validation.reason.value)
                return ActionResult(accepted=False, reason=validation.reason, message=validation.message)

            hunter = snapshot.get_player(validation.actor_id)
            alive_before = {p.id for p in snapshot.alive_players()}
            events, check = self.machine.hunter_shot(snapshot, hunter, target_id)
            died = [p.id for p in snapshot.players if p.id in alive_before and not p.is_alive]

            phase_end = None
            if not check.is_game_over:
                events.extend(self._integrity_events(snapshot))
                phase_end = self._end_phase_if_complete(snapshot, events)
            stored = self._commit(snapshot, events)
            if check.is_game_over or phase_end is not None:
                self._arm_timer(stored)

        logger.info("Hunter shot resolved in game %s", stored.game.code)
        return ActionResult(
            accepted=True,
            result={"died": died, "game_ended": check.is_game_over},
            phase_end=phase_end,
        )

    async def mark_ready(self, game_id: str, user_id: str) -> ActionResult:
        """Mark a player done discussing; discussion ends once all alive players are."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            validation = self.validator.validate_ready(snapshot, user_id)
            if isinstance(validation, Rejected):
                return ActionResult(accepted=False, reason=validation.reason, message=validation.message)

            player = snapshot.get_player(validation.actor_id)
            events = self.machine.mark_ready(snapshot, player)
            phase_end = self._end_phase_if_complete(snapshot, events)
            if events:
                stored = self._commit(snapshot, events)
                if phase_end is not None:
                    self._arm_timer(stored)

        return ActionResult(accepted=True, phase_end=phase_end)

    # =========================================================================
    # Phase control
    # =========================================================================

    async def skip_discussion(self, game_id: str, requester_user_id: str) -> PhaseEndResult:
        """Host ends discussion early."""
        async with self._lock(game_id):
            snapshot = self._load(game_id)
            requester = snapshot.find_player_by_user(requester_user_id)
            if requester is None or not requester.is_host:
                raise AuthorizationError("Only the host can skip the discussion")
            if snapshot.game.status != GameStatus.IN_PROGRESS or snapshot.game.phase != GamePhase.DISCUSSION:
                raise ConflictError("Game is not in the discussion phase", code=ErrorCode.INVALID_PHASE)

            result = self._end_phase(snapshot)
            stored = self._commit(snapshot, result.events)
            self._arm_timer(stored)
        return result

    async def force_advance_phase(
        self,
        game_id: str,
        expected_phase: Optional[GamePhase] = None,
        expected_day: Optional[int] = None,
    ) -> Optional[PhaseEndResult]:
        """End the current phase (timer expiry).

        With ``expected_phase``/``expected_day`` given, the call is a no-op
        when the game has already moved on, so a late timer never resolves
        a phase twice.

        Returns:
            The transition, or None when nothing was done
        """
        async with self._lock(game_id):
            snapshot = self.repository.get(game_id)
            if snapshot is None:
                logger.warning("Phase timer fired for unknown game %s", game_id)
                return None

            game = snapshot.game
            if game.status != GameStatus.IN_PROGRESS:
                logger.warning("Phase timer fired for game %s which is %s", game.code, game.status.value)
                return None
            if (expected_phase is not None and game.phase != expected_phase) or (
                expected_day is not None and game.day_number != expected_day
            ):
                logger.warning(
                    "Stale phase timer for game %s: expected %s day %s, now %s day %d",
                    game.code,
                    expected_phase.value if expected_phase else "-",
                    expected_day,
                    game.phase.value,
                    game.day_number,
                )
                return None

            result = self._end_phase(snapshot)
            stored = self._commit(snapshot, result.events)
            self._arm_timer(stored)
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_snapshot(self, game_id: str) -> GameSnapshot:
        """Unredacted snapshot; never send this to a client."""
        return self._load(game_id)

    def get_view(self, game_id: str, user_id: Optional[str]) -> GameView:
        return project_game(self._load(game_id), user_id)

    def get_events(self, game_id: str, user_id: Optional[str], after_sequence: int = 0) -> list[GameEvent]:
        """Events of a game the user may see, in append order."""
        snapshot = self._load(game_id)
        return events_for_viewer(self.repository.list_events(game_id, after_sequence), snapshot, user_id)

    def export_event_log(
        self,
        game_id: str,
        filepath: Optional[str] = None,
        include_hidden: bool = False,
    ) -> GameEventLog:
        """Build the game's event log, optionally writing it as YAML."""
        snapshot = self._load(game_id)
        log = GameEventLog(
            game_id=game_id,
            code=snapshot.game.code,
            events=self.repository.list_events(game_id),
        )
        if filepath is not None:
            log.save_to_file(filepath, include_hidden=include_hidden)
        return log

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock(self, game_id: str) -> asyncio.Lock:
        lock = self._locks.get(game_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[game_id] = lock
        return lock

    def _load(self, game_id: str) -> GameSnapshot:
        snapshot = self.repository.get(game_id)
        if snapshot is None:
            raise NotFoundError("Game not found")
        return snapshot

    def _end_phase(self, snapshot: GameSnapshot) -> PhaseEndResult:
        result = self.machine.end_phase(snapshot)
        if not result.game_ended:
            result.events.extend(self._integrity_events(snapshot))
        return result

    def _end_phase_if_complete(
        self,
        snapshot: GameSnapshot,
        events: list[GameEvent],
    ) -> Optional[PhaseEndResult]:
        """Run the phase end when the current phase's early-completion condition holds."""
        game = snapshot.game
        if game.status != GameStatus.IN_PROGRESS:
            return None

        if game.phase == GamePhase.NIGHT:
            complete = NightActionResolver.actions_complete(snapshot)
        elif game.phase == GamePhase.VOTING:
            complete = VoteResolver.all_voted(snapshot)
        elif game.phase == GamePhase.DISCUSSION:
            complete = self.machine.all_ready(snapshot)
        else:
            complete = False

        if not complete:
            return None
        result = self._end_phase(snapshot)
        events.extend(result.events)
        return result

    def _integrity_events(self, snapshot: GameSnapshot) -> list[GameEvent]:
        problem = self.machine.check_integrity(snapshot)
        if problem is None:
            return []
        logger.error("Game %s is corrupt (%s); cancelling", snapshot.game.code, problem)
        return self.machine.cancel(snapshot, "Game state became inconsistent")

    def _commit(
        self,
        snapshot: GameSnapshot,
        events: list[GameEvent],
        delete: bool = False,
    ) -> Optional[GameSnapshot]:
        """Write the snapshot and events in one unit of work, then publish.

        Returns:
            The stored snapshot (with its new version), or None after a delete

        Raises:
            PersistenceError: The commit failed; nothing was written.
        """
        game_id = snapshot.game.id
        try:
            with self.repository.unit_of_work() as uow:
                if delete:
                    uow.delete(game_id)
                else:
                    uow.save(snapshot)
                uow.add_events(game_id, events)
        except GameError:
            raise
        except Exception as e:
            logger.exception("Commit for game %s failed", snapshot.game.code)
            raise PersistenceError(f"Could not save game {game_id}: {e}") from e

        if delete:
            if self.timers is not None:
                self.timers.cancel(game_id)
            self._locks.pop(game_id, None)
            return None

        stored = self.repository.get(game_id)
        if stored.game.status in (GameStatus.COMPLETED, GameStatus.CANCELLED):
            # Finished games take no more commands
            self._locks.pop(game_id, None)
        if self.broadcaster is not None:
            self.broadcaster.publish(stored, uow.committed_events)
        return stored

    def _arm_timer(self, snapshot: GameSnapshot) -> None:
        if self.timers is None:
            return
        game = snapshot.game
        if game.status != GameStatus.IN_PROGRESS:
            self.timers.cancel(game.id)
            return
        self.timers.schedule(
            game.id,
            game.phase,
            game.day_number,
            game.settings.duration_for(game.phase),
            self._on_timer,
        )

    async def _on_timer(self, game_id: str, phase: GamePhase, day_number: int) -> None:
        await self.force_advance_phase(game_id, phase, day_number)
