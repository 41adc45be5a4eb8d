"""Game phase state machine.

The only component that changes authoritative game state. It works on a
working copy of a ``GameSnapshot``; the service commits the copy and the
returned events in one unit of work.

Phase cycle:
    WAITING -> NIGHT -> DISCUSSION -> VOTING -> EXECUTION -> NIGHT (day + 1) ...
    any resolution may end in GAME_OVER

EXECUTION announces the elimination. With ``execution_time == 0`` it is
entered and left in the same transition so clients still observe it.
"""

import logging
import random
from typing import Optional

from nightfall.engine.death_resolution import DeathResolver
from nightfall.engine.night_action_resolver import NightActionResolver, NightOutcome
from nightfall.engine.outcomes import PhaseEndResult
from nightfall.engine.role_assignment import apply_role_assignment, assign_roles, count_roles
from nightfall.engine.victory import VictoryCheck, VictoryEvaluator
from nightfall.engine.vote_resolver import VoteResolver
from nightfall.errors import (
    AuthorizationError,
    ConflictError,
    ErrorCode,
    GameValidationError,
)
from nightfall.events import (
    DeathCause,
    EventType,
    GameEvent,
    private_event,
    public_event,
    role_event,
)
from nightfall.models import (
    ActionType,
    GameAction,
    GamePhase,
    GameSnapshot,
    GameStatus,
    LoverPair,
    Player,
    Role,
    Vote,
    utcnow,
)

logger = logging.getLogger(__name__)


NEXT_PHASE: dict[GamePhase, GamePhase] = {
    GamePhase.NIGHT: GamePhase.DISCUSSION,
    GamePhase.DISCUSSION: GamePhase.VOTING,
    GamePhase.VOTING: GamePhase.EXECUTION,
    GamePhase.EXECUTION: GamePhase.NIGHT,
}


class PhaseStateMachine:
    """Drives a game from lobby to completion.

    Args:
        rng: Random source for role assignment (system randomness when None)
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        night_resolver: Optional[NightActionResolver] = None,
        vote_resolver: Optional[VoteResolver] = None,
        death_resolver: Optional[DeathResolver] = None,
        victory: Optional[VictoryEvaluator] = None,
    ):
        self._rng = rng
        self.night_resolver = night_resolver or NightActionResolver()
        self.vote_resolver = vote_resolver or VoteResolver()
        self.death_resolver = death_resolver or DeathResolver()
        self.victory = victory or VictoryEvaluator()

    # =========================================================================
    # Entry transition
    # =========================================================================

    def start(self, snapshot: GameSnapshot, requester_user_id: str) -> list[GameEvent]:
        """LOBBY -> IN_PROGRESS, NIGHT of day 1.

        Raises:
            AuthorizationError: Requester is not the host.
            ConflictError: Game is not in the lobby.
            GameValidationError: Fewer players than ``min_players``.
        """
        game = snapshot.game
        requester = snapshot.find_player_by_user(requester_user_id)
        if requester is None or not requester.is_host:
            raise AuthorizationError("Only the host can start the game")

        if game.status != GameStatus.LOBBY:
            raise ConflictError("Game has already started")

        if len(snapshot.players) < game.settings.min_players:
            raise GameValidationError(f"Need at least {game.settings.min_players} players to start")

        roles = assign_roles(len(snapshot.players), game.settings.roles, self._rng)
        apply_role_assignment(snapshot, roles)

        game.status = GameStatus.IN_PROGRESS
        game.phase = GamePhase.NIGHT
        game.day_number = 1
        game.started_at = utcnow()

        events = [
            public_event(
                game.id,
                EventType.GAME_STARTED,
                game.day_number,
                game.phase,
                player_count=len(snapshot.players),
                roles=count_roles(roles),
            )
        ]
        for player in snapshot.players:
            events.append(
                private_event(
                    game.id,
                    EventType.ROLE_ASSIGNED,
                    [player.user_id],
                    game.day_number,
                    game.phase,
                    player_id=player.id,
                    role=player.role.value,
                )
            )

        wolves = [p.id for p in snapshot.players if p.role == Role.WEREWOLF]
        events.append(
            role_event(
                game.id,
                EventType.ROLE_REVEALED,
                Role.WEREWOLF,
                game.day_number,
                game.phase,
                werewolves=wolves,
            )
        )
        events.append(self._phase_changed(snapshot))

        logger.info("Game %s started with %d players", game.code, len(snapshot.players))
        return events

    # =========================================================================
    # Submissions (already validated)
    # =========================================================================

    def record_vote(
        self,
        snapshot: GameSnapshot,
        voter: Player,
        target_id: Optional[str],
    ) -> tuple[Vote, bool, list[GameEvent]]:
        """Store a ballot, replacing the voter's earlier one for the same day/round.

        Returns:
            Tuple of (vote, replaced, events)
        """
        game = snapshot.game
        vote = snapshot.find_vote(voter.id, game.day_number)
        replaced = vote is not None
        if vote is not None:
            vote.target_id = target_id
            vote.created_at = utcnow()
        else:
            vote = Vote(
                game_id=game.id,
                voter_id=voter.id,
                target_id=target_id,
                phase=game.phase,
                day_number=game.day_number,
            )
            snapshot.votes.append(vote)

        event = public_event(
            game.id,
            EventType.PLAYER_VOTED,
            game.day_number,
            game.phase,
            voter_id=voter.id,
            target_id=target_id,
        )
        return vote, replaced, [event]

    def record_action(
        self,
        snapshot: GameSnapshot,
        actor: Player,
        action: ActionType,
        target_id: str,
        secondary_target_id: Optional[str] = None,
    ) -> tuple[GameAction, list[GameEvent]]:
        game = snapshot.game
        game_action = GameAction(
            game_id=game.id,
            player_id=actor.id,
            action=action,
            target_id=target_id,
            secondary_target_id=secondary_target_id,
            phase=game.phase,
            day_number=game.day_number,
        )
        snapshot.actions.append(game_action)

        events: list[GameEvent] = []
        if action == ActionType.WEREWOLF_KILL:
            # Pack sees each other's picks
            events.append(
                role_event(
                    game.id,
                    EventType.NIGHT_ACTION_RECORDED,
                    Role.WEREWOLF,
                    game.day_number,
                    game.phase,
                    actor_id=actor.id,
                    target_id=target_id,
                )
            )
        return game_action, events

    def mark_ready(self, snapshot: GameSnapshot, player: Player) -> list[GameEvent]:
        if player.id in snapshot.ready_player_ids:
            return []
        snapshot.ready_player_ids.add(player.id)
        game = snapshot.game
        return [public_event(game.id, EventType.PLAYER_READY, game.day_number, game.phase, player_id=player.id)]

    def all_ready(self, snapshot: GameSnapshot) -> bool:
        return all(p.id in snapshot.ready_player_ids for p in snapshot.alive_players())

    def hunter_shot(
        self,
        snapshot: GameSnapshot,
        hunter: Player,
        target_id: str,
    ) -> tuple[list[GameEvent], VictoryCheck]:
        """Apply a dead hunter's final shot and evaluate victory.

        If the shot ends the game the snapshot is completed here.
        """
        game = snapshot.game
        snapshot.role_state_for(hunter.id).consume("has_shot")

        events = [
            public_event(
                game.id,
                EventType.HUNTER_SHOT,
                game.day_number,
                game.phase,
                shooter_id=hunter.id,
                target_id=target_id,
            )
        ]
        report = self.death_resolver.apply(
            snapshot,
            [target_id],
            DeathCause.HUNTER_SHOT,
            EventType.PLAYER_KILLED,
            {"shooter_id": hunter.id},
        )
        events.extend(report.events)

        check = self.victory.evaluate(snapshot)
        if check.is_game_over:
            events.extend(self._finish(snapshot, check))
        return events, check

    # =========================================================================
    # Phase end
    # =========================================================================

    def end_phase(self, snapshot: GameSnapshot) -> PhaseEndResult:
        """Resolve the current phase and move to the next one.

        Raises:
            ConflictError: Game is not in progress.
            GameValidationError: Current phase has no successor.
        """
        game = snapshot.game
        if game.status != GameStatus.IN_PROGRESS:
            raise ConflictError("Game is not in progress", code=ErrorCode.INVALID_PHASE)

        previous = game.phase
        if previous not in NEXT_PHASE:
            raise GameValidationError(f"Invalid phase for processing: {previous.value}")

        events: list[GameEvent] = []
        if previous == GamePhase.NIGHT:
            events.extend(self.resolve_night(snapshot))
        elif previous == GamePhase.VOTING:
            events.extend(self.resolve_votes(snapshot))

        check = self.victory.evaluate(snapshot)
        if check.is_game_over:
            events.extend(self._finish(snapshot, check))
            return PhaseEndResult(
                previous_phase=previous,
                new_phase=game.phase,
                day_number=game.day_number,
                events=events,
                game_ended=True,
                winning_side=check.winning_side,
                winners=check.winners,
            )

        events.extend(self._advance(snapshot, NEXT_PHASE[previous]))
        logger.info(
            "Game %s: %s -> %s (day %d)", game.code, previous.value, game.phase.value, game.day_number
        )
        return PhaseEndResult(
            previous_phase=previous,
            new_phase=game.phase,
            day_number=game.day_number,
            events=events,
        )

    def resolve_night(self, snapshot: GameSnapshot) -> list[GameEvent]:
        """Apply the night's actions: links, reveals, deaths.

        Running it again on an already-resolved night only repeats the
        "no one died" announcement.
        """
        outcome = self.night_resolver.resolve(snapshot)
        self._mark_processed(snapshot, outcome)

        events = self._create_links(snapshot, outcome)
        events.extend(self._reveal_inspections(snapshot, outcome))

        report = self.death_resolver.apply(
            snapshot, outcome.deaths, DeathCause.NIGHT_KILL, EventType.PLAYER_KILLED
        )
        events.extend(report.events)
        if not report.died:
            game = snapshot.game
            events.append(public_event(game.id, EventType.NO_ONE_KILLED, game.day_number, game.phase))
        return events

    def resolve_votes(self, snapshot: GameSnapshot) -> list[GameEvent]:
        game = snapshot.game
        tally = self.vote_resolver.resolve(snapshot)

        if tally.eliminated is not None:
            report = self.death_resolver.apply(
                snapshot,
                [tally.eliminated],
                DeathCause.BANISHMENT,
                EventType.PLAYER_ELIMINATED,
                {"vote_count": tally.max_votes},
            )
            if report.died:
                return report.events

        return [
            public_event(
                game.id,
                EventType.NO_ELIMINATION,
                game.day_number,
                game.phase,
                votes=tally.votes,
                tied_players=tally.tied_players,
                skips=tally.skips,
            )
        ]

    # =========================================================================
    # Terminal transitions
    # =========================================================================

    def cancel(self, snapshot: GameSnapshot, reason: str) -> list[GameEvent]:
        """Terminate a game as CANCELLED."""
        game = snapshot.game
        game.status = GameStatus.CANCELLED
        if game.phase != GamePhase.WAITING:
            game.phase = GamePhase.GAME_OVER
        game.ended_at = utcnow()
        return [
            public_event(game.id, EventType.GAME_CANCELLED, game.day_number, game.phase, reason=reason)
        ]

    def check_integrity(self, snapshot: GameSnapshot) -> Optional[str]:
        """Describe what is corrupt about an in-progress game, or None."""
        if snapshot.game.status != GameStatus.IN_PROGRESS:
            return None

        hosts = snapshot.hosts()
        alive_hosts = [p for p in hosts if p.is_alive]
        if snapshot.alive_players() and (len(hosts) != 1 or len(alive_hosts) != 1):
            return f"expected exactly one alive host, found {len(alive_hosts)} of {len(hosts)}"

        for player in snapshot.players:
            if player.role is None:
                return f"player {player.player_number} has no role"
            if player.id not in snapshot.role_states:
                return f"player {player.player_number} has no role state"

        return None

    def _finish(self, snapshot: GameSnapshot, check: VictoryCheck) -> list[GameEvent]:
        game = snapshot.game
        game.status = GameStatus.COMPLETED
        game.phase = GamePhase.GAME_OVER
        game.winning_side = check.winning_side
        game.winners = list(check.winners)
        game.ended_at = utcnow()
        logger.info("Game %s ended: %s wins", game.code, check.winning_side.value)
        return [
            public_event(
                game.id,
                EventType.GAME_ENDED,
                game.day_number,
                game.phase,
                winning_side=check.winning_side.value,
                winners=list(check.winners),
            )
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _advance(self, snapshot: GameSnapshot, phase: GamePhase) -> list[GameEvent]:
        game = snapshot.game
        if phase == GamePhase.NIGHT:
            game.day_number += 1
        game.phase = phase
        snapshot.ready_player_ids.clear()

        events = [self._phase_changed(snapshot)]
        if phase == GamePhase.EXECUTION and game.settings.execution_time == 0:
            events.extend(self._advance(snapshot, NEXT_PHASE[GamePhase.EXECUTION]))
        return events

    def _phase_changed(self, snapshot: GameSnapshot) -> GameEvent:
        game = snapshot.game
        return public_event(
            game.id,
            EventType.PHASE_CHANGED,
            game.day_number,
            game.phase,
            new_phase=game.phase.value,
            day=game.day_number,
            duration=game.settings.duration_for(game.phase),
        )

    def _mark_processed(self, snapshot: GameSnapshot, outcome: NightOutcome) -> None:
        processed = set(outcome.processed_action_ids)
        for action in snapshot.actions:
            if action.id in processed:
                action.processed = True

        for player_id, flag in outcome.consumed_resources:
            role_state = snapshot.role_state_for(player_id)
            if role_state is None:
                continue
            if role_state.is_used(flag):
                logger.warning("Resource %s of player %s consumed twice", flag, player_id)
                continue
            role_state.consume(flag)

    def _create_links(self, snapshot: GameSnapshot, outcome: NightOutcome) -> list[GameEvent]:
        game = snapshot.game
        events: list[GameEvent] = []
        for first_id, second_id in outcome.links:
            first = snapshot.get_player(first_id)
            second = snapshot.get_player(second_id)
            if first is None or second is None:
                continue
            if snapshot.lover_pair_for(first_id) or snapshot.lover_pair_for(second_id):
                continue

            snapshot.lover_pairs.append(
                LoverPair(game_id=game.id, player1_id=first_id, player2_id=second_id)
            )
            for player_id in (first_id, second_id):
                role_state = snapshot.role_state_for(player_id)
                if role_state is not None and not role_state.is_lover:
                    role_state.consume("is_lover")

            for lover, partner in ((first, second), (second, first)):
                events.append(
                    private_event(
                        game.id,
                        EventType.LOVERS_LINKED,
                        [lover.user_id],
                        game.day_number,
                        game.phase,
                        partner_id=partner.id,
                        partner_name=partner.nickname,
                    )
                )
        return events

    def _reveal_inspections(self, snapshot: GameSnapshot, outcome: NightOutcome) -> list[GameEvent]:
        game = snapshot.game
        events: list[GameEvent] = []
        for seer_id, target_id in outcome.inspections:
            seer = snapshot.get_player(seer_id)
            target = snapshot.get_player(target_id)
            if seer is None or target is None or seer.role is None:
                continue
            events.append(
                role_event(
                    game.id,
                    EventType.ROLE_REVEALED,
                    seer.role,
                    game.day_number,
                    game.phase,
                    recipients=[seer.user_id],
                    player_id=target.id,
                    target_role=target.role.value if target.role else None,
                    is_werewolf=target.role == Role.WEREWOLF,
                )
            )
        return events
