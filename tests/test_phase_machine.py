"""Tests for PhaseStateMachine transitions."""

import random
from collections import Counter

import pytest

from nightfall.engine.phase_machine import PhaseStateMachine
from nightfall.errors import AuthorizationError, ConflictError, GameValidationError
from nightfall.events import EventType, EventVisibility
from nightfall.models import (
    ActionType,
    GamePhase,
    GameSettings,
    GameStatus,
    Role,
    Side,
)

from game_factories import add_action, add_vote, link, make_lobby, make_snapshot, seat


def event_types(events) -> list[EventType]:
    return [e.type for e in events]


# ============================================================================
# Start
# ============================================================================


class TestStart:
    def test_five_player_start(self) -> None:
        snapshot = make_lobby(5)
        machine = PhaseStateMachine(rng=random.Random(5))

        events = machine.start(snapshot, "user-1")

        game = snapshot.game
        assert game.status == GameStatus.IN_PROGRESS
        assert game.phase == GamePhase.NIGHT
        assert game.day_number == 1
        assert game.started_at is not None
        assert Counter(p.role for p in snapshot.players) == {
            Role.WEREWOLF: 1,
            Role.SEER: 1,
            Role.VILLAGER: 3,
        }
        assert len(snapshot.role_states) == 5
        assert event_types(events)[0] == EventType.GAME_STARTED
        assert event_types(events)[-1] == EventType.PHASE_CHANGED

    def test_game_started_event_has_counts_only(self) -> None:
        snapshot = make_lobby(5)
        events = PhaseStateMachine(rng=random.Random(1)).start(snapshot, "user-1")

        started = events[0]
        assert started.visibility == EventVisibility.PUBLIC
        assert started.data == {"player_count": 5, "roles": {"WEREWOLF": 1, "SEER": 1, "VILLAGER": 3}}

    def test_each_player_learns_only_own_role(self) -> None:
        snapshot = make_lobby(5)
        events = PhaseStateMachine(rng=random.Random(2)).start(snapshot, "user-1")

        assigned = [e for e in events if e.type == EventType.ROLE_ASSIGNED]
        assert len(assigned) == 5
        for event in assigned:
            assert event.visibility == EventVisibility.PRIVATE
            player = snapshot.get_player(event.data["player_id"])
            assert event.visible_to == (player.user_id,)
            assert event.data["role"] == player.role.value

    def test_werewolves_learn_each_other(self) -> None:
        snapshot = make_lobby(8, GameSettings(roles={Role.WEREWOLF: 2, Role.SEER: 1}))
        events = PhaseStateMachine(rng=random.Random(3)).start(snapshot, "user-1")

        pack = [e for e in events if e.visibility == EventVisibility.ROLE]
        assert len(pack) == 1
        assert pack[0].role == Role.WEREWOLF
        assert set(pack[0].data["werewolves"]) == {
            p.id for p in snapshot.players if p.role == Role.WEREWOLF
        }

    def test_non_host_cannot_start(self) -> None:
        with pytest.raises(AuthorizationError):
            PhaseStateMachine().start(make_lobby(5), "user-2")

    def test_outsider_cannot_start(self) -> None:
        with pytest.raises(AuthorizationError):
            PhaseStateMachine().start(make_lobby(5), "stranger")

    def test_not_enough_players(self) -> None:
        snapshot = make_lobby(4)
        with pytest.raises(GameValidationError):
            PhaseStateMachine().start(snapshot, "user-1")
        assert snapshot.game.status == GameStatus.LOBBY
        assert all(p.role is None for p in snapshot.players)

    def test_cannot_start_twice(self) -> None:
        snapshot = make_lobby(5)
        machine = PhaseStateMachine(rng=random.Random(4))
        machine.start(snapshot, "user-1")
        with pytest.raises(ConflictError):
            machine.start(snapshot, "user-1")


# ============================================================================
# Night
# ============================================================================


NIGHT_ROLES = [Role.WEREWOLF, Role.SEER, Role.DOCTOR, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]


class TestNightEnd:
    def test_werewolf_and_doctor_same_target(self) -> None:
        snapshot = make_snapshot(NIGHT_ROLES)
        add_action(snapshot, 1, ActionType.WEREWOLF_KILL, 4)
        add_action(snapshot, 3, ActionType.DOCTOR_SAVE, 4)

        result = PhaseStateMachine().end_phase(snapshot)

        assert all(p.is_alive for p in snapshot.players)
        assert EventType.NO_ONE_KILLED in event_types(result.events)
        assert EventType.PLAYER_KILLED not in event_types(result.events)
        assert result.new_phase == GamePhase.DISCUSSION
        assert snapshot.game.day_number == 1

    def test_kill_applied_and_actions_processed(self) -> None:
        snapshot = make_snapshot(NIGHT_ROLES)
        kill = add_action(snapshot, 1, ActionType.WEREWOLF_KILL, 4)

        result = PhaseStateMachine().end_phase(snapshot)

        assert not seat(snapshot, 4).is_alive
        assert kill.processed
        assert EventType.PLAYER_KILLED in event_types(result.events)

    def test_second_resolution_is_a_no_op(self) -> None:
        snapshot = make_snapshot(NIGHT_ROLES)
        add_action(snapshot, 1, ActionType.WEREWOLF_KILL, 4)
        machine = PhaseStateMachine()

        machine.resolve_night(snapshot)
        alive_after_first = [p.is_alive for p in snapshot.players]
        second = machine.resolve_night(snapshot)

        assert [p.is_alive for p in snapshot.players] == alive_after_first
        assert event_types(second) == [EventType.NO_ONE_KILLED]

    def test_seer_learns_role_privately(self) -> None:
        snapshot = make_snapshot(NIGHT_ROLES)
        add_action(snapshot, 2, ActionType.SEER_CHECK, 1)

        events = PhaseStateMachine().resolve_night(snapshot)

        reveals = [e for e in events if e.type == EventType.ROLE_REVEALED]
        assert len(reveals) == 1
        assert reveals[0].visibility == EventVisibility.ROLE
        assert reveals[0].role == Role.SEER
        assert reveals[0].visible_to == ("user-2",)
        assert reveals[0].data["is_werewolf"] is True
        assert reveals[0].data["target_role"] == "WEREWOLF"

    def test_witch_potion_consumed(self) -> None:
        snapshot = make_snapshot([Role.WEREWOLF, Role.WITCH, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER])
        add_action(snapshot, 2, ActionType.WITCH_KILL, 1)

        PhaseStateMachine().end_phase(snapshot)

        assert snapshot.role_state_for(seat(snapshot, 2).id).poison_potion_used

    def test_cupid_link_created_before_deaths(self) -> None:
        roles = [Role.WEREWOLF, Role.CUPID, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]
        snapshot = make_snapshot(roles)
        add_action(snapshot, 2, ActionType.CUPID_LINK, 3, 4)
        add_action(snapshot, 1, ActionType.WEREWOLF_KILL, 3)

        result = PhaseStateMachine().end_phase(snapshot)

        assert len(snapshot.lover_pairs) == 1
        assert snapshot.role_state_for(seat(snapshot, 3).id).is_lover
        assert snapshot.role_state_for(seat(snapshot, 2).id).link_used
        assert not seat(snapshot, 3).is_alive
        assert not seat(snapshot, 4).is_alive

        linked = [e for e in result.events if e.type == EventType.LOVERS_LINKED]
        assert {e.visible_to for e in linked} == {("user-3",), ("user-4",)}


# ============================================================================
# Voting and execution
# ============================================================================


VOTE_ROLES = [Role.WEREWOLF, Role.SEER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]


class TestVotingEnd:
    def test_replaced_vote_counts_once(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, phase=GamePhase.VOTING)
        machine = PhaseStateMachine()
        voter = seat(snapshot, 2)

        first, replaced_first, _ = machine.record_vote(snapshot, voter, seat(snapshot, 1).id)
        second, replaced_second, _ = machine.record_vote(snapshot, voter, seat(snapshot, 3).id)

        assert not replaced_first
        assert replaced_second
        assert first.id == second.id
        assert len(snapshot.votes) == 1
        assert snapshot.votes[0].target_id == seat(snapshot, 3).id

    def test_elimination_enters_execution(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, phase=GamePhase.VOTING)
        for voter in (1, 2, 4):
            add_vote(snapshot, voter, 3)

        result = PhaseStateMachine().end_phase(snapshot)

        assert not seat(snapshot, 3).is_alive
        eliminated = [e for e in result.events if e.type == EventType.PLAYER_ELIMINATED]
        assert eliminated[0].data["vote_count"] == 3
        assert result.new_phase == GamePhase.EXECUTION
        assert snapshot.game.day_number == 1

    def test_execution_to_night_increments_day(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, phase=GamePhase.EXECUTION)
        result = PhaseStateMachine().end_phase(snapshot)
        assert result.new_phase == GamePhase.NIGHT
        assert result.day_number == 2

    def test_tie_with_zero_execution_time(self) -> None:
        settings = GameSettings(execution_time=0)
        snapshot = make_snapshot(VOTE_ROLES[:4] + [Role.VILLAGER], phase=GamePhase.VOTING, settings=settings, dead=(5,))
        add_vote(snapshot, 1, 2)
        add_vote(snapshot, 2, 1)
        add_vote(snapshot, 3, 1)
        add_vote(snapshot, 4, 2)

        result = PhaseStateMachine().end_phase(snapshot)

        assert EventType.NO_ELIMINATION in event_types(result.events)
        phases = [e.data["new_phase"] for e in result.events if e.type == EventType.PHASE_CHANGED]
        assert phases == ["EXECUTION", "NIGHT"]
        assert snapshot.game.phase == GamePhase.NIGHT
        assert snapshot.game.day_number == 2
        assert all(p.is_alive for p in snapshot.players[:4])

    def test_ready_marks_cleared_on_phase_change(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, phase=GamePhase.DISCUSSION)
        machine = PhaseStateMachine()
        machine.mark_ready(snapshot, seat(snapshot, 2))

        result = machine.end_phase(snapshot)

        assert result.new_phase == GamePhase.VOTING
        assert snapshot.ready_player_ids == set()


# ============================================================================
# Game end
# ============================================================================


class TestGameEnd:
    def test_banishing_last_werewolf_ends_game(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, phase=GamePhase.VOTING)
        for voter in (2, 3, 4):
            add_vote(snapshot, voter, 1)

        result = PhaseStateMachine().end_phase(snapshot)

        game = snapshot.game
        assert result.game_ended
        assert game.status == GameStatus.COMPLETED
        assert game.phase == GamePhase.GAME_OVER
        assert game.winning_side == Side.VILLAGE
        assert game.ended_at is not None
        assert event_types(result.events)[-1] == EventType.GAME_ENDED

    def test_night_kill_reaching_parity(self) -> None:
        snapshot = make_snapshot([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER])
        add_action(snapshot, 1, ActionType.WEREWOLF_KILL, 2)

        result = PhaseStateMachine().end_phase(snapshot)

        assert result.winning_side == Side.WEREWOLF
        assert result.winners == ["user-1"]

    def test_completed_game_cannot_advance(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, status=GameStatus.COMPLETED, phase=GamePhase.GAME_OVER)
        with pytest.raises(ConflictError):
            PhaseStateMachine().end_phase(snapshot)

    def test_lovers_scenario(self) -> None:
        snapshot = make_snapshot(
            [Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER, Role.CUPID],
            phase=GamePhase.VOTING,
            dead=(4,),
        )
        link(snapshot, 1, 2)
        for voter in (1, 2, 3):
            add_vote(snapshot, voter, 3)

        result = PhaseStateMachine().end_phase(snapshot)

        assert result.winning_side == Side.LOVERS
        assert set(result.winners) == {"user-1", "user-2"}


# ============================================================================
# Hunter shot, integrity, cancel
# ============================================================================


class TestHunterShot:
    def test_shot_kills_and_consumes(self) -> None:
        roles = [Role.VILLAGER, Role.WEREWOLF, Role.WEREWOLF, Role.HUNTER, Role.VILLAGER, Role.VILLAGER, Role.SEER]
        snapshot = make_snapshot(roles, phase=GamePhase.DISCUSSION, dead=(4,))
        hunter = seat(snapshot, 4)
        snapshot.role_state_for(hunter.id).hunter_triggered = True

        events, check = PhaseStateMachine().hunter_shot(snapshot, hunter, seat(snapshot, 2).id)

        assert snapshot.role_state_for(hunter.id).has_shot
        assert not seat(snapshot, 2).is_alive
        assert event_types(events)[0] == EventType.HUNTER_SHOT
        killed = [e for e in events if e.type == EventType.PLAYER_KILLED]
        assert killed[0].data["cause"] == "HUNTER_SHOT"
        assert not check.is_game_over

    def test_shot_can_end_game(self) -> None:
        snapshot = make_snapshot(
            [Role.VILLAGER, Role.WEREWOLF, Role.HUNTER, Role.VILLAGER], phase=GamePhase.VOTING, dead=(3,)
        )
        hunter = seat(snapshot, 3)
        snapshot.role_state_for(hunter.id).hunter_triggered = True

        events, check = PhaseStateMachine().hunter_shot(snapshot, hunter, seat(snapshot, 2).id)

        assert check.winning_side == Side.VILLAGE
        assert snapshot.game.status == GameStatus.COMPLETED
        assert event_types(events)[-1] == EventType.GAME_ENDED


class TestIntegrity:
    def test_healthy_game(self) -> None:
        assert PhaseStateMachine().check_integrity(make_snapshot(VOTE_ROLES)) is None

    def test_missing_host_detected(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES)
        seat(snapshot, 1).is_host = False
        assert "host" in PhaseStateMachine().check_integrity(snapshot)

    def test_dead_host_detected(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES, dead=(1,))
        assert PhaseStateMachine().check_integrity(snapshot) is not None

    def test_lobby_not_checked(self) -> None:
        snapshot = make_lobby(3)
        seat(snapshot, 1).is_host = False
        assert PhaseStateMachine().check_integrity(snapshot) is None

    def test_cancel(self) -> None:
        snapshot = make_snapshot(VOTE_ROLES)
        events = PhaseStateMachine().cancel(snapshot, "broken")

        assert snapshot.game.status == GameStatus.CANCELLED
        assert snapshot.game.phase == GamePhase.GAME_OVER
        assert snapshot.game.winning_side is None
        assert events[0].type == EventType.GAME_CANCELLED
        assert events[0].data["reason"] == "broken"
