"""Tests for DeathResolver: announcements, lover cascade, hunter trigger, host transfer."""

from nightfall.engine.death_resolution import DeathResolver
from nightfall.events import DeathCause, EventType, EventVisibility
from nightfall.models import Role

from game_factories import link, make_snapshot, seat


ROLES = [Role.VILLAGER, Role.WEREWOLF, Role.SEER, Role.HUNTER, Role.VILLAGER, Role.VILLAGER]


class TestDeaths:
    def test_death_is_announced_without_role(self) -> None:
        snapshot = make_snapshot(ROLES)
        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)

        assert report.died == [seat(snapshot, 3).id]
        assert not seat(snapshot, 3).is_alive

        public = [e for e in report.events if e.visibility == EventVisibility.PUBLIC]
        assert [e.type for e in public] == [EventType.PLAYER_KILLED]
        assert public[0].data["cause"] == "NIGHT_KILL"
        assert "role" not in public[0].data

    def test_role_revealed_to_dead_only(self) -> None:
        snapshot = make_snapshot(ROLES)
        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)

        reveals = [e for e in report.events if e.type == EventType.ROLE_REVEALED]
        assert len(reveals) == 1
        assert reveals[0].visibility == EventVisibility.DEAD
        assert reveals[0].data["role"] == "SEER"

    def test_already_dead_is_skipped(self) -> None:
        snapshot = make_snapshot(ROLES, dead=(3,))
        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)
        assert report.died == []
        assert report.events == []

    def test_applying_twice_kills_once(self) -> None:
        snapshot = make_snapshot(ROLES)
        resolver = DeathResolver()
        resolver.apply(snapshot, [seat(snapshot, 5).id], DeathCause.NIGHT_KILL)
        second = resolver.apply(snapshot, [seat(snapshot, 5).id], DeathCause.NIGHT_KILL)
        assert second.died == []

    def test_elimination_payload(self) -> None:
        snapshot = make_snapshot(ROLES)
        report = DeathResolver().apply(
            snapshot,
            [seat(snapshot, 2).id],
            DeathCause.BANISHMENT,
            EventType.PLAYER_ELIMINATED,
            {"vote_count": 3},
        )
        assert report.events[0].type == EventType.PLAYER_ELIMINATED
        assert report.events[0].data["vote_count"] == 3


class TestLoverCascade:
    def test_partner_dies_of_heartbreak(self) -> None:
        snapshot = make_snapshot(ROLES)
        link(snapshot, 3, 5)

        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)

        assert report.died == [seat(snapshot, 3).id, seat(snapshot, 5).id]
        heartbreak = [e for e in report.events if e.data.get("cause") == "HEARTBREAK"]
        assert len(heartbreak) == 1
        assert heartbreak[0].data["lover_id"] == seat(snapshot, 3).id

    def test_cascade_stops_at_direct_partner(self) -> None:
        snapshot = make_snapshot(ROLES)
        link(snapshot, 3, 5)
        # Another pair on the board is untouched
        link(snapshot, 6, 1)

        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)

        assert set(report.died) == {seat(snapshot, 3).id, seat(snapshot, 5).id}
        assert seat(snapshot, 6).is_alive
        assert seat(snapshot, 1).is_alive

    def test_both_lovers_killed_directly(self) -> None:
        snapshot = make_snapshot(ROLES)
        link(snapshot, 3, 5)

        report = DeathResolver().apply(
            snapshot, [seat(snapshot, 3).id, seat(snapshot, 5).id], DeathCause.NIGHT_KILL
        )

        assert len(report.died) == 2
        assert all(e.data.get("cause") != "HEARTBREAK" for e in report.events)


class TestHunterTrigger:
    def test_dead_hunter_gets_private_prompt(self) -> None:
        snapshot = make_snapshot(ROLES)
        hunter = seat(snapshot, 4)

        report = DeathResolver().apply(snapshot, [hunter.id], DeathCause.BANISHMENT)

        assert report.hunters_triggered == [hunter.id]
        assert snapshot.role_state_for(hunter.id).shot_pending
        prompts = [e for e in report.events if e.type == EventType.HUNTER_TRIGGERED]
        assert len(prompts) == 1
        assert prompts[0].visibility == EventVisibility.PRIVATE
        assert prompts[0].visible_to == (hunter.user_id,)

    def test_hunter_who_already_shot_not_triggered(self) -> None:
        snapshot = make_snapshot(ROLES)
        hunter = seat(snapshot, 4)
        snapshot.role_state_for(hunter.id).has_shot = True

        report = DeathResolver().apply(snapshot, [hunter.id], DeathCause.NIGHT_KILL)

        assert report.hunters_triggered == []

    def test_hunter_lover_triggered_by_heartbreak(self) -> None:
        snapshot = make_snapshot(ROLES)
        link(snapshot, 3, 4)

        report = DeathResolver().apply(snapshot, [seat(snapshot, 3).id], DeathCause.NIGHT_KILL)

        assert report.hunters_triggered == [seat(snapshot, 4).id]


class TestHostTransferOnDeath:
    def test_dead_host_replaced(self) -> None:
        snapshot = make_snapshot(ROLES)
        report = DeathResolver().apply(snapshot, [seat(snapshot, 1).id], DeathCause.BANISHMENT)

        assert [p.player_number for p in snapshot.hosts()] == [2]
        assert report.events[-1].type == EventType.HOST_CHANGED
