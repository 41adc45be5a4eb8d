"""Tests for EventBroadcaster delivery order and filtering."""

import pytest

from nightfall.events import EventBroadcaster, EventType, private_event, public_event
from nightfall.models import GamePhase, Role

from game_factories import make_snapshot


ROLES = [Role.WEREWOLF, Role.SEER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]


def recorder(sink: list):
    async def callback(event) -> None:
        sink.append(event)

    return callback


class TestEventBroadcaster:
    @pytest.mark.asyncio
    async def test_delivers_in_order(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        received: list = []
        broadcaster.subscribe(snapshot.game.id, "user-3", recorder(received))

        events = [
            public_event(snapshot.game.id, EventType.PLAYER_VOTED, 1, GamePhase.VOTING, voter_id=str(n))
            for n in range(5)
        ]
        broadcaster.publish(snapshot, events[:2])
        broadcaster.publish(snapshot, events[2:])
        await broadcaster.drain(snapshot.game.id)

        assert [e.data["voter_id"] for e in received] == ["0", "1", "2", "3", "4"]
        await broadcaster.close()

    @pytest.mark.asyncio
    async def test_private_events_filtered(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        seer: list = []
        villager: list = []
        outsider: list = []
        broadcaster.subscribe(snapshot.game.id, "user-2", recorder(seer))
        broadcaster.subscribe(snapshot.game.id, "user-3", recorder(villager))
        broadcaster.subscribe(snapshot.game.id, None, recorder(outsider))

        broadcaster.publish(
            snapshot,
            [
                private_event(snapshot.game.id, EventType.ROLE_ASSIGNED, ["user-2"], 1, GamePhase.NIGHT, role="SEER"),
                public_event(snapshot.game.id, EventType.PHASE_CHANGED, 1, GamePhase.NIGHT),
            ],
        )
        await broadcaster.drain(snapshot.game.id)

        assert [e.type for e in seer] == [EventType.ROLE_ASSIGNED, EventType.PHASE_CHANGED]
        assert [e.type for e in villager] == [EventType.PHASE_CHANGED]
        assert [e.type for e in outsider] == [EventType.PHASE_CHANGED]
        await broadcaster.close()

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        received: list = []

        async def broken(event) -> None:
            raise ConnectionError("socket closed")

        broadcaster.subscribe(snapshot.game.id, "user-3", broken)
        broadcaster.subscribe(snapshot.game.id, "user-4", recorder(received))

        broadcaster.publish(snapshot, [public_event(snapshot.game.id, EventType.PHASE_CHANGED, 1, GamePhase.NIGHT)])
        await broadcaster.drain(snapshot.game.id)

        assert len(received) == 1
        await broadcaster.close()

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        received: list = []
        subscription = broadcaster.subscribe(snapshot.game.id, "user-3", recorder(received))
        broadcaster.unsubscribe(subscription)

        broadcaster.publish(snapshot, [public_event(snapshot.game.id, EventType.PHASE_CHANGED, 1, GamePhase.NIGHT)])
        await broadcaster.drain(snapshot.game.id)

        assert received == []
        await broadcaster.close()

    @pytest.mark.asyncio
    async def test_drain_unknown_game(self) -> None:
        await EventBroadcaster().drain("nope")

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_only_later_events(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        early: list = []
        late: list = []
        broadcaster.subscribe(snapshot.game.id, "user-3", recorder(early))

        broadcaster.publish(snapshot, [public_event(snapshot.game.id, EventType.PLAYER_JOINED, 0, GamePhase.WAITING)])
        broadcaster.subscribe(snapshot.game.id, "user-4", recorder(late))
        broadcaster.publish(snapshot, [public_event(snapshot.game.id, EventType.PHASE_CHANGED, 1, GamePhase.NIGHT)])
        await broadcaster.drain(snapshot.game.id)

        assert [e.type for e in early] == [EventType.PLAYER_JOINED, EventType.PHASE_CHANGED]
        assert [e.type for e in late] == [EventType.PHASE_CHANGED]
        await broadcaster.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_before_delivery(self) -> None:
        snapshot = make_snapshot(ROLES)
        broadcaster = EventBroadcaster()
        received: list = []
        subscription = broadcaster.subscribe(snapshot.game.id, "user-3", recorder(received))

        broadcaster.publish(snapshot, [public_event(snapshot.game.id, EventType.PHASE_CHANGED, 1, GamePhase.NIGHT)])
        broadcaster.unsubscribe(subscription)
        await broadcaster.drain(snapshot.game.id)

        assert received == []
        await broadcaster.close()
