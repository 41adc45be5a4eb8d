"""Ordered, per-viewer delivery of committed events.

Each game gets its own asyncio queue and delivery task, so events of one game
reach subscribers in append order while different games never wait on each
other.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from nightfall.events.event_visibility import can_view
from nightfall.events.game_events import GameEvent
from nightfall.models import GameSnapshot, Player

logger = logging.getLogger(__name__)

EventCallback = Callable[[GameEvent], Awaitable[None]]


class Subscription:
    """A connected user listening to one game."""

    def __init__(self, game_id: str, user_id: Optional[str], callback: EventCallback):
        self.game_id = game_id
        self.user_id = user_id
        self.callback = callback
        self.active = True


class EventBroadcaster:
    """Pushes committed events to subscribers filtered by visibility.

    Usage:
        broadcaster = EventBroadcaster()
        broadcaster.subscribe(game_id, user_id, send_to_socket)
        broadcaster.publish(snapshot, events)
        await broadcaster.drain(game_id)
    """

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def subscribe(
        self,
        game_id: str,
        user_id: Optional[str],
        callback: EventCallback,
    ) -> Subscription:
        subscription = Subscription(game_id, user_id, callback)
        self._subscriptions.setdefault(game_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.game_id, [])
        if subscription in subs:
            subs.remove(subscription)
        subscription.active = False

    def publish(self, snapshot: GameSnapshot, events: list[GameEvent]) -> None:
        """Queue events for delivery.

        Visibility is judged against the players as they are in ``snapshot``,
        i.e. right after the commit that produced the events. Recipients are
        the subscribers connected at publish time; a later subscriber starts
        from the next publish and reads earlier history from the event log.
        """
        if not events:
            return
        game_id = snapshot.game.id
        players = {p.user_id: p.model_copy() for p in snapshot.players}
        subscriptions = list(self._subscriptions.get(game_id, []))
        queue = self._queues.get(game_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[game_id] = queue
        for event in events:
            queue.put_nowait((players, subscriptions, event))
        self._ensure_worker(game_id)

    async def drain(self, game_id: str) -> None:
        """Wait until every queued event of a game has been delivered."""
        queue = self._queues.get(game_id)
        if queue is not None:
            await queue.join()

    async def close(self) -> None:
        for task in self._workers.values():
            task.cancel()
        for task in self._workers.values():
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers.clear()

    def _ensure_worker(self, game_id: str) -> None:
        task = self._workers.get(game_id)
        if task is None or task.done():
            self._workers[game_id] = asyncio.get_running_loop().create_task(
                self._deliver_loop(game_id)
            )

    async def _deliver_loop(self, game_id: str) -> None:
        queue = self._queues[game_id]
        while True:
            players, subscriptions, event = await queue.get()
            try:
                await self._deliver(players, subscriptions, event)
            finally:
                queue.task_done()

    async def _deliver(
        self,
        players: dict[str, Player],
        subscriptions: list[Subscription],
        event: GameEvent,
    ) -> None:
        for subscription in subscriptions:
            if not subscription.active:
                continue
            viewer = players.get(subscription.user_id) if subscription.user_id else None
            if not can_view(event, viewer):
                continue
            try:
                await subscription.callback(event)
            except Exception:
                # One broken connection must not stall the rest of the table
                logger.exception(
                    "Delivery of %s to user %s failed", event.type.value, subscription.user_id
                )
