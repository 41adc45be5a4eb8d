"""Wall-clock phase timers.

One pending timer per game. The callback receives the phase and day the
timer was armed for, so a timer that fires after the phase already ended
(early completion, host skip) is recognised as stale by the receiver.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from nightfall.models import GamePhase

logger = logging.getLogger(__name__)

TimerCallback = Callable[[str, GamePhase, int], Awaitable[object]]


class PhaseTimerScheduler:
    """asyncio-task backed phase timers, keyed by game id."""

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        game_id: str,
        phase: GamePhase,
        day_number: int,
        seconds: float,
        callback: TimerCallback,
    ) -> None:
        """Arm the timer for a phase, replacing any pending one for the game."""
        self.cancel(game_id)
        if seconds <= 0:
            return
        self._tasks[game_id] = asyncio.get_running_loop().create_task(
            self._fire(game_id, phase, day_number, seconds, callback)
        )
        logger.debug("Timer armed for game %s: %s day %d in %ss", game_id, phase.value, day_number, seconds)

    def cancel(self, game_id: str) -> None:
        task = self._tasks.pop(game_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def pending(self, game_id: str) -> bool:
        task = self._tasks.get(game_id)
        return task is not None and not task.done()

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _fire(
        self,
        game_id: str,
        phase: GamePhase,
        day_number: int,
        seconds: float,
        callback: TimerCallback,
    ) -> None:
        await asyncio.sleep(seconds)
        if self._tasks.get(game_id) is asyncio.current_task():
            del self._tasks[game_id]
        try:
            await callback(game_id, phase, day_number)
        except Exception:
            logger.exception("Phase timer for game %s (%s day %d) failed", game_id, phase.value, day_number)
