#!/usr/bin/env python
"""Simulated nightfall game with scripted bots.

Usage:
    nightfall                          # 8 bots, random seed
    nightfall --seed 42 --players 10   # Reproducible game
    nightfall --log-file game.yaml     # Save the full event log
"""

import argparse
import asyncio
import logging
import random
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from nightfall.config import MAX_PLAYERS, MIN_PLAYERS
from nightfall.engine import GameService
from nightfall.events import EventBroadcaster, EventType, GameEvent
from nightfall.models import (
    ActionType,
    GamePhase,
    GameSnapshot,
    GameStatus,
    Identity,
    Player,
    Role,
    allowed_night_actions,
)
from nightfall.storage import InMemoryGameRepository

logger = logging.getLogger(__name__)

# Safety net for bots that never converge
MAX_DAYS = 30


def role_counts_for(player_count: int) -> dict[str, int]:
    """Role distribution used by the simulation; padding fills the rest with villagers."""
    roles = {
        Role.WEREWOLF.value: max(1, player_count // 4),
        Role.SEER.value: 1,
        Role.VILLAGER.value: 0,
    }
    if player_count >= 6:
        roles[Role.DOCTOR.value] = 1
    if player_count >= 7:
        roles[Role.HUNTER.value] = 1
    if player_count >= 8:
        roles[Role.WITCH.value] = 1
    if player_count >= 9:
        roles[Role.CUPID.value] = 1
    return roles


# ============================================================================
# Event display
# ============================================================================


def format_event(event: GameEvent, names: dict[str, str]) -> str:
    """Render a public event as one line of rich markup (empty to skip)."""
    data = event.data

    def name(key: str) -> str:
        return names.get(data.get(key) or "", "nobody")

    if event.type == EventType.PHASE_CHANGED:
        return f"\n[bold cyan]== {data['new_phase']} (day {data['day']}) ==[/bold cyan]"
    if event.type == EventType.GAME_STARTED:
        roles = ", ".join(f"{r}: {n}" for r, n in data["roles"].items())
        return f"[bold]Game started with {data['player_count']} players[/bold] ({roles})"
    if event.type == EventType.PLAYER_KILLED:
        return f"[red]{name('player_id')} died ({data['cause']})[/red]"
    if event.type == EventType.PLAYER_ELIMINATED:
        return f"[red]{name('player_id')} was banished with {data['vote_count']} votes[/red]"
    if event.type == EventType.NO_ONE_KILLED:
        return "[green]No one died tonight[/green]"
    if event.type == EventType.NO_ELIMINATION:
        return "[yellow]No one was banished[/yellow]"
    if event.type == EventType.PLAYER_VOTED:
        return f"[dim]{name('voter_id')} votes for {name('target_id')}[/dim]"
    if event.type == EventType.HUNTER_SHOT:
        return f"[magenta]{name('shooter_id')} fires a final shot at {name('target_id')}[/magenta]"
    if event.type == EventType.HOST_CHANGED:
        return f"[dim]{data['new_host_nickname']} is now the host[/dim]"
    if event.type == EventType.GAME_ENDED:
        return f"\n[bold]{data['winning_side']} wins[/bold]"
    if event.type == EventType.GAME_CANCELLED:
        return f"[bold red]Game cancelled: {data['reason']}[/bold red]"
    return ""


# ============================================================================
# Bots
# ============================================================================


class BotTable:
    """Drives every seat of one game through the service."""

    def __init__(self, service: GameService, game_id: str, rng: random.Random):
        self.service = service
        self.game_id = game_id
        self.rng = rng

    def _snapshot(self) -> GameSnapshot:
        return self.service.get_snapshot(self.game_id)

    def _pick(self, candidates: list[Player]) -> Optional[str]:
        return self.rng.choice(candidates).id if candidates else None

    async def play_night(self) -> None:
        snapshot = self._snapshot()
        day = snapshot.game.day_number
        for player in snapshot.alive_players():
            if snapshot.game.phase != GamePhase.NIGHT or snapshot.game.day_number != day:
                return
            await self._night_action(snapshot, player)
            snapshot = self._snapshot()

    async def _night_action(self, snapshot: GameSnapshot, player: Player) -> None:
        actions = allowed_night_actions(player.role)
        if not actions:
            return
        others = [p for p in snapshot.alive_players() if p.id != player.id]
        villagers = [p for p in others if p.role != Role.WEREWOLF]

        action = self.rng.choice(sorted(actions))
        secondary = None
        if action == ActionType.WEREWOLF_KILL:
            target = self._pick(villagers)
        elif action in (ActionType.DOCTOR_SAVE, ActionType.WITCH_SAVE):
            target = self._pick(snapshot.alive_players())
        elif action == ActionType.CUPID_LINK:
            if len(others) < 2:
                return
            first, second = self.rng.sample(others, 2)
            target, secondary = first.id, second.id
        elif action == ActionType.WITCH_KILL and self.rng.random() > 0.3:
            return
        else:
            target = self._pick(others)

        await self.service.perform_night_action(self.game_id, player.user_id, action, target, secondary)

    async def take_hunter_shots(self) -> None:
        snapshot = self._snapshot()
        for player in snapshot.dead_players():
            role_state = snapshot.role_state_for(player.id)
            if player.role != Role.HUNTER or role_state is None or not role_state.shot_pending:
                continue
            target = self._pick(snapshot.alive_players())
            await self.service.hunter_shoot(self.game_id, player.user_id, target)
            snapshot = self._snapshot()
            if snapshot.game.status != GameStatus.IN_PROGRESS:
                return

    async def play_discussion(self) -> None:
        for player in self._snapshot().alive_players():
            await self.service.mark_ready(self.game_id, player.user_id)

    async def play_voting(self) -> None:
        snapshot = self._snapshot()
        day = snapshot.game.day_number
        for player in snapshot.alive_players():
            current = self._snapshot()
            if current.game.phase != GamePhase.VOTING or current.game.day_number != day:
                return
            others = [p for p in current.alive_players() if p.id != player.id]
            if player.role == Role.WEREWOLF:
                others = [p for p in others if p.role != Role.WEREWOLF] or others
            target = self._pick(others) if self.rng.random() > 0.1 else None
            await self.service.cast_vote(self.game_id, player.user_id, target)

    async def advance_if_stuck(self, phase: GamePhase, day: int) -> None:
        snapshot = self._snapshot()
        if snapshot.game.phase == phase and snapshot.game.day_number == day:
            await self.service.force_advance_phase(self.game_id, phase, day)

    async def run(self) -> GameSnapshot:
        while True:
            await self.take_hunter_shots()
            snapshot = self._snapshot()
            game = snapshot.game
            if game.status != GameStatus.IN_PROGRESS:
                return snapshot
            if game.day_number > MAX_DAYS:
                logger.warning("Game %s did not finish within %d days", game.code, MAX_DAYS)
                return snapshot

            phase, day = game.phase, game.day_number
            if phase == GamePhase.NIGHT:
                await self.play_night()
            elif phase == GamePhase.DISCUSSION:
                await self.play_discussion()
            elif phase == GamePhase.VOTING:
                await self.play_voting()
            await self.advance_if_stuck(phase, day)


async def run_simulation(seed: int, player_count: int, log_file: Optional[str]) -> GameSnapshot:
    """Play one full bot game and print its public events."""
    console = Console()
    rng = random.Random(seed)
    broadcaster = EventBroadcaster()
    service = GameService(InMemoryGameRepository(), broadcaster=broadcaster, rng=rng)

    identities = [Identity(user_id=f"bot-{i}", nickname=f"Bot {i}") for i in range(1, player_count + 1)]
    settings = {
        "min_players": min(5, player_count),
        "max_players": max(player_count, 5),
        "execution_time": 0,
        "roles": role_counts_for(player_count),
    }

    console.print(f"\n[bold]Running simulation (seed {seed}, {player_count} players)...[/bold]\n")
    game = await service.create_game(identities[0], settings)

    names: dict[str, str] = {}

    async def show(event: GameEvent) -> None:
        line = format_event(event, names)
        if line:
            console.print(line)

    broadcaster.subscribe(game.id, None, show)

    for identity in identities[1:]:
        await service.join_game(game.code, identity)
    names.update({p.id: p.nickname for p in service.get_snapshot(game.id).players})

    await service.start_game(game.id, identities[0].user_id)
    final = await BotTable(service, game.id, rng).run()

    await broadcaster.drain(game.id)
    await broadcaster.close()

    roles = "\n".join(f"{p.nickname}: {p.role.value}" for p in final.players)
    winner = final.game.winning_side.value if final.game.winning_side else final.game.status.value
    console.print(Panel(f"[bold]Game Over[/bold]\n\nWinner: {winner}\n\n{roles}", title="Result"))

    if log_file:
        service.export_event_log(game.id, log_file, include_hidden=True)
        console.print(f"Full event log saved to {log_file}")

    return final


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="nightfall - simulated werewolf game",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible games")
    parser.add_argument("--players", type=int, default=8, help="Number of bots (default: 8)")
    parser.add_argument(
        "--log-file",
        type=str,
        default="",
        help="File to save the full YAML event log (default: don't save)",
    )
    parser.add_argument("--verbose", action="store_true", help="Show engine log messages")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_path=False)],
    )

    if not MIN_PLAYERS <= args.players <= MAX_PLAYERS:
        print(f"Error: --players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
        return 1

    if args.seed is None:
        args.seed = random.randint(1, 1000000)

    asyncio.run(run_simulation(args.seed, args.players, args.log_file or None))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
