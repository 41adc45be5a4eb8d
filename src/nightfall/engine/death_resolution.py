"""Death resolution - applies deaths and their side effects to a snapshot.

Shared by night resolution, vote resolution and hunter shots so every death
gets the same treatment:

- A PUBLIC event announcing the death (never the role)
- A DEAD-only event revealing the role to the other dead
- Lover cascade: the direct partner dies too, and the cascade stops there
- Hunter trigger: a dead hunter with a shot left gets a PRIVATE prompt
- Host transfer if the host died
"""

import logging
from typing import Any, Optional
from pydantic import BaseModel, Field

from nightfall.engine.lobby import ensure_alive_host
from nightfall.events import (
    DeathCause,
    EventType,
    GameEvent,
    dead_event,
    private_event,
    public_event,
)
from nightfall.models import GameSnapshot, Player, Role

logger = logging.getLogger(__name__)


class DeathReport(BaseModel):
    """Who died in one pass and the events describing it."""

    died: list[str] = Field(default_factory=list)
    hunters_triggered: list[str] = Field(default_factory=list)
    events: list[GameEvent] = Field(default_factory=list)


class DeathResolver:
    """Applies a batch of deaths to a working snapshot."""

    def apply(
        self,
        snapshot: GameSnapshot,
        player_ids: list[str],
        cause: DeathCause,
        event_type: EventType = EventType.PLAYER_KILLED,
        extra: Optional[dict[str, Any]] = None,
    ) -> DeathReport:
        """Kill each listed player, then their lovers.

        Args:
            snapshot: Working copy to mutate
            player_ids: Primary deaths, in announcement order
            cause: Cause recorded for the primary deaths
            event_type: PLAYER_KILLED or PLAYER_ELIMINATED
            extra: Additional payload for the primary death events

        Players already dead are skipped, so applying the same list twice
        never produces a second death.
        """
        report = DeathReport()
        primary: list[Player] = []

        for player_id in player_ids:
            player = snapshot.get_player(player_id)
            if player is None or not player.is_alive:
                continue
            self._kill(snapshot, player, cause, event_type, extra or {}, report)
            primary.append(player)

        # Partners of primary deaths only; a partner's death does not cascade further
        for player in primary:
            pair = snapshot.lover_pair_for(player.id)
            if pair is None:
                continue
            partner = snapshot.get_player(pair.partner_of(player.id))
            if partner is None or not partner.is_alive:
                continue
            self._kill(
                snapshot,
                partner,
                DeathCause.HEARTBREAK,
                EventType.PLAYER_KILLED,
                {"lover_id": player.id},
                report,
            )

        if report.died:
            report.events.extend(ensure_alive_host(snapshot))

        return report

    def _kill(
        self,
        snapshot: GameSnapshot,
        player: Player,
        cause: DeathCause,
        event_type: EventType,
        extra: dict[str, Any],
        report: DeathReport,
    ) -> None:
        game = snapshot.game
        player.is_alive = False
        report.died.append(player.id)
        logger.info("Player %d died in game %s (%s)", player.player_number, game.code, cause.value)

        report.events.append(
            public_event(
                game.id,
                event_type,
                game.day_number,
                game.phase,
                player_id=player.id,
                player_name=player.nickname,
                cause=cause.value,
                **extra,
            )
        )
        report.events.append(
            dead_event(
                game.id,
                EventType.ROLE_REVEALED,
                game.day_number,
                game.phase,
                player_id=player.id,
                role=player.role.value if player.role else None,
            )
        )

        if player.role == Role.HUNTER:
            role_state = snapshot.role_state_for(player.id)
            if role_state is not None and not role_state.has_shot and not role_state.hunter_triggered:
                role_state.consume("hunter_triggered")
                report.hunters_triggered.append(player.id)
                report.events.append(
                    private_event(
                        game.id,
                        EventType.HUNTER_TRIGGERED,
                        [player.user_id],
                        game.day_number,
                        game.phase,
                        player_id=player.id,
                        message="You can now shoot someone",
                    )
                )
