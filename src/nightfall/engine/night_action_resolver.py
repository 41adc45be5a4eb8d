"""Night action resolution - computes dawn deaths from the night's actions."""

from collections import Counter
from pydantic import BaseModel, Field

from nightfall.models import (
    ActionEffect,
    GamePhase,
    GameSnapshot,
    get_action_spec,
    get_role_spec,
)


class NightOutcome(BaseModel):
    """Proposed changes from one night, not yet applied.

    Attributes:
        processed_action_ids: Actions consumed by this resolution
        consumed_resources: (player_id, RoleState flag) pairs to flip
        links: (player1_id, player2_id) lover pairs to create
        inspections: (seer_id, target_id) role reveals owed to seers
        kills: target -> number of kill effects
        saves: target -> number of save effects
        deaths: players dying at dawn, in first-targeted order
    """

    processed_action_ids: list[str] = Field(default_factory=list)
    consumed_resources: list[tuple[str, str]] = Field(default_factory=list)
    links: list[tuple[str, str]] = Field(default_factory=list)
    inspections: list[tuple[str, str]] = Field(default_factory=list)
    kills: dict[str, int] = Field(default_factory=dict)
    saves: dict[str, int] = Field(default_factory=dict)
    deaths: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.processed_action_ids


class NightActionResolver:
    """Computes deaths from the unprocessed actions of the current night.

    Resolution order:
    1. Lover links (so a linked player dying tonight takes their partner along)
    2. Kill effects (werewolf kills, poison) counted per target
    3. Save effects (doctor, heal potion) counted per target
    4. A target dies when kills exceed saves; each save cancels one kill
       regardless of who cast it
    5. Inspections are collected for reveal events

    Actions whose actor has died since submitting are marked processed but
    have no effect.

    Resolving with nothing unprocessed yields an empty outcome, so a second
    call on an already-resolved night changes nothing.
    """

    def resolve(self, snapshot: GameSnapshot) -> NightOutcome:
        outcome = NightOutcome()
        actions = snapshot.unprocessed_actions(snapshot.game.day_number, GamePhase.NIGHT)

        kills: Counter[str] = Counter()
        saves: Counter[str] = Counter()
        kill_order: list[str] = []

        for action in actions:
            spec = get_action_spec(action.action)
            outcome.processed_action_ids.append(action.id)
            actor = snapshot.get_player(action.player_id)
            # Actor died after submitting (hunter shot); the action is spent
            if actor is None or not actor.is_alive:
                continue
            if spec.resource is not None:
                outcome.consumed_resources.append((action.player_id, spec.resource))

            if spec.effect == ActionEffect.LINK:
                outcome.links.append((action.target_id, action.secondary_target_id))
            elif spec.effect == ActionEffect.KILL:
                kills[action.target_id] += 1
                if action.target_id not in kill_order:
                    kill_order.append(action.target_id)
            elif spec.effect == ActionEffect.SAVE:
                saves[action.target_id] += 1
            elif spec.effect == ActionEffect.INSPECT:
                outcome.inspections.append((action.player_id, action.target_id))

        outcome.kills = dict(kills)
        outcome.saves = dict(saves)

        for target_id in kill_order:
            target = snapshot.get_player(target_id)
            # Target may have died since the action was recorded (hunter shot)
            if target is None or not target.is_alive:
                continue
            if kills[target_id] > saves[target_id]:
                outcome.deaths.append(target_id)

        return outcome

    @staticmethod
    def actions_complete(snapshot: GameSnapshot) -> bool:
        """Check whether every alive player with a required night role has acted."""
        acted = {
            a.player_id
            for a in snapshot.unprocessed_actions(snapshot.game.day_number, GamePhase.NIGHT)
        }
        for player in snapshot.alive_players():
            if player.role is None:
                continue
            if get_role_spec(player.role).required_at_night and player.id not in acted:
                return False
        return True
