"""Action/vote validation.

Checks run in a fixed order and the first failure wins:

1. Game phase matches the submission
2. Actor is seated and alive (dead for a hunter's final shot)
3. Actor's role allows the action
4. One-time resource is still available
5. Target exists and is alive (self-targeting per action)
6. Secondary target exists, is alive and differs from the primary
7. No unprocessed action already recorded for this actor this night

Validation never mutates the snapshot.
"""

from typing import Literal, Optional, Union
from pydantic import BaseModel

from nightfall.errors import REJECTION_MESSAGES, RejectionReason
from nightfall.models import (
    ActionType,
    GamePhase,
    GameSnapshot,
    GameStatus,
    Player,
    Role,
    allowed_night_actions,
    get_action_spec,
)


class Accepted(BaseModel):
    """Submission passed every check."""

    accepted: Literal[True] = True
    actor_id: str


class Rejected(BaseModel):
    """Submission failed a check; ``reason`` is relayed verbatim to the caller."""

    accepted: Literal[False] = False
    reason: RejectionReason
    message: str


Validation = Union[Accepted, Rejected]


def reject(reason: RejectionReason) -> Rejected:
    return Rejected(reason=reason, message=REJECTION_MESSAGES[reason])


class ActionValidator:
    """Validates votes, night actions and hunter shots against a snapshot."""

    def validate_vote(
        self,
        snapshot: GameSnapshot,
        voter_user_id: str,
        target_id: Optional[str],
    ) -> Validation:
        """Validate a ballot; ``target_id`` None is an explicit skip.

        A second ballot from the same voter is accepted and replaces the first.
        """
        rejection = self._check_phase(snapshot, GamePhase.VOTING)
        if rejection:
            return rejection

        voter = snapshot.find_player_by_user(voter_user_id)
        rejection = self._check_actor_alive(voter)
        if rejection:
            return rejection

        if target_id is not None:
            rejection = self._check_target(snapshot, target_id)
            if rejection:
                return rejection

        return Accepted(actor_id=voter.id)

    def validate_night_action(
        self,
        snapshot: GameSnapshot,
        actor_user_id: str,
        action: ActionType,
        target_id: Optional[str],
        secondary_target_id: Optional[str] = None,
    ) -> Validation:
        rejection = self._check_phase(snapshot, GamePhase.NIGHT)
        if rejection:
            return rejection

        actor = snapshot.find_player_by_user(actor_user_id)
        rejection = self._check_actor_alive(actor)
        if rejection:
            return rejection

        if actor.role is None:
            return reject(RejectionReason.NO_ROLE)
        if action not in allowed_night_actions(actor.role):
            return reject(RejectionReason.ACTION_NOT_ALLOWED)

        spec = get_action_spec(action)
        rejection = self._check_resource(snapshot, actor, spec.resource)
        if rejection:
            return rejection

        if target_id is None:
            return reject(RejectionReason.TARGET_REQUIRED)
        rejection = self._check_target(snapshot, target_id)
        if rejection:
            return rejection
        if target_id == actor.id and not spec.allow_self:
            return reject(RejectionReason.SELF_TARGET)

        if spec.needs_secondary and secondary_target_id is None:
            return reject(RejectionReason.SECONDARY_TARGET_REQUIRED)
        if secondary_target_id is not None:
            rejection = self._check_secondary(snapshot, target_id, secondary_target_id)
            if rejection:
                return rejection

        if action == ActionType.CUPID_LINK:
            if snapshot.lover_pair_for(target_id) or snapshot.lover_pair_for(secondary_target_id):
                return reject(RejectionReason.ALREADY_LINKED)

        if snapshot.pending_action_for(actor.id) is not None:
            return reject(RejectionReason.DUPLICATE_ACTION)

        return Accepted(actor_id=actor.id)

    def validate_hunter_shot(
        self,
        snapshot: GameSnapshot,
        actor_user_id: str,
        target_id: Optional[str],
    ) -> Validation:
        """Validate a dead hunter's final shot (any phase while in progress)."""
        if snapshot.game.status != GameStatus.IN_PROGRESS:
            return reject(RejectionReason.GAME_NOT_IN_PROGRESS)

        actor = snapshot.find_player_by_user(actor_user_id)
        if actor is None:
            return reject(RejectionReason.NOT_IN_GAME)
        if actor.role != Role.HUNTER:
            return reject(RejectionReason.ACTION_NOT_ALLOWED)
        if actor.is_alive:
            return reject(RejectionReason.ACTOR_ALIVE)

        spec = get_action_spec(ActionType.HUNTER_SHOOT)
        rejection = self._check_resource(snapshot, actor, spec.resource)
        if rejection:
            return rejection
        role_state = snapshot.role_state_for(actor.id)
        if not role_state.shot_pending:
            return reject(RejectionReason.NO_PENDING_SHOT)

        if target_id is None:
            return reject(RejectionReason.TARGET_REQUIRED)
        rejection = self._check_target(snapshot, target_id)
        if rejection:
            return rejection
        if target_id == actor.id:
            return reject(RejectionReason.SELF_TARGET)

        return Accepted(actor_id=actor.id)

    def validate_ready(self, snapshot: GameSnapshot, user_id: str) -> Validation:
        """Validate a "ready to vote" mark during discussion."""
        rejection = self._check_phase(snapshot, GamePhase.DISCUSSION)
        if rejection:
            return rejection

        player = snapshot.find_player_by_user(user_id)
        rejection = self._check_actor_alive(player)
        if rejection:
            return rejection

        return Accepted(actor_id=player.id)

    # =========================================================================
    # Individual checks
    # =========================================================================

    def _check_phase(self, snapshot: GameSnapshot, phase: GamePhase) -> Optional[Rejected]:
        if snapshot.game.status != GameStatus.IN_PROGRESS:
            return reject(RejectionReason.GAME_NOT_IN_PROGRESS)
        if snapshot.game.phase != phase:
            return reject(RejectionReason.WRONG_PHASE)
        return None

    def _check_actor_alive(self, actor: Optional[Player]) -> Optional[Rejected]:
        if actor is None:
            return reject(RejectionReason.NOT_IN_GAME)
        if not actor.is_alive:
            return reject(RejectionReason.ACTOR_DEAD)
        return None

    def _check_resource(
        self,
        snapshot: GameSnapshot,
        actor: Player,
        resource: Optional[str],
    ) -> Optional[Rejected]:
        if resource is None:
            return None
        role_state = snapshot.role_state_for(actor.id)
        if role_state is None:
            return reject(RejectionReason.NO_ROLE)
        if role_state.is_used(resource):
            return reject(RejectionReason.RESOURCE_ALREADY_USED)
        return None

    def _check_target(self, snapshot: GameSnapshot, target_id: str) -> Optional[Rejected]:
        target = snapshot.get_player(target_id)
        if target is None:
            return reject(RejectionReason.TARGET_NOT_FOUND)
        if not target.is_alive:
            return reject(RejectionReason.TARGET_DEAD)
        return None

    def _check_secondary(
        self,
        snapshot: GameSnapshot,
        target_id: str,
        secondary_target_id: str,
    ) -> Optional[Rejected]:
        secondary = snapshot.get_player(secondary_target_id)
        if secondary is None:
            return reject(RejectionReason.SECONDARY_TARGET_NOT_FOUND)
        if not secondary.is_alive:
            return reject(RejectionReason.SECONDARY_TARGET_DEAD)
        if secondary_target_id == target_id:
            return reject(RejectionReason.SAME_TARGETS)
        return None
