"""Role catalog: which side each role plays for and which actions it may take.

Role behaviour is a flat lookup table rather than a class per role. The
resolvers dispatch on ``ActionEffect`` so the precedence rules stay in one
place.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Player roles in the game."""

    VILLAGER = "VILLAGER"
    WEREWOLF = "WEREWOLF"
    SEER = "SEER"
    DOCTOR = "DOCTOR"
    WITCH = "WITCH"
    HUNTER = "HUNTER"
    CUPID = "CUPID"


class Side(str, Enum):
    """Factions that can win a game."""

    VILLAGE = "VILLAGE"
    WEREWOLF = "WEREWOLF"
    LOVERS = "LOVERS"
    NONE = "NONE"


class ActionType(str, Enum):
    """Actions a player can submit outside of voting."""

    WEREWOLF_KILL = "WEREWOLF_KILL"
    SEER_CHECK = "SEER_CHECK"
    DOCTOR_SAVE = "DOCTOR_SAVE"
    WITCH_SAVE = "WITCH_SAVE"
    WITCH_KILL = "WITCH_KILL"
    CUPID_LINK = "CUPID_LINK"
    HUNTER_SHOOT = "HUNTER_SHOOT"


class ActionEffect(str, Enum):
    """What an action does when it is resolved."""

    KILL = "KILL"
    SAVE = "SAVE"
    INSPECT = "INSPECT"
    LINK = "LINK"
    SHOOT = "SHOOT"


class RoleSpec(BaseModel):
    """Static description of a role."""

    model_config = ConfigDict(frozen=True)

    role: Role
    side: Side
    night_actions: frozenset[ActionType] = frozenset()
    # Must submit before the night can end early
    required_at_night: bool = False
    description: str = ""


class ActionSpec(BaseModel):
    """Static description of an action type."""

    model_config = ConfigDict(frozen=True)

    action: ActionType
    effect: ActionEffect
    resource: Optional[str] = None  # RoleState flag consumed by the action
    allow_self: bool = False
    needs_secondary: bool = False
    night_action: bool = True


ROLE_CATALOG: dict[Role, RoleSpec] = {
    Role.VILLAGER: RoleSpec(
        role=Role.VILLAGER,
        side=Side.VILLAGE,
        description="Find the werewolves and vote them out",
    ),
    Role.WEREWOLF: RoleSpec(
        role=Role.WEREWOLF,
        side=Side.WEREWOLF,
        night_actions=frozenset({ActionType.WEREWOLF_KILL}),
        required_at_night=True,
        description="Choose a victim each night",
    ),
    Role.SEER: RoleSpec(
        role=Role.SEER,
        side=Side.VILLAGE,
        night_actions=frozenset({ActionType.SEER_CHECK}),
        required_at_night=True,
        description="Learn one player's role each night",
    ),
    Role.DOCTOR: RoleSpec(
        role=Role.DOCTOR,
        side=Side.VILLAGE,
        night_actions=frozenset({ActionType.DOCTOR_SAVE}),
        required_at_night=True,
        description="Protect one player each night",
    ),
    Role.WITCH: RoleSpec(
        role=Role.WITCH,
        side=Side.VILLAGE,
        night_actions=frozenset({ActionType.WITCH_SAVE, ActionType.WITCH_KILL}),
        description="One healing potion, one poison",
    ),
    Role.HUNTER: RoleSpec(
        role=Role.HUNTER,
        side=Side.VILLAGE,
        description="Take someone down when you die",
    ),
    Role.CUPID: RoleSpec(
        role=Role.CUPID,
        side=Side.VILLAGE,
        night_actions=frozenset({ActionType.CUPID_LINK}),
        description="Bind two players as lovers",
    ),
}


ACTION_CATALOG: dict[ActionType, ActionSpec] = {
    ActionType.WEREWOLF_KILL: ActionSpec(
        action=ActionType.WEREWOLF_KILL,
        effect=ActionEffect.KILL,
    ),
    ActionType.SEER_CHECK: ActionSpec(
        action=ActionType.SEER_CHECK,
        effect=ActionEffect.INSPECT,
    ),
    ActionType.DOCTOR_SAVE: ActionSpec(
        action=ActionType.DOCTOR_SAVE,
        effect=ActionEffect.SAVE,
        allow_self=True,
    ),
    ActionType.WITCH_SAVE: ActionSpec(
        action=ActionType.WITCH_SAVE,
        effect=ActionEffect.SAVE,
        resource="heal_potion_used",
        allow_self=True,
    ),
    ActionType.WITCH_KILL: ActionSpec(
        action=ActionType.WITCH_KILL,
        effect=ActionEffect.KILL,
        resource="poison_potion_used",
    ),
    ActionType.CUPID_LINK: ActionSpec(
        action=ActionType.CUPID_LINK,
        effect=ActionEffect.LINK,
        resource="link_used",
        allow_self=True,
        needs_secondary=True,
    ),
    ActionType.HUNTER_SHOOT: ActionSpec(
        action=ActionType.HUNTER_SHOOT,
        effect=ActionEffect.SHOOT,
        resource="has_shot",
        night_action=False,
    ),
}


# Pads role lists when fewer roles than players are configured
FILLER_ROLE = Role.VILLAGER

# Side whose members count as aggressors for win conditions
AGGRESSOR_SIDE = Side.WEREWOLF


def get_role_spec(role: Role) -> RoleSpec:
    """Look up the catalog entry for a role."""
    return ROLE_CATALOG[role]


def get_action_spec(action: ActionType) -> ActionSpec:
    """Look up the catalog entry for an action type."""
    return ACTION_CATALOG[action]


def allowed_night_actions(role: Role) -> frozenset[ActionType]:
    """Night actions a role may submit."""
    return ROLE_CATALOG[role].night_actions


def side_of(role: Role) -> Side:
    """Side a role plays for."""
    return ROLE_CATALOG[role].side


def is_aggressor(role: Optional[Role]) -> bool:
    """Check whether a role belongs to the aggressor side."""
    return role is not None and ROLE_CATALOG[role].side == AGGRESSOR_SIDE
