"""Models package."""

from nightfall.models.roles import (
    Role,
    Side,
    ActionType,
    ActionEffect,
    RoleSpec,
    ActionSpec,
    ROLE_CATALOG,
    ACTION_CATALOG,
    FILLER_ROLE,
    AGGRESSOR_SIDE,
    get_role_spec,
    get_action_spec,
    allowed_night_actions,
    side_of,
    is_aggressor,
)
from nightfall.models.game import (
    GameStatus,
    GamePhase,
    GameSettings,
    Game,
    new_id,
    utcnow,
)
from nightfall.models.player import Identity, Player, RoleState, LoverPair
from nightfall.models.records import Vote, GameAction
from nightfall.models.snapshot import GameSnapshot

__all__ = [
    "Role",
    "Side",
    "ActionType",
    "ActionEffect",
    "RoleSpec",
    "ActionSpec",
    "ROLE_CATALOG",
    "ACTION_CATALOG",
    "FILLER_ROLE",
    "AGGRESSOR_SIDE",
    "get_role_spec",
    "get_action_spec",
    "allowed_night_actions",
    "side_of",
    "is_aggressor",
    "GameStatus",
    "GamePhase",
    "GameSettings",
    "Game",
    "new_id",
    "utcnow",
    "Identity",
    "Player",
    "RoleState",
    "LoverPair",
    "Vote",
    "GameAction",
    "GameSnapshot",
]
