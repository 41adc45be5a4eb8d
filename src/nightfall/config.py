"""Game settings defaults, bounds and loading.

Settings arrive as partial overrides from the host (or a YAML file) and are
merged over ``GameSettings`` defaults. Role maps merge key by key, so a host
asking for ``{DOCTOR: 1}`` keeps the default werewolf and seer.
"""

from pathlib import Path
from typing import Any, Optional, Union

import pydantic
import yaml

from nightfall.errors import GameValidationError
from nightfall.models import GameSettings, Role


MIN_PLAYERS = 3
MAX_PLAYERS = 25
MIN_DISCUSSION_TIME = 30
MAX_DISCUSSION_TIME = 600
MIN_VOTING_TIME = 30
MAX_VOTING_TIME = 300
MIN_NIGHT_TIME = 10
MAX_NIGHT_TIME = 300
MIN_EXECUTION_TIME = 0
MAX_EXECUTION_TIME = 60

GAME_CODE_LENGTH = 6
# No 0/O, 1/I/L to keep codes readable aloud
GAME_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
GAME_CODE_MAX_ATTEMPTS = 5


def validate_game_settings(settings: GameSettings) -> GameSettings:
    """Check settings against the allowed ranges.

    Raises:
        GameValidationError: On the first out-of-range value.
    """
    if not MIN_PLAYERS <= settings.min_players <= MAX_PLAYERS:
        raise GameValidationError(f"min_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")

    if not settings.min_players <= settings.max_players <= MAX_PLAYERS:
        raise GameValidationError(f"max_players must be between min_players and {MAX_PLAYERS}")

    if not MIN_DISCUSSION_TIME <= settings.discussion_time <= MAX_DISCUSSION_TIME:
        raise GameValidationError(
            f"discussion_time must be between {MIN_DISCUSSION_TIME} and {MAX_DISCUSSION_TIME}"
        )

    if not MIN_VOTING_TIME <= settings.voting_time <= MAX_VOTING_TIME:
        raise GameValidationError(
            f"voting_time must be between {MIN_VOTING_TIME} and {MAX_VOTING_TIME}"
        )

    if not MIN_NIGHT_TIME <= settings.night_time <= MAX_NIGHT_TIME:
        raise GameValidationError(
            f"night_time must be between {MIN_NIGHT_TIME} and {MAX_NIGHT_TIME}"
        )

    if not MIN_EXECUTION_TIME <= settings.execution_time <= MAX_EXECUTION_TIME:
        raise GameValidationError(
            f"execution_time must be between {MIN_EXECUTION_TIME} and {MAX_EXECUTION_TIME}"
        )

    negative = [role.value for role, count in settings.roles.items() if count < 0]
    if negative:
        raise GameValidationError("Role counts cannot be negative", {"roles": negative})

    if settings.roles.get(Role.WEREWOLF, 0) < 1:
        raise GameValidationError("At least one werewolf is required")

    if settings.total_roles() > settings.max_players:
        raise GameValidationError("Total roles cannot exceed max_players")

    return settings


def merge_settings(overrides: Optional[dict[str, Any]] = None) -> GameSettings:
    """Merge partial overrides over the defaults and validate.

    Raises:
        GameValidationError: If the result is malformed or out of range.
    """
    overrides = dict(overrides or {})
    defaults = GameSettings()

    roles = {role.value: count for role, count in defaults.roles.items()}
    for role, count in (overrides.pop("roles", None) or {}).items():
        roles[role.value if isinstance(role, Role) else str(role).upper()] = count

    data = defaults.model_dump(mode="json")
    data.update(overrides)
    data["roles"] = roles

    try:
        settings = GameSettings.model_validate(data)
    except pydantic.ValidationError as e:
        raise GameValidationError("Malformed game settings", {"errors": e.errors()}) from e

    return validate_game_settings(settings)


def load_game_settings(path: Union[str, Path]) -> GameSettings:
    """Read settings overrides from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise GameValidationError(f"Settings file {path} must contain a mapping")
    return merge_settings(data)
