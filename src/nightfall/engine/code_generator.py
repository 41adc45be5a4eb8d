"""Short join codes for game lobbies."""

import logging
import random
from typing import Callable, Optional

from nightfall.config import GAME_CODE_ALPHABET, GAME_CODE_LENGTH, GAME_CODE_MAX_ATTEMPTS
from nightfall.errors import ConflictError, ErrorCode

logger = logging.getLogger(__name__)

_system_rng = random.SystemRandom()


def normalize_code(code: str) -> str:
    """Codes are case-insensitive at the boundary."""
    return code.strip().upper()


def generate_game_code(rng: Optional[random.Random] = None) -> str:
    """Draw one code from the unambiguous alphabet."""
    rng = rng or _system_rng
    return "".join(rng.choice(GAME_CODE_ALPHABET) for _ in range(GAME_CODE_LENGTH))


def generate_unique_game_code(
    code_exists: Callable[[str], bool],
    rng: Optional[random.Random] = None,
    max_attempts: int = GAME_CODE_MAX_ATTEMPTS,
) -> str:
    """Generate a code not used by any active game.

    Args:
        code_exists: Uniqueness check backed by persistence
        rng: Random source (system randomness when None)
        max_attempts: Codes tried before giving up

    Raises:
        ConflictError: If every attempt collided.
    """
    for attempt in range(max_attempts):
        code = generate_game_code(rng)
        if not code_exists(code):
            return code
        logger.debug("Game code collision on attempt %d", attempt + 1)

    raise ConflictError(
        f"Failed to generate a unique game code after {max_attempts} attempts",
        code=ErrorCode.CODE_GENERATION_FAILED,
    )
