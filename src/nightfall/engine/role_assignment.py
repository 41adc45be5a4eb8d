"""Role assignment - turns a role distribution into one role per player."""

import logging
import random
from collections import Counter
from typing import Optional

from nightfall.models import FILLER_ROLE, GameSnapshot, Role, RoleState

logger = logging.getLogger(__name__)


def build_role_list(player_count: int, role_counts: dict[Role, int]) -> list[Role]:
    """Flatten a role distribution into exactly ``player_count`` entries.

    Short lists are padded with the filler role. Long lists lose filler
    entries from the end first, then whatever is last.
    """
    roles: list[Role] = []
    for role, count in role_counts.items():
        roles.extend([role] * max(count, 0))

    while len(roles) < player_count:
        roles.append(FILLER_ROLE)

    if len(roles) > player_count:
        logger.warning(
            "Role distribution has %d entries for %d players, trimming", len(roles), player_count
        )
        for index in range(len(roles) - 1, -1, -1):
            if len(roles) == player_count:
                break
            if roles[index] == FILLER_ROLE:
                del roles[index]
        del roles[player_count:]

    return roles


def assign_roles(
    player_count: int,
    role_counts: dict[Role, int],
    rng: Optional[random.Random] = None,
) -> list[Role]:
    """Build the role list and shuffle it.

    Args:
        player_count: Number of seated players
        role_counts: Requested role -> count map
        rng: Random source; pass a seeded ``random.Random`` for reproducible games

    Returns:
        Roles in seat order, one per player
    """
    rng = rng or random.SystemRandom()
    roles = build_role_list(player_count, role_counts)

    # Fisher-Yates
    for i in range(len(roles) - 1, 0, -1):
        j = rng.randint(0, i)
        roles[i], roles[j] = roles[j], roles[i]

    return roles


def apply_role_assignment(snapshot: GameSnapshot, roles: list[Role]) -> list[RoleState]:
    """Give each player, in join order, the role at the same position.

    Creates one RoleState per player and replaces any existing ones.
    """
    if len(roles) != len(snapshot.players):
        raise ValueError(f"Got {len(roles)} roles for {len(snapshot.players)} players")

    snapshot.role_states = {}
    for player, role in zip(snapshot.players, roles):
        player.role = role
        snapshot.role_states[player.id] = RoleState(
            game_id=snapshot.game.id,
            player_id=player.id,
            role=role,
        )
    return list(snapshot.role_states.values())


def count_roles(roles: list[Role]) -> dict[str, int]:
    """Public role distribution (counts only, no seats)."""
    return {role.value: count for role, count in Counter(roles).items()}
