"""Engine package - lobby, resolution and phase orchestration components."""

from .code_generator import generate_game_code, generate_unique_game_code, normalize_code
from .role_assignment import assign_roles, build_role_list, apply_role_assignment, count_roles
from .action_validator import ActionValidator, Accepted, Rejected, Validation
from .night_action_resolver import NightActionResolver, NightOutcome
from .vote_resolver import VoteResolver, VoteTally
from .death_resolution import DeathResolver, DeathReport
from .victory import VictoryEvaluator, VictoryCheck
from .outcomes import PhaseEndResult, VoteResult, ActionResult
from .phase_machine import PhaseStateMachine
from .timers import PhaseTimerScheduler
from .service import GameService

__all__ = [
    "generate_game_code",
    "generate_unique_game_code",
    "normalize_code",
    "assign_roles",
    "build_role_list",
    "apply_role_assignment",
    "count_roles",
    "ActionValidator",
    "Accepted",
    "Rejected",
    "Validation",
    "NightActionResolver",
    "NightOutcome",
    "VoteResolver",
    "VoteTally",
    "DeathResolver",
    "DeathReport",
    "VictoryEvaluator",
    "VictoryCheck",
    "PhaseEndResult",
    "VoteResult",
    "ActionResult",
    "PhaseStateMachine",
    "PhaseTimerScheduler",
    "GameService",
]
