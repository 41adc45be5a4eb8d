"""Error codes, exceptions and rejection reasons.

Lobby operations raise a ``GameError`` subclass. Votes and night actions never
raise for rule violations; they return an outcome carrying a ``RejectionReason``
so the caller can relay the exact reason to the acting client.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced to the transport layer."""

    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    GAME_FULL = "GAME_FULL"
    GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
    NOT_HOST = "NOT_HOST"
    NOT_IN_GAME = "NOT_IN_GAME"
    INVALID_PHASE = "INVALID_PHASE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CODE_GENERATION_FAILED = "CODE_GENERATION_FAILED"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


class RejectionReason(str, Enum):
    """Why a vote, night action or follow-up action was rejected."""

    GAME_NOT_IN_PROGRESS = "GAME_NOT_IN_PROGRESS"
    WRONG_PHASE = "WRONG_PHASE"
    NOT_IN_GAME = "NOT_IN_GAME"
    ACTOR_DEAD = "ACTOR_DEAD"
    ACTOR_ALIVE = "ACTOR_ALIVE"
    NO_ROLE = "NO_ROLE"
    ACTION_NOT_ALLOWED = "ACTION_NOT_ALLOWED"
    RESOURCE_ALREADY_USED = "RESOURCE_ALREADY_USED"
    NO_PENDING_SHOT = "NO_PENDING_SHOT"
    TARGET_REQUIRED = "TARGET_REQUIRED"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    TARGET_DEAD = "TARGET_DEAD"
    SELF_TARGET = "SELF_TARGET"
    SECONDARY_TARGET_REQUIRED = "SECONDARY_TARGET_REQUIRED"
    SECONDARY_TARGET_NOT_FOUND = "SECONDARY_TARGET_NOT_FOUND"
    SECONDARY_TARGET_DEAD = "SECONDARY_TARGET_DEAD"
    SAME_TARGETS = "SAME_TARGETS"
    ALREADY_LINKED = "ALREADY_LINKED"
    DUPLICATE_ACTION = "DUPLICATE_ACTION"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.GAME_NOT_IN_PROGRESS: "Game is not in progress",
    RejectionReason.WRONG_PHASE: "Not allowed in the current phase",
    RejectionReason.NOT_IN_GAME: "You are not in this game",
    RejectionReason.ACTOR_DEAD: "Dead players cannot act",
    RejectionReason.ACTOR_ALIVE: "Only a dead hunter can take a final shot",
    RejectionReason.NO_ROLE: "You have no role",
    RejectionReason.ACTION_NOT_ALLOWED: "Invalid action for your role",
    RejectionReason.RESOURCE_ALREADY_USED: "This ability has already been used",
    RejectionReason.NO_PENDING_SHOT: "You have no shot to take",
    RejectionReason.TARGET_REQUIRED: "A target is required",
    RejectionReason.TARGET_NOT_FOUND: "Invalid target",
    RejectionReason.TARGET_DEAD: "Target is dead",
    RejectionReason.SELF_TARGET: "You cannot target yourself",
    RejectionReason.SECONDARY_TARGET_REQUIRED: "A second target is required",
    RejectionReason.SECONDARY_TARGET_NOT_FOUND: "Invalid secondary target",
    RejectionReason.SECONDARY_TARGET_DEAD: "Secondary target is dead",
    RejectionReason.SAME_TARGETS: "Both targets must be different players",
    RejectionReason.ALREADY_LINKED: "A target is already one of a pair of lovers",
    RejectionReason.DUPLICATE_ACTION: "You have already performed an action this phase",
}


class GameError(Exception):
    """Base class for errors raised by lobby and lifecycle operations."""

    def __init__(self, code: ErrorCode, message: str, details: Optional[dict] = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(GameError):
    """Game, player or target does not exist."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.GAME_NOT_FOUND):
        super().__init__(code, message)


class GameValidationError(GameError):
    """Malformed settings or an operation not valid in the current state."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details)


class AuthorizationError(GameError):
    """Requester lacks the privilege for the operation (e.g. not host)."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.NOT_HOST):
        super().__init__(code, message)


class ConflictError(GameError):
    """Operation conflicts with the current lifecycle state."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.GAME_ALREADY_STARTED):
        super().__init__(code, message)


class PersistenceError(GameError):
    """The persistence collaborator failed; the unit of work was rolled back."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.PERSISTENCE_ERROR, message)
