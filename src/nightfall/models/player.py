"""Player, role state and lover pair records."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models.game import new_id, utcnow
from nightfall.models.roles import Role


class Identity(BaseModel):
    """Authenticated caller as issued by the session provider."""

    user_id: str
    nickname: str


class Player(BaseModel):
    """A user seated in one game.

    ``player_number`` is the lowest free number at join time, so numbers freed
    by leavers are reused. ``role`` stays empty until the game starts.
    """

    id: str = Field(default_factory=new_id)
    game_id: str
    user_id: str
    player_number: int
    nickname: str
    role: Optional[Role] = None
    is_alive: bool = True
    is_host: bool = False
    joined_at: datetime = Field(default_factory=utcnow)
    disconnected_at: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        return self.disconnected_at is None


class RoleState(BaseModel):
    """One-time abilities of a player, created when the game starts.

    Every flag moves from False to True only.
    """

    id: str = Field(default_factory=new_id)
    game_id: str
    player_id: str
    role: Role
    heal_potion_used: bool = False
    poison_potion_used: bool = False
    has_shot: bool = False
    link_used: bool = False
    hunter_triggered: bool = False
    is_lover: bool = False

    def is_used(self, flag: str) -> bool:
        return bool(getattr(self, flag))

    def consume(self, flag: str) -> None:
        """Flip a resource flag to True.

        Raises:
            ValueError: If the flag is already set.
        """
        if getattr(self, flag):
            raise ValueError(f"{flag} already set for player {self.player_id}")
        setattr(self, flag, True)

    @property
    def shot_pending(self) -> bool:
        """Dead hunter still owed a final shot."""
        return self.hunter_triggered and not self.has_shot


class LoverPair(BaseModel):
    """Symmetric bond between two players."""

    id: str = Field(default_factory=new_id)
    game_id: str
    player1_id: str
    player2_id: str

    def contains(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def partner_of(self, player_id: str) -> Optional[str]:
        if player_id == self.player1_id:
            return self.player2_id
        if player_id == self.player2_id:
            return self.player1_id
        return None
