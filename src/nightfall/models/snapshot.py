"""Full, unredacted in-core view of one game.

Every engine component reads a ``GameSnapshot``; only the phase state machine
commits changes to one back to the repository. Anything sent to a viewer goes
through ``nightfall.events.event_visibility`` first.
"""

from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models.game import Game, GamePhase
from nightfall.models.player import Player, RoleState, LoverPair
from nightfall.models.records import Vote, GameAction
from nightfall.models.roles import Role, is_aggressor


class GameSnapshot(BaseModel):
    """A game together with all of its per-game records."""

    game: Game
    players: list[Player] = Field(default_factory=list)  # join order
    role_states: dict[str, RoleState] = Field(default_factory=dict)  # player id -> state
    votes: list[Vote] = Field(default_factory=list)
    actions: list[GameAction] = Field(default_factory=list)
    lover_pairs: list[LoverPair] = Field(default_factory=list)
    ready_player_ids: set[str] = Field(default_factory=set)

    def copy_for_update(self) -> "GameSnapshot":
        """Deep copy to mutate without touching the stored snapshot."""
        return self.model_copy(deep=True)

    # =========================================================================
    # Player lookup
    # =========================================================================

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def find_player_by_user(self, user_id: str) -> Optional[Player]:
        for player in self.players:
            if player.user_id == user_id:
                return player
        return None

    def alive_players(self) -> list[Player]:
        return [p for p in self.players if p.is_alive]

    def dead_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_alive]

    def alive_with_role(self, role: Role) -> list[Player]:
        return [p for p in self.players if p.is_alive and p.role == role]

    def alive_aggressors(self) -> list[Player]:
        return [p for p in self.players if p.is_alive and is_aggressor(p.role)]

    def hosts(self) -> list[Player]:
        return [p for p in self.players if p.is_host]

    def host(self) -> Optional[Player]:
        hosts = self.hosts()
        return hosts[0] if hosts else None

    def role_state_for(self, player_id: str) -> Optional[RoleState]:
        return self.role_states.get(player_id)

    def lover_pair_for(self, player_id: str) -> Optional[LoverPair]:
        for pair in self.lover_pairs:
            if pair.contains(player_id):
                return pair
        return None

    def next_player_number(self) -> int:
        """Lowest positive number not held by a seated player."""
        taken = {p.player_number for p in self.players}
        number = 1
        while number in taken:
            number += 1
        return number

    # =========================================================================
    # Votes and actions
    # =========================================================================

    def unprocessed_actions(
        self,
        day_number: int,
        phase: GamePhase = GamePhase.NIGHT,
    ) -> list[GameAction]:
        return [
            a for a in self.actions
            if a.day_number == day_number and a.phase == phase and not a.processed
        ]

    def pending_action_for(self, player_id: str) -> Optional[GameAction]:
        """Unprocessed action of a player for the current phase/day."""
        for action in self.unprocessed_actions(self.game.day_number, self.game.phase):
            if action.player_id == player_id:
                return action
        return None

    def votes_for(self, day_number: int, vote_round: int = 1) -> list[Vote]:
        return [
            v for v in self.votes
            if v.day_number == day_number and v.phase == GamePhase.VOTING and v.round == vote_round
        ]

    def find_vote(self, voter_id: str, day_number: int, vote_round: int = 1) -> Optional[Vote]:
        for vote in self.votes_for(day_number, vote_round):
            if vote.voter_id == voter_id:
                return vote
        return None
