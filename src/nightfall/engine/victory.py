"""Win-condition evaluation over the alive-player set."""

from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models import GameSnapshot, Side, is_aggressor


class VictoryCheck(BaseModel):
    """Result of evaluating win conditions."""

    is_game_over: bool = False
    winning_side: Optional[Side] = None
    winners: list[str] = Field(default_factory=list)  # user ids

    def __str__(self) -> str:
        if self.is_game_over:
            return f"VictoryCheck({self.winning_side.value} wins)"
        return "VictoryCheck(ongoing)"


class VictoryEvaluator:
    """Declares a winning side or lets the game continue.

    Checks, in order:
    1. Lovers: exactly two players alive and they form a pair, whichever
       sides they belong to.
    2. Village: no aggressor alive. Always checked before parity, so a board
       without aggressors can never end as an aggressor win.
    3. Aggressors: alive aggressors >= alive non-aggressors.
    4. Otherwise the game continues.
    """

    def evaluate(self, snapshot: GameSnapshot) -> VictoryCheck:
        alive = snapshot.alive_players()
        aggressors = [p for p in alive if is_aggressor(p.role)]
        others = [p for p in alive if not is_aggressor(p.role)]

        lovers = self._surviving_lovers(snapshot)
        if lovers is not None:
            return VictoryCheck(is_game_over=True, winning_side=Side.LOVERS, winners=lovers)

        if not aggressors:
            return VictoryCheck(
                is_game_over=True,
                winning_side=Side.VILLAGE,
                winners=[p.user_id for p in others],
            )

        if len(aggressors) >= len(others):
            return VictoryCheck(
                is_game_over=True,
                winning_side=Side.WEREWOLF,
                winners=[p.user_id for p in aggressors],
            )

        return VictoryCheck()

    def _surviving_lovers(self, snapshot: GameSnapshot) -> Optional[list[str]]:
        alive = snapshot.alive_players()
        if len(alive) != 2:
            return None
        first, second = alive
        pair = snapshot.lover_pair_for(first.id)
        if pair is None or pair.partner_of(first.id) != second.id:
            return None
        return [first.user_id, second.user_id]
