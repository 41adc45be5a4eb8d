"""Vote resolution - tallies ballots and decides the elimination.

Rules:
- Each alive voter has one ballot per day/round, the latest one counts
- Ballots of voters who died before the tally (hunter shot) are dropped
- Skips (no target) are not counted
- Unique strict maximum above zero = eliminated
- Any tie, including everyone skipping = no elimination
"""

from collections import Counter
from typing import Optional
from pydantic import BaseModel, Field

from nightfall.models import GameSnapshot


class VoteTally(BaseModel):
    """Counted ballots for one voting phase."""

    votes: dict[str, int] = Field(default_factory=dict)  # target -> count
    ballots: int = 0
    skips: int = 0
    tied_players: list[str] = Field(default_factory=list)
    eliminated: Optional[str] = None
    max_votes: int = 0


class VoteResolver:
    """Tallies the current day's ballots."""

    def resolve(self, snapshot: GameSnapshot, vote_round: int = 1) -> VoteTally:
        ballots = [
            vote
            for vote in snapshot.votes_for(snapshot.game.day_number, vote_round)
            if self._voter_alive(snapshot, vote.voter_id)
        ]

        counts: Counter[str] = Counter()
        skips = 0
        for vote in ballots:
            if vote.target_id is None:
                skips += 1
            else:
                counts[vote.target_id] += 1

        tally = VoteTally(votes=dict(counts), ballots=len(ballots), skips=skips)
        if not counts:
            return tally

        max_votes = max(counts.values())
        leaders = [target for target, count in counts.items() if count == max_votes]
        tally.max_votes = max_votes

        if len(leaders) > 1:
            tally.tied_players = leaders
            return tally

        if max_votes > 0:
            tally.eliminated = leaders[0]
        return tally

    @staticmethod
    def all_voted(snapshot: GameSnapshot, vote_round: int = 1) -> bool:
        """Check whether every alive player has a ballot in."""
        voters = {v.voter_id for v in snapshot.votes_for(snapshot.game.day_number, vote_round)}
        return all(p.id in voters for p in snapshot.alive_players())

    @staticmethod
    def _voter_alive(snapshot: GameSnapshot, voter_id: str) -> bool:
        voter = snapshot.get_player(voter_id)
        return voter is not None and voter.is_alive
