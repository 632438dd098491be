"""
Vote counting for a single matchup.

The tally is a derived view: it is recomputed from the stored votes every
time it is asked for, never edited by hand. Only regular votes count;
tie-break votes are kept as a separate record of an operator decision.
"""
import logging
from typing import Dict, Optional

from contest.errors import ConflictError, ValidationError
from contest.models import ACTIVE, Matchup, Vote, new_id
from contest.repository import TournamentState

logger = logging.getLogger(__name__)


class VoteTally:
    def __init__(self, matchup_id: str, contestant_a_id: Optional[str], contestant_b_id: Optional[str],
                 count_a: int = 0, count_b: int = 0):
        self.matchup_id = matchup_id
        self.contestant_a_id = contestant_a_id
        self.contestant_b_id = contestant_b_id
        self.count_a = count_a
        self.count_b = count_b

    @property
    def total(self) -> int:
        return self.count_a + self.count_b

    @property
    def leader_id(self) -> Optional[str]:
        """Contestant with strictly more votes, or None."""
        if self.count_a > self.count_b:
            return self.contestant_a_id
        if self.count_b > self.count_a:
            return self.contestant_b_id
        return None

    @property
    def is_tie(self) -> bool:
        return self.total > 0 and self.count_a == self.count_b

    def to_dict(self) -> Dict:
        return {
            'matchup_id': self.matchup_id,
            'contestant_a_id': self.contestant_a_id,
            'contestant_b_id': self.contestant_b_id,
            'count_a': self.count_a,
            'count_b': self.count_b,
            'total': self.total,
            'leader_id': self.leader_id,
            'is_tie': self.is_tie,
        }

    def __repr__(self):
        return f"VoteTally(matchup={self.matchup_id}, {self.count_a}-{self.count_b}, leader={self.leader_id})"


def compute_tally(state: TournamentState, matchup: Matchup) -> VoteTally:
    """Count the regular votes cast for each side of a matchup."""
    count_a = 0
    count_b = 0
    for vote in state.votes_for_matchup(matchup.id):
        if vote.contestant_id == matchup.contestant_a_id:
            count_a += 1
        elif vote.contestant_id == matchup.contestant_b_id:
            count_b += 1
    return VoteTally(matchup.id, matchup.contestant_a_id, matchup.contestant_b_id, count_a, count_b)


def _require_open(matchup: Matchup):
    if matchup.status != ACTIVE:
        raise ConflictError(f"Matchup {matchup.id} is {matchup.status}; votes are only accepted while it is active")


def cast_vote(state: TournamentState, voter_id: str, matchup_id: str, contestant_id: str) -> Vote:
    """
    Record one regular vote.

    Rejected with ConflictError if the matchup is not active, the pick is not
    one of its two contestants, or the voter already voted on it.
    """
    if not voter_id:
        raise ValidationError("A voter id is required")

    matchup = state.get_matchup(matchup_id)
    _require_open(matchup)
    if not matchup.has_contestant(contestant_id):
        raise ConflictError(f"Contestant {contestant_id} is not in matchup {matchup_id}")
    if state.regular_vote(voter_id, matchup_id) is not None:
        raise ConflictError(f"Voter {voter_id} has already voted on matchup {matchup_id}")

    vote = Vote(id=new_id(), matchup_id=matchup_id, voter_id=voter_id, contestant_id=contestant_id)
    state.add_vote(vote)
    logger.debug("Vote by %s on matchup %s for %s", voter_id, matchup_id, contestant_id)
    return vote


def retract_vote(state: TournamentState, voter_id: str, matchup_id: str) -> Vote:
    """Remove a voter's regular vote while the matchup is still active."""
    matchup = state.get_matchup(matchup_id)
    _require_open(matchup)
    vote = state.regular_vote(voter_id, matchup_id)
    if vote is None:
        raise ConflictError(f"Voter {voter_id} has no vote on matchup {matchup_id}")
    state.remove_vote(vote.id)
    logger.debug("Vote by %s on matchup %s retracted", voter_id, matchup_id)
    return vote
