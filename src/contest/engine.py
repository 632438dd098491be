"""
Entry point used by the web and command-line layers.

Every mutating method runs inside a single repository transaction, so an
operation either commits completely or leaves the tournament untouched.
Read methods work on a snapshot. Results are plain dicts and lists.
"""
from typing import Callable, Dict, Iterable, List, Optional

from contest.builder import build_bracket, parse_contestants
from contest.display import (
    get_bracket_display,
    get_tie_break_opportunities,
    get_tournament_stats,
    get_voter_history,
    get_voting_status,
)
from contest.errors import ValidationError
from contest.progression import close_matchup, force_advance, reset_tournament, try_advance_round
from contest.repository import Repository
from contest.settings import get_default_settings
from contest.tally import cast_vote, compute_tally, retract_vote
from contest.tiebreak import TieBreakPolicy


class ContestEngine:
    def __init__(self, repository: Repository, settings_loader: Optional[Callable[[str], Dict]] = None):
        self.repository = repository
        self.settings_loader = settings_loader or (lambda tournament_id: get_default_settings())

    def _policy(self, tournament_id: str, policy) -> Optional[TieBreakPolicy]:
        """Explicit policy first, then the tournament's configured default."""
        if policy is not None:
            return TieBreakPolicy.parse(policy)
        return TieBreakPolicy.parse(self.settings_loader(tournament_id).get('tie_break_policy'))

    def _region_labels(self, tournament_id: str) -> Dict:
        return self.settings_loader(tournament_id).get('region_labels') or {}

    def build(self, tournament_id: str, contestants: Optional[Iterable] = None) -> Dict:
        """
        Build (or rebuild) the bracket. Without a contestant list the field
        stored by the previous build is reused.
        """
        with self.repository.transaction(tournament_id) as state:
            if contestants is None:
                if not state.contestants:
                    raise ValidationError(f"Tournament {tournament_id} has no contestants to build from")
                field = list(state.contestants.values())
            else:
                field = parse_contestants(contestants)
            build_bracket(state, field)
            return get_bracket_display(state, self._region_labels(tournament_id))

    def cast_vote(self, tournament_id: str, voter_id: str, matchup_id: str, contestant_id: str) -> Dict:
        with self.repository.transaction(tournament_id) as state:
            vote = cast_vote(state, voter_id, matchup_id, contestant_id)
            tally = compute_tally(state, state.get_matchup(matchup_id))
            return {'vote': vote.to_dict(), 'tally': tally.to_dict()}

    def retract_vote(self, tournament_id: str, voter_id: str, matchup_id: str) -> Dict:
        with self.repository.transaction(tournament_id) as state:
            retract_vote(state, voter_id, matchup_id)
            return compute_tally(state, state.get_matchup(matchup_id)).to_dict()

    def tally(self, tournament_id: str, matchup_id: str) -> Dict:
        state = self.repository.snapshot(tournament_id)
        return compute_tally(state, state.get_matchup(matchup_id)).to_dict()

    def close_matchup(self, tournament_id: str, matchup_id: str, policy=None) -> Dict:
        resolved_policy = self._policy(tournament_id, policy)
        with self.repository.transaction(tournament_id) as state:
            return close_matchup(state, matchup_id, resolved_policy)

    def try_advance_round(self, tournament_id: str, round_id: str) -> Dict:
        with self.repository.transaction(tournament_id) as state:
            return try_advance_round(state, round_id)

    def force_advance(self, tournament_id: str, policy=None) -> Dict:
        resolved_policy = self._policy(tournament_id, policy)
        with self.repository.transaction(tournament_id) as state:
            return force_advance(state, resolved_policy)

    def reset_tournament(self, tournament_id: str) -> Dict:
        with self.repository.transaction(tournament_id) as state:
            return reset_tournament(state)

    def delete_tournament(self, tournament_id: str):
        """Remove the stored bracket and field entirely."""
        self.repository.delete(tournament_id)

    def bracket(self, tournament_id: str) -> Dict:
        state = self.repository.snapshot(tournament_id)
        return get_bracket_display(state, self._region_labels(tournament_id))

    def stats(self, tournament_id: str) -> Dict:
        return get_tournament_stats(self.repository.snapshot(tournament_id))

    def voter_history(self, tournament_id: str, voter_id: str) -> List[Dict]:
        return get_voter_history(self.repository.snapshot(tournament_id), voter_id)

    def voting_status(self, tournament_id: str, voter_id: str) -> Dict:
        return get_voting_status(self.repository.snapshot(tournament_id), voter_id)

    def tie_break_opportunities(self, tournament_id: str) -> List[Dict]:
        return get_tie_break_opportunities(self.repository.snapshot(tournament_id))
