"""
Read-only views of a tournament for rendering.
"""
from typing import Dict, List, Optional

from contest.models import ACTIVE, COMPLETED, UPCOMING, Matchup
from contest.repository import TournamentState
from contest.tally import compute_tally


def _contestant_view(state: TournamentState, contestant_id: Optional[str],
                     region_labels: Optional[Dict] = None) -> Optional[Dict]:
    if contestant_id is None:
        return None
    contestant = state.contestants.get(contestant_id)
    if contestant is None:
        return {'id': contestant_id, 'name': contestant_id, 'region': None, 'seed': None}
    view = contestant.to_dict()
    if region_labels:
        view['region_label'] = region_labels.get(contestant.region, f"Region {contestant.region}")
    return view


def _matchup_view(state: TournamentState, matchup: Matchup, region_labels: Optional[Dict] = None) -> Dict:
    view = matchup.to_dict()
    view['contestant_a'] = _contestant_view(state, matchup.contestant_a_id, region_labels)
    view['contestant_b'] = _contestant_view(state, matchup.contestant_b_id, region_labels)
    view['tally'] = compute_tally(state, matchup).to_dict() if matchup.is_populated else None
    return view


def get_bracket_display(state: TournamentState, region_labels: Optional[Dict] = None) -> Dict:
    """
    Get bracket data formatted for UI display.
    """
    rounds = []
    for round_obj in state.rounds_in_order():
        round_view = round_obj.to_dict()
        round_view['matchups'] = [_matchup_view(state, m, region_labels)
                                  for m in state.matchups_for_round(round_obj.id)]
        rounds.append(round_view)

    active_round = state.active_round()
    return {
        'tournament_id': state.tournament_id,
        'status': state.status,
        'champion': _contestant_view(state, state.champion_id, region_labels),
        'active_round_id': active_round.id if active_round else None,
        'total_rounds': len(rounds),
        'rounds': rounds,
    }


def get_tournament_stats(state: TournamentState) -> Dict:
    """Vote and completion counts across the whole bracket."""
    matchups = list(state.matchups.values())
    by_status = {UPCOMING: 0, ACTIVE: 0, COMPLETED: 0}
    for matchup in matchups:
        by_status[matchup.status] = by_status.get(matchup.status, 0) + 1

    most_voted_id = None
    most_votes = 0
    total_votes = 0
    for matchup in matchups:
        votes = len(state.votes_for_matchup(matchup.id))
        total_votes += votes
        if votes > most_votes:
            most_voted_id = matchup.id
            most_votes = votes

    completion = round(by_status[COMPLETED] / len(matchups) * 100, 2) if matchups else 0
    return {
        'tournament_id': state.tournament_id,
        'status': state.status,
        'total_votes': total_votes,
        'tiebreak_votes': sum(1 for v in state.votes.values() if v.is_tiebreak),
        'total_matchups': len(matchups),
        'matchups_by_status': by_status,
        'completion_percentage': completion,
        'active_contestants': sum(1 for c in state.contestants.values() if c.active),
        'most_voted_matchup_id': most_voted_id,
        'champion_id': state.champion_id,
    }


def get_voter_history(state: TournamentState, voter_id: str) -> List[Dict]:
    """Every vote a voter cast in this tournament, earliest round first."""
    history = []
    for vote in state.votes_for_voter(voter_id):
        matchup = state.matchups.get(vote.matchup_id)
        round_obj = state.rounds.get(matchup.round_id) if matchup else None
        entry = vote.to_dict()
        entry['round_number'] = round_obj.number if round_obj else None
        entry['round_name'] = round_obj.name if round_obj else None
        entry['position'] = matchup.position if matchup else None
        entry['won'] = matchup.winner_id == vote.contestant_id if matchup and matchup.winner_id else None
        history.append(entry)
    history.sort(key=lambda e: (e['round_number'] or 0, e['position'] or 0))
    return history


def get_voting_status(state: TournamentState, voter_id: str) -> Dict:
    """Active matchups and which of them the voter has already voted on."""
    active = [m for m in state.matchups.values() if m.status == ACTIVE]
    voted = [m.id for m in active if state.regular_vote(voter_id, m.id) is not None]
    return {
        'voter_id': voter_id,
        'active_matchups': len(active),
        'voted_matchups': len(voted),
        'voted_matchup_ids': voted,
        'pending_matchup_ids': [m.id for m in active if m.id not in voted],
    }


def get_tie_break_opportunities(state: TournamentState) -> List[Dict]:
    """Active matchups whose regular votes are currently tied."""
    opportunities = []
    for matchup in state.matchups.values():
        if matchup.status != ACTIVE or not matchup.is_populated:
            continue
        tally = compute_tally(state, matchup)
        if tally.is_tie:
            opportunities.append(_matchup_view(state, matchup))
    opportunities.sort(key=lambda m: m['position'])
    return opportunities
