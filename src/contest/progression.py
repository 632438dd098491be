"""
Round progression: closing matchups and moving winners forward.

Per round and per matchup the lifecycle is upcoming -> active -> completed.
Winners of positions 2k-1 and 2k meet in position k of the next round,
except when the next round is the Semifinals: there the region 1 winner
meets region 3 and region 2 meets region 4.
"""
import logging
from typing import Dict, List, Optional, Tuple

from contest.builder import SEMIFINAL_REGION_PAIRS
from contest.errors import ConflictError, IncompleteRoundError, PolicyError
from contest.models import ACTIVE, COMPLETED, REGIONS, Round, Vote, new_id
from contest.repository import TournamentState
from contest.tally import compute_tally
from contest.tiebreak import EXTERNAL_DECISION, TieBreakPolicy, resolve_tie

logger = logging.getLogger(__name__)

SEMIFINALS = "Semifinals"


def close_matchup(state: TournamentState, matchup_id: str, policy: Optional[TieBreakPolicy] = None) -> Dict:
    """
    Declare the winner of an active matchup.

    The tally leader wins. Without a leader the tie-break policy decides;
    an external decision is also stored as a tie-break vote. Raises
    ConflictError if the matchup is not active with two contestants, and
    PolicyError if it has no leader and no usable policy.
    """
    matchup = state.get_matchup(matchup_id)
    if matchup.status != ACTIVE:
        raise ConflictError(f"Matchup {matchup_id} is {matchup.status}; only active matchups can be closed")
    if not matchup.is_populated:
        raise ConflictError(f"Matchup {matchup_id} does not have two contestants yet")

    tally = compute_tally(state, matchup)
    tie_resolved = False
    if tally.leader_id is not None:
        winner_id = tally.leader_id
    else:
        winner_id = resolve_tie(matchup, state.contestants, policy)
        tie_resolved = True
        if policy.kind == EXTERNAL_DECISION:
            state.add_vote(Vote(
                id=new_id(),
                matchup_id=matchup.id,
                voter_id=policy.decided_by,
                contestant_id=winner_id,
                is_tiebreak=True,
            ))

    matchup.winner_id = winner_id
    matchup.status = COMPLETED
    logger.info("Matchup %s closed %d-%d, winner %s%s", matchup.id, tally.count_a, tally.count_b,
                winner_id, " (tie broken)" if tie_resolved else "")
    return {
        'matchup_id': matchup.id,
        'winner_id': winner_id,
        'tie_resolved': tie_resolved,
        'tally': tally.to_dict(),
    }


def _default_pairs(winners: List[str]) -> List[Tuple[str, str]]:
    return [(winners[i], winners[i + 1]) for i in range(0, len(winners), 2)]


def _crossover_pairs(state: TournamentState, winners: List[str]) -> List[Tuple[str, str]]:
    """Pair regional champions for the Semifinals: 1 vs 3, 2 vs 4."""
    by_region = {}
    for winner_id in winners:
        region = state.get_contestant(winner_id).region
        if region in by_region:
            raise ConflictError(f"Region {region} has more than one winner entering the Semifinals")
        by_region[region] = winner_id
    if sorted(by_region) != list(REGIONS):
        raise ConflictError(f"Semifinals need one winner from each region, got regions {sorted(by_region)}")
    return [(by_region[a], by_region[b]) for a, b in SEMIFINAL_REGION_PAIRS]


def _advance_result(round_obj: Round, advanced: bool, next_round: Optional[Round] = None,
                    champion_id: Optional[str] = None) -> Dict:
    return {
        'round_id': round_obj.id,
        'round_name': round_obj.name,
        'advanced': advanced,
        'next_round_id': next_round.id if next_round else None,
        'next_round_name': next_round.name if next_round else None,
        'champion_id': champion_id,
    }


def try_advance_round(state: TournamentState, round_id: str) -> Dict:
    """
    Complete a round and populate the next one.

    A round that is already completed is left alone (advanced is False).
    Raises IncompleteRoundError while any matchup in the round is open.
    Completing the Final finishes the tournament and crowns the champion.
    """
    round_obj = state.get_round(round_id)
    if round_obj.status == COMPLETED:
        final = state.round_by_number(round_obj.number + 1) is None
        return _advance_result(round_obj, False, champion_id=state.champion_id if final else None)

    matchups = state.matchups_for_round(round_obj.id)
    still_open = [m.position for m in matchups if m.status != COMPLETED]
    if still_open:
        raise IncompleteRoundError(
            f"{round_obj.name} cannot advance: matchups at positions {still_open} are not completed")

    round_obj.status = COMPLETED
    next_round = state.round_by_number(round_obj.number + 1)

    if next_round is None:
        champion_id = matchups[0].winner_id
        state.champion_id = champion_id
        state.status = COMPLETED
        logger.info("Tournament %s completed, champion %s", state.tournament_id, champion_id)
        return _advance_result(round_obj, True, champion_id=champion_id)

    winners = [m.winner_id for m in matchups]
    if next_round.name == SEMIFINALS:
        pairs = _crossover_pairs(state, winners)
    else:
        pairs = _default_pairs(winners)

    next_matchups = state.matchups_for_round(next_round.id)
    if len(next_matchups) != len(pairs):
        raise ConflictError(
            f"{next_round.name} has {len(next_matchups)} matchups but {len(pairs)} pairings were produced")

    for matchup, (contestant_a_id, contestant_b_id) in zip(next_matchups, pairs):
        matchup.contestant_a_id = contestant_a_id
        matchup.contestant_b_id = contestant_b_id
        matchup.winner_id = None
        matchup.status = ACTIVE

    next_round.status = ACTIVE
    logger.info("Tournament %s advanced from %s to %s", state.tournament_id, round_obj.name, next_round.name)
    return _advance_result(round_obj, True, next_round=next_round)


def force_advance(state: TournamentState, policy: Optional[TieBreakPolicy] = None) -> Dict:
    """
    Close every open matchup of the active round, then advance it.

    Leaders win; leaderless matchups need a policy. If any leaderless
    matchup has none, PolicyError is raised before anything is closed.
    """
    round_obj = state.active_round()
    if round_obj is None:
        raise ConflictError(f"Tournament {state.tournament_id} has no active round")

    open_matchups = [m for m in state.matchups_for_round(round_obj.id) if m.status == ACTIVE]
    if policy is None:
        undecided = [m.position for m in open_matchups if compute_tally(state, m).leader_id is None]
        if undecided:
            raise PolicyError(
                f"{round_obj.name} matchups at positions {undecided} have no leader; a tie-break policy is required")

    winners_declared = 0
    ties_resolved = 0
    for matchup in open_matchups:
        outcome = close_matchup(state, matchup.id, policy)
        winners_declared += 1
        if outcome['tie_resolved']:
            ties_resolved += 1

    result = try_advance_round(state, round_obj.id)
    result['winners_declared'] = winners_declared
    result['ties_resolved'] = ties_resolved
    return result


def reset_tournament(state: TournamentState) -> Dict:
    """Delete every round, matchup and vote; the field stays for a rebuild."""
    removed = {
        'rounds': len(state.rounds),
        'matchups': len(state.matchups),
        'votes': len(state.votes),
    }
    state.clear_bracket()
    logger.info("Tournament %s reset: removed %d rounds, %d matchups, %d votes", state.tournament_id,
                removed['rounds'], removed['matchups'], removed['votes'])
    return removed
