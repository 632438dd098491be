"""
Tie resolution for matchups that must close without a vote leader.

Resolution is always opt-in: a matchup only closes on a tie when the
caller (or the tournament settings) names one of these policies.
"""
from typing import Dict, Optional

from contest.errors import ConflictError, PolicyError
from contest.models import Contestant, Matchup

FAVOR_HIGHER_SEED = 'favor-higher-seed'
FAVOR_CONTESTANT_A = 'favor-contestant-a'
EXTERNAL_DECISION = 'external-decision'
POLICY_KINDS = (FAVOR_HIGHER_SEED, FAVOR_CONTESTANT_A, EXTERNAL_DECISION)

# Voter id recorded on tie-break votes when no operator is named
SYSTEM_VOTER_ID = 'system-tiebreaker'


class TieBreakPolicy:
    def __init__(self, kind: str, contestant_id: Optional[str] = None, decided_by: Optional[str] = None):
        if kind not in POLICY_KINDS:
            raise PolicyError(f"Unknown tie-break policy {kind!r}; expected one of {', '.join(POLICY_KINDS)}")
        if kind == EXTERNAL_DECISION and not contestant_id:
            raise PolicyError("An external decision must name the winning contestant")
        self.kind = kind
        self.contestant_id = contestant_id
        self.decided_by = decided_by or SYSTEM_VOTER_ID

    @classmethod
    def favor_higher_seed(cls) -> 'TieBreakPolicy':
        return cls(FAVOR_HIGHER_SEED)

    @classmethod
    def favor_contestant_a(cls) -> 'TieBreakPolicy':
        return cls(FAVOR_CONTESTANT_A)

    @classmethod
    def external_decision(cls, contestant_id: str, decided_by: Optional[str] = None) -> 'TieBreakPolicy':
        return cls(EXTERNAL_DECISION, contestant_id=contestant_id, decided_by=decided_by)

    @classmethod
    def parse(cls, value) -> Optional['TieBreakPolicy']:
        """
        Build a policy from settings or request data.

        Accepts None, a policy, a policy name ('favor-higher-seed'), or a
        mapping such as {'external-decision': <contestant id>} or
        {'kind': ..., 'contestant_id': ..., 'decided_by': ...}.
        """
        if value is None or isinstance(value, TieBreakPolicy):
            return value
        if isinstance(value, str):
            return cls(_normalize_kind(value))
        if isinstance(value, dict):
            if 'kind' in value:
                return cls(_normalize_kind(value['kind']), value.get('contestant_id'), value.get('decided_by'))
            if len(value) == 1:
                kind, contestant_id = next(iter(value.items()))
                return cls(_normalize_kind(kind), contestant_id)
        raise PolicyError(f"Cannot read tie-break policy from {value!r}")

    def to_dict(self) -> Dict:
        return {'kind': self.kind, 'contestant_id': self.contestant_id, 'decided_by': self.decided_by}

    def __repr__(self):
        if self.kind == EXTERNAL_DECISION:
            return f"TieBreakPolicy({self.kind}, contestant={self.contestant_id}, by={self.decided_by})"
        return f"TieBreakPolicy({self.kind})"


def _normalize_kind(kind) -> str:
    return str(kind).strip().lower().replace('_', '-')


def resolve_tie(matchup: Matchup, contestants: Dict[str, Contestant], policy: TieBreakPolicy) -> str:
    """
    Pick the winner of a leaderless matchup under the given policy.

    The result is always one of the matchup's two contestants. Equal seeds
    under favor-higher-seed fall back to contestant A.
    """
    if not matchup.is_populated:
        raise ConflictError(f"Matchup {matchup.id} does not have two contestants yet")
    if policy is None:
        raise PolicyError(f"Matchup {matchup.id} has no leader and no tie-break policy was given")

    if policy.kind == FAVOR_CONTESTANT_A:
        return matchup.contestant_a_id

    if policy.kind == FAVOR_HIGHER_SEED:
        seed_a = contestants[matchup.contestant_a_id].seed
        seed_b = contestants[matchup.contestant_b_id].seed
        if seed_b < seed_a:
            return matchup.contestant_b_id
        return matchup.contestant_a_id

    if not matchup.has_contestant(policy.contestant_id):
        raise PolicyError(f"Contestant {policy.contestant_id} is not in matchup {matchup.id}")
    return policy.contestant_id
