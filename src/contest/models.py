"""
Records for a bracket-style popularity contest.

Plain classes with dict round-tripping so they can be stored in YAML.
"""
import uuid
from typing import Dict, Optional

UPCOMING = 'upcoming'
ACTIVE = 'active'
COMPLETED = 'completed'

# Tournament lifecycle
DRAFT = 'draft'

REGIONS = (1, 2, 3, 4)


def new_id() -> str:
    return uuid.uuid4().hex


class Contestant:
    def __init__(self, id, name, region, seed, active=True):
        self.id = id
        self.name = name
        self.region = region
        self.seed = seed
        self.active = active

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'region': self.region,
            'seed': self.seed,
            'active': self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Contestant':
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            region=data.get('region'),
            seed=data.get('seed'),
            active=data.get('active', True),
        )

    def __repr__(self):
        return f"Contestant(id={self.id}, name={self.name}, region={self.region}, seed={self.seed})"


class Round:
    def __init__(self, id, tournament_id, number, name, status=UPCOMING):
        self.id = id
        self.tournament_id = tournament_id
        self.number = number
        self.name = name
        self.status = status

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'number': self.number,
            'name': self.name,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Round':
        return cls(
            id=data['id'],
            tournament_id=data['tournament_id'],
            number=data['number'],
            name=data['name'],
            status=data.get('status', UPCOMING),
        )

    def __repr__(self):
        return f"Round(number={self.number}, name={self.name}, status={self.status})"


class Matchup:
    def __init__(self, id, round_id, position, contestant_a_id=None, contestant_b_id=None,
                 winner_id=None, status=UPCOMING):
        self.id = id
        self.round_id = round_id
        self.position = position
        self.contestant_a_id = contestant_a_id
        self.contestant_b_id = contestant_b_id
        self.winner_id = winner_id
        self.status = status

    @property
    def is_populated(self) -> bool:
        """True once both contestant slots are filled."""
        return self.contestant_a_id is not None and self.contestant_b_id is not None

    def has_contestant(self, contestant_id: Optional[str]) -> bool:
        return contestant_id is not None and contestant_id in (self.contestant_a_id, self.contestant_b_id)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round_id': self.round_id,
            'position': self.position,
            'contestant_a_id': self.contestant_a_id,
            'contestant_b_id': self.contestant_b_id,
            'winner_id': self.winner_id,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Matchup':
        return cls(
            id=data['id'],
            round_id=data['round_id'],
            position=data['position'],
            contestant_a_id=data.get('contestant_a_id'),
            contestant_b_id=data.get('contestant_b_id'),
            winner_id=data.get('winner_id'),
            status=data.get('status', UPCOMING),
        )

    def __repr__(self):
        return (f"Matchup(position={self.position}, a={self.contestant_a_id}, "
                f"b={self.contestant_b_id}, winner={self.winner_id}, status={self.status})")


class Vote:
    def __init__(self, id, matchup_id, voter_id, contestant_id, is_tiebreak=False):
        self.id = id
        self.matchup_id = matchup_id
        self.voter_id = voter_id
        self.contestant_id = contestant_id
        self.is_tiebreak = is_tiebreak

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'matchup_id': self.matchup_id,
            'voter_id': self.voter_id,
            'contestant_id': self.contestant_id,
            'is_tiebreak': self.is_tiebreak,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Vote':
        return cls(
            id=data['id'],
            matchup_id=data['matchup_id'],
            voter_id=data['voter_id'],
            contestant_id=data['contestant_id'],
            is_tiebreak=data.get('is_tiebreak', False),
        )

    def __repr__(self):
        kind = 'tiebreak' if self.is_tiebreak else 'regular'
        return f"Vote(voter={self.voter_id}, matchup={self.matchup_id}, pick={self.contestant_id}, {kind})"
