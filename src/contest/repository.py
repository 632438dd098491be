"""
Tournament storage.

A TournamentState is the unit of work for one tournament: every engine
operation loads one, mutates it, and the repository commits it only if the
operation finished without raising. Each tournament has its own lock, so
votes and round advancement for a tournament are serialized.
"""
import logging
import os
import re
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import yaml
from filelock import FileLock

from contest.errors import ConflictError, NotFoundError, ValidationError
from contest.models import ACTIVE, DRAFT, Contestant, Matchup, Round, Vote

logger = logging.getLogger(__name__)

BRACKET_FILENAME = 'bracket.yaml'
SETTINGS_FILENAME = 'settings.yaml'
_TOURNAMENT_ID_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


class TournamentState:
    """All records of one tournament plus the uniqueness rules over them."""

    def __init__(self, tournament_id: str, status: str = DRAFT, champion_id: Optional[str] = None):
        self.tournament_id = tournament_id
        self.status = status
        self.champion_id = champion_id
        self.contestants: Dict[str, Contestant] = {}
        self.rounds: Dict[str, Round] = {}
        self.matchups: Dict[str, Matchup] = {}
        self.votes: Dict[str, Vote] = {}

    # -- inserts -------------------------------------------------------

    def add_contestant(self, contestant: Contestant):
        if contestant.id in self.contestants:
            raise ValidationError(f"Duplicate contestant id {contestant.id}")
        for other in self.contestants.values():
            if other.active and contestant.active and other.region == contestant.region \
                    and other.seed == contestant.seed:
                raise ValidationError(
                    f"Seed {contestant.seed} in region {contestant.region} is already taken by {other.id}")
        self.contestants[contestant.id] = contestant

    def add_round(self, round_obj: Round):
        if any(r.number == round_obj.number for r in self.rounds.values()):
            raise ValidationError(f"Round {round_obj.number} already exists")
        self.rounds[round_obj.id] = round_obj

    def add_matchup(self, matchup: Matchup):
        if matchup.round_id not in self.rounds:
            raise NotFoundError(f"Round {matchup.round_id} not found")
        for other in self.matchups.values():
            if other.round_id == matchup.round_id and other.position == matchup.position:
                raise ValidationError(f"Position {matchup.position} is already used in round {matchup.round_id}")
        self.matchups[matchup.id] = matchup

    def add_vote(self, vote: Vote):
        for other in self.votes.values():
            if other.matchup_id == vote.matchup_id and other.voter_id == vote.voter_id \
                    and other.is_tiebreak == vote.is_tiebreak:
                kind = 'tie-break' if vote.is_tiebreak else 'regular'
                raise ConflictError(f"Voter {vote.voter_id} already has a {kind} vote on matchup {vote.matchup_id}")
        self.votes[vote.id] = vote

    def remove_vote(self, vote_id: str):
        self.votes.pop(vote_id, None)

    # -- lookups -------------------------------------------------------

    def get_contestant(self, contestant_id: str) -> Contestant:
        try:
            return self.contestants[contestant_id]
        except KeyError:
            raise NotFoundError(f"Contestant {contestant_id} not found") from None

    def get_round(self, round_id: str) -> Round:
        try:
            return self.rounds[round_id]
        except KeyError:
            raise NotFoundError(f"Round {round_id} not found") from None

    def get_matchup(self, matchup_id: str) -> Matchup:
        try:
            return self.matchups[matchup_id]
        except KeyError:
            raise NotFoundError(f"Matchup {matchup_id} not found") from None

    def rounds_in_order(self) -> List[Round]:
        return sorted(self.rounds.values(), key=lambda r: r.number)

    def round_by_number(self, number: int) -> Optional[Round]:
        for round_obj in self.rounds.values():
            if round_obj.number == number:
                return round_obj
        return None

    def active_round(self) -> Optional[Round]:
        active = [r for r in self.rounds.values() if r.status == ACTIVE]
        return active[0] if active else None

    def matchups_for_round(self, round_id: str) -> List[Matchup]:
        return sorted((m for m in self.matchups.values() if m.round_id == round_id),
                      key=lambda m: m.position)

    def votes_for_matchup(self, matchup_id: str, include_tiebreak: bool = False) -> List[Vote]:
        return [v for v in self.votes.values()
                if v.matchup_id == matchup_id and (include_tiebreak or not v.is_tiebreak)]

    def votes_for_voter(self, voter_id: str) -> List[Vote]:
        return [v for v in self.votes.values() if v.voter_id == voter_id]

    def regular_vote(self, voter_id: str, matchup_id: str) -> Optional[Vote]:
        for vote in self.votes.values():
            if vote.voter_id == voter_id and vote.matchup_id == matchup_id and not vote.is_tiebreak:
                return vote
        return None

    # -- bulk ----------------------------------------------------------

    def clear_bracket(self):
        """Drop rounds, matchups and votes; contestants stay for a rebuild."""
        self.rounds.clear()
        self.matchups.clear()
        self.votes.clear()
        self.status = DRAFT
        self.champion_id = None

    def to_dict(self) -> Dict:
        return {
            'tournament_id': self.tournament_id,
            'status': self.status,
            'champion_id': self.champion_id,
            'contestants': [c.to_dict() for c in self.contestants.values()],
            'rounds': [r.to_dict() for r in self.rounds.values()],
            'matchups': [m.to_dict() for m in self.matchups.values()],
            'votes': [v.to_dict() for v in self.votes.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'TournamentState':
        state = cls(data['tournament_id'], data.get('status', DRAFT), data.get('champion_id'))
        for item in data.get('contestants') or []:
            contestant = Contestant.from_dict(item)
            state.contestants[contestant.id] = contestant
        for item in data.get('rounds') or []:
            round_obj = Round.from_dict(item)
            state.rounds[round_obj.id] = round_obj
        for item in data.get('matchups') or []:
            matchup = Matchup.from_dict(item)
            state.matchups[matchup.id] = matchup
        for item in data.get('votes') or []:
            vote = Vote.from_dict(item)
            state.votes[vote.id] = vote
        return state

    def __repr__(self):
        return (f"TournamentState(id={self.tournament_id}, status={self.status}, "
                f"rounds={len(self.rounds)}, matchups={len(self.matchups)}, votes={len(self.votes)})")


class Repository:
    """
    Transactional store of TournamentState objects.

    Subclasses provide _lock_for, _load and _save.
    """

    @contextmanager
    def transaction(self, tournament_id: str) -> Iterator[TournamentState]:
        """Yield a working copy; commit it only if the block does not raise."""
        with self._lock_for(tournament_id):
            state = self._load(tournament_id)
            yield state
            self._save(tournament_id, state)

    def snapshot(self, tournament_id: str) -> TournamentState:
        """Read a consistent copy without committing anything."""
        with self._lock_for(tournament_id):
            return self._load(tournament_id)

    def lock(self, tournament_id: str):
        """Hold the tournament lock around work on its other files."""
        return self._lock_for(tournament_id)

    def delete(self, tournament_id: str):
        raise NotImplementedError

    def _lock_for(self, tournament_id: str):
        raise NotImplementedError

    def _load(self, tournament_id: str) -> TournamentState:
        raise NotImplementedError

    def _save(self, tournament_id: str, state: TournamentState):
        raise NotImplementedError


class InMemoryRepository(Repository):
    def __init__(self):
        self._states: Dict[str, Dict] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, tournament_id: str):
        with self._registry_lock:
            if tournament_id not in self._locks:
                self._locks[tournament_id] = threading.RLock()
            return self._locks[tournament_id]

    def _load(self, tournament_id: str) -> TournamentState:
        data = self._states.get(tournament_id)
        if data is None:
            return TournamentState(tournament_id)
        return TournamentState.from_dict(data)

    def _save(self, tournament_id: str, state: TournamentState):
        self._states[tournament_id] = state.to_dict()

    def delete(self, tournament_id: str):
        with self._lock_for(tournament_id):
            self._states.pop(tournament_id, None)


class YamlRepository(Repository):
    """One bracket.yaml per tournament directory, guarded by a file lock."""

    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self._locks: Dict[str, tuple] = {}
        self._registry_lock = threading.Lock()

    def tournament_dir(self, tournament_id: str) -> str:
        if not isinstance(tournament_id, str) or not _TOURNAMENT_ID_RE.match(tournament_id):
            raise ValidationError(f"Invalid tournament id {tournament_id!r}: letters, numbers, '-' and '_' only")
        return os.path.join(self.data_dir, tournament_id)

    def _bracket_path(self, tournament_id: str) -> str:
        return os.path.join(self.tournament_dir(tournament_id), BRACKET_FILENAME)

    @contextmanager
    def _lock_for(self, tournament_id: str):
        # Thread lock first: other processes are excluded by the file lock
        path = self._bracket_path(tournament_id)
        with self._registry_lock:
            if path not in self._locks:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                self._locks[path] = (threading.RLock(), FileLock(path + '.lock', timeout=self.lock_timeout))
            thread_lock, file_lock = self._locks[path]
        with thread_lock, file_lock:
            yield

    def _load(self, tournament_id: str) -> TournamentState:
        path = self._bracket_path(tournament_id)
        if not os.path.exists(path):
            return TournamentState(tournament_id)
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data:
            return TournamentState(tournament_id)
        return TournamentState.from_dict(data)

    def _save(self, tournament_id: str, state: TournamentState):
        path = self._bracket_path(tournament_id)
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.dump(state.to_dict(), f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)

    def delete(self, tournament_id: str):
        with self._lock_for(tournament_id):
            path = self._bracket_path(tournament_id)
            if os.path.exists(path):
                os.remove(path)
        logger.info("Deleted stored bracket for tournament %s", tournament_id)
