"""
Bracket construction: validate the field and lay out every round.

Round 1 matchups are concatenated in region order (region 1 first), and
every later round is created empty with half the previous round's
matchups. Progression relies on that order to find each region's winner.
"""
import logging
from typing import Dict, Iterable, List, Tuple

from contest.errors import ValidationError
from contest.models import ACTIVE, REGIONS, UPCOMING, Contestant, Matchup, Round, new_id
from contest.repository import TournamentState
from contest.seeding import assign_seed_pairs, is_power_of_two

logger = logging.getLogger(__name__)

MIN_CONTESTANTS = 4

# Semifinal pairing by region: 1 meets 3, 2 meets 4
SEMIFINAL_REGION_PAIRS: Tuple[Tuple[int, int], ...] = ((1, 3), (2, 4))


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the name of a round from its distance to the Final."""
    remaining = total_rounds - round_number
    if remaining == 0:
        return "Final"
    elif remaining == 1:
        return "Semifinals"
    elif remaining == 2:
        return "Quarterfinals"
    else:
        return f"Round {round_number}"


def calculate_total_rounds(num_contestants: int) -> int:
    """log2 of the field size; the field must be a power of two."""
    return num_contestants.bit_length() - 1


def _whole_number(value, field: str, label) -> int:
    """int() without truncation: 3, 3.0 and '3' pass; 2.7, True and 'top' do not."""
    if isinstance(value, bool):
        raise ValidationError(f"Contestant {label} has a non-integer {field}: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Contestant {label} has a non-integer {field}: {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Contestant {label} has a non-integer {field}: {value!r}") from None


def parse_contestants(items: Iterable) -> List[Contestant]:
    """
    Turn raw records (dicts from YAML/JSON, or Contestant objects) into
    Contestants. Regions and seeds must be integers.
    """
    contestants = []
    for item in items:
        if isinstance(item, Contestant):
            contestants.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError(f"Contestant entry must be a mapping, got {item!r}")
        name = item.get('name')
        if not name and not item.get('id'):
            raise ValidationError("Contestant entry needs a name or id")
        label = name or item.get('id')
        for field in ('region', 'seed'):
            if field not in item:
                raise ValidationError(f"Contestant {label} is missing {field}")
        region = _whole_number(item['region'], 'region', label)
        seed = _whole_number(item['seed'], 'seed', label)
        contestants.append(Contestant(
            id=str(item.get('id') or new_id()),
            name=name or str(item['id']),
            region=region,
            seed=seed,
            active=bool(item.get('active', True)),
        ))
    return contestants


def parse_field(data) -> List[Contestant]:
    """
    Read a field as stored in contestants.yaml.

    Either a list of contestant records, or a mapping of region number to
    names listed in seed order:

        1: [Alice, Bob, Carol, Dave]
        2: [...]
    """
    if not data:
        return []
    if isinstance(data, list):
        return parse_contestants(data)
    if not isinstance(data, dict):
        raise ValidationError("Contestant file must hold a list or a region mapping")

    records = []
    for region, entries in data.items():
        for seed, entry in enumerate(entries or [], start=1):
            record = dict(entry) if isinstance(entry, dict) else {'name': entry}
            record.setdefault('region', region)
            record.setdefault('seed', seed)
            records.append(record)
    return parse_contestants(records)


def validate_contestants(contestants: List[Contestant]) -> Dict[int, List[Contestant]]:
    """
    Check the structural invariants of the field and group it by region.

    Inactive (withdrawn) contestants are ignored. Raises ValidationError on:
    - fewer than 4 active contestants
    - a count that does not split into 4 equal regions
    - a region outside 1..4 or a region size that is not a power of two
    - seeds within a region that are not exactly 1..K
    """
    active = [c for c in contestants if c.active]
    if len(active) < MIN_CONTESTANTS:
        raise ValidationError(f"At least {MIN_CONTESTANTS} active contestants are required, got {len(active)}")

    ids = [c.id for c in active]
    if len(set(ids)) != len(ids):
        raise ValidationError("Contestant ids must be unique")

    if len(active) % len(REGIONS) != 0:
        raise ValidationError(f"{len(active)} contestants cannot be split into {len(REGIONS)} equal regions")

    regions: Dict[int, List[Contestant]] = {region: [] for region in REGIONS}
    for contestant in active:
        if contestant.region not in regions:
            raise ValidationError(f"Contestant {contestant.id} has region {contestant.region}; regions are 1-4")
        regions[contestant.region].append(contestant)

    region_size = len(active) // len(REGIONS)
    for region, members in regions.items():
        if len(members) != region_size:
            raise ValidationError(f"Region {region} has {len(members)} contestants, expected {region_size}")

    if not is_power_of_two(region_size):
        raise ValidationError(f"Region size {region_size} is not a power of two")

    for region, members in regions.items():
        if region_size == 1:
            if members[0].seed != 1:
                raise ValidationError(f"Region {region} has a single contestant, whose seed must be 1")
        else:
            # Raises on gaps or duplicates
            assign_seed_pairs(members)
        members.sort(key=lambda c: c.seed)

    return regions


def _first_round_pairs(regions: Dict[int, List[Contestant]]) -> List[Tuple[Contestant, Contestant]]:
    region_size = len(regions[REGIONS[0]])
    if region_size == 1:
        # Four-contestant field: round 1 is already the Semifinals
        return [(regions[a][0], regions[b][0]) for a, b in SEMIFINAL_REGION_PAIRS]

    pairs = []
    for region in REGIONS:
        pairs.extend(assign_seed_pairs(regions[region]))
    return pairs


def build_bracket(state: TournamentState, contestants: List[Contestant]) -> List[Round]:
    """
    Materialize every round from round 1 through the Final.

    Any existing rounds, matchups and votes are discarded first. Round 1 and
    its matchups start active; later rounds are empty and upcoming.
    """
    regions = validate_contestants(contestants)

    state.clear_bracket()
    state.contestants.clear()
    for contestant in contestants:
        state.add_contestant(contestant)

    num_contestants = sum(len(members) for members in regions.values())
    total_rounds = calculate_total_rounds(num_contestants)
    first_round_pairs = _first_round_pairs(regions)

    rounds = []
    for round_number in range(1, total_rounds + 1):
        round_obj = Round(
            id=new_id(),
            tournament_id=state.tournament_id,
            number=round_number,
            name=get_round_name(round_number, total_rounds),
            status=ACTIVE if round_number == 1 else UPCOMING,
        )
        state.add_round(round_obj)
        rounds.append(round_obj)

        if round_number == 1:
            for position, (contestant_a, contestant_b) in enumerate(first_round_pairs, start=1):
                state.add_matchup(Matchup(
                    id=new_id(),
                    round_id=round_obj.id,
                    position=position,
                    contestant_a_id=contestant_a.id,
                    contestant_b_id=contestant_b.id,
                    status=ACTIVE,
                ))
        else:
            num_matchups = num_contestants // (2 ** round_number)
            for position in range(1, num_matchups + 1):
                state.add_matchup(Matchup(id=new_id(), round_id=round_obj.id, position=position))

    state.status = ACTIVE
    logger.info("Built bracket for tournament %s: %d contestants, %d rounds",
                state.tournament_id, num_contestants, total_rounds)
    return rounds
