"""
First-round seed pairing within a single region.
"""
from typing import List, Tuple

from contest.errors import ValidationError


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return isinstance(n, int) and n > 0 and (n & (n - 1)) == 0


def _generate_bracket_order(region_size: int) -> List[int]:
    """
    Generate the standard bracket order for one region.
    This ensures that if all higher seeds win, they meet as late as possible.

    For 8 seeds: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Regional final: 1v2 (if chalk)
    """
    if region_size == 2:
        return [1, 2]

    half_size = region_size // 2
    upper_half = _generate_bracket_order(half_size)

    # Pair each upper seed with its complement
    lower_half = [region_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])

    return result


def seed_pairs(region_size: int) -> List[Tuple[int, int]]:
    """
    Return the region_size/2 first-round seed pairs (i, K+1-i).

    Pairs are ordered by bracket position, so filling later rounds
    positionally keeps the top two seeds apart until the regional final.
    """
    if not is_power_of_two(region_size) or region_size < 2:
        raise ValidationError(f"Region size must be a power of two of at least 2, got {region_size}")

    order = _generate_bracket_order(region_size)
    return [(order[i], order[i + 1]) for i in range(0, len(order), 2)]


def assign_seed_pairs(contestants: List) -> List[Tuple]:
    """
    Pair the contestants of one region for round 1.

    Seeds must form the contiguous set 1..K with K a power of two.
    Returns a list of (higher_seed_contestant, lower_seed_contestant).
    """
    region_size = len(contestants)
    if not is_power_of_two(region_size) or region_size < 2:
        raise ValidationError(f"Region size must be a power of two of at least 2, got {region_size}")

    by_seed = {}
    for contestant in contestants:
        seed = contestant.seed
        if seed is None:
            raise ValidationError(f"Contestant {contestant.id} has no seed")
        if seed in by_seed:
            raise ValidationError(f"Seed {seed} is assigned to both {by_seed[seed].id} and {contestant.id}")
        by_seed[seed] = contestant

    expected = set(range(1, region_size + 1))
    if set(by_seed) != expected:
        missing = sorted(expected - set(by_seed))
        raise ValidationError(f"Seeds must be 1..{region_size} with no gaps; missing {missing}")

    return [(by_seed[high], by_seed[low]) for high, low in seed_pairs(region_size)]
