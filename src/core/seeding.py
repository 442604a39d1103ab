"""
Pool membership and bracket seed assignment for confirmed teams.
"""
import logging
import random
import string
from typing import Dict, List, Optional

from core.models import Pool, Team

logger = logging.getLogger(__name__)


def create_pools(num_pool: int) -> List[Pool]:
    """Create ``num_pool`` pools named "Pool A", "Pool B", ..."""
    pools = []
    for i in range(num_pool):
        if i < len(string.ascii_uppercase):
            name = f"Pool {string.ascii_uppercase[i]}"
        else:
            name = f"Pool {i + 1}"
        pools.append(Pool(pool_id=i + 1, name=name))
    return pools


def snake_order(num_items: int, num_pools: int) -> List[int]:
    """
    Pool index for each of ``num_items`` items in snake order.

    Forward through pools 0..N-1, then backward N-1..0, repeating, so
    4 pools give 0, 1, 2, 3, 3, 2, 1, 0, 0, 1, ...
    """
    if num_pools <= 0:
        return []
    order = []
    index = 0
    forward = True
    for _ in range(num_items):
        order.append(index)
        if forward:
            if index == num_pools - 1:
                forward = False
            else:
                index += 1
        else:
            if index == 0:
                forward = True
            else:
                index -= 1
    return order


def _draw_order(teams: List[Team]) -> List[Team]:
    # Seeded teams first, by seed, so snake seeding spreads the strongest teams.
    return sorted(teams, key=lambda t: (t.bracket_seed is None, t.bracket_seed or 0, t.team_id))


def assign_pools(teams: List[Team], pools: List[Pool]) -> Dict[int, int]:
    """
    Distribute confirmed teams across pools.

    When no confirmed team has a pool yet, every team is placed in snake
    order. Teams confirmed later are added to the smallest pool. Returns
    ``{team_id: pool_id}`` for the teams that were assigned; empty when
    there is nothing to do or fewer than two confirmed teams.
    """
    confirmed = [t for t in teams if t.is_confirmed]
    if len(confirmed) < 2 or not pools:
        return {}

    pool_ids = [p.pool_id for p in pools]
    unassigned = [t for t in confirmed if t.pool_id not in pool_ids]
    if not unassigned:
        return {}

    assignments = {}
    if len(unassigned) == len(confirmed):
        ordered = _draw_order(confirmed)
        for team, pool_index in zip(ordered, snake_order(len(ordered), len(pools))):
            team.pool_id = pool_ids[pool_index]
            assignments[team.team_id] = team.pool_id
    else:
        sizes = {pool_id: 0 for pool_id in pool_ids}
        for team in confirmed:
            if team.pool_id in sizes:
                sizes[team.pool_id] += 1
        for team in _draw_order(unassigned):
            smallest = min(pool_ids, key=lambda pid: sizes[pid])
            team.pool_id = smallest
            sizes[smallest] += 1
            assignments[team.team_id] = smallest

    logger.info("Assigned %d teams to %d pools", len(assignments), len(pools))
    return assignments


def assign_bracket_seeds(teams: List[Team], rng: Optional[random.Random] = None,
                         reseed: bool = False) -> Dict[int, int]:
    """
    Give every confirmed team a unique bracket seed in 1..N.

    Existing valid seeds are kept; teams without one receive the remaining
    seed numbers in a uniformly shuffled order. ``reseed`` discards all
    existing seeds first. Returns ``{team_id: seed}`` for the seeds written.
    """
    confirmed = [t for t in teams if t.is_confirmed]
    if len(confirmed) < 2:
        return {}
    rng = rng or random.Random()

    if reseed:
        for team in confirmed:
            team.bracket_seed = None

    count = len(confirmed)
    taken = set()
    needs_seed = []
    for team in sorted(confirmed, key=lambda t: t.team_id):
        seed = team.bracket_seed
        if seed is not None and 1 <= seed <= count and seed not in taken:
            taken.add(seed)
        else:
            needs_seed.append(team)

    if not needs_seed:
        return {}

    free_seeds = [s for s in range(1, count + 1) if s not in taken]
    rng.shuffle(free_seeds)
    assignments = {}
    for team, seed in zip(needs_seed, free_seeds):
        team.bracket_seed = seed
        assignments[team.team_id] = seed

    logger.info("Assigned %d bracket seeds", len(assignments))
    return assignments
