"""
Single elimination bracket generation and playoff population.
"""
import logging
import math
from typing import Dict, List, Optional

from core.errors import ConfigurationError, MatchStateError
from core.models import (
    ACTIVE, DONE, PENDING, THIRD_PLACE_ROUND_NAME, Competition, Match, MatchSet, Pool, Team,
)
from core.progression import advance_byes, make_bye

logger = logging.getLogger(__name__)

ELIMINATION_BRACKET_SIZES = (8, 16, 32, 64)

# Fixed first-round seeding orders; consecutive entries meet in round one.
SEEDING_ORDERS = {
    8: [1, 8, 4, 5, 3, 6, 2, 7],
    16: [1, 16, 8, 9, 5, 12, 4, 13, 6, 11, 3, 14, 7, 10, 2, 15],
    32: [1, 32, 17, 16, 9, 24, 25, 8, 5, 28, 21, 12, 13, 20, 29, 4,
         3, 30, 19, 14, 11, 22, 27, 6, 7, 26, 23, 10, 15, 18, 31, 2],
}


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semi-Finals"
    elif teams_in_round == 8:
        return "Quarter-Finals"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def choose_elimination_bracket_size(num_teams: int) -> int:
    """
    Smallest standard elimination bracket (8, 16, 32 or 64) that holds every team.

    Larger fields get the next power of two, seeded with the generated order.
    """
    for size in ELIMINATION_BRACKET_SIZES:
        if num_teams <= size:
            return size
    size = calculate_bracket_size(num_teams)
    logger.warning("%d teams exceed the standard brackets; using a bracket of %d", num_teams, size)
    return size


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 4 teams: [1, 4, 2, 3]
    This gives matchups: 1v4, 2v3 and a 1v2 final (if chalk)
    """
    if bracket_size <= 2:
        return [1, 2][:max(bracket_size, 0)]

    half_size = bracket_size // 2
    upper_half = _generate_bracket_order(half_size)

    # Create lower half as complement
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    # Interleave: pair each upper seed with its complement
    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])

    return result


def get_seeding_order(bracket_size: int) -> List[int]:
    """First-round seed order for a bracket; seed 1 always meets the bottom seed."""
    if bracket_size in SEEDING_ORDERS:
        return list(SEEDING_ORDERS[bracket_size])
    if bracket_size == 64:
        order = []
        for i in range(1, 33):
            order.extend([i, 65 - i])
        return order
    return _generate_bracket_order(bracket_size)


def build_bracket_tree(match_set: MatchSet, schedule_id, bracket_size: int,
                       first_round_number: int = 1, third_place_match: bool = False) -> List[List[Match]]:
    """
    Create an empty elimination tree for ``bracket_size`` slots.

    Matches are created round by round first so that every one has an id,
    then the winner links (and semifinal loser links to the third-place
    match) are wired in a second pass. Returns the rounds, first to last.
    """
    if bracket_size < 2:
        return []

    rounds = []
    teams_in_round = bracket_size
    round_number = first_round_number
    while teams_in_round >= 2:
        round_name = get_round_name(teams_in_round)
        round_matches = []
        for number in range(1, teams_in_round // 2 + 1):
            round_matches.append(match_set.add(Match(
                schedule_id=schedule_id,
                round_number=round_number,
                round_name=round_name,
                match_number=number,
                status=PENDING,
            )))
        rounds.append(round_matches)
        teams_in_round //= 2
        round_number += 1

    third_place = None
    if third_place_match and len(rounds) >= 2:
        final = rounds[-1][0]
        third_place = match_set.add(Match(
            schedule_id=schedule_id,
            round_number=final.round_number,
            round_name=THIRD_PLACE_ROUND_NAME,
            match_number=final.match_number + 1,
            status=PENDING,
            is_third_place_match=True,
        ))

    for current, following in zip(rounds, rounds[1:]):
        for index, match in enumerate(current):
            match.next_match_id = following[index // 2].match_id
            match.match_position = index % 2 + 1

    if third_place is not None:
        for semifinal in rounds[-2]:
            semifinal.next_loser_match_id = third_place.match_id

    return rounds


def _settle_first_round_match(match: Match):
    if match.team1_id is not None and match.team2_id is not None:
        match.status = ACTIVE
        match.is_bye = False
        match.winner_id = None
    else:
        make_bye(match)


def generate_elimination_matches(teams: List[Team], competition: Competition) -> MatchSet:
    """
    Build a seeded single elimination bracket for the confirmed teams.

    Empty seed slots turn round-one matches into BYEs (or double BYEs),
    which are advanced straight away.
    """
    confirmed = [t for t in teams if t.is_confirmed and t.bracket_seed is not None]
    if len(confirmed) < 2:
        raise ConfigurationError("At least two seeded, confirmed teams are needed for an elimination bracket.")

    bracket_size = choose_elimination_bracket_size(len(confirmed))
    seed_to_team = {t.bracket_seed: t.team_id for t in confirmed}
    order = get_seeding_order(bracket_size)

    match_set = MatchSet()
    rounds = build_bracket_tree(match_set, competition.schedule_id, bracket_size,
                                first_round_number=1, third_place_match=competition.third_place_match)
    first_round = rounds[0]
    for index, match in enumerate(first_round):
        match.team1_id = seed_to_team.get(order[2 * index])
        match.team2_id = seed_to_team.get(order[2 * index + 1])
        _settle_first_round_match(match)

    byes = sum(1 for m in first_round if m.is_bye)
    logger.info("Elimination bracket of %d for %d teams (schedule %s): %d byes",
                bracket_size, len(confirmed), competition.schedule_id, byes)
    advance_byes(match_set, first_round)
    return match_set


def cross_pool_seed(qualifiers: List[List[int]], bracket_size: int) -> List[Optional[int]]:
    """
    Order pool qualifiers into first-round slots.

    ``qualifiers`` holds each pool's qualifying team ids in finishing order,
    pools in name order. Two pools sending two teams each use the fixed
    pattern A1, B2, B1, A2. Otherwise every pool winner is seeded before
    every runner-up (pool order within a finishing position) and the seeds
    are laid out by the standard bracket order. Missing seeds are None.
    """
    if bracket_size == 4 and len(qualifiers) == 2 and all(len(q) == 2 for q in qualifiers):
        pool_a, pool_b = qualifiers
        return [pool_a[0], pool_b[1], pool_b[0], pool_a[1]]

    seeds = []
    deepest = max((len(q) for q in qualifiers), default=0)
    for position in range(deepest):
        for pool_qualifiers in qualifiers:
            if position < len(pool_qualifiers):
                seeds.append(pool_qualifiers[position])

    return [seeds[seed - 1] if seed <= len(seeds) else None for seed in get_seeding_order(bracket_size)]


def generate_playoff_tree(match_set: MatchSet, competition: Competition, num_pools: int) -> List[List[Match]]:
    """Add the empty cross-pool playoff tree that follows the pool stage."""
    total_advancing = num_pools * competition.winners_per_pool
    bracket_size = calculate_bracket_size(total_advancing)
    if bracket_size <= 1:
        return []
    return build_bracket_tree(match_set, competition.schedule_id, bracket_size,
                              first_round_number=2, third_place_match=competition.third_place_match)


def playoff_matches(match_set: MatchSet) -> List[Match]:
    """Matches of the playoff tree that follows a pool stage."""
    return [m for m in match_set.ordered() if m.round_number >= 2]


def pool_stage_matches(match_set: MatchSet) -> List[Match]:
    return [m for m in match_set.ordered() if m.round_number == 1]


def populate_playoff(match_set: MatchSet, qualifiers: List[List[int]]) -> List[Match]:
    """
    Put the pool qualifiers into the pre-built playoff tree.

    The whole tree is cleared first, so populating again after a pool
    result changed starts the playoff over. Returns the first-round matches.
    """
    tree = playoff_matches(match_set)
    if not tree:
        return []
    for match in tree:
        match.reset()

    first_round_number = min(m.round_number for m in tree)
    first_round = [m for m in tree if m.round_number == first_round_number and not m.is_third_place_match]
    slots = cross_pool_seed(qualifiers, len(first_round) * 2)
    for index, match in enumerate(first_round):
        match.team1_id = slots[2 * index]
        match.team2_id = slots[2 * index + 1]
        _settle_first_round_match(match)

    advance_byes(match_set, first_round)
    return first_round


def advance_to_playoff(match_set: MatchSet, pools: List[Pool], teams: List[Team],
                       competition: Competition) -> Dict[str, List[int]]:
    """
    Seed the playoff tree from the finished pool stage.

    Every pool match must be Done. The top ``winners_per_pool`` teams of
    each pool qualify. Returns ``{pool_name: [qualifier ids]}``.
    """
    from core.standings import calculate_pool_standings

    pool_matches = pool_stage_matches(match_set)
    unfinished = [m for m in pool_matches if m.status != DONE]
    if unfinished:
        raise MatchStateError(
            f"All pool matches must be completed before the playoff; {len(unfinished)} still open."
        )
    if not playoff_matches(match_set):
        raise MatchStateError("This competition has no playoff bracket to advance to.")

    standings = calculate_pool_standings(match_set, pools, teams, competition)
    ordered_pools = sorted(pools, key=lambda p: p.name)
    qualified = {}
    for pool in ordered_pools:
        rows = standings.get(pool.name, [])
        qualified[pool.name] = [row['team_id'] for row in rows[:competition.winners_per_pool]]

    populate_playoff(match_set, [qualified[p.name] for p in ordered_pools])
    logger.info("Playoff populated for schedule %s: %s", competition.schedule_id, qualified)
    return qualified
