"""
Match generation for each competition format.
"""
import logging
from itertools import combinations
from typing import List, Tuple

from core.errors import ConfigurationError
from core.models import (
    ACTIVE, ELIMINATION, POOL_PLAY, ROUND_ROBIN, ROUND_ROBIN_ROUND_NAME, Competition, Match, MatchSet,
)
from core.elimination import generate_elimination_matches, generate_playoff_tree

logger = logging.getLogger(__name__)


def round_robin_pairs(team_ids: List[int], double_round_robin: bool = False) -> List[Tuple[int, int]]:
    """Every unordered pair once; a double round robin adds the return legs."""
    pairs = list(combinations(team_ids, 2))
    if double_round_robin:
        pairs += [(b, a) for a, b in pairs]
    return pairs


class TournamentFormat:
    """Builds the full match set for a competition from its teams and pools."""

    def __init__(self, competition: Competition, teams, pools=None):
        self.competition = competition
        self.teams = [t for t in teams if t.is_confirmed]
        self.pools = pools or []

    def _add_round_robin(self, match_set, team_ids, round_name):
        number = 1
        for team1_id, team2_id in round_robin_pairs(team_ids, self.competition.double_round_robin):
            match_set.add(Match(
                schedule_id=self.competition.schedule_id,
                round_number=1,
                round_name=round_name,
                match_number=number,
                team1_id=team1_id,
                team2_id=team2_id,
                status=ACTIVE,
            ))
            number += 1

    def round_robin(self) -> MatchSet:
        match_set = MatchSet()
        team_ids = [t.team_id for t in sorted(self.teams, key=lambda t: t.team_id)]
        self._add_round_robin(match_set, team_ids, ROUND_ROBIN_ROUND_NAME)
        return match_set

    def pool_play(self) -> MatchSet:
        match_set = MatchSet()
        pools = sorted(self.pools, key=lambda p: p.name)
        for pool in pools:
            team_ids = [t.team_id for t in sorted(self.teams, key=lambda t: t.team_id)
                        if t.pool_id == pool.pool_id]
            if len(team_ids) < 2:
                logger.warning("Pool %s (schedule %s) has fewer than 2 teams; no pool matches generated",
                               pool.name, self.competition.schedule_id)
                continue
            self._add_round_robin(match_set, team_ids, pool.name)

        unpooled = [t.name for t in self.teams if t.pool_id not in {p.pool_id for p in pools}]
        if unpooled:
            logger.warning("Teams without a pool are left out (schedule %s): %s",
                           self.competition.schedule_id, ', '.join(unpooled))

        generate_playoff_tree(match_set, self.competition, len(pools))
        return match_set

    def single_elimination(self) -> MatchSet:
        return generate_elimination_matches(self.teams, self.competition)

    def build(self) -> MatchSet:
        fmt = self.competition.format
        if len(self.teams) < 2:
            raise ConfigurationError("At least two confirmed teams are needed to start the competition.")
        if fmt == POOL_PLAY:
            if not self.pools:
                raise ConfigurationError("Generate the pool draw before starting the competition.")
            return self.pool_play()
        if fmt == ELIMINATION:
            return self.single_elimination()
        if fmt == ROUND_ROBIN:
            return self.round_robin()
        raise ConfigurationError(f"Unknown competition format: {fmt}")
