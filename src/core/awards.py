"""
Champion / runner-up resolution and award records.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from core.elimination import calculate_bracket_size
from core.errors import ConfigurationError
from core.models import (
    AWARD_TYPES, CHAMPION, DONE, FIRST_RUNNER_UP, POOL_PLAY, ROUND_ROBIN, ROUND_ROBIN_ROUND_NAME,
    SECOND_RUNNER_UP, Award, Competition, MatchSet,
)

logger = logging.getLogger(__name__)


def resolve_bracket_winners(match_set: MatchSet) -> Dict[str, Optional[int]]:
    """Champion and runner-up from the Final, 2nd runner-up from the third-place match."""
    final = match_set.final_match()
    third = match_set.third_place_match()
    return {
        CHAMPION: final.winner_id if final is not None and final.is_decided else None,
        FIRST_RUNNER_UP: final.loser_id() if final is not None else None,
        SECOND_RUNNER_UP: third.winner_id if third is not None and third.is_decided else None,
    }


def resolve_from_standings(rows: List[Dict]) -> Dict[str, Optional[int]]:
    """Top three of a finished standings table; 2nd runner-up needs a third team."""
    resolved = {CHAMPION: None, FIRST_RUNNER_UP: None, SECOND_RUNNER_UP: None}
    for position, row in zip((CHAMPION, FIRST_RUNNER_UP, SECOND_RUNNER_UP), rows):
        resolved[position] = row['team_id']
    return resolved


def resolve_award_teams(competition: Competition, match_set: MatchSet, teams, pools=None) -> Dict[str, Optional[int]]:
    """Work out which team currently holds each award position."""
    from core.standings import calculate_pool_standings, calculate_round_robin_standings

    unresolved = {CHAMPION: None, FIRST_RUNNER_UP: None, SECOND_RUNNER_UP: None}

    if competition.format == ROUND_ROBIN:
        matches = [m for m in match_set if m.round_name == ROUND_ROBIN_ROUND_NAME]
        if not matches or any(m.status != DONE for m in matches):
            return unresolved
        return resolve_from_standings(calculate_round_robin_standings(match_set, teams, competition))

    if match_set.final_match() is None and competition.format == POOL_PLAY and pools and len(pools) == 1:
        # No playoff tree: a lone pool decides the podium on its own.
        pool_matches = [m for m in match_set if m.round_number == 1]
        if not pool_matches or any(m.status != DONE for m in pool_matches):
            return unresolved
        standings = calculate_pool_standings(match_set, pools, teams, competition)
        return resolve_from_standings(standings.get(pools[0].name, []))

    return resolve_bracket_winners(match_set)


def apply_awards(awards: List[Award], resolved: Dict[str, Optional[int]]) -> List[Award]:
    """Write resolved team ids into the award records; returns only the ones that changed."""
    changed = []
    for award in awards:
        team_id = resolved.get(award.position)
        if award.team_id == team_id:
            continue
        logger.info("Award %s (schedule %s): team %s -> %s",
                    award.position, award.schedule_id, award.team_id, team_id)
        award.team_id = team_id
        award.awarded_date = datetime.now().isoformat()
        changed.append(award)
    return changed


def apply_bracket_awards(match_set: MatchSet, awards: List[Award]) -> List[Award]:
    return apply_awards(awards, resolve_bracket_winners(match_set))


def award_positions_for(competition: Competition) -> List[str]:
    """
    Positions that get an award record for this competition.

    The 2nd runner-up needs either a ranked table (round robin, or a pool
    stage with no playoff tree) or a playoff with semifinals and a
    third-place match. A Final-only playoff has no third place to award.
    """
    positions = [CHAMPION, FIRST_RUNNER_UP]
    if competition.format == ROUND_ROBIN:
        positions.append(SECOND_RUNNER_UP)
    elif competition.format == POOL_PLAY:
        bracket_size = calculate_bracket_size(competition.num_pool * competition.winners_per_pool)
        if bracket_size <= 1 or (competition.third_place_match and bracket_size >= 4):
            positions.append(SECOND_RUNNER_UP)
    elif competition.third_place_match:
        positions.append(SECOND_RUNNER_UP)
    return positions


def configure_awards(competition: Competition, awards: List[Award], award_name: str,
                     award_type: str = 'trophy', description: Optional[str] = None) -> List[Award]:
    """
    Create the award records for a schedule, or update their details.

    New records start without a team; the caller resolves them. Existing
    records only get their name, type and description changed.
    """
    award_name = (award_name or '').strip()
    if not award_name:
        raise ConfigurationError("Award name is required.")
    if award_type not in AWARD_TYPES:
        raise ConfigurationError(f"Unknown award type: {award_type}")

    if awards:
        for award in awards:
            award.award_name = award_name
            award.award_type = award_type
            award.description = description
        return awards

    created = []
    for award_id, position in enumerate(award_positions_for(competition), start=1):
        created.append(Award(
            award_id=award_id,
            schedule_id=competition.schedule_id,
            position=position,
            award_name=award_name,
            award_type=award_type,
            description=description,
        ))
    logger.info("Created %d awards for schedule %s", len(created), competition.schedule_id)
    return created
