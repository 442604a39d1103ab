"""
Recalculation after the winner of a decided match changes.

Everything downstream of the edited match is reset, repopulated from the
matches that feed it, and every score that was already recorded there is
replayed against the teams that now occupy the slots.
"""
import logging
from typing import Dict, List, Optional, Tuple

from core.models import ACTIVE, DONE, Match, MatchSet
from core.progression import advance_winner, determine_winner, has_real_scores, refresh_from_feeders

logger = logging.getLogger(__name__)


def collect_downstream(match_set: MatchSet, match: Match) -> List[Match]:
    """Every match reachable from ``match`` through winner or loser links, depth first."""
    collected = []
    visited = set()
    stack = [match.next_loser_match_id, match.next_match_id]
    while stack:
        match_id = stack.pop()
        if match_id is None or match_id in visited:
            continue
        visited.add(match_id)
        downstream = match_set.get(match_id)
        if downstream is None:
            continue
        collected.append(downstream)
        stack.append(downstream.next_loser_match_id)
        stack.append(downstream.next_match_id)
    return collected


def _round_order(match: Match):
    return (match.round_number, match.is_third_place_match, match.match_number)


def _replay_sources(match_set: MatchSet, edited: Match, affected_ids) -> List[Match]:
    """Decided matches outside the reset region that must re-populate it."""
    sources = []
    for match in match_set.ordered():
        if match.match_id == edited.match_id or match.match_id in affected_ids:
            continue
        if not match.is_decided:
            continue
        same_round = match.round_number == edited.round_number and not match.is_third_place_match
        feeds_region = match.next_match_id in affected_ids or match.next_loser_match_id in affected_ids
        if same_round or feeds_region:
            sources.append(match)
    sources.sort(key=lambda m: (m.round_number != edited.round_number, _round_order(m)))
    return sources


def _replay_scores(match_set: MatchSet, match: Match, saved: Dict[int, Tuple[str, str]]):
    if match.match_id not in saved:
        return
    if match.status != ACTIVE:
        logger.warning("Dropping scores of match %s (schedule %s): its teams are no longer both known",
                       match.match_id, match.schedule_id)
        return
    team1_score, team2_score = saved[match.match_id]
    match.team1_score = team1_score
    match.team2_score = team2_score
    winner = determine_winner(match.team1_id, match.team2_id, team1_score, team2_score)
    if winner is not None and has_real_scores(team1_score, team2_score):
        match.winner_id = winner
        match.status = DONE
        advance_winner(match_set, match)


def rederive_third_place(match_set: MatchSet, saved: Optional[Dict[int, Tuple[str, str]]] = None):
    """
    Make the third-place match hold exactly the two semifinal losers.

    If its teams differ from the losers it is rebuilt from scratch and any
    saved score is replayed.
    """
    third = match_set.third_place_match()
    if third is None:
        return
    expected = [None, None]
    for index, semi in enumerate(match_set.feeders(third.match_id)):
        position = semi.match_position or index + 1
        expected[position - 1] = semi.loser_id() if semi.is_decided else None
    if third.teams() == expected:
        return
    logger.info("Rebuilding third-place match %s (schedule %s) from the semifinal losers",
                third.match_id, third.schedule_id)
    third.reset()
    refresh_from_feeders(match_set, third)
    if saved:
        _replay_scores(match_set, third, saved)


def recalculate(match_set: MatchSet, edited: Match, awards=None) -> List[int]:
    """
    Bring the bracket back in line after ``edited`` changed its result.

    ``edited`` must already carry its new status and winner. Returns the
    ids of the matches that were reset and rebuilt.
    """
    affected = collect_downstream(match_set, edited)
    affected_ids = {m.match_id for m in affected}
    saved = {m.match_id: (m.team1_score, m.team2_score) for m in affected if m.has_scores}

    for match in affected:
        match.reset()

    advance_winner(match_set, edited)
    for source in _replay_sources(match_set, edited, affected_ids):
        advance_winner(match_set, source)

    for match in sorted(affected, key=_round_order):
        _replay_scores(match_set, match, saved)

    third = match_set.third_place_match()
    if third is not None and third.match_id in affected_ids:
        rederive_third_place(match_set, saved)

    final = match_set.final_match()
    decisive_ids = {m.match_id for m in (final, third) if m is not None}
    if awards is not None and (decisive_ids & affected_ids or edited.match_id in decisive_ids):
        from core.awards import apply_bracket_awards
        apply_bracket_awards(match_set, awards)

    logger.info("Recalculated %d matches downstream of match %s (schedule %s)",
                len(affected), edited.match_id, edited.schedule_id)
    return sorted(affected_ids)
