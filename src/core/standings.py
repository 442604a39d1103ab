"""
Pool and round robin standings.
"""
from typing import Dict, List

from core.models import (
    DONE, GAMES_WIN_PERCENT, GAMES_WON, ROUND_ROBIN_ROUND_NAME, TOTAL_SCORES, WIN_LOSS_POINTS,
    WIN_PERCENT, Competition, MatchSet,
)
from core.progression import count_set_wins, parse_scores

# A result decided by this many total points or fewer scores as a tie-break win/loss.
TIE_BREAK_MARGIN = 3

_TIE_BREAK_KEYS = {
    WIN_LOSS_POINTS: 'points',
    WIN_PERCENT: 'win_percentage',
    GAMES_WIN_PERCENT: 'game_win_percentage',
    GAMES_WON: 'sets_won',
    TOTAL_SCORES: 'points_for',
}


def _empty_row(team, pool_name=None) -> Dict:
    return {
        'team_id': team.team_id,
        'team': team.name,
        'pool': pool_name,
        'matches_played': 0,
        'wins': 0,
        'losses': 0,
        'draws': 0,
        'standard_wins': 0,
        'standard_losses': 0,
        'tie_break_wins': 0,
        'tie_break_losses': 0,
        'sets_won': 0,
        'sets_lost': 0,
        'points_for': 0,
        'points_against': 0,
        'point_diff': 0,
        'points': 0,
        'win_percentage': 0.0,
        'game_win_percentage': 0.0,
    }


def _record_result(row, competition, won, lost, sets_for, sets_against, score_for, score_against):
    margin = score_for - score_against
    close = abs(margin) <= TIE_BREAK_MARGIN

    row['matches_played'] += 1
    row['sets_won'] += sets_for
    row['sets_lost'] += sets_against
    row['points_for'] += score_for
    row['points_against'] += score_against
    row['point_diff'] += margin

    if won:
        row['wins'] += 1
        if close:
            row['tie_break_wins'] += 1
            row['points'] += competition.tie_break_win
        else:
            row['standard_wins'] += 1
            row['points'] += competition.standard_win
    elif lost:
        row['losses'] += 1
        if close:
            row['tie_break_losses'] += 1
            row['points'] += competition.tie_break_loss
        else:
            row['standard_losses'] += 1
            row['points'] += competition.standard_loss
    else:
        row['draws'] += 1
        row['points'] += competition.draw


def rank_standings(rows: List[Dict], standing_calculation: str = WIN_LOSS_POINTS) -> List[Dict]:
    """
    Sort by wins, then sets won (desc), sets lost (asc), score differential
    (desc), then the competition's declared tie-break. Anything still level
    keeps its original order.
    """
    tie_break = _TIE_BREAK_KEYS.get(standing_calculation, 'points')
    ranked = sorted(
        rows,
        key=lambda r: (-r['wins'], -r['sets_won'], r['sets_lost'], -r['point_diff'], -r.get(tie_break, 0)),
    )
    for rank, row in enumerate(ranked, start=1):
        row['rank'] = rank
    return ranked


def calculate_standings(matches, teams, competition: Competition, pool_name=None) -> List[Dict]:
    """
    Standings for ``teams`` from the Done matches among them.

    ``teams`` order is the encounter order used for complete ties.
    """
    rows = {team.team_id: _empty_row(team, pool_name) for team in teams}

    for match in matches:
        if match.status != DONE:
            continue
        if match.team1_id not in rows or match.team2_id not in rows:
            continue
        scores1 = parse_scores(match.team1_score)
        scores2 = parse_scores(match.team2_score)
        if not scores1 or not scores2:
            continue
        played = min(len(scores1), len(scores2))
        scores1, scores2 = scores1[:played], scores2[:played]
        sets1, sets2 = count_set_wins(scores1, scores2)
        total1, total2 = sum(scores1), sum(scores2)

        team1_won = match.winner_id == match.team1_id
        team2_won = match.winner_id == match.team2_id
        _record_result(rows[match.team1_id], competition, team1_won, team2_won, sets1, sets2, total1, total2)
        _record_result(rows[match.team2_id], competition, team2_won, team1_won, sets2, sets1, total2, total1)

    for row in rows.values():
        if row['matches_played']:
            row['win_percentage'] = row['wins'] / row['matches_played']
        sets_played = row['sets_won'] + row['sets_lost']
        if sets_played:
            row['game_win_percentage'] = row['sets_won'] / sets_played

    return rank_standings(list(rows.values()), competition.standing_calculation)


def calculate_pool_standings(match_set: MatchSet, pools, teams, competition: Competition) -> Dict[str, List[Dict]]:
    """
    Calculate standings for each pool from its pool-stage matches.

    Returns: {pool_name: [row, ...]} with rows ranked best first.
    """
    standings = {}
    confirmed = sorted((t for t in teams if t.is_confirmed), key=lambda t: t.team_id)
    for pool in sorted(pools, key=lambda p: p.name):
        pool_teams = [t for t in confirmed if t.pool_id == pool.pool_id]
        pool_matches = [m for m in match_set.ordered()
                        if m.round_number == 1 and m.round_name == pool.name]
        standings[pool.name] = calculate_standings(pool_matches, pool_teams, competition, pool.name)
    return standings


def calculate_round_robin_standings(match_set: MatchSet, teams, competition: Competition) -> List[Dict]:
    confirmed = sorted((t for t in teams if t.is_confirmed), key=lambda t: t.team_id)
    matches = [m for m in match_set.ordered() if m.round_name == ROUND_ROBIN_ROUND_NAME]
    return calculate_standings(matches, confirmed, competition)
