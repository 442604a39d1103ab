"""
Tests for pool and round robin standings.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.formats import TournamentFormat, round_robin_pairs
from core.models import TOTAL_SCORES, WIN_LOSS_POINTS, Pool
from core.progression import submit_score
from core.standings import (
    calculate_pool_standings, calculate_round_robin_standings, rank_standings,
)


def _row(team_id, **values):
    row = {'team_id': team_id, 'wins': 0, 'sets_won': 0, 'sets_lost': 0, 'point_diff': 0,
           'points': 0, 'points_for': 0}
    row.update(values)
    return row


class TestRoundRobinPairs:
    """Tests for round robin pairing."""

    def test_every_pair_once(self):
        """Test n(n-1)/2 unique pairs."""
        pairs = round_robin_pairs([1, 2, 3, 4, 5])
        assert len(pairs) == 10
        assert len({frozenset(p) for p in pairs}) == 10

    def test_double_round_robin(self):
        """Test that each pair meets twice with the order swapped."""
        pairs = round_robin_pairs([1, 2, 3], double_round_robin=True)
        assert len(pairs) == 6
        assert (1, 2) in pairs and (2, 1) in pairs


class TestRankStandings:
    """Tests for the sort order."""

    def test_wins_decide_first(self):
        """Test 3-0, 2-1, 1-2, 0-3 come out in order."""
        rows = [_row(3, wins=1), _row(1, wins=3), _row(4, wins=0), _row(2, wins=2)]
        ranked = rank_standings(rows)
        assert [r['team_id'] for r in ranked] == [1, 2, 3, 4]
        assert [r['rank'] for r in ranked] == [1, 2, 3, 4]

    def test_sets_then_differential(self):
        """Test sets won, sets lost, then point difference."""
        rows = [
            _row(1, wins=2, sets_won=4, sets_lost=2, point_diff=30),
            _row(2, wins=2, sets_won=4, sets_lost=1, point_diff=5),
            _row(3, wins=2, sets_won=5, sets_lost=3, point_diff=0),
            _row(4, wins=2, sets_won=4, sets_lost=2, point_diff=40),
        ]
        assert [r['team_id'] for r in rank_standings(rows)] == [3, 2, 4, 1]

    def test_declared_tie_break(self):
        """Test the competition's standing calculation breaks remaining ties."""
        rows = [_row(1, wins=1, points_for=50), _row(2, wins=1, points_for=60)]
        assert [r['team_id'] for r in rank_standings(rows, WIN_LOSS_POINTS)] == [1, 2]
        assert [r['team_id'] for r in rank_standings(rows, TOTAL_SCORES)] == [2, 1]

    def test_complete_tie_keeps_order(self):
        """Test that identical rows stay in encounter order."""
        rows = [_row(5), _row(2), _row(9)]
        assert [r['team_id'] for r in rank_standings(rows)] == [5, 2, 9]


class TestRoundRobinStandings:
    """Tests for standings built from played matches."""

    def _played(self, make_teams, competition, team1_score="21,21", team2_score="10,10"):
        teams = make_teams(4)
        match_set = TournamentFormat(competition, teams).build()
        for match in match_set:
            submit_score(match_set, match.match_id, team1_score, team2_score)
        return teams, match_set

    def test_lower_ids_win_everything(self, make_teams, round_robin_competition):
        """Test a 3-0, 2-1, 1-2, 0-3 table."""
        teams, match_set = self._played(make_teams, round_robin_competition)
        rows = calculate_round_robin_standings(match_set, teams, round_robin_competition)
        assert [r['team_id'] for r in rows] == [1, 2, 3, 4]
        assert [(r['wins'], r['losses']) for r in rows] == [(3, 0), (2, 1), (1, 2), (0, 3)]
        assert rows[0]['sets_won'] == 6
        assert rows[0]['point_diff'] == 66
        assert rows[0]['win_percentage'] == 1.0
        assert rows[3]['game_win_percentage'] == 0.0

    def test_points_table(self, make_teams, round_robin_competition):
        """Test standard and tie-break point values."""
        teams, match_set = self._played(make_teams, round_robin_competition, "21", "19")
        rows = calculate_round_robin_standings(match_set, teams, round_robin_competition)
        top, bottom = rows[0], rows[-1]
        assert top['tie_break_wins'] == 3
        assert top['points'] == 3 * round_robin_competition.tie_break_win
        assert bottom['tie_break_losses'] == 3
        assert bottom['points'] == 3 * round_robin_competition.tie_break_loss

    def test_unplayed_matches_do_not_count(self, make_teams, round_robin_competition):
        """Test that only Done matches feed the table."""
        teams = make_teams(3)
        match_set = TournamentFormat(round_robin_competition, teams).build()
        rows = calculate_round_robin_standings(match_set, teams, round_robin_competition)
        assert all(r['matches_played'] == 0 for r in rows)


class TestPoolStandings:
    """Tests for per-pool tables."""

    def test_each_pool_has_its_own_table(self, make_teams, pool_competition):
        """Test pool tables only contain their own teams."""
        teams = make_teams(4)
        pools = [Pool(1, "Pool A"), Pool(2, "Pool B")]
        for team in teams:
            team.pool_id = 1 if team.team_id <= 2 else 2
        match_set = TournamentFormat(pool_competition, teams, pools).build()
        for match in match_set.in_round(1):
            submit_score(match_set, match.match_id, "15", "21")

        standings = calculate_pool_standings(match_set, pools, teams, pool_competition)
        assert list(standings) == ["Pool A", "Pool B"]
        assert [r['team_id'] for r in standings["Pool A"]] == [2, 1]
        assert [r['team_id'] for r in standings["Pool B"]] == [4, 3]
        assert standings["Pool B"][0]['pool'] == "Pool B"
