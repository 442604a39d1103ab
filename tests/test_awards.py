"""
Tests for award configuration and champion resolution.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.awards import (
    apply_awards, configure_awards, resolve_award_teams, resolve_bracket_winners,
)
from core.elimination import generate_elimination_matches
from core.errors import ConfigurationError
from core.formats import TournamentFormat
from core.models import (
    CHAMPION, FIRST_RUNNER_UP, POOL_PLAY, SECOND_RUNNER_UP, Award, Competition, Pool,
)
from core.progression import submit_score


class TestConfigureAwards:
    """Tests for creating and updating award records."""

    def test_third_place_adds_second_runner_up(self, elimination_competition):
        """Test three positions when a third-place match is played."""
        awards = configure_awards(elimination_competition, [], "Summer Cup", "medal")
        assert [a.position for a in awards] == [CHAMPION, FIRST_RUNNER_UP, SECOND_RUNNER_UP]
        assert [a.award_id for a in awards] == [1, 2, 3]
        assert all(a.team_id is None for a in awards)

    def test_two_positions_without_third_place(self, elimination_competition):
        """Test champion and runner-up only."""
        elimination_competition.third_place_match = False
        awards = configure_awards(elimination_competition, [], "Summer Cup")
        assert [a.position for a in awards] == [CHAMPION, FIRST_RUNNER_UP]

    def test_round_robin_always_has_three(self, round_robin_competition):
        """Test round robin ranks a podium of three."""
        round_robin_competition.third_place_match = False
        assert len(configure_awards(round_robin_competition, [], "League")) == 3

    def test_final_only_playoff_has_no_second_runner_up(self, make_teams):
        """Test two pool winners meeting in a lone Final get two awards."""
        competition = Competition('cup', format=POOL_PLAY, num_pool=2, winners_per_pool=1,
                                  third_place_match=True)
        pools = [Pool(1, "Pool A"), Pool(2, "Pool B")]
        teams = make_teams(4)
        for team in teams:
            team.pool_id = 1 if team.team_id <= 2 else 2
        assert TournamentFormat(competition, teams, pools).build().third_place_match() is None
        awards = configure_awards(competition, [], "Cup")
        assert [a.position for a in awards] == [CHAMPION, FIRST_RUNNER_UP]

    def test_pool_playoff_with_semifinals(self, pool_competition):
        """Test a four-team playoff with a third-place match gets three awards."""
        assert len(configure_awards(pool_competition, [], "Cup")) == 3

    def test_lone_pool_ranks_a_podium(self):
        """Test a single pool without a playoff awards from its table."""
        competition = Competition('cup', format=POOL_PLAY, num_pool=1, winners_per_pool=1,
                                  third_place_match=False)
        assert len(configure_awards(competition, [], "Cup")) == 3

    def test_reconfigure_updates_details_only(self, elimination_competition):
        """Test a second call renames without touching winners."""
        awards = configure_awards(elimination_competition, [], "Cup")
        awards[0].team_id = 5
        updated = configure_awards(elimination_competition, awards, "Big Cup", "crown", "Gold")
        assert len(updated) == 3
        assert updated[0].award_name == "Big Cup"
        assert updated[0].award_type == "crown"
        assert updated[0].team_id == 5

    def test_validation(self, elimination_competition):
        """Test name and type are checked."""
        with pytest.raises(ConfigurationError):
            configure_awards(elimination_competition, [], "  ")
        with pytest.raises(ConfigurationError):
            configure_awards(elimination_competition, [], "Cup", "sword")


class TestApplyAwards:
    """Tests for writing winners into award records."""

    def test_only_changes_are_returned(self):
        """Test unchanged awards are skipped and changed ones dated."""
        awards = [Award(1, 'cup', CHAMPION, team_id=3), Award(2, 'cup', FIRST_RUNNER_UP)]
        changed = apply_awards(awards, {CHAMPION: 3, FIRST_RUNNER_UP: 7})
        assert changed == [awards[1]]
        assert awards[1].team_id == 7
        assert awards[1].awarded_date is not None
        assert awards[0].awarded_date is None


class TestResolveAwardTeams:
    """Tests for working out current award holders."""

    def test_bracket_winners(self, make_teams, elimination_competition):
        """Test champion, runner-up and third place from the bracket."""
        match_set = generate_elimination_matches(make_teams(4, seeded=True), elimination_competition)
        semi1, semi2 = match_set.in_round(2)
        submit_score(match_set, semi1.match_id, "21", "10")
        submit_score(match_set, semi2.match_id, "21", "10")
        assert resolve_bracket_winners(match_set) == {CHAMPION: None, FIRST_RUNNER_UP: None,
                                                      SECOND_RUNNER_UP: None}

        submit_score(match_set, match_set.final_match().match_id, "10", "21")
        submit_score(match_set, match_set.third_place_match().match_id, "21", "10")
        assert resolve_bracket_winners(match_set) == {CHAMPION: 3, FIRST_RUNNER_UP: 1,
                                                      SECOND_RUNNER_UP: 4}

    def test_round_robin_waits_for_every_match(self, make_teams, round_robin_competition):
        """Test the podium appears only once the table is final."""
        teams = make_teams(3)
        match_set = TournamentFormat(round_robin_competition, teams).build()
        matches = list(match_set)
        for match in matches[:-1]:
            submit_score(match_set, match.match_id, "21", "10")
        assert resolve_award_teams(round_robin_competition, match_set, teams)[CHAMPION] is None

        submit_score(match_set, matches[-1].match_id, "21", "10")
        assert resolve_award_teams(round_robin_competition, match_set, teams) == {
            CHAMPION: 1, FIRST_RUNNER_UP: 2, SECOND_RUNNER_UP: 3}

    def test_single_pool_uses_pool_table(self, make_teams):
        """Test a lone pool with no playoff ranks straight from its table."""
        competition = Competition('cup', format=POOL_PLAY, num_pool=1, winners_per_pool=1)
        teams = make_teams(3)
        pools = [Pool(1, "Pool A")]
        for team in teams:
            team.pool_id = 1
        match_set = TournamentFormat(competition, teams, pools).build()
        assert match_set.final_match() is None
        for match in match_set.in_round(1):
            submit_score(match_set, match.match_id, "10", "21")
        resolved = resolve_award_teams(competition, match_set, teams, pools)
        assert resolved[CHAMPION] == 3
        assert resolved[FIRST_RUNNER_UP] == 2
