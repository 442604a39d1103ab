"""
Unit tests for single elimination bracket generation and the pool-play playoff.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.elimination import (
    _generate_bracket_order,
    advance_to_playoff,
    build_bracket_tree,
    calculate_bracket_size,
    choose_elimination_bracket_size,
    cross_pool_seed,
    generate_elimination_matches,
    generate_playoff_tree,
    get_round_name,
    get_seeding_order,
)
from core.errors import ConfigurationError, MatchStateError
from core.formats import TournamentFormat
from core.models import ACTIVE, BYE, PENDING, MatchSet
from core.progression import submit_score
from core.seeding import assign_pools, create_pools


class TestBracketHelpers:
    """Tests for bracket helper functions."""

    def test_get_round_name_final(self):
        """Test round name for 2 teams (Final)."""
        assert get_round_name(2) == "Final"

    def test_get_round_name_semifinal(self):
        """Test round name for 4 teams."""
        assert get_round_name(4) == "Semi-Finals"

    def test_get_round_name_quarterfinal(self):
        """Test round name for 8 teams."""
        assert get_round_name(8) == "Quarter-Finals"

    def test_get_round_name_round_of_16(self):
        """Test round name for 16 teams."""
        assert get_round_name(16) == "Round of 16"

    def test_calculate_bracket_size(self):
        """Test next power of two."""
        assert calculate_bracket_size(5) == 8
        assert calculate_bracket_size(8) == 8
        assert calculate_bracket_size(1) == 1
        assert calculate_bracket_size(0) == 0

    def test_elimination_bracket_sizes(self):
        """Test the standard bracket chosen for a team count."""
        assert choose_elimination_bracket_size(2) == 8
        assert choose_elimination_bracket_size(9) == 16
        assert choose_elimination_bracket_size(33) == 64
        assert choose_elimination_bracket_size(64) == 64

    def test_more_than_64_teams_gets_a_bigger_bracket(self):
        """Test that oversized fields still get a bracket."""
        assert choose_elimination_bracket_size(65) == 128
        order = get_seeding_order(128)
        assert order[:2] == [1, 128]
        assert sorted(order) == list(range(1, 129))


class TestSeedingOrder:
    """Tests for first-round seeding orders."""

    def test_eight_team_order(self):
        """Test the fixed order for an 8 bracket."""
        assert get_seeding_order(8) == [1, 8, 4, 5, 3, 6, 2, 7]

    @pytest.mark.parametrize("size", [8, 16, 32, 64])
    def test_top_seed_meets_bottom_seed(self, size):
        """Test seed 1 opens against the highest seed."""
        order = get_seeding_order(size)
        assert order[:2] == [1, size]

    @pytest.mark.parametrize("size", [8, 16, 32, 64])
    def test_every_pair_sums_to_size_plus_one(self, size):
        """Test that every opening pair is balanced."""
        order = get_seeding_order(size)
        assert sorted(order) == list(range(1, size + 1))
        for i in range(0, size, 2):
            assert order[i] + order[i + 1] == size + 1

    def test_recursive_order_for_four(self):
        """Test the generated order for a 4 bracket."""
        assert _generate_bracket_order(4) == [1, 4, 2, 3]


class TestBuildBracketTree:
    """Tests for the empty tree builder."""

    def test_eight_bracket_with_third_place(self):
        """Test match count, names and links of an 8 bracket."""
        match_set = MatchSet()
        rounds = build_bracket_tree(match_set, 'cup', 8, third_place_match=True)

        assert [len(r) for r in rounds] == [4, 2, 1]
        assert [r[0].round_name for r in rounds] == ["Quarter-Finals", "Semi-Finals", "Final"]
        assert len(match_set) == 8

        quarters, semis, (final,) = rounds
        assert [m.next_match_id for m in quarters] == [semis[0].match_id, semis[0].match_id,
                                                      semis[1].match_id, semis[1].match_id]
        assert [m.match_position for m in quarters] == [1, 2, 1, 2]
        assert final.next_match_id is None

        third = match_set.third_place_match()
        assert third.round_number == final.round_number
        assert third.match_number == final.match_number + 1
        assert all(s.next_loser_match_id == third.match_id for s in semis)

    def test_no_third_place_when_disabled(self):
        """Test that the third-place match is optional."""
        match_set = MatchSet()
        build_bracket_tree(match_set, 'cup', 8)
        assert match_set.third_place_match() is None
        assert len(match_set) == 7

    def test_rounds_can_start_later(self):
        """Test a tree placed after a pool stage."""
        match_set = MatchSet()
        rounds = build_bracket_tree(match_set, 'cup', 4, first_round_number=2)
        assert [r[0].round_number for r in rounds] == [2, 3]


class TestGenerateEliminationMatches:
    """Tests for seeded elimination brackets."""

    def test_full_bracket_has_no_byes(self, make_teams, elimination_competition):
        """Test 8 seeded teams fill an 8 bracket."""
        match_set = generate_elimination_matches(make_teams(8, seeded=True), elimination_competition)
        first_round = match_set.in_round(1)
        assert first_round[0].teams() == [1, 8]
        assert all(m.status == ACTIVE for m in first_round)
        assert all(m.status == PENDING for m in match_set.in_round(2))

    def test_five_teams_get_three_byes(self, make_teams, elimination_competition):
        """Test that byes are created and advanced automatically."""
        match_set = generate_elimination_matches(make_teams(5, seeded=True), elimination_competition)
        first_round = match_set.in_round(1)
        byes = [m for m in first_round if m.is_bye]
        assert len(byes) == 3
        assert all(m.status == BYE for m in byes)
        assert first_round[1].teams() == [4, 5]

        semi1, semi2 = match_set.in_round(2)
        assert semi1.team1_id == 1
        assert semi1.status == PENDING
        assert semi2.teams() == [3, 2]
        assert semi2.status == ACTIVE

    def test_two_teams_meet_in_the_final(self, make_teams):
        """Test that two teams in an 8 bracket go straight to an active final."""
        from core.models import Competition, ELIMINATION
        competition = Competition('cup', format=ELIMINATION, third_place_match=False)
        match_set = generate_elimination_matches(make_teams(2, seeded=True), competition)
        final = match_set.final_match()
        assert final.round_number == 3
        assert final.status == ACTIVE
        assert final.teams() == [1, 2]

    def test_third_place_without_semifinal_losers_is_a_bye(self, make_teams, elimination_competition):
        """Test that a third-place match fed only by byes resolves as an empty bye."""
        match_set = generate_elimination_matches(make_teams(2, seeded=True), elimination_competition)
        third = match_set.third_place_match()
        assert third.status == BYE
        assert third.winner_id is None

    def test_unseeded_teams_are_rejected(self, make_teams, elimination_competition):
        """Test that seeds are required."""
        with pytest.raises(ConfigurationError):
            generate_elimination_matches(make_teams(4), elimination_competition)


class TestCrossPoolSeeding:
    """Tests for pool qualifier placement."""

    def test_two_pools_two_qualifiers(self):
        """Test the A1, B2, B1, A2 pattern."""
        assert cross_pool_seed([[11, 12], [21, 22]], 4) == [11, 22, 21, 12]

    def test_four_pool_winners(self):
        """Test pool winners laid out by the standard order."""
        assert cross_pool_seed([[1], [2], [3], [4]], 4) == [1, 4, 2, 3]

    def test_missing_qualifiers_leave_empty_slots(self):
        """Test three qualifiers in a 4 bracket."""
        assert cross_pool_seed([[1], [2], [3]], 4) == [1, None, 2, 3]


class TestPlayoff:
    """Tests for the pool-play playoff."""

    def test_playoff_tree_size(self, pool_competition):
        """Test two pools sending two teams each."""
        match_set = MatchSet()
        rounds = generate_playoff_tree(match_set, pool_competition, 2)
        assert [len(r) for r in rounds] == [2, 1]
        assert rounds[0][0].round_number == 2
        assert match_set.third_place_match() is not None

    def test_single_qualifier_has_no_tree(self, pool_competition):
        """Test that one qualifier overall needs no playoff."""
        pool_competition.winners_per_pool = 1
        assert generate_playoff_tree(MatchSet(), pool_competition, 1) == []

    def _pool_stage(self, make_teams, competition):
        teams = make_teams(8)
        pools = create_pools(2)
        assign_pools(teams, pools)
        match_set = TournamentFormat(competition, teams, pools).build()
        return teams, pools, match_set

    def test_advance_requires_finished_pools(self, make_teams, pool_competition):
        """Test that open pool matches block the playoff."""
        teams, pools, match_set = self._pool_stage(make_teams, pool_competition)
        with pytest.raises(MatchStateError):
            advance_to_playoff(match_set, pools, teams, pool_competition)

    def test_advance_seeds_cross_pool(self, make_teams, pool_competition):
        """Test pool winners meet the other pool's runner-up."""
        teams, pools, match_set = self._pool_stage(make_teams, pool_competition)
        for match in match_set.in_round(1):
            submit_score(match_set, match.match_id, "21,21", "10,10")

        qualified = advance_to_playoff(match_set, pools, teams, pool_competition)
        assert qualified == {"Pool A": [1, 4], "Pool B": [2, 3]}

        semi1, semi2 = match_set.in_round(2)
        assert semi1.teams() == [1, 3]
        assert semi2.teams() == [2, 4]
        assert semi1.status == ACTIVE
