"""
CompetitionManager: the operations the surrounding application calls.

Every mutating operation loads the schedule's state, changes it in memory
and writes it back while holding the schedule's lock, so concurrent edits
of one schedule are serialized and different schedules never wait on
each other.
"""
import logging
import random
from typing import Dict, List, Optional

from core import progression
from core.awards import apply_awards, configure_awards, resolve_award_teams
from core.elimination import advance_to_playoff as populate_from_pools
from core.errors import ConfigurationError, MatchStateError, NotFoundError, PermissionDeniedError
from core.formats import TournamentFormat
from core.models import (
    AWARD_POSITIONS, DONE, ELIMINATION, FORMATS, POOL_PLAY, ROUND_ROBIN, SCHEDULE_ACTIVE,
    SCHEDULE_IN_PROGRESS, SCHEDULE_PENDING_SETUP, STANDING_CALCULATIONS, TEAM_PENDING, TEAM_STATUSES, Competition,
    Team,
)
from core.seeding import assign_bracket_seeds, assign_pools, create_pools
from core.standings import calculate_pool_standings, calculate_round_robin_standings
from core.storage import ScheduleStore, get_default_competition

logger = logging.getLogger(__name__)

_BOOL_SETTINGS = ('third_place_match', 'double_round_robin', 'draw_published')
_INT_SETTINGS = ('num_pool', 'winners_per_pool', 'standard_win', 'standard_loss',
                 'tie_break_win', 'tie_break_loss', 'draw')


class CompetitionManager:
    def __init__(self, store: ScheduleStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_schedule(self, schedule_id, name='', organizers=None):
        with self.store.lock(schedule_id):
            return self.store.create_schedule(schedule_id, name=name, organizers=organizers)

    def authorize(self, schedule_id, username):
        """Raise unless ``username`` organizes the schedule."""
        schedule = self.store.load_schedule(schedule_id)
        if not schedule.is_organizer(username):
            logger.warning("User %r denied organizer access to schedule %s", username, schedule_id)
            raise PermissionDeniedError("Only the schedule's organizers can change the competition.")
        return schedule

    def _require_competition(self, schedule_id):
        schedule = self.store.load_schedule(schedule_id)
        competition = self.store.load_competition(schedule_id)
        if competition is None or schedule.status == SCHEDULE_PENDING_SETUP:
            raise ConfigurationError("Please complete the match setup & format before generating a draw.")
        return schedule, competition

    def update_competition(self, schedule_id, settings: Dict) -> Competition:
        """Validate and store the competition setup."""
        with self.store.lock(schedule_id):
            schedule = self.store.load_schedule(schedule_id)
            competition = self.store.load_competition(schedule_id)
            values = competition.to_dict() if competition else dict(get_default_competition(), schedule_id=schedule_id)

            for key, value in settings.items():
                if key not in values or key == 'schedule_id':
                    raise ConfigurationError(f"Unknown competition setting: {key}")
                if key in _BOOL_SETTINGS:
                    value = bool(value)
                elif key in _INT_SETTINGS:
                    try:
                        value = int(value)
                    except (TypeError, ValueError):
                        raise ConfigurationError(f"{key} must be a whole number.") from None
                values[key] = value

            if values['format'] not in FORMATS:
                raise ConfigurationError(f"Unknown competition format: {values['format']}")
            if values['standing_calculation'] not in STANDING_CALCULATIONS:
                raise ConfigurationError(f"Unknown standing calculation: {values['standing_calculation']}")
            if values['num_pool'] < 1 or values['winners_per_pool'] < 1:
                raise ConfigurationError("Pools and winners per pool must both be at least 1.")
            if competition is not None and values['format'] != competition.format:
                if len(self.store.load_matches(schedule_id)):
                    raise ConfigurationError("The format cannot change once matches have been generated.")

            updated = Competition.from_dict(values)
            self.store.save_competition(updated)
            if schedule.status == SCHEDULE_PENDING_SETUP:
                schedule.status = SCHEDULE_ACTIVE
                self.store.save_schedule(schedule)
            logger.info("Competition setup saved for schedule %s: %s", schedule_id, updated.format)
            return updated

    def set_teams(self, schedule_id, teams_data: List[Dict]) -> List[Team]:
        """Replace the schedule's teams with the roster supplied by team management."""
        teams = []
        seen_ids = set()
        for index, data in enumerate(teams_data, start=1):
            name = (data.get('name') or '').strip()
            if not name:
                raise ConfigurationError("Every team needs a name.")
            status = data.get('status', TEAM_PENDING)
            if status not in TEAM_STATUSES:
                raise ConfigurationError(f"Unknown team status: {status}")
            members = data.get('members') or []
            if not 1 <= len(members) <= 2:
                raise ConfigurationError(f"Team {name} must have one or two members.")
            team_id = data.get('team_id', index)
            if team_id in seen_ids:
                raise ConfigurationError(f"Duplicate team id: {team_id}")
            seen_ids.add(team_id)
            teams.append(Team(team_id=team_id, name=name, status=status, members=members,
                              pool_id=data.get('pool_id'), bracket_seed=data.get('bracket_seed')))

        with self.store.lock(schedule_id):
            self.store.load_schedule(schedule_id)
            self.store.save_teams(schedule_id, teams)
        return teams

    def update_team_status(self, schedule_id, team_id, status) -> Team:
        if status not in TEAM_STATUSES:
            raise ConfigurationError(f"Unknown team status: {status}")
        with self.store.lock(schedule_id):
            teams = self.store.load_teams(schedule_id)
            team = self._find_team(teams, team_id)
            team.status = status
            self.store.save_teams(schedule_id, teams)
            return team

    @staticmethod
    def _find_team(teams, team_id) -> Team:
        for team in teams:
            if team.team_id == team_id:
                return team
        raise NotFoundError(f"Team {team_id} not found.")

    # ------------------------------------------------------------------
    # Draw
    # ------------------------------------------------------------------

    def generate_draw(self, schedule_id) -> Dict:
        """Create pools or seeds on first request and return the draw."""
        with self.store.lock(schedule_id):
            schedule, competition = self._require_competition(schedule_id)
            teams = self.store.load_teams(schedule_id)
            confirmed = [t for t in teams if t.is_confirmed]

            if competition.format == POOL_PLAY:
                pools = self.store.load_pools(schedule_id)
                if len(pools) != competition.num_pool:
                    for team in teams:
                        team.pool_id = None
                    pools = create_pools(competition.num_pool)
                    self.store.save_pools(schedule_id, pools)
                    self.store.save_teams(schedule_id, teams)
                if assign_pools(teams, pools):
                    self.store.save_teams(schedule_id, teams)
                pool_ids = {p.pool_id for p in pools}
                return {
                    'schedule_id': schedule_id,
                    'format': competition.format,
                    'pools': [{
                        'pool_id': pool.pool_id,
                        'name': pool.name,
                        'teams': [t.to_dict() for t in confirmed if t.pool_id == pool.pool_id],
                    } for pool in pools],
                    'unassigned': [t.to_dict() for t in confirmed if t.pool_id not in pool_ids],
                    'draw_published': competition.draw_published,
                }

            if competition.format == ELIMINATION:
                if assign_bracket_seeds(teams, rng=self.rng):
                    self.store.save_teams(schedule_id, teams)
                seeded = sorted(confirmed, key=lambda t: (t.bracket_seed is None, t.bracket_seed or 0))
                return {
                    'schedule_id': schedule_id,
                    'format': competition.format,
                    'teams': [t.to_dict() for t in seeded],
                    'total_seeds': len(confirmed),
                    'third_place_match': competition.third_place_match,
                    'draw_published': competition.draw_published,
                }

            return {
                'schedule_id': schedule_id,
                'format': competition.format,
                'teams': [t.to_dict() for t in confirmed],
                'message': 'Round Robin format does not require a manual draw.',
                'draw_published': competition.draw_published,
            }

    def save_pool_draw(self, schedule_id, selections: Dict) -> List[Team]:
        """Organizer's manual pool edits: ``{team_id: pool_id or None}``."""
        with self.store.lock(schedule_id):
            teams = self.store.load_teams(schedule_id)
            pool_ids = {p.pool_id for p in self.store.load_pools(schedule_id)}
            for team_id, pool_id in selections.items():
                team = self._find_team(teams, int(team_id))
                if pool_id in (None, 0, ''):
                    team.pool_id = None
                elif int(pool_id) in pool_ids:
                    team.pool_id = int(pool_id)
                else:
                    raise NotFoundError(f"Pool {pool_id} not found.")
            self.store.save_teams(schedule_id, teams)
            return teams

    def save_elimination_draw(self, schedule_id, assignments: Dict) -> List[Team]:
        """Organizer's manual seeding: ``{seed: team_id}``; unlisted teams lose their seed."""
        with self.store.lock(schedule_id):
            teams = self.store.load_teams(schedule_id)
            confirmed = [t for t in teams if t.is_confirmed]
            seeds = {}
            for seed, team_id in assignments.items():
                seed = int(seed)
                if not team_id:
                    continue
                if not 1 <= seed <= len(confirmed):
                    raise ConfigurationError(f"Seed {seed} is outside 1..{len(confirmed)}.")
                team = self._find_team(confirmed, int(team_id))
                if team.team_id in seeds.values():
                    raise ConfigurationError(f"Team {team.name} has more than one seed.")
                seeds[seed] = team.team_id
            for team in confirmed:
                team.bracket_seed = None
            for seed, team_id in seeds.items():
                self._find_team(confirmed, team_id).bracket_seed = seed
            self.store.save_teams(schedule_id, teams)
            return teams

    def reseed(self, schedule_id) -> Dict[int, int]:
        with self.store.lock(schedule_id):
            teams = self.store.load_teams(schedule_id)
            assignments = assign_bracket_seeds(teams, rng=self.rng, reseed=True)
            self.store.save_teams(schedule_id, teams)
            return assignments

    def _set_draw_published(self, schedule_id, published: bool) -> Competition:
        with self.store.lock(schedule_id):
            _, competition = self._require_competition(schedule_id)
            competition.draw_published = published
            self.store.save_competition(competition)
            return competition

    def publish_draw(self, schedule_id) -> Competition:
        return self._set_draw_published(schedule_id, True)

    def unpublish_draw(self, schedule_id) -> Competition:
        return self._set_draw_published(schedule_id, False)

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def _refresh_awards(self, schedule_id, competition, match_set, teams, awards):
        if not awards:
            return []
        pools = self.store.load_pools(schedule_id)
        return apply_awards(awards, resolve_award_teams(competition, match_set, teams, pools))

    def start_competition(self, schedule_id) -> Dict:
        """Throw away any existing matches and generate the competition's full match set."""
        with self.store.lock(schedule_id):
            schedule, competition = self._require_competition(schedule_id)
            if competition.format != ROUND_ROBIN and not competition.draw_published:
                raise ConfigurationError("Please publish the draw to proceed.")

            teams = self.store.load_teams(schedule_id)
            pools = self.store.load_pools(schedule_id)
            if competition.format == ELIMINATION and assign_bracket_seeds(teams, rng=self.rng):
                self.store.save_teams(schedule_id, teams)
            if competition.format == POOL_PLAY and assign_pools(teams, pools):
                # Teams confirmed after the draw join the smallest pools.
                self.store.save_teams(schedule_id, teams)

            match_set = TournamentFormat(competition, teams, pools).build()
            self.store.save_matches(schedule_id, match_set)

            schedule.status = SCHEDULE_IN_PROGRESS
            self.store.save_schedule(schedule)

            awards = self.store.load_awards(schedule_id)
            if self._refresh_awards(schedule_id, competition, match_set, teams, awards):
                self.store.save_awards(schedule_id, awards)

            byes = sum(1 for m in match_set if m.is_bye)
            logger.info("Competition started for schedule %s: %d matches, %d byes",
                        schedule_id, len(match_set), byes)
            return {'schedule_id': schedule_id, 'matches': len(match_set), 'byes': byes}

    def submit_score(self, schedule_id, match_id, team1_score, team2_score) -> Dict:
        with self.store.lock(schedule_id):
            competition = self.store.load_competition(schedule_id)
            if competition is None:
                raise ConfigurationError("This schedule has no competition setup.")
            match_set = self.store.load_matches(schedule_id)
            teams = self.store.load_teams(schedule_id)
            awards = self.store.load_awards(schedule_id)

            outcome = progression.submit_score(match_set, match_id, team1_score, team2_score, awards=awards)
            self._refresh_awards(schedule_id, competition, match_set, teams, awards)

            self.store.save_matches(schedule_id, match_set)
            if awards:
                self.store.save_awards(schedule_id, awards)

            match = outcome['match']
            if outcome['recalculated']:
                logger.info("Score edit on match %s (schedule %s) reset %d downstream matches",
                            match_id, schedule_id, len(outcome['recalculated']))
            return {
                'match': self._match_view(match, self._team_names(teams)),
                'winner_id': outcome['winner_id'],
                'completed': outcome['completed'],
                'recalculated': outcome['recalculated'],
            }

    def update_match_details(self, schedule_id, match_id, court=None, match_time=None) -> Dict:
        with self.store.lock(schedule_id):
            match_set = self.store.load_matches(schedule_id)
            match = match_set.get(match_id)
            if match is None:
                raise NotFoundError(f"Match {match_id} not found.")
            match.court = court
            match.match_time = match_time
            self.store.save_matches(schedule_id, match_set)
            return match.to_dict()

    def advance_to_playoff(self, schedule_id) -> Dict:
        with self.store.lock(schedule_id):
            _, competition = self._require_competition(schedule_id)
            if competition.format != POOL_PLAY:
                raise MatchStateError("Only pool play competitions have a playoff stage.")
            match_set = self.store.load_matches(schedule_id)
            teams = self.store.load_teams(schedule_id)
            pools = self.store.load_pools(schedule_id)

            if any(m.status == DONE for m in match_set if m.round_number >= 2):
                logger.warning("Re-seeding playoff of schedule %s discards recorded playoff results", schedule_id)
            qualified = populate_from_pools(match_set, pools, teams, competition)

            awards = self.store.load_awards(schedule_id)
            self._refresh_awards(schedule_id, competition, match_set, teams, awards)
            self.store.save_matches(schedule_id, match_set)
            if awards:
                self.store.save_awards(schedule_id, awards)
            return {'schedule_id': schedule_id, 'qualified': qualified}

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @staticmethod
    def _team_names(teams) -> Dict[int, str]:
        return {t.team_id: t.name for t in teams}

    @staticmethod
    def _match_view(match, names) -> Dict:
        view = match.to_dict()
        view['team1_name'] = names.get(match.team1_id) if match.team1_id is not None else None
        view['team2_name'] = names.get(match.team2_id) if match.team2_id is not None else None
        view['winner_name'] = names.get(match.winner_id) if match.winner_id is not None else None
        return view

    # Views below read several files; they hold the schedule lock so a
    # concurrent write cannot land between two of the loads.

    def get_match_listing(self, schedule_id) -> List[Dict]:
        with self.store.lock(schedule_id):
            self.store.load_schedule(schedule_id)
            names = self._team_names(self.store.load_teams(schedule_id))
            matches = sorted(self.store.load_matches(schedule_id),
                             key=lambda m: (m.round_number, m.round_name or '', m.match_number))
        return [self._match_view(m, names) for m in matches]

    @staticmethod
    def _standings_view(competition, match_set, teams, pools) -> Dict:
        if competition.format == POOL_PLAY:
            return {'format': competition.format,
                    'pools': calculate_pool_standings(match_set, pools, teams, competition)}
        if competition.format == ROUND_ROBIN:
            return {'format': competition.format,
                    'standings': calculate_round_robin_standings(match_set, teams, competition)}
        return {'format': competition.format}

    def get_standings(self, schedule_id) -> Dict:
        with self.store.lock(schedule_id):
            _, competition = self._require_competition(schedule_id)
            match_set = self.store.load_matches(schedule_id)
            teams = self.store.load_teams(schedule_id)
            pools = self.store.load_pools(schedule_id)
        return self._standings_view(competition, match_set, teams, pools)

    def get_bracket_data(self, schedule_id) -> Dict:
        """Elimination rounds (with the third-place match apart) for display."""
        with self.store.lock(schedule_id):
            _, competition = self._require_competition(schedule_id)
            match_set = self.store.load_matches(schedule_id)
            teams = self.store.load_teams(schedule_id)
            pools = self.store.load_pools(schedule_id)
        names = self._team_names(teams)

        first_tree_round = 2 if competition.format == POOL_PLAY else 1
        rounds = []
        third_place = None
        if competition.format != ROUND_ROBIN:
            for match in match_set:
                if match.round_number < first_tree_round:
                    continue
                if match.is_third_place_match:
                    third_place = self._match_view(match, names)
                    continue
                if not rounds or rounds[-1]['round_number'] != match.round_number:
                    rounds.append({'round_number': match.round_number,
                                   'round_name': match.round_name,
                                   'matches': []})
                rounds[-1]['matches'].append(self._match_view(match, names))

        resolved = resolve_award_teams(competition, match_set, teams, pools)
        data = {
            'schedule_id': schedule_id,
            'format': competition.format,
            'rounds': rounds,
            'third_place': third_place,
            'champion': names.get(resolved['champion']),
            'byes': sum(1 for m in match_set if m.is_bye),
        }
        if competition.format != ELIMINATION:
            data['standings'] = self._standings_view(competition, match_set, teams, pools)
        return data

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------

    def configure_awards(self, schedule_id, award_name, award_type='trophy', description=None) -> List[Dict]:
        with self.store.lock(schedule_id):
            competition = self.store.load_competition(schedule_id)
            if competition is None:
                raise ConfigurationError("Competition not found.")
            awards = configure_awards(competition, self.store.load_awards(schedule_id),
                                      award_name, award_type, description)
            match_set = self.store.load_matches(schedule_id)
            teams = self.store.load_teams(schedule_id)
            self._refresh_awards(schedule_id, competition, match_set, teams, awards)
            self.store.save_awards(schedule_id, awards)
            return [a.to_dict() for a in awards]

    def get_awards(self, schedule_id) -> List[Dict]:
        with self.store.lock(schedule_id):
            names = self._team_names(self.store.load_teams(schedule_id))
            awards = sorted(self.store.load_awards(schedule_id), key=lambda a: AWARD_POSITIONS.index(a.position))
        result = []
        for award in awards:
            data = award.to_dict()
            data['team_name'] = names.get(award.team_id)
            result.append(data)
        return result

    def get_team_achievements(self, schedule_id, team_id) -> List[Dict]:
        return [a for a in self.get_awards(schedule_id) if a['team_id'] == team_id]
