"""
Records for schedules, teams, pools, matches, competitions and awards.

Everything round-trips through plain dicts so it can be stored as YAML.
Matches reference each other by id (``next_match_id`` / ``next_loser_match_id``);
``MatchSet`` is the flat, id-indexed arena that holds one schedule's matches.
"""
from typing import Dict, Iterator, List, Optional

# Competition formats
POOL_PLAY = 'pool_play'
ELIMINATION = 'elimination'
ROUND_ROBIN = 'round_robin'
FORMATS = (POOL_PLAY, ELIMINATION, ROUND_ROBIN)

# Standing calculation methods (the declared tie-break)
WIN_LOSS_POINTS = 'win_loss_points'
WIN_PERCENT = 'win_percent'
GAMES_WIN_PERCENT = 'games_win_percent'
GAMES_WON = 'games_won'
TOTAL_SCORES = 'total_scores'
STANDING_CALCULATIONS = (WIN_LOSS_POINTS, WIN_PERCENT, GAMES_WIN_PERCENT, GAMES_WON, TOTAL_SCORES)

# Team statuses
TEAM_PENDING = 'pending'
TEAM_ON_HOLD = 'on_hold'
TEAM_CONFIRMED = 'confirmed'
TEAM_STATUSES = (TEAM_PENDING, TEAM_ON_HOLD, TEAM_CONFIRMED)

# Match statuses
PENDING = 'pending'
ACTIVE = 'active'
BYE = 'bye'
DONE = 'done'

# Schedule statuses
SCHEDULE_PENDING_SETUP = 'pending_setup'
SCHEDULE_ACTIVE = 'active'
SCHEDULE_IN_PROGRESS = 'in_progress'

# Award positions
CHAMPION = 'champion'
FIRST_RUNNER_UP = 'first_runner_up'
SECOND_RUNNER_UP = 'second_runner_up'
AWARD_POSITIONS = (CHAMPION, FIRST_RUNNER_UP, SECOND_RUNNER_UP)
AWARD_TYPES = ('trophy', 'medal', 'ribbon', 'crown', 'star', 'shirt', 'shoe', 'ticket')

ROUND_ROBIN_ROUND_NAME = 'Round Robin'
THIRD_PLACE_ROUND_NAME = 'Third Place'
FINAL_ROUND_NAME = 'Final'


class Schedule:
    def __init__(self, schedule_id, name='', status=SCHEDULE_PENDING_SETUP, organizers=None):
        self.schedule_id = schedule_id
        self.name = name
        self.status = status
        self.organizers = list(organizers) if organizers else []

    def is_organizer(self, username) -> bool:
        return bool(username) and username in self.organizers

    def to_dict(self) -> Dict:
        return {
            'schedule_id': self.schedule_id,
            'name': self.name,
            'status': self.status,
            'organizers': list(self.organizers),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Schedule':
        return cls(
            schedule_id=data['schedule_id'],
            name=data.get('name', ''),
            status=data.get('status', SCHEDULE_PENDING_SETUP),
            organizers=data.get('organizers'),
        )

    def __repr__(self):
        return f"Schedule(schedule_id={self.schedule_id}, name={self.name}, status={self.status})"


class Team:
    def __init__(self, team_id, name, status=TEAM_PENDING, members=None, pool_id=None, bracket_seed=None):
        self.team_id = team_id
        self.name = name
        self.status = status
        self.members = list(members) if members else []
        self.pool_id = pool_id
        self.bracket_seed = bracket_seed

    @property
    def is_confirmed(self) -> bool:
        return self.status == TEAM_CONFIRMED

    def to_dict(self) -> Dict:
        return {
            'team_id': self.team_id,
            'name': self.name,
            'status': self.status,
            'members': list(self.members),
            'pool_id': self.pool_id,
            'bracket_seed': self.bracket_seed,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Team':
        return cls(
            team_id=data['team_id'],
            name=data['name'],
            status=data.get('status', TEAM_PENDING),
            members=data.get('members'),
            pool_id=data.get('pool_id'),
            bracket_seed=data.get('bracket_seed'),
        )

    def __repr__(self):
        return f"Team(team_id={self.team_id}, name={self.name}, status={self.status}, seed={self.bracket_seed})"


class Pool:
    def __init__(self, pool_id, name):
        self.pool_id = pool_id
        self.name = name

    def to_dict(self) -> Dict:
        return {'pool_id': self.pool_id, 'name': self.name}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Pool':
        return cls(pool_id=data['pool_id'], name=data['name'])

    def __repr__(self):
        return f"Pool(pool_id={self.pool_id}, name={self.name})"


class Competition:
    """Competition setup for one schedule."""

    def __init__(self, schedule_id, format=POOL_PLAY, num_pool=4, winners_per_pool=1,
                 third_place_match=True, double_round_robin=False,
                 standing_calculation=WIN_LOSS_POINTS, standard_win=3, standard_loss=0,
                 tie_break_win=3, tie_break_loss=1, draw=1, draw_published=False, match_rule=None):
        self.schedule_id = schedule_id
        self.format = format
        self.num_pool = num_pool
        self.winners_per_pool = winners_per_pool
        self.third_place_match = third_place_match
        self.double_round_robin = double_round_robin
        self.standing_calculation = standing_calculation
        self.standard_win = standard_win
        self.standard_loss = standard_loss
        self.tie_break_win = tie_break_win
        self.tie_break_loss = tie_break_loss
        self.draw = draw
        self.draw_published = draw_published
        self.match_rule = match_rule

    def to_dict(self) -> Dict:
        return dict(vars(self))

    @classmethod
    def from_dict(cls, data: Dict) -> 'Competition':
        return cls(**data)

    def __repr__(self):
        return f"Competition(schedule_id={self.schedule_id}, format={self.format})"


class Match:
    def __init__(self, schedule_id, round_number, round_name, match_number,
                 team1_id=None, team2_id=None, team1_score=None, team2_score=None,
                 status=PENDING, winner_id=None, is_bye=False, is_third_place_match=False,
                 match_position=None, next_match_id=None, next_loser_match_id=None,
                 match_id=None, court=None, match_time=None):
        self.match_id = match_id
        self.schedule_id = schedule_id
        self.round_number = round_number
        self.round_name = round_name
        self.match_number = match_number
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.team1_score = team1_score
        self.team2_score = team2_score
        self.status = status
        self.winner_id = winner_id
        self.is_bye = is_bye
        self.is_third_place_match = is_third_place_match
        self.match_position = match_position
        self.next_match_id = next_match_id
        self.next_loser_match_id = next_loser_match_id
        self.court = court
        self.match_time = match_time

    @property
    def is_decided(self) -> bool:
        """Done or resolved as a BYE; nothing more will change without an edit."""
        return self.status in (DONE, BYE)

    @property
    def has_scores(self) -> bool:
        return bool(self.team1_score) and bool(self.team2_score)

    def teams(self) -> List[Optional[int]]:
        return [self.team1_id, self.team2_id]

    def get_slot(self, position: int) -> Optional[int]:
        return self.team1_id if position == 1 else self.team2_id

    def set_slot(self, position: int, team_id: Optional[int]):
        if position == 1:
            self.team1_id = team_id
        else:
            self.team2_id = team_id

    def loser_id(self) -> Optional[int]:
        """The losing team of a Done match; BYEs have no loser."""
        if self.status != DONE or self.winner_id is None:
            return None
        if self.winner_id == self.team1_id:
            return self.team2_id
        if self.winner_id == self.team2_id:
            return self.team1_id
        return None

    def reset(self):
        """Clear teams, result and BYE state; links and placement are kept."""
        self.team1_id = None
        self.team2_id = None
        self.team1_score = None
        self.team2_score = None
        self.winner_id = None
        self.status = PENDING
        self.is_bye = False

    def to_dict(self) -> Dict:
        return dict(vars(self))

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(**data)

    def __repr__(self):
        return (f"Match(id={self.match_id}, round={self.round_number} {self.round_name!r}, "
                f"no={self.match_number}, teams=({self.team1_id}, {self.team2_id}), "
                f"status={self.status}, winner={self.winner_id})")


class Award:
    def __init__(self, award_id, schedule_id, position, award_name='', award_type='trophy',
                 description=None, team_id=None, awarded_date=None):
        self.award_id = award_id
        self.schedule_id = schedule_id
        self.position = position
        self.award_name = award_name
        self.award_type = award_type
        self.description = description
        self.team_id = team_id
        self.awarded_date = awarded_date

    def to_dict(self) -> Dict:
        return dict(vars(self))

    @classmethod
    def from_dict(cls, data: Dict) -> 'Award':
        return cls(**data)

    def __repr__(self):
        return f"Award(position={self.position}, team_id={self.team_id})"


class MatchSet:
    """
    Flat store of one schedule's matches, indexed by id.

    ``add`` assigns ids; links between matches are plain ids, so wiring
    happens as a separate step once every match of the bracket has one.
    """

    def __init__(self, matches=None):
        self._matches: Dict[int, Match] = {}
        self._next_id = 1
        for match in matches or []:
            self._matches[match.match_id] = match
            self._next_id = max(self._next_id, match.match_id + 1)

    def add(self, match: Match) -> Match:
        match.match_id = self._next_id
        self._next_id += 1
        self._matches[match.match_id] = match
        return match

    def get(self, match_id) -> Optional[Match]:
        if match_id is None:
            return None
        return self._matches.get(match_id)

    def __iter__(self) -> Iterator[Match]:
        return iter(self.ordered())

    def __len__(self):
        return len(self._matches)

    def __contains__(self, match_id):
        return match_id in self._matches

    def ordered(self) -> List[Match]:
        """Matches in display order: round, third-place last, match number."""
        return sorted(
            self._matches.values(),
            key=lambda m: (m.round_number, m.is_third_place_match, m.match_number, m.match_id),
        )

    def in_round(self, round_number: int) -> List[Match]:
        return [m for m in self.ordered() if m.round_number == round_number]

    def feeders(self, match_id) -> List[Match]:
        """Matches whose winner or loser lands in ``match_id``."""
        return [m for m in self.ordered()
                if m.next_match_id == match_id or m.next_loser_match_id == match_id]

    def final_match(self) -> Optional[Match]:
        """The last round's main match of an elimination tree, if there is one."""
        finals = [m for m in self._matches.values()
                  if m.round_name == FINAL_ROUND_NAME and not m.is_third_place_match]
        if not finals:
            return None
        return max(finals, key=lambda m: m.round_number)

    def third_place_match(self) -> Optional[Match]:
        for match in self._matches.values():
            if match.is_third_place_match:
                return match
        return None

    def to_list(self) -> List[Dict]:
        return [m.to_dict() for m in self.ordered()]

    @classmethod
    def from_list(cls, data: List[Dict]) -> 'MatchSet':
        return cls([Match.from_dict(d) for d in data or []])
