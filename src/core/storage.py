"""
YAML persistence for schedules, with one file lock per schedule.

Layout under the data directory::

    schedules/<schedule_id>/schedule.yaml
                           competition.yaml
                           teams.yaml
                           pools.yaml
                           matches.yaml
                           awards.yaml
                           .lock
"""
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import List, Optional

import yaml
from filelock import FileLock, Timeout

from core.errors import ConcurrencyError, NotFoundError
from core.models import Award, Competition, MatchSet, Pool, Schedule, Team

logger = logging.getLogger(__name__)


def get_default_competition() -> dict:
    """Default competition setup; stored setups are merged over this."""
    return {
        'format': 'pool_play',
        'num_pool': 4,
        'winners_per_pool': 1,
        'third_place_match': True,
        'double_round_robin': False,
        'standing_calculation': 'win_loss_points',
        'standard_win': 3,
        'standard_loss': 0,
        'tie_break_win': 3,
        'tie_break_loss': 1,
        'draw': 1,
        'draw_published': False,
        'match_rule': None,
    }


class ScheduleStore:
    def __init__(self, data_dir, lock_timeout=10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout

    def schedule_dir(self, schedule_id) -> str:
        return os.path.join(self.data_dir, 'schedules', str(schedule_id))

    def _path(self, schedule_id, filename) -> str:
        return os.path.join(self.schedule_dir(schedule_id), filename)

    @contextmanager
    def lock(self, schedule_id):
        """Hold the schedule's lock; every read-modify-write of a schedule runs inside it."""
        os.makedirs(self.schedule_dir(schedule_id), exist_ok=True)
        lock = FileLock(self._path(schedule_id, '.lock'), timeout=self.lock_timeout)
        try:
            lock.acquire()
        except Timeout:
            logger.warning("Timed out waiting for the lock of schedule %s", schedule_id)
            raise ConcurrencyError() from None
        try:
            yield
        finally:
            lock.release()

    def _load(self, schedule_id, filename):
        path = self._path(schedule_id, filename)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)

    def _save(self, schedule_id, filename, data):
        """Write through a temp file and rename, so readers never see a partial file."""
        directory = self.schedule_dir(schedule_id)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f'.{filename}.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self._path(schedule_id, filename))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    # Schedule

    def create_schedule(self, schedule_id, name='', organizers=None) -> Schedule:
        schedule = Schedule(schedule_id=schedule_id, name=name, organizers=organizers)
        self.save_schedule(schedule)
        return schedule

    def load_schedule(self, schedule_id) -> Schedule:
        data = self._load(schedule_id, 'schedule.yaml')
        if not data:
            raise NotFoundError(f"Schedule {schedule_id} not found.")
        return Schedule.from_dict(data)

    def save_schedule(self, schedule: Schedule):
        self._save(schedule.schedule_id, 'schedule.yaml', schedule.to_dict())

    # Competition

    def load_competition(self, schedule_id) -> Optional[Competition]:
        """Stored setup merged with defaults; None until the organizer saves one."""
        data = self._load(schedule_id, 'competition.yaml')
        if not data:
            return None
        merged = get_default_competition()
        for key in merged:
            if key in data:
                merged[key] = data[key]
        return Competition(schedule_id=schedule_id, **merged)

    def save_competition(self, competition: Competition):
        data = competition.to_dict()
        data.pop('schedule_id', None)
        self._save(competition.schedule_id, 'competition.yaml', data)

    # Teams and pools

    def load_teams(self, schedule_id) -> List[Team]:
        return [Team.from_dict(d) for d in self._load(schedule_id, 'teams.yaml') or []]

    def save_teams(self, schedule_id, teams: List[Team]):
        self._save(schedule_id, 'teams.yaml', [t.to_dict() for t in teams])

    def load_pools(self, schedule_id) -> List[Pool]:
        return [Pool.from_dict(d) for d in self._load(schedule_id, 'pools.yaml') or []]

    def save_pools(self, schedule_id, pools: List[Pool]):
        self._save(schedule_id, 'pools.yaml', [p.to_dict() for p in pools])

    # Matches

    def load_matches(self, schedule_id) -> MatchSet:
        return MatchSet.from_list(self._load(schedule_id, 'matches.yaml'))

    def save_matches(self, schedule_id, match_set: MatchSet):
        """Replace the schedule's whole match set, links included, in one write."""
        self._save(schedule_id, 'matches.yaml', match_set.to_list())

    # Awards

    def load_awards(self, schedule_id) -> List[Award]:
        return [Award.from_dict(d) for d in self._load(schedule_id, 'awards.yaml') or []]

    def save_awards(self, schedule_id, awards: List[Award]):
        self._save(schedule_id, 'awards.yaml', [a.to_dict() for a in awards])
