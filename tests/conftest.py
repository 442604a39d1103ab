"""
Shared pytest fixtures for competition engine tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep the app from persisting a generated secret key into the repository
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from core.models import (
    ELIMINATION, POOL_PLAY, ROUND_ROBIN, TEAM_CONFIRMED, Competition, Team,
)
from core.manager import CompetitionManager
from core.storage import ScheduleStore


def build_teams(count, status=TEAM_CONFIRMED, seeded=False):
    """Teams 1..count named "Team 1".., optionally seeded by id."""
    return [
        Team(team_id=i, name=f"Team {i}", status=status, members=[f"Player {i}"],
             bracket_seed=i if seeded else None)
        for i in range(1, count + 1)
    ]


@pytest.fixture
def make_teams():
    return build_teams


@pytest.fixture
def elimination_competition():
    return Competition(schedule_id='cup', format=ELIMINATION, third_place_match=True)


@pytest.fixture
def pool_competition():
    return Competition(schedule_id='cup', format=POOL_PLAY, num_pool=2, winners_per_pool=2,
                       third_place_match=True)


@pytest.fixture
def round_robin_competition():
    return Competition(schedule_id='cup', format=ROUND_ROBIN)


@pytest.fixture
def store(tmp_path):
    """Schedule store rooted in a temporary directory."""
    return ScheduleStore(str(tmp_path), lock_timeout=0.2)


@pytest.fixture
def manager(store):
    """Manager with a fixed random source and one schedule organized by testuser."""
    manager = CompetitionManager(store, rng=random.Random(7))
    manager.create_schedule('cup', name='Summer Cup', organizers=['testuser'])
    return manager


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at an empty temporary data directory."""
    import app as app_module
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    return tmp_path


@pytest.fixture
def client(temp_data_dir):
    """Create an authenticated test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'testuser'
        yield client
