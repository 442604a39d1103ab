"""
Flask web application for the competition engine.
"""
import os
from functools import wraps
from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException
from core.errors import (
    ConcurrencyError, NotFoundError, PermissionDeniedError, TournamentError,
)
from core.manager import CompetitionManager
from core.storage import ScheduleStore

app = Flask(__name__)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('TOURNAMENT_LOCK_TIMEOUT', '10'))

app.secret_key = _get_or_create_secret_key()


def get_manager() -> CompetitionManager:
    """Manager bound to the current DATA_DIR (read per request so tests can repoint it)."""
    return CompetitionManager(ScheduleStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT))


def _error_status(error: TournamentError) -> int:
    if isinstance(error, PermissionDeniedError):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConcurrencyError):
        return 409
    return 400


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    status = _error_status(error)
    app.logger.warning(f'{request.method} {request.path} failed ({status}): {error}')
    return jsonify({'success': False, 'error': str(error)}), status


@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'success': False, 'error': error.description}), error.code


def login_required(f):
    """Reject the request if no user is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'success': False, 'error': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def organizer_required(f):
    """Only organizers of the schedule in the URL may call the wrapped route."""
    @wraps(f)
    def decorated_function(schedule_id, *args, **kwargs):
        if 'user' not in session:
            return jsonify({'success': False, 'error': 'Login required'}), 401
        get_manager().authorize(schedule_id, session['user'])
        return f(schedule_id, *args, **kwargs)
    return decorated_function


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@app.route('/login', methods=['POST'])
def login():
    """Store the already-authenticated username in the session."""
    username = (_json_body().get('username') or request.form.get('username', '')).lower().strip()
    if not username:
        return jsonify({'success': False, 'error': 'Username is required'}), 400
    session['user'] = username
    session.permanent = True
    return jsonify({'success': True, 'user': username})


@app.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True})


@app.route('/api/schedules', methods=['POST'])
@login_required
def api_create_schedule():
    """Create a schedule organized by the current user."""
    data = _json_body()
    schedule_id = (data.get('schedule_id') or '').strip()
    if not schedule_id:
        return jsonify({'success': False, 'error': 'schedule_id is required'}), 400
    organizers = [session['user']] + [u for u in data.get('organizers', []) if u != session['user']]
    schedule = get_manager().create_schedule(schedule_id, name=data.get('name', ''), organizers=organizers)
    return jsonify({'success': True, 'schedule': schedule.to_dict()}), 201


# ---------------------------------------------------------------------------
# Setup and draw
# ---------------------------------------------------------------------------

@app.route('/api/schedules/<schedule_id>/competition', methods=['POST'])
@organizer_required
def api_update_competition(schedule_id):
    competition = get_manager().update_competition(schedule_id, _json_body())
    return jsonify({'success': True, 'competition': competition.to_dict()})


@app.route('/api/schedules/<schedule_id>/teams', methods=['POST'])
@organizer_required
def api_set_teams(schedule_id):
    teams = get_manager().set_teams(schedule_id, _json_body().get('teams', []))
    return jsonify({'success': True, 'teams': [t.to_dict() for t in teams]})


@app.route('/api/schedules/<schedule_id>/teams/<int:team_id>/status', methods=['POST'])
@organizer_required
def api_update_team_status(schedule_id, team_id):
    team = get_manager().update_team_status(schedule_id, team_id, _json_body().get('status'))
    return jsonify({'success': True, 'team': team.to_dict()})


@app.route('/api/schedules/<schedule_id>/draw', methods=['GET'])
@organizer_required
def api_generate_draw(schedule_id):
    return jsonify({'success': True, 'draw': get_manager().generate_draw(schedule_id)})


@app.route('/api/schedules/<schedule_id>/draw/pools', methods=['POST'])
@organizer_required
def api_save_pool_draw(schedule_id):
    teams = get_manager().save_pool_draw(schedule_id, _json_body().get('selections', {}))
    return jsonify({'success': True, 'teams': [t.to_dict() for t in teams]})


@app.route('/api/schedules/<schedule_id>/draw/seeds', methods=['POST'])
@organizer_required
def api_save_elimination_draw(schedule_id):
    teams = get_manager().save_elimination_draw(schedule_id, _json_body().get('seeds', {}))
    return jsonify({'success': True, 'teams': [t.to_dict() for t in teams]})


@app.route('/api/schedules/<schedule_id>/draw/reseed', methods=['POST'])
@organizer_required
def api_reseed(schedule_id):
    seeds = get_manager().reseed(schedule_id)
    return jsonify({'success': True, 'seeds': {str(k): v for k, v in seeds.items()}})


@app.route('/api/schedules/<schedule_id>/draw/publish', methods=['POST'])
@organizer_required
def api_publish_draw(schedule_id):
    get_manager().publish_draw(schedule_id)
    return jsonify({'success': True, 'draw_published': True})


@app.route('/api/schedules/<schedule_id>/draw/unpublish', methods=['POST'])
@organizer_required
def api_unpublish_draw(schedule_id):
    get_manager().unpublish_draw(schedule_id)
    return jsonify({'success': True, 'draw_published': False})


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

@app.route('/api/schedules/<schedule_id>/start', methods=['POST'])
@organizer_required
def api_start_competition(schedule_id):
    summary = get_manager().start_competition(schedule_id)
    app.logger.info(f'Competition {schedule_id} started by {session["user"]}')
    return jsonify({'success': True, **summary})


@app.route('/api/schedules/<schedule_id>/matches/<int:match_id>/score', methods=['POST'])
@organizer_required
def api_submit_score(schedule_id, match_id):
    data = _json_body()
    result = get_manager().submit_score(
        schedule_id, match_id, data.get('team1_score', ''), data.get('team2_score', ''))
    return jsonify({'success': True, **result})


@app.route('/api/schedules/<schedule_id>/matches/<int:match_id>/details', methods=['POST'])
@organizer_required
def api_update_match_details(schedule_id, match_id):
    data = _json_body()
    match = get_manager().update_match_details(
        schedule_id, match_id, court=data.get('court'), match_time=data.get('match_time'))
    return jsonify({'success': True, 'match': match})


@app.route('/api/schedules/<schedule_id>/advance-to-playoff', methods=['POST'])
@organizer_required
def api_advance_to_playoff(schedule_id):
    return jsonify({'success': True, **get_manager().advance_to_playoff(schedule_id)})


# ---------------------------------------------------------------------------
# Read-only views
# ---------------------------------------------------------------------------

@app.route('/api/schedules/<schedule_id>/bracket', methods=['GET'])
def api_bracket(schedule_id):
    return jsonify({'success': True, 'bracket': get_manager().get_bracket_data(schedule_id)})


@app.route('/api/schedules/<schedule_id>/matches', methods=['GET'])
def api_matches(schedule_id):
    return jsonify({'success': True, 'matches': get_manager().get_match_listing(schedule_id)})


@app.route('/api/schedules/<schedule_id>/standings', methods=['GET'])
def api_standings(schedule_id):
    return jsonify({'success': True, 'standings': get_manager().get_standings(schedule_id)})


# ---------------------------------------------------------------------------
# Awards
# ---------------------------------------------------------------------------

@app.route('/api/schedules/<schedule_id>/awards', methods=['GET'])
def api_awards(schedule_id):
    return jsonify({'success': True, 'awards': get_manager().get_awards(schedule_id)})


@app.route('/api/schedules/<schedule_id>/awards', methods=['POST'])
@organizer_required
def api_configure_awards(schedule_id):
    data = _json_body()
    awards = get_manager().configure_awards(
        schedule_id, data.get('award_name', ''), data.get('award_type', 'trophy'), data.get('description'))
    return jsonify({'success': True, 'awards': awards})


@app.route('/api/teams/<schedule_id>/<int:team_id>/achievements', methods=['GET'])
def api_team_achievements(schedule_id, team_id):
    return jsonify({'success': True, 'achievements': get_manager().get_team_achievements(schedule_id, team_id)})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
