"""
Flask web application for the bracket popularity contest.

Exposes the bracket engine as a JSON API. Authentication happens upstream:
a voter_id arriving here is trusted as already authenticated.
"""
import os
import logging
import yaml
from filelock import Timeout
from flask import Flask, request, jsonify

from contest.builder import parse_field
from contest.engine import ContestEngine
from contest.errors import ContestError
from contest.repository import YamlRepository
from contest.settings import get_default_settings, load_settings, parse_region_labels, save_settings
from contest.tiebreak import TieBreakPolicy

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('CONTEST_LOCK_TIMEOUT', '10'))
LOG_LEVEL = os.environ.get('CONTEST_LOG_LEVEL', 'INFO').upper()
CONTESTANTS_FILENAME = 'contestants.yaml'

app.logger.setLevel(LOG_LEVEL)
logging.getLogger('contest').setLevel(LOG_LEVEL)

_engine = None


def get_engine() -> ContestEngine:
    """Engine bound to the current DATA_DIR (rebuilt if DATA_DIR changes)."""
    global _engine
    if _engine is None or _engine.repository.data_dir != DATA_DIR:
        _engine = ContestEngine(YamlRepository(DATA_DIR, LOCK_TIMEOUT), settings_loader=load_tournament_settings)
    return _engine


def _tournament_dir(tournament_id: str) -> str:
    """Return data directory for a tournament (validates the id)."""
    return get_engine().repository.tournament_dir(tournament_id)


def load_tournament_settings(tournament_id: str) -> dict:
    """Load settings.yaml for a tournament, falling back to defaults if unreadable."""
    tournament_dir = _tournament_dir(tournament_id)
    try:
        return load_settings(tournament_dir)
    except (yaml.YAMLError, OSError) as e:
        app.logger.warning(f'Failed to parse settings for {tournament_id}: {e}')
        return get_default_settings()


def load_contestants(tournament_id: str):
    """Load the field from contestants.yaml, or None if the file is absent."""
    path = os.path.join(_tournament_dir(tournament_id), CONTESTANTS_FILENAME)
    if not os.path.exists(path):
        return None
    with open(path, 'r', encoding='utf-8') as f:
        return parse_field(yaml.safe_load(f))


@app.errorhandler(ContestError)
def handle_contest_error(e):
    return jsonify({'error': e.message}), e.status_code


@app.errorhandler(Timeout)
def handle_lock_timeout(e):
    app.logger.warning(f'Lock timeout: {e}')
    return jsonify({'error': 'Tournament is busy, retry the request'}), 503


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def api_bracket(tournament_id):
    """Full bracket snapshot for rendering."""
    return jsonify(get_engine().bracket(tournament_id))


@app.route('/api/tournaments/<tournament_id>/build', methods=['POST'])
def api_build(tournament_id):
    """
    Build or rebuild the bracket.

    Contestants come from the request body, else contestants.yaml in the
    tournament directory, else the field stored by a previous build.
    """
    data = request.get_json(silent=True) or {}
    contestants = data.get('contestants')
    if contestants is not None:
        contestants = parse_field(contestants)
    else:
        contestants = load_contestants(tournament_id)

    bracket = get_engine().build(tournament_id, contestants)
    app.logger.info(f'Bracket built for {tournament_id}: {bracket["total_rounds"]} rounds')
    return jsonify(bracket), 201


@app.route('/api/tournaments/<tournament_id>/votes', methods=['POST'])
def api_cast_vote(tournament_id):
    """Cast one regular vote."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Missing vote data'}), 400
    voter_id = data.get('voter_id')
    matchup_id = data.get('matchup_id')
    contestant_id = data.get('contestant_id')
    if not voter_id or not matchup_id or not contestant_id:
        return jsonify({'error': 'voter_id, matchup_id and contestant_id are required'}), 400

    result = get_engine().cast_vote(tournament_id, voter_id, matchup_id, contestant_id)
    return jsonify(result), 201


@app.route('/api/tournaments/<tournament_id>/votes', methods=['DELETE'])
def api_retract_vote(tournament_id):
    """Retract a voter's regular vote on an active matchup."""
    data = request.get_json(silent=True)
    if not data or not data.get('voter_id') or not data.get('matchup_id'):
        return jsonify({'error': 'voter_id and matchup_id are required'}), 400

    tally = get_engine().retract_vote(tournament_id, data['voter_id'], data['matchup_id'])
    return jsonify({'success': True, 'tally': tally})


@app.route('/api/tournaments/<tournament_id>/matchups/<matchup_id>/tally', methods=['GET'])
def api_tally(tournament_id, matchup_id):
    return jsonify(get_engine().tally(tournament_id, matchup_id))


@app.route('/api/tournaments/<tournament_id>/matchups/<matchup_id>/close', methods=['POST'])
def api_close_matchup(tournament_id, matchup_id):
    """Close a matchup; body may carry a tie-break 'policy'."""
    data = request.get_json(silent=True) or {}
    return jsonify(get_engine().close_matchup(tournament_id, matchup_id, data.get('policy')))


@app.route('/api/tournaments/<tournament_id>/rounds/<round_id>/advance', methods=['POST'])
def api_advance_round(tournament_id, round_id):
    """Advance a completed round. Repeating the call is harmless."""
    return jsonify(get_engine().try_advance_round(tournament_id, round_id))


@app.route('/api/tournaments/<tournament_id>/force-advance', methods=['POST'])
def api_force_advance(tournament_id):
    """Close every open matchup in the active round and advance it."""
    data = request.get_json(silent=True) or {}
    result = get_engine().force_advance(tournament_id, data.get('policy'))
    app.logger.info(f'Force advanced {tournament_id}: {result["winners_declared"]} winners, '
                    f'{result["ties_resolved"]} ties resolved')
    return jsonify(result)


@app.route('/api/tournaments/<tournament_id>/reset', methods=['POST'])
def api_reset(tournament_id):
    """Delete all rounds, matchups and votes of a tournament."""
    removed = get_engine().reset_tournament(tournament_id)
    app.logger.info(f'Tournament {tournament_id} reset')
    return jsonify({'success': True, 'removed': removed})


@app.route('/api/tournaments/<tournament_id>', methods=['DELETE'])
def api_delete_tournament(tournament_id):
    """Delete the stored bracket; settings.yaml and contestants.yaml stay."""
    get_engine().delete_tournament(tournament_id)
    app.logger.info(f'Tournament {tournament_id} deleted')
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/stats', methods=['GET'])
def api_stats(tournament_id):
    return jsonify(get_engine().stats(tournament_id))


@app.route('/api/tournaments/<tournament_id>/tie-breaks', methods=['GET'])
def api_tie_breaks(tournament_id):
    """Active matchups that are currently tied."""
    return jsonify({'matchups': get_engine().tie_break_opportunities(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/voters/<voter_id>/votes', methods=['GET'])
def api_voter_history(tournament_id, voter_id):
    return jsonify({'votes': get_engine().voter_history(tournament_id, voter_id)})


@app.route('/api/tournaments/<tournament_id>/voters/<voter_id>/status', methods=['GET'])
def api_voting_status(tournament_id, voter_id):
    return jsonify(get_engine().voting_status(tournament_id, voter_id))


@app.route('/api/tournaments/<tournament_id>/settings', methods=['GET', 'POST'])
def api_settings(tournament_id):
    """Read or update settings.yaml for a tournament."""
    if request.method == 'GET':
        return jsonify(load_tournament_settings(tournament_id))

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Missing settings data'}), 400
    unknown = set(data) - set(get_default_settings())
    if unknown:
        return jsonify({'error': f'Unknown settings: {", ".join(sorted(unknown))}'}), 400

    # Reject bad values now, before they reach settings.yaml
    TieBreakPolicy.parse(data.get('tie_break_policy'))
    if 'region_labels' in data:
        data['region_labels'] = parse_region_labels(data['region_labels'])

    tournament_dir = _tournament_dir(tournament_id)
    with get_engine().repository.lock(tournament_id):
        settings = load_tournament_settings(tournament_id)
        if 'region_labels' in data:
            settings['region_labels'].update(data.pop('region_labels'))
        settings.update(data)
        save_settings(tournament_dir, settings)
        return jsonify(load_settings(tournament_dir))


if __name__ == '__main__':
    app.run(debug=True)
