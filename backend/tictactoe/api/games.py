from flask import Blueprint, current_app, jsonify

games = Blueprint('games', __name__)


def _registry():
    return current_app.extensions['tictactoe']['registry']


@games.route('', methods=['GET'])
@games.route('/', methods=['GET'])
def list_games():
    """Read-only lobby listing of live sessions."""
    return jsonify(_registry().list_sessions())


@games.route('/<string:session_id>', methods=['GET'])
def get_game(session_id):
    session = _registry().get(session_id)
    if not session:
        return jsonify({'error': 'Session not found'}), 404
    # Snapshot under the session lock so a half-applied move is never served
    with session.lock:
        payload = session.to_dict()
    return jsonify(payload)
