from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from moo.services.games import rooms, state
from moo.services.games.cleanup import cleanup_empty_rooms
from moo.services.games.errors import GameError
from moo.services.games.state import GameLookup


games = Blueprint('games', __name__)


def _notifier():
    return current_app.extensions['game_events']


@games.errorhandler(GameError)
def handle_game_error(error):
    if error.status_code >= 500:
        current_app.logger.error(f"[error] {error.kind}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@games.route('/rooms', methods=['POST'])
@login_required
def create_room():
    result = rooms.create_room(current_user.id, _notifier())
    return jsonify(result), 201


@games.route('/rooms/<string:code>', methods=['GET'])
def get_room_info(code):
    return jsonify(rooms.get_room_info(code).to_dict())


@games.route('/rooms/<string:code>/role', methods=['GET'])
@login_required
def get_user_room_role(code):
    return jsonify(rooms.get_user_room_role(current_user.id, code))


@games.route('/rooms/<string:code>/join', methods=['POST'])
@login_required
def join_room(code):
    return jsonify(rooms.join_room(current_user.id, code, _notifier()))


@games.route('/rooms/<string:code>/state', methods=['GET'])
@login_required
def get_game_state_by_code(code):
    return jsonify(state.get_game_state(current_user.id, GameLookup.by_room_code(code)))


@games.route('/<string:game_id>/state', methods=['GET'])
@login_required
def get_game_state(game_id):
    return jsonify(state.get_game_state(current_user.id, GameLookup.by_id(game_id)))


def _set_code(lookup):
    data = request.get_json(silent=True) or {}
    return jsonify(state.set_player_code(current_user.id, lookup, data.get('code'), _notifier()))


@games.route('/rooms/<string:code>/code', methods=['POST'])
@login_required
def set_player_code_by_code(code):
    return _set_code(GameLookup.by_room_code(code))


@games.route('/<string:game_id>/code', methods=['POST'])
@login_required
def set_player_code(game_id):
    return _set_code(GameLookup.by_id(game_id))


def _guess(lookup):
    data = request.get_json(silent=True) or {}
    return jsonify(state.make_guess(current_user.id, lookup, data.get('guess'), _notifier()))


@games.route('/rooms/<string:code>/guess', methods=['POST'])
@login_required
def make_guess_by_code(code):
    return _guess(GameLookup.by_room_code(code))


@games.route('/<string:game_id>/guess', methods=['POST'])
@login_required
def make_guess(game_id):
    return _guess(GameLookup.by_id(game_id))


@games.route('/mine', methods=['GET'])
@login_required
def get_my_games():
    return jsonify(state.get_my_games(current_user.id))


@games.route('/cleanup', methods=['POST'])
@login_required
def cleanup_rooms():
    cleaned = cleanup_empty_rooms()
    current_app.logger.info(f"[cleanup] manual sweep by user={current_user.id} cleaned={cleaned}")
    return jsonify({'cleaned': cleaned})
