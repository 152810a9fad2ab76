from flask import Blueprint, jsonify, request, current_app
from yahtzee.errors import GameError
from yahtzee.services.game import authority


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify({'error': exc.to_dict()}), exc.status


def _body():
    return request.get_json(silent=True) or {}


@rooms.route('', methods=['POST'])
def create_room():
    data = _body()
    created = authority.create_room(data.get('host_name'), data.get('max_players'))
    return jsonify(created), 201


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    return jsonify(authority.room_snapshot(room_code))


@rooms.route('/<string:room_code>/join', methods=['POST'])
def join_room(room_code):
    data = _body()
    return jsonify(authority.join_room(room_code, data.get('player_name'), data.get('session_id')))


@rooms.route('/<string:room_code>/bot', methods=['POST'])
def add_bot(room_code):
    data = _body()
    return jsonify(authority.add_bot(room_code, data.get('session_id'), data.get('bot_name', 'Bot')))


@rooms.route('/<string:room_code>/leave', methods=['POST'])
def leave_room(room_code):
    data = _body()
    return jsonify(authority.leave_room(room_code, data.get('session_id')))


@rooms.route('/<string:room_code>/start', methods=['POST'])
def start_game(room_code):
    data = _body()
    return jsonify(authority.start_game(room_code, data.get('session_id')))


@rooms.route('/<string:room_code>/roll', methods=['POST'])
def roll(room_code):
    data = _body()
    return jsonify(authority.roll(room_code, data.get('session_id'), data.get('held')))


@rooms.route('/<string:room_code>/hold', methods=['POST'])
def toggle_hold(room_code):
    data = _body()
    return jsonify(authority.toggle_hold(room_code, data.get('session_id'), data.get('die_index')))


@rooms.route('/<string:room_code>/score', methods=['POST'])
def select_category(room_code):
    data = _body()
    return jsonify(authority.select_category(room_code, data.get('session_id'), data.get('category')))


@rooms.route('/<string:room_code>/skip', methods=['POST'])
def skip_turn(room_code):
    # Called by the turn timer, never by the player whose turn it is.
    current_app.logger.info(f"[turn-timeout] room={room_code.upper()}")
    return jsonify(authority.skip_turn(room_code))


@rooms.route('/<string:room_code>/quit', methods=['POST'])
def quit_game(room_code):
    data = _body()
    return jsonify(authority.quit_game(room_code, data.get('session_id')))
