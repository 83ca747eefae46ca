from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from trivia_server import get_rooms
from trivia_server.services.trivia.questions import to_id


trivia = Blueprint('trivia', __name__)


def _reply(result):
    if not result.ok:
        current_app.logger.info(f"[rejected] {request.method} {request.path} status={result.status_code} error={result.message}")
    return jsonify(result.to_dict()), result.status_code


def _room(room):
    return to_id(room)


@trivia.route('/<string:room>/new', methods=['POST'])
@login_required
def new_game(room):
    """
    Opens signups for a new game: {"mode": ..., "category": ..., "length": ...}
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ('mode', 'category', 'length') if not data.get(k)]
    if missing:
        return jsonify({'error': f"Invalid arguments specified: missing {', '.join(missing)}"}), 400
    return _reply(get_rooms().new(_room(room), data['mode'], data['category'], data['length']))


@trivia.route('/<string:room>/join', methods=['POST'])
@login_required
def join_game(room):
    return _reply(get_rooms().join(_room(room), current_user.userid, current_user.username))


@trivia.route('/<string:room>/start', methods=['POST'])
@login_required
def start_game(room):
    return _reply(get_rooms().start(_room(room)))


@trivia.route('/<string:room>/answer', methods=['POST'])
@login_required
def answer_question(room):
    data = request.get_json(silent=True) or {}
    return _reply(get_rooms().answer(_room(room), current_user.userid, data.get('answer') or ''))


@trivia.route('/<string:room>/kick', methods=['POST'])
@login_required
def kick_player(room):
    data = request.get_json(silent=True) or {}
    target = to_id(data.get('username') or '')
    if not target:
        return jsonify({'error': 'A username is required'}), 400
    return _reply(get_rooms().kick(_room(room), target))


@trivia.route('/<string:room>/leave', methods=['POST'])
@login_required
def leave_game(room):
    return _reply(get_rooms().leave(_room(room), current_user.userid))


@trivia.route('/<string:room>/end', methods=['POST'])
@login_required
def end_game(room):
    return _reply(get_rooms().end(_room(room), current_user.username))


@trivia.route('/<string:room>/status', methods=['GET'])
@login_required
def game_status(room):
    target = to_id(request.args.get('user') or '') or None
    return _reply(get_rooms().status(_room(room), current_user.userid, target))


@trivia.route('/rank', methods=['GET'])
@trivia.route('/rank/<string:username>', methods=['GET'])
def rank(username=None):
    if username is None:
        if not current_user.is_authenticated:
            return jsonify({'error': 'A username is required'}), 400
        username = current_user.userid
    return _reply(get_rooms().rank(to_id(username)))


@trivia.route('/ladder', methods=['GET'])
def ladder():
    board = request.args.get('board', 'ladder')
    try:
        limit = int(request.args.get('limit', 100))
    except ValueError:
        limit = 100
    return _reply(get_rooms().ladder(board, limit))
