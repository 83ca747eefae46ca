from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from trivia_server import db, get_rooms
from trivia_server.models import User, UserName
from trivia_server.services.trivia.questions import to_id

main = Blueprint('main', __name__)


def _identity_taken(userid, exclude=None):
    user = User.query.filter_by(userid=userid).first()
    if user and user is not exclude:
        return True
    alias = UserName.query.filter_by(userid=userid).first()
    return bool(alias and alias.user is not exclude)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the trivia server!'})


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password')
    if not to_id(username) or not password:
        return jsonify({'error': 'Missing username or password'}), 400
    if _identity_taken(to_id(username)):
        return jsonify({'error': 'Username already exists'}), 400

    user = User(username=username)
    user.set_password(password)
    user.remember_address(request.remote_addr)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(userid=to_id(data.get('username') or '')).first()
    if user and user.check_password(data.get('password') or ''):
        user.remember_address(request.remote_addr)
        db.session.commit()
        login_user(user, remember=True)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'error': 'Invalid username or password'}), 401


@main.route('/rename', methods=['POST'])
@login_required
def rename():
    data = request.get_json(silent=True) or {}
    new_name = (data.get('username') or '').strip()
    if not to_id(new_name):
        return jsonify({'error': 'A new username is required'}), 400
    if _identity_taken(to_id(new_name), exclude=current_user):
        return jsonify({'error': 'Username already exists'}), 400
    old_id = current_user.userid
    current_user.rename(new_name)
    db.session.commit()
    if old_id != current_user.userid:
        get_rooms().rename(old_id, current_user.userid, current_user.username)
    return jsonify({'success': True, 'user': current_user.to_dict()})


@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({'success': True, 'user': current_user.to_dict()})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
