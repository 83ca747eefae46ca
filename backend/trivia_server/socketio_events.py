from flask import request
from flask_login import current_user
from flask_socketio import join_room, leave_room, emit
from trivia_server import socketio, get_rooms
from trivia_server.services.trivia.broadcast import NAMESPACE, room_channel, user_channel
from trivia_server.services.trivia.questions import to_id
from typing import Dict, Any, Tuple


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
# Open sockets per (room, identity); a player is away only when all are gone
_socket_count: Dict[Tuple[str, str], int] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _identity():
    if current_user and current_user.is_authenticated:
        return current_user.userid
    return None


def _release(ctx) -> None:
    if not ctx or not ctx.get('identity'):
        return
    key = (ctx['room'], ctx['identity'])
    remaining = _socket_count.get(key, 0) - 1
    if remaining > 0:
        _socket_count[key] = remaining
        return
    _socket_count.pop(key, None)
    # The user may have renamed since joining
    get_rooms().disconnect(ctx['room'], _identity() or ctx['identity'])


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    # A dropped socket counts as the player leaving the room's game
    _release(_sid_to_ctx.pop(_get_sid(), None))


def handle_join_room(data):
    room = to_id((data or {}).get('room') or '')
    if not room:
        emit('error', {'message': 'room is required'})
        return
    _release(_sid_to_ctx.pop(_get_sid(), None))
    join_room(room_channel(room))
    identity = _identity()
    if identity:
        join_room(user_channel(identity))
        key = (room, identity)
        _socket_count[key] = _socket_count.get(key, 0) + 1
        get_rooms().connect(room, identity)
    _sid_to_ctx[_get_sid()] = {'room': room, 'identity': identity}
    emit('joined', {'room': room_channel(room), 'identity': identity})


def handle_leave_room(data):
    room = to_id((data or {}).get('room') or '')
    if not room:
        emit('error', {'message': 'room is required'})
        return
    leave_room(room_channel(room))
    emit('left', {'room': room_channel(room)})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('room') == room:
        _release(_sid_to_ctx.pop(_get_sid()))


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
