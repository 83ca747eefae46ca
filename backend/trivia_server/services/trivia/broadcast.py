NAMESPACE = '/ws'


def room_channel(room):
    return f"room:{room}"


def user_channel(identity):
    return f"user:{identity}"


class SocketIOBroadcaster:
    """Announces game events to everyone in a room over Socket.IO."""

    def __init__(self, socketio, room):
        self.socketio = socketio
        self.room = room

    def announce(self, title, message=None, **data):
        payload = {'room': self.room, 'title': title, 'message': message}
        payload.update({k: v for k, v in data.items() if v is not None})
        self.socketio.emit('announcement', payload, to=room_channel(self.room), namespace=NAMESPACE)

    def notify(self, identity, message):
        self.socketio.emit('notice', {'room': self.room, 'message': message}, to=user_channel(identity), namespace=NAMESPACE)
