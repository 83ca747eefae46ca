from trivia_server import socketio
from trivia_server.services.trivia.questions import Question


def _register(flask_app, username, address):
    client = flask_app.test_client()
    client.environ_base['REMOTE_ADDR'] = address
    res = client.post('/register', json={'username': username, 'password': 'password'})
    assert res.status_code == 201
    return client


def _socket_for(flask_app, http_client):
    return socketio.test_client(flask_app, flask_test_client=http_client, namespace='/ws')


def _events(sio_client, name):
    return [e for e in sio_client.get_received('/ws') if e['name'] == name]


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('join_room', {'room': 'Lobby'}, namespace='/ws')
    joined = _events(sio_client, 'joined')
    assert joined[0]['args'][0] == {'room': 'room:lobby', 'identity': None}


def test_join_requires_room(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_room', {}, namespace='/ws')
    assert _events(sio_client, 'error')


def test_ping(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    pongs = _events(sio_client, 'pong')
    assert pongs[0]['args'][0] == {'n': 1}


def test_announcements_reach_the_room(flask_app, rooms, sio_client):
    for i in range(4):
        rooms.store.add(Question(category='sg', question=f'Science question {i}?', answers=(f'answer{i}',)))
    alice = _register(flask_app, 'Alice', '10.0.0.1')

    sio_client.emit('join_room', {'room': 'lobby'}, namespace='/ws')
    sio_client.get_received('/ws')

    res = alice.post('/api/trivia/lobby/new', json={'mode': 'timer', 'category': 'sg', 'length': 'short'})
    assert res.status_code == 201

    announcements = _events(sio_client, 'announcement')
    assert announcements[0]['args'][0]['title'] == 'Signups for a new trivia game have begun!'
    assert announcements[0]['args'][0]['room'] == 'lobby'


def test_dropped_socket_pauses_the_game(flask_app, rooms):
    for i in range(4):
        rooms.store.add(Question(category='sg', question=f'Science question {i}?', answers=(f'answer{i}',)))
    clients = {
        name: _register(flask_app, name, f'10.0.0.{i}')
        for i, name in enumerate(('Alice', 'Bob', 'Carol'), start=1)
    }
    clients['Alice'].post('/api/trivia/lobby/new', json={'mode': 'first', 'category': 'sg', 'length': 'short'})
    for client in clients.values():
        client.post('/api/trivia/lobby/join')
    clients['Alice'].post('/api/trivia/lobby/start')
    rooms.scheduler.run_next()
    session = rooms.get('lobby')
    asked = session.current_question

    carol = _socket_for(flask_app, clients['Carol'])
    carol.emit('join_room', {'room': 'lobby'}, namespace='/ws')
    joined = _events(carol, 'joined')
    assert joined[0]['args'][0]['identity'] == 'carol'

    carol.disconnect(namespace='/ws')
    assert session.phase == 'limbo'
    assert not session.players['carol'].is_present

    carol = _socket_for(flask_app, clients['Carol'])
    carol.emit('join_room', {'room': 'lobby'}, namespace='/ws')
    assert session.phase == 'question'
    assert session.current_question == asked
    carol.disconnect(namespace='/ws')


def test_player_stays_present_while_a_tab_is_open(flask_app, rooms):
    for i in range(4):
        rooms.store.add(Question(category='sg', question=f'Science question {i}?', answers=(f'answer{i}',)))
    clients = {
        name: _register(flask_app, name, f'10.0.0.{i}')
        for i, name in enumerate(('Alice', 'Bob', 'Carol'), start=1)
    }
    clients['Alice'].post('/api/trivia/lobby/new', json={'mode': 'first', 'category': 'sg', 'length': 'short'})
    for client in clients.values():
        client.post('/api/trivia/lobby/join')
    clients['Alice'].post('/api/trivia/lobby/start')
    rooms.scheduler.run_next()
    session = rooms.get('lobby')

    first_tab = _socket_for(flask_app, clients['Carol'])
    second_tab = _socket_for(flask_app, clients['Carol'])
    for tab in (first_tab, second_tab):
        tab.emit('join_room', {'room': 'lobby'}, namespace='/ws')

    first_tab.disconnect(namespace='/ws')
    assert session.phase == 'question'
    assert session.players['carol'].is_present

    second_tab.disconnect(namespace='/ws')
    assert session.phase == 'limbo'
    assert not session.players['carol'].is_present
