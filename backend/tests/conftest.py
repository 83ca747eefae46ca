import os
import sys
import pytest

# Ensure the backend root (containing the `trivia_server` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia_server import create_app, db, socketio
from trivia_server.services.trivia.ladder import Leaderboard
from trivia_server.services.trivia.questions import Question
from trivia_server.services.trivia.scheduler import ManualScheduler
from trivia_server.services.trivia.scoring import make_strategy
from trivia_server.services.trivia.session import GameSession, SessionSettings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import trivia_server.models  # noqa: F401
        db.create_all()
    # Requests must push their own app context; a shared one would share
    # Flask-Login's cached user (g._login_user) across test clients.
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def rooms(flask_app):
    return flask_app.extensions['trivia']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


# ---- Engine fakes ----

class FakeClock:
    """Monotonic nanosecond clock that only moves when told to."""

    def __init__(self, start=1_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += int(ms * 1_000_000)


class FakeBroadcaster:
    def __init__(self):
        self.announcements = []
        self.notices = []

    def announce(self, title, message=None, **data):
        self.announcements.append({'title': title, 'message': message, **data})

    def notify(self, identity, message):
        self.notices.append((identity, message))

    @property
    def titles(self):
        return [a['title'] for a in self.announcements]


def make_questions(count, category='sg', answer='answer'):
    return [
        Question(category=category, question=f'Question number {i}?', answers=(f'{answer}{i}',))
        for i in range(count)
    ]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture()
def leaderboard():
    return Leaderboard()


@pytest.fixture()
def make_session(clock, scheduler, broadcaster, leaderboard):
    destroyed = []

    def _make(mode='first', questions=None, length='short', players=('alice', 'bob', 'carol'),
              directory=None, board=None, crash_reporter=None, **settings):
        session = GameSession(
            'lobby',
            make_strategy(mode),
            questions if questions is not None else make_questions(20),
            length,
            'Science and Geography',
            leaderboard=board or leaderboard,
            scheduler=scheduler,
            broadcaster=broadcaster,
            directory=directory,
            clock=clock,
            settings=SessionSettings(**settings),
            on_destroy=destroyed.append,
            crash_reporter=crash_reporter,
        )
        session.destroyed = destroyed
        for identity in players:
            session.add_player(identity)
        return session

    return _make
