from flask import Flask, current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def get_rooms():
    """Return the room registry of the current app."""
    return current_app.extensions['trivia']


def init_trivia(flask_app):
    """Load the trivia document and build the room registry for this app."""
    from trivia_server.services.trivia.broadcast import SocketIOBroadcaster
    from trivia_server.services.trivia.directory import UserDirectory
    from trivia_server.services.trivia.ladder import Leaderboard
    from trivia_server.services.trivia.questions import QuestionStore
    from trivia_server.services.trivia.rooms import TriviaRooms
    from trivia_server.services.trivia.scheduler import ManualScheduler, SocketIOScheduler
    from trivia_server.services.trivia.session import SessionSettings
    from trivia_server.services.trivia.storage import TriviaStorage

    cfg = flask_app.config
    storage = TriviaStorage(flask_app)
    document = storage.load()

    # Timers only fire on demand under test so flows stay deterministic
    if cfg.get('TESTING'):
        scheduler = ManualScheduler()
    else:
        scheduler = SocketIOScheduler(socketio, int(cfg.get('TIMER_HEARTBEAT_SEC', 0)))

    def report_crash(exc):
        flask_app.logger.error(f"[crash] {type(exc).__name__}: {exc}")

    rooms = TriviaRooms(
        store=QuestionStore.from_document(document, storage),
        leaderboard=Leaderboard.from_document(document, storage, int(cfg.get('TRIVIA_LADDER_SIZE', 15))),
        scheduler=scheduler,
        broadcaster_factory=lambda room: SocketIOBroadcaster(socketio, room),
        directory=UserDirectory(flask_app),
        settings=SessionSettings(
            min_players=int(cfg.get('TRIVIA_MIN_PLAYERS', 3)),
            start_timeout_sec=cfg.get('TRIVIA_START_TIMEOUT_SEC', 30),
            intermission_sec=cfg.get('TRIVIA_INTERMISSION_SEC', 20),
            allow_late_join=bool(cfg.get('TRIVIA_ALLOW_LATE_JOIN', True)),
        ),
        round_length_ms=cfg.get('TRIVIA_ROUND_LENGTH_MS'),
        number_round_length_ms=cfg.get('TRIVIA_NUMBER_ROUND_LENGTH_MS'),
        crash_reporter=report_crash,
    )
    flask_app.extensions['trivia'] = rooms
    return rooms


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from trivia_server.main import main
    flask_app.register_blueprint(main)

    from trivia_server.api.trivia import trivia
    flask_app.register_blueprint(trivia, url_prefix='/api/trivia')

    from trivia_server.api.questions import questions
    flask_app.register_blueprint(questions, url_prefix='/api/questions')

    from trivia_server.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from trivia_server.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'You must be logged in to do that.'}), 401

    init_trivia(flask_app)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('trivia-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def trivia_import_command(path):
        """Loads a triviadata.json document into the database."""
        document = flask_app.extensions['trivia'].store.storage.import_file(path)
        print(f"Imported {len(document['questions'])} questions and "
              f"{len(document['leaderboard'])} leaderboard entries.")

    @click.command('trivia-export')
    @click.argument('path', type=click.Path(dir_okay=False, writable=True))
    def trivia_export_command(path):
        """Writes the trivia document to a JSON file."""
        document = flask_app.extensions['trivia'].store.storage.export_file(path)
        print(f"Exported {len(document['questions'])} questions to {path}.")

    @click.command('trivia-reset-ladder')
    def trivia_reset_ladder_command():
        """Empties the rolling leaderboard; the all-time board is kept."""
        flask_app.extensions['trivia'].leaderboard.reset_alt()
        print('The rolling trivia leaderboard has been reset.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(trivia_import_command)
    flask_app.cli.add_command(trivia_export_command)
    flask_app.cli.add_command(trivia_reset_ladder_command)

    return flask_app
