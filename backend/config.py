import os


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'on'}


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///trivia.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Game timers
    TRIVIA_START_TIMEOUT_SEC = int(os.environ.get('TRIVIA_START_TIMEOUT_SEC', '30'))
    TRIVIA_INTERMISSION_SEC = int(os.environ.get('TRIVIA_INTERMISSION_SEC', '20'))
    # Answering window per question (ms); number mode runs a shorter round
    TRIVIA_ROUND_LENGTH_MS = int(os.environ.get('TRIVIA_ROUND_LENGTH_MS', '12500'))
    TRIVIA_NUMBER_ROUND_LENGTH_MS = int(os.environ.get('TRIVIA_NUMBER_ROUND_LENGTH_MS', '6000'))
    # Present players needed to start and to stay out of limbo
    TRIVIA_MIN_PLAYERS = int(os.environ.get('TRIVIA_MIN_PLAYERS', '3'))
    TRIVIA_ALLOW_LATE_JOIN = _env_bool('TRIVIA_ALLOW_LATE_JOIN', True)
    TRIVIA_LADDER_SIZE = int(os.environ.get('TRIVIA_LADDER_SIZE', '15'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
