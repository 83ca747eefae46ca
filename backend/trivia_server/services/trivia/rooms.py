"""Room registry and the command surface consumed by routes and sockets.

Every verb returns a ``CommandResult``; domain rejections never escape as
exceptions, and unexpected faults are reported and turned into a rejection.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .constants import MODES
from .errors import NotFoundError, PreconditionError, TriviaError, ValidationError
from .ladder import ALT_BOARD, MAIN_BOARD
from .questions import to_id
from .scheduler import monotonic_ns
from .scoring import make_strategy
from .session import GameSession, SessionSettings

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool
    message: str = ''
    data: Any = None
    status_code: int = 200

    def to_dict(self):
        payload = {'message': self.message} if self.ok else {'error': self.message}
        if self.data is not None:
            payload['data'] = self.data
        return payload


@dataclass
class TriviaRooms:
    store: Any
    leaderboard: Any
    scheduler: Any
    broadcaster_factory: Callable[[str], Any]
    directory: Any = None
    clock: Callable[[], int] = monotonic_ns
    settings: SessionSettings = field(default_factory=SessionSettings)
    round_length_ms: Optional[int] = None
    number_round_length_ms: Optional[int] = None
    crash_reporter: Optional[Callable[[BaseException], None]] = None
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self):
        self.sessions: Dict[str, GameSession] = {}
        self._lock = threading.RLock()

    def _run(self, verb: str, action: Callable[[], CommandResult]) -> CommandResult:
        try:
            return action()
        except TriviaError as exc:
            return CommandResult(False, str(exc), status_code=exc.status_code)
        except Exception as exc:
            logger.exception(f"[command-error] verb={verb}")
            if self.crash_reporter:
                self.crash_reporter(exc)
            return CommandResult(False, 'Something went wrong; the action was not applied.', status_code=500)

    def _discard(self, session: GameSession) -> None:
        with self._lock:
            if self.sessions.get(session.room) is session:
                del self.sessions[session.room]

    def get(self, room: str) -> GameSession:
        with self._lock:
            session = self.sessions.get(room)
        if session is None or not session.active:
            raise NotFoundError('There is no game of trivia in progress.')
        return session

    # --- Game commands ---

    def new(self, room: str, mode: str, category: str, length: str) -> CommandResult:
        def action():
            mode_id = to_id(mode)
            if mode_id not in MODES:
                raise ValidationError(f'"{mode_id}" is an invalid mode.')
            with self._lock:
                if room in self.sessions:
                    raise PreconditionError('There is already a game of Trivia in progress.')
                questions, label = self.store.build_queue(category, length, self.rng)
                strategy = make_strategy(mode_id, self.round_length_ms, self.number_round_length_ms)
                session = GameSession(
                    room,
                    strategy,
                    questions,
                    to_id(length),
                    label,
                    leaderboard=self.leaderboard,
                    scheduler=self.scheduler,
                    broadcaster=self.broadcaster_factory(room),
                    directory=self.directory,
                    clock=self.clock,
                    settings=self.settings,
                    on_destroy=self._discard,
                    crash_reporter=self.crash_reporter,
                )
                self.sessions[room] = session
            logger.info(f"[new] room={room} mode={mode_id} category={label} length={length} questions={len(questions)}")
            return CommandResult(True, 'Signups for a new trivia game have begun!', session.status(), 201)
        return self._run('new', action)

    def join(self, room: str, identity: str, name: Optional[str] = None) -> CommandResult:
        def action():
            self.get(room).add_player(identity, name)
            return CommandResult(True, 'You are now signed up for this game!')
        return self._run('join', action)

    def start(self, room: str) -> CommandResult:
        def action():
            session = self.get(room)
            session.start()
            return CommandResult(True, 'The game is starting.', session.status())
        return self._run('start', action)

    def answer(self, room: str, identity: str, text: str) -> CommandResult:
        def action():
            answer = self.get(room).answer_question(identity, text)
            return CommandResult(True, f'You have selected "{answer}" as your answer.')
        return self._run('answer', action)

    def kick(self, room: str, identity: str) -> CommandResult:
        def action():
            player = self.get(room).kick(identity)
            return CommandResult(True, f'User {player.name} has been kicked from the game.')
        return self._run('kick', action)

    def leave(self, room: str, identity: str) -> CommandResult:
        def action():
            self.get(room).leave(identity)
            return CommandResult(True, 'You have left the current game of trivia.')
        return self._run('leave', action)

    def end(self, room: str, forced_by: str) -> CommandResult:
        def action():
            self.get(room).end(forced_by)
            return CommandResult(True, 'The game has been ended.')
        return self._run('end', action)

    def status(self, room: str, identity: Optional[str] = None, target: Optional[str] = None) -> CommandResult:
        def action():
            session = self.get(room)
            subject = target or identity
            if target and target != identity and target not in session.players:
                raise NotFoundError(f'User {target} is not a player in the current trivia game.')
            message = (
                f'There is a trivia game in progress, and it is in its {session.phase} phase.\n'
                f'{session.description}'
            )
            return CommandResult(True, message, session.status(subject))
        return self._run('status', action)

    def rename(self, old: str, new: str, name: Optional[str] = None) -> int:
        """Follow a user's rename into every game they play in."""
        with self._lock:
            sessions = [s for s in self.sessions.values() if s.active]
        return sum(1 for session in sessions if session.rename(old, new, name))

    # --- Presence ---

    def connect(self, room: str, identity: str) -> bool:
        with self._lock:
            session = self.sessions.get(room)
        return bool(session and session.on_connect(identity))

    def disconnect(self, room: str, identity: str) -> bool:
        with self._lock:
            session = self.sessions.get(room)
        return bool(session and session.on_disconnect(identity))

    # --- Leaderboard ---

    def rank(self, identity: str) -> CommandResult:
        def action():
            ranks = self.leaderboard.ranks(identity)
            if ranks is None:
                raise NotFoundError(f"User '{identity}' has not played any trivia games yet.")
            data = {
                board: {'entry': list(entry) if entry else None, 'ranks': board_ranks}
                for board, (entry, board_ranks) in ranks.items()
            }
            return CommandResult(True, f'Rankings for {identity}', data)
        return self._run('rank', action)

    def ladder(self, board: str = ALT_BOARD, limit: int = 100) -> CommandResult:
        def action():
            name = MAIN_BOARD if to_id(board) in ('alltime', 'main', 'leaderboard') else ALT_BOARD
            view = self.leaderboard.get_ranks(name)
            if not view.ladder:
                raise NotFoundError('No trivia games have been played yet.')
            rows = []
            for rank, identities in view.ladder[:max(1, limit)]:
                for identity in identities:
                    entry = self.leaderboard.entry(identity, name)
                    rows.append({
                        'rank': rank,
                        'identity': identity,
                        'score': entry.score,
                        'points': entry.points,
                        'correct': entry.correct,
                    })
            return CommandResult(True, f'{len(rows)} players on the {name} ladder', rows)
        return self._run('ladder', action)
