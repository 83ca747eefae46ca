"""The trivia game session state machine.

Phases run ``signups -> intermission -> question -> intermission -> ...``
until someone reaches the score cap, the question queue runs dry, or the
game is ended by hand. ``limbo`` is entered from any running phase when
fewer than ``min_players`` present players remain, and left again by
re-asking the question that was pending.

All mutation happens under the session lock, whether it comes from a
command or from the session's single phase timer.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from .constants import (
    ALL_CATEGORIES,
    INTERMISSION_PHASE,
    INTERMISSION_SEC,
    LENGTHS,
    LIMBO_PHASE,
    MINIMUM_PLAYERS,
    QUESTION_PHASE,
    SIGNUP_PHASE,
    START_TIMEOUT_SEC,
    TOP_PLAYERS_SHOWN,
)
from .errors import PreconditionError, ValidationError
from .player import Player
from .questions import Question, to_id
from .scheduler import monotonic_ns

logger = logging.getLogger(__name__)


@dataclass
class SessionSettings:
    min_players: int = MINIMUM_PLAYERS
    start_timeout_sec: float = START_TIMEOUT_SEC
    intermission_sec: float = INTERMISSION_SEC
    allow_late_join: bool = True


class NullDirectory:
    """Identity resolution when no user directory is available."""

    def identities_overlap(self, first: str, second: str) -> bool:
        return first == second

    def aliases(self, identity: str) -> Set[str]:
        return set()

    def display_name(self, identity: str) -> str:
        return identity


class GameSession:
    def __init__(
        self,
        room: str,
        strategy,
        questions: List[Question],
        length: str,
        category: str,
        *,
        leaderboard,
        scheduler,
        broadcaster,
        directory=None,
        clock: Callable[[], int] = monotonic_ns,
        settings: Optional[SessionSettings] = None,
        on_destroy: Optional[Callable[['GameSession'], None]] = None,
        crash_reporter: Optional[Callable[[BaseException], None]] = None,
    ):
        self.room = room
        self.strategy = strategy
        self.length = length
        self.cap = LENGTHS[length]['cap']
        self.prizes = LENGTHS[length]['prizes']
        self.category = category
        self.questions = list(questions)

        self.leaderboard = leaderboard
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.directory = directory or NullDirectory()
        self.clock = clock
        self.settings = settings or SessionSettings()
        self.on_destroy = on_destroy
        self.crash_reporter = crash_reporter

        self.phase = SIGNUP_PHASE
        self.players: Dict[str, Player] = {}
        self.kicked: Set[str] = set()
        self.question_number = 0
        self.current_question: Optional[Question] = None
        self.current_answers: tuple = ()
        self.asked_at = 0
        self.active = True

        self._timer = None
        self._lock = threading.RLock()

        self.broadcast(
            'Signups for a new trivia game have begun!',
            f'{self.description}\nEnter /trivia join to sign up for the trivia game.',
        )

    @property
    def mode(self) -> str:
        return self.strategy.title

    @property
    def description(self) -> str:
        return f'Mode: {self.mode} | Category: {self.category} | Score cap: {self.cap}'

    @property
    def present_count(self) -> int:
        return sum(1 for p in self.players.values() if p.is_present)

    def broadcast(self, title: str, message: Optional[str] = None, **data) -> None:
        self.broadcaster.announce(title, message, **data)

    def _report(self, exc: BaseException) -> None:
        logger.exception(f"[session-error] room={self.room} phase={self.phase}")
        if self.crash_reporter:
            self.crash_reporter(exc)

    # --- Timers ---

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None

    def _set_timer(self, delay: float, callback: Callable[[], None], label: str) -> None:
        self._cancel_timer()
        handle = None

        def _fire():
            with self._lock:
                if not self.active or self._timer is not handle:
                    logger.info(f"[timer-abort] room={self.room} {label} superseded")
                    return
                self._timer = None
                snapshot = self._snapshot()
                try:
                    callback()
                except Exception as exc:
                    self._report(exc)
                    # Retry the same step later rather than stalling the game.
                    if self._restore(snapshot):
                        self._set_timer(self.settings.intermission_sec, callback, label)

        handle = self.scheduler.schedule(delay, _fire, label=f'room={self.room} phase={self.phase} next={label}')
        self._timer = handle

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    # --- Rollback ---

    def _snapshot(self):
        return {
            'phase': self.phase,
            'question_number': self.question_number,
            'current_question': self.current_question,
            'current_answers': self.current_answers,
            'asked_at': self.asked_at,
            'questions': list(self.questions),
            'timer': self._timer,
            'players': {identity: (p, dict(vars(p))) for identity, p in self.players.items()},
        }

    def _restore(self, snapshot) -> bool:
        """Undo a failed transition. Returns False once the game is over."""
        if not self.active:
            return False
        self.phase = snapshot['phase']
        self.question_number = snapshot['question_number']
        self.current_question = snapshot['current_question']
        self.current_answers = snapshot['current_answers']
        self.asked_at = snapshot['asked_at']
        self.questions = snapshot['questions']
        self.players = {}
        for identity, (player, state) in snapshot['players'].items():
            vars(player).update(state)
            self.players[identity] = player

        timer = snapshot['timer']
        if self._timer is not timer:
            self._cancel_timer()
        self._timer = timer if timer is not None and timer.active else None
        logger.info(f"[rollback] room={self.room} phase={self.phase} question={self.question_number}")
        return True

    def _rearm(self) -> None:
        """Give the restored phase its timer back if it lost it."""
        if self._timer is not None:
            return
        if self.phase == QUESTION_PHASE:
            elapsed = (self.clock() - self.asked_at) / 1e9
            remaining = max(0.0, self.strategy.round_length_ms / 1000 - elapsed)
            self._set_timer(remaining, lambda: self.strategy.tally(self), 'tally')
        elif self.phase == INTERMISSION_PHASE:
            self._set_timer(self.settings.intermission_sec, self.ask_question, 'question')

    # --- Roster ---

    def add_player(self, identity: str, name: Optional[str] = None) -> Player:
        with self._lock:
            already = 'You have already signed up for this game.'
            if identity in self.players:
                raise PreconditionError(already)
            aliases = set(self.directory.aliases(identity))
            if aliases & self.players.keys():
                raise PreconditionError(already)
            if identity in self.kicked or aliases & self.kicked:
                raise PreconditionError('You were kicked from the game and thus cannot join it again.')
            for other in self.players:
                if self.directory.identities_overlap(identity, other):
                    raise PreconditionError(already)
            for kicked in self.kicked:
                if self.directory.identities_overlap(identity, kicked):
                    raise PreconditionError('You were kicked from the game and cannot join until the next game.')
            if self.phase != SIGNUP_PHASE and not self.settings.allow_late_join:
                raise PreconditionError('This game does not allow latejoins.')

            player = Player(identity, name or self.directory.display_name(identity))
            self.players[identity] = player
            logger.info(f"[join] room={self.room} player={identity} phase={self.phase}")
            self._resume_if_quorate()
            return player

    def _is_kicked(self, identity: str) -> bool:
        if identity in self.kicked or set(self.directory.aliases(identity)) & self.kicked:
            return True
        return any(self.directory.identities_overlap(identity, k) for k in self.kicked)

    def kick(self, identity: str) -> Player:
        with self._lock:
            player = self.players.get(identity)
            if player is None:
                if self._is_kicked(identity):
                    raise PreconditionError(f'User {identity} has already been kicked from the game.')
                raise PreconditionError(f'User {identity} is not a player in the game.')
            self.kicked.add(identity)
            self.kicked.update(self.directory.aliases(identity))
            self._remove_player(player)
            logger.info(f"[kick] room={self.room} player={identity}")
            return player

    def leave(self, identity: str) -> Player:
        with self._lock:
            player = self.players.get(identity)
            if player is None:
                raise PreconditionError('You are not a player in the current game.')
            self._remove_player(player)
            logger.info(f"[leave] room={self.room} player={identity}")
            return player

    def _remove_player(self, player: Player) -> None:
        del self.players[player.identity]
        if player.is_present:
            self._enter_limbo_if_short()

    # --- Presence ---

    def on_disconnect(self, identity: str) -> bool:
        """A present player went away; their score is kept."""
        with self._lock:
            player = self.players.get(identity)
            if player is None or not player.is_present:
                return False
            player.toggle_presence()
            return self._enter_limbo_if_short()

    def on_connect(self, identity: str) -> bool:
        with self._lock:
            player = self.players.get(identity)
            if player is None or player.is_present:
                return False
            player.toggle_presence()
            return self._resume_if_quorate()

    def _enter_limbo_if_short(self) -> bool:
        if self.phase in (SIGNUP_PHASE, LIMBO_PHASE) or not self.active:
            return False
        if self.present_count >= self.settings.min_players:
            return False

        self._cancel_timer()
        if self.phase == QUESTION_PHASE and self.current_question is not None:
            # Put the unresolved question back so it is asked again on resume.
            self.questions.append(self.current_question)
            self.question_number -= 1
        self.phase = LIMBO_PHASE
        logger.info(f"[limbo] room={self.room} present={self.present_count}")
        self.broadcast(
            'Not enough players are participating to continue the game!',
            f'Until there are {self.settings.min_players} players participating and present, the game will be paused.',
        )
        return True

    def _resume_if_quorate(self) -> bool:
        if self.phase != LIMBO_PHASE or self.present_count < self.settings.min_players:
            return False
        for player in self.players.values():
            player.clear_answer()
        logger.info(f"[limbo-exit] room={self.room} present={self.present_count}")
        self.broadcast(
            'Enough players have returned to continue the game!',
            'The game will continue with the pending question.',
        )
        self.ask_question()
        return True

    # --- Phases ---

    def start(self) -> None:
        with self._lock:
            if self.phase != SIGNUP_PHASE:
                raise PreconditionError('The game has already been started.')
            if self.present_count < self.settings.min_players:
                raise PreconditionError(
                    f'Not enough players have signed up yet! At least {self.settings.min_players} players to begin.'
                )
            self.phase = INTERMISSION_PHASE
            logger.info(f"[phase] room={self.room} signups -> intermission players={len(self.players)}")
            self.broadcast(f'The game will begin in {self.settings.start_timeout_sec:g} seconds...')
            self._set_timer(self.settings.start_timeout_sec, self.ask_question, 'question')

    def ask_question(self) -> None:
        with self._lock:
            if not self.questions:
                self._cancel_timer()
                self.broadcast('No questions are left!', 'The game has reached a stalemate')
                self._destroy('stalemate')
                return

            question = self.questions.pop()
            self.phase = QUESTION_PHASE
            self.question_number += 1
            self.current_question = question
            self.current_answers = question.answers
            self.asked_at = self.clock()
            for player in self.players.values():
                player.clear_answer()
            logger.info(f"[phase] room={self.room} question={self.question_number} remaining={len(self.questions)}")
            self.broadcast(
                f'Question: {question.question}',
                f'Category: {ALL_CATEGORIES.get(question.category, question.category)}',
                question_number=self.question_number,
            )
            self._set_timer(self.strategy.round_length_ms / 1000, lambda: self.strategy.tally(self), 'tally')

    def answer_question(self, identity: str, raw_answer: str) -> str:
        with self._lock:
            player = self.players.get(identity)
            if player is None:
                raise PreconditionError('You are not a player in the current trivia game.')
            if self.phase != QUESTION_PHASE:
                raise PreconditionError('There is no question to answer.')
            answer = to_id(raw_answer)
            if not answer:
                raise ValidationError('No valid answer was entered.')
            if player.has_answered:
                raise PreconditionError('You have already attempted to answer the current question.')

            snapshot = self._snapshot()
            try:
                self.strategy.answer(self, player, answer)
            except Exception:
                if self._restore(snapshot):
                    self._rearm()
                raise
            return answer

    def rename(self, old: str, new: str, name: Optional[str] = None) -> bool:
        """Carry a player's entry over to their new identity."""
        with self._lock:
            if old in self.kicked:
                self.kicked.add(new)
            player = self.players.get(old)
            if player is None or new in self.players:
                return False
            del self.players[old]
            player.identity = new
            if name:
                player.name = name
            self.players[new] = player
            logger.info(f"[rename] room={self.room} {old} -> {new}")
            return True

    # --- Strategy callbacks ---

    def close_round(self) -> None:
        """Stop accepting answers for the current question."""
        self._cancel_timer()
        self.phase = INTERMISSION_PHASE

    def finish_round(self, message: str, rows=None) -> None:
        for player in self.players.values():
            player.clear_answer()
        self.broadcast(
            'The answering period has ended!',
            f'{message}\nThe top {TOP_PLAYERS_SHOWN} players are: {self.format_player_list(TOP_PLAYERS_SHOWN)}',
            rows=rows,
        )
        self._set_timer(self.settings.intermission_sec, self.ask_question, 'question')

    # --- Standings ---

    def get_top_players(self, limit: Optional[int] = None, require_points: bool = True) -> List[Player]:
        players = [p for p in self.players.values() if p.points or not require_points]
        players.sort(key=lambda p: (-p.points, p.last_question, p.answered_at))
        return players if limit is None else players[:limit]

    def format_player_list(self, limit: Optional[int] = None, require_points: bool = True) -> str:
        return ', '.join(
            f"{p.name} ({p.points}){'' if p.is_present else ' [away]'}"
            for p in self.get_top_players(limit, require_points)
        )

    def _winning_message(self, winners: List[Player]) -> str:
        first = winners[0]
        text = f'{first.name} won the game with a final score of {first.points}, and '
        if len(winners) == 1:
            return text + f'their leaderboard score has increased by {self.prizes[0]} points!'
        if len(winners) == 2:
            return (
                text + f'their leaderboard score has increased by {self.prizes[0]} points! '
                f'{winners[1].name} was a runner-up and their leaderboard score has increased by {self.prizes[1]} points!'
            )
        return (
            text + f'{winners[1].name} and {winners[2].name} were runners-up. '
            f'Their leaderboard score has increased by {self.prizes[0]}, {self.prizes[1]}, and {self.prizes[2]}, respectively!'
        )

    def _staff_message(self, winners: List[Player]) -> str:
        parts = [
            f'User {winners[0].identity} won the game of {self.mode} mode trivia under the {self.category} '
            f'category with a cap of {self.cap} points, with {winners[0].points} points and '
            f'{winners[0].correct_answers} correct answers!'
        ]
        if len(winners) > 1:
            parts.append(f' Second place: {winners[1].identity} ({winners[1].points} points)')
        if len(winners) > 2:
            parts.append(f', third place: {winners[2].identity} ({winners[2].points} points)')
        return ''.join(parts)

    # --- Terminal transitions ---

    def win(self, message: str, rows=None) -> None:
        with self._lock:
            self._cancel_timer()
            winners = self.get_top_players(3)
            try:
                # Either every board is updated or none is; a failed flush
                # leaves the in-memory boards updated.
                self.leaderboard.record_win(
                    [p.identity for p in winners], self.prizes, list(self.players.values())
                )
            except Exception as exc:
                self._report(exc)
            logger.info(f"[win] room={self.room} ({self._staff_message(winners)})")

            # The boards are settled, so the game closes even if announcing fails.
            try:
                self.broadcast(
                    'The answering period has ended!',
                    f'{message}\n{self._winning_message(winners)}',
                    rows=rows,
                    winners=[p.to_dict() for p in winners],
                )
                for player in self.players.values():
                    self.broadcaster.notify(
                        player.identity,
                        f'You gained {player.points} points and answered {player.correct_answers} questions correctly.',
                    )
            finally:
                self._destroy('win')

    def end(self, forced_by: str) -> None:
        with self._lock:
            self._cancel_timer()
            self.broadcast(f'The game was forcibly ended by {forced_by}.')
            self._destroy('forced')

    def _destroy(self, reason: str) -> None:
        self._cancel_timer()
        if not self.active:
            return
        self.active = False
        self.kicked.clear()
        logger.info(f"[destroy] room={self.room} reason={reason} questions_asked={self.question_number}")
        if self.on_destroy:
            self.on_destroy(self)

    # --- Introspection ---

    def status(self, identity: Optional[str] = None):
        with self._lock:
            payload = {
                'room': self.room,
                'phase': self.phase,
                'mode': self.mode,
                'category': self.category,
                'cap': self.cap,
                'question_number': self.question_number,
                'remaining_questions': len(self.questions),
                'players': [p.to_dict() for p in self.get_top_players(require_points=False)],
            }
            player = self.players.get(identity) if identity else None
            if player is not None:
                payload['player'] = player.to_dict()
            return payload
