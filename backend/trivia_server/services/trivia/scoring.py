"""Answer verification and the three scoring modes.

A strategy receives answers from the session and decides how a correct
answer turns into points and when the answering period ends. Strategies
never touch timers directly; they call back into the session.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from .constants import (
    FIRST_MODE_POINTS,
    MODES,
    NUMBER_ROUND_LENGTH_MS,
    ROUND_LENGTH_MS,
)
from .errors import ValidationError

logger = logging.getLogger(__name__)


def levenshtein(source: str, target: str) -> int:
    if source == target:
        return 0
    if not source:
        return len(target)
    if not target:
        return len(source)
    previous = list(range(len(target) + 1))
    for i, s_char in enumerate(source, start=1):
        current = [i]
        for j, t_char in enumerate(target, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (s_char != t_char),
            ))
        previous = current
    return previous[-1]


def max_distance(answer_length: int) -> int:
    """Typos tolerated for an accepted answer of the given length."""
    if answer_length > 5:
        return 2
    if answer_length > 4:
        return 1
    return 0


def verify_answer(answer: str, accepted: Iterable[str]) -> bool:
    return any(
        answer == candidate or levenshtein(answer, candidate) <= max_distance(len(candidate))
        for candidate in accepted
    )


class ScoringStrategy:
    mode = ''
    default_round_length_ms = ROUND_LENGTH_MS

    def __init__(self, round_length_ms=None):
        self.round_length_ms = round_length_ms or self.default_round_length_ms

    @property
    def title(self) -> str:
        return MODES[self.mode]

    def answer(self, session, player, answer: str) -> None:
        raise NotImplementedError

    def tally(self, session) -> None:
        raise NotImplementedError


class FirstMode(ScoringStrategy):
    """The first correct responder gains a flat 5 points and ends the round."""

    mode = 'first'

    def calculate_points(self) -> int:
        return FIRST_MODE_POINTS

    def answer(self, session, player, answer):
        is_correct = verify_answer(answer, session.current_answers)
        player.set_answer(answer, is_correct, session.clock())
        if not is_correct:
            return

        session.close_round()
        points = self.calculate_points()
        player.award(points, session.question_number)
        message = (
            f'Correct: {player.name}\n'
            f"Answer(s): {', '.join(session.current_answers)}\n"
            f'They gained {points} points!'
        )
        if player.points >= session.cap:
            session.win(message)
            return
        session.finish_round(message)

    def tally(self, session):
        session.close_round()
        session.finish_round(
            'Correct: no one...\n'
            f"Answers: {', '.join(session.current_answers)}\n"
            'Nobody gained any points.'
        )


class _TallyAtTimeout(ScoringStrategy):
    """Answers are only recorded on submission and scored when time runs out."""

    def answer(self, session, player, answer):
        player.set_answer(answer, verify_answer(answer, session.current_answers), session.clock())


class TimerMode(_TallyAtTimeout):
    """Every correct responder gains 1 to 6 points depending on answer speed."""

    mode = 'timer'

    def calculate_points(self, diff: int, total_diff: int) -> int:
        if total_diff <= 0:
            return 6
        return max(1, min(6, math.floor(6 - 5 * diff / total_diff)))

    def tally(self, session):
        session.close_round()
        now = session.clock()
        total_diff = now - session.asked_at

        awards = []
        for player in session.players.values():
            if player.is_correct:
                points = self.calculate_points(player.current_answered_at - session.asked_at, total_diff)
                awards.append((player, points))

        buckets = {points: [] for points in range(6, 0, -1)}
        winner = False
        for player, points in awards:
            player.award(points, session.question_number)
            buckets[points].append(player)
            if player.points >= session.cap:
                winner = True

        lines = [f"Answer(s): {', '.join(session.current_answers)}"]
        rows = []
        for points, players in buckets.items():
            if not players:
                continue
            players.sort(key=lambda p: p.current_answered_at)
            rows.append({'points': points, 'players': [p.name for p in players]})
            lines.append(f"{points} point(s): {', '.join(p.name for p in players)}")
        if not rows:
            lines.append('No one answered correctly...')
        message = '\n'.join(lines)

        if winner:
            session.win(message, rows=rows)
            return
        session.finish_round(message, rows=rows)


class NumberMode(_TallyAtTimeout):
    """Correct responders gain more points the fewer of them there are."""

    mode = 'number'
    default_round_length_ms = NUMBER_ROUND_LENGTH_MS

    def calculate_points(self, correct_players: int, total_players: int) -> int:
        if not correct_players or not total_players:
            return 0
        return 6 - math.floor(5 * correct_players / total_players)

    def tally(self, session):
        session.close_round()
        correct = sorted(
            (p for p in session.players.values() if p.is_correct),
            key=lambda p: p.current_answered_at,
        )
        points = self.calculate_points(len(correct), session.present_count)
        if not points:
            session.finish_round(
                'Correct: no one...\n'
                f"Answer(s): {', '.join(session.current_answers)}\n"
                'Nobody gained any points.'
            )
            return

        winner = False
        for player in correct:
            player.award(points, session.question_number)
            if player.points >= session.cap:
                winner = True

        message = (
            f"Correct: {', '.join(p.name for p in correct)}\n"
            f"Answer(s): {', '.join(session.current_answers)}\n"
            f"{'Each of them' if len(correct) > 1 else 'They'} gained {points} point(s)!"
        )
        if winner:
            session.win(message)
            return
        session.finish_round(message)


STRATEGIES = {
    'first': FirstMode,
    'timer': TimerMode,
    'number': NumberMode,
}


def make_strategy(mode: str, round_length_ms=None, number_round_length_ms=None) -> ScoringStrategy:
    strategy_cls = STRATEGIES.get(mode)
    if strategy_cls is None:
        raise ValidationError(f'"{mode}" is an invalid mode.')
    if strategy_cls is NumberMode:
        return strategy_cls(number_round_length_ms)
    return strategy_cls(round_length_ms)
