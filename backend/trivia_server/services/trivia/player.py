from __future__ import annotations

from typing import Optional


class Player:
    """Session-scoped participant. Owned by a single GameSession."""

    def __init__(self, identity: str, name: Optional[str] = None):
        self.identity = identity
        self.name = name or identity
        self.points = 0
        self.correct_answers = 0
        self.answer = ''
        self.is_correct = False
        self.current_answered_at = 0
        # Clock reading of the answer that last scored; final tie-break.
        self.answered_at = 0
        self.last_question = 0
        self.is_present = True

    def set_answer(self, answer: str, is_correct: bool, answered_at: int) -> None:
        self.answer = answer
        self.is_correct = bool(is_correct)
        self.current_answered_at = answered_at

    @property
    def has_answered(self) -> bool:
        return bool(self.answer)

    def award(self, points: int, question_index: int) -> None:
        self.points += points
        self.correct_answers += 1
        self.answered_at = self.current_answered_at
        self.last_question = question_index

    def clear_answer(self) -> None:
        self.answer = ''
        self.is_correct = False

    def toggle_presence(self) -> None:
        self.is_present = not self.is_present

    def to_dict(self):
        return {
            'identity': self.identity,
            'name': self.name,
            'points': self.points,
            'correct_answers': self.correct_answers,
            'present': self.is_present,
        }
