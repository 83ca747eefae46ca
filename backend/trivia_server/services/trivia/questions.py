"""Category-sorted question bank.

Both the live bank and the submission bank are kept sorted by category at
all times, ties in insertion order, so a category's questions form one
contiguous run that can be found with two binary searches.
"""

from __future__ import annotations

import bisect
import logging
import random
import re
import threading
from dataclasses import dataclass, field, replace
from operator import attrgetter
from typing import Iterable, List, Optional, Tuple

from .constants import (
    ALL_CATEGORIES,
    KINDS,
    LENGTHS,
    MAIN_CATEGORIES,
    MAX_ANSWER_LENGTH,
    MAX_QUESTION_LENGTH,
    SPECIAL_CATEGORIES,
)
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_by_category = attrgetter('category')
_SELECTOR_RE = re.compile(r'^\d+(?:-\d+)?(?:, ?\d+(?:-\d+)?)*$')


def to_id(text: str) -> str:
    """Lowercase and strip everything but ASCII letters and digits."""
    return re.sub(r'[^a-z0-9]+', '', (text or '').lower())


@dataclass(frozen=True)
class Question:
    category: str
    question: str
    answers: Tuple[str, ...]
    submitted_by: Optional[str] = None
    kind: str = 'trivia'

    def to_dict(self):
        return {
            'category': self.category,
            'question': self.question,
            'answers': list(self.answers),
            'user': self.submitted_by,
            'type': self.kind,
        }

    @classmethod
    def from_dict(cls, data) -> 'Question':
        # Older documents predate the type field.
        return cls(
            category=data['category'],
            question=data['question'],
            answers=tuple(data.get('answers') or ()),
            submitted_by=data.get('user'),
            kind=data.get('type') or 'trivia',
        )


@dataclass
class QuestionStore:
    questions: List[Question] = field(default_factory=list)
    submissions: List[Question] = field(default_factory=list)
    storage: object = None

    def __post_init__(self):
        self._lock = threading.RLock()
        self.questions.sort(key=_by_category)
        self.submissions.sort(key=_by_category)

    @classmethod
    def from_document(cls, document, storage=None) -> 'QuestionStore':
        return cls(
            questions=[Question.from_dict(q) for q in document.get('questions') or []],
            submissions=[Question.from_dict(q) for q in document.get('submissions') or []],
            storage=storage,
        )

    def _bank(self, submission: bool) -> List[Question]:
        return self.submissions if submission else self.questions

    def flush(self) -> None:
        if self.storage is None:
            return
        self.storage.save(
            questions=[q.to_dict() for q in self.questions],
            submissions=[q.to_dict() for q in self.submissions],
        )

    # --- Sorted access ---

    def slice_category(self, category: str, submission: bool = False) -> List[Question]:
        with self._lock:
            bank = self._bank(submission)
            start = bisect.bisect_left(bank, category, key=_by_category)
            end = bisect.bisect_right(bank, category, key=_by_category)
            return bank[start:end]

    def insert(self, question: Question, submission: bool = False) -> int:
        """Insert at the end of the question's category run and return the index."""
        with self._lock:
            bank = self._bank(submission)
            index = bisect.bisect_right(bank, question.category, key=_by_category)
            bank.insert(index, question)
            return index

    # --- Workshop operations ---

    def validate(self, category: str, text: str, answers: Iterable[str],
                 submitted_by: Optional[str] = None, submission: bool = False) -> Question:
        category = to_id(category)
        if category not in ALL_CATEGORIES:
            raise ValidationError(f"'{category}' is not a valid category.")
        if submission and category not in MAIN_CATEGORIES:
            raise ValidationError(f"You cannot submit questions in the '{ALL_CATEGORIES[category]}' category.")

        text = (text or '').strip()
        if not text:
            raise ValidationError('The question text must not be empty.')
        if len(text) > MAX_QUESTION_LENGTH:
            raise ValidationError(f'Question "{text}" is too long! It must remain under {MAX_QUESTION_LENGTH} characters.')
        with self._lock:
            if any(q.question == text for q in self.questions) or any(q.question == text for q in self.submissions):
                raise ValidationError(f'Question "{text}" is already in the trivia database.')

        cleaned = []
        for answer in answers:
            answer = to_id(answer)
            if answer and answer not in cleaned:
                cleaned.append(answer)
        if not cleaned:
            raise ValidationError(f"No valid answers were specified for question '{text}'.")
        if any(len(answer) > MAX_ANSWER_LENGTH for answer in cleaned):
            raise ValidationError(
                f"Some of the answers entered for question '{text}' were too long! "
                f"They must remain under {MAX_ANSWER_LENGTH} characters."
            )
        return Question(category=category, question=text, answers=tuple(cleaned), submitted_by=submitted_by)

    def add(self, question: Question, submission: bool = False) -> int:
        index = self.insert(question, submission)
        self.flush()
        logger.info(f"[question-{'submit' if submission else 'add'}] category={question.category} by={question.submitted_by}")
        return index

    def review(self) -> List[Question]:
        with self._lock:
            return list(self.submissions)

    def _parse_selector(self, selector: str) -> List[int]:
        selector = (selector or '').strip()
        if not _SELECTOR_RE.match(selector):
            raise ValidationError(f"'{selector}' is not a valid set of submission index numbers.")
        total = len(self.submissions)
        indices = set()
        for part in selector.split(','):
            part = part.strip()
            if '-' in part:
                left, right = (int(n) for n in part.split('-'))
                if 1 <= left <= right <= total:
                    indices.update(range(left, right + 1))
            else:
                index = int(part)
                if 1 <= index <= total:
                    indices.add(index)
        if not indices:
            raise ValidationError(f"'{selector}' is not a valid set of submission index numbers.")
        return sorted(indices)

    def _resolve(self, selector: str, accept: bool) -> int:
        with self._lock:
            if to_id(selector) == 'all':
                taken = list(self.submissions)
                self.submissions.clear()
            else:
                # Pop from the back so earlier indices stay valid.
                taken = [self.submissions.pop(i - 1) for i in reversed(self._parse_selector(selector))]
            if accept:
                for submission in taken:
                    self.insert(submission)
            self.flush()
            return len(taken)

    def accept(self, selector: str) -> int:
        return self._resolve(selector, accept=True)

    def reject(self, selector: str) -> int:
        return self._resolve(selector, accept=False)

    def _find(self, text: str) -> int:
        question_id = to_id(text)
        if not question_id:
            raise ValidationError(f"'{text}' is not a valid question.")
        for i, question in enumerate(self.questions):
            if to_id(question.question) == question_id:
                return i
        raise NotFoundError(f"Question '{text}' was not found in the question database.")

    def delete(self, text: str) -> Question:
        with self._lock:
            removed = self.questions.pop(self._find(text))
            self.flush()
        return removed

    def move(self, text: str, category: str) -> Question:
        category = to_id(category)
        if category not in ALL_CATEGORIES:
            raise ValidationError(f"'{category}' is not a valid category.")
        with self._lock:
            index = self._find(text)
            question = self.questions[index]
            if question.category == category:
                raise ValidationError(f"'{text}' is already in the category '{category}'.")
            del self.questions[index]
            moved = replace(question, category=category)
            self.insert(moved)
            self.flush()
        return moved

    def clear_category(self, category: str) -> int:
        category = to_id(category)
        if category not in ALL_CATEGORIES:
            raise ValidationError(f"'{category}' is an invalid category.")
        if category not in SPECIAL_CATEGORIES:
            raise ValidationError(f"You cannot clear the category '{ALL_CATEGORIES[category]}'.")
        with self._lock:
            before = len(self.questions)
            self.questions = [q for q in self.questions if q.category != category]
            self.flush()
            return before - len(self.questions)

    def distribution(self):
        with self._lock:
            total = sum(1 for q in self.questions if q.kind in KINDS)
            rows = []
            for category, name in ALL_CATEGORIES.items():
                tally = len(self.slice_category(category))
                share = round(tally * 100 / total, 2) if total else 0.0
                rows.append({'category': category, 'name': name, 'count': tally, 'percent': share})
            return {'total': total, 'categories': rows}

    def search(self, query: str, submission: bool = False) -> List[Question]:
        query = (query or '').strip()
        if not query:
            raise ValidationError('No valid search query was entered.')
        with self._lock:
            return [
                q for q in self._bank(submission)
                if query in q.question and q.category not in SPECIAL_CATEGORIES
            ]

    # --- Game setup ---

    def build_queue(self, category: str, length: str, rng: Optional[random.Random] = None):
        """Return ``(questions, category_label)`` for a new game.

        ``category`` may be a category id, ``all`` or ``random``. The returned
        list is a shuffled copy owned by the caller.
        """
        rng = rng or random.Random()
        category = to_id(category)
        length = to_id(length)
        if length not in LENGTHS:
            raise ValidationError(f'"{length}" is an invalid game length.')

        if category == 'random':
            picked = rng.choice(sorted(MAIN_CATEGORIES))
            questions = self.slice_category(picked)
            label = f'Random ({ALL_CATEGORIES[picked]})'
        elif category == 'all':
            with self._lock:
                questions = [q for q in self.questions if q.category not in SPECIAL_CATEGORIES]
            label = 'All'
        elif category in ALL_CATEGORIES:
            questions = self.slice_category(category)
            label = ALL_CATEGORIES[category]
        else:
            raise ValidationError(f'"{category}" is an invalid category.')

        questions = [q for q in questions if q.kind == 'trivia']
        if len(questions) < LENGTHS[length]['cap'] / 5:
            if category == 'random':
                raise ValidationError('There are not enough questions in the randomly chosen category to finish a trivia game.')
            if category == 'all':
                raise ValidationError('There are not enough questions in the trivia database to finish a trivia game.')
            raise ValidationError(f'There are not enough questions under the category "{label}" to finish a trivia game.')

        rng.shuffle(questions)
        return questions, label
