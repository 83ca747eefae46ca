"""Persistent leaderboards and their memoized ladders."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, NamedTuple, Optional, Sequence

from .constants import LADDER_SIZE

logger = logging.getLogger(__name__)

MAIN_BOARD = 'leaderboard'
ALT_BOARD = 'altLeaderboard'


class LeaderboardRank(NamedTuple):
    score: int
    points: int
    correct: int


class LadderView(NamedTuple):
    # [(rank, [identity, ...]), ...] for the best distinct ladder scores
    ladder: List[tuple]
    # identity -> [score rank, points rank, correct rank]
    ranks: Dict[str, List[int]]


def skip_equal_ranks(values: Dict[str, int]) -> Dict[str, int]:
    """Rank identities by value, descending. Ties share a rank and consume
    as many rank slots as there are tied entries (10, 10, 5 -> 1, 1, 3)."""
    ordered = sorted(values, key=lambda k: values[k], reverse=True)
    ranks = {}
    previous = None
    rank = 0
    for position, identity in enumerate(ordered, start=1):
        if values[identity] != previous:
            rank = position
            previous = values[identity]
        ranks[identity] = rank
    return ranks


class Ladder:
    def __init__(self, board: Dict[str, LeaderboardRank], size: int = LADDER_SIZE):
        self.board = board
        self.size = size
        self._cache: Optional[LadderView] = None

    def invalidate(self) -> None:
        self._cache = None

    def get(self) -> LadderView:
        if self._cache is None:
            self._cache = self._compute()
        return self._cache

    def _compute(self) -> LadderView:
        ranks: Dict[str, List[int]] = {identity: [] for identity in self.board}
        for metric in range(3):
            metric_ranks = skip_equal_ranks({k: v[metric] for k, v in self.board.items()})
            for identity, rank in metric_ranks.items():
                ranks[identity].append(rank)

        groups: Dict[int, List[str]] = {}
        for identity in sorted(self.board, key=lambda k: self.board[k].score, reverse=True):
            rank = ranks[identity][0]
            if rank not in groups:
                if len(groups) >= self.size:
                    break
                groups[rank] = []
            groups[rank].append(identity)
        return LadderView(ladder=list(groups.items()), ranks=ranks)


class Leaderboard:
    """Process-wide owner of the primary and rolling leaderboards.

    Every session goes through this object; writes are per-identity merges
    under a lock and invalidate both ladders before the lock is released.
    """

    def __init__(self, main=None, alt=None, storage=None, ladder_size: int = LADDER_SIZE):
        self._lock = threading.RLock()
        self.storage = storage
        self.boards = {
            MAIN_BOARD: self._coerce(main),
            ALT_BOARD: self._coerce(alt),
        }
        self.ladders = {name: Ladder(board, ladder_size) for name, board in self.boards.items()}

    @staticmethod
    def _coerce(board) -> Dict[str, LeaderboardRank]:
        return {identity: LeaderboardRank(*values) for identity, values in (board or {}).items()}

    @classmethod
    def from_document(cls, document, storage=None, ladder_size: int = LADDER_SIZE) -> 'Leaderboard':
        return cls(document.get(MAIN_BOARD), document.get(ALT_BOARD), storage, ladder_size)

    def to_document(self):
        with self._lock:
            return {
                name: {identity: list(rank) for identity, rank in board.items()}
                for name, board in self.boards.items()
            }

    def flush(self) -> None:
        if self.storage is None:
            return
        self.storage.save(**self.to_document())

    def _invalidate(self) -> None:
        for ladder in self.ladders.values():
            ladder.invalidate()

    def record_win(self, placements: Sequence[str], prizes: Sequence[int], players) -> None:
        """Apply a finished game to both boards.

        ``placements`` are the identities placed 1st, 2nd and 3rd;
        ``players`` is every session player. Only players with points are
        recorded.
        """
        with self._lock:
            updated = {name: dict(board) for name, board in self.boards.items()}
            for board in updated.values():
                for player in players:
                    if not player.points:
                        continue
                    score, points, correct = board.get(player.identity, LeaderboardRank(0, 0, 0))
                    board[player.identity] = LeaderboardRank(
                        score, points + player.points, correct + player.correct_answers
                    )
                for identity, prize in zip(placements, prizes):
                    score, points, correct = board.get(identity, LeaderboardRank(0, 0, 0))
                    board[identity] = LeaderboardRank(score + prize, points, correct)

            for name, board in updated.items():
                self.boards[name].clear()
                self.boards[name].update(board)
            self._invalidate()
            logger.info(f"[ladder-update] placements={list(placements)} prizes={list(prizes)[:len(placements)]}")
            self.flush()

    def entry(self, identity: str, board: str = MAIN_BOARD) -> Optional[LeaderboardRank]:
        with self._lock:
            return self.boards[board].get(identity)

    def get_ranks(self, board: str = MAIN_BOARD) -> LadderView:
        with self._lock:
            return self.ladders[board].get()

    def ranks(self, identity: str):
        """Return ``{board: (entry, [ranks])}`` or ``None`` for someone who
        has never finished a game with points."""
        with self._lock:
            if identity not in self.boards[MAIN_BOARD]:
                return None
            result = {}
            for name, board in self.boards.items():
                entry = board.get(identity)
                view = self.ladders[name].get()
                result[name] = (entry, view.ranks.get(identity))
            return result

    def reset_alt(self) -> None:
        with self._lock:
            self.boards[ALT_BOARD].clear()
            self._invalidate()
            self.flush()
