from trivia_server.services.trivia.ladder import (
    ALT_BOARD,
    MAIN_BOARD,
    Ladder,
    Leaderboard,
    LeaderboardRank,
    skip_equal_ranks,
)
from trivia_server.services.trivia.player import Player


class RecordingStorage:
    def __init__(self):
        self.saved = []

    def save(self, **sections):
        self.saved.append(sections)


def _player(identity, points, correct):
    player = Player(identity)
    player.points = points
    player.correct_answers = correct
    return player


def test_skip_equal_ranks():
    assert skip_equal_ranks({'a': 10, 'b': 10, 'c': 5}) == {'a': 1, 'b': 1, 'c': 3}


def test_ranks_are_per_metric():
    ladder = Ladder({
        'a': LeaderboardRank(10, 5, 1),
        'b': LeaderboardRank(10, 20, 4),
        'c': LeaderboardRank(5, 20, 9),
    })
    view = ladder.get()
    assert view.ranks['a'] == [1, 3, 3]
    assert view.ranks['b'] == [1, 1, 2]
    assert view.ranks['c'] == [3, 1, 1]
    assert view.ladder[0] == (1, ['a', 'b'])
    assert view.ladder[1] == (3, ['c'])


def test_ladder_is_limited_to_distinct_scores():
    board = {f'p{i}': LeaderboardRank(i, 0, 0) for i in range(20)}
    view = Ladder(board, size=3).get()
    assert [rank for rank, _ in view.ladder] == [1, 2, 3]


def test_ladder_is_memoized_until_invalidated():
    board = {'a': LeaderboardRank(1, 0, 0)}
    ladder = Ladder(board)
    first = ladder.get()
    board['b'] = LeaderboardRank(2, 0, 0)
    assert ladder.get() is first
    ladder.invalidate()
    assert ladder.get().ranks['b'] == [1, 1, 1]


def test_record_win_updates_both_boards():
    storage = RecordingStorage()
    leaderboard = Leaderboard(storage=storage)
    players = [_player('alice', 20, 4), _player('bob', 10, 2), _player('carol', 5, 1), _player('dave', 0, 0)]

    leaderboard.record_win(['alice', 'bob', 'carol'], (3, 2, 1), players)

    for board in (MAIN_BOARD, ALT_BOARD):
        assert leaderboard.entry('alice', board) == LeaderboardRank(3, 20, 4)
        assert leaderboard.entry('bob', board) == LeaderboardRank(2, 10, 2)
        assert leaderboard.entry('carol', board) == LeaderboardRank(1, 5, 1)
        assert leaderboard.entry('dave', board) is None
    assert storage.saved[-1][MAIN_BOARD]['alice'] == [3, 20, 4]


def test_record_win_invalidates_ladders():
    leaderboard = Leaderboard()
    leaderboard.record_win(['alice'], (3, 2, 1), [_player('alice', 20, 4)])
    assert leaderboard.get_ranks(MAIN_BOARD).ranks['alice'] == [1, 1, 1]

    leaderboard.record_win(['bob'], (5, 3, 1), [_player('bob', 50, 10)])
    assert leaderboard.get_ranks(MAIN_BOARD).ranks['alice'] == [2, 2, 2]
    assert leaderboard.get_ranks(MAIN_BOARD).ranks['bob'] == [1, 1, 1]


def test_ranks_for_unknown_identity():
    leaderboard = Leaderboard({'alice': [3, 20, 4]}, {'alice': [3, 20, 4]})
    assert leaderboard.ranks('zed') is None
    ranks = leaderboard.ranks('alice')
    assert ranks[MAIN_BOARD] == (LeaderboardRank(3, 20, 4), [1, 1, 1])


def test_reset_alt_keeps_main_board():
    storage = RecordingStorage()
    leaderboard = Leaderboard({'alice': [3, 20, 4]}, {'alice': [3, 20, 4]}, storage)
    leaderboard.get_ranks(ALT_BOARD)
    leaderboard.reset_alt()
    assert leaderboard.entry('alice', ALT_BOARD) is None
    assert leaderboard.entry('alice', MAIN_BOARD) == LeaderboardRank(3, 20, 4)
    assert leaderboard.get_ranks(ALT_BOARD).ladder == []
    assert storage.saved[-1][ALT_BOARD] == {}


def test_document_round_trip():
    leaderboard = Leaderboard({'alice': [3, 20, 4]})
    again = Leaderboard.from_document(leaderboard.to_document())
    assert again.entry('alice') == LeaderboardRank(3, 20, 4)
