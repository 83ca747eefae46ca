MAIN_CATEGORIES = {
    'ae': 'Arts and Entertainment',
    'pokemon': 'Pokémon',
    'sg': 'Science and Geography',
    'sh': 'Society and Humanities',
}

SPECIAL_CATEGORIES = {
    'misc': 'Miscellaneous',
    'subcat': 'Sub-Category',
}

# Sorted by key; the question banks are kept in this order.
ALL_CATEGORIES = dict(sorted({**MAIN_CATEGORIES, **SPECIAL_CATEGORIES}.items()))

MODES = {
    'first': 'First',
    'number': 'Number',
    'timer': 'Timer',
}

KINDS = {
    'trivia': 'Trivia',
}

LENGTHS = {
    'short': {'cap': 20, 'prizes': (3, 2, 1)},
    'medium': {'cap': 35, 'prizes': (4, 2, 1)},
    'long': {'cap': 50, 'prizes': (5, 3, 1)},
}

SIGNUP_PHASE = 'signups'
INTERMISSION_PHASE = 'intermission'
QUESTION_PHASE = 'question'
LIMBO_PHASE = 'limbo'

MINIMUM_PLAYERS = 3
START_TIMEOUT_SEC = 30
INTERMISSION_SEC = 20
ROUND_LENGTH_MS = 12 * 1000 + 500
NUMBER_ROUND_LENGTH_MS = 6 * 1000

FIRST_MODE_POINTS = 5
LADDER_SIZE = 15
TOP_PLAYERS_SHOWN = 5

MAX_QUESTION_LENGTH = 252
MAX_ANSWER_LENGTH = 32
