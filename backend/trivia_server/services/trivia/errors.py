class TriviaError(Exception):
    """Base class for rejections that leave the game state untouched."""

    status_code = 400


class ValidationError(TriviaError):
    """Malformed input: unknown mode, category, length, or empty answer."""


class PreconditionError(TriviaError):
    """The action is well formed but not legal in the current state."""


class NotFoundError(TriviaError):
    """No game in the room, or no such participant."""

    status_code = 404
