"""
Custom exceptions shared across layers.

Every error a client may see derives from GameError, so the transport layer only needs to catch one type
to turn a rejected command into an `error` push.
"""


class GameError(Exception):
    """Top-level exception for anything that rejects a command."""


class InvalidRequestError(GameError):
    """The payload is missing fields or contains values that cannot be interpreted."""


class RoomNotFoundError(GameError):
    """Neither a live room nor a stored snapshot exists for the requested id."""


class InvalidPlayerError(GameError):
    """The acting address does not hold the seat needed for this command."""


class NotYourTurnError(GameError):
    pass


class GameStateError(GameError):
    """The command is not allowed in the current state of the game (e.g. game already over)."""


class IllegalMoveError(GameError):
    """The rules engine vetoed the move."""


class InvalidFENError(GameError):
    pass


class RepositoryError(GameError):
    """A room store backend failed. Logged by the coordinator, never pushed to a client."""
