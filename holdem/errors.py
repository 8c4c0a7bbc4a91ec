"""
Exceptions raised by the hold'em engine and table service.
"""


class HoldemError(Exception):
    """Base class for every error raised by this package."""


class IllegalActionError(HoldemError):
    """An action violates the current betting-round rules.

    The engine raises this before producing a new state, so the state the
    caller passed in is always left untouched.
    """


class OutOfTurnError(IllegalActionError):
    """An action was submitted by someone other than the current actor."""


class InsufficientCardsError(HoldemError):
    """The deck ran out of cards (should never happen with <= 10 seats)."""


class TableNotFoundError(HoldemError):
    pass


class StaleStateError(HoldemError):
    """A write was based on an older version of the table state."""


class InvalidGameStateError(HoldemError):
    """A submitted game state failed validation."""


class TournamentError(HoldemError):
    """A tournament operation is not allowed in the tournament's current state."""
