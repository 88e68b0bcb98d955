from __future__ import annotations

from typing import Literal

ErrorKind = Literal["not_found", "invalid_state", "validation_failure", "unauthenticated"]


class GameError(ValueError):
    """Base for every rejection the engine raises before mutating state."""

    kind: ErrorKind = "invalid_state"


class NotFoundError(GameError):
    kind: ErrorKind = "not_found"


class InvalidStateError(GameError):
    kind: ErrorKind = "invalid_state"


class ValidationFailureError(GameError):
    kind: ErrorKind = "validation_failure"


class UnauthenticatedError(GameError):
    kind: ErrorKind = "unauthenticated"


class GameNotFound(NotFoundError):
    pass


class RoomNotFound(NotFoundError):
    pass


class PlayerNotInGame(NotFoundError):
    pass


class GameNotInProgress(InvalidStateError):
    pass


class NotPlayersTurn(InvalidStateError):
    pass


class PhaseMismatch(InvalidStateError):
    pass


class InsufficientPlayers(InvalidStateError):
    pass


class PlayerNotActive(InvalidStateError):
    pass


class GameBusy(InvalidStateError):
    pass


class InvalidQuizOption(ValidationFailureError):
    pass
