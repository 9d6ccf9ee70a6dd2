"""GeoCompass error taxonomy.

Every failure a core operation can surface to a caller is one of these.
The HTTP layer maps them to status codes; client-side state machines map
them to notices.
"""

from __future__ import annotations


class GameError(Exception):
    """Base class for all errors surfaced by core operations."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(GameError):
    """Session, mode or document absent."""

    kind = "not_found"
    status_code = 404


class Forbidden(GameError):
    """Caller lacks the role the operation requires."""

    kind = "forbidden"
    status_code = 403


class Conflict(GameError):
    """Operation clashes with the current state of the document."""

    kind = "conflict"
    status_code = 409


class Unavailable(GameError):
    """A device or upstream collaborator could not provide what was needed."""

    kind = "unavailable"
    status_code = 503


class Invalid(GameError):
    """Malformed input."""

    kind = "invalid"
    status_code = 422
