"""Exception taxonomy for round construction, content loading and remote sync."""

from __future__ import annotations


class TriviaError(Exception):
    """Base class for trivia service errors."""


class InsufficientContent(TriviaError):
    """Raised when a round cannot be built because the content pool is empty."""


class RemoteUnavailable(TriviaError):
    """Raised when the remote store cannot be reached or rejects a request."""


class MalformedEntity(TriviaError):
    """Raised when stored or incoming content fails shape validation."""

    def __init__(self, message: str, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id
