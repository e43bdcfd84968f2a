from __future__ import annotations


class SessionError(Exception):
    pass


class ContentUnavailable(SessionError):
    """Index or instance could not be fetched or parsed."""

    def __init__(self, message: str, *, language: str, index: int | None = None) -> None:
        super().__init__(message)
        self.language = language
        self.index = index


class InvalidIndexBounds(ContentUnavailable):
    """Content index advertises no selectable instances."""
