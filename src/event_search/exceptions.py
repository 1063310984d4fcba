"""Exception types raised by the search core."""

from __future__ import annotations


class SearchError(Exception):
    """Base class for errors raised by this package."""


class EmbeddingConfigurationError(SearchError):
    """Remote embeddings were requested without an API URL or key."""


class RemoteEmbeddingError(SearchError):
    """The remote embedding API returned an error or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DimensionMismatchError(SearchError, ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have the same length (got {left} and {right}).")
        self.left = left
        self.right = right
