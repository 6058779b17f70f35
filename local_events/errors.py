from __future__ import annotations


class CollectorError(Exception):
    """Base class for collection pipeline errors."""


class NavigationError(CollectorError):
    """The source page could not be loaded (no response or a non-2xx status)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CollectionInProgressError(CollectorError):
    """A collection attempt for this source is already running."""

    def __init__(self, source_id: str) -> None:
        super().__init__("Collection already in progress for this source")
        self.source_id = source_id
