"""Exceptions raised while snapshotting a node tree."""

from __future__ import annotations


class SnapshotError(Exception):
    """Base class for all snapshot failures."""


class FetchNotFound(SnapshotError):
    """Raised when a resource responds with HTTP 404."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f'Resource "{url}" not found')


class NotInDocument(SnapshotError):
    """Raised when the root node has no owning document."""

    def __init__(self, message: str = "Provided element is not within a Document"):
        super().__init__(message)


class AccessDenied(SnapshotError):
    """Raised when a cross-origin document or style sheet cannot be read."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class MalformedFragment(SnapshotError):
    """Raised when a style fragment cannot be inserted into a sheet."""

    def __init__(self, fragment: str, reason: str = "not a single CSS rule"):
        self.fragment = fragment
        self.reason = reason
        super().__init__(f"Malformed CSS fragment ({reason}): {fragment[:80]!r}")
