"""
Tracker Exceptions

Error taxonomy shared by the progress client, reconciler and playback observer.
"""

from typing import Optional


class TrackerError(Exception):
    """Base class for all watch-progress tracker errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class AuthRequired(TrackerError):
    """Missing or rejected bearer token. The user has to log in again."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NetworkFailure(TrackerError):
    """
    The request did not complete or the store answered with an error.

    Transient: surfaced as a non-blocking notification, retried by the
    next save tick.
    """

    def __init__(self, message: str = "Network request failed", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DataNotFound(TrackerError):
    """Enrollment, course or topic absent from the store or the cache."""


class InvalidVideoSource(TrackerError):
    """The topic's video link cannot be resolved to a playable video."""

    def __init__(self, link: str):
        super().__init__(f"Invalid video link: {link!r}")
        self.link = link
