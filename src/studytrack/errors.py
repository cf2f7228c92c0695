"""Exception types shared across StudyTrack."""

from __future__ import annotations


class StudyTrackError(Exception):
    """Base class for all StudyTrack errors."""


class ConflictError(StudyTrackError):
    """A session was started while another one is still open."""


class ValidationError(StudyTrackError, ValueError):
    """A record or argument is malformed; nothing was persisted."""


class StorageCorruption(StudyTrackError):
    """A persisted blob could not be decoded.

    The record store recovers from this locally by substituting an empty
    collection, so callers normally never see it.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class DeliveryDenied(StudyTrackError):
    """The delivery surface has no permission to show notifications."""


__all__ = [
    "StudyTrackError",
    "ConflictError",
    "ValidationError",
    "StorageCorruption",
    "DeliveryDenied",
]
