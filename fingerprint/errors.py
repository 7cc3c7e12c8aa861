"""Exceptions raised by the fingerprint matching core."""

from typing import Optional


class FingerprintError(Exception):
    """Base class for fingerprint core errors."""


class InvalidInput(FingerprintError):
    """An observation is missing a required attribute group."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


class StoreUnavailable(FingerprintError):
    """The profile store could not serve a read or a save."""


class ConcurrentModification(StoreUnavailable):
    """A profile changed in the store after it was read."""

    def __init__(self, profile_id: str, expected_version: int, actual_version: Optional[int] = None):
        found = "a newer revision" if actual_version is None else f"version {actual_version}"
        super().__init__(
            f"Profile {profile_id} was modified concurrently "
            f"(expected version {expected_version}, found {found})"
        )
        self.profile_id = profile_id
        self.expected_version = expected_version
        self.actual_version = actual_version
