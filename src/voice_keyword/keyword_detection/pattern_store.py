"""Storage for the active reference pattern and trained profiles."""

from dataclasses import dataclass, replace

import numpy as np

from .exceptions import InvalidProfileError, OutOfRangeError
from .interfaces import ProfileProvider
from .logging_utils import get_logger
from .models import KeywordProfile, ReferencePattern

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class StoredPattern:
    """A reference pattern paired with its detection threshold."""

    pattern: ReferencePattern
    threshold: float
    reference: np.ndarray
    profile_id: str | None = None


class PatternStore:
    """
    Holds one reference pattern and its confidence threshold.

    Every change replaces the whole StoredPattern, so a reader that fetched
    ``current`` once keeps a consistent pattern/threshold pair even if a new
    pattern is loaded while it is matching.
    """

    def __init__(self) -> None:
        self._current: StoredPattern | None = None

    def load(
        self,
        pattern: ReferencePattern,
        threshold: float,
        profile_id: str | None = None,
    ) -> StoredPattern:
        """
        Replace the active pattern and threshold.

        Raises:
            InvalidProfileError: If the pattern is empty, holds non-finite
                values, or the threshold is outside [0.0, 1.0]
        """
        if len(pattern) == 0:
            raise InvalidProfileError("Reference pattern cannot be empty")
        if not 0.0 <= threshold <= 1.0:
            raise InvalidProfileError(
                f"Confidence threshold must be between 0.0 and 1.0, got {threshold}"
            )
        reference = pattern.as_array()
        if not np.all(np.isfinite(reference)):
            raise InvalidProfileError("Reference pattern contains non-finite values")

        stored = StoredPattern(
            pattern=pattern,
            threshold=threshold,
            reference=reference,
            profile_id=profile_id,
        )
        self._current = stored
        logger.debug(
            f"Reference pattern loaded (length={len(pattern)}, threshold={threshold:.2f})"
        )
        return stored

    def set_threshold(self, threshold: float) -> None:
        """
        Update the threshold of the active pattern.

        Raises:
            OutOfRangeError: If threshold is outside [0.0, 1.0]
        """
        if not 0.0 <= threshold <= 1.0:
            raise OutOfRangeError("Confidence threshold must be between 0.0 and 1.0")
        if self._current is not None:
            self._current = replace(self._current, threshold=threshold)

    def clear(self) -> None:
        self._current = None

    @property
    def current(self) -> StoredPattern | None:
        return self._current

    @property
    def is_loaded(self) -> bool:
        return self._current is not None


class InMemoryProfileProvider(ProfileProvider):
    """Profile provider backed by a dictionary, for tests and the CLI."""

    def __init__(self, profiles: list[KeywordProfile] | None = None) -> None:
        self._profiles: dict[str, KeywordProfile] = {}
        for profile in profiles or []:
            self.save_profile(profile)

    def save_profile(self, profile: KeywordProfile) -> None:
        """
        Store or replace a profile.

        Raises:
            InvalidProfileError: If the profile fails validation
        """
        if not profile.is_valid():
            raise InvalidProfileError(f"Invalid keyword profile: {profile.id!r}")
        self._profiles[profile.id] = profile

    async def get_profile(self, profile_id: str) -> KeywordProfile:
        try:
            return self._profiles[profile_id]
        except KeyError:
            raise InvalidProfileError(f"Unknown keyword profile: {profile_id!r}") from None

    def delete_profile(self, profile_id: str) -> bool:
        return self._profiles.pop(profile_id, None) is not None

    def list_profiles(self) -> list[KeywordProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.trained_at)
