"""Data models for keyword detection functionality."""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

import numpy as np

from .config import RELIABLE_CONFIDENCE_THRESHOLD
from .exceptions import OutOfRangeError


class AudioQuality(str, Enum):
    """Overall quality tier of the incoming audio."""

    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class NoiseLevel(str, Enum):
    """Background noise tier of the incoming audio."""

    QUIET = "quiet"
    MODERATE = "moderate"
    NOISY = "noisy"
    VERY_NOISY = "very_noisy"


_QUALITY_DESCRIPTIONS = {
    AudioQuality.EXCELLENT: "Excellent - Crystal clear audio",
    AudioQuality.GOOD: "Good - Clear voice recording",
    AudioQuality.FAIR: "Fair - Acceptable quality",
    AudioQuality.POOR: "Poor - Consider moving to quieter location",
}

_NOISE_DESCRIPTIONS = {
    NoiseLevel.QUIET: "Quiet environment - Optimal for recording",
    NoiseLevel.MODERATE: "Some background noise detected",
    NoiseLevel.NOISY: "Noisy environment - Consider noise reduction",
    NoiseLevel.VERY_NOISY: "Very noisy - Move to quieter location",
}


@dataclass(frozen=True)
class QualitySnapshot:
    """Quality metrics derived from the most recent audio level."""

    quality: AudioQuality
    noise_level: NoiseLevel
    signal_to_noise_ratio: float
    average_level: float
    is_speech_detected: bool
    noise_reduction_recommended: bool
    confidence_score: float

    @property
    def quality_description(self) -> str:
        """User-friendly quality description."""
        return _QUALITY_DESCRIPTIONS[self.quality]

    @property
    def noise_description(self) -> str:
        """Noise level description with a recommendation."""
        return _NOISE_DESCRIPTIONS[self.noise_level]

    def __str__(self) -> str:
        return (
            f"QualitySnapshot(quality: {self.quality.value}, "
            f"noise: {self.noise_level.value}, "
            f"snr: {self.signal_to_noise_ratio:.1f}dB, "
            f"avgLevel: {self.average_level:.2f}, "
            f"speech: {self.is_speech_detected}, "
            f"confidence: {self.confidence_score:.2f})"
        )


@dataclass(frozen=True)
class ReferencePattern:
    """Immutable reference envelope extracted from a keyword recording."""

    values: tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))

    def __len__(self) -> int:
        return len(self.values)

    def as_array(self) -> np.ndarray:
        """Return a read-only numpy view of the pattern."""
        array = np.asarray(self.values, dtype=np.float64)
        array.flags.writeable = False
        return array


@dataclass(frozen=True)
class MatchResult:
    """Combined similarity and the sub-scores it was built from."""

    confidence: float
    correlation: float = 0.0
    energy: float = 0.0
    shape: float = 0.0
    warp: float = 0.0


@dataclass(frozen=True)
class KeywordProfile:
    """A trained keyword with its reference pattern and detection threshold."""

    id: str
    keyword: str
    pattern: ReferencePattern
    confidence: float
    trained_at: datetime = field(default_factory=datetime.now)
    source_path: str | None = None

    def is_valid(self) -> bool:
        """Check that the profile can be loaded into the engine."""
        if not self.id or not self.keyword.strip():
            return False
        if len(self.keyword) > 50:
            return False
        if len(self.pattern) == 0:
            return False
        return 0.0 <= self.confidence <= 1.0

    def with_threshold(self, confidence: float) -> "KeywordProfile":
        """
        Return a copy of this profile with a new confidence threshold.

        Raises:
            OutOfRangeError: If confidence is outside [0.0, 1.0]
        """
        if not 0.0 <= confidence <= 1.0:
            raise OutOfRangeError("Confidence must be between 0.0 and 1.0")
        return replace(self, confidence=confidence)

    @property
    def is_reliable(self) -> bool:
        """True when the threshold is strict enough to trust detections."""
        return self.confidence >= RELIABLE_CONFIDENCE_THRESHOLD


class EngineState(str, Enum):
    """Listening state of the keyword spotting engine."""

    IDLE = "idle"
    LISTENING = "listening"


class SessionState(str, Enum):
    """State reported for a listening session."""

    IDLE = "idle"
    LISTENING = "listening"
    BACKGROUND_LISTENING = "background_listening"


class StopReason(str, Enum):
    """Why a listening session ended."""

    REQUESTED = "requested"
    LOW_BATTERY = "low_battery"
    MAX_DURATION = "max_duration"
    CAPTURE_FAILURE = "capture_failure"
    DISPOSED = "disposed"

    @property
    def is_fault(self) -> bool:
        """True for failures, False for requested or policy stops."""
        return self is StopReason.CAPTURE_FAILURE

    @property
    def is_policy(self) -> bool:
        """True when the stop was forced by power or duration policy."""
        return self in (StopReason.LOW_BATTERY, StopReason.MAX_DURATION)


@dataclass
class ListeningSession:
    """Bookkeeping for the current listening session."""

    state: SessionState = SessionState.IDLE
    started_at: datetime | None = None
    detection_count: int = 0
    background_task_executions: int = 0

    def reset(self) -> None:
        """Return the session to its idle defaults."""
        self.state = SessionState.IDLE
        self.started_at = None
        self.detection_count = 0
        self.background_task_executions = 0


@dataclass(frozen=True)
class ConfidenceEvent:
    """Similarity computed on one matching tick."""

    confidence: float
    timestamp: float = field(default_factory=time.monotonic)
    match: MatchResult | None = None


@dataclass(frozen=True)
class DetectionEvent:
    """Detection flag; True on a match, False once the debounce delay has passed."""

    detected: bool
    timestamp: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class SessionEndedEvent:
    """Terminal event published on both channels when listening stops."""

    reason: StopReason
    timestamp: float = field(default_factory=time.monotonic)
    error: str | None = None

    @property
    def is_fault(self) -> bool:
        """True when the session ended because of a failure."""
        return self.reason.is_fault
