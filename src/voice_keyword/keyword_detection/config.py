"""Configuration constants for keyword detection functionality."""

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .exceptions import OutOfRangeError
from .logging_utils import get_logger

logger = get_logger(__name__)

# Capture Configuration
CAPTURE_SAMPLE_RATE = 16000  # Hz, voice-optimised capture
CAPTURE_CHANNELS = 1  # mono
CAPTURE_CHUNK_SIZE = 800  # samples per level reading (50ms at 16kHz)

# Level Normalisation
MIN_DECIBELS = -60.0  # dB treated as silence
MAX_DECIBELS = -10.0  # dB treated as full scale

# Rolling Window
BUFFER_DURATION_MS = 3000  # milliseconds of history kept for matching
WINDOW_CAPACITY = BUFFER_DURATION_MS * CAPTURE_SAMPLE_RATE // 1000
MAX_SILENT_SAMPLES = 20  # ~2 seconds of non-speech before the window is cleared

# Audio Quality Analyzer
ANALYZER_BUFFER_SIZE = 50  # ~5 seconds at 100ms intervals
CALIBRATION_SAMPLES = 20  # samples needed before the noise floor is estimated
NOISE_FLOOR_FRACTION = 0.3  # lowest fraction of samples used as noise estimate
NOISE_FLOOR_MINIMUM = 0.05  # fixed floor used when the estimate is lower
SPEECH_THRESHOLD = 0.1  # minimum level for speech detection
SPEECH_VARIANCE_THRESHOLD = 0.008  # modulation required in the recent samples
SPEECH_DYNAMIC_RANGE_THRESHOLD = 0.15  # max-min spread required in the recent samples
SPEECH_NOISE_MULTIPLIER = 1.8  # average level must exceed noise floor by this factor
SPEECH_RECENT_SAMPLES = 5  # samples inspected for variance and sustained speech
SUSTAINED_SPEECH_RATIO = 0.4  # fraction of recent samples above speech threshold
CONFIDENCE_MATURITY_SAMPLES = 30  # samples after which the analyzer is trusted more

# Noise tier multipliers of the noise reference
NOISE_QUIET_MULTIPLIER = 1.3
NOISE_MODERATE_MULTIPLIER = 2.5
NOISE_NOISY_MULTIPLIER = 5.0
NOISE_AVERAGE_WEIGHT = 0.7  # weight of the rolling average in the noise estimate

# Quality tiers as (minimum SNR dB, minimum average level)
QUALITY_EXCELLENT = (20.0, 0.3)
QUALITY_GOOD = (12.0, 0.2)
QUALITY_FAIR = (6.0, 0.1)
NOISE_REDUCTION_SNR_DB = 10.0  # recommend noise reduction below this SNR

# Pattern Matching
MATCHER_WEIGHTS = (0.25, 0.25, 0.25, 0.25)  # correlation, energy, shape, warp
PEAK_HEIGHT = 0.3  # local maxima above this level count as peaks
WARP_RADIUS = 5  # neighbourhood searched by the bounded warp
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
RELIABLE_CONFIDENCE_THRESHOLD = 0.7

# Pattern Extraction
MIN_PATTERN_LENGTH = 50
MAX_PATTERN_LENGTH = 200
TRAINING_BYTES_PER_SECOND = 2000  # rough size-to-duration estimate for training clips
PATTERN_STEP_MS = 10  # one pattern value per 10ms of estimated audio

# Keyword Validation
MAX_KEYWORD_LENGTH = 50
MAX_KEYWORD_WORDS = 5
MIN_KEYWORD_WORD_LENGTH = 2

# Engine Timing
TICK_INTERVAL = 0.1  # seconds between pattern matching ticks
LOW_POWER_TICK_INTERVAL = 0.5  # seconds between ticks in low-power mode
DEBOUNCE_DELAY = 0.5  # seconds before a detection is reset to False
CHANNEL_MAX_SIZE = 256  # pending events kept per outbound channel


@dataclass
class DetectorSettings:
    """Recognised engine options, with defaults taken from the constants above."""

    confidence_threshold: float | None = None
    low_power_mode: bool = False
    tick_interval: float = TICK_INTERVAL
    low_power_tick_interval: float = LOW_POWER_TICK_INTERVAL
    debounce_delay: float = DEBOUNCE_DELAY
    window_capacity: int = WINDOW_CAPACITY
    max_silent_samples: int = MAX_SILENT_SAMPLES
    sample_rate: int = CAPTURE_SAMPLE_RATE
    channels: int = CAPTURE_CHANNELS
    matcher_weights: tuple[float, float, float, float] = MATCHER_WEIGHTS

    def __post_init__(self) -> None:
        self.matcher_weights = tuple(self.matcher_weights)
        self.validate()

    def validate(self) -> None:
        """
        Check every option against its bounds.

        Raises:
            OutOfRangeError: If any option is outside its valid range
        """
        if self.confidence_threshold is not None and not (
            0.0 <= self.confidence_threshold <= 1.0
        ):
            raise OutOfRangeError(
                f"Confidence threshold must be between 0.0 and 1.0, "
                f"got {self.confidence_threshold}"
            )
        for name in ("tick_interval", "low_power_tick_interval"):
            if getattr(self, name) <= 0:
                raise OutOfRangeError(f"{name} must be positive")
        if self.debounce_delay < 0:
            raise OutOfRangeError("debounce_delay cannot be negative")
        if self.window_capacity <= 0:
            raise OutOfRangeError("window_capacity must be positive")
        if self.max_silent_samples <= 0:
            raise OutOfRangeError("max_silent_samples must be positive")
        if self.sample_rate <= 0 or self.channels <= 0:
            raise OutOfRangeError("sample_rate and channels must be positive")
        if len(self.matcher_weights) != 4 or any(w < 0 for w in self.matcher_weights):
            raise OutOfRangeError("matcher_weights needs four non-negative values")
        if sum(self.matcher_weights) <= 0:
            raise OutOfRangeError("matcher_weights cannot all be zero")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "DetectorSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        return cls(**known_options(cls, data, "detector"))


def known_options(settings_cls: type, data: dict[str, Any], table: str) -> dict[str, Any]:
    known = {f.name for f in fields(settings_cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"⚠️ Ignoring unknown [{table}] settings: {', '.join(unknown)}")
    return {key: value for key, value in data.items() if key in known}


def read_settings_table(path: str | Path, table: str) -> dict[str, Any]:
    """
    Read one table from a TOML settings file.

    Args:
        path: Path to the TOML file
        table: Name of the table to return (e.g. "detector")

    Returns:
        The table contents, or an empty dict if the table is absent

    Raises:
        OutOfRangeError: If the file cannot be parsed
    """
    try:
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as e:
        raise OutOfRangeError(f"Invalid settings file {path}: {e}") from e

    section = data.get(table, {})
    if not isinstance(section, dict):
        raise OutOfRangeError(f"[{table}] in {path} must be a table")
    return section


def load_detector_settings(path: str | Path) -> DetectorSettings:
    """Load DetectorSettings from the [detector] table of a TOML file."""
    return DetectorSettings.from_mapping(read_settings_table(path, "detector"))
