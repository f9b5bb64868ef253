"""Real-time audio quality and speech presence analysis."""

import math
from collections import deque

import numpy as np

from .config import (
    ANALYZER_BUFFER_SIZE,
    CALIBRATION_SAMPLES,
    CONFIDENCE_MATURITY_SAMPLES,
    MAX_DECIBELS,
    MIN_DECIBELS,
    NOISE_AVERAGE_WEIGHT,
    NOISE_FLOOR_FRACTION,
    NOISE_FLOOR_MINIMUM,
    NOISE_MODERATE_MULTIPLIER,
    NOISE_NOISY_MULTIPLIER,
    NOISE_QUIET_MULTIPLIER,
    NOISE_REDUCTION_SNR_DB,
    QUALITY_EXCELLENT,
    QUALITY_FAIR,
    QUALITY_GOOD,
    SPEECH_DYNAMIC_RANGE_THRESHOLD,
    SPEECH_NOISE_MULTIPLIER,
    SPEECH_RECENT_SAMPLES,
    SPEECH_THRESHOLD,
    SPEECH_VARIANCE_THRESHOLD,
    SUSTAINED_SPEECH_RATIO,
)
from .logging_utils import get_logger
from .models import AudioQuality, NoiseLevel, QualitySnapshot

logger = get_logger(__name__)


def normalize_decibels(
    decibels: float, min_db: float = MIN_DECIBELS, max_db: float = MAX_DECIBELS
) -> float:
    """
    Map a decibel reading onto the 0.0-1.0 level scale.

    Readings are clamped to [min_db, max_db] and rescaled linearly, so the
    typical voice range of -60dB (quiet) to -10dB (loud) covers the full scale.

    Args:
        decibels: Level reading in dB
        min_db: Reading mapped to 0.0
        max_db: Reading mapped to 1.0

    Returns:
        Normalised level in [0.0, 1.0]
    """
    if math.isnan(decibels):
        return 0.0
    clamped = min(max(decibels, min_db), max_db)
    return (clamped - min_db) / (max_db - min_db)


class AudioQualityAnalyzer:
    """
    Analyzes audio levels and noise in real time.

    Keeps a short rolling history of normalised levels, calibrates a
    background noise floor from the quietest samples once enough history is
    available, and classifies every new level into quality and noise tiers
    with a speech presence flag. Speech is never reported before calibration.
    """

    def __init__(
        self,
        buffer_size: int = ANALYZER_BUFFER_SIZE,
        speech_threshold: float = SPEECH_THRESHOLD,
        calibration_samples: int = CALIBRATION_SAMPLES,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            buffer_size: Number of recent levels kept for averaging
            speech_threshold: Minimum level considered speech
            calibration_samples: Samples required before calibrating the noise floor
        """
        if buffer_size < SPEECH_RECENT_SAMPLES:
            raise ValueError(
                f"Buffer size must hold at least {SPEECH_RECENT_SAMPLES} samples"
            )
        self.buffer_size = buffer_size
        self.speech_threshold = speech_threshold
        self.calibration_samples = calibration_samples

        self._levels: deque[float] = deque(maxlen=buffer_size)
        self._background_noise = 0.0
        self._sample_count = 0
        self._is_calibrated = False
        self._current_snapshot: QualitySnapshot | None = None

    def analyze(self, level: float) -> QualitySnapshot:
        """
        Analyze the current audio level and return quality metrics.

        Args:
            level: Normalised audio level in [0.0, 1.0]

        Returns:
            QualitySnapshot for the updated history
        """
        self._levels.append(level)
        self._sample_count += 1

        if not self._is_calibrated and self._sample_count >= self.calibration_samples:
            self._calibrate_background_noise()

        average_level = float(np.mean(self._levels))
        noise_level = self._determine_noise_level(level, average_level)
        snr = self._calculate_signal_to_noise_ratio(average_level)

        snapshot = QualitySnapshot(
            quality=self._determine_audio_quality(snr, average_level),
            noise_level=noise_level,
            signal_to_noise_ratio=snr,
            average_level=average_level,
            is_speech_detected=self._detect_speech(level, average_level),
            noise_reduction_recommended=(
                noise_level in (NoiseLevel.NOISY, NoiseLevel.VERY_NOISY)
                or snr < NOISE_REDUCTION_SNR_DB
            ),
            confidence_score=self._calculate_confidence_score(
                snr, average_level, noise_level
            ),
        )
        self._current_snapshot = snapshot
        return snapshot

    def _calibrate_background_noise(self) -> None:
        """Estimate the noise floor from the quietest samples in the buffer."""
        ordered = np.sort(np.fromiter(self._levels, dtype=np.float64))
        noise_count = max(1, round(len(ordered) * NOISE_FLOOR_FRACTION))
        self._background_noise = float(np.mean(ordered[:noise_count]))
        self._is_calibrated = True
        logger.debug(
            f"🔇 Noise floor calibrated at {self._background_noise:.3f} "
            f"from {len(ordered)} samples"
        )

    def _noise_reference(self) -> float:
        return max(self._background_noise, NOISE_FLOOR_MINIMUM)

    def _determine_noise_level(self, current_level: float, average_level: float) -> NoiseLevel:
        reference = self._noise_reference()
        combined = average_level * NOISE_AVERAGE_WEIGHT + current_level * (
            1.0 - NOISE_AVERAGE_WEIGHT
        )

        if combined < reference * NOISE_QUIET_MULTIPLIER:
            return NoiseLevel.QUIET
        elif combined < reference * NOISE_MODERATE_MULTIPLIER:
            return NoiseLevel.MODERATE
        elif combined < reference * NOISE_NOISY_MULTIPLIER:
            return NoiseLevel.NOISY
        return NoiseLevel.VERY_NOISY

    def _calculate_signal_to_noise_ratio(self, average_level: float) -> float:
        """SNR in dB of the rolling average over the noise reference."""
        reference = self._noise_reference()
        if average_level <= reference:
            return 0.0
        return 20.0 * math.log10(average_level / reference)

    @staticmethod
    def _determine_audio_quality(snr: float, average_level: float) -> AudioQuality:
        for tier, (min_snr, min_level) in (
            (AudioQuality.EXCELLENT, QUALITY_EXCELLENT),
            (AudioQuality.GOOD, QUALITY_GOOD),
            (AudioQuality.FAIR, QUALITY_FAIR),
        ):
            if snr >= min_snr and average_level >= min_level:
                return tier
        return AudioQuality.POOR

    def _detect_speech(self, current_level: float, average_level: float) -> bool:
        """
        Decide whether speech is likely present.

        Requires a calibrated noise floor, a current level above the speech
        threshold, modulation (variance or dynamic range) in the recent
        samples, an average clearly above the noise floor, and sustained
        activity across the recent samples.
        """
        if not self._is_calibrated:
            return False
        if current_level <= self.speech_threshold:
            return False

        recent = np.fromiter(self._levels, dtype=np.float64)[-SPEECH_RECENT_SAMPLES:]
        has_variance = float(np.var(recent)) > SPEECH_VARIANCE_THRESHOLD
        has_dynamic_range = float(np.ptp(recent)) > SPEECH_DYNAMIC_RANGE_THRESHOLD
        above_noise = average_level > self._background_noise * SPEECH_NOISE_MULTIPLIER

        speech_count = int(np.count_nonzero(recent > self.speech_threshold))
        sustained = speech_count >= len(recent) * SUSTAINED_SPEECH_RATIO

        return (has_variance or has_dynamic_range) and above_noise and sustained

    def _calculate_confidence_score(
        self, snr: float, average_level: float, noise_level: NoiseLevel
    ) -> float:
        """Confidence (0.0 to 1.0) in the quality assessment itself."""
        confidence = 0.5

        if snr >= QUALITY_EXCELLENT[0]:
            confidence += 0.3
        elif snr >= QUALITY_GOOD[0]:
            confidence += 0.2
        elif snr >= QUALITY_FAIR[0]:
            confidence += 0.1

        if average_level >= 0.3:
            confidence += 0.1
        elif average_level < 0.1:
            confidence -= 0.2

        confidence += {
            NoiseLevel.QUIET: 0.1,
            NoiseLevel.MODERATE: 0.0,
            NoiseLevel.NOISY: -0.1,
            NoiseLevel.VERY_NOISY: -0.2,
        }[noise_level]

        if self._is_calibrated and self._sample_count > CONFIDENCE_MATURITY_SAMPLES:
            confidence += 0.1

        return min(max(confidence, 0.0), 1.0)

    def reset(self) -> None:
        """Reset the analyzer state."""
        self._levels.clear()
        self._background_noise = 0.0
        self._sample_count = 0
        self._is_calibrated = False
        self._current_snapshot = None

    @property
    def background_noise_level(self) -> float:
        """Calibrated background noise level (0.0 until calibrated)."""
        return self._background_noise

    @property
    def is_calibrated(self) -> bool:
        return self._is_calibrated

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def current_snapshot(self) -> QualitySnapshot | None:
        """Most recent analysis result."""
        return self._current_snapshot
