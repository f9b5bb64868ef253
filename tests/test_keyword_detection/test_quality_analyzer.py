"""Tests for AudioQualityAnalyzer and level normalisation."""

import math

import pytest

from voice_keyword.keyword_detection.models import AudioQuality, NoiseLevel
from voice_keyword.keyword_detection.quality_analyzer import (
    AudioQualityAnalyzer,
    normalize_decibels,
)


@pytest.mark.unit
class TestNormalizeDecibels:
    """Test cases for dB to level conversion."""

    def test_range_endpoints(self) -> None:
        assert normalize_decibels(-60.0) == 0.0
        assert normalize_decibels(-10.0) == 1.0

    def test_midpoint(self) -> None:
        assert normalize_decibels(-35.0) == pytest.approx(0.5)

    def test_out_of_range_readings_are_clamped(self) -> None:
        assert normalize_decibels(-120.0) == 0.0
        assert normalize_decibels(5.0) == 1.0

    def test_nan_is_silence(self) -> None:
        assert normalize_decibels(math.nan) == 0.0


@pytest.mark.unit
class TestAudioQualityAnalyzer:
    """Test cases for AudioQualityAnalyzer."""

    def test_initial_state(self) -> None:
        analyzer = AudioQualityAnalyzer()

        assert analyzer.is_calibrated is False
        assert analyzer.background_noise_level == 0.0
        assert analyzer.sample_count == 0
        assert analyzer.current_snapshot is None

    def test_buffer_too_small(self) -> None:
        with pytest.raises(ValueError, match="Buffer size"):
            AudioQualityAnalyzer(buffer_size=3)

    def test_no_speech_before_calibration(self) -> None:
        """Strongly modulated loud input is not speech until 20 samples are seen."""
        analyzer = AudioQualityAnalyzer()

        snapshots = [analyzer.analyze(level) for level in [0.2, 0.9] * 9 + [0.2]]

        assert analyzer.is_calibrated is False
        assert not any(s.is_speech_detected for s in snapshots)

    def test_calibration_uses_quietest_samples(self) -> None:
        analyzer = AudioQualityAnalyzer()

        for level in [0.2, 0.5, 0.8, 0.5] * 5:
            analyzer.analyze(level)

        assert analyzer.is_calibrated is True
        # Lowest 6 of 20: five 0.2 readings and one 0.5
        assert analyzer.background_noise_level == pytest.approx(0.25)

    def test_speech_detected_after_calibration(self) -> None:
        analyzer = AudioQualityAnalyzer()

        snapshots = [analyzer.analyze(level) for level in [0.2, 0.5, 0.8, 0.5] * 5]

        assert snapshots[-1].is_speech_detected is True

    def test_speech_requires_level_above_threshold(self) -> None:
        """A quiet reading is never speech, whatever came before it."""
        analyzer = AudioQualityAnalyzer()
        for level in [0.2, 0.5, 0.8, 0.5] * 5:
            analyzer.analyze(level)

        snapshot = analyzer.analyze(0.05)

        assert snapshot.is_speech_detected is False

    def test_constant_signal_is_not_speech(self) -> None:
        analyzer = AudioQualityAnalyzer()

        snapshots = [analyzer.analyze(0.6) for _ in range(40)]

        assert not any(s.is_speech_detected for s in snapshots)

    def test_silence_snapshot(self) -> None:
        analyzer = AudioQualityAnalyzer()

        for _ in range(30):
            snapshot = analyzer.analyze(0.0)

        assert snapshot.quality == AudioQuality.POOR
        assert snapshot.noise_level == NoiseLevel.QUIET
        assert snapshot.signal_to_noise_ratio == 0.0
        assert snapshot.noise_reduction_recommended is True
        assert snapshot.is_speech_detected is False

    def test_quiet_environment_after_calibration(self) -> None:
        analyzer = AudioQualityAnalyzer()

        for _ in range(20):
            snapshot = analyzer.analyze(0.1)

        assert analyzer.background_noise_level == pytest.approx(0.1)
        assert snapshot.noise_level == NoiseLevel.QUIET

    def test_loud_input_over_quiet_floor(self) -> None:
        analyzer = AudioQualityAnalyzer()
        for _ in range(20):
            analyzer.analyze(0.05)

        for _ in range(30):
            snapshot = analyzer.analyze(0.9)

        assert snapshot.noise_level == NoiseLevel.VERY_NOISY
        assert snapshot.signal_to_noise_ratio > 20.0
        assert snapshot.quality == AudioQuality.EXCELLENT

    def test_confidence_score_bounds(self) -> None:
        analyzer = AudioQualityAnalyzer()

        for level in [0.0, 1.0, 0.5, 0.2] * 20:
            snapshot = analyzer.analyze(level)
            assert 0.0 <= snapshot.confidence_score <= 1.0

    def test_rolling_average_is_bounded_by_buffer(self) -> None:
        analyzer = AudioQualityAnalyzer(buffer_size=10)
        for _ in range(10):
            analyzer.analyze(1.0)

        for _ in range(10):
            snapshot = analyzer.analyze(0.0)

        assert snapshot.average_level == 0.0

    def test_reset(self) -> None:
        analyzer = AudioQualityAnalyzer()
        for level in [0.2, 0.5, 0.8, 0.5] * 5:
            analyzer.analyze(level)

        analyzer.reset()

        assert analyzer.is_calibrated is False
        assert analyzer.background_noise_level == 0.0
        assert analyzer.sample_count == 0
        assert analyzer.current_snapshot is None

    def test_snapshot_descriptions(self) -> None:
        analyzer = AudioQualityAnalyzer()

        snapshot = analyzer.analyze(0.0)

        assert snapshot.quality_description.startswith("Poor")
        assert "Quiet" in snapshot.noise_description
        assert "speech: False" in str(snapshot)
