"""Similarity scoring between a live level window and a reference pattern."""

from collections.abc import Sequence

import numpy as np
from scipy.signal import find_peaks

from .config import MATCHER_WEIGHTS, PEAK_HEIGHT, WARP_RADIUS
from .logging_utils import get_logger
from .models import MatchResult

logger = get_logger(__name__)


class PatternMatcher:
    """
    Combines four envelope heuristics into one similarity score.

    The inputs are loudness envelopes rather than acoustic features such as
    MFCCs. This is a heuristic detector, not a trained keyword-spotting
    model.
    """

    def __init__(
        self,
        weights: Sequence[float] = MATCHER_WEIGHTS,
        peak_height: float = PEAK_HEIGHT,
        warp_radius: int = WARP_RADIUS,
    ) -> None:
        """
        Initialize the matcher.

        Args:
            weights: Weights for correlation, energy, shape and warp scores
            peak_height: Minimum level for a local maximum to count as a peak
            warp_radius: Index neighbourhood searched by the bounded warp
        """
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (4,) or np.any(weights < 0) or weights.sum() <= 0:
            raise ValueError("Matcher needs four non-negative weights with a positive sum")
        if warp_radius < 0:
            raise ValueError("Warp radius cannot be negative")

        self.weights = weights / weights.sum()
        self.peak_height = peak_height
        self.warp_radius = warp_radius

    def similarity(self, window: Sequence[float], reference: Sequence[float]) -> float:
        """
        Combined similarity of two equally long sequences.

        Returns:
            Score in [0.0, 1.0]; exactly 0.0 when the lengths differ
        """
        return self.match(window, reference).confidence

    def match(self, window: Sequence[float], reference: Sequence[float]) -> MatchResult:
        """
        Score a window against a reference with every method.

        Args:
            window: Most recent levels, same length as the reference
            reference: Reference pattern

        Returns:
            MatchResult with the combined confidence and each sub-score
        """
        a = np.asarray(window, dtype=np.float64)
        b = np.asarray(reference, dtype=np.float64)

        if a.shape != b.shape or a.ndim != 1 or a.size == 0:
            return MatchResult(confidence=0.0)

        scores = np.array(
            [
                self.correlation_similarity(a, b),
                self.energy_similarity(a, b),
                self.shape_similarity(a, b),
                self.warp_similarity(a, b),
            ]
        )
        combined = float(np.clip(np.dot(self.weights, scores), 0.0, 1.0))

        logger.trace(
            f"Match scores: correlation={scores[0]:.3f}, energy={scores[1]:.3f}, "
            f"shape={scores[2]:.3f}, warp={scores[3]:.3f} -> {combined:.3f}"
        )
        return MatchResult(
            confidence=combined,
            correlation=float(scores[0]),
            energy=float(scores[1]),
            shape=float(scores[2]),
            warp=float(scores[3]),
        )

    @staticmethod
    def correlation_similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Absolute normalised cross-correlation (0 if either input is flat)."""
        da = a - a.mean()
        db = b - b.mean()
        denominator = np.sqrt(np.dot(da, da) * np.dot(db, db))
        if denominator == 0.0:
            return 0.0
        return float(min(abs(np.dot(da, db) / denominator), 1.0))

    @staticmethod
    def energy_similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Average of the RMS energy ratio and the energy-normalised distribution match."""
        rms_a = float(np.sqrt(np.mean(a**2)))
        rms_b = float(np.sqrt(np.mean(b**2)))

        louder = max(rms_a, rms_b)
        if louder == 0.0:
            return 1.0
        energy_ratio = min(rms_a, rms_b) / louder

        norm_a = a / rms_a if rms_a > 0 else np.zeros_like(a)
        norm_b = b / rms_b if rms_b > 0 else np.zeros_like(b)
        distribution = float(np.clip(1.0 - np.mean(np.abs(norm_a - norm_b)), 0.0, 1.0))

        return (energy_ratio + distribution) / 2.0

    def shape_similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """Average of the peak-count ratio and the fraction of matching slopes."""
        peaks_a = len(find_peaks(a, height=self.peak_height)[0])
        peaks_b = len(find_peaks(b, height=self.peak_height)[0])
        most = max(peaks_a, peaks_b)
        peak_similarity = 1.0 if most == 0 else min(peaks_a, peaks_b) / most

        if a.size < 2:
            slope_similarity = 1.0
        else:
            slopes_a = np.sign(np.diff(a))
            slopes_b = np.sign(np.diff(b))
            slope_similarity = float(np.mean(slopes_a == slopes_b))

        return (peak_similarity + slope_similarity) / 2.0

    def warp_similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """
        Bounded dynamic-time-warp approximation.

        Each window value is compared with the closest reference value within
        ``warp_radius`` indices; the mean of those minima is the distance.
        """
        n = a.size
        padded = np.full(n + 2 * self.warp_radius, np.inf)
        padded[self.warp_radius : self.warp_radius + n] = b

        offsets = np.arange(2 * self.warp_radius + 1)
        neighbours = padded[np.arange(n)[:, None] + offsets[None, :]]
        distances = np.min(np.abs(neighbours - a[:, None]), axis=1)

        return float(np.clip(1.0 - np.mean(distances), 0.0, 1.0))
