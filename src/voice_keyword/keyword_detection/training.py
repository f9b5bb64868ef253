"""Keyword validation and reference pattern extraction."""

import hashlib
import re
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    MAX_KEYWORD_LENGTH,
    MAX_KEYWORD_WORDS,
    MAX_PATTERN_LENGTH,
    MIN_KEYWORD_WORD_LENGTH,
    MIN_PATTERN_LENGTH,
    PATTERN_STEP_MS,
    TRAINING_BYTES_PER_SECOND,
)
from .exceptions import InvalidProfileError, OutOfRangeError
from .logging_utils import get_logger
from .models import KeywordProfile, ReferencePattern

logger = get_logger(__name__)

_KEYWORD_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-']+$")

# Envelope phases as fractions of the pattern length
ATTACK_END = 0.15
SUSTAIN_END = 0.75
SUSTAIN_BASE = 0.85
SUSTAIN_JITTER = 0.15
ENVELOPE_WEIGHT = 0.7


@dataclass(frozen=True)
class KeywordValidationResult:
    """Outcome of keyword text validation."""

    is_valid: bool
    error_message: str | None = None

    @classmethod
    def valid(cls) -> "KeywordValidationResult":
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, message: str) -> "KeywordValidationResult":
        return cls(is_valid=False, error_message=message)


def validate_keyword(keyword_text: str) -> KeywordValidationResult:
    """
    Check that keyword text is something a user can reasonably say.

    Args:
        keyword_text: Keyword as typed by the user

    Returns:
        KeywordValidationResult describing the first problem found, if any
    """
    trimmed = keyword_text.strip()

    if not trimmed:
        return KeywordValidationResult.invalid("Keyword cannot be empty")
    if len(trimmed) > MAX_KEYWORD_LENGTH:
        return KeywordValidationResult.invalid(
            f"Keyword must be {MAX_KEYWORD_LENGTH} characters or less"
        )
    if not _KEYWORD_PATTERN.match(trimmed):
        return KeywordValidationResult.invalid(
            "Keyword can only contain letters, numbers, spaces, hyphens, and apostrophes"
        )

    words = trimmed.split()
    if len(words) > MAX_KEYWORD_WORDS:
        return KeywordValidationResult.invalid(
            f"Keyword should be {MAX_KEYWORD_WORDS} words or less"
        )
    if any(len(word) < MIN_KEYWORD_WORD_LENGTH for word in words):
        return KeywordValidationResult.invalid(
            f"Each word should be at least {MIN_KEYWORD_WORD_LENGTH} characters"
        )

    return KeywordValidationResult.valid()


def pattern_length_for_size(file_size: int) -> int:
    """Pattern length for a training clip of ``file_size`` bytes."""
    estimated_duration_ms = int(file_size / TRAINING_BYTES_PER_SECOND * 1000)
    return int(min(max(estimated_duration_ms // PATTERN_STEP_MS, MIN_PATTERN_LENGTH), MAX_PATTERN_LENGTH))


def extract_reference_pattern(audio_bytes: bytes) -> ReferencePattern:
    """
    Build a reference envelope from the raw bytes of a training recording.

    This is a placeholder for a real feature extractor (e.g. MFCC). It does not
    decode audio: the length comes from the clip size, the sustain jitter
    from a generator seeded with a digest of the bytes, and a per-index term
    from the size. The result is deterministic for identical bytes, and that
    reproducibility is relied upon, so the numbers must not be changed.

    Args:
        audio_bytes: Contents of the training recording

    Returns:
        ReferencePattern of length 50-200 with values in [0.0, 1.0]

    Raises:
        InvalidProfileError: If the recording is empty
    """
    if not audio_bytes:
        raise InvalidProfileError("Training recording is empty")

    file_size = len(audio_bytes)
    length = pattern_length_for_size(file_size)
    seed = int.from_bytes(hashlib.sha256(audio_bytes).digest()[:8], "big")
    rng = np.random.default_rng(seed)

    position = np.arange(length) / length
    jitter = rng.random(length)
    envelope = np.where(
        position < ATTACK_END,
        position / ATTACK_END,
        np.where(
            position < SUSTAIN_END,
            SUSTAIN_BASE + jitter * SUSTAIN_JITTER,
            (1.0 - position) / (1.0 - SUSTAIN_END),
        ),
    )
    uniqueness = ((file_size + np.arange(length)) % 100) / 200.0
    values = np.clip(envelope * ENVELOPE_WEIGHT + uniqueness, 0.0, 1.0)

    logger.debug(f"Extracted reference pattern of length {length} from {file_size} bytes")
    return ReferencePattern(tuple(values.tolist()))


class KeywordTrainer:
    """Turns a keyword recording into a KeywordProfile."""

    def __init__(self, default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> None:
        if not 0.0 <= default_threshold <= 1.0:
            raise OutOfRangeError("Default threshold must be between 0.0 and 1.0")
        self.default_threshold = default_threshold

    def train(
        self,
        keyword_text: str,
        audio_bytes: bytes,
        threshold: float | None = None,
        source_path: str | None = None,
    ) -> KeywordProfile:
        """
        Validate the keyword and extract its reference pattern.

        Raises:
            InvalidProfileError: If the keyword text or recording is invalid
            OutOfRangeError: If the threshold is outside [0.0, 1.0]
        """
        validation = validate_keyword(keyword_text)
        if not validation.is_valid:
            raise InvalidProfileError(validation.error_message)

        threshold = self.default_threshold if threshold is None else threshold
        if not 0.0 <= threshold <= 1.0:
            raise OutOfRangeError("Confidence threshold must be between 0.0 and 1.0")

        pattern = extract_reference_pattern(audio_bytes)
        profile = KeywordProfile(
            id=str(time.time_ns()),
            keyword=keyword_text.strip(),
            pattern=pattern,
            confidence=threshold,
            source_path=source_path,
        )
        logger.info(f"🎯 Trained keyword '{profile.keyword}' (pattern length {len(pattern)})")
        return profile

    def train_from_file(
        self, keyword_text: str, audio_path: str | Path, threshold: float | None = None
    ) -> KeywordProfile:
        """
        Train from a recording on disk.

        Raises:
            InvalidProfileError: If the file does not exist or cannot be read
        """
        path = Path(audio_path)
        try:
            audio_bytes = path.read_bytes()
        except FileNotFoundError as e:
            raise InvalidProfileError(f"Audio file not found: {path}") from e
        except OSError as e:
            raise InvalidProfileError(f"Failed to read audio file {path}: {e}") from e

        return self.train(keyword_text, audio_bytes, threshold, source_path=str(path))
