"""Tests for keyword validation, pattern extraction and KeywordTrainer."""

import pytest

from voice_keyword.keyword_detection.exceptions import InvalidProfileError, OutOfRangeError
from voice_keyword.keyword_detection.training import (
    KeywordTrainer,
    extract_reference_pattern,
    pattern_length_for_size,
    validate_keyword,
)


@pytest.mark.unit
class TestValidateKeyword:
    """Test cases for keyword text validation."""

    @pytest.mark.parametrize("keyword", ["hey there", "ok computer", "it's me", "wake-up", "go 42"])
    def test_valid_keywords(self, keyword: str) -> None:
        assert validate_keyword(keyword).is_valid is True

    @pytest.mark.parametrize(
        ("keyword", "message"),
        [
            ("   ", "cannot be empty"),
            ("a" * 51, "50 characters or less"),
            ("hello!", "only contain letters"),
            ("one two three four five six", "5 words or less"),
            ("hey a", "at least 2 characters"),
        ],
    )
    def test_invalid_keywords(self, keyword: str, message: str) -> None:
        result = validate_keyword(keyword)

        assert result.is_valid is False
        assert message in result.error_message


@pytest.mark.unit
class TestExtractReferencePattern:
    """Test cases for reference pattern extraction."""

    @pytest.mark.parametrize(
        ("size", "length"),
        [(100, 50), (1000, 50), (3000, 150), (10000, 200)],
    )
    def test_length_follows_clip_size(self, size: int, length: int) -> None:
        assert pattern_length_for_size(size) == length
        assert len(extract_reference_pattern(b"\x01" * size)) == length

    def test_deterministic(self) -> None:
        audio = bytes(range(256)) * 12

        assert extract_reference_pattern(audio) == extract_reference_pattern(audio)

    def test_different_content_same_size_differs(self) -> None:
        first = extract_reference_pattern(b"\x01" * 3000)
        second = extract_reference_pattern(b"\x02" * 3000)

        assert len(first) == len(second)
        assert first != second

    def test_values_in_unit_range(self) -> None:
        pattern = extract_reference_pattern(bytes(range(256)) * 20)

        assert all(0.0 <= value <= 1.0 for value in pattern.values)

    def test_envelope_rises_then_falls(self) -> None:
        values = extract_reference_pattern(b"\x05" * 3000).values
        length = len(values)

        attack = values[: int(length * 0.05)]
        sustain = values[int(length * 0.3) : int(length * 0.7)]
        tail = values[int(length * 0.95) :]

        assert sum(attack) / len(attack) < sum(sustain) / len(sustain)
        assert sum(tail) / len(tail) < sum(sustain) / len(sustain)

    def test_empty_recording(self) -> None:
        with pytest.raises(InvalidProfileError, match="empty"):
            extract_reference_pattern(b"")


@pytest.mark.unit
class TestKeywordTrainer:
    """Test cases for KeywordTrainer."""

    def test_train(self) -> None:
        trainer = KeywordTrainer()

        profile = trainer.train("  hey there ", b"\x01" * 3000)

        assert profile.keyword == "hey there"
        assert profile.confidence == 0.7
        assert len(profile.pattern) == 150
        assert profile.is_valid() is True
        assert profile.is_reliable is True

    def test_train_with_threshold(self) -> None:
        profile = KeywordTrainer().train("hey there", b"\x01" * 3000, threshold=0.5)

        assert profile.confidence == 0.5
        assert profile.is_reliable is False

    def test_invalid_keyword(self) -> None:
        with pytest.raises(InvalidProfileError, match="only contain letters"):
            KeywordTrainer().train("hey!", b"\x01" * 3000)

    def test_threshold_out_of_range(self) -> None:
        with pytest.raises(OutOfRangeError):
            KeywordTrainer().train("hey there", b"\x01" * 3000, threshold=1.5)

    def test_invalid_default_threshold(self) -> None:
        with pytest.raises(OutOfRangeError):
            KeywordTrainer(default_threshold=-0.1)

    def test_train_from_file(self, tmp_path) -> None:
        audio_path = tmp_path / "keyword.wav"
        audio_path.write_bytes(b"\x07" * 4000)

        profile = KeywordTrainer().train_from_file("hey there", audio_path)

        assert profile.source_path == str(audio_path)
        assert profile.pattern == extract_reference_pattern(b"\x07" * 4000)

    def test_train_from_missing_file(self, tmp_path) -> None:
        with pytest.raises(InvalidProfileError, match="not found"):
            KeywordTrainer().train_from_file("hey there", tmp_path / "missing.wav")
