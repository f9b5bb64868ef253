"""Tests for RollingWindow."""

import pytest

from voice_keyword.keyword_detection.rolling_window import RollingWindow


@pytest.mark.unit
class TestRollingWindow:
    """Test cases for the sliding level window."""

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError, match="capacity must be positive"):
            RollingWindow(0)

    def test_evicts_oldest_when_full(self) -> None:
        window = RollingWindow(3)

        for level in [0.1, 0.2, 0.3, 0.4, 0.5]:
            window.append(level)

        assert len(window) == 3
        assert window.to_list() == [0.3, 0.4, 0.5]

    def test_latest_returns_most_recent_in_order(self) -> None:
        window = RollingWindow(10)
        for level in [0.1, 0.2, 0.3, 0.4]:
            window.append(level)

        assert window.latest(2).tolist() == [0.3, 0.4]

    def test_latest_more_than_buffered(self) -> None:
        window = RollingWindow(10)
        window.append(0.1)

        with pytest.raises(ValueError, match="only 1 are buffered"):
            window.latest(2)

    def test_latest_zero(self) -> None:
        window = RollingWindow(10)

        assert window.latest(0).size == 0

    def test_clear(self) -> None:
        window = RollingWindow(4)
        window.append(0.5)

        window.clear()

        assert len(window) == 0

    def test_latest_after_wraparound(self) -> None:
        window = RollingWindow(4)
        for level in [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]:
            window.append(level)

        latest = window.latest(3)
        latest[0] = 9.0

        assert latest.tolist() == [9.0, 0.5, 0.6]
        assert window.to_list() == [0.3, 0.4, 0.5, 0.6]
        assert window.latest(4).tolist() == [0.3, 0.4, 0.5, 0.6]
