"""Shared fakes for keyword detection and background listening tests."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from voice_keyword.background.exceptions import PowerStateUnavailableError
from voice_keyword.background.interfaces import PowerOracle
from voice_keyword.keyword_detection.interfaces import CaptureSource

# Levels that calibrate the analyzer at a noise floor of 0.25 and are
# themselves detected as speech from the 20th sample on.
SPEECH_PREAMBLE = [0.2, 0.5, 0.8, 0.5] * 5
KEYWORD_PATTERN = [0.3, 0.6, 0.9, 0.6, 0.3]


class FakeCaptureSource(CaptureSource):
    """Capture source fed from a queue; an Exception item fails the stream, None ends it."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.start_calls = 0
        self.stop_calls = 0
        self.capturing = False
        self.sample_rate: int | None = None

    async def start_capture(self, sample_rate: int, channels: int) -> AsyncIterator[float]:
        if self.start_error is not None:
            raise self.start_error
        self.start_calls += 1
        self.capturing = True
        self.sample_rate = sample_rate
        return self._stream()

    async def _stream(self) -> AsyncIterator[float]:
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def stop_capture(self) -> None:
        self.stop_calls += 1
        self.capturing = False
        if self.stop_error is not None:
            raise self.stop_error

    def feed(self, *items) -> None:
        for item in items:
            self.queue.put_nowait(item)


class FakePowerOracle(PowerOracle):
    """Power oracle with settable battery level and power-save hint.

    ``failing`` raises PowerStateUnavailableError on every query; errors queued
    in ``raise_next`` are raised once each, before anything else.
    """

    def __init__(self, level: int = 80, power_save_likely: bool = False) -> None:
        self.level = level
        self.power_save_likely = power_save_likely
        self.failing = False
        self.raise_next: list[Exception] = []

    def _check(self) -> None:
        if self.raise_next:
            raise self.raise_next.pop(0)
        if self.failing:
            raise PowerStateUnavailableError("battery sensor unavailable")

    async def battery_level_percent(self) -> int:
        self._check()
        return self.level

    async def is_power_save_likely(self) -> bool:
        self._check()
        return self.power_save_likely


def to_decibels(level: float) -> float:
    """Inverse of normalize_decibels for the default -60..-10 dB range."""
    return level * 50.0 - 60.0


@pytest.fixture
def capture_source() -> FakeCaptureSource:
    return FakeCaptureSource()


@pytest.fixture
def power_oracle() -> FakePowerOracle:
    return FakePowerOracle()
