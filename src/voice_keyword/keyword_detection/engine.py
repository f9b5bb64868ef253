"""Continuous keyword spotting engine."""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from .channels import EventChannel
from .config import DetectorSettings
from .exceptions import (
    CaptureFailureError,
    InvalidProfileError,
    KeywordDetectionError,
    NoProfileLoadedError,
    PermissionDeniedError,
)
from .interfaces import CaptureSource, PermissionOracle, ProfileProvider, StaticPermissionOracle
from .logging_utils import get_logger
from .models import (
    ConfidenceEvent,
    DetectionEvent,
    EngineState,
    KeywordProfile,
    ListeningSession,
    MatchResult,
    QualitySnapshot,
    ReferencePattern,
    SessionEndedEvent,
    SessionState,
    StopReason,
)
from .pattern_matcher import PatternMatcher
from .pattern_store import PatternStore
from .quality_analyzer import AudioQualityAnalyzer, normalize_decibels
from .rolling_window import RollingWindow

logger = get_logger(__name__)


class KeywordSpottingEngine:
    """
    Listens to a live level stream and reports keyword matches.

    Every level reading is normalised, analysed for speech and appended to a
    sliding window. On each tick the most recent window is compared with the
    reference pattern, but only while the analyzer reports speech. Confidence
    values go to ``confidence_channel``. A match at or above the threshold
    publishes ``DetectionEvent(True)`` on ``detection_channel``, always
    followed by ``DetectionEvent(False)`` after the debounce delay and before
    any further detection.

    All state is mutated from the event loop between awaits: ingestion,
    ticks, reconfiguration and lifecycle calls never interleave inside a
    mutation.
    """

    def __init__(
        self,
        capture_source: CaptureSource,
        permission_oracle: PermissionOracle | None = None,
        settings: DetectorSettings | None = None,
        analyzer: AudioQualityAnalyzer | None = None,
        matcher: PatternMatcher | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            capture_source: Source of dB level readings
            permission_oracle: Microphone permission check (always granted if None)
            settings: Engine options (defaults if None)
            analyzer: Quality analyzer (a new one if None)
            matcher: Pattern matcher (built from the settings weights if None)
        """
        self._settings = settings or DetectorSettings()
        self._capture = capture_source
        self._permissions = permission_oracle or StaticPermissionOracle()
        self._analyzer = analyzer or AudioQualityAnalyzer()
        self._matcher = matcher or PatternMatcher(weights=self._settings.matcher_weights)

        self._store = PatternStore()
        self._profile: KeywordProfile | None = None
        self._window = RollingWindow(self._settings.window_capacity)

        self.confidence_channel: EventChannel[ConfidenceEvent | SessionEndedEvent] = (
            EventChannel("confidence")
        )
        self.detection_channel: EventChannel[DetectionEvent | SessionEndedEvent] = (
            EventChannel("detection")
        )

        self._state = EngineState.IDLE
        self._background = False
        self._low_power = self._settings.low_power_mode
        self._session = ListeningSession()
        self._lifecycle_lock = asyncio.Lock()

        self._ingest_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._reset_handle: asyncio.TimerHandle | None = None
        self._stop_listeners: list[Callable[[StopReason], None]] = []

        self._silent_samples = 0
        self._samples_ingested = 0
        self._ticks = 0

    # Profile management

    def load_pattern(
        self,
        reference: ReferencePattern | Sequence[float],
        threshold: float,
        profile_id: str | None = None,
    ) -> None:
        """
        Replace the active reference pattern and threshold.

        The current profile is kept only if ``profile_id`` names it.

        Raises:
            InvalidProfileError: If the pattern is empty or the threshold is
                outside [0.0, 1.0]
        """
        if not isinstance(reference, ReferencePattern):
            reference = ReferencePattern(tuple(reference))
        self._store.load(reference, threshold, profile_id)
        if self._profile is not None and self._profile.id == profile_id:
            self._profile = replace(self._profile, pattern=reference, confidence=threshold)
        else:
            self._profile = None

    def load_profile(self, profile: KeywordProfile) -> None:
        """
        Load a trained keyword profile.

        A threshold override in the settings takes precedence over the
        profile's own threshold.

        Raises:
            InvalidProfileError: If the profile fails validation
        """
        if not profile.is_valid():
            raise InvalidProfileError(f"Invalid keyword profile: {profile.id!r}")

        threshold = self._settings.confidence_threshold
        if threshold is None:
            threshold = profile.confidence
        else:
            profile = profile.with_threshold(threshold)

        self._store.load(profile.pattern, threshold, profile.id)
        self._profile = profile
        logger.info(f"📥 Loaded keyword profile '{profile.keyword}' (threshold {threshold:.2f})")

    async def load_profile_from(self, provider: ProfileProvider, profile_id: str) -> None:
        """Fetch a profile from a provider and load it."""
        profile = await provider.get_profile(profile_id)
        self.load_profile(profile)

    def set_threshold(self, threshold: float) -> None:
        """
        Update the detection threshold.

        Raises:
            OutOfRangeError: If threshold is outside [0.0, 1.0]
        """
        self._store.set_threshold(threshold)
        if self._profile is not None:
            self._profile = self._profile.with_threshold(threshold)
        logger.debug(f"Confidence threshold set to {threshold:.2f}")

    # Lifecycle

    async def start(self) -> None:
        """
        Open the capture stream and begin ingesting and matching.

        Does nothing if already listening.

        Raises:
            NoProfileLoadedError: If no reference pattern is loaded
            PermissionDeniedError: If microphone access is not granted
            CaptureFailureError: If the capture stream cannot be opened
        """
        async with self._lifecycle_lock:
            if self._state is EngineState.LISTENING:
                logger.debug("Engine is already listening")
                return

            if not self._store.is_loaded:
                raise NoProfileLoadedError("No keyword profile loaded. Train a keyword first.")

            if not await self._permissions.is_microphone_granted():
                raise PermissionDeniedError("Microphone permission not granted")

            try:
                stream = await self._capture.start_capture(
                    self._settings.sample_rate, self._settings.channels
                )
            except KeywordDetectionError:
                raise
            except Exception as e:
                logger.error(f"❌ Failed to open capture stream: {e}")
                raise CaptureFailureError(f"Failed to open capture stream: {e}") from e

            self._reset_buffers()
            self._state = EngineState.LISTENING
            self._session.reset()
            self._session.state = (
                SessionState.BACKGROUND_LISTENING if self._background else SessionState.LISTENING
            )
            self._session.started_at = datetime.now()

            self._ingest_task = asyncio.create_task(
                self._ingest_loop(stream), name="keyword-ingest"
            )
            self._start_tick_task()

            logger.info(f"🎤 Listening for keyword (tick every {self.tick_interval * 1000:.0f}ms)")

    async def stop(self, reason: StopReason = StopReason.REQUESTED) -> None:
        """
        Stop listening.

        Cancels the tick and ingest tasks, closes the capture stream and
        clears all buffered state before returning. Does nothing if idle.

        Args:
            reason: Why listening stops; carried by the terminal event

        Raises:
            CaptureFailureError: If the capture stream failed to close
        """
        async with self._lifecycle_lock:
            await self._shutdown(reason)

    async def dispose(self) -> None:
        """Stop listening and forget the loaded pattern."""
        await self.stop(StopReason.DISPOSED)
        self._store.clear()
        self._profile = None
        self._background = False
        self._session.reset()

    def add_stop_listener(self, listener: Callable[[StopReason], None]) -> None:
        """
        Register a callback run with the stop reason whenever a session ends.

        Listeners run on the event loop after the terminal event is published,
        whatever ended the session.
        """
        self._stop_listeners.append(listener)

    def remove_stop_listener(self, listener: Callable[[StopReason], None]) -> None:
        if listener in self._stop_listeners:
            self._stop_listeners.remove(listener)

    async def _shutdown(self, reason: StopReason, error: str | None = None) -> None:
        if self._state is EngineState.IDLE:
            return

        self._state = EngineState.IDLE
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._tick_task, self._ingest_task)
            if task is not None and task is not current
        ]
        self._tick_task = None
        self._ingest_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        close_error: Exception | None = None
        try:
            await self._capture.stop_capture()
        except Exception as e:
            logger.error(f"❌ Error stopping capture: {e}")
            close_error = e

        # The pending reset goes out now rather than after the debounce delay,
        # so it still precedes the terminal event and the next session's events.
        self._flush_pending_reset()
        self._reset_buffers()
        self._background = False
        self._session.reset()

        ended = SessionEndedEvent(reason=reason, error=error)
        self.confidence_channel.publish(ended)
        self.detection_channel.publish(ended)

        if reason.is_fault:
            logger.error(f"❌ Keyword listening failed: {error}")
        else:
            logger.info(f"🛑 Keyword listening stopped ({reason.value})")

        for listener in list(self._stop_listeners):
            try:
                listener(reason)
            except Exception as e:
                logger.error(f"❌ Stop listener failed: {e}")

        if close_error is not None and not reason.is_fault:
            raise CaptureFailureError(f"Failed to stop capture: {close_error}") from close_error

    async def _fail(self, message: str) -> None:
        async with self._lifecycle_lock:
            await self._shutdown(StopReason.CAPTURE_FAILURE, error=message)

    def _reset_buffers(self) -> None:
        self._window.clear()
        self._analyzer.reset()
        self._silent_samples = 0

    # Ingestion

    async def _ingest_loop(self, stream: AsyncIterator[float]) -> None:
        try:
            async for decibels in stream:
                self.ingest_decibels(decibels)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Capture stream failed: {e}")
            await self._fail(f"Capture stream failed: {e}")
            return

        if self._state is EngineState.LISTENING:
            await self._fail("Capture stream ended unexpectedly")

    def ingest_decibels(self, decibels: float) -> QualitySnapshot:
        """Normalise a dB reading and ingest it."""
        return self.ingest_level(normalize_decibels(decibels))

    def ingest_level(self, level: float) -> QualitySnapshot:
        """
        Ingest one normalised level.

        The window is cleared after more than ``max_silent_samples``
        consecutive non-speech readings so that stale noise never becomes
        part of a later match.

        Args:
            level: Normalised level in [0.0, 1.0]

        Returns:
            The analyzer snapshot for this level
        """
        snapshot = self._analyzer.analyze(level)
        self._window.append(level)
        self._samples_ingested += 1

        if snapshot.is_speech_detected:
            self._silent_samples = 0
        else:
            self._silent_samples += 1
            if self._silent_samples > self._settings.max_silent_samples:
                logger.trace(
                    f"Clearing window after {self._silent_samples} non-speech samples"
                )
                self._window.clear()
                self._silent_samples = 0

        return snapshot

    # Matching

    def _start_tick_task(self) -> None:
        self._tick_task = asyncio.create_task(
            self._tick_loop(self.tick_interval), name="keyword-tick"
        )

    async def _tick_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick()
            except Exception as e:
                logger.error(f"❌ Pattern matching tick failed: {e}")

    def tick(self) -> MatchResult | None:
        """
        Run one matching step.

        Returns:
            None when the window is shorter than the pattern, a zero result
            when no speech is present, otherwise the match against the
            most recent window
        """
        stored = self._store.current
        if stored is None or len(self._window) < len(stored.pattern):
            return None

        self._ticks += 1
        snapshot = self._analyzer.current_snapshot
        if snapshot is None or not snapshot.is_speech_detected:
            self.confidence_channel.publish(ConfidenceEvent(confidence=0.0))
            return MatchResult(confidence=0.0)

        window = self._window.latest(len(stored.pattern))
        result = self._matcher.match(window, stored.reference)
        self.confidence_channel.publish(
            ConfidenceEvent(confidence=result.confidence, match=result)
        )

        if result.confidence >= stored.threshold and self._reset_handle is None:
            self._publish_detection()

        return result

    def _publish_detection(self) -> None:
        self._session.detection_count += 1
        self.detection_channel.publish(DetectionEvent(detected=True))
        logger.info(f"🗣️ Keyword detected (detection #{self._session.detection_count})")

        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self._settings.debounce_delay, self._publish_reset)

    def _publish_reset(self) -> None:
        self._reset_handle = None
        self.detection_channel.publish(DetectionEvent(detected=False))

    def _flush_pending_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._publish_reset()

    # Power and background configuration

    def set_low_power_mode(self, enabled: bool) -> None:
        """
        Switch between the normal and low-power tick cadence.

        Takes effect immediately on a running engine without touching the
        capture stream.
        """
        if enabled == self._low_power:
            return
        self._low_power = enabled
        logger.info(
            f"🔋 {'Low-power' if enabled else 'Normal'} matching cadence "
            f"({self.tick_interval * 1000:.0f}ms)"
        )
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._start_tick_task()

    def set_background_mode(self, enabled: bool) -> None:
        """Mark the current session as running in the background."""
        self._background = enabled
        if self._state is EngineState.LISTENING:
            self._session.state = (
                SessionState.BACKGROUND_LISTENING if enabled else SessionState.LISTENING
            )

    # Accessors

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state is EngineState.LISTENING

    @property
    def is_background_listening(self) -> bool:
        return self.is_listening and self._background

    @property
    def is_low_power_mode(self) -> bool:
        return self._low_power

    @property
    def tick_interval(self) -> float:
        """Current seconds between matching ticks."""
        if self._low_power:
            return self._settings.low_power_tick_interval
        return self._settings.tick_interval

    @property
    def threshold(self) -> float | None:
        stored = self._store.current
        return stored.threshold if stored else None

    @property
    def current_profile(self) -> KeywordProfile | None:
        return self._profile

    @property
    def has_pattern(self) -> bool:
        return self._store.is_loaded

    @property
    def latest_snapshot(self) -> QualitySnapshot | None:
        return self._analyzer.current_snapshot

    @property
    def session(self) -> ListeningSession:
        return self._session

    def buffered_levels(self) -> list[float]:
        """Copy of the sliding window contents, oldest first."""
        return self._window.to_list()

    def get_stats(self) -> dict[str, Any]:
        """Listening statistics for diagnostics."""
        started_at = self._session.started_at
        duration = (datetime.now() - started_at).total_seconds() if started_at else None
        return {
            "state": self._session.state.value,
            "is_listening": self.is_listening,
            "is_background_listening": self.is_background_listening,
            "listening_start_time": started_at.isoformat() if started_at else None,
            "listening_duration": duration,
            "detection_count": self._session.detection_count,
            "samples_ingested": self._samples_ingested,
            "ticks": self._ticks,
            "low_power_mode": self._low_power,
            "tick_interval": self.tick_interval,
            "threshold": self.threshold,
        }
