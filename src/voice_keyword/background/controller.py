"""Power-aware lifecycle control for background keyword listening."""

import asyncio
from datetime import datetime
from typing import Any

from ..keyword_detection.channels import EventChannel
from ..keyword_detection.engine import KeywordSpottingEngine
from ..keyword_detection.exceptions import KeywordDetectionError
from ..keyword_detection.logging_utils import get_logger
from ..keyword_detection.models import StopReason
from .config import BackgroundSettings
from .exceptions import BackgroundListeningError, BatteryTooLowError, PowerStateUnavailableError
from .interfaces import PowerOracle
from .models import LifecycleNotification, NotificationKind

logger = get_logger(__name__)


class BackgroundListeningController:
    """
    Runs the keyword spotting engine as a long-lived background session.

    Starting is refused on a low battery. While active, the controller polls
    battery and power-save state on independent timers, force-stops the
    engine when the battery drops below the cutoff or the maximum session
    duration is reached, and switches the engine to the low-power matching
    cadence while the host is saving power. Policy decisions are published
    as LifecycleNotification events on ``notifications``.
    """

    def __init__(
        self,
        engine: KeywordSpottingEngine,
        power_oracle: PowerOracle,
        settings: BackgroundSettings | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            engine: Engine to start and stop
            power_oracle: Source of battery and power-save state
            settings: Background options (defaults if None)
        """
        self._engine = engine
        self._power = power_oracle
        self._settings = settings or BackgroundSettings()

        self.notifications: EventChannel[LifecycleNotification] = EventChannel("notifications")

        self._active = False
        self._started_at: datetime | None = None
        self._battery_level: int | None = None
        self._power_save = False
        self._engine_low_power_before = False
        self._background_task_executions = 0
        self._timers: list[asyncio.Task] = []
        self._lock = asyncio.Lock()

        self._engine.add_stop_listener(self._on_engine_stopped)

    @property
    def battery_level(self) -> int | None:
        """Last battery level read, or None if it has never been read."""
        return self._battery_level

    @property
    def is_power_save(self) -> bool:
        return self._power_save

    @property
    def is_background_listening(self) -> bool:
        return self._active and self._engine.is_listening

    @property
    def settings(self) -> BackgroundSettings:
        return self._settings

    async def start_background_listening(self) -> None:
        """
        Start listening in the background.

        Does nothing if background listening is already active. An unreadable
        battery level does not block the start.

        Raises:
            BatteryTooLowError: If the battery is below the cutoff
            KeywordDetectionError: If the engine fails to start
        """
        async with self._lock:
            if self._active:
                logger.debug("Background listening already active")
                return

            level = await self._read_battery_level()
            if level is not None and level < self._settings.battery_low_threshold:
                logger.warning(f"🪫 Refusing background listening at {level}% battery")
                raise BatteryTooLowError(
                    f"Battery level too low for background listening: {level}%"
                )

            if not self._engine.is_listening:
                await self._engine.start()
            self._engine.set_background_mode(True)
            self._engine_low_power_before = self._engine.is_low_power_mode

            self._active = True
            self._started_at = datetime.now()
            self._background_task_executions = 0

            await self.check_power_save_mode()
            if not self._active:
                raise BackgroundListeningError("Engine stopped during background start")

            self._timers = [
                asyncio.create_task(self._max_duration_timer(), name="background-max-duration"),
                asyncio.create_task(
                    self._poll(self._settings.battery_check_interval, self.check_battery_level),
                    name="background-battery-poll",
                ),
                asyncio.create_task(
                    self._poll(self._settings.power_save_check_interval, self.check_power_save_mode),
                    name="background-power-poll",
                ),
            ]
            logger.info(
                f"🌙 Background listening started "
                f"(max {self._settings.max_duration / 3600:.1f}h, battery {level}%)"
            )

    async def stop_background_listening(self, reason: StopReason = StopReason.REQUESTED) -> None:
        """
        Stop background listening and its timers.

        Does nothing if background listening is not active.

        Args:
            reason: Why listening stops; forwarded to the engine

        Raises:
            CaptureFailureError: If the engine fails to close the capture stream
        """
        async with self._lock:
            if not self._active:
                return

            timers = self._end_session()
            await asyncio.gather(*timers, return_exceptions=True)

            try:
                await self._engine.stop(reason)
            finally:
                self._restore_engine()

            logger.info(f"☀️ Background listening stopped ({reason.value})")

    async def check_battery_level(self) -> int | None:
        """
        Read the battery level and stop listening if it is below the cutoff.

        Never raises; failures are logged.

        Returns:
            The battery level, or None if it could not be read
        """
        level = await self._read_battery_level()
        if level is None:
            return None

        if self._active and level < self._settings.battery_low_threshold:
            logger.warning(f"🪫 Battery at {level}%, stopping background listening")
            try:
                await self.stop_background_listening(StopReason.LOW_BATTERY)
            except KeywordDetectionError as e:
                logger.error(f"❌ Error stopping after low battery: {e}")
            self.notifications.publish(
                LifecycleNotification(
                    kind=NotificationKind.LOW_BATTERY,
                    message=f"Background listening stopped due to low battery: {level}%",
                    battery_level=level,
                    power_save=self._power_save,
                )
            )
        return level

    async def check_power_save_mode(self) -> bool:
        """
        Re-evaluate power-save state and adjust the engine cadence.

        Power saving is assumed below the power-save battery threshold, when
        the oracle reports it likely, or when the state cannot be read.

        Returns:
            True if the host is treated as saving power
        """
        self._background_task_executions += 1
        self._engine.session.background_task_executions += 1

        try:
            level = await self._power.battery_level_percent()
            likely = await self._power.is_power_save_likely()
            self._battery_level = level
            power_save = level < self._settings.power_save_battery_threshold or likely
        except PowerStateUnavailableError as e:
            logger.warning(f"⚠️ Power state unavailable, assuming power save: {e}")
            power_save = True
        except Exception as e:
            logger.error(f"❌ Power state query failed, assuming power save: {e}")
            power_save = True

        changed = power_save != self._power_save
        self._power_save = power_save

        if self._active:
            self._engine.set_low_power_mode(power_save or self._settings.low_power_mode)

        if changed:
            logger.info(f"🔋 Power save {'enabled' if power_save else 'disabled'}")
            self.notifications.publish(
                LifecycleNotification(
                    kind=NotificationKind.POWER_SAVE_CHANGED,
                    message=f"Power save mode {'enabled' if power_save else 'disabled'}",
                    battery_level=self._battery_level,
                    power_save=power_save,
                )
            )
        return power_save

    def configure(self, settings: BackgroundSettings) -> None:
        """
        Replace the background settings.

        The low-power flag applies immediately; durations and poll intervals
        take effect on the next start.
        """
        self._settings = settings
        if self._active:
            self._engine.set_low_power_mode(self._power_save or settings.low_power_mode)
        logger.debug(f"Background settings updated: {settings}")

    def get_background_listening_stats(self) -> dict[str, Any]:
        """Background listening statistics for diagnostics."""
        started_at = self._started_at
        duration = int((datetime.now() - started_at).total_seconds()) if started_at else None
        return {
            "is_listening": self.is_background_listening,
            "listening_start_time": started_at.isoformat() if started_at else None,
            "listening_duration": duration,
            "keyword_detection_count": self._engine.session.detection_count,
            "background_task_executions": self._background_task_executions,
            "battery_level": self._battery_level,
            "power_save_mode": self._power_save,
            "low_power_mode": self._engine.is_low_power_mode,
        }

    async def dispose(self) -> None:
        """Stop background listening and detach from the engine."""
        try:
            await self.stop_background_listening(StopReason.DISPOSED)
        finally:
            self._engine.remove_stop_listener(self._on_engine_stopped)

    async def _read_battery_level(self) -> int | None:
        try:
            level = await self._power.battery_level_percent()
        except PowerStateUnavailableError as e:
            logger.warning(f"⚠️ Could not read battery level: {e}")
            return None
        except Exception as e:
            logger.error(f"❌ Battery level query failed: {e}")
            return None
        self._battery_level = level
        return level

    def _end_session(self) -> list[asyncio.Task]:
        """Mark the session inactive and cancel its timers; returns them for awaiting."""
        self._active = False
        self._started_at = None
        current = asyncio.current_task()
        timers = [task for task in self._timers if task is not current]
        self._timers = []
        for task in timers:
            task.cancel()
        return timers

    def _restore_engine(self) -> None:
        self._engine.set_background_mode(False)
        self._engine.set_low_power_mode(self._engine_low_power_before)

    def _on_engine_stopped(self, reason: StopReason) -> None:
        if not self._active:
            return
        logger.warning(f"⚠️ Engine stopped outside background control ({reason.value})")
        self._end_session()
        self._restore_engine()

    async def _poll(self, interval: float, check) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await check()
            except Exception as e:
                logger.error(f"❌ Background power check failed: {e}")

    async def _max_duration_timer(self) -> None:
        await asyncio.sleep(self._settings.max_duration)
        logger.info("⏰ Maximum background listening duration reached")
        try:
            await self.stop_background_listening(StopReason.MAX_DURATION)
        except KeywordDetectionError as e:
            logger.error(f"❌ Error stopping after max duration: {e}")
        self.notifications.publish(
            LifecycleNotification(
                kind=NotificationKind.MAX_DURATION_REACHED,
                message="Background listening stopped after reaching its maximum duration",
                battery_level=self._battery_level,
                power_save=self._power_save,
            )
        )
