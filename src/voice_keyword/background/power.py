"""Battery and power state from the host operating system."""

import asyncio

import psutil

from ..keyword_detection.logging_utils import get_logger
from .exceptions import PowerStateUnavailableError
from .interfaces import PowerOracle

logger = get_logger(__name__)


class PsutilPowerOracle(PowerOracle):
    """
    Power oracle backed by ``psutil.sensors_battery``.

    Hosts without a battery are treated as running on mains power: full
    charge and no power saving.
    """

    async def battery_level_percent(self) -> int:
        battery = await self._read_battery()
        if battery is None:
            return 100
        return int(round(battery.percent))

    async def is_power_save_likely(self) -> bool:
        battery = await self._read_battery()
        if battery is None:
            return False
        # Unknown plug state counts as discharging
        return battery.power_plugged is not True

    async def _read_battery(self):
        try:
            battery = await asyncio.to_thread(psutil.sensors_battery)
        except (AttributeError, NotImplementedError, OSError, RuntimeError) as e:
            logger.warning(f"⚠️ Could not read battery state: {e}")
            raise PowerStateUnavailableError(f"Battery state unavailable: {e}") from e

        if battery is None:
            logger.trace("No battery detected, assuming mains power")
        return battery
