"""Abstract interfaces for background listening."""

from abc import ABC, abstractmethod


class PowerOracle(ABC):
    """Reports battery and power-save state of the host."""

    @abstractmethod
    async def battery_level_percent(self) -> int:
        """
        Current battery charge.

        Returns:
            Battery level in percent (0-100)

        Raises:
            PowerStateUnavailableError: If the level cannot be read
        """
        pass

    @abstractmethod
    async def is_power_save_likely(self) -> bool:
        """
        Whether the host is probably trying to save power.

        Raises:
            PowerStateUnavailableError: If the power state cannot be read
        """
        pass
