"""Configuration constants for background listening."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..keyword_detection.config import known_options, read_settings_table
from ..keyword_detection.exceptions import OutOfRangeError

# Battery Policy
BATTERY_LOW_THRESHOLD = 15  # percent; background listening refused or stopped below this
POWER_SAVE_BATTERY_THRESHOLD = 20  # percent; power-save assumed below this

# Polling
BATTERY_CHECK_INTERVAL = 300.0  # seconds (5 minutes)
POWER_SAVE_CHECK_INTERVAL = 120.0  # seconds (2 minutes)

# Session Limits
MAX_BACKGROUND_DURATION = 8 * 60 * 60.0  # seconds (8 hours)


@dataclass
class BackgroundSettings:
    """Recognised background listening options."""

    low_power_mode: bool = False
    max_duration: float = MAX_BACKGROUND_DURATION
    battery_low_threshold: int = BATTERY_LOW_THRESHOLD
    power_save_battery_threshold: int = POWER_SAVE_BATTERY_THRESHOLD
    battery_check_interval: float = BATTERY_CHECK_INTERVAL
    power_save_check_interval: float = POWER_SAVE_CHECK_INTERVAL

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check every option against its bounds.

        Raises:
            OutOfRangeError: If any option is outside its valid range
        """
        if self.max_duration <= 0:
            raise OutOfRangeError("max_duration must be positive")
        for name in ("battery_low_threshold", "power_save_battery_threshold"):
            if not 0 <= getattr(self, name) <= 100:
                raise OutOfRangeError(f"{name} must be between 0 and 100")
        for name in ("battery_check_interval", "power_save_check_interval"):
            if getattr(self, name) <= 0:
                raise OutOfRangeError(f"{name} must be positive")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "BackgroundSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        return cls(**known_options(cls, data, "background"))


def load_background_settings(path: str | Path) -> BackgroundSettings:
    """Load BackgroundSettings from the [background] table of a TOML file."""
    return BackgroundSettings.from_mapping(read_settings_table(path, "background"))
