"""Background listening module with battery and power-save policy."""

from .config import BackgroundSettings, load_background_settings
from .controller import BackgroundListeningController
from .exceptions import (
    BackgroundListeningError,
    BatteryTooLowError,
    PowerStateUnavailableError,
)
from .interfaces import PowerOracle
from .models import LifecycleNotification, NotificationKind
from .power import PsutilPowerOracle

__all__ = [
    "BackgroundListeningController",
    "BackgroundSettings",
    "load_background_settings",
    "PowerOracle",
    "PsutilPowerOracle",
    "LifecycleNotification",
    "NotificationKind",
    "BackgroundListeningError",
    "BatteryTooLowError",
    "PowerStateUnavailableError",
]
