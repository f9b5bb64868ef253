"""Data models for background listening."""

import time
from dataclasses import dataclass, field
from enum import Enum


class NotificationKind(str, Enum):
    """Kind of lifecycle notification published by the controller."""

    LOW_BATTERY = "low_battery"
    MAX_DURATION_REACHED = "max_duration_reached"
    POWER_SAVE_CHANGED = "power_save_changed"


@dataclass(frozen=True)
class LifecycleNotification:
    """Informational event about a policy decision of the controller."""

    kind: NotificationKind
    message: str
    battery_level: int | None = None
    power_save: bool | None = None
    timestamp: float = field(default_factory=time.monotonic)
