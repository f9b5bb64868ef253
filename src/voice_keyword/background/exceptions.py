"""Custom exceptions for background listening functionality."""


class BackgroundListeningError(Exception):
    """Base exception for background listening errors."""

    pass


class BatteryTooLowError(BackgroundListeningError):
    """Exception raised when background listening is refused on low battery."""

    pass


class PowerStateUnavailableError(BackgroundListeningError):
    """Exception raised when battery or power state cannot be read."""

    pass
