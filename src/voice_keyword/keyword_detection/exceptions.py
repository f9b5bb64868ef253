"""Custom exceptions for keyword detection functionality."""


class KeywordDetectionError(Exception):
    """Base exception for keyword detection errors."""

    pass


class InvalidProfileError(KeywordDetectionError):
    """Exception raised for an empty reference pattern or an invalid threshold."""

    pass


class NoProfileLoadedError(KeywordDetectionError):
    """Exception raised when listening is requested before a pattern is loaded."""

    pass


class PermissionDeniedError(KeywordDetectionError):
    """Exception raised when microphone access has not been granted."""

    pass


class CaptureFailureError(KeywordDetectionError):
    """Exception raised when the capture stream fails to open or deliver."""

    pass


class OutOfRangeError(KeywordDetectionError, ValueError):
    """Exception raised when a threshold or duration setting violates its bounds."""

    pass
