"""Abstract interfaces for the platform collaborators the engine depends on."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from .models import KeywordProfile


class CaptureSource(ABC):
    """Microphone capture that delivers loudness readings in decibels."""

    @abstractmethod
    async def start_capture(self, sample_rate: int, channels: int) -> AsyncIterator[float]:
        """
        Open the capture stream.

        Args:
            sample_rate: Capture sample rate in Hz
            channels: Number of capture channels

        Returns:
            Async iterator of level readings in dB

        Raises:
            Exception: Any failure to open the stream; the engine reports it
                as a capture failure
        """
        pass

    @abstractmethod
    async def stop_capture(self) -> None:
        """
        Close the capture stream.

        No readings may be delivered once this returns.
        """
        pass


class PermissionOracle(ABC):
    """Answers whether microphone capture is permitted."""

    @abstractmethod
    async def is_microphone_granted(self) -> bool:
        """Return True if microphone access has been granted."""
        pass


class ProfileProvider(ABC):
    """Supplies trained keyword profiles by identifier."""

    @abstractmethod
    async def get_profile(self, profile_id: str) -> KeywordProfile:
        """
        Look up a keyword profile.

        Args:
            profile_id: Identifier of the profile

        Returns:
            The stored KeywordProfile

        Raises:
            InvalidProfileError: If no profile exists for the identifier
        """
        pass


class StaticPermissionOracle(PermissionOracle):
    """Permission oracle with a fixed answer, for hosts without a permission model."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    async def is_microphone_granted(self) -> bool:
        return self.granted
