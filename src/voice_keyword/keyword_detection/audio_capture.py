"""Microphone capture delivering loudness readings for keyword spotting."""

import asyncio
from collections.abc import AsyncIterator

import numpy as np
import pyaudio

from .config import CAPTURE_CHUNK_SIZE
from .exceptions import CaptureFailureError, PermissionDeniedError
from .interfaces import CaptureSource, PermissionOracle
from .logging_utils import get_logger

logger = get_logger(__name__)

SILENCE_DECIBELS = -120.0
INT16_FULL_SCALE = 32768.0


def chunk_to_decibels(data: bytes) -> float:
    """
    Convert a chunk of 16-bit PCM audio into an RMS level in dBFS.

    Args:
        data: Little-endian int16 samples

    Returns:
        Level in dB relative to full scale; SILENCE_DECIBELS for silence or
        an empty chunk
    """
    samples = np.frombuffer(data[: len(data) - len(data) % 2], dtype="<i2")
    if samples.size == 0:
        return SILENCE_DECIBELS

    rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2))) / INT16_FULL_SCALE
    if rms <= 0.0:
        return SILENCE_DECIBELS
    return max(20.0 * float(np.log10(rms)), SILENCE_DECIBELS)


class PyAudioCaptureSource(CaptureSource):
    """Reads the default microphone through PyAudio and yields dB levels."""

    def __init__(self, chunk_size: int = CAPTURE_CHUNK_SIZE, device_index: int | None = None) -> None:
        """
        Initialize the capture source.

        Args:
            chunk_size: Number of samples per level reading
            device_index: Input device to open (default device if None)
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size
        self.device_index = device_index
        self._pyaudio = None
        self._stream = None
        self._capturing = False
        self._pending_read: asyncio.Future | None = None
        self._chunks_read = 0

    async def start_capture(self, sample_rate: int, channels: int) -> AsyncIterator[float]:
        """
        Open the microphone stream.

        Raises:
            CaptureFailureError: If already capturing, no microphone is found
                or the stream cannot be opened
            PermissionDeniedError: If the operating system refuses access
        """
        if self._capturing:
            raise CaptureFailureError("Already capturing")

        try:
            self._pyaudio = pyaudio.PyAudio()
            logger.debug("PyAudio initialized successfully")

            if self.device_index is None:
                try:
                    device_info = self._pyaudio.get_default_input_device_info()
                    logger.debug(f"🎤 Default input device found: {device_info.get('name', 'Unknown')}")
                except OSError as e:
                    logger.error("❌ No default input device found")
                    raise CaptureFailureError("No microphone found") from e

            try:
                self._stream = self._pyaudio.open(
                    format=pyaudio.paInt16,
                    channels=channels,
                    rate=sample_rate,
                    input=True,
                    input_device_index=self.device_index,
                    frames_per_buffer=self.chunk_size,
                )
                self._stream.start_stream()
            except OSError as e:
                if "Permission denied" in str(e):
                    logger.error("❌ Microphone permission denied")
                    raise PermissionDeniedError("Microphone permission denied") from e
                logger.error(f"❌ Failed to open audio stream: {e}")
                raise CaptureFailureError(f"Failed to open audio stream: {e}") from e

        except Exception:
            self._release()
            raise

        self._capturing = True
        self._chunks_read = 0
        logger.debug(
            f"✅ Audio stream started (sample_rate: {sample_rate}, chunk_size: {self.chunk_size})"
        )
        return self._levels()

    async def _levels(self) -> AsyncIterator[float]:
        while self._capturing and self._stream is not None:
            stream = self._stream
            self._pending_read = asyncio.ensure_future(
                asyncio.to_thread(stream.read, self.chunk_size, exception_on_overflow=False)
            )
            # A cancelled consumer leaves the read pending for stop_capture to await
            try:
                data = await asyncio.shield(self._pending_read)
            except OSError as e:
                self._pending_read = None
                logger.error(f"❌ Failed to read audio from stream: {e}")
                raise CaptureFailureError(f"Failed to read audio: {e}") from e
            self._pending_read = None

            if not self._capturing:
                return

            self._chunks_read += 1
            decibels = chunk_to_decibels(data)
            logger.trace(f"🔊 Chunk {self._chunks_read}: {decibels:.1f} dB")
            yield decibels

    async def stop_capture(self) -> None:
        """Stop reading and release the stream once any in-flight read finishes."""
        if not self._capturing and self._stream is None:
            return

        self._capturing = False
        pending = self._pending_read
        if pending is not None:
            await asyncio.wait([pending])
            if not pending.cancelled():
                pending.exception()

        self._release()
        logger.debug(f"Audio stream closed after {self._chunks_read} chunks")

    def _release(self) -> None:
        if self._stream is not None:
            stream = self._stream
            self._stream = None
            if stream.is_active():
                stream.stop_stream()
            stream.close()
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None

    def is_capturing(self) -> bool:
        return self._capturing


class DevicePermissionOracle(PermissionOracle):
    """
    Treats microphone access as granted when an input device can be queried.

    Desktop hosts have no permission prompt; a missing or inaccessible
    default input device is the closest equivalent to a denial.
    """

    async def is_microphone_granted(self) -> bool:
        return await asyncio.to_thread(self._probe)

    @staticmethod
    def _probe() -> bool:
        audio = pyaudio.PyAudio()
        try:
            info = audio.get_default_input_device_info()
            return int(info.get("maxInputChannels", 0)) > 0
        except OSError as e:
            logger.warning(f"⚠️ No usable input device: {e}")
            return False
        finally:
            audio.terminate()
