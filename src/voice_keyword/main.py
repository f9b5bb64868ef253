"""Command-line interface for keyword spotting."""

import argparse
import asyncio
import logging
import sys

from .background.config import BackgroundSettings, load_background_settings
from .background.controller import BackgroundListeningController
from .background.exceptions import BackgroundListeningError
from .background.models import LifecycleNotification
from .background.power import PsutilPowerOracle
from .keyword_detection.audio_capture import DevicePermissionOracle, PyAudioCaptureSource
from .keyword_detection.config import DetectorSettings, load_detector_settings
from .keyword_detection.engine import KeywordSpottingEngine
from .keyword_detection.exceptions import KeywordDetectionError
from .keyword_detection.logging_utils import configure_logging
from .keyword_detection.models import (
    ConfidenceEvent,
    DetectionEvent,
    KeywordProfile,
    SessionEndedEvent,
)
from .keyword_detection.training import KeywordTrainer


class KeywordSpotterCLI:
    """Command-line front end that prints confidence and detections."""

    def __init__(
        self,
        engine: KeywordSpottingEngine,
        controller: BackgroundListeningController | None = None,
        show_confidence: bool = False,
    ) -> None:
        """
        Initialize the CLI.

        Args:
            engine: Engine with a keyword profile already loaded
            controller: Background controller; listening runs in the foreground if None
            show_confidence: Whether to print every confidence value
        """
        self._engine = engine
        self._controller = controller
        self._show_confidence = show_confidence
        self._running = False
        self._started = False
        self._detection_count = 0
        self._consumers: list[asyncio.Task] = []

    async def start_listening(self) -> None:
        """Start the engine, in the background when a controller is configured."""
        print("🎤 Starting keyword spotting...")
        if self._controller is not None:
            await self._controller.start_background_listening()
        else:
            await self._engine.start()

        self._started = True
        self._running = True
        self._consumers = [
            asyncio.create_task(self._consume_confidence()),
            asyncio.create_task(self._consume_detections()),
        ]
        if self._controller is not None:
            self._consumers.append(asyncio.create_task(self._consume_notifications()))

        profile = self._engine.current_profile
        keyword = profile.keyword if profile else "keyword"
        print(f"✅ Listening for '{keyword}'. Press Ctrl+C to stop.")

    async def stop_listening(self) -> None:
        """Stop listening and the event consumers."""
        if not self._started:
            return

        print("🛑 Stopping keyword spotting...")
        self._started = False
        self._running = False
        if self._controller is not None:
            await self._controller.stop_background_listening()
        await self._engine.stop()

        for task in self._consumers:
            task.cancel()
        await asyncio.gather(*self._consumers, return_exceptions=True)
        self._consumers = []

    async def _consume_confidence(self) -> None:
        async for event in self._engine.confidence_channel:
            if isinstance(event, SessionEndedEvent):
                continue
            if self._show_confidence and isinstance(event, ConfidenceEvent):
                print(f"   confidence: {event.confidence:.2f}")

    async def _consume_detections(self) -> None:
        async for event in self._engine.detection_channel:
            if isinstance(event, SessionEndedEvent):
                if event.is_fault:
                    print(f"❌ Listening failed: {event.error}")
                else:
                    print(f"ℹ️ Listening ended ({event.reason.value})")
                self._running = False
                return
            if isinstance(event, DetectionEvent) and event.detected:
                self._detection_count += 1
                print(f"[{self._detection_count}] 🗣️ Keyword detected!")

    async def _consume_notifications(self) -> None:
        async for notification in self._controller.notifications:
            self._print_notification(notification)

    @staticmethod
    def _print_notification(notification: LifecycleNotification) -> None:
        print(f"🔔 {notification.message}")

    async def run(self) -> None:
        """
        Main CLI run loop.

        Handles startup, main loop, and graceful shutdown.
        """
        try:
            await self.start_listening()

            while self._running:
                await asyncio.sleep(0.1)

        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\n👋 Goodbye!")
        except (KeywordDetectionError, BackgroundListeningError) as e:
            print(f"❌ Error starting keyword spotting: {e}")
        finally:
            await self.stop_listening()


def build_engine(
    profile: KeywordProfile,
    detector_settings: DetectorSettings | None = None,
    low_power: bool = False,
) -> KeywordSpottingEngine:
    """Create a microphone-backed engine with the profile loaded."""
    settings = detector_settings or DetectorSettings()
    if low_power:
        settings.low_power_mode = True

    engine = KeywordSpottingEngine(
        capture_source=PyAudioCaptureSource(),
        permission_oracle=DevicePermissionOracle(),
        settings=settings,
    )
    engine.load_profile(profile)
    return engine


async def main(args: argparse.Namespace) -> None:
    """Main entry point for the listen command."""
    detector_settings = DetectorSettings()
    background_settings = BackgroundSettings()
    if args.settings:
        detector_settings = load_detector_settings(args.settings)
        background_settings = load_background_settings(args.settings)
    if args.max_duration is not None:
        background_settings.max_duration = args.max_duration
        background_settings.validate()

    trainer = KeywordTrainer()
    profile = trainer.train_from_file(args.keyword, args.audio, threshold=args.threshold)
    engine = build_engine(profile, detector_settings, low_power=args.low_power)

    controller = None
    if args.background:
        controller = BackgroundListeningController(
            engine, PsutilPowerOracle(), background_settings
        )

    cli = KeywordSpotterCLI(engine, controller, show_confidence=args.show_confidence)
    try:
        await cli.run()
    finally:
        await engine.dispose()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="voice-keyword",
        description="Keyword Spotter CLI - Listen for a trained keyword on the microphone",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voice-keyword train "hey there" hey_there.wav       # Show the extracted pattern
  voice-keyword listen hey_there.wav -k "hey there"   # Listen in the foreground
  voice-keyword listen hey_there.wav -k "hey there" --threshold 0.8
  voice-keyword listen hey_there.wav -k "hey there" --background --max-duration 3600
  voice-keyword --verbose listen hey_there.wav -k "hey there" --settings keyword.toml

Controls:
  Ctrl+C    - Stop and exit gracefully
        """,
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging and debug information",
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes per-tick scores)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser("train", help="Extract a reference pattern from a recording")
    train.add_argument("keyword", help="Keyword text")
    train.add_argument("audio", help="Path to a recording of the keyword")
    train.add_argument(
        "--threshold",
        type=float,
        default=None,
        metavar="T",
        help="Confidence threshold between 0.0 and 1.0 (default: 0.7)",
    )

    listen = subparsers.add_parser("listen", help="Listen for a keyword on the microphone")
    listen.add_argument("audio", help="Path to a recording of the keyword")
    listen.add_argument("--keyword", "-k", required=True, help="Keyword text")
    listen.add_argument(
        "--threshold",
        type=float,
        default=None,
        metavar="T",
        help="Confidence threshold between 0.0 and 1.0 (default: 0.7)",
    )
    listen.add_argument(
        "--background",
        action="store_true",
        help="Run under the battery-aware background controller",
    )
    listen.add_argument(
        "--low-power",
        action="store_true",
        help="Match every 500ms instead of every 100ms",
    )
    listen.add_argument(
        "--max-duration",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Stop background listening after this many seconds (default: 8 hours)",
    )
    listen.add_argument(
        "--settings",
        type=str,
        default=None,
        metavar="PATH",
        help="TOML file with [detector] and [background] tables",
    )
    listen.add_argument(
        "--show-confidence",
        action="store_true",
        help="Print the confidence computed on every matching tick",
    )

    return parser


def train_keyword(args: argparse.Namespace) -> bool:
    """
    Train a keyword and print a summary of its pattern.

    Returns:
        True if training succeeded, False otherwise
    """
    try:
        profile = KeywordTrainer().train_from_file(args.keyword, args.audio, threshold=args.threshold)
    except KeywordDetectionError as e:
        print(f"❌ Training failed: {e}")
        return False

    values = profile.pattern.values
    print(f"✅ Trained '{profile.keyword}' (profile {profile.id})")
    print(f"   Pattern length: {len(values)}")
    print(f"   Range: {min(values):.3f} - {max(values):.3f}")
    print(f"   Threshold: {profile.confidence:.2f}{'' if profile.is_reliable else ' (unreliable)'}")
    return True


def handle_arguments(args: argparse.Namespace) -> tuple[bool, bool]:
    """
    Handle parsed command-line arguments.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Tuple of (success, should_continue):
        - success: True if all operations succeeded, False if any failed
        - should_continue: True if listening should start, False if it should stop
    """
    configure_logging(verbose=args.verbose, trace=args.trace)

    threshold = getattr(args, "threshold", None)
    if threshold is not None and not 0.0 <= threshold <= 1.0:
        print("❌ Threshold must be between 0.0 and 1.0")
        return False, False

    if args.command == "train":
        return train_keyword(args), False

    if args.max_duration is not None and args.max_duration <= 0:
        print("❌ Max duration must be positive")
        return False, False

    return True, True


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()

    try:
        args = parser.parse_args()

        success, should_continue = handle_arguments(args)

        if not success:
            sys.exit(1)

        if not should_continue:
            sys.exit(0)

        asyncio.run(main(args))

    except KeyboardInterrupt:
        pass  # Graceful shutdown
    except SystemExit:
        raise
    except (KeywordDetectionError, OSError) as e:
        logging.error(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_with_args()
