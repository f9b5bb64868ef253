"""Keyword detection module for continuous keyword spotting."""

from .channels import EventChannel
from .config import DetectorSettings, load_detector_settings
from .engine import KeywordSpottingEngine
from .exceptions import (
    CaptureFailureError,
    InvalidProfileError,
    KeywordDetectionError,
    NoProfileLoadedError,
    OutOfRangeError,
    PermissionDeniedError,
)
from .interfaces import CaptureSource, PermissionOracle, ProfileProvider
from .models import (
    ConfidenceEvent,
    DetectionEvent,
    KeywordProfile,
    MatchResult,
    QualitySnapshot,
    ReferencePattern,
    SessionEndedEvent,
    StopReason,
)
from .pattern_matcher import PatternMatcher
from .quality_analyzer import AudioQualityAnalyzer
from .training import KeywordTrainer, extract_reference_pattern, validate_keyword

__all__ = [
    "KeywordSpottingEngine",
    "AudioQualityAnalyzer",
    "PatternMatcher",
    "KeywordTrainer",
    "extract_reference_pattern",
    "validate_keyword",
    "EventChannel",
    "DetectorSettings",
    "load_detector_settings",
    "CaptureSource",
    "PermissionOracle",
    "ProfileProvider",
    "KeywordProfile",
    "ReferencePattern",
    "QualitySnapshot",
    "MatchResult",
    "ConfidenceEvent",
    "DetectionEvent",
    "SessionEndedEvent",
    "StopReason",
    "KeywordDetectionError",
    "InvalidProfileError",
    "NoProfileLoadedError",
    "PermissionDeniedError",
    "CaptureFailureError",
    "OutOfRangeError",
]
