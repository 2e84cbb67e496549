"""Analytics event payload builder for the GET collector wire format."""

from .builder import EventPayloadBuilder
from .config import TrackerSettings
from .errors import (
    EncodingError,
    KeyNotFoundError,
    MissingConfigError,
    SerializationError,
)
from .logger import PayloadLogger
from .models import DEFAULT_VENDOR, ENCODE_BASE64, EventKind, TrackedPayload
from .tracker import Tracker

__all__ = [
    "EventPayloadBuilder",
    "TrackerSettings",
    "Tracker",
    "PayloadLogger",
    "EncodingError",
    "KeyNotFoundError",
    "MissingConfigError",
    "SerializationError",
    "DEFAULT_VENDOR",
    "ENCODE_BASE64",
    "EventKind",
    "TrackedPayload",
]
