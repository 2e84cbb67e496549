from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

DEFAULT_VENDOR = "com.snowplowanalytics"
DEFAULT_PLATFORM = "pc"
TRACKER_VERSION = "py-0.2.0"
ENCODE_BASE64 = "encode_base64"
COLLECTOR_PATH = "/i"


class EventKind(str, Enum):
    PAGE_VIEW = "pv"
    STRUCTURED = "se"
    UNSTRUCTURED = "ue"
    TRANSACTION_ITEM = "ti"
    TRANSACTION = "tr"

    @property
    def stamps_vendor(self) -> bool:
        return self is not EventKind.UNSTRUCTURED

    @property
    def display_label(self) -> str:
        return {
            EventKind.PAGE_VIEW: "page view",
            EventKind.STRUCTURED: "structured event",
            EventKind.UNSTRUCTURED: "unstructured event",
            EventKind.TRANSACTION_ITEM: "transaction item",
            EventKind.TRANSACTION: "transaction",
        }[self]


@dataclass
class TrackedPayload:
    kind: EventKind
    parameters: Dict[str, Optional[str]]
    query_string: str
    recorded_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)
    )
