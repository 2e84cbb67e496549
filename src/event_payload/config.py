from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .builder import EventPayloadBuilder
from .models import COLLECTOR_PATH, DEFAULT_PLATFORM, ENCODE_BASE64, TRACKER_VERSION

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got '{raw}'")


@dataclass
class TrackerSettings:
    """Standard name/value pairs and flags stamped on every built payload."""

    namespace: Optional[str] = None
    app_id: Optional[str] = None
    platform: str = DEFAULT_PLATFORM
    tracker_version: str = TRACKER_VERSION
    encode_base64: bool = True
    collector_url: str = "http://localhost:8080"

    @classmethod
    def from_env(cls) -> "TrackerSettings":
        settings = cls()
        env_mapping = {
            "EVENT_PAYLOAD_NAMESPACE": "namespace",
            "EVENT_PAYLOAD_APP_ID": "app_id",
            "EVENT_PAYLOAD_PLATFORM": "platform",
            "EVENT_PAYLOAD_COLLECTOR_URL": "collector_url",
        }
        for env_var, attr in env_mapping.items():
            value = os.getenv(env_var)
            if value:
                setattr(settings, attr, value)
        raw_flag = os.getenv("EVENT_PAYLOAD_ENCODE_BASE64")
        if raw_flag:
            settings.encode_base64 = _parse_bool("EVENT_PAYLOAD_ENCODE_BASE64", raw_flag)
        return settings

    @property
    def endpoint(self) -> str:
        return f"{self.collector_url.rstrip('/')}{COLLECTOR_PATH}"

    def apply(self, builder: EventPayloadBuilder) -> EventPayloadBuilder:
        return builder.add_standard_nv_pairs(
            self.platform,
            self.tracker_version,
            self.namespace,
            self.app_id,
        ).add_config(ENCODE_BASE64, self.encode_base64)
