from __future__ import annotations

from typing import List


class PayloadLogger:
    """Captures channel-tagged diagnostics written while payloads are built."""

    def __init__(self) -> None:
        self._entries: List[str] = []

    def log(self, channel: str, message: str) -> None:
        self._entries.append(f"> [{channel}] {message}")

    def error(self, channel: str, message: str) -> None:
        self._entries.append(f"> [{channel}] ERROR {message}")

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> List[str]:
        return list(self._entries)
