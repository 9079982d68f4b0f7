"""Small in-memory key/value cache with per-entry expiry.

Each client owns its own instance; nothing is shared at module level. The clock
is injectable so tests can move time forward without sleeping.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Key -> value store where every entry expires after a time-to-live."""

    def __init__(self, default_ttl: float, clock: Optional[Callable[[], float]] = None) -> None:
        self.default_ttl = default_ttl
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = (self._clock() + lifetime, value)

    def __contains__(self, key: str) -> bool:
        marker = object()
        return self.get(key, marker) is not marker

    def clear(self) -> None:
        self._entries.clear()
