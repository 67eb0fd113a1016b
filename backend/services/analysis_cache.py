"""
TTL cache for AI analysis results.

Entries are keyed by (user id, exact prompt, data fingerprint). Expired
entries are dropped when a lookup finds them, and in a full sweep whenever
a write pushes the map past the sweep threshold. This is not an LRU: there
is no hard size cap between sweeps.

Author: MoneyWise Team
"""

import json
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def fingerprint(data: Any) -> str:
    """
    Order-sensitive, non-cryptographic digest of a JSON-serializable payload.

    Folds the compact JSON text through a 32-bit h*31+c rolling hash. Payloads
    with the same content but different key or list order hash differently,
    and unrelated payloads may collide.
    """
    text = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


@dataclass
class CacheEntry:
    result: str
    created_at: float


class AnalysisCache:
    """In-process analysis result cache with lazy TTL eviction."""

    def __init__(
        self,
        ttl_seconds: float = 60 * 60,
        sweep_threshold: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    @staticmethod
    def make_key(user_id: str, prompt: str, data: Any) -> str:
        return f"{user_id}:{prompt}:{fingerprint(data)}"

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at >= self.ttl_seconds

    def get(self, user_id: str, prompt: str, data: Any) -> Optional[str]:
        """Return the cached result, or None if missing or expired."""
        key = self.make_key(user_id, prompt, data)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry.result

    def set(self, user_id: str, prompt: str, data: Any, result: str) -> None:
        """Store a result, overwriting any entry under the same key."""
        key = self.make_key(user_id, prompt, data)
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(result=result, created_at=now)
            if len(self._entries) > self.sweep_threshold:
                self._sweep(now)

    def _sweep(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
