"""Short-lived codes for signing in a second device from an existing session."""
from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from opslink.core.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _Entry:
    value: object
    expires_at: float


class TTLStore(Generic[T]):
    """In-process key/value store whose entries expire after ``ttl`` seconds.

    Expired entries are invisible to readers immediately and are removed by
    :meth:`sweep`, which the scheduler runs periodically.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, self._clock() + self.ttl)

    def pop(self, key: str) -> T | None:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None or entry.expires_at <= self._clock():
                return None
            return entry.value  # type: ignore[return-value]

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)


_pairing_store: TTLStore[int] | None = None


def get_pairing_store() -> TTLStore[int]:
    global _pairing_store
    if _pairing_store is None:
        _pairing_store = TTLStore(get_settings().pairing_token_ttl_seconds)
    return _pairing_store


def create_pairing_code(user_id: int, store: TTLStore[int] | None = None) -> str:
    store = store or get_pairing_store()
    code = secrets.token_urlsafe(16)
    store.put(code, user_id)
    return code


def claim_pairing_code(code: str, store: TTLStore[int] | None = None) -> int | None:
    """Consume a code, returning the user id it was issued for."""

    store = store or get_pairing_store()
    return store.pop(code)


def sweep_pairing_codes() -> None:
    removed = get_pairing_store().sweep()
    if removed:
        logger.debug("Swept %d expired pairing code(s)", removed)
