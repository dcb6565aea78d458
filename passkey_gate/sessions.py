"""In-process store for ceremony state pending between begin and finish."""
from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

__all__ = [
    "CeremonyKey",
    "CeremonyPurpose",
    "CeremonySessionStore",
]


class CeremonyPurpose(str, Enum):
    REGISTER = "register"
    LOGIN = "login"


class CeremonyKey(NamedTuple):
    purpose: CeremonyPurpose
    name: str

    @classmethod
    def register(cls, name: str) -> "CeremonyKey":
        return cls(CeremonyPurpose.REGISTER, name)

    @classmethod
    def login(cls, name: str) -> "CeremonyKey":
        return cls(CeremonyPurpose.LOGIN, name)


class CeremonySessionStore:
    """Holds at most one pending ceremony state per (purpose, name) key.

    Every operation runs under a single lock so the map is never observed
    half-updated. A later ``put`` for the same key replaces the earlier
    state (last begin wins). ``take`` removes the entry it returns, so a
    given state can only be consumed once.

    When ``ttl`` is set, entries older than ``ttl`` seconds are treated as
    absent and dropped lazily. Without a ttl, entries live until taken or
    overwritten.
    """

    def __init__(
        self,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[CeremonyKey, Tuple[Any, float]] = {}

    @property
    def ttl(self) -> Optional[float]:
        return self._ttl

    def _expired(self, stored_at: float, now: float) -> bool:
        return self._ttl is not None and now - stored_at > self._ttl

    def put(self, key: CeremonyKey, state: Any) -> None:
        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            self._entries[key] = (state, now)

    def take(self, key: CeremonyKey) -> Tuple[Any, bool]:
        """Remove and return the state stored under ``key``.

        Returns ``(state, True)`` when a live entry existed, otherwise
        ``(None, False)``.
        """

        now = self._clock()
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return None, False
        state, stored_at = entry
        if self._expired(stored_at, now):
            return None, False
        return state, True

    def remove(self, key: CeremonyKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        if self._ttl is None:
            return 0
        expired = [k for k, (_, stored_at) in self._entries.items() if self._expired(stored_at, now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __contains__(self, key: object) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._expired(entry[1], now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
