"""In-memory session cache for upstream GO!Manage sessions.

One store per running app (created in ``create_app``); nothing is persisted.
A session is valid iff ``now < expires_at`` and ``now - last_used_at < idle_limit``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import SESSION_IDLE_SECONDS, SESSION_TTL_SECONDS

log = logging.getLogger("relay.sessions")


@dataclass
class Session:
    key: str
    token: str
    created_at: float
    expires_at: float
    last_used_at: float

    def is_valid(self, now: float, idle_limit: float) -> bool:
        return now < self.expires_at and (now - self.last_used_at) < idle_limit


class SessionStore:
    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        idle_seconds: float = SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def get(self, key: str) -> Optional[Session]:
        with self._lock:
            s = self._sessions.get(key)
            if s is None:
                return None
            if not s.is_valid(self._clock(), self.idle_seconds):
                del self._sessions[key]
                log.info("evicted stale session key=%s", key)
                return None
            return s

    def put(self, key: str, token: str, ttl: float | None = None) -> Session:
        now = self._clock()
        s = Session(
            key=key,
            token=token,
            created_at=now,
            expires_at=now + (self.ttl_seconds if ttl is None else ttl),
            last_used_at=now,
        )
        with self._lock:
            self._sessions[key] = s
            total = len(self._sessions)
        log.info("stored session key=%s total=%d", key, total)
        return s

    def touch(self, key: str) -> None:
        with self._lock:
            s = self._sessions.get(key)
            if s is not None:
                s.last_used_at = self._clock()

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._sessions.pop(key, None) is not None

    def remove_if(self, key: str, token: str) -> bool:
        """Remove ``key`` only while it still holds ``token``."""
        with self._lock:
            s = self._sessions.get(key)
            if s is None or s.token != token:
                return False
            del self._sessions[key]
            return True

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, s in self._sessions.items() if not s.is_valid(now, self.idle_seconds)]
            for k in stale:
                del self._sessions[k]
        if stale:
            log.info("swept %d expired sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
