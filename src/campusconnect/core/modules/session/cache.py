"""Process-local memo of successful token verifications.

Entries live for a few seconds so bursts of requests with the same token do
not each hit the account store. The store stays authoritative: sign-out and
supersession evict entries explicitly instead of waiting for the TTL.
Replicas do not share this cache, so another process may keep accepting a
revoked token for up to one TTL.
"""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from campusconnect.core.modules.session.models import CacheEntry, PrincipalKind
from campusconnect.utils import now


class VerificationCache:
    def __init__(
        self,
        ttl: timedelta,
        prune_interval: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] = now,
    ) -> None:
        self.ttl = ttl
        self._prune_interval = prune_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()
        # Bumped by every invalidation; fills that started before one are dropped
        self._generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, token: str, expected_kind: PrincipalKind | None = None, at: datetime | None = None) -> CacheEntry | None:
        at = at or self._clock()
        with self._lock:
            self._maybe_prune(at)
            entry = self._entries.get(token)
            if entry is None:
                return None
            if entry.is_stale(at):
                del self._entries[token]
                return None
        if expected_kind is not None and entry.kind != expected_kind:
            return None
        return entry

    @property
    def generation(self) -> int:
        return self._generation

    def put(self, token: str, entry: CacheEntry, generation: int | None = None) -> bool:
        """Store ``entry`` unless an invalidation happened since ``generation`` was read."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._maybe_prune(self._clock())
            self._entries[token] = entry
        return True

    def invalidate(self, *, session_id: str | None = None, account_id: UUID | None = None) -> int:
        """Drop every entry for the given session id or account id."""
        if session_id is None and account_id is None:
            return 0
        with self._lock:
            self._generation += 1
            stale = [
                token
                for token, entry in self._entries.items()
                if (session_id is not None and entry.session_id == session_id)
                or (account_id is not None and entry.account_id == account_id)
            ]
            for token in stale:
                del self._entries[token]
        return len(stale)

    def prune(self, at: datetime | None = None) -> int:
        at = at or self._clock()
        with self._lock:
            return self._prune(at)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def _maybe_prune(self, at: datetime) -> None:
        # Caller holds the lock
        if at - self._last_prune >= self._prune_interval:
            self._prune(at)

    def _prune(self, at: datetime) -> int:
        stale = [token for token, entry in self._entries.items() if entry.is_stale(at)]
        for token in stale:
            del self._entries[token]
        self._last_prune = at
        return len(stale)
