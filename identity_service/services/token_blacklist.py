"""In-memory access-token blacklist with time-bounded entries."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from identity_service.config import settings
from identity_service.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TokenBlacklist:
    """Revoked access tokens, expiring after ``ttl_seconds`` from insertion.

    Safe for concurrent use; callers never need to hold a lock. Entries are
    kept in insertion order so the oldest is evicted first once ``max_size``
    is reached.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int,
        access_token_ttl_seconds: Optional[float] = None,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if access_token_ttl_seconds is not None and ttl_seconds <= access_token_ttl_seconds:
            raise ConfigurationError(
                "Blacklist TTL must be longer than the access token lifetime"
            )
        if max_size <= 0:
            raise ConfigurationError("Blacklist max size must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, float]" = OrderedDict()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def revoke(self, token: str) -> None:
        now = self._clock()
        with self._lock:
            self._entries.pop(token, None)
            self._entries[token] = now
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def is_revoked(self, token: str) -> bool:
        now = self._clock()
        with self._lock:
            inserted = self._entries.get(token)
            if inserted is None:
                return False
            if now - inserted >= self.ttl_seconds:
                del self._entries[token]
                return False
            return True

    def purge_expired(self) -> int:
        """Drop expired entries. Returns count removed."""
        cutoff = self._clock() - self.ttl_seconds
        removed = 0
        with self._lock:
            # Insertion order is expiry order.
            while self._entries:
                token, inserted = next(iter(self._entries.items()))
                if inserted > cutoff:
                    break
                del self._entries[token]
                removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-blacklist-sweeper", daemon=True)
        self._thread.start()
        logger.info("Token blacklist sweeper started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Token blacklist sweeper stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval_seconds):
            removed = self.purge_expired()
            if removed:
                logger.debug("Purged %d expired blacklist entries", removed)


token_blacklist = TokenBlacklist(
    ttl_seconds=settings.TOKEN_BLACKLIST_TTL_MINUTES * 60,
    max_size=settings.TOKEN_BLACKLIST_MAX_SIZE,
    access_token_ttl_seconds=settings.JWT_EXPIRATION_MS / 1000,
    sweep_interval_seconds=settings.TOKEN_BLACKLIST_SWEEP_INTERVAL_SECONDS,
)
