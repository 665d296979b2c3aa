"""Time-sortable 64-bit identifiers."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

EPOCH_START_MS = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
NODE_ID_BITS = 10
SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << NODE_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1
NODE_ID_SHIFT = SEQUENCE_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + NODE_ID_BITS

# Rollbacks shorter than this are waited out instead of failing.
MAX_TOLERATED_ROLLBACK_MS = 5


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class TsidGenerator:
    """Millisecond timestamp + node id + per-millisecond sequence."""

    def __init__(self, node_id: int = 1, clock=_now_ms) -> None:
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node_id must be between 0 and {MAX_NODE_ID}")
        self.node_id = node_id
        self._clock = clock
        self._lock = threading.Lock()
        self._last_timestamp = -1
        self._sequence = 0

    def generate(self) -> int:
        with self._lock:
            current = self._clock()

            if current < self._last_timestamp:
                offset = self._last_timestamp - current
                if offset >= MAX_TOLERATED_ROLLBACK_MS:
                    raise RuntimeError(f"Clock moved backwards by {offset} ms")
                time.sleep((offset + 1) / 1000)
                current = self._clock()
                if current < self._last_timestamp:
                    raise RuntimeError("Clock moved backwards")

            if current == self._last_timestamp:
                self._sequence = (self._sequence + 1) & MAX_SEQUENCE
                if self._sequence == 0:
                    current = self._wait_next_millis(current)
            else:
                self._sequence = 0

            self._last_timestamp = current
            return (
                ((current - EPOCH_START_MS) << TIMESTAMP_SHIFT)
                | (self.node_id << NODE_ID_SHIFT)
                | self._sequence
            )

    def _wait_next_millis(self, current: int) -> int:
        while current <= self._last_timestamp:
            current = self._clock()
        return current

    __call__ = generate


def build_id_generator() -> TsidGenerator:
    from identity_service.config import settings

    return TsidGenerator(settings.NODE_ID)


id_generator = build_id_generator()
