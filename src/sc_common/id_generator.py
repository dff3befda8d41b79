"""Time-ordered string IDs for wallet transactions.

Transaction ids are generated in the application (not by a DB sequence) so a
hold's id is known, and logged, before its row is written.
"""

import threading
import time


class TransactionIdGenerator:
    """Snowflake-style generator.

    Layout (63 bits used):
      - 41 bits: milliseconds since _EPOCH_MS
      - 10 bits: worker_id (0-1023), one per app instance
      - 12 bits: per-millisecond sequence

    IDs from one generator are strictly increasing, which keeps
    ORDER BY id equivalent to insertion order for cursor pagination.
    """

    _EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
    _WORKER_BITS = 10
    _SEQUENCE_BITS = 12
    _SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, worker_id: int = 0) -> None:
        if not (0 <= worker_id < (1 << self._WORKER_BITS)):
            raise ValueError(f"worker_id must be 0-{(1 << self._WORKER_BITS) - 1}")
        self._worker_id = worker_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = max(self._now_ms(), self._last_ms)  # never step backwards
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._SEQUENCE_MASK
                if self._sequence == 0:
                    now_ms = self._spin_until_after(now_ms)
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                ((now_ms - self._EPOCH_MS) << (self._WORKER_BITS + self._SEQUENCE_BITS))
                | (self._worker_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return str(value)

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000

    def _spin_until_after(self, last_ms: int) -> int:
        now_ms = self._now_ms()
        while now_ms <= last_ms:
            now_ms = self._now_ms()
        return now_ms


_default_generator = TransactionIdGenerator()


def generate_id() -> str:
    return _default_generator.next_id()
