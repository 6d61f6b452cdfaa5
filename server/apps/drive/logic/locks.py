"""In-process mutual exclusion keyed by record identity."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import final


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


@final
class KeyedLock:
    """One lock per key, created on demand and dropped when unused.

    Serializes mutating operations on the same file id inside one
    process. Other processes are only guarded by the conflict checks
    and the unique index on live names.
    """

    def __init__(self) -> None:
        """Initialize an empty lock table."""
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: object) -> Iterator[None]:
        """Hold the lock for key for the duration of the block.

        Args:
            key: Anything with a stable str() (file id, name tuple).

        Yields:
            Nothing; the lock is released on exit.
        """
        entry_key = str(key)
        with self._guard:
            entry = self._entries.setdefault(entry_key, _Entry())
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if not entry.holders:
                    self._entries.pop(entry_key, None)

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
