"""Per-key mutual exclusion for serving concurrent deposit callers."""

from contextlib import contextmanager
from typing import Dict, Iterator, List
import threading

from core.models import VaultKey


class _Entry:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyLockTable:
    """Locks exist only while some caller holds or waits on their key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[bytes, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, *keys: VaultKey) -> Iterator[None]:
        # Sorted acquisition keeps two events on overlapping keys deadlock free.
        ordered = sorted({key.to_bytes() for key in keys})
        entries = self._checkout(ordered)
        acquired: List[_Entry] = []
        try:
            for entry in entries:
                entry.lock.acquire()
                acquired.append(entry)
            yield
        finally:
            for entry in reversed(acquired):
                entry.lock.release()
            self._checkin(ordered)

    def _checkout(self, raw_keys: List[bytes]) -> List[_Entry]:
        with self._guard:
            entries = []
            for raw in raw_keys:
                entry = self._entries.get(raw)
                if entry is None:
                    entry = _Entry()
                    self._entries[raw] = entry
                entry.holders += 1
                entries.append(entry)
            return entries

    def _checkin(self, raw_keys: List[bytes]) -> None:
        with self._guard:
            for raw in raw_keys:
                entry = self._entries[raw]
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[raw]
