import itertools
import logging
from collections.abc import Callable
from dataclasses import replace

import txlane.constants as C
from txlane.models import QueueEntry

log = logging.getLogger("txlane.queue")

Listener = Callable[[QueueEntry], None]


class QueueLedger:
    """Ordered registry of queued and in-flight entries.

    Only the serializer writes here. Readers get copies from snapshot(), and
    listeners are handed a copy on every status change.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._entries: dict[int, QueueEntry] = {}
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, entry: QueueEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(replace(entry))
            except Exception:
                log.exception("queue listener failed for entry %s", entry.id)

    def add(self, description: str) -> QueueEntry:
        entry = QueueEntry(id=next(self._ids), description=description)
        self._entries[entry.id] = entry
        self._notify(entry)
        return replace(entry)

    def _check(self, entry: QueueEntry, status: C.EntryStatus) -> None:
        if status not in C.TRANSITIONS.get(entry.status, ()):
            raise ValueError(f"Illegal transition for entry {entry.id}: {entry.status} -> {status}")
        log.debug("%s --> %s  entry=%s", entry.status, status, entry.id)

    def update(self, entry_id: int, status: C.EntryStatus) -> bool:
        """Move an entry to a new status. Returns False if the id is no longer tracked.

        A terminal status removes the entry (see settle()).
        """
        status = C.EntryStatus(status)
        if status in C.TERMINAL_STATUS:
            return self.settle(entry_id, status) is not None
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        self._check(entry, status)
        entry.status = status
        self._notify(entry)
        return True

    def settle(self, entry_id: int, status: C.EntryStatus) -> QueueEntry | None:
        """Apply a terminal status and drop the entry in one step.

        The entry leaves the registry before listeners hear about it, so no
        snapshot ever holds a terminal entry. Settling an absent id is a no-op.
        """
        status = C.EntryStatus(status)
        if status not in C.TERMINAL_STATUS:
            raise ValueError(f"{status} is not a terminal status")
        entry = self._entries.get(entry_id)
        if entry is None:
            return None
        self._check(entry, status)
        del self._entries[entry_id]
        entry.status = status
        self._notify(entry)
        return replace(entry)

    def remove(self, entry_id: int) -> QueueEntry | None:
        return self._entries.pop(entry_id, None)

    def snapshot(self) -> list[QueueEntry]:
        return [replace(e) for e in sorted(self._entries.values(), key=lambda e: e.id)]

    def render(self) -> str:
        entries = self.snapshot()
        if not entries:
            return C.EMPTY_QUEUE_TEXT
        return "\n".join(str(e) for e in entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: int) -> bool:
        return entry_id in self._entries
