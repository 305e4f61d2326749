"""Per-event try-lock guarding finalize / un-finalize / payment toggles."""
from __future__ import annotations

import threading


class EventLock:
    """Registry of event ids currently being worked on.

    `acquire` never blocks: a second caller gets False and is expected to
    report "operation already in progress" instead of queueing.
    """

    def __init__(self):
        self._mutex = threading.Lock()
        self._held: set[str] = set()

    def acquire(self, event_id: str) -> bool:
        with self._mutex:
            if event_id in self._held:
                return False
            self._held.add(event_id)
            return True

    def release(self, event_id: str) -> None:
        with self._mutex:
            self._held.discard(event_id)

    def is_held(self, event_id: str) -> bool:
        with self._mutex:
            return event_id in self._held
