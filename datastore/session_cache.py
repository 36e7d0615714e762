from __future__ import annotations
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Hashable, Optional


class SessionCache:
    """Per-session memo of derived results and the last sync time.

    Lifecycle is explicit: ``start`` when a session begins, ``clear`` on
    logout or shutdown. Reads outside an active session always miss.
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, Any] = {}
        self._last_sync_at: Optional[datetime] = None
        self._active = False
        self._lock = Lock()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last_sync_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_sync_at

    def start(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_sync_at = None
            self._active = True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_sync_at = None
            self._active = False

    def mark_synced(self, when: datetime) -> None:
        with self._lock:
            if self._active:
                self._last_sync_at = when

    def invalidate(self) -> None:
        """Drop derived entries after new data arrives; keeps the session open."""
        with self._lock:
            self._entries.clear()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if not self._active:
                return None
            return self._entries.get(key)

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if self._active:
                self._entries[key] = value
