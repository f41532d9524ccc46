"""In-process record of who is connected and where they last said they were.

Entries are keyed by the realtime connection id. The gateway is the only
writer: it registers a connection when it opens, updates the location from
that same connection's frames, and removes it once on close. Readers always
get copies, so a broadcast can iterate its audience while connections come
and go.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


class PresenceRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Location | None] = {}

    def register(self, connection_id: str) -> None:
        with self._lock:
            # a second register must not wipe a location already reported
            self._entries.setdefault(connection_id, None)

    def update_location(self, connection_id: str, latitude: float, longitude: float) -> bool:
        """Overwrite the stored location. Unknown ids are ignored (returns False)."""
        with self._lock:
            if connection_id not in self._entries:
                return False
            self._entries[connection_id] = Location(latitude, longitude)
            return True

    def remove(self, connection_id: str) -> None:
        with self._lock:
            self._entries.pop(connection_id, None)

    def get(self, connection_id: str) -> Location | None:
        with self._lock:
            return self._entries.get(connection_id)

    def snapshot(self) -> dict[str, Location | None]:
        with self._lock:
            return dict(self._entries)

    def connection_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
