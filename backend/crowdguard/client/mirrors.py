"""Client-side copies of server state, keyed by record id."""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Protocol, Set, TypeVar

from crowdguard.models.comment import Comment
from crowdguard.realtime.presence import Location


class HasId(Protocol):
    id: str


R = TypeVar("R", bound=HasId)


class RecordMirror(Generic[R]):
    """
    Records ordered most-recent-first, at most one per id.

    `replace_all` is for REST snapshots, `insert_if_absent` for "new" events
    and optimistic inserts, `replace_if_present` for "updated" events.
    """

    def __init__(self, records: Iterable[R] = ()):
        self._records: "OrderedDict[str, R]" = OrderedDict()
        self.replace_all(records)

    def replace_all(self, records: Iterable[R]) -> None:
        self._records = OrderedDict((r.id, r) for r in records)

    def insert_if_absent(self, record: R) -> bool:
        if record.id in self._records:
            return False
        self._records[record.id] = record
        self._records.move_to_end(record.id, last=False)
        return True

    def replace_if_present(self, record: R) -> bool:
        # updates for records this client never saw are dropped; the next
        # full fetch brings them back
        if record.id not in self._records:
            return False
        self._records[record.id] = record
        return True

    def get(self, record_id: str) -> Optional[R]:
        return self._records.get(record_id)

    def ids(self) -> List[str]:
        return list(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[R]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)


class CommentMirror:
    """
    Comments per incident, filled lazily when an incident is opened.

    Comments that arrive before the first fetch are kept, but the incident
    only counts as loaded once `load` has run.
    """

    def __init__(self) -> None:
        self._by_incident: Dict[str, RecordMirror[Comment]] = {}
        self._loaded: Set[str] = set()

    def load(self, incident_id: str, comments: Iterable[Comment]) -> None:
        self._by_incident[incident_id] = RecordMirror(comments)
        self._loaded.add(incident_id)

    def is_loaded(self, incident_id: str) -> bool:
        return incident_id in self._loaded

    def insert_if_absent(self, comment: Comment) -> bool:
        mirror = self._by_incident.setdefault(comment.incident_id, RecordMirror())
        return mirror.insert_if_absent(comment)

    def for_incident(self, incident_id: str) -> List[Comment]:
        mirror = self._by_incident.get(incident_id)
        return list(mirror) if mirror else []


class PresenceMirror:
    """Other users' last known positions. The local user is never stored here."""

    def __init__(self) -> None:
        self._peers: Dict[str, Location] = {}

    def upsert(self, connection_id: str, location: Location) -> None:
        self._peers[connection_id] = location

    def remove(self, connection_id: str) -> None:
        self._peers.pop(connection_id, None)

    def clear(self) -> None:
        self._peers.clear()

    def get(self, connection_id: str) -> Optional[Location]:
        return self._peers.get(connection_id)

    def snapshot(self) -> Dict[str, Location]:
        return dict(self._peers)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._peers

    def __len__(self) -> int:
        return len(self._peers)
