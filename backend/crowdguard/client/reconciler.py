"""Merges REST snapshots and realtime events into one local view.

Events are applied one at a time to completion; the Socket.IO client runs
its handlers on a single event loop, so no locking is needed here.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from pydantic import ValidationError

from crowdguard.client.mirrors import CommentMirror, PresenceMirror, RecordMirror
from crowdguard.models.comment import Comment
from crowdguard.models.incident import Incident
from crowdguard.models.realtime import SosAlertIn
from crowdguard.realtime.presence import Location

log = logging.getLogger(__name__)

SosCallback = Callable[[SosAlertIn], None]

# only the latest alerts are kept; callbacks see every one
SOS_HISTORY = 50


class Reconciler:
    def __init__(self, *, own_connection_id: Optional[str] = None, seed_presence: bool = False):
        self.incidents: RecordMirror[Incident] = RecordMirror()
        self.comments = CommentMirror()
        self.presence = PresenceMirror()
        self.own_location: Optional[Location] = None
        self.own_connection_id = own_connection_id
        self.seed_presence = seed_presence
        self.sos_alerts: Deque[SosAlertIn] = deque(maxlen=SOS_HISTORY)
        self._sos_callbacks: List[SosCallback] = []

        self._handlers: Dict[str, Callable[[Any], None]] = {
            "newIncident": self.on_new_incident,
            "incidentUpdated": self.on_incident_updated,
            "newComment": self.on_new_comment,
            "locationUpdate": self.on_location_update,
            "userDisconnected": self.on_user_disconnected,
            "sosAlert": self.on_sos_alert,
            "currentUsers": self.on_current_users,
        }

    @property
    def event_names(self) -> List[str]:
        return list(self._handlers)

    def apply(self, event_name: str, payload: Any) -> None:
        handler = self._handlers.get(event_name)
        if handler is None:
            log.debug("No handler for %s", event_name)
            return
        try:
            handler(payload)
        except ValidationError as e:
            log.warning("Dropping malformed %s event: %s", event_name, e.errors())
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Dropping malformed %s event: %r", event_name, e)

    def on_sos(self, callback: SosCallback) -> None:
        self._sos_callbacks.append(callback)

    # ---------------- Session ----------------
    def connection_opened(self, connection_id: Optional[str]) -> None:
        # every connection starts with an empty view of peers
        self.own_connection_id = connection_id
        self.presence.clear()

    # ---------------- REST snapshots / local mutations ----------------
    def load_incidents(self, records: List[Any]) -> None:
        self.incidents.replace_all(Incident.model_validate(r) for r in records)

    def load_comments(self, incident_id: str, records: List[Any]) -> None:
        self.comments.load(incident_id, (Comment.model_validate(r) for r in records))

    def add_local_incident(self, incident: Incident) -> bool:
        return self.incidents.insert_if_absent(incident)

    def add_local_comment(self, comment: Comment) -> bool:
        return self.comments.insert_if_absent(comment)

    def set_own_location(self, latitude: float, longitude: float) -> Location:
        self.own_location = Location(latitude, longitude)
        return self.own_location

    # ---------------- Realtime events ----------------
    def on_new_incident(self, payload: Any) -> None:
        self.incidents.insert_if_absent(Incident.model_validate(payload))

    def on_incident_updated(self, payload: Any) -> None:
        self.incidents.replace_if_present(Incident.model_validate(payload))

    def on_new_comment(self, payload: Any) -> None:
        self.comments.insert_if_absent(Comment.model_validate(payload))

    def on_location_update(self, payload: Dict[str, Any]) -> None:
        cid = payload["id"]
        if cid == self.own_connection_id:
            return
        self.presence.upsert(cid, Location(float(payload["latitude"]), float(payload["longitude"])))

    def on_user_disconnected(self, connection_id: str) -> None:
        self.presence.remove(connection_id)

    def on_current_users(self, payload: Dict[str, Any]) -> None:
        if not self.seed_presence:
            return
        for cid, loc in (payload or {}).items():
            if cid != self.own_connection_id:
                self.presence.upsert(cid, Location(float(loc["latitude"]), float(loc["longitude"])))

    def on_sos_alert(self, payload: Any) -> None:
        alert = SosAlertIn.model_validate(payload)
        self.sos_alerts.append(alert)
        log.info(
            "SOS Alert! Someone needs help at %s, %s",
            alert.location.latitude,
            alert.location.longitude,
        )
        for callback in self._sos_callbacks:
            callback(alert)
