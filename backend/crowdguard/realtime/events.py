"""Server-to-client realtime events.

Every event the server can push is one of the classes below. Each class
fixes its wire name and who receives it, so routing lives in one place
(`Broadcaster`) instead of being decided at every emit site.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Union

from crowdguard.models.comment import Comment
from crowdguard.models.incident import Incident
from crowdguard.realtime.presence import Location


class Audience(enum.Enum):
    ALL = "all"
    ALL_EXCEPT_SENDER = "all_except_sender"
    DIRECT = "direct"


@dataclass(frozen=True)
class LocationUpdate:
    name: ClassVar[str] = "locationUpdate"
    audience: ClassVar[Audience] = Audience.ALL_EXCEPT_SENDER

    connection_id: str
    latitude: float
    longitude: float

    @property
    def sender(self) -> str:
        return self.connection_id

    def payload(self) -> dict[str, Any]:
        return {"id": self.connection_id, "latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class UserDisconnected:
    name: ClassVar[str] = "userDisconnected"
    audience: ClassVar[Audience] = Audience.ALL

    connection_id: str

    def payload(self) -> str:
        return self.connection_id


@dataclass(frozen=True)
class NewIncident:
    name: ClassVar[str] = "newIncident"
    audience: ClassVar[Audience] = Audience.ALL

    incident: Incident

    def payload(self) -> dict[str, Any]:
        return self.incident.to_wire()


@dataclass(frozen=True)
class IncidentUpdated:
    name: ClassVar[str] = "incidentUpdated"
    audience: ClassVar[Audience] = Audience.ALL

    incident: Incident

    def payload(self) -> dict[str, Any]:
        return self.incident.to_wire()


@dataclass(frozen=True)
class NewComment:
    name: ClassVar[str] = "newComment"
    audience: ClassVar[Audience] = Audience.ALL

    comment: Comment

    def payload(self) -> dict[str, Any]:
        return self.comment.to_wire()


@dataclass(frozen=True)
class SosAlert:
    name: ClassVar[str] = "sosAlert"
    # unfiltered for now; a radius audience would hang off the sender's location
    audience: ClassVar[Audience] = Audience.ALL

    user_id: str
    latitude: float
    longitude: float

    def payload(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
        }


@dataclass(frozen=True)
class CurrentUsers:
    name: ClassVar[str] = "currentUsers"
    audience: ClassVar[Audience] = Audience.DIRECT

    peers: Mapping[str, Location | None]

    def payload(self) -> dict[str, Any]:
        # peers that have not reported a position yet are left out
        return {
            cid: {"id": cid, "latitude": loc.latitude, "longitude": loc.longitude}
            for cid, loc in self.peers.items()
            if loc is not None
        }


RealtimeEvent = Union[
    LocationUpdate,
    UserDisconnected,
    NewIncident,
    IncidentUpdated,
    NewComment,
    SosAlert,
    CurrentUsers,
]
