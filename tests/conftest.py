import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from crowdguard.db.dynamo import DuplicateRecordError, StoreError
from crowdguard.deps import get_store
from crowdguard.models.comment import Comment
from crowdguard.models.incident import Incident
from crowdguard.models.user import User
from crowdguard.realtime.broadcaster import Broadcaster
from crowdguard.realtime.gateway import RealtimeGateway
from crowdguard.realtime.presence import PresenceRegistry


class InMemoryStore:
    """Same surface as DynamoStore, backed by dicts."""

    def __init__(self):
        self.incidents: Dict[str, Incident] = {}
        self.comments: Dict[str, Comment] = {}
        self.users: Dict[str, User] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise StoreError("store is down")

    def list_incidents(self) -> List[Incident]:
        self._check()
        return sorted(self.incidents.values(), key=lambda i: i.timestamp, reverse=True)

    def create_incident(self, incident: Incident) -> Incident:
        self._check()
        if incident.id in self.incidents:
            raise DuplicateRecordError(incident.id)
        self.incidents[incident.id] = incident
        return incident

    def increment_upvotes(self, incident_id: str) -> Optional[Incident]:
        self._check()
        current = self.incidents.get(incident_id)
        if current is None:
            return None
        updated = current.model_copy(update={"upvotes": current.upvotes + 1})
        self.incidents[incident_id] = updated
        return updated

    def mark_verified(self, incident_id: str) -> Incident:
        self._check()
        updated = self.incidents[incident_id].model_copy(update={"verified": True})
        self.incidents[incident_id] = updated
        return updated

    def list_comments(self, incident_id: str) -> List[Comment]:
        self._check()
        found = [c for c in self.comments.values() if c.incident_id == incident_id]
        return sorted(found, key=lambda c: c.timestamp, reverse=True)

    def create_comment(self, comment: Comment) -> Comment:
        self._check()
        if comment.id in self.comments:
            raise DuplicateRecordError(comment.id)
        self.comments[comment.id] = comment
        return comment

    def get_user(self, user_id: str) -> Optional[User]:
        self._check()
        return self.users.get(user_id)

    def put_user(self, user: User) -> User:
        self._check()
        self.users[user.id] = user
        return user

    def list_users(self) -> List[User]:
        self._check()
        return list(self.users.values())

    def count_users(self) -> int:
        self._check()
        return len(self.users)


class FakeTransport:
    """Records every frame. Ids in `failing` raise, ids in `hanging` never finish."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.failing: set = set()
        self.hanging: set = set()

    async def send(self, connection_id: str, event_name: str, payload: Any) -> None:
        if connection_id in self.failing:
            raise ConnectionError(f"{connection_id} is gone")
        if connection_id in self.hanging:
            await asyncio.sleep(3600)
        self.sent.append((connection_id, event_name, payload))

    def frames_for(self, connection_id: str) -> List[tuple]:
        return [(name, payload) for cid, name, payload in self.sent if cid == connection_id]

    def recipients(self, event_name: str) -> List[str]:
        return [cid for cid, name, _ in self.sent if name == event_name]


class FakeSocketServer:
    """Enough of socketio.AsyncServer for the gateway: handler table and disconnect."""

    def __init__(self):
        self.handlers: Dict[str, Any] = {}
        self.disconnected: List[str] = []

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def disconnect(self, sid):
        self.disconnected.append(sid)
        await self.handlers["disconnect"](sid)

    async def connect_client(self, sid):
        await self.handlers["connect"](sid, {}, None)

    async def send_frame(self, sid, event, data):
        await self.handlers[event](sid, data)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def registry():
    return PresenceRegistry()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def broadcaster(registry, transport):
    return Broadcaster(registry, transport, send_timeout=0.05)


@pytest.fixture
def sio():
    return FakeSocketServer()


@pytest.fixture
def gateway(sio, registry, broadcaster):
    return RealtimeGateway(sio, registry, broadcaster)


@pytest.fixture
def app(store, transport):
    from crowdguard.main import create_app

    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.state.broadcaster.transport = transport
    return app


@pytest.fixture
def client(app):
    # no `with`: the lifespan (seeding, health loop) is not needed here
    return TestClient(app)


def make_incident(incident_id="x1", **overrides) -> Incident:
    data = dict(
        id=incident_id,
        type="theft",
        latitude=40.7128,
        longitude=-74.0060,
        description="Bicycle stolen from bike rack.",
        reporter_id="u1",
        upvotes=0,
    )
    data.update(overrides)
    return Incident(**data)
