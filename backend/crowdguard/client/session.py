"""Python client for a CrowdGuard server: REST over httpx, realtime over Socket.IO."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
import socketio

from crowdguard.client.reconciler import Reconciler
from crowdguard.models.comment import Comment
from crowdguard.models.incident import Incident

log = logging.getLogger(__name__)


class CrowdGuardClient:
    """
    Keeps a Reconciler in sync with one server. REST failures are logged and
    leave local state alone, so an optimistic insert stays visible.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        sio: Optional[socketio.AsyncClient] = None,
        seed_presence: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.http = http or httpx.AsyncClient(base_url=self.base_url, timeout=10.0)
        # python-socketio reconnects on its own; each new connection gets a new sid
        self.sio = sio or socketio.AsyncClient(reconnection=True)
        self.state = Reconciler(seed_presence=seed_presence)
        self._register_handlers()

    def _register_handlers(self) -> None:
        self.sio.on("connect", self._on_connect)
        for name in self.state.event_names:
            self.sio.on(name, self._make_handler(name))

    def _make_handler(self, name: str):
        async def handler(data=None):
            self.state.apply(name, data)

        return handler

    async def _on_connect(self):
        log.info("Connected to socket server as %s", self.sio.sid)
        self.state.connection_opened(self.sio.sid)

    # ---------------- Realtime session ----------------
    async def connect(self, socketio_path: str = "socket.io") -> None:
        if self.sio.connected:
            return
        await self.sio.connect(self.base_url, socketio_path=socketio_path)

    async def close(self) -> None:
        if self.sio.connected:
            await self.sio.disconnect()
        await self.http.aclose()

    async def set_user_location(self, latitude: float, longitude: float) -> None:
        self.state.set_own_location(latitude, longitude)
        if self.sio.connected:
            await self.sio.emit("updateLocation", {"latitude": latitude, "longitude": longitude})

    async def trigger_sos(self) -> bool:
        loc = self.state.own_location
        if not self.sio.connected or loc is None:
            return False
        await self.sio.emit(
            "sosAlert",
            {"userId": self.user_id, "location": {"latitude": loc.latitude, "longitude": loc.longitude}},
        )
        log.info("SOS Alert Sent")
        return True

    # ---------------- REST ----------------
    async def fetch_incidents(self) -> None:
        try:
            resp = await self.http.get("/api/incidents")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Failed to fetch incidents: %s", e)
            return
        self.state.load_incidents(resp.json())

    async def add_incident(self, incident: Incident) -> None:
        # shown right away; the newIncident echo is deduped by id
        self.state.add_local_incident(incident)
        try:
            resp = await self.http.post("/api/incidents", json=incident.to_wire())
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Failed to add incident: %s", e)

    async def upvote_incident(self, incident_id: str) -> None:
        try:
            resp = await self.http.post(f"/api/incidents/{incident_id}/upvote")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Failed to upvote incident: %s", e)
            return
        self.state.incidents.replace_if_present(Incident.model_validate(resp.json()))

    async def fetch_comments(self, incident_id: str) -> None:
        try:
            resp = await self.http.get(f"/api/incidents/{incident_id}/comments")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Failed to fetch comments: %s", e)
            return
        self.state.load_comments(incident_id, resp.json())

    async def add_comment(self, comment: Comment) -> None:
        self.state.add_local_comment(comment)
        try:
            resp = await self.http.post(
                f"/api/incidents/{comment.incident_id}/comments", json=comment.to_wire()
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Failed to add comment: %s", e)
