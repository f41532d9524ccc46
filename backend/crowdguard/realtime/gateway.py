"""Socket.IO session handling for the presence/broadcast core.

Frontend convention:
- URL base: ws://<host>:<PORT>
- Socket.IO path: /socket.io/ (override with SOCKETIO_PATH)
- client -> server: `updateLocation`, `sosAlert`
- server -> client: `currentUsers`, `locationUpdate`, `userDisconnected`,
  `sosAlert`, plus the incident/comment events pushed by the REST routes

A connection goes CONNECTING -> OPEN -> CLOSED exactly once. A client that
reconnects gets a new sid and starts from an empty presence view.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from typing import Any

from pydantic import ValidationError

from crowdguard.models.realtime import LocationIn, SosAlertIn
from crowdguard.realtime.broadcaster import Broadcaster
from crowdguard.realtime.events import CurrentUsers, LocationUpdate, SosAlert, UserDisconnected
from crowdguard.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

HEALTH_INTERVAL = float(os.getenv("REALTIME_HEALTH_INTERVAL", "30"))


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class RealtimeGateway:
    def __init__(self, sio, registry: PresenceRegistry, broadcaster: Broadcaster):
        self.sio = sio
        self.registry = registry
        self.broadcaster = broadcaster
        self._states: dict[str, ConnectionState] = {}
        self._stale: set[str] = set()
        # failed writes are picked up by the next health check
        broadcaster.on_send_failure = self.mark_stale

        sio.on("connect", self.on_connect)
        sio.on("disconnect", self.on_disconnect)
        sio.on("updateLocation", self.on_update_location)
        sio.on("sosAlert", self.on_sos_alert)

    def state(self, sid: str) -> ConnectionState | None:
        return self._states.get(sid)

    def open_connections(self) -> list[str]:
        return [sid for sid, st in self._states.items() if st is ConnectionState.OPEN]

    # ---------------- Lifecycle ----------------
    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None):
        self._states[sid] = ConnectionState.CONNECTING
        self.registry.register(sid)
        self._states[sid] = ConnectionState.OPEN
        logger.info("User connected: %s", sid)

        peers = {cid: loc for cid, loc in self.registry.snapshot().items() if cid != sid}
        await self.broadcaster.send_to(sid, CurrentUsers(peers))

    async def on_disconnect(self, sid: str, reason: Any | None = None):
        await self._close(sid)

    async def _close(self, sid: str) -> None:
        if self._states.get(sid) is not ConnectionState.OPEN:
            return
        self._states[sid] = ConnectionState.CLOSED
        self.registry.remove(sid)
        self._stale.discard(sid)
        logger.info("User disconnected: %s", sid)
        try:
            await self.broadcaster.broadcast(UserDisconnected(sid))
        finally:
            # sids are never reused, nothing else will ask about this one
            self._states.pop(sid, None)

    # ---------------- Inbound frames ----------------
    async def on_update_location(self, sid: str, data: Any):
        if self._states.get(sid) is not ConnectionState.OPEN:
            return
        try:
            loc = LocationIn.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed updateLocation from %s: %s", sid, e.errors())
            return

        if not self.registry.update_location(sid, loc.latitude, loc.longitude):
            # lost the race with disconnect
            return
        logger.debug("Location from %s: %s, %s", sid, loc.latitude, loc.longitude)
        await self.broadcaster.broadcast(LocationUpdate(sid, loc.latitude, loc.longitude))

    async def on_sos_alert(self, sid: str, data: Any):
        if self._states.get(sid) is not ConnectionState.OPEN:
            return
        try:
            alert = SosAlertIn.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed sosAlert from %s: %s", sid, e.errors())
            return

        logger.info("SOS Alert from %s (%s)", alert.user_id, sid)
        await self.broadcaster.broadcast(
            SosAlert(alert.user_id, alert.location.latitude, alert.location.longitude)
        )

    # ---------------- Health ----------------
    def mark_stale(self, sid: str) -> None:
        if self._states.get(sid) is ConnectionState.OPEN:
            self._stale.add(sid)

    async def check_health(self) -> int:
        """Close every connection whose last write failed. Returns how many were closed."""
        stale, self._stale = self._stale, set()
        closed = 0
        for sid in stale:
            if self._states.get(sid) is not ConnectionState.OPEN:
                continue
            try:
                await self.sio.disconnect(sid)
            except Exception:
                logger.exception("Socket.IO disconnect failed for %s", sid)
            # the server normally calls on_disconnect itself; _close is idempotent
            await self._close(sid)
            closed += 1
        return closed

    async def run_health_checks(self, interval: float = HEALTH_INTERVAL) -> None:
        while True:
            await asyncio.sleep(interval)
            closed = await self.check_health()
            if closed:
                logger.info("Health check closed %d stale connection(s)", closed)

    async def shutdown(self) -> None:
        for sid in self.open_connections():
            try:
                await self.sio.disconnect(sid)
            except Exception:
                logger.exception("Socket.IO disconnect failed for %s", sid)
            await self._close(sid)
