"""Fan-out of realtime events to the connections held in the presence registry."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Optional, Protocol

import socketio

from crowdguard.realtime.events import Audience, RealtimeEvent
from crowdguard.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

SEND_TIMEOUT = float(os.getenv("REALTIME_SEND_TIMEOUT", "5"))


class Transport(Protocol):
    async def send(self, connection_id: str, event_name: str, payload: Any) -> None:
        ...


class SocketIOTransport:
    """Writes one frame to one Socket.IO connection."""

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def send(self, connection_id: str, event_name: str, payload: Any) -> None:
        await self.sio.emit(event_name, payload, to=connection_id)


class Broadcaster:
    """
    Best-effort, fire-and-forget delivery. One send attempt per target per
    event, all targets in parallel, each bounded by `send_timeout`. A failed
    send is logged and reported through `on_send_failure`; it never stops
    delivery to the other targets.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        transport: Transport,
        *,
        send_timeout: float = SEND_TIMEOUT,
        on_send_failure: Optional[Callable[[str], None]] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.send_timeout = send_timeout
        self.on_send_failure = on_send_failure

    def audience(self, event: RealtimeEvent) -> list[str]:
        # the registry hands back a copy, so connects/disconnects during the
        # fan-out cannot disturb this list
        targets = self.registry.connection_ids()
        if event.audience is Audience.ALL:
            return targets
        if event.audience is Audience.ALL_EXCEPT_SENDER:
            return [cid for cid in targets if cid != event.sender]
        raise ValueError(f"{event.name} is delivered with send_to(), not broadcast()")

    async def broadcast(self, event: RealtimeEvent) -> int:
        """Deliver `event` to its audience. Returns the number of successful sends."""
        targets = self.audience(event)
        if not targets:
            return 0
        payload = event.payload()
        results = await asyncio.gather(
            *(self._deliver(cid, event.name, payload) for cid in targets)
        )
        delivered = sum(results)
        logger.debug("%s delivered to %d/%d connections", event.name, delivered, len(targets))
        return delivered

    async def send_to(self, connection_id: str, event: RealtimeEvent) -> bool:
        if connection_id not in self.registry:
            return False
        return await self._deliver(connection_id, event.name, event.payload())

    async def _deliver(self, connection_id: str, event_name: str, payload: Any) -> bool:
        try:
            await asyncio.wait_for(
                self.transport.send(connection_id, event_name, payload),
                timeout=self.send_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # peer is gone or too slow; drop this frame only
            logger.debug("Dropped %s for %s: %r", event_name, connection_id, e)
            if self.on_send_failure is not None:
                self.on_send_failure(connection_id)
            return False
        return True
