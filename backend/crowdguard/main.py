# backend/crowdguard/main.py
from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

# --- Load .env early so os.getenv works everywhere ---
from dotenv import load_dotenv

load_dotenv()

import socketio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.concurrency import run_in_threadpool  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from crowdguard.db.dynamo import StoreError  # noqa: E402
from crowdguard.deps import get_store  # noqa: E402
from crowdguard.realtime.broadcaster import Broadcaster, SocketIOTransport  # noqa: E402
from crowdguard.realtime.gateway import HEALTH_INTERVAL, RealtimeGateway  # noqa: E402
from crowdguard.realtime.presence import PresenceRegistry  # noqa: E402
from crowdguard.routes.incident import router as incident_router  # noqa: E402
from crowdguard.routes.nearby import router as nearby_router  # noqa: E402
from crowdguard.routes.user import router as user_router  # noqa: E402
from crowdguard.services.user_service import seed_users  # noqa: E402

log = logging.getLogger("uvicorn.error")

# Optional global API prefix (e.g., "/v1")
_API_PREFIX = os.getenv("API_PREFIX", "").strip()
if _API_PREFIX:
    if not _API_PREFIX.startswith("/"):
        _API_PREFIX = "/" + _API_PREFIX
    _API_PREFIX = _API_PREFIX.rstrip("/")

SOCKETIO_PATH = os.getenv("SOCKETIO_PATH", "socket.io")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = app.dependency_overrides.get(get_store, get_store)()
    try:
        seeded = await run_in_threadpool(seed_users, store)
        if seeded:
            log.info("Seeded %d users", seeded)
    except StoreError:
        log.exception("Seeding error")

    health = asyncio.create_task(app.state.gateway.run_health_checks(HEALTH_INTERVAL))
    try:
        yield
    finally:
        health.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await health
        await app.state.gateway.shutdown()


def _cors_kwargs() -> dict:
    # Prefer explicit origins via CORS_ORIGINS="https://app.example.com,https://staging.example.com"
    cors_env = os.getenv("CORS_ORIGINS")
    kwargs = dict(allow_methods=["GET", "POST"], allow_headers=["*"])
    if cors_env:
        kwargs.update(allow_origins=[o.strip() for o in cors_env.split(",") if o.strip()])
    else:
        kwargs.update(allow_origins=["*"])
    return kwargs


def create_app() -> FastAPI:
    app = FastAPI(
        title="CrowdGuard API",
        version="1.0.0",
        description="Incident reports, comments and live presence/SOS broadcast.",
        lifespan=lifespan,
    )

    cors_kwargs = _cors_kwargs()
    app.add_middleware(CORSMiddleware, **cors_kwargs)
    log.info("CORS configured: %s", cors_kwargs)

    # ---------------- Realtime core ----------------
    origins = cors_kwargs["allow_origins"]
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        logger=False,
        engineio_logger=False,
    )
    registry = PresenceRegistry()
    broadcaster = Broadcaster(registry, SocketIOTransport(sio))
    app.state.sio = sio
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.gateway = RealtimeGateway(sio, registry, broadcaster)

    # ---------------- Routers ----------------
    app.include_router(incident_router, prefix=_API_PREFIX)
    app.include_router(user_router, prefix=_API_PREFIX)
    app.include_router(nearby_router, prefix=_API_PREFIX)

    # ---------------- Meta/utility ----------------
    @app.get(f"{_API_PREFIX or ''}/health", tags=["meta"])
    def health():
        return {"status": "ok", "connections": len(registry)}

    return app


app = create_app()

# Socket.IO sits in front of FastAPI: it answers its own path (polling and
# websocket upgrades) and hands every other request through.
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app, socketio_path=SOCKETIO_PATH)


# ---------------- Local dev entrypoint ----------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crowdguard.main:asgi_app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "4000")),
        reload=True,
    )
