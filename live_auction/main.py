from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, WebSocket
from jsonschema import ValidationError

from .admin import config as admin_config
from .admin import health as admin_health
from .admin import rooms as admin_rooms
from .broadcast.fanout import RoomFanout
from .catalog.service import CatalogService
from .config import ServerConfig, get_server_config
from .events.handler import ActionService
from .rooms.engine import AuctionEngine
from .rooms.registry import RoomRegistry
from .storage import build_storage
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


async def sweep_idle_rooms(engine: AuctionEngine, max_idle_seconds: int, interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        engine.registry.evict_idle(max_idle_seconds, engine.fanout.is_watched)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    logging.getLogger("live_auction").setLevel(server_config.logging.level)
    schema_registry = get_schema_registry()
    storage = build_storage(server_config)
    try:
        await storage.ping()
    except Exception as exc:
        logger.critical(f"Storage backend {server_config.storage.backend} unreachable: {exc}")
        raise RuntimeError("persistence gateway unreachable, refusing to start") from exc

    room_registry = RoomRegistry()
    fanout = RoomFanout(viewer_queue_size=server_config.broadcast.viewer_queue_size)
    engine = AuctionEngine(room_registry, fanout, storage)
    action_service = ActionService(
        engine,
        schema_registry,
        acknowledge_rejections=server_config.rooms.acknowledge_rejections,
    )
    catalog = CatalogService(storage=storage, fanout=fanout)

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.storage = storage
    app.state.room_registry = room_registry
    app.state.fanout = fanout
    app.state.engine = engine
    app.state.action_service = action_service
    app.state.catalog = catalog
    app.state.start_time = datetime.now(timezone.utc)

    sweeper = None
    if server_config.rooms.idle_eviction_seconds > 0:
        sweeper = asyncio.create_task(
            sweep_idle_rooms(
                engine,
                server_config.rooms.idle_eviction_seconds,
                server_config.rooms.eviction_interval_seconds,
            )
        )
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            await asyncio.gather(sweeper, return_exceptions=True)
        await engine.drain()
        await storage.close()


app = FastAPI(
    title="Live Auction Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_config.router)
app.include_router(admin_rooms.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "live-auction",
        "version": app.version,
        "storage_backend": settings.storage.backend,
        "acknowledge_rejections": settings.rooms.acknowledge_rejections,
    }


@app.get("/ping", tags=["meta"])
async def ping() -> dict[str, Any]:
    return {"status": "ok", "version": app.version}


@app.websocket("/ws")
async def viewer_socket(websocket: WebSocket) -> None:
    """Bidirectional viewer connection.

    Every inbound frame is an action envelope
    ``{"action": ..., "auction_id": ..., "payload": {...}}``; ``join`` subscribes
    the connection to a room. Outbound frames are ``auction_state``,
    ``data_update`` and, when enabled, ``action_rejected``.
    """
    await websocket.accept()
    state = websocket.app.state
    viewer = state.fanout.new_viewer(websocket.send_text)
    writer = asyncio.create_task(viewer.pump())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("viewer %s disconnected", viewer.id)
                break
            # text and binary frames carry the same JSON envelope
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await state.action_service.handle_raw(viewer, raw)
    finally:
        # room state is room-scoped: losing the connection only drops membership
        state.engine.leave_all(viewer)
        writer.cancel()
        await asyncio.gather(writer, return_exceptions=True)


@app.get("/api/auctions/{auction_id}/init", tags=["catalog"])
async def init_data(auction_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict[str, Any]:
    return await catalog.snapshot(auction_id)


@app.post("/api/auctions/{auction_id}/teams", tags=["catalog"])
async def add_team(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    catalog: CatalogService = Depends(get_catalog),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    try:
        schemas.validate("team", payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc
    return await catalog.add_team(auction_id, payload)


@app.post("/api/auctions/{auction_id}/players", tags=["catalog"])
async def add_player(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    catalog: CatalogService = Depends(get_catalog),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    try:
        schemas.validate("player", payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc
    return await catalog.add_player(auction_id, payload)


@app.delete("/api/auctions/{auction_id}/teams/{team_id}", tags=["catalog"])
async def delete_team(
    auction_id: str,
    team_id: str,
    catalog: CatalogService = Depends(get_catalog),
) -> dict[str, Any]:
    try:
        await catalog.delete_team(auction_id, team_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="team not found") from exc
    return {"message": "Team deleted", "team_id": team_id}


@app.delete("/api/auctions/{auction_id}/players/{player_id}", tags=["catalog"])
async def delete_player(
    auction_id: str,
    player_id: str,
    catalog: CatalogService = Depends(get_catalog),
) -> dict[str, Any]:
    try:
        await catalog.delete_player(auction_id, player_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="player not found") from exc
    return {"message": "Player deleted", "player_id": player_id}


if __name__ == "__main__":
    import uvicorn

    settings = get_server_config()
    uvicorn.run(app, host=settings.listen.host, port=settings.listen.port)
