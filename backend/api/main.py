from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging

import socketio

from backend.api.routers import inventory_router
from backend.core.broadcast import SnapshotChannel
from backend.core.config import settings
from backend.core.source import SourceReader
from backend.core.watcher import InventoryWatcher
from backend.core.websocket import bind_channel, sio

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def init_sync(app: FastAPI) -> InventoryWatcher:
    """Build the reader/channel/watcher trio and publish the first snapshot."""
    reader = SourceReader(settings.inventory_path)
    if settings.SEED_SAMPLE:
        try:
            reader.ensure_sample()
        except OSError as e:
            logger.error(f"Could not create sample inventory at {reader.path}: {e}")

    channel = SnapshotChannel()
    watcher = InventoryWatcher(reader, channel, poll_interval=settings.poll_interval)

    app.state.reader = reader
    app.state.channel = channel
    app.state.watcher = watcher
    bind_channel(channel)

    watcher.start()
    return watcher


def stop_sync(app: FastAPI):
    watcher = getattr(app.state, "watcher", None)
    if watcher is not None:
        watcher.stop()
    bind_channel(None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    # Startup
    init_sync(app)

    yield  # Application runs here

    # Shutdown
    stop_sync(app)


app = FastAPI(title="Inventory Live Sync", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=settings.ALLOWED_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def health_check(request: Request):
    watcher = getattr(request.app.state, "watcher", None)
    snapshot = watcher.snapshot if watcher is not None else None
    return {
        "status": "ok",
        "version": VERSION,
        "watching": str(watcher.path) if watcher is not None else None,
        "snapshot_version": snapshot.version if snapshot is not None else None,
    }


app.include_router(inventory_router)

fastapi_app = app  # Keep reference for testing

# Socket.IO wraps the FastAPI app; ASGIApp forwards the lifespan to it
asgi_app = socketio.ASGIApp(
    socketio_server=sio,
    other_asgi_app=fastapi_app,
    socketio_path='socket.io'
)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Server running on http://{settings.HOST}:{settings.PORT}")
    uvicorn.run("backend.api.main:asgi_app", host=settings.HOST, port=settings.PORT)
