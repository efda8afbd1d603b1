"""WebSocket layer for live inventory updates.
Bridges snapshot channel subscriptions to connected Socket.IO clients.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

import socketio

from .broadcast import INVENTORY_EVENT, Snapshot, SnapshotChannel
from .config import settings

logger = logging.getLogger(__name__)

# Create Socket.IO server with CORS support
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins='*' if settings.ALLOWED_ORIGINS == ['*'] else settings.ALLOWED_ORIGINS,
    ping_timeout=60,
    ping_interval=25,
    max_http_buffer_size=1000000,  # 1MB, plenty for catalog-sized snapshots
)


def _log_emit_failure(future, sid: str, version: int):
    if future.cancelled():
        logger.warning(f"Emit of snapshot v{version} to {sid} was cancelled")
        return
    error = future.exception()
    if error is not None:
        logger.error(f"Failed to emit snapshot v{version} to {sid}: {error}")


class SocketBridge:
    """Keeps one channel subscription per connected socket."""

    def __init__(self):
        self.channel: Optional[SnapshotChannel] = None
        # sid -> unsubscribe
        self.subscriptions: Dict[str, Callable[[], None]] = {}

    def bind(self, channel: Optional[SnapshotChannel]):
        """Point the bridge at a channel, dropping subscriptions to the old one."""
        for sid in list(self.subscriptions):
            self.detach(sid)
        self.channel = channel

    def attach(self, sid: str, loop: asyncio.AbstractEventLoop) -> bool:
        """Subscribe a socket; the current snapshot is sent to it straight away."""
        if self.channel is None:
            logger.warning(f"No inventory channel bound, {sid} will not receive updates")
            return False

        def deliver(snapshot: Snapshot):
            # Publications come from the watcher thread; emit on the server loop
            future = asyncio.run_coroutine_threadsafe(
                sio.emit(INVENTORY_EVENT, snapshot.rows, to=sid), loop
            )
            future.add_done_callback(
                lambda f: _log_emit_failure(f, sid, snapshot.version)
            )

        self.detach(sid)
        self.subscriptions[sid] = self.channel.subscribe(deliver)
        return True

    def detach(self, sid: str) -> bool:
        unsubscribe = self.subscriptions.pop(sid, None)
        if unsubscribe is None:
            return False
        unsubscribe()
        return True

    def subscriber_sids(self) -> List[str]:
        return list(self.subscriptions)


# Global bridge instance
bridge = SocketBridge()


def bind_channel(channel: Optional[SnapshotChannel]):
    bridge.bind(channel)


# Socket.IO Event Handlers
@sio.event
async def connect(sid, environ, auth=None):
    """Handle client connection"""
    logger.info(f"A client connected: {sid}")
    bridge.attach(sid, asyncio.get_running_loop())


@sio.event
async def disconnect(sid, reason=None):
    """Handle client disconnection"""
    logger.info(f"Client disconnected: {sid}")
    bridge.detach(sid)


__all__ = ['sio', 'bridge', 'bind_channel', 'INVENTORY_EVENT']
