"""
Socket.IO wiring for the client reconciler.
"""
import logging
from typing import Optional

import socketio

from backend.core.broadcast import INVENTORY_EVENT

from .reconciler import InventoryReconciler

logger = logging.getLogger(__name__)


def attach(client: socketio.Client, reconciler: InventoryReconciler) -> socketio.Client:
    """Route lifecycle and inventory events from `client` into `reconciler`."""
    client.on('connect', reconciler.on_connect)
    client.on('connect_error', reconciler.on_connect_error)
    client.on('disconnect', reconciler.on_disconnect)
    client.on(INVENTORY_EVENT, reconciler.apply_snapshot)
    return client


def connect_live(
    url: str,
    reconciler: Optional[InventoryReconciler] = None,
    socketio_path: str = 'socket.io',
) -> socketio.Client:
    """
    Connect to a running sync server.

    Reconnection is left to the Socket.IO client; every (re)connect makes the
    server send its current snapshot again.
    """
    reconciler = reconciler or InventoryReconciler()
    client = attach(socketio.Client(reconnection=True), reconciler)
    logger.info(f"Connecting to {url}")
    client.connect(url, transports=['websocket', 'polling'], socketio_path=socketio_path)
    return client
