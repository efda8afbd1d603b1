"""
Client-side view of the live inventory.

Receives `inventory_update` payloads (raw rows, exactly as decoded on the
server), re-normalizes them with the shared alias rules and swaps the local
record list in one step. Connectivity is tracked from the Socket.IO
lifecycle events.
"""
import logging
import threading
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, List, Optional

from backend.core.normalize import InventoryRecord, normalize_rows

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class InventoryReconciler:
    """Owns one client's local record set and connection state."""

    def __init__(
        self,
        initial: Optional[List[InventoryRecord]] = None,
        today: Optional[str] = None,
        listener: Optional[Callable[["InventoryReconciler"], None]] = None,
    ):
        self._lock = threading.Lock()
        self._records: List[InventoryRecord] = list(initial or [])
        self._state = ConnectionState.DISCONNECTED
        self._today = today
        self.listener = listener
        self.updates_applied = 0

    @property
    def records(self) -> List[InventoryRecord]:
        return list(self._records)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_synced(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def get(self, record_id: str) -> Optional[InventoryRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def apply_snapshot(self, payload: Any) -> bool:
        """
        Replace the local records with the ones in `payload`.

        Returns False (and leaves local state untouched) when the payload is
        not a list of row mappings, or when it is empty: an empty snapshot
        is more likely a read race on the server than a real empty stock.
        """
        if not isinstance(payload, (list, tuple)):
            logger.error(f"Received invalid data format: {type(payload).__name__}")
            return False
        if any(not isinstance(row, Mapping) for row in payload):
            logger.error("Received invalid data format: snapshot rows must be objects")
            return False

        records = normalize_rows(payload, today=self._today)
        if not records:
            logger.info("Ignoring empty inventory snapshot")
            return False

        with self._lock:
            self._records = records
            self.updates_applied += 1
        logger.info(f"Applied inventory update with {len(records)} items")
        self._notify()
        return True

    # Lifecycle events

    def on_connect(self):
        logger.info("Connected to real-time sync server")
        self._set_state(ConnectionState.CONNECTED)

    def on_connect_error(self, error: Any = None):
        logger.error(f"Socket connection error: {error}")
        self._set_state(ConnectionState.ERROR)

    def on_disconnect(self, reason: Any = None):
        logger.info("Disconnected from real-time sync server")
        self._set_state(ConnectionState.DISCONNECTED)

    def _set_state(self, state: ConnectionState):
        self._state = state
        self._notify()

    def _notify(self):
        if self.listener is None:
            return
        try:
            self.listener(self)
        except Exception:
            logger.exception("Inventory listener failed")
