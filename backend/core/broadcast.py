"""
In-process broadcast channel for inventory snapshots.

Every publication is a full snapshot, never a delta, so a subscriber only
ever needs the latest one. New subscribers receive the current snapshot
immediately on subscribing.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .normalize import InventoryRecord, RawRow

logger = logging.getLogger(__name__)

# Socket.IO event carrying a snapshot's raw rows
INVENTORY_EVENT = "inventory_update"


@dataclass(frozen=True)
class Snapshot:
    """One complete, self-consistent read of the watched file."""
    version: int
    rows: List[RawRow]
    records: List[InventoryRecord]
    produced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.records)


SnapshotCallback = Callable[[Snapshot], None]


class SnapshotChannel:
    """Subscriber registry holding the latest snapshot."""

    def __init__(self):
        # Guards subscribe/publish so a subscriber sees snapshots in publish order
        self._lock = threading.RLock()
        self._subscribers: List[Tuple[int, SnapshotCallback]] = []
        self._next_token = 0
        self._current: Optional[Snapshot] = None

    @property
    def current(self) -> Optional[Snapshot]:
        return self._current

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register a callback and deliver the current snapshot to it right away.

        Returns a function that removes the subscription. Calling it more
        than once is harmless.
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers.append((token, callback))
            if self._current is not None:
                self._deliver(callback, self._current)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers = [(t, cb) for t, cb in self._subscribers if t != token]

        return unsubscribe

    def publish(self, snapshot: Snapshot) -> int:
        """Make `snapshot` current and send it to every subscriber.

        Returns the number of subscribers that accepted it.
        """
        with self._lock:
            self._current = snapshot
            subscribers = list(self._subscribers)
            delivered = 0
            for _, callback in subscribers:
                if self._deliver(callback, snapshot):
                    delivered += 1
        logger.debug(f"Published snapshot v{snapshot.version} to {delivered}/{len(subscribers)} subscribers")
        return delivered

    @staticmethod
    def _deliver(callback: SnapshotCallback, snapshot: Snapshot) -> bool:
        try:
            callback(snapshot)
            return True
        except Exception:
            logger.exception(f"Subscriber failed to accept snapshot v{snapshot.version}")
            return False
