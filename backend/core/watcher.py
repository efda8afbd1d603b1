"""
Change watcher for the inventory workbook.

Polls the watched file with a watchdog PollingObserver (native filesystem
notifications are unreliable on network mounts and in containers) and runs
one read -> normalize -> publish cycle per detected change. Cycles never
overlap: a change that arrives while a cycle is running is folded into a
single follow-up cycle.
"""
import logging
import os
import threading
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .broadcast import Snapshot, SnapshotChannel
from .normalize import normalize_rows
from .source import SourceDecodeError, SourceReader

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


def _as_str(path) -> str:
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    return os.path.abspath(path)


class _WatchedFileHandler(FileSystemEventHandler):
    """Forward events that touch the watched file to the watcher."""

    def __init__(self, watcher: "InventoryWatcher"):
        super().__init__()
        self.watcher = watcher
        self.target = _as_str(watcher.path)

    def _matches(self, path) -> bool:
        return bool(path) and _as_str(path) == self.target

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory and self._matches(event.src_path):
            self.watcher.trigger(reason="created")

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory and self._matches(event.src_path):
            self.watcher.trigger(reason="modified")

    def on_moved(self, event: FileSystemEvent):
        if event.is_directory:
            return
        # Atomic replaces show up as a temp file moved onto the target
        if self._matches(getattr(event, "dest_path", None)) or self._matches(event.src_path):
            self.watcher.trigger(reason="replaced")

    def on_deleted(self, event: FileSystemEvent):
        if not event.is_directory and self._matches(event.src_path):
            self.watcher.trigger(reason="deleted")


class InventoryWatcher:
    """
    Owns the watched path, the last published snapshot and the in-flight flag.

    Created once at process start (see the API lifespan) and stopped on
    shutdown.
    """

    def __init__(
        self,
        reader: SourceReader,
        channel: SnapshotChannel,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.reader = reader
        self.channel = channel
        self.poll_interval = poll_interval

        self._state_lock = threading.Lock()
        self._in_flight = False
        self._pending = False
        self._version = 0
        self._cycles_run = 0
        self._snapshot: Optional[Snapshot] = None
        self._observer: Optional[PollingObserver] = None

    @property
    def path(self) -> Path:
        return self.reader.path

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start polling for changes, then publish the initial snapshot."""
        if self._observer is not None:
            logger.warning("Watcher already running")
            return

        # observer.start() takes the baseline listing; it must predate the
        # startup read
        self.path.parent.mkdir(parents=True, exist_ok=True)
        observer = PollingObserver(timeout=self.poll_interval)
        observer.schedule(_WatchedFileHandler(self), str(self.path.parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"Watching inventory file: {self.path} (poll every {self.poll_interval * 1000:.0f}ms)")

        self.trigger(reason="startup")

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout=5)
        logger.info("Watcher stopped")

    # -------------------------------------------------------------------------
    # Cycles
    # -------------------------------------------------------------------------

    def trigger(self, reason: str = "change") -> bool:
        """
        Request a cycle.

        Runs the cycle on the calling thread unless one is already in
        flight, in which case the request is recorded and the running
        cycle repeats once when it finishes. Returns True if this call ran
        the cycle(s) itself.
        """
        with self._state_lock:
            if self._in_flight:
                self._pending = True
                logger.debug(f"[Watcher] Cycle in flight, coalescing trigger ({reason})")
                return False
            self._in_flight = True

        try:
            while True:
                logger.info(f"[Watcher] File {self.path.name} {reason}. Reading new data...")
                self.run_cycle()
                with self._state_lock:
                    if not self._pending:
                        self._in_flight = False
                        break
                    self._pending = False
                    reason = "changed again"
        except BaseException:
            with self._state_lock:
                self._in_flight = False
                self._pending = False
            raise
        return True

    def run_cycle(self) -> Optional[Snapshot]:
        """
        One read -> normalize -> publish pass.

        Returns the published snapshot, or None if the file could not be
        decoded (the previous snapshot then stays current).
        """
        self._cycles_run += 1
        try:
            rows = self.reader.load()
        except SourceDecodeError as e:
            logger.error(f"[Watcher] Keeping previous snapshot, read failed: {e}")
            return None
        except Exception as e:
            logger.error(f"[Watcher] Unexpected error reading {self.path}: {e}", exc_info=True)
            return None

        try:
            records = normalize_rows(rows)
            self._version += 1
            snapshot = Snapshot(version=self._version, rows=rows, records=records)
            self._snapshot = snapshot
            delivered = self.channel.publish(snapshot)
        except Exception as e:
            logger.error(f"[Watcher] Failed to publish snapshot: {e}", exc_info=True)
            return None

        logger.info(f"[Watcher] Emitting update with {len(rows)} items to {delivered} subscriber(s).")
        return snapshot
