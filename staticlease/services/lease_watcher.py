import os
import queue
import threading
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from staticlease.config import SETTLE_SECONDS, log
from staticlease.errors import LoadError
from staticlease.services.lease_table import LeaseSnapshot, LeaseTable


class LeaseFileObserver(FileSystemEventHandler):
    """Calls `on_change` once the lease file has been quiet for `settle_delay` seconds."""

    def __init__(self, path: str, on_change: Callable[[], None], settle_delay: float = SETTLE_SECONDS) -> None:
        self.path = os.path.realpath(path)
        self.on_change = on_change
        self.settle_delay = settle_delay
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()

    def _matches(self, path: str | bytes) -> bool:
        return os.path.realpath(os.fsdecode(path)) == self.path

    def _trigger(self) -> None:
        with self._timer_lock:
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.settle_delay, self.on_change)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._timer_lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None

    def on_created(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._trigger()

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._trigger()

    def on_moved(self, event: FileSystemEvent) -> None:
        # editors that save through a temp file rename it over the lease file
        if self._matches(event.dest_path):
            self._trigger()


class LeaseFileWatcher:
    """
    Keeps a LeaseTable in sync with its lease file.

    File events only post a reload request into a one-slot queue; a single
    reloader thread drains it. A burst of events therefore collapses into at
    most one running load plus one pending load, and loads never overlap.
    A load that fails leaves the installed snapshot untouched.
    """

    def __init__(self, path: str, table: LeaseTable, settle_delay: float = SETTLE_SECONDS) -> None:
        self.path = os.path.realpath(path)
        self.table = table
        self._requests: queue.Queue = queue.Queue(maxsize=1)
        self._stopping = threading.Event()
        self._handler = LeaseFileObserver(self.path, self.request_reload, settle_delay)
        self._observer = Observer()
        self._thread = threading.Thread(
            target=self._reload_loop,
            name=f"lease-reloader-v{table.ip_version}",
            daemon=True,
        )

    def watch(self) -> None:
        """Start receiving file events. Reload requests wait in the queue until start_reloading()."""
        self._observer.schedule(self._handler, path=os.path.dirname(self.path), recursive=False)
        self._observer.start()

    def start_reloading(self) -> None:
        self._thread.start()
        log.info("lease_watcher_started", path=self.path, ip_version=self.table.ip_version)

    def start(self) -> None:
        self.watch()
        self.start_reloading()

    def request_reload(self) -> None:
        try:
            self._requests.put_nowait(None)
        except queue.Full:
            log.debug("lease_reload_already_pending", path=self.path)

    def _reload_loop(self) -> None:
        while True:
            self._requests.get()
            if self._stopping.is_set():
                return
            try:
                self.reload()
            except Exception:
                log.exception("lease_reload_crashed", path=self.path)

    def reload(self) -> LeaseSnapshot | None:
        log.debug("lease_reload_started", path=self.path, ip_version=self.table.ip_version)
        try:
            snapshot = LeaseSnapshot.from_file(self.path, self.table.ip_version)
        except LoadError as e:
            log.error(
                "lease_reload_failed",
                path=self.path,
                error=str(e),
                serving_version=self.table.snapshot().version,
            )
            return None

        installed = self.table.install(snapshot)
        log.info(
            "leases_reloaded",
            path=self.path,
            ip_version=installed.ip_version,
            records=len(installed),
            version=installed.version,
        )
        return installed

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout)
        # no more events past this point, so no new debounce timer either
        self._handler.cancel()
        self._stopping.set()
        try:
            self._requests.put_nowait(None)
        except queue.Full:
            pass  # the reloader wakes on the queued request and sees the stop flag
        if self._thread.is_alive():
            self._thread.join(timeout)
        log.info("lease_watcher_stopped", path=self.path, ip_version=self.table.ip_version)
