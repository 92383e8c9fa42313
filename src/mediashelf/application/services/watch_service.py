from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mediashelf.infrastructure.library.walker import is_hidden

logger = logging.getLogger(__name__)


class _LibraryEventHandler(FileSystemEventHandler):
    """Forwards relevant library changes to the debouncer."""

    def __init__(self, root: Path, notify_callback: Callable[[], None]) -> None:
        super().__init__()
        self._root = root
        self._notify_callback = notify_callback

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        # directory mtime bumps duplicate the child events
        if not event.is_directory:
            self._handle(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def _handle(self, event: FileSystemEvent) -> None:
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if any(path and not is_hidden(self._root, Path(_as_str(path))) for path in paths):
            self._notify_callback()


def _as_str(path: str | bytes) -> str:
    return path.decode() if isinstance(path, bytes) else path


class WatchService:
    """Recursive watchdog observer that coalesces bursts into one rescan."""

    def __init__(
        self,
        library_root: Path,
        on_change: Callable[[], object],
        *,
        debounce_seconds: float = 1.0,
    ) -> None:
        self.library_root = library_root
        self.debounce_seconds = debounce_seconds
        self._on_change = on_change
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        self.library_root.mkdir(parents=True, exist_ok=True)
        root = self.library_root.resolve()
        observer = Observer()
        observer.schedule(_LibraryEventHandler(root, self.notify), str(root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", root)

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)

    def notify(self) -> None:
        """Restart the debounce window; the callback fires once it elapses quietly."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce_seconds, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self) -> None:
        with self._timer_lock:
            self._timer = None
        logger.debug("Library changed; re-indexing %s", self.library_root)
        try:
            self._on_change()
        except Exception:
            logger.exception("Re-index after library change failed")
