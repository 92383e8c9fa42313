from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileDeletedEvent, FileMovedEvent

from mediashelf.application.services.watch_service import WatchService, _LibraryEventHandler


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_burst_of_notifications_triggers_one_callback(tmp_path: Path) -> None:
    calls: list[float] = []
    service = WatchService(tmp_path, lambda: calls.append(time.monotonic()), debounce_seconds=0.1)

    for _ in range(5):
        service.notify()
        time.sleep(0.02)

    assert _wait_for(lambda: len(calls) == 1)
    time.sleep(0.3)
    assert len(calls) == 1


def test_each_notification_restarts_the_debounce(tmp_path: Path) -> None:
    fired = threading.Event()
    service = WatchService(tmp_path, fired.set, debounce_seconds=0.2)

    started = time.monotonic()
    service.notify()
    time.sleep(0.15)
    service.notify()

    assert fired.wait(timeout=2.0)
    assert time.monotonic() - started >= 0.3


def test_stop_cancels_pending_rescan(tmp_path: Path) -> None:
    calls: list[int] = []
    service = WatchService(tmp_path, lambda: calls.append(1), debounce_seconds=0.1)

    service.notify()
    service.stop()
    time.sleep(0.3)

    assert calls == []


def test_callback_errors_are_logged_not_raised(tmp_path: Path, caplog) -> None:
    done = threading.Event()

    def _boom() -> None:
        done.set()
        raise RuntimeError("disk on fire")

    service = WatchService(tmp_path, _boom, debounce_seconds=0.05)
    with caplog.at_level(logging.ERROR, logger="mediashelf.application.services.watch_service"):
        service.notify()
        assert done.wait(timeout=2.0)
        assert _wait_for(lambda: "Re-index after library change failed" in caplog.text, timeout=2.0)


def test_handler_ignores_hidden_paths_and_directory_modifications(tmp_path: Path) -> None:
    calls: list[int] = []
    handler = _LibraryEventHandler(tmp_path, lambda: calls.append(1))

    handler.dispatch(FileCreatedEvent(str(tmp_path / ".cache" / "x.pdf")))
    handler.dispatch(FileCreatedEvent(str(tmp_path / ".x.pdf.swp")))
    handler.dispatch(DirModifiedEvent(str(tmp_path / "books")))
    assert calls == []

    handler.dispatch(FileCreatedEvent(str(tmp_path / "books" / "a.pdf")))
    handler.dispatch(FileDeletedEvent(str(tmp_path / "b.sgf")))
    handler.dispatch(FileMovedEvent(str(tmp_path / ".tmp123"), str(tmp_path / "c.html")))
    assert calls == [1, 1, 1]


def test_observer_reports_new_files(tmp_path: Path) -> None:
    fired = threading.Event()
    service = WatchService(tmp_path, fired.set, debounce_seconds=0.1)
    service.start()
    try:
        assert service.running
        time.sleep(0.2)
        (tmp_path / "new.sgf").write_text("(;SZ[9])", encoding="utf-8")
        assert fired.wait(timeout=5.0)
    finally:
        service.stop()
    assert not service.running
