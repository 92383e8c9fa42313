from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mediashelf.application.services.thumbnail_service import ThumbnailService
from mediashelf.application.services.user_service import read_users_file
from mediashelf.core.errors import LibraryPathError, UserConfigError
from mediashelf.core.files import resolve_library_path
from mediashelf.core.time import mtime_ms
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo
from mediashelf.infrastructure.db.repos.thumbnail_repo import ThumbnailRepo
from mediashelf.infrastructure.db.sqlite import get_connection


@dataclass(slots=True)
class DoctorIssue:
    check: str
    level: str
    message: str


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks_run: int
    issues: list[DoctorIssue]
    db_runtime: dict[str, object]


class HealthService:
    def __init__(self, db_path: Path, library_root: Path, users_file: Path) -> None:
        self.db_path = db_path
        self.library_root = library_root
        self.users_file = users_file

    def run_doctor(self) -> DoctorReport:
        issues: list[DoctorIssue] = []
        checks_run = 0

        # Check 1: database runtime pragmas support concurrent access.
        checks_run += 1
        with get_connection(self.db_path) as conn:
            journal_mode = str(conn.execute("PRAGMA journal_mode;").fetchone()[0]).lower()
            busy_timeout_ms = int(conn.execute("PRAGMA busy_timeout;").fetchone()[0])
            foreign_keys = int(conn.execute("PRAGMA foreign_keys;").fetchone()[0])
            synchronous = int(conn.execute("PRAGMA synchronous;").fetchone()[0])

        db_runtime: dict[str, object] = {
            "journal_mode": journal_mode,
            "busy_timeout_ms": busy_timeout_ms,
            "foreign_keys": bool(foreign_keys),
            "synchronous": synchronous,
        }

        if journal_mode != "wal":
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message=f"SQLite journal_mode is '{journal_mode}', expected 'wal' for concurrent access.",
                )
            )
        if foreign_keys != 1:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message="SQLite foreign_keys pragma is disabled.",
                )
            )
        if busy_timeout_ms < 1_000:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="warning",
                    message=f"SQLite busy_timeout is low ({busy_timeout_ms}ms); consider >= 1000ms.",
                )
            )

        # Check 2: every indexed item still has its source file.
        checks_run += 1
        items = ItemRepo(self.db_path).list_all()
        source_mtimes: dict[int, float] = {}
        for item in items:
            try:
                source = resolve_library_path(self.library_root, item.path)
            except LibraryPathError as exc:
                issues.append(DoctorIssue(check="item_files", level="error", message=str(exc)))
                continue
            if not source.is_file():
                issues.append(
                    DoctorIssue(
                        check="item_files",
                        level="warning",
                        message=f"Missing file for item {item.id}: {item.path} (run a scan to prune it)",
                    )
                )
                continue
            source_mtimes[item.id] = mtime_ms(source.stat().st_mtime)

        # Check 3: thumbnail rows point at fresh PNGs.
        checks_run += 1
        for thumb in ThumbnailRepo(self.db_path).list_all():
            path = Path(thumb.path)
            if not path.exists():
                issues.append(
                    DoctorIssue(
                        check="thumbnails",
                        level="warning",
                        message=f"Missing {thumb.variant} thumbnail for item {thumb.item_id}: {path}",
                    )
                )
                continue
            source_mtime = source_mtimes.get(thumb.item_id)
            if source_mtime is not None and ThumbnailService.is_stale(path, source_mtime):
                issues.append(
                    DoctorIssue(
                        check="thumbnails",
                        level="warning",
                        message=f"Stale {thumb.variant} thumbnail for item {thumb.item_id}",
                    )
                )

        # Check 4: users file is readable and defines at least one user.
        checks_run += 1
        if not self.users_file.exists():
            issues.append(
                DoctorIssue(
                    check="users_file",
                    level="warning",
                    message=f"{self.users_file} does not exist; defaults will be written on first load.",
                )
            )
        else:
            try:
                read_users_file(self.users_file)
            except UserConfigError as exc:
                issues.append(
                    DoctorIssue(
                        check="users_file",
                        level="error",
                        message=f"{exc}; defaults will replace it on next load.",
                    )
                )

        return DoctorReport(
            ok=not any(i.level == "error" for i in issues),
            checks_run=checks_run,
            issues=issues,
            db_runtime=db_runtime,
        )
