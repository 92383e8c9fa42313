from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from mediashelf.application.services.thumbnail_service import ThumbnailService
from mediashelf.core.config import AppConfig
from mediashelf.core.errors import MediaShelfError
from mediashelf.core.files import ensure_directory, relative_library_path
from mediashelf.core.time import mtime_ms, now_ms
from mediashelf.domain.models.item import THUMBNAIL_VARIANTS, ItemRecord
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo
from mediashelf.infrastructure.db.repos.thumbnail_repo import ThumbnailRepo
from mediashelf.infrastructure.library.walker import LibraryFile, walk_library
from mediashelf.infrastructure.parsers.metadata import extract_metadata

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanReport:
    scanned: int = 0
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    removed: int = 0
    thumbnails_rendered: int = 0
    thumbnail_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "added": self.added,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "removed": self.removed,
            "thumbnailsRendered": self.thumbnails_rendered,
            "thumbnailFailures": self.thumbnail_failures,
        }


class IndexingService:
    """Full library re-index: walk, extract, upsert, thumbnail, drop orphans.

    Scans are serialised; a caller arriving mid-scan waits, then runs its own pass.
    """

    def __init__(
        self,
        item_repo: ItemRepo,
        thumbnail_service: ThumbnailService,
        library_root: Path,
        *,
        pre_render_html: bool = False,
        thumbnail_workers: int = 2,
    ) -> None:
        self.item_repo = item_repo
        self.thumbnail_service = thumbnail_service
        self.library_root = library_root
        self.pre_render_html = pre_render_html
        self.thumbnail_workers = max(1, thumbnail_workers)
        self._scan_lock = threading.Lock()

    def scan(self) -> ScanReport:
        with self._scan_lock:
            return self._scan()

    def _scan(self) -> ScanReport:
        report = ScanReport()
        ensure_directory(self.library_root)
        root = self.library_root.resolve()

        known = self.item_repo.path_index()
        seen: set[str] = set()
        thumbnail_jobs: list[int] = []

        for library_file in walk_library(root):
            record = self._build_record(root, library_file)
            if record is None:
                continue
            report.scanned += 1
            seen.add(record.path)
            item_id, status = self.item_repo.upsert(record, now_ms())
            if status == "added":
                report.added += 1
            elif status == "updated":
                report.updated += 1
            else:
                report.unchanged += 1
            if record.type != "html" or self.pre_render_html:
                thumbnail_jobs.append(item_id)

        self._render_thumbnails(thumbnail_jobs, report)

        orphan_ids = [item_id for path, item_id in known.items() if path not in seen]
        if orphan_ids:
            report.removed = self.item_repo.delete_ids(orphan_ids)
            self.thumbnail_service.purge(orphan_ids)

        logger.info(
            "Scan of %s: %d files, %d added, %d updated, %d removed, %d thumbnails (%d failed)",
            root,
            report.scanned,
            report.added,
            report.updated,
            report.removed,
            report.thumbnails_rendered,
            report.thumbnail_failures,
        )
        return report

    def _build_record(self, root: Path, library_file: LibraryFile) -> ItemRecord | None:
        path = library_file.path
        try:
            stat = path.stat()
        except OSError as exc:
            # vanished between walk and stat
            logger.warning("Skipping %s: %s", path, exc)
            return None

        metadata = extract_metadata(library_file.type, path)
        relative = relative_library_path(root, path)
        folder = Path(relative).parent.as_posix()
        return ItemRecord(
            type=library_file.type,
            path=relative,
            title=metadata.title or path.stem,
            folder="" if folder == "." else folder,
            size=int(stat.st_size),
            mtime=mtime_ms(stat.st_mtime),
            pages=metadata.pages,
            meta_json=metadata.meta_json,
        )

    def _render_thumbnails(self, item_ids: list[int], report: ScanReport) -> None:
        if not item_ids:
            return
        with ThreadPoolExecutor(max_workers=self.thumbnail_workers, thread_name_prefix="thumbs") as pool:
            futures = {
                pool.submit(self._ensure_thumbnail, item_id, variant): (item_id, variant)
                for item_id in item_ids
                for variant in THUMBNAIL_VARIANTS
            }
            for future in as_completed(futures):
                item_id, variant = futures[future]
                try:
                    rendered = future.result()
                except (MediaShelfError, OSError) as exc:
                    report.thumbnail_failures += 1
                    logger.warning("Thumbnail %s for item %s failed: %s", variant, item_id, exc)
                    continue
                if rendered:
                    report.thumbnails_rendered += 1

    def _ensure_thumbnail(self, item_id: int, variant: str) -> bool:
        """Return True when a new PNG was written."""
        item = self.item_repo.get_by_id(item_id)
        if item is None:
            return False
        _, rendered = self.thumbnail_service.refresh(item, variant)
        return rendered


def build_indexing_service(config: AppConfig) -> IndexingService:
    thumbnail_service = ThumbnailService(
        ThumbnailRepo(config.db_path),
        config.thumbs_dir,
        config.library_root,
        cover_width=config.thumb_width,
        grid_width=config.grid_width,
    )
    return IndexingService(
        ItemRepo(config.db_path),
        thumbnail_service,
        config.library_root,
        pre_render_html=config.enable_html_thumbnails,
        thumbnail_workers=config.concurrency_thumbs,
    )
