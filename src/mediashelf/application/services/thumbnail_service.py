from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable

from mediashelf.core.errors import ItemNotFoundError, ValidationError
from mediashelf.core.files import ensure_directory, resolve_library_path, safe_write_atomic
from mediashelf.core.time import mtime_ms, now_ms
from mediashelf.domain.models.item import THUMBNAIL_VARIANTS, Item, Thumbnail
from mediashelf.infrastructure.db.repos.thumbnail_repo import ThumbnailRepo
from mediashelf.infrastructure.thumbnails.renderers import RenderedThumbnail, render_thumbnail

logger = logging.getLogger(__name__)

Renderer = Callable[[str, Path, int], RenderedThumbnail]


class ThumbnailService:
    """PNG thumbnail cache keyed by item id and variant, invalidated by source mtime."""

    def __init__(
        self,
        thumbnail_repo: ThumbnailRepo,
        thumbs_dir: Path,
        library_root: Path,
        *,
        cover_width: int = 400,
        grid_width: int = 260,
        renderer: Renderer = render_thumbnail,
    ) -> None:
        self.thumbnail_repo = thumbnail_repo
        self.thumbs_dir = thumbs_dir
        self.library_root = library_root
        self.cover_width = cover_width
        self.grid_width = grid_width
        self._renderer = renderer
        self._locks: dict[tuple[int, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def width_for(self, variant: str) -> int:
        return self.grid_width if variant == "grid" else self.cover_width

    def thumbnail_path(self, item_id: int, variant: str) -> Path:
        return self.thumbs_dir / f"{item_id}-{variant}.png"

    @staticmethod
    def is_stale(thumb_path: Path, source_mtime_ms: float) -> bool:
        try:
            thumb_mtime = mtime_ms(thumb_path.stat().st_mtime)
        except FileNotFoundError:
            return True
        return thumb_mtime < source_mtime_ms

    def ensure(self, item: Item, variant: str) -> Path:
        """Return a fresh thumbnail for ``item``, rendering it when missing or stale."""
        path, _ = self.refresh(item, variant)
        return path

    def refresh(self, item: Item, variant: str) -> tuple[Path, bool]:
        """Like :meth:`ensure` but also reports whether a new PNG was written."""
        if variant not in THUMBNAIL_VARIANTS:
            raise ValidationError(f"Unknown thumbnail variant: {variant}")
        source = resolve_library_path(self.library_root, item.path)
        try:
            source_mtime = mtime_ms(source.stat().st_mtime)
        except FileNotFoundError as exc:
            raise ItemNotFoundError(f"Missing file for item {item.id}: {item.path}") from exc

        target = self.thumbnail_path(item.id, variant)
        with self._lock_for(item.id, variant):
            if not self.is_stale(target, source_mtime) and self.thumbnail_repo.get(item.id, variant):
                return target, False

            width = self.width_for(variant)
            rendered = self._renderer(item.type, source, width)
            ensure_directory(self.thumbs_dir)
            safe_write_atomic(target, rendered.png)
            self.thumbnail_repo.upsert(
                Thumbnail(
                    item_id=item.id,
                    variant=variant,
                    path=str(target),
                    width=rendered.width,
                    height=rendered.height,
                    updated_at=now_ms(),
                )
            )
            logger.debug("Rendered %s thumbnail for item %s (%s)", variant, item.id, item.path)
            return target, True

    def purge(self, item_ids: Iterable[int]) -> int:
        removed = 0
        for item_id in item_ids:
            for variant in THUMBNAIL_VARIANTS:
                with self._locks_guard:
                    self._locks.pop((item_id, variant), None)
                path = self.thumbnail_path(item_id, variant)
                if path.exists():
                    path.unlink()
                    removed += 1
        return removed

    def _lock_for(self, item_id: int, variant: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((item_id, variant), threading.Lock())
