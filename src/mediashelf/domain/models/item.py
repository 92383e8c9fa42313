from __future__ import annotations

from dataclasses import dataclass

ITEM_TYPES = ("pdf", "sgf", "html")
THUMBNAIL_VARIANTS = ("cover", "grid")
ITEM_SORTS = ("updatedAt", "title", "recent", "lastOpened")

MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 40


@dataclass(slots=True)
class Item:
    id: int
    type: str
    path: str
    title: str
    folder: str
    size: int
    mtime: float
    pages: int | None
    meta_json: str | None
    created_at: int
    updated_at: int
    cover_thumb_path: str | None = None
    grid_thumb_path: str | None = None


@dataclass(slots=True)
class ItemRecord:
    """Scanner output for one file, before it has an id."""

    type: str
    path: str
    title: str
    folder: str
    size: int
    mtime: float
    pages: int | None = None
    meta_json: str | None = None


@dataclass(slots=True)
class ItemQuery:
    type: str | None = None
    folder: str | None = None
    q: str | None = None
    sort: str = "updatedAt"
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    user_id: str | None = None
    favorites_only: bool = False

    @property
    def effective_limit(self) -> int:
        return max(1, min(int(self.limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))

    @property
    def offset(self) -> int:
        return (max(1, int(self.page or 1)) - 1) * self.effective_limit


@dataclass(slots=True)
class Thumbnail:
    item_id: int
    variant: str
    path: str
    width: int
    height: int
    updated_at: int
