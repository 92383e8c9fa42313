from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PdfBookmark:
    id: int
    user_id: str
    item_id: int
    page: int
    note: str | None
    created_at: int


@dataclass(slots=True)
class RecentEntry:
    item_id: int
    ts: int
    title: str
    type: str
