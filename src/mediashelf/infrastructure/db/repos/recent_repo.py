from __future__ import annotations

from pathlib import Path

from mediashelf.domain.models.reading import RecentEntry
from mediashelf.infrastructure.db.sqlite import get_connection


class RecentRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def add(self, user_id: str, item_id: int, ts: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                "INSERT INTO recents (user_id, item_id, ts) VALUES (?, ?, ?)",
                (user_id, item_id, ts),
            )
            conn.commit()

    def list(self, user_id: str, limit: int = 50) -> list[RecentEntry]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT recents.item_id, recents.ts, items.title, items.type
                FROM recents
                JOIN items ON items.id = recents.item_id
                WHERE recents.user_id = ?
                ORDER BY recents.ts DESC, recents.id DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [
            RecentEntry(item_id=int(row["item_id"]), ts=int(row["ts"]), title=row["title"], type=row["type"])
            for row in rows
        ]
