from __future__ import annotations

from pathlib import Path

from mediashelf.domain.models.item import Item
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo
from mediashelf.infrastructure.db.sqlite import get_connection


class FavoriteRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def add(self, user_id: str, item_id: int, now: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO favorites (user_id, item_id, created_at) VALUES (?, ?, ?)",
                (user_id, item_id, now),
            )
            conn.commit()

    def remove(self, user_id: str, item_id: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM favorites WHERE user_id = ? AND item_id = ?", (user_id, item_id))
            conn.commit()

    def list_items(self, user_id: str) -> list[Item]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT items.*,
                    (SELECT path FROM thumbnails WHERE item_id = items.id AND variant = 'grid') AS grid_thumb_path
                FROM favorites
                JOIN items ON items.id = favorites.item_id
                WHERE favorites.user_id = ?
                ORDER BY favorites.created_at DESC, favorites.rowid DESC
                """,
                (user_id,),
            ).fetchall()
        return [ItemRepo._to_model(row) for row in rows]
