from __future__ import annotations

from pathlib import Path

from mediashelf.domain.models.item import Thumbnail
from mediashelf.infrastructure.db.sqlite import get_connection


class ThumbnailRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def upsert(self, thumbnail: Thumbnail) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO thumbnails (item_id, variant, path, width, height, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(item_id, variant) DO UPDATE SET
                    path = excluded.path,
                    width = excluded.width,
                    height = excluded.height,
                    updated_at = excluded.updated_at
                """,
                (
                    thumbnail.item_id,
                    thumbnail.variant,
                    thumbnail.path,
                    thumbnail.width,
                    thumbnail.height,
                    thumbnail.updated_at,
                ),
            )
            conn.commit()

    def get(self, item_id: int, variant: str) -> Thumbnail | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM thumbnails WHERE item_id = ? AND variant = ?",
                (item_id, variant),
            ).fetchone()
        return self._to_model(row) if row else None

    def list_all(self) -> list[Thumbnail]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM thumbnails ORDER BY item_id, variant").fetchall()
        return [self._to_model(row) for row in rows]

    @staticmethod
    def _to_model(row) -> Thumbnail:
        return Thumbnail(
            item_id=int(row["item_id"]),
            variant=row["variant"],
            path=row["path"],
            width=int(row["width"]),
            height=int(row["height"]),
            updated_at=int(row["updated_at"]),
        )
