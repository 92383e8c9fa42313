from __future__ import annotations

from pathlib import Path

from mediashelf.domain.models.reading import PdfBookmark
from mediashelf.infrastructure.db.sqlite import get_connection

DEFAULT_PDF_PAGE = 1
DEFAULT_SGF_NODE_INDEX = 0


class ReadingStateRepo:
    """Per-user reading state: PDF page, PDF bookmarks, SGF node and SGF node favorites."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def get_pdf_page(self, user_id: str, item_id: int) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT page FROM pdf_positions WHERE user_id = ? AND item_id = ?",
                (user_id, item_id),
            ).fetchone()
        return int(row["page"]) if row else DEFAULT_PDF_PAGE

    def set_pdf_page(self, user_id: str, item_id: int, page: int, now: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO pdf_positions (user_id, item_id, page, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, item_id) DO UPDATE SET page = excluded.page, updated_at = excluded.updated_at
                """,
                (user_id, item_id, page, now),
            )
            conn.commit()

    def list_bookmarks(self, user_id: str, item_id: int) -> list[PdfBookmark]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM pdf_bookmarks
                WHERE user_id = ? AND item_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (user_id, item_id),
            ).fetchall()
        return [self._to_bookmark(row) for row in rows]

    def add_bookmark(self, user_id: str, item_id: int, page: int, note: str | None, now: int) -> PdfBookmark:
        with get_connection(self.db_path) as conn:
            cur = conn.execute(
                "INSERT INTO pdf_bookmarks (user_id, item_id, page, note, created_at) VALUES (?, ?, ?, ?, ?)",
                (user_id, item_id, page, note, now),
            )
            conn.commit()
        return PdfBookmark(
            id=int(cur.lastrowid),
            user_id=user_id,
            item_id=item_id,
            page=page,
            note=note,
            created_at=now,
        )

    def delete_bookmark(self, user_id: str, bookmark_id: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM pdf_bookmarks WHERE id = ? AND user_id = ?", (bookmark_id, user_id))
            conn.commit()

    def get_sgf_node(self, user_id: str, item_id: int) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT node_index FROM sgf_positions WHERE user_id = ? AND item_id = ?",
                (user_id, item_id),
            ).fetchone()
        return int(row["node_index"]) if row else DEFAULT_SGF_NODE_INDEX

    def set_sgf_node(self, user_id: str, item_id: int, node_index: int, now: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sgf_positions (user_id, item_id, node_index, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, item_id) DO UPDATE SET
                    node_index = excluded.node_index,
                    updated_at = excluded.updated_at
                """,
                (user_id, item_id, node_index, now),
            )
            conn.commit()

    def list_node_favorites(self, user_id: str, item_id: int) -> list[int]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT node_index FROM sgf_node_favorites
                WHERE user_id = ? AND item_id = ?
                ORDER BY node_index ASC
                """,
                (user_id, item_id),
            ).fetchall()
        return [int(row["node_index"]) for row in rows]

    def add_node_favorite(self, user_id: str, item_id: int, node_index: int, now: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO sgf_node_favorites (user_id, item_id, node_index, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, item_id, node_index, now),
            )
            conn.commit()

    def remove_node_favorite(self, user_id: str, item_id: int, node_index: int) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                "DELETE FROM sgf_node_favorites WHERE user_id = ? AND item_id = ? AND node_index = ?",
                (user_id, item_id, node_index),
            )
            conn.commit()

    @staticmethod
    def _to_bookmark(row) -> PdfBookmark:
        return PdfBookmark(
            id=int(row["id"]),
            user_id=row["user_id"],
            item_id=int(row["item_id"]),
            page=int(row["page"]),
            note=row["note"],
            created_at=int(row["created_at"]),
        )
