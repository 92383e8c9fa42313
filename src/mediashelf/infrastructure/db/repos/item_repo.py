from __future__ import annotations

from pathlib import Path
from typing import Iterable

from mediashelf.domain.models.item import Item, ItemQuery, ItemRecord
from mediashelf.infrastructure.db.sqlite import get_connection

_ORDER_BY = {
    "updatedAt": "items.updated_at DESC, items.id DESC",
    "title": "items.title COLLATE NOCASE ASC, items.id ASC",
    "recent": "items.created_at DESC, items.id DESC",
}

_THUMB_COLUMNS = """
    (SELECT path FROM thumbnails WHERE item_id = items.id AND variant = 'cover') AS cover_thumb_path,
    (SELECT path FROM thumbnails WHERE item_id = items.id AND variant = 'grid') AS grid_thumb_path
"""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ItemRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def upsert(self, record: ItemRecord, now: int) -> tuple[int, str]:
        """Insert or update by path; returns ``(id, status)``.

        ``status`` is ``added``, ``updated`` or ``unchanged``. ``updated_at`` only
        moves when one of the scanned fields differs from the stored row.
        """
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT id, type, title, folder, size, mtime, pages, meta FROM items WHERE path = ?",
                (record.path,),
            ).fetchone()
            if row is None:
                cur = conn.execute(
                    """
                    INSERT INTO items (
                        type,
                        path,
                        title,
                        folder,
                        size,
                        mtime,
                        pages,
                        meta,
                        created_at,
                        updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.type,
                        record.path,
                        record.title,
                        record.folder,
                        record.size,
                        record.mtime,
                        record.pages,
                        record.meta_json,
                        now,
                        now,
                    ),
                )
                conn.commit()
                return int(cur.lastrowid), "added"

            stored = (row["type"], row["title"], row["folder"], row["size"], row["mtime"], row["pages"], row["meta"])
            scanned = (
                record.type,
                record.title,
                record.folder,
                record.size,
                record.mtime,
                record.pages,
                record.meta_json,
            )
            if stored == scanned:
                return int(row["id"]), "unchanged"

            conn.execute(
                """
                UPDATE items
                SET type = ?, title = ?, folder = ?, size = ?, mtime = ?, pages = ?, meta = ?, updated_at = ?
                WHERE id = ?
                """,
                (*scanned, now, row["id"]),
            )
            conn.commit()
            return int(row["id"]), "updated"

    def path_index(self) -> dict[str, int]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT id, path FROM items").fetchall()
        return {row["path"]: int(row["id"]) for row in rows}

    def delete_ids(self, item_ids: Iterable[int]) -> int:
        ids = [(int(i),) for i in item_ids]
        if not ids:
            return 0
        with get_connection(self.db_path) as conn:
            conn.executemany("DELETE FROM items WHERE id = ?", ids)
            conn.commit()
        return len(ids)

    def get_by_id(self, item_id: int) -> Item | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT items.*, {_THUMB_COLUMNS} FROM items WHERE items.id = ?",
                (item_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def list_all(self) -> list[Item]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(f"SELECT items.*, {_THUMB_COLUMNS} FROM items ORDER BY items.path").fetchall()
        return [self._to_model(row) for row in rows]

    def search(self, query: ItemQuery) -> list[Item]:
        join_sql = ""
        join_args: list[object] = []
        if query.favorites_only:
            join_sql = "INNER JOIN favorites ON favorites.item_id = items.id AND favorites.user_id = ?"
            join_args.append(query.user_id)

        clauses: list[str] = []
        where_args: list[object] = []
        if query.type:
            clauses.append("items.type = ?")
            where_args.append(query.type)
        if query.folder is not None and query.folder != "":
            clauses.append("items.folder = ?")
            where_args.append(query.folder)
        if query.q:
            like = f"%{_escape_like(query.q)}%"
            clauses.append("(items.title LIKE ? ESCAPE '\\' OR items.path LIKE ? ESCAPE '\\')")
            where_args.extend([like, like])
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        order_args: list[object] = []
        if query.sort == "lastOpened":
            if query.user_id:
                order_sql = (
                    "COALESCE((SELECT MAX(ts) FROM recents WHERE recents.item_id = items.id "
                    "AND recents.user_id = ?), 0) DESC, items.id DESC"
                )
                order_args.append(query.user_id)
            else:
                order_sql = "COALESCE((SELECT MAX(ts) FROM recents WHERE recents.item_id = items.id), 0) DESC, items.id DESC"
        else:
            order_sql = _ORDER_BY.get(query.sort, _ORDER_BY["updatedAt"])

        sql = f"""
            SELECT items.*, {_THUMB_COLUMNS}
            FROM items
            {join_sql}
            {where_sql}
            ORDER BY {order_sql}
            LIMIT ? OFFSET ?
        """
        args = [*join_args, *where_args, *order_args, query.effective_limit, query.offset]
        with get_connection(self.db_path) as conn:
            rows = conn.execute(sql, args).fetchall()
        return [self._to_model(row) for row in rows]

    def list_folders(self) -> list[str]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT DISTINCT folder FROM items ORDER BY folder COLLATE NOCASE").fetchall()
        return [row["folder"] for row in rows]

    @staticmethod
    def _to_model(row) -> Item:
        keys = row.keys()
        return Item(
            id=int(row["id"]),
            type=row["type"],
            path=row["path"],
            title=row["title"],
            folder=row["folder"],
            size=int(row["size"]),
            mtime=float(row["mtime"]),
            pages=row["pages"],
            meta_json=row["meta"],
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
            cover_thumb_path=row["cover_thumb_path"] if "cover_thumb_path" in keys else None,
            grid_thumb_path=row["grid_thumb_path"] if "grid_thumb_path" in keys else None,
        )
