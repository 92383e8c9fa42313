from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mediashelf.domain.models.user import StaticUser
from mediashelf.infrastructure.db.sqlite import get_connection

logger = logging.getLogger(__name__)


class UserRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def sync(self, users: list[StaticUser], now: int) -> None:
        """Make the users table mirror ``users``: upsert names, drop everyone else."""
        with get_connection(self.db_path) as conn:
            conn.executemany(
                """
                INSERT INTO users (id, name, preferences, created_at, updated_at)
                VALUES (?, ?, '{}', ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at
                """,
                [(user.id, user.name, now, now) for user in users],
            )
            if users:
                placeholders = ",".join("?" for _ in users)
                conn.execute(f"DELETE FROM users WHERE id NOT IN ({placeholders})", [u.id for u in users])
            else:
                conn.execute("DELETE FROM users")
            conn.commit()

    def preferences_for(self, user_ids: list[str]) -> dict[str, dict[str, Any]]:
        if not user_ids:
            return {}
        placeholders = ",".join("?" for _ in user_ids)
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT id, preferences FROM users WHERE id IN ({placeholders})",
                user_ids,
            ).fetchall()
        return {row["id"]: self._parse_preferences(row["id"], row["preferences"]) for row in rows}

    @staticmethod
    def _parse_preferences(user_id: str, raw: str | None) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring unreadable preferences for user %s", user_id)
            return {}
        return parsed if isinstance(parsed, dict) else {}
