from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mediashelf.core.errors import UserConfigError
from mediashelf.core.files import safe_write_atomic
from mediashelf.core.time import now_ms
from mediashelf.domain.models.user import StaticUser, User
from mediashelf.infrastructure.db.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

DEFAULT_USERS = (StaticUser(id="A", name="A"), StaticUser(id="B", name="B"))


def sanitize_users(raw: Any) -> list[StaticUser]:
    """Trim ids, drop blank or duplicate ids, default blank names to the id."""
    if not isinstance(raw, list):
        raise UserConfigError("Expected a JSON array of users")

    seen: set[str] = set()
    users: list[StaticUser] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        raw_id = entry.get("id")
        user_id = str(raw_id).strip() if raw_id is not None else ""
        if not user_id or user_id in seen:
            continue
        raw_name = entry.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else user_id
        users.append(StaticUser(id=user_id, name=name))
        seen.add(user_id)

    if not users:
        raise UserConfigError("No valid users defined")
    return users


def read_users_file(users_file: Path) -> list[StaticUser]:
    try:
        raw = json.loads(users_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise UserConfigError(f"Cannot read {users_file.name}: {exc}") from exc
    return sanitize_users(raw)


class UserService:
    """Static, file-defined users mirrored into the ``users`` table."""

    def __init__(self, users_file: Path, user_repo: UserRepo) -> None:
        self.users_file = users_file
        self.user_repo = user_repo

    def load_users(self) -> list[User]:
        static_users = self._load_file()
        self.user_repo.sync(static_users, now_ms())
        preferences = self.user_repo.preferences_for([u.id for u in static_users])
        return [User(id=u.id, name=u.name, preferences=preferences.get(u.id, {})) for u in static_users]

    def _load_file(self) -> list[StaticUser]:
        if not self.users_file.exists():
            self._write_defaults()
            return list(DEFAULT_USERS)
        try:
            return read_users_file(self.users_file)
        except UserConfigError as exc:
            logger.warning("Failed to read %s, restoring defaults: %s", self.users_file, exc)
            self._write_defaults()
            return list(DEFAULT_USERS)

    def _write_defaults(self) -> None:
        payload = [{"id": u.id, "name": u.name} for u in DEFAULT_USERS]
        safe_write_atomic(self.users_file, json.dumps(payload, indent=2).encode("utf-8"))
