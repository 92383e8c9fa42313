from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from mediashelf.application.services.user_service import UserService, sanitize_users
from mediashelf.core.errors import UserConfigError
from mediashelf.infrastructure.db.repos.user_repo import UserRepo
from mediashelf.infrastructure.db.sqlite import get_connection, initialize_schema


def _service(tmp_path: Path) -> tuple[UserService, Path, Path]:
    db_path = tmp_path / "library.db"
    initialize_schema(db_path)
    users_file = tmp_path / "users.json"
    return UserService(users_file, UserRepo(db_path)), users_file, db_path


def test_missing_file_writes_defaults(tmp_path: Path) -> None:
    service, users_file, db_path = _service(tmp_path)

    users = service.load_users()

    assert [(u.id, u.name, u.preferences) for u in users] == [("A", "A", {}), ("B", "B", {})]
    assert json.loads(users_file.read_text(encoding="utf-8")) == [{"id": "A", "name": "A"}, {"id": "B", "name": "B"}]
    with get_connection(db_path) as conn:
        assert [row["id"] for row in conn.execute("SELECT id FROM users ORDER BY id")] == ["A", "B"]


def test_sanitize_trims_dedupes_and_defaults_names() -> None:
    users = sanitize_users(
        [
            {"id": " kim ", "name": ""},
            {"id": "kim", "name": "Duplicate"},
            {"id": "", "name": "Blank"},
            "not-an-object",
            {"id": 7, "name": "  Seven  "},
        ]
    )
    assert [(u.id, u.name) for u in users] == [("kim", "kim"), ("7", "Seven")]


@pytest.mark.parametrize("raw", [{"id": "A"}, [], [{"id": " "}]])
def test_sanitize_rejects_unusable_payloads(raw) -> None:
    with pytest.raises(UserConfigError):
        sanitize_users(raw)


def test_invalid_file_is_replaced_by_defaults(tmp_path: Path, caplog) -> None:
    service, users_file, _ = _service(tmp_path)
    users_file.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        users = service.load_users()

    assert [u.id for u in users] == ["A", "B"]
    assert "restoring defaults" in caplog.text
    assert json.loads(users_file.read_text(encoding="utf-8"))[0]["id"] == "A"


def test_sync_removes_users_dropped_from_file(tmp_path: Path) -> None:
    service, users_file, db_path = _service(tmp_path)
    service.load_users()
    with get_connection(db_path) as conn:
        conn.execute(
            """
            INSERT INTO items (type, path, title, folder, size, mtime, created_at, updated_at)
            VALUES ('sgf', 'g.sgf', 'g', '', 1, 1.0, 1, 1)
            """
        )
        conn.execute("INSERT INTO favorites (user_id, item_id, created_at) VALUES ('B', 1, 1)")
        conn.commit()

    users_file.write_text(json.dumps([{"id": "A", "name": "Alice"}]), encoding="utf-8")
    users = service.load_users()

    assert [(u.id, u.name) for u in users] == [("A", "Alice")]
    with get_connection(db_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM users WHERE id = 'B'").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM favorites").fetchone()[0] == 0


def test_stored_preferences_survive_resync(tmp_path: Path) -> None:
    service, _, db_path = _service(tmp_path)
    service.load_users()
    with get_connection(db_path) as conn:
        conn.execute("UPDATE users SET preferences = ? WHERE id = 'A'", (json.dumps({"theme": "dark"}),))
        conn.execute("UPDATE users SET preferences = 'garbage' WHERE id = 'B'")
        conn.commit()

    users = {u.id: u for u in service.load_users()}

    assert users["A"].preferences == {"theme": "dark"}
    assert users["B"].preferences == {}
