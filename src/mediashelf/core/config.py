from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    project_root: Path
    data_dir: Path
    library_root: Path
    db_path: Path
    thumbs_dir: Path
    users_file: Path
    thumb_width: int = 400
    grid_width: int = 260
    concurrency_thumbs: int = 2
    enable_html_thumbnails: bool = False
    watch_debounce_seconds: float = 1.0
    host: str = "127.0.0.1"
    port: int = 4000
    client_origin: str | None = None


DEFAULT_DATA_DIRNAME = "data"
DEFAULT_LIBRARY_DIRNAME = "library"


def read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def build_config(project_root: Path, data_dir: Path, library_root: Path, **overrides) -> AppConfig:
    """Assemble a config with the standard layout below ``data_dir``."""
    return AppConfig(
        project_root=project_root,
        data_dir=data_dir,
        library_root=library_root,
        db_path=data_dir / "library.db",
        thumbs_dir=data_dir / "thumbs",
        users_file=data_dir / "users.json",
        **overrides,
    )


def load_config(project_root: Path | None = None) -> AppConfig:
    root = (project_root or Path.cwd()).expanduser().resolve()

    data_raw = os.getenv("MEDIASHELF_HOME") or os.getenv("DATA_ROOT")
    data_dir = Path(data_raw).expanduser().resolve() if data_raw else root / DEFAULT_DATA_DIRNAME

    library_raw = os.getenv("LIBRARY_ROOT")
    library_root = Path(library_raw).expanduser().resolve() if library_raw else root / DEFAULT_LIBRARY_DIRNAME

    client_origin = (os.getenv("CLIENT_ORIGIN") or "").strip() or None

    return build_config(
        root,
        data_dir,
        library_root,
        thumb_width=read_int_env("THUMB_WIDTH", 400),
        grid_width=read_int_env("GRID_WIDTH", 260),
        concurrency_thumbs=read_int_env("CONCURRENCY_THUMBS", 2),
        enable_html_thumbnails=read_bool_env("ENABLE_HTML_THUMBNAILS", False),
        watch_debounce_seconds=read_float_env("WATCH_DEBOUNCE_SECONDS", 1.0),
        host=(os.getenv("HOST") or "127.0.0.1").strip() or "127.0.0.1",
        port=read_int_env("PORT", 4000),
        client_origin=client_origin,
    )
