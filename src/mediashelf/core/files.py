from __future__ import annotations

import os
import tempfile
from pathlib import Path

from mediashelf.core.errors import LibraryPathError


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def safe_write_atomic(dst: Path, data: bytes) -> None:
    ensure_directory(dst.parent)
    fd, temp_name = tempfile.mkstemp(dir=dst.parent, prefix=f".{dst.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(temp_name, dst)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def is_within(root: Path, candidate: Path) -> bool:
    return candidate == root or root in candidate.parents


def resolve_library_path(library_root: Path, relative_path: str) -> Path:
    root = library_root.resolve()
    resolved = (root / relative_path.lstrip("/")).resolve()
    if not is_within(root, resolved):
        raise LibraryPathError(f"Path escapes library root: {relative_path}")
    return resolved


def relative_library_path(library_root: Path, full_path: Path) -> str:
    return full_path.relative_to(library_root).as_posix()


def resolve_sibling_asset(document: Path, asset: str) -> Path:
    """Resolve ``asset`` relative to the directory holding ``document``.

    An empty asset names the document itself.
    """
    base_dir = document.parent.resolve()
    requested = asset.strip("/") or document.name
    resolved = (base_dir / requested).resolve()
    if not is_within(base_dir, resolved):
        raise LibraryPathError(f"Asset escapes document directory: {asset}")
    return resolved
