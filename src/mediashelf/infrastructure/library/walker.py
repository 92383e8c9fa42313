from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: dict[str, str] = {
    ".pdf": "pdf",
    ".sgf": "sgf",
    ".html": "html",
}


@dataclass(slots=True, frozen=True)
class LibraryFile:
    path: Path
    type: str


def item_type_for(path: Path) -> str | None:
    return SUPPORTED_EXTENSIONS.get(path.suffix.lower())


def is_hidden(root: Path, path: Path) -> bool:
    """True when any component of ``path`` below ``root`` starts with a dot."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = (path.name,)
    return any(part.startswith(".") for part in parts)


def walk_library(root: Path) -> Iterator[LibraryFile]:
    """Depth-first walk yielding supported, non-hidden files in sorted order."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            path = Path(dirpath) / name
            item_type = item_type_for(path)
            if item_type is None or not path.is_file():
                continue
            yield LibraryFile(path=path, type=item_type)


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc.strerror)
