from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mediashelf.core.config import AppConfig
from mediashelf.core.files import ensure_directory
from mediashelf.infrastructure.db.sqlite import initialize_schema


@dataclass(slots=True)
class InitResult:
    paths_created: list[Path]
    db_path: Path


class ProjectService:
    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def init_project(self) -> InitResult:
        paths_created: list[Path] = []

        for path in (
            self.config.data_dir,
            self.config.thumbs_dir,
            self.config.library_root,
        ):
            if not path.exists():
                paths_created.append(path)
            ensure_directory(path)

        initialize_schema(self.config.db_path)

        return InitResult(paths_created=paths_created, db_path=self.config.db_path)

    def is_initialized(self) -> bool:
        return self.config.db_path.exists()
