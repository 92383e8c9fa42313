from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from mediashelf.core.config import AppConfig


@dataclass(slots=True)
class CLIContext:
    config: AppConfig
    console: Console
