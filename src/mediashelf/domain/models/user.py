from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class StaticUser:
    id: str
    name: str


@dataclass(slots=True)
class User:
    id: str
    name: str
    preferences: dict[str, Any] = field(default_factory=dict)
