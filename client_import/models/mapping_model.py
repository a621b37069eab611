from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""MappingModel: a named, reusable column -> field mapping."""

__all__ = [
    "MappingModel",
]


@dataclass(frozen=True)
class MappingModel:
    id: str
    name: str
    created_at: str  # ISO8601 UTC
    updated_at: str
    mapping: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MappingModel:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            created_at=str(data.get("createdAt", "")),
            updated_at=str(data.get("updatedAt", "")),
            mapping={str(k): str(v) for k, v in (data.get("mapping") or {}).items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "mapping": dict(self.mapping),
        }
