from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..models.fields import ColumnMapping
from ..models.mapping_model import MappingModel

"""Saved mapping models, persisted as a small most-recent-first JSON list.

File layout:
    {"models": [MappingModel.to_dict(), ...], "lastUsedId": "<id>" | null}

The list never grows past `capacity`; saving or using a model moves it to the
front and the least recently used model falls off the end. `lastUsedId` names
the model to re-apply when a new file is loaded without an explicit choice.
"""

__all__ = [
    "DEFAULT_CAPACITY",
    "MappingModelError",
    "MappingModelStore",
]

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class MappingModelError(Exception):
    pass


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class MappingModelStore:
    """Bounded LRU collection of mapping models backed by a JSON file."""

    def __init__(self, path: Path, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise MappingModelError("capacity must be >= 1")
        self.path = Path(path)
        self.capacity = capacity

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"models": [], "lastUsedId": None}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8")) or {}
        except json.JSONDecodeError as e:
            raise MappingModelError(f"invalid mapping store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise MappingModelError(f"invalid mapping store {self.path}: expected an object")
        return data

    def _write(self, models: list[MappingModel], last_used_id: str | None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        doc = {"models": [m.to_dict() for m in models[: self.capacity]], "lastUsedId": last_used_id}
        self.path.write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")

    def load(self) -> list[MappingModel]:
        """Return models most-recent-first."""
        return [MappingModel.from_dict(m) for m in self._read().get("models", [])][: self.capacity]

    def get(self, model_id: str) -> MappingModel | None:
        return next((m for m in self.load() if m.id == model_id), None)

    def find_by_name(self, name: str) -> MappingModel | None:
        wanted = name.strip().casefold()
        return next((m for m in self.load() if m.name.casefold() == wanted), None)

    def last_used_id(self) -> str | None:
        value = self._read().get("lastUsedId")
        return str(value) if value else None

    def save(self, name: str, mapping: ColumnMapping) -> list[MappingModel]:
        """Create or replace (by case-insensitive name) a model, move it to the front and mark it last used."""
        clean_name = (name or "").strip()
        if not clean_name:
            raise MappingModelError("MODEL_NAME_REQUIRED")

        models = self.load()
        existing = next((m for m in models if m.name.casefold() == clean_name.casefold()), None)
        now = _now()
        if existing is not None:
            saved = MappingModel(
                id=existing.id, name=clean_name, created_at=existing.created_at, updated_at=now, mapping=dict(mapping)
            )
        else:
            saved = MappingModel(id=uuid.uuid4().hex, name=clean_name, created_at=now, updated_at=now, mapping=dict(mapping))
        ordered = [saved] + [m for m in models if m.id != saved.id]
        if len(ordered) > self.capacity:
            logger.debug("mapping store full, dropping %s", [m.name for m in ordered[self.capacity:]])
        self._write(ordered, saved.id)
        return ordered[: self.capacity]

    def mark_used(self, model_id: str) -> MappingModel:
        """Move a model to the front and remember it as last used."""
        models = self.load()
        model = next((m for m in models if m.id == model_id), None)
        if model is None:
            raise MappingModelError(f"mapping model not found: {model_id}")
        self._write([model] + [m for m in models if m.id != model_id], model_id)
        return model

    def delete(self, model_id: str) -> list[MappingModel]:
        models = [m for m in self.load() if m.id != model_id]
        last_used = self.last_used_id()
        self._write(models, None if last_used == model_id else last_used)
        return models
