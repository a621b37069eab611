from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .issues import ImportIssue
from .payload import NormalizedClientPayload
from .preview import BaseAction, ConflictResolution

"""Decision models: effective actions, user overrides and decision snapshots.

The five effective actions form a closed set; the precedence that produces
them lives in services.decisions.
"""

__all__ = [
    "EffectiveAction",
    "OverrideAction",
    "DecisionSnapshot",
    "RowOverrideMap",
    "ConflictResolutionMap",
]


class EffectiveAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    IGNORE = "ignore"
    ERROR = "error"
    CONFLICT = "conflict"

    @classmethod
    def from_base(cls, base: BaseAction) -> EffectiveAction:
        return cls(base.value)

    @property
    def executable(self) -> bool:
        return self in (EffectiveAction.CREATE, EffectiveAction.UPDATE)


class OverrideAction(str, Enum):
    """Per-row user override; can never introduce an error or conflict state."""
    CREATE = "create"
    UPDATE = "update"
    IGNORE = "ignore"


RowOverrideMap = dict[str, OverrideAction]  # row_id -> override
ConflictResolutionMap = dict[str, ConflictResolution]  # conflict_group_id -> resolution


@dataclass(frozen=True)
class DecisionSnapshot:
    """Derived, non-persisted decision for one preview row.

    backend_action is set iff effective_action is CREATE or UPDATE; client_id
    only for UPDATE.
    """
    row_id: str
    row_number: int
    account_number: str
    effective_action: EffectiveAction
    issues: tuple[ImportIssue, ...]
    backend_action: BaseAction | None = None
    client_id: str | None = None
    payload: NormalizedClientPayload | None = None
    conflict_group_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rowId": self.row_id,
            "rowNumber": self.row_number,
            "accountNumber": self.account_number,
            "effectiveAction": self.effective_action.value,
            "issues": [i.to_dict() for i in self.issues],
        }
        if self.backend_action is not None:
            data["backendAction"] = self.backend_action.value
        if self.client_id is not None:
            data["clientId"] = self.client_id
        if self.payload is not None:
            data["payload"] = self.payload.to_dict()
        if self.conflict_group_id is not None:
            data["conflictGroupId"] = self.conflict_group_id
        return data
