from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""ImportIssue model: non-fatal (warning) or blocking (error) row findings.

Issues are data, never exceptions. Only severity=error blocks a row.
"""

__all__ = [
    "IssueSeverity",
    "ImportIssue",
]


class IssueSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ImportIssue:
    """Single field-level finding produced while normalizing a row."""
    code: str  # e.g. name_missing, custodia_atual_invalid
    severity: IssueSeverity
    message: str  # User facing (pt-BR)
    field: str | None = None  # FieldKey value, None for row-level issues

    @property
    def blocking(self) -> bool:
        return self.severity is IssueSeverity.ERROR

    def to_dict(self) -> dict[str, str]:
        data = {"code": self.code, "severity": self.severity.value, "message": self.message}
        if self.field is not None:
            data["field"] = self.field
        return data
