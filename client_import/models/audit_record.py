from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

"""AuditRecord model: one summary record per import run.

The JSON Lines shape is a fixed contract (no extra keys):
fileName, createdAt, createdCount, updatedCount, ignoredCount, errorCount,
topErrors, importId, status.
"""

__all__ = [
    "TopError",
    "AuditRecord",
    "top_error_messages",
]

TOP_ERRORS_LIMIT = 5
UNKNOWN_ERROR = "unknown_error"


@dataclass(frozen=True)
class TopError:
    code: str  # Exact error message
    count: int


def top_error_messages(messages: Iterable[str | None], limit: int = TOP_ERRORS_LIMIT) -> list[TopError]:
    """Most frequent error messages by exact string match (ties keep first-seen order)."""
    counts = Counter(m or UNKNOWN_ERROR for m in messages)
    return [TopError(code=code, count=count) for code, count in counts.most_common(limit)]


@dataclass(frozen=True)
class AuditRecord:
    """Summary of a completed (or partially completed) import run.

    Attributes:
        file_name: Source file name
        created_at: ISO8601 UTC timestamp with 'Z' suffix
        created_count / updated_count / ignored_count / error_count: final counters
        top_errors: up to 5 most frequent error messages
        import_id: run-scoped identifier threaded through upsert items
        status: completed | cancelled | aborted
    """
    file_name: str
    created_at: str
    created_count: int
    updated_count: int
    ignored_count: int
    error_count: int
    top_errors: list[TopError] = field(default_factory=list)
    import_id: str = ""
    status: str = "completed"

    @staticmethod
    def create(
        file_name: str,
        created_count: int,
        updated_count: int,
        ignored_count: int,
        error_count: int,
        top_errors: list[TopError],
        import_id: str,
        status: str,
    ) -> AuditRecord:
        """Create an AuditRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return AuditRecord(
            file_name=file_name,
            created_at=ts,
            created_count=created_count,
            updated_count=updated_count,
            ignored_count=ignored_count,
            error_count=error_count,
            top_errors=top_errors,
            import_id=import_id,
            status=status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "createdAt": self.created_at,
            "createdCount": self.created_count,
            "updatedCount": self.updated_count,
            "ignoredCount": self.ignored_count,
            "errorCount": self.error_count,
            "topErrors": [asdict(t) for t in self.top_errors],
            "importId": self.import_id,
            "status": self.status,
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
