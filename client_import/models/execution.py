from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .decision import EffectiveAction
from .payload import NormalizedClientPayload
from .preview import BaseAction

"""Execution models: upsert wire items, per-row results and run reports.

ExecutionResult entries are append-only: created once per row per run and
never mutated afterwards.
"""

__all__ = [
    "UpsertStatus",
    "UpsertItem",
    "UpsertItemResult",
    "RowResult",
    "ExecutionResult",
    "ImportCounters",
    "RunStatus",
    "ExecutionReport",
    "BatchMetrics",
    "BatchStatsAccumulator",
]


class UpsertStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


@dataclass(frozen=True)
class UpsertItem:
    """One request item for the bulk upsert collaborator."""
    action: BaseAction
    data: NormalizedClientPayload
    import_id: str
    row_number: int
    client_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            "action": self.action.value,
            "data": self.data.to_dict(),
            "source": {"importId": self.import_id, "rowNumber": self.row_number},
        }
        if self.client_id is not None:
            item["clientId"] = self.client_id
        return item


@dataclass(frozen=True)
class UpsertItemResult:
    """Positional response for one UpsertItem."""
    status: str  # created | updated | error (anything else counts as error)
    client_id: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpsertItemResult:
        return cls(status=str(data.get("status")), client_id=data.get("clientId"), error=data.get("error"))


class RowResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass(frozen=True)
class ExecutionResult:
    row_id: str
    row_number: int
    account_number: str
    action: EffectiveAction
    result: RowResult
    message: str | None = None
    client_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rowId": self.row_id,
            "rowNumber": self.row_number,
            "accountNumber": self.account_number,
            "action": self.action.value,
            "result": self.result.value,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.client_id is not None:
            data["clientId"] = self.client_id
        return data


@dataclass
class ImportCounters:
    """Running counters, updated only between batches."""
    created: int = 0
    updated: int = 0
    ignored: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"created": self.created, "updated": self.updated, "ignored": self.ignored, "errors": self.errors}


class RunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # cancel signal observed; remaining batches not sent
    ABORTED = "aborted"  # upsert transport failure


@dataclass(frozen=True)
class ExecutionReport:
    """Outcome of one execute_decisions call."""
    import_id: str
    status: RunStatus
    results: list[ExecutionResult]  # Sorted by row_number
    counters: ImportCounters
    total_batches: int  # Batches actually sent
    elapsed_seconds: float
    audit_written: bool
    error: str | None = None  # Transport failure message when ABORTED
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    unsent_rows: list[str] = field(default_factory=list)  # row_ids skipped after cancel/abort


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single upsert call."""
    batch_index: int  # 1-based
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


class BatchStatsAccumulator:
    """Accumulate batch timing statistics (total, average, p95)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)
        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]  # 19th of 20 cut points
        return (total_batches, avg_batch_seconds, p95_batch_seconds)
