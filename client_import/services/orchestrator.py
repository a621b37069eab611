from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum

from ..models.decision import (
    ConflictResolutionMap,
    DecisionSnapshot,
    EffectiveAction,
    OverrideAction,
    RowOverrideMap,
)
from ..models.execution import BatchMetrics, ExecutionReport
from ..models.preview import ConflictResolution, PreviewRow
from .decisions import build_decision_snapshots, count_blocking, has_unresolved_conflicts, resolve_effective_action
from .executor import DEFAULT_BATCH_SIZE, AuditFn, BatchCallback, UpsertFn, execute_decisions

"""Import session: user decisions layered over an immutable preview.

The session owns the mutable state (row overrides, conflict resolutions) and
enforces the pre-run rule: no ERROR and no CONFLICT decision may remain before
execution starts.
"""

__all__ = [
    "ImportBlockedError",
    "PreviewFilter",
    "ImportSession",
]

logger = logging.getLogger(__name__)


class ImportBlockedError(Exception):
    """Raised when a run is requested while blocking errors or conflicts remain."""

    def __init__(self, errors: int, conflicts: int) -> None:
        super().__init__(f"import blocked: {errors} row(s) with errors, {conflicts} row(s) in unresolved conflicts")
        self.errors = errors
        self.conflicts = conflicts


class PreviewFilter(str, Enum):
    ALL = "all"
    ERRORS = "errors"
    CONFLICTS = "conflicts"
    CREATE = "create"
    UPDATE = "update"


class ImportSession:
    """Preview rows plus the user's overrides and conflict resolutions."""

    def __init__(self, rows: Sequence[PreviewRow], file_name: str = "import") -> None:
        self.rows: tuple[PreviewRow, ...] = tuple(rows)
        self.file_name = file_name
        self.overrides: RowOverrideMap = {}
        self.resolutions: ConflictResolutionMap = {}
        self._row_ids = {r.row_id for r in self.rows}

    def set_override(self, row_id: str, action: OverrideAction | str | None) -> None:
        """Set or clear (None / "") a per-row override."""
        if row_id not in self._row_ids:
            raise KeyError(f"unknown row: {row_id}")
        if not action:
            self.overrides.pop(row_id, None)
            return
        self.overrides[row_id] = OverrideAction(action)

    def resolve_conflict(self, group_id: str, winner_row_id: str | None = None, ignore_all: bool = False) -> None:
        members = self.conflict_groups().get(group_id)
        if members is None:
            raise KeyError(f"unknown conflict group: {group_id}")
        if winner_row_id is not None and winner_row_id not in {r.row_id for r in members}:
            raise ValueError(f"row {winner_row_id} is not a member of {group_id}")
        # ignore_all wins over a winner: the two are mutually exclusive
        self.resolutions[group_id] = ConflictResolution(
            winner_row_id=None if ignore_all else winner_row_id, ignore_all=ignore_all
        )

    def clear_resolution(self, group_id: str) -> None:
        self.resolutions.pop(group_id, None)

    def conflict_groups(self) -> dict[str, list[PreviewRow]]:
        groups: dict[str, list[PreviewRow]] = {}
        for row in self.rows:
            if row.conflict_group_id is not None:
                groups.setdefault(row.conflict_group_id, []).append(row)
        return groups

    def effective_action(self, row: PreviewRow) -> EffectiveAction:
        return resolve_effective_action(row, self.overrides, self.resolutions)

    def decisions(self) -> list[DecisionSnapshot]:
        return build_decision_snapshots(self.rows, self.overrides, self.resolutions)

    def has_unresolved_conflicts(self) -> bool:
        return has_unresolved_conflicts(self.rows, self.overrides, self.resolutions)

    def blocking_count(self) -> int:
        return count_blocking(self.decisions())

    def actionable_count(self) -> int:
        return sum(1 for d in self.decisions() if d.backend_action is not None)

    def filter_rows(self, preview_filter: PreviewFilter | str = PreviewFilter.ALL) -> list[PreviewRow]:
        wanted = PreviewFilter(preview_filter)
        selected: list[PreviewRow] = []
        for row in self.rows:
            action = self.effective_action(row)
            if wanted is PreviewFilter.ALL:
                keep = True
            elif wanted is PreviewFilter.ERRORS:
                keep = bool(row.issues) or action is EffectiveAction.ERROR
            elif wanted is PreviewFilter.CONFLICTS:
                keep = action is EffectiveAction.CONFLICT
            elif wanted is PreviewFilter.CREATE:
                keep = action is EffectiveAction.CREATE
            else:
                keep = action is EffectiveAction.UPDATE
            if keep:
                selected.append(row)
        return selected

    def ensure_ready(self) -> list[DecisionSnapshot]:
        """Return the decisions, or raise ImportBlockedError if any row blocks the run."""
        decisions = self.decisions()
        errors = sum(1 for d in decisions if d.effective_action is EffectiveAction.ERROR)
        conflicts = sum(1 for d in decisions if d.effective_action is EffectiveAction.CONFLICT)
        if errors or conflicts:
            raise ImportBlockedError(errors, conflicts)
        return decisions

    async def run(
        self,
        upsert: UpsertFn,
        audit: AuditFn,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        import_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
        on_batch: BatchCallback | None = None,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> ExecutionReport:
        """Check readiness, then execute the current decisions."""
        decisions = self.ensure_ready()
        logger.info(
            "starting import file=%s rows=%d actionable=%d",
            self.file_name,
            len(decisions),
            sum(1 for d in decisions if d.backend_action is not None),
        )
        return await execute_decisions(
            decisions,
            upsert,
            audit,
            file_name=self.file_name,
            batch_size=batch_size,
            import_id=import_id,
            cancel_event=cancel_event,
            on_batch=on_batch,
            metrics_callback=metrics_callback,
        )
