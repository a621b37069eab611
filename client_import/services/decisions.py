from __future__ import annotations

from collections.abc import Sequence

from ..models.decision import (
    ConflictResolutionMap,
    DecisionSnapshot,
    EffectiveAction,
    OverrideAction,
    RowOverrideMap,
)
from ..models.preview import BaseAction, PreviewRow

"""Decision resolver.

Precedence, first match wins:
  1. blocking error   -> ERROR (or IGNORE when explicitly overridden to ignore)
  2. conflict group   -> CONFLICT while unresolved, IGNORE for losers / ignore_all
  3. IGNORE or CONFLICT from step 2 is final
  4. row override     -> replaces the base action
  5. base action
"""

__all__ = [
    "resolve_effective_action",
    "build_decision_snapshots",
    "has_unresolved_conflicts",
    "count_blocking",
]


def _blocking_guard(row: PreviewRow, overrides: RowOverrideMap) -> EffectiveAction | None:
    if not row.has_blocking_error:
        return None
    if overrides.get(row.row_id) == OverrideAction.IGNORE:
        return EffectiveAction.IGNORE
    return EffectiveAction.ERROR


def _conflict_guard(row: PreviewRow, resolutions: ConflictResolutionMap) -> EffectiveAction | None:
    """IGNORE/CONFLICT when the group decides the row; None when the row may proceed."""
    if row.conflict_group_id is None:
        return None
    resolution = resolutions.get(row.conflict_group_id)
    if resolution is None or resolution.is_empty:
        return EffectiveAction.CONFLICT
    if resolution.ignore_all:
        return EffectiveAction.IGNORE
    if resolution.winner_row_id != row.row_id:
        return EffectiveAction.IGNORE
    return None


def _override_guard(row: PreviewRow, overrides: RowOverrideMap) -> EffectiveAction | None:
    override = overrides.get(row.row_id)
    if override is None:
        return None
    return EffectiveAction(OverrideAction(override).value)


def resolve_effective_action(
    row: PreviewRow,
    overrides: RowOverrideMap,
    resolutions: ConflictResolutionMap,
) -> EffectiveAction:
    decided = _blocking_guard(row, overrides)
    if decided is not None:
        return decided
    decided = _conflict_guard(row, resolutions)
    if decided is not None:
        return decided
    decided = _override_guard(row, overrides)
    if decided is not None:
        return decided
    return EffectiveAction.from_base(row.base_action)


def build_decision_snapshots(
    rows: Sequence[PreviewRow],
    overrides: RowOverrideMap,
    resolutions: ConflictResolutionMap,
) -> list[DecisionSnapshot]:
    """Resolve every row; backend_action/payload only for CREATE/UPDATE, client_id only for UPDATE."""
    snapshots: list[DecisionSnapshot] = []
    for row in rows:
        action = resolve_effective_action(row, overrides, resolutions)
        backend_action = BaseAction(action.value) if action.executable else None
        client_id = None
        if backend_action is BaseAction.UPDATE and row.existing_match is not None:
            client_id = row.existing_match.client_id
        snapshots.append(
            DecisionSnapshot(
                row_id=row.row_id,
                row_number=row.row_number,
                account_number=row.account_number,
                effective_action=action,
                issues=row.issues,
                backend_action=backend_action,
                client_id=client_id,
                payload=row.payload if backend_action is not None else None,
                conflict_group_id=row.conflict_group_id,
            )
        )
    return snapshots


def has_unresolved_conflicts(
    rows: Sequence[PreviewRow],
    overrides: RowOverrideMap,
    resolutions: ConflictResolutionMap,
) -> bool:
    return any(
        resolve_effective_action(row, overrides, resolutions) is EffectiveAction.CONFLICT for row in rows
    )


def count_blocking(decisions: Sequence[DecisionSnapshot]) -> int:
    """Rows that keep the run from starting (ERROR or CONFLICT)."""
    return sum(
        1 for d in decisions if d.effective_action in (EffectiveAction.ERROR, EffectiveAction.CONFLICT)
    )
