from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence

from ..models.preview import BaseAction, LookupMatch, NormalizeResult, PreviewRow

"""Lookup merger: drafts + existing-record matches -> PreviewRow list.

Duplicate detection is intra-batch only: rows are grouped with other rows of
the same run sharing a non-empty account number, never against duplicates
already present in storage.
"""

__all__ = [
    "conflict_group_id_for",
    "merge_preview_rows",
]


def conflict_group_id_for(account_number: str) -> str:
    return f"account:{account_number}"


def merge_preview_rows(
    drafts: Sequence[NormalizeResult],
    existing_by_account: Mapping[str, LookupMatch],
) -> list[PreviewRow]:
    """Assign base actions and conflict groups.

    Args:
        drafts: normalized rows of this run, in source order
        existing_by_account: normalized account number -> existing match

    Returns:
        One PreviewRow per draft, same order
    """
    frequency = Counter(d.account_number for d in drafts if d.account_number)

    rows: list[PreviewRow] = []
    for draft in drafts:
        account = draft.account_number
        existing = existing_by_account.get(account) if account else None
        rows.append(
            PreviewRow(
                row_id=draft.row_id,
                row_number=draft.row_number,
                raw=draft.raw,
                payload=draft.payload,
                account_number=account,
                issues=draft.issues,
                has_blocking_error=draft.has_blocking_error,
                base_action=BaseAction.UPDATE if existing is not None else BaseAction.CREATE,
                existing_match=existing,
                conflict_group_id=conflict_group_id_for(account) if frequency[account] > 1 else None,
            )
        )
    return rows
