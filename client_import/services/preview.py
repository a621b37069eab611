from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, tzinfo

from ..models.fields import ColumnMapping
from ..models.preview import LookupMatch, PreviewRow, RawRow
from ..normalize.row import normalize_row
from .merger import merge_preview_rows

"""Preview generation: normalize every row, look up existing clients, merge.

The lookup call is the only suspension point. A LookupForbiddenError from the
collaborator propagates unchanged; any other failure is wrapped in
PreviewError. No partial preview is ever returned.
"""

__all__ = [
    "FIRST_DATA_ROW",
    "LookupFn",
    "LookupForbiddenError",
    "PreviewError",
    "prepare_preview",
    "describe_changes",
]

logger = logging.getLogger(__name__)

# Header is spreadsheet row 1, so rows[0] is row 2
FIRST_DATA_ROW = 2

LookupFn = Callable[[list[str]], Awaitable[Sequence[LookupMatch]]]


class LookupForbiddenError(Exception):
    """The lookup collaborator refused access (e.g. missing import permission)."""


class PreviewError(Exception):
    pass


async def prepare_preview(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    lookup: LookupFn,
    *,
    tz: tzinfo = UTC,
) -> list[PreviewRow]:
    """Build the preview rows for one sheet.

    Args:
        rows: raw rows of the selected sheet
        mapping: active column mapping
        lookup: async collaborator, unique accounts -> existing matches
        tz: timezone for naive date/time cells

    Raises:
        PreviewError: empty mapping or lookup failure
        LookupForbiddenError: propagated from the collaborator
    """
    if not mapping:
        raise PreviewError("column mapping is empty")

    drafts = [normalize_row(row, index + FIRST_DATA_ROW, mapping, tz=tz) for index, row in enumerate(rows)]
    accounts = list(dict.fromkeys(d.account_number for d in drafts if d.account_number))
    logger.debug("preview rows=%d unique_accounts=%d", len(drafts), len(accounts))

    try:
        matches = await lookup(accounts) if accounts else []
    except LookupForbiddenError:
        raise
    except Exception as e:
        raise PreviewError(f"lookup failed: {e}") from e

    existing_by_account = {m.account_number: m for m in matches}
    preview = merge_preview_rows(drafts, existing_by_account)
    logger.info(
        "preview ready rows=%d matched=%d blocking=%d",
        len(preview),
        sum(1 for r in preview if r.existing_match is not None),
        sum(1 for r in preview if r.has_blocking_error),
    )
    return preview


def _fmt(value: object) -> str:
    return "—" if value is None else str(value)


def describe_changes(row: PreviewRow) -> str:
    """Short human readable diff between the payload and the existing client."""
    match = row.existing_match
    if match is None:
        return "Novo cliente"

    payload = row.payload
    existing_metrics = match.metrics
    parts: list[str] = []
    if payload.nome and payload.nome != match.nome:
        parts.append(f"Nome: {_fmt(match.nome)} -> {payload.nome}")
    if payload.perfil_investidor and payload.perfil_investidor != match.perfil_investidor:
        parts.append(f"Perfil: {_fmt(match.perfil_investidor)} -> {payload.perfil_investidor}")
    if payload.codigo_conta and payload.codigo_conta != match.account_number:
        parts.append(f"Conta: {match.account_number} -> {payload.codigo_conta}")
    metric_labels = (
        ("Total BRL", "total_brl"),
        ("Onshore BRL", "onshore_brl"),
        ("Offshore BRL", "offshore_brl"),
        ("% CDI", "cdi_year_pct"),
    )
    for label, attr in metric_labels:
        new_value = getattr(payload.metrics, attr)
        old_value = getattr(existing_metrics, attr) if existing_metrics is not None else None
        if new_value is not None and new_value != old_value:
            parts.append(f"{label}: {_fmt(old_value)} -> {new_value}")
    return " | ".join(parts) if parts else "Sem mudanças principais"
