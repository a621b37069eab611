from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .issues import ImportIssue
from .payload import ClientMetrics, NormalizedClientPayload

"""Preview-stage models: normalized drafts, lookup matches and preview rows.

PreviewRow is immutable once produced by the merger; user decisions
(overrides, conflict resolutions) are layered on top without touching it.
"""

__all__ = [
    "RawRow",
    "BaseAction",
    "LookupMatch",
    "NormalizeResult",
    "PreviewRow",
    "ConflictResolution",
]

RawRow = dict[str, Any]  # header -> str | int | float | bool | date | datetime | None


class BaseAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class LookupMatch:
    """Summary of an existing client returned by the lookup collaborator."""
    account_number: str
    client_id: str
    nome: str | None = None
    perfil_investidor: str | None = None
    codigo_conta: str | None = None
    custodia_atual: float | None = None
    metrics: ClientMetrics | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LookupMatch:
        raw_metrics = data.get("metrics")
        metrics = None
        if isinstance(raw_metrics, dict):
            metrics = ClientMetrics(
                total_brl=raw_metrics.get("totalBRL"),
                onshore_brl=raw_metrics.get("onshoreBRL"),
                offshore_brl=raw_metrics.get("offshoreBRL"),
                cdi_year_pct=raw_metrics.get("cdiYearPct"),
            )
        return cls(
            account_number=str(data["accountNumber"]),
            client_id=str(data["clientId"]),
            nome=data.get("nome"),
            perfil_investidor=data.get("perfilInvestidor"),
            codigo_conta=data.get("codigoConta"),
            custodia_atual=data.get("custodiaAtual"),
            metrics=metrics,
        )


@dataclass(frozen=True)
class NormalizeResult:
    """Output of normalize_row for a single raw row."""
    row_id: str  # import-row-<row_number>
    row_number: int  # Spreadsheet row number (header = 1)
    raw: RawRow
    payload: NormalizedClientPayload
    account_number: str  # Digits only, "" when unknown
    issues: tuple[ImportIssue, ...]
    has_blocking_error: bool


@dataclass(frozen=True)
class PreviewRow:
    """Draft merged with lookup results; base_action is UPDATE iff existing_match is set."""
    row_id: str
    row_number: int
    raw: RawRow
    payload: NormalizedClientPayload
    account_number: str
    issues: tuple[ImportIssue, ...]
    has_blocking_error: bool
    base_action: BaseAction
    existing_match: LookupMatch | None = None
    conflict_group_id: str | None = None  # account:<account_number>


@dataclass(frozen=True)
class ConflictResolution:
    """User choice for one conflict group; absence of a resolution means unresolved."""
    winner_row_id: str | None = None
    ignore_all: bool = False

    @property
    def is_empty(self) -> bool:
        return self.winner_row_id is None and not self.ignore_all

