from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Normalized client payload produced by the row normalizer.

Every attribute is optional: an unset attribute means "leave the stored value
untouched" on update, so `to_dict()` never emits None and never defaults
numbers to 0. Wire keys are camelCase to match the persistence contract.
"""

__all__ = [
    "ClientMetrics",
    "NormalizedClientPayload",
]


@dataclass
class ClientMetrics:
    total_brl: float | None = None
    onshore_brl: float | None = None
    offshore_brl: float | None = None
    cdi_year_pct: float | None = None  # Percentage (source stores a fraction)

    def is_empty(self) -> bool:
        return all(
            v is None for v in (self.total_brl, self.onshore_brl, self.offshore_brl, self.cdi_year_pct)
        )

    def to_dict(self) -> dict[str, float]:
        pairs = {
            "totalBRL": self.total_brl,
            "onshoreBRL": self.onshore_brl,
            "offshoreBRL": self.offshore_brl,
            "cdiYearPct": self.cdi_year_pct,
        }
        return {k: v for k, v in pairs.items() if v is not None}


@dataclass
class NormalizedClientPayload:
    """Partially filled client record owned by the row being processed."""
    nome: str | None = None
    codigo_conta: str | None = None
    perfil_investidor: str | None = None  # Regular | Qualificado | Profissional
    email: str | None = None
    telefone: str | None = None
    cpf_cnpj: str | None = None
    status: str | None = None  # ativo | inativo | prospecto
    origem: str | None = None
    observacoes: str | None = None
    custodia_atual: float | None = None
    metrics: ClientMetrics = field(default_factory=ClientMetrics)
    has_fixed_fee: bool | None = None
    next_meeting_at: str | None = None  # ISO8601 UTC with Z suffix
    birth_date: str | None = None  # YYYY-MM-DD, only for plausible birth years
    birth_day: int | None = None
    birth_month: int | None = None
    custom_fields: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape, omitting unset fields."""
        pairs: dict[str, Any] = {
            "nome": self.nome,
            "codigoConta": self.codigo_conta,
            "perfilInvestidor": self.perfil_investidor,
            "email": self.email,
            "telefone": self.telefone,
            "cpfCnpj": self.cpf_cnpj,
            "status": self.status,
            "origem": self.origem,
            "observacoes": self.observacoes,
            "custodiaAtual": self.custodia_atual,
            "hasFixedFee": self.has_fixed_fee,
            "nextMeetingAt": self.next_meeting_at,
            "birthDate": self.birth_date,
            "birthDay": self.birth_day,
            "birthMonth": self.birth_month,
        }
        data = {k: v for k, v in pairs.items() if v is not None}
        if not self.metrics.is_empty():
            data["metrics"] = self.metrics.to_dict()
        if self.custom_fields:
            data["customFields"] = dict(self.custom_fields)
        if self.tags:
            data["tags"] = list(self.tags)
        return data
