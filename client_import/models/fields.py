from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Field catalogue for client imports.

Each FieldDefinition carries the parser kind used by the row normalizer, the
header hints used by the auto mapper and the issue code emitted when a
non-empty cell cannot be parsed.
"""

__all__ = [
    "IGNORE_COLUMN",
    "FieldKey",
    "FieldKind",
    "FieldDefinition",
    "FIELD_DEFINITIONS",
    "ColumnMapping",
    "get_field_definition",
]

IGNORE_COLUMN = "__ignore__"

# header -> FieldKey value | IGNORE_COLUMN
ColumnMapping = dict[str, str]


class FieldKey(str, Enum):
    NOME = "nome"
    CODIGO_CONTA = "codigoConta"
    PERFIL_INVESTIDOR = "perfilInvestidor"
    EMAIL = "email"
    TELEFONE = "telefone"
    CPF_CNPJ = "cpfCnpj"
    STATUS = "status"
    ORIGEM = "origem"
    OBSERVACOES = "observacoes"
    CUSTODIA_ATUAL = "custodiaAtual"
    METRICS_TOTAL_BRL = "metrics.totalBRL"
    METRICS_ONSHORE_BRL = "metrics.onshoreBRL"
    METRICS_OFFSHORE_BRL = "metrics.offshoreBRL"
    METRICS_CDI_YEAR_PCT = "metrics.cdiYearPct"
    HAS_FIXED_FEE = "hasFixedFee"
    NEXT_MEETING_AT = "nextMeetingAt"
    BIRTHDAY = "birthday"


class FieldKind(str, Enum):
    NAME = "name"
    TEXT = "text"
    ACCOUNT = "account"
    PROFILE = "profile"
    STATUS = "status"
    NUMBER = "number"
    PERCENT = "percent"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    BIRTHDAY = "birthday"


@dataclass(frozen=True)
class FieldDefinition:
    key: FieldKey
    label: str
    help: str
    kind: FieldKind
    hints: tuple[str, ...]  # Already normalized (lowercase, no accents)
    issue_code: str  # Emitted when a non-empty value is rejected


FIELD_DEFINITIONS: tuple[FieldDefinition, ...] = (
    FieldDefinition(
        FieldKey.NOME, "Nome", "Nome completo do cliente (obrigatório).", FieldKind.NAME,
        ("nome", "nome cliente", "nome do cliente", "cliente", "razao social"),
        "name_missing",
    ),
    FieldDefinition(
        FieldKey.CODIGO_CONTA, "Conta", "Número da conta; usado para localizar clientes existentes.",
        FieldKind.ACCOUNT,
        ("conta", "codigo conta", "cod conta", "numero conta", "n conta", "account"),
        "account_missing",
    ),
    FieldDefinition(
        FieldKey.PERFIL_INVESTIDOR, "Perfil do investidor", "Regular, Qualificado ou Profissional.",
        FieldKind.PROFILE,
        ("perfil investidor", "perfil", "suitability", "tipo investidor"),
        "perfil_investidor_invalid",
    ),
    FieldDefinition(
        FieldKey.EMAIL, "E-mail", "Endereço de e-mail.", FieldKind.TEXT,
        ("email", "e mail", "correio eletronico"),
        "email_invalid",
    ),
    FieldDefinition(
        FieldKey.TELEFONE, "Telefone", "Telefone ou celular.", FieldKind.TEXT,
        ("telefone", "celular", "fone", "whatsapp"),
        "telefone_invalid",
    ),
    FieldDefinition(
        FieldKey.CPF_CNPJ, "CPF/CNPJ", "Documento do cliente.", FieldKind.TEXT,
        ("cpf cnpj", "cpf", "cnpj", "documento"),
        "cpf_cnpj_invalid",
    ),
    FieldDefinition(
        FieldKey.STATUS, "Status", "ativo, inativo ou prospecto.", FieldKind.STATUS,
        ("status", "situacao"),
        "status_invalid",
    ),
    FieldDefinition(
        FieldKey.ORIGEM, "Origem", "Canal de origem do cliente.", FieldKind.TEXT,
        ("origem", "canal", "fonte"),
        "origem_invalid",
    ),
    FieldDefinition(
        FieldKey.OBSERVACOES, "Observações", "Anotações livres.", FieldKind.TEXT,
        ("observacoes", "observacao", "obs", "notas", "comentarios"),
        "observacoes_invalid",
    ),
    FieldDefinition(
        FieldKey.CUSTODIA_ATUAL, "Custódia atual", "Valor em custódia (R$).", FieldKind.NUMBER,
        ("custodia atual", "custodia", "patrimonio", "saldo"),
        "custodia_atual_invalid",
    ),
    FieldDefinition(
        FieldKey.METRICS_TOTAL_BRL, "Total BRL", "Patrimônio total em reais.", FieldKind.NUMBER,
        ("total brl", "pl total", "total"),
        "metrics_total_brl_invalid",
    ),
    FieldDefinition(
        FieldKey.METRICS_ONSHORE_BRL, "Onshore BRL", "Patrimônio onshore em reais.", FieldKind.NUMBER,
        ("onshore brl", "onshore"),
        "metrics_onshore_brl_invalid",
    ),
    FieldDefinition(
        FieldKey.METRICS_OFFSHORE_BRL, "Offshore BRL", "Patrimônio offshore em reais.", FieldKind.NUMBER,
        ("offshore brl", "offshore"),
        "metrics_offshore_brl_invalid",
    ),
    FieldDefinition(
        FieldKey.METRICS_CDI_YEAR_PCT, "% CDI no ano", "Rentabilidade no ano em fração do CDI.",
        FieldKind.PERCENT,
        ("cdi ano", "cdi", "rentabilidade cdi", "cdi year"),
        "metrics_cdi_year_pct_invalid",
    ),
    FieldDefinition(
        FieldKey.HAS_FIXED_FEE, "Fee fixo", "Sim/Não.", FieldKind.BOOLEAN,
        ("fee fixo", "taxa fixa", "fixed fee", "fee"),
        "has_fixed_fee_invalid",
    ),
    FieldDefinition(
        FieldKey.NEXT_MEETING_AT, "Próxima reunião", "Data/hora da próxima reunião.", FieldKind.DATETIME,
        ("proxima reuniao", "reuniao", "next meeting"),
        "next_meeting_at_invalid",
    ),
    FieldDefinition(
        FieldKey.BIRTHDAY, "Aniversário", "Data de nascimento ou aniversário.", FieldKind.BIRTHDAY,
        ("aniversario", "data nascimento", "nascimento", "birthday"),
        "birthday_invalid",
    ),
)

_BY_KEY = {d.key.value: d for d in FIELD_DEFINITIONS}


def get_field_definition(key: str) -> FieldDefinition | None:
    """Return the definition for a FieldKey value, or None (e.g. IGNORE_COLUMN)."""
    return _BY_KEY.get(key)
