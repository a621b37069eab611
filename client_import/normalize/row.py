from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from typing import Any

from ..models.fields import (
    FIELD_DEFINITIONS,
    IGNORE_COLUMN,
    ColumnMapping,
    FieldDefinition,
    FieldKey,
    FieldKind,
)
from ..models.issues import ImportIssue, IssueSeverity
from ..models.payload import NormalizedClientPayload
from ..models.preview import NormalizeResult, RawRow
from .helpers import (
    clean_text,
    is_blank,
    normalize_account_number,
    normalize_perfil_investidor,
    normalize_status,
    parse_boolean_sim_nao,
    parse_br_number,
    parse_percent_cdi,
    parse_spreadsheet_date,
    to_iso_date,
    to_iso_datetime,
)

"""Row normalizer: one RawRow + ColumnMapping -> payload and issues.

Only a missing name is blocking. Every other unparseable value becomes a
warning and the field is left out of the payload (never defaulted), which
means "keep the stored value" on update.
"""

__all__ = [
    "REVIEW_PENDING_TAG",
    "BIRTH_YEAR_ARTIFACT_FROM",
    "BirthdayParts",
    "birthday_policy",
    "make_row_id",
    "normalize_row",
]

REVIEW_PENDING_TAG = "Revisão pendente"
REVIEW_PENDING_FIELD = "reviewPending"

# Birthdays with year >= this are treated as day/month only: sheets often fill
# the year with the current or a placeholder year.
BIRTH_YEAR_ARTIFACT_FROM = 2000

BirthdayParts = tuple[str | None, int | None, int | None]  # (birth_date, day, month)

_NAME_DEFINITION = next(d for d in FIELD_DEFINITIONS if d.key is FieldKey.NOME)

_TEXT_ATTRS = {
    FieldKey.EMAIL: "email",
    FieldKey.TELEFONE: "telefone",
    FieldKey.CPF_CNPJ: "cpf_cnpj",
    FieldKey.ORIGEM: "origem",
    FieldKey.OBSERVACOES: "observacoes",
}


def make_row_id(row_number: int) -> str:
    return f"import-row-{row_number}"


def birthday_policy(value: datetime) -> BirthdayParts:
    """Decide how much of a parsed birthday to keep.

    Year >= BIRTH_YEAR_ARTIFACT_FROM: keep only day and month.
    Earlier years: keep the full date only.
    """
    if value.year >= BIRTH_YEAR_ARTIFACT_FROM:
        return (None, value.day, value.month)
    return (to_iso_date(value), None, None)


def _issue(definition: FieldDefinition, message: str, severity: IssueSeverity = IssueSeverity.WARNING) -> ImportIssue:
    return ImportIssue(code=definition.issue_code, severity=severity, message=message, field=definition.key.value)


def _invalid(definition: FieldDefinition, raw: Any) -> ImportIssue:
    return _issue(definition, f"{definition.label}: valor '{clean_text(raw)}' não reconhecido; campo ignorado.")


def _collect_values(raw: RawRow, mapping: ColumnMapping) -> dict[str, Any]:
    """Field key -> first non-blank cell among the headers mapped to it.

    A field mapped only to blank cells is present with value None.
    """
    values: dict[str, Any] = {}
    for header, key in mapping.items():
        if key == IGNORE_COLUMN:
            continue
        cell = raw.get(header)
        if key not in values or (is_blank(values[key]) and not is_blank(cell)):
            values[key] = None if is_blank(cell) else cell
    return values


def _set_metric(payload: NormalizedClientPayload, key: FieldKey, value: float) -> None:
    if key is FieldKey.METRICS_TOTAL_BRL:
        payload.metrics.total_brl = value
    elif key is FieldKey.METRICS_ONSHORE_BRL:
        payload.metrics.onshore_brl = value
    elif key is FieldKey.METRICS_OFFSHORE_BRL:
        payload.metrics.offshore_brl = value
    elif key is FieldKey.METRICS_CDI_YEAR_PCT:
        payload.metrics.cdi_year_pct = value
    else:
        payload.custodia_atual = value


def _apply_field(
    definition: FieldDefinition,
    value: Any,
    payload: NormalizedClientPayload,
    issues: list[ImportIssue],
    tz: tzinfo,
) -> None:
    kind = definition.kind
    key = definition.key

    if kind is FieldKind.NAME:
        name = clean_text(value)
        if name:
            payload.nome = name
        else:
            issues.append(_issue(definition, "Nome do cliente não informado.", IssueSeverity.ERROR))
        return

    if kind is FieldKind.ACCOUNT:
        account = normalize_account_number(value)
        if account:
            payload.codigo_conta = account
            return
        payload.custom_fields[REVIEW_PENDING_FIELD] = True
        if REVIEW_PENDING_TAG not in payload.tags:
            payload.tags.append(REVIEW_PENDING_TAG)
        issues.append(_issue(definition, "Conta não informada; cliente marcado para revisão."))
        return

    if is_blank(value):
        return

    if kind is FieldKind.TEXT:
        setattr(payload, _TEXT_ATTRS[key], clean_text(value))
        return

    parsers: dict[FieldKind, Callable[[Any], Any]] = {
        FieldKind.PROFILE: normalize_perfil_investidor,
        FieldKind.STATUS: normalize_status,
        FieldKind.NUMBER: parse_br_number,
        FieldKind.PERCENT: parse_percent_cdi,
        FieldKind.BOOLEAN: parse_boolean_sim_nao,
        FieldKind.DATETIME: lambda v: parse_spreadsheet_date(v, tz),
        FieldKind.BIRTHDAY: lambda v: parse_spreadsheet_date(v, tz),
    }
    parsed = parsers[kind](value)
    if parsed is None:
        issues.append(_invalid(definition, value))
        return

    if kind is FieldKind.PROFILE:
        payload.perfil_investidor = parsed
    elif kind is FieldKind.STATUS:
        payload.status = parsed
    elif kind in (FieldKind.NUMBER, FieldKind.PERCENT):
        _set_metric(payload, key, parsed)
    elif kind is FieldKind.BOOLEAN:
        payload.has_fixed_fee = parsed
    elif kind is FieldKind.DATETIME:
        payload.next_meeting_at = to_iso_datetime(parsed)
    elif kind is FieldKind.BIRTHDAY:
        payload.birth_date, payload.birth_day, payload.birth_month = birthday_policy(parsed)


def normalize_row(raw: RawRow, row_number: int, mapping: ColumnMapping, *, tz: tzinfo = UTC) -> NormalizeResult:
    """Normalize one raw row according to `mapping`.

    Args:
        raw: header -> raw cell value
        row_number: spreadsheet row number (header row = 1)
        mapping: header -> FieldKey value | IGNORE_COLUMN
        tz: timezone for naive date/time cells

    Returns:
        NormalizeResult; deterministic for identical inputs
    """
    payload = NormalizedClientPayload()
    issues: list[ImportIssue] = []
    values = _collect_values(raw, mapping)

    for definition in FIELD_DEFINITIONS:
        if definition.key.value in values:
            _apply_field(definition, values[definition.key.value], payload, issues, tz)

    if payload.nome is None and not any(i.code == _NAME_DEFINITION.issue_code for i in issues):
        issues.append(_issue(_NAME_DEFINITION, "Nenhuma coluna mapeada para o nome do cliente.", IssueSeverity.ERROR))

    return NormalizeResult(
        row_id=make_row_id(row_number),
        row_number=row_number,
        raw=dict(raw),
        payload=payload,
        account_number=payload.codigo_conta or "",
        issues=tuple(issues),
        has_blocking_error=any(i.blocking for i in issues),
    )
