from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from client_import.models.fields import IGNORE_COLUMN
from client_import.models.issues import IssueSeverity
from client_import.normalize.row import (
    REVIEW_PENDING_FIELD,
    REVIEW_PENDING_TAG,
    birthday_policy,
    make_row_id,
    normalize_row,
)

FULL_MAPPING = {
    "Nome": "nome",
    "Conta": "codigoConta",
    "Perfil": "perfilInvestidor",
    "Status": "status",
    "Custódia": "custodiaAtual",
    "Total": "metrics.totalBRL",
    "CDI": "metrics.cdiYearPct",
    "Fee": "hasFixedFee",
    "Reunião": "nextMeetingAt",
    "Aniversário": "birthday",
    "Telefone": "telefone",
    "Lixo": IGNORE_COLUMN,
}


def _codes(result) -> list[str]:
    return [i.code for i in result.issues]


def test_full_row_normalizes_every_field():
    raw = {
        "Nome": "  Ana Souza ",
        "Conta": "12.345-6",
        "Perfil": "Investidor Qualificado",
        "Status": "Ativo",
        "Custódia": "1.234,56",
        "Total": "1234.56",
        "CDI": "0,95",
        "Fee": "Sim",
        "Reunião": "10/06/2025 09:00",
        "Aniversário": "05/03/1980",
        "Telefone": 11987654321.0,
        "Lixo": "qualquer coisa",
    }
    result = normalize_row(raw, 2, FULL_MAPPING)

    assert result.row_id == "import-row-2"
    assert result.account_number == "123456"
    assert result.issues == ()
    assert result.has_blocking_error is False
    assert result.payload.to_dict() == {
        "nome": "Ana Souza",
        "codigoConta": "123456",
        "perfilInvestidor": "Qualificado",
        "telefone": "11987654321",
        "status": "ativo",
        "custodiaAtual": pytest.approx(1234.56),
        "hasFixedFee": True,
        "nextMeetingAt": "2025-06-10T09:00:00.000Z",
        "birthDate": "1980-03-05",
        "metrics": {"totalBRL": pytest.approx(1234.56), "cdiYearPct": pytest.approx(95.0)},
    }


def test_missing_name_is_blocking():
    result = normalize_row({"Nome": "   ", "Conta": "123"}, 5, {"Nome": "nome", "Conta": "codigoConta"})
    assert _codes(result) == ["name_missing"]
    assert result.issues[0].severity is IssueSeverity.ERROR
    assert result.has_blocking_error is True


def test_unmapped_name_synthesizes_issue():
    result = normalize_row({"Conta": "123"}, 3, {"Conta": "codigoConta"})
    assert _codes(result) == ["name_missing"]
    assert result.has_blocking_error is True
    assert result.payload.nome is None


def test_blank_account_marks_review_pending():
    result = normalize_row({"Nome": "Ana", "Conta": "--"}, 2, {"Nome": "nome", "Conta": "codigoConta"})
    assert result.account_number == ""
    assert _codes(result) == ["account_missing"]
    assert result.issues[0].severity is IssueSeverity.WARNING
    assert result.has_blocking_error is False
    assert result.payload.custom_fields == {REVIEW_PENDING_FIELD: True}
    assert result.payload.tags == [REVIEW_PENDING_TAG]


def test_unmapped_account_has_no_review_flag():
    result = normalize_row({"Nome": "Ana"}, 2, {"Nome": "nome"})
    assert result.issues == ()
    assert result.payload.custom_fields == {}


@pytest.mark.parametrize(
    "header,key,value,code",
    [
        ("Custódia", "custodiaAtual", "abc", "custodia_atual_invalid"),
        ("Perfil", "perfilInvestidor", "VIP", "perfil_investidor_invalid"),
        ("Status", "status", "pendente", "status_invalid"),
        ("Fee", "hasFixedFee", "na", "has_fixed_fee_invalid"),
        ("Reunião", "nextMeetingAt", "amanhã", "next_meeting_at_invalid"),
        ("Aniversário", "birthday", "31/02/1990", "birthday_invalid"),
    ],
)
def test_invalid_values_warn_and_leave_field_unset(header, key, value, code):
    result = normalize_row({"Nome": "Ana", header: value}, 2, {"Nome": "nome", header: key})
    assert _codes(result) == [code]
    assert result.issues[0].severity is IssueSeverity.WARNING
    assert result.has_blocking_error is False
    assert set(result.payload.to_dict()) == {"nome"}


def test_numbers_never_default_to_zero():
    result = normalize_row({"Nome": "Ana", "Custódia": ""}, 2, {"Nome": "nome", "Custódia": "custodiaAtual"})
    assert result.issues == ()
    assert result.payload.custodia_atual is None


def test_first_non_blank_cell_wins_for_shared_field():
    mapping = {"Nome": "nome", "Tel 1": "telefone", "Tel 2": "telefone"}
    result = normalize_row({"Nome": "Ana", "Tel 1": "", "Tel 2": "1199"}, 2, mapping)
    assert result.payload.telefone == "1199"
    result = normalize_row({"Nome": "Ana", "Tel 1": "1188", "Tel 2": "1199"}, 2, mapping)
    assert result.payload.telefone == "1188"


def test_recent_birthday_keeps_only_day_and_month():
    result = normalize_row({"Nome": "Ana", "Niver": "15/08/2001"}, 2, {"Nome": "nome", "Niver": "birthday"})
    data = result.payload.to_dict()
    assert "birthDate" not in data
    assert (data["birthDay"], data["birthMonth"]) == (15, 8)


def test_birthday_policy():
    assert birthday_policy(datetime(1975, 12, 1, tzinfo=UTC)) == ("1975-12-01", None, None)
    assert birthday_policy(datetime(1999, 12, 31, tzinfo=UTC)) == ("1999-12-31", None, None)
    assert birthday_policy(datetime(2000, 1, 2, tzinfo=UTC)) == (None, 2, 1)


def test_timezone_applies_to_naive_meeting_times():
    tz = ZoneInfo("America/Sao_Paulo")
    result = normalize_row(
        {"Nome": "Ana", "Reunião": "10/06/2025 09:00"}, 2, {"Nome": "nome", "Reunião": "nextMeetingAt"}, tz=tz
    )
    assert result.payload.next_meeting_at == "2025-06-10T12:00:00.000Z"


def test_normalize_row_is_deterministic():
    raw = {"Nome": "Ana", "Conta": "9", "Custódia": "abc"}
    mapping = {"Nome": "nome", "Conta": "codigoConta", "Custódia": "custodiaAtual"}
    assert normalize_row(raw, 7, mapping) == normalize_row(raw, 7, mapping)
    assert make_row_id(7) == "import-row-7"
