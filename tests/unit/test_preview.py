from __future__ import annotations

import pytest

from client_import.models.preview import BaseAction, LookupMatch
from client_import.services.preview import LookupForbiddenError, PreviewError, describe_changes, prepare_preview

MAPPING = {"Nome": "nome", "Conta": "codigoConta", "Custódia": "custodiaAtual"}


class FakeLookup:
    def __init__(self, matches=None, error: Exception | None = None) -> None:
        self.calls: list[list[str]] = []
        self.matches = matches or []
        self.error = error

    async def __call__(self, accounts):
        self.calls.append(list(accounts))
        if self.error is not None:
            raise self.error
        return self.matches


@pytest.mark.asyncio
async def test_prepare_preview_looks_up_unique_accounts_once():
    lookup = FakeLookup([LookupMatch(account_number="555", client_id="c-1", nome="Ana")])
    rows = [
        {"Nome": "Ana", "Conta": "555"},
        {"Nome": "Bia", "Conta": "777"},
        {"Nome": "Ana 2", "Conta": "5-5-5"},
        {"Nome": "Sem conta", "Conta": ""},
    ]
    preview = await prepare_preview(rows, MAPPING, lookup)

    assert lookup.calls == [["555", "777"]]
    assert [r.row_number for r in preview] == [2, 3, 4, 5]
    assert preview[0].base_action is BaseAction.UPDATE
    assert preview[1].base_action is BaseAction.CREATE
    assert preview[0].conflict_group_id == preview[2].conflict_group_id == "account:555"
    assert preview[3].conflict_group_id is None


@pytest.mark.asyncio
async def test_prepare_preview_skips_lookup_without_accounts():
    lookup = FakeLookup()
    preview = await prepare_preview([{"Nome": "Ana", "Conta": ""}], MAPPING, lookup)
    assert lookup.calls == []
    assert preview[0].base_action is BaseAction.CREATE


@pytest.mark.asyncio
async def test_forbidden_lookup_propagates():
    with pytest.raises(LookupForbiddenError):
        await prepare_preview([{"Nome": "Ana", "Conta": "1"}], MAPPING, FakeLookup(error=LookupForbiddenError("no")))


@pytest.mark.asyncio
async def test_other_lookup_failures_are_wrapped():
    with pytest.raises(PreviewError, match="lookup failed"):
        await prepare_preview([{"Nome": "Ana", "Conta": "1"}], MAPPING, FakeLookup(error=RuntimeError("boom")))


@pytest.mark.asyncio
async def test_empty_mapping_rejected():
    with pytest.raises(PreviewError):
        await prepare_preview([{"Nome": "Ana"}], {}, FakeLookup())


@pytest.mark.asyncio
async def test_describe_changes():
    lookup = FakeLookup([LookupMatch(account_number="555", client_id="c-1", nome="Ana", custodia_atual=10.0)])
    preview = await prepare_preview(
        [{"Nome": "Ana", "Conta": "555", "Custódia": "20"}, {"Nome": "Bia", "Conta": "1"}, {"Nome": "Ana Souza", "Conta": "555"}],
        MAPPING,
        lookup,
    )
    assert describe_changes(preview[1]) == "Novo cliente"
    assert describe_changes(preview[0]) == "Sem mudanças principais"
    assert describe_changes(preview[2]) == "Nome: Ana -> Ana Souza"


def test_describe_changes_reports_account_change(preview_row_factory):
    existing = LookupMatch(account_number="0012345", client_id="c-7", nome="Ana", perfil_investidor="Regular")
    row = preview_row_factory(3, account="12345", nome="Ana", existing=existing)
    assert describe_changes(row) == "Conta: 0012345 -> 12345"

    same = preview_row_factory(4, account="0012345", nome="Ana", existing=existing)
    assert describe_changes(same) == "Sem mudanças principais"
