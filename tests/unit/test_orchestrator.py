from __future__ import annotations

import pytest

from client_import.db.memory_store import InMemoryClientStore
from client_import.logging.audit_log import AuditLogWriter
from client_import.models.decision import EffectiveAction, OverrideAction
from client_import.models.execution import RowResult, RunStatus
from client_import.models.preview import LookupMatch
from client_import.services.orchestrator import ImportBlockedError, ImportSession, PreviewFilter


@pytest.fixture()
def session(preview_row_factory) -> ImportSession:
    match = LookupMatch(account_number="555", client_id="c-1")
    rows = [
        preview_row_factory(2, account="123", group="account:123"),
        preview_row_factory(3, account="123", group="account:123"),
        preview_row_factory(4, blocking=True),
        preview_row_factory(5, account="555", existing=match),
        preview_row_factory(6, account="777"),
    ]
    return ImportSession(rows, file_name="clientes.xlsx")


def test_initial_state_blocks(session: ImportSession):
    assert session.has_unresolved_conflicts()
    assert session.blocking_count() == 3
    assert list(session.conflict_groups()) == ["account:123"]
    with pytest.raises(ImportBlockedError) as exc:
        session.ensure_ready()
    assert exc.value.errors == 1
    assert exc.value.conflicts == 2


def test_resolving_everything_unblocks(session: ImportSession):
    session.resolve_conflict("account:123", winner_row_id="import-row-2")
    session.set_override("import-row-4", OverrideAction.IGNORE)

    decisions = session.ensure_ready()
    assert [d.effective_action for d in decisions] == [
        EffectiveAction.CREATE,
        EffectiveAction.IGNORE,
        EffectiveAction.IGNORE,
        EffectiveAction.UPDATE,
        EffectiveAction.CREATE,
    ]
    assert session.actionable_count() == 3


def test_resolve_conflict_validation(session: ImportSession):
    with pytest.raises(KeyError):
        session.resolve_conflict("account:999", winner_row_id="import-row-2")
    with pytest.raises(ValueError):
        session.resolve_conflict("account:123", winner_row_id="import-row-6")


def test_ignore_all_and_clear(session: ImportSession):
    session.resolve_conflict("account:123", winner_row_id="import-row-2", ignore_all=True)
    assert session.resolutions["account:123"].winner_row_id is None
    assert not session.has_unresolved_conflicts()

    session.clear_resolution("account:123")
    assert session.has_unresolved_conflicts()


def test_set_override_and_clear(session: ImportSession):
    session.set_override("import-row-6", "ignore")
    assert session.effective_action(session.rows[4]) is EffectiveAction.IGNORE
    session.set_override("import-row-6", None)
    assert session.effective_action(session.rows[4]) is EffectiveAction.CREATE
    with pytest.raises(KeyError):
        session.set_override("import-row-99", "ignore")
    with pytest.raises(ValueError):
        session.set_override("import-row-6", "delete")


def test_filter_rows(session: ImportSession):
    ids = lambda f: [r.row_id for r in session.filter_rows(f)]  # noqa: E731
    assert ids(PreviewFilter.ERRORS) == ["import-row-4"]
    assert ids("conflicts") == ["import-row-2", "import-row-3"]
    assert ids(PreviewFilter.UPDATE) == ["import-row-5"]
    assert ids(PreviewFilter.CREATE) == ["import-row-6"]
    assert len(ids(PreviewFilter.ALL)) == 5


@pytest.mark.asyncio
async def test_run_refuses_while_blocked(session: ImportSession, tmp_path):
    store = InMemoryClientStore()
    with pytest.raises(ImportBlockedError):
        await session.run(store.upsert, AuditLogWriter(tmp_path))
    assert store.upsert_calls == []


@pytest.mark.asyncio
async def test_run_executes_decisions(session: ImportSession, tmp_path):
    session.resolve_conflict("account:123", winner_row_id="import-row-3")
    session.set_override("import-row-4", OverrideAction.IGNORE)
    store = InMemoryClientStore.with_clients([{"id": "c-1", "codigoConta": "555", "nome": "Antigo"}])
    audit = AuditLogWriter(tmp_path / "logs")

    report = await session.run(store.upsert, audit, import_id="imp-9")

    assert report.status is RunStatus.COMPLETED
    assert [r.result for r in report.results] == [
        RowResult.IGNORED,
        RowResult.CREATED,
        RowResult.IGNORED,
        RowResult.UPDATED,
        RowResult.CREATED,
    ]
    assert report.counters.to_dict() == {"created": 2, "updated": 1, "ignored": 2, "errors": 0}
    assert audit.written[0].file_name == "clientes.xlsx"
    assert audit.written[0].import_id == "imp-9"
    assert audit.path_for().exists()
