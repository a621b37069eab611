from __future__ import annotations

import asyncio

import pytest

from client_import.db.client_store import ClientStoreError
from client_import.db.memory_store import InMemoryClientStore
from client_import.models.audit_record import AuditRecord
from client_import.models.decision import DecisionSnapshot, EffectiveAction, OverrideAction
from client_import.models.execution import RowResult, RunStatus, UpsertItemResult
from client_import.models.preview import BaseAction, LookupMatch
from client_import.services.decisions import build_decision_snapshots
from client_import.services.executor import (
    DEFAULT_ERROR_MESSAGE,
    IGNORED_MESSAGE,
    MISSING_RESULT_MESSAGE,
    _to_items,
    chunk,
    execute_decisions,
)


class RecordingAudit:
    def __init__(self, fail: bool = False) -> None:
        self.records: list[AuditRecord] = []
        self.fail = fail

    async def __call__(self, record: AuditRecord) -> None:
        if self.fail:
            raise OSError("disk full")
        self.records.append(record)


def _creates(factory, count: int, start: int = 2):
    rows = [factory(start + i, account=str(1000 + i)) for i in range(count)]
    return build_decision_snapshots(rows, {}, {})


def test_chunk():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 3) == []
    with pytest.raises(ValueError):
        chunk([1], 0)


@pytest.mark.asyncio
async def test_450_decisions_run_in_three_sequential_batches(preview_row_factory):
    store = InMemoryClientStore()
    audit = RecordingAudit()
    report = await execute_decisions(_creates(preview_row_factory, 450), store.upsert, audit, file_name="c.xlsx")

    assert [len(call) for call in store.upsert_calls] == [200, 200, 50]
    assert report.status is RunStatus.COMPLETED
    assert report.total_batches == 3
    assert report.counters.created == 450
    assert [r.row_number for r in report.results] == sorted(r.row_number for r in report.results)
    assert audit.records[0].created_count == 450
    assert report.audit_written is True


@pytest.mark.asyncio
async def test_batches_never_overlap(preview_row_factory):
    in_flight = 0
    seen: list[int] = []

    async def upsert(items):
        nonlocal in_flight
        in_flight += 1
        seen.append(in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return [UpsertItemResult(status="created", client_id=f"id-{i.row_number}") for i in items]

    await execute_decisions(_creates(preview_row_factory, 5), upsert, RecordingAudit(), file_name="f", batch_size=2)
    assert seen == [1, 1, 1]


@pytest.mark.asyncio
async def test_ignored_rows_are_reported_not_sent(preview_row_factory):
    blocking = preview_row_factory(2, blocking=True)
    normal = preview_row_factory(3, account="9")
    snapshots = build_decision_snapshots([blocking, normal], {blocking.row_id: OverrideAction.IGNORE}, {})
    store = InMemoryClientStore()

    report = await execute_decisions(snapshots, store.upsert, RecordingAudit(), file_name="f")

    sent_rows = [item.row_number for call in store.upsert_calls for item in call]
    assert sent_rows == [3]
    assert report.results[0].result is RowResult.IGNORED
    assert report.results[0].message == IGNORED_MESSAGE
    assert report.results[0].action is EffectiveAction.IGNORE
    assert report.counters.ignored == 1
    assert report.counters.created == 1


@pytest.mark.asyncio
async def test_update_items_carry_client_id_and_source(preview_row_factory):
    match = LookupMatch(account_number="555", client_id="c-1")
    store = InMemoryClientStore.with_clients([{"id": "c-1", "nome": "Antiga", "codigoConta": "555"}])
    snapshots = build_decision_snapshots([preview_row_factory(7, account="555", existing=match)], {}, {})

    report = await execute_decisions(snapshots, store.upsert, RecordingAudit(), file_name="f", import_id="imp-1")

    item = store.upsert_calls[0][0]
    assert item.to_dict()["clientId"] == "c-1"
    assert item.to_dict()["source"] == {"importId": "imp-1", "rowNumber": 7}
    assert report.results[0].result is RowResult.UPDATED
    assert report.results[0].client_id == "c-1"
    assert store.clients["c-1"].data["nome"] == "Cliente"


@pytest.mark.asyncio
async def test_item_failures_do_not_stop_the_run(preview_row_factory):
    store = InMemoryClientStore(fail_accounts={"1001"})
    audit = RecordingAudit()
    report = await execute_decisions(_creates(preview_row_factory, 4), store.upsert, audit, file_name="f", batch_size=2)

    assert report.status is RunStatus.COMPLETED
    assert report.counters.errors == 1
    assert report.counters.created == 3
    errors = [r for r in report.results if r.result is RowResult.ERROR]
    assert errors[0].message == "rejected account 1001"
    assert audit.records[0].error_count == 1
    assert [t.code for t in audit.records[0].top_errors] == ["rejected account 1001"]


@pytest.mark.asyncio
async def test_unknown_status_and_missing_result_are_errors(preview_row_factory):
    async def upsert(items):
        return [UpsertItemResult(status="weird")]

    report = await execute_decisions(_creates(preview_row_factory, 2), upsert, RecordingAudit(), file_name="f")
    assert [r.message for r in report.results] == [DEFAULT_ERROR_MESSAGE, MISSING_RESULT_MESSAGE]
    assert report.counters.errors == 2


@pytest.mark.asyncio
async def test_transport_failure_aborts_and_still_audits(preview_row_factory):
    store = InMemoryClientStore(fail_on_call=2)
    audit = RecordingAudit()
    report = await execute_decisions(_creates(preview_row_factory, 5), store.upsert, audit, file_name="f", batch_size=2)

    assert report.status is RunStatus.ABORTED
    assert len(store.upsert_calls) == 2
    assert report.counters.created == 2
    assert report.counters.errors == 2
    assert all(r.message.startswith("transport_error:") for r in report.results if r.result is RowResult.ERROR)
    assert report.unsent_rows == ["import-row-6"]
    assert report.error == "connection lost on call 2"
    assert audit.records[0].status == "aborted"
    assert audit.records[0].error_count == 2


@pytest.mark.asyncio
async def test_cancel_event_stops_further_batches(preview_row_factory):
    cancel = asyncio.Event()

    def on_batch(index, total, counters):
        if index == 1:
            cancel.set()

    store = InMemoryClientStore()
    audit = RecordingAudit()
    report = await execute_decisions(
        _creates(preview_row_factory, 5), store.upsert, audit,
        file_name="f", batch_size=2, cancel_event=cancel, on_batch=on_batch,
    )

    assert report.status is RunStatus.CANCELLED
    assert len(store.upsert_calls) == 1
    assert report.counters.created == 2
    assert report.unsent_rows == ["import-row-4", "import-row-5", "import-row-6"]
    assert audit.records[0].status == "cancelled"


@pytest.mark.asyncio
async def test_audit_failure_is_reported_not_raised(preview_row_factory):
    store = InMemoryClientStore()
    report = await execute_decisions(_creates(preview_row_factory, 1), store.upsert, RecordingAudit(fail=True), file_name="f")
    assert report.status is RunStatus.COMPLETED
    assert report.audit_written is False


@pytest.mark.asyncio
async def test_empty_run_still_writes_audit():
    audit = RecordingAudit()
    report = await execute_decisions([], InMemoryClientStore().upsert, audit, file_name="vazio.csv")
    assert report.total_batches == 0
    assert audit.records[0].file_name == "vazio.csv"
    assert audit.records[0].created_count == 0


@pytest.mark.asyncio
async def test_metrics_callback_receives_every_batch(preview_row_factory):
    metrics = []
    await execute_decisions(
        _creates(preview_row_factory, 3), InMemoryClientStore().upsert, RecordingAudit(),
        file_name="f", batch_size=2, metrics_callback=metrics.append,
    )
    assert [(m.batch_index, m.batch_size) for m in metrics] == [(1, 2), (2, 1)]


@pytest.mark.asyncio
async def test_store_error_type_is_transport_failure(preview_row_factory):
    async def upsert(items):
        raise ClientStoreError("timeout")

    report = await execute_decisions(_creates(preview_row_factory, 1), upsert, RecordingAudit(), file_name="f")
    assert report.status is RunStatus.ABORTED
    assert report.results[0].message == "transport_error: timeout"


def test_to_items_rejects_snapshot_without_payload():
    snapshot = DecisionSnapshot(
        row_id="import-row-2",
        row_number=2,
        account_number="1000",
        effective_action=EffectiveAction.CREATE,
        issues=(),
        backend_action=BaseAction.CREATE,
    )
    with pytest.raises(ValueError, match="import-row-2"):
        _to_items([snapshot], "imp-1")


@pytest.mark.asyncio
async def test_snapshots_without_payload_are_not_sent(preview_row_factory):
    sendable = _creates(preview_row_factory, 1)
    unsendable = DecisionSnapshot(
        row_id="import-row-9",
        row_number=9,
        account_number="9",
        effective_action=EffectiveAction.CREATE,
        issues=(),
        backend_action=BaseAction.CREATE,
    )
    store = InMemoryClientStore()
    report = await execute_decisions(sendable + [unsendable], store.upsert, RecordingAudit(), file_name="c.xlsx")

    assert [len(call) for call in store.upsert_calls] == [1]
    assert report.counters.created == 1
