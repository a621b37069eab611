from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from ..models.audit_record import AuditRecord, top_error_messages
from ..models.decision import DecisionSnapshot, EffectiveAction
from ..models.execution import (
    BatchMetrics,
    BatchStatsAccumulator,
    ExecutionReport,
    ExecutionResult,
    ImportCounters,
    RowResult,
    RunStatus,
    UpsertItem,
    UpsertItemResult,
    UpsertStatus,
)
from .progress import ProgressTracker

"""Batch executor: sends executable decisions to the upsert collaborator.

Batches run strictly in order; batch N+1 is only sent after batch N's results
are folded into the counters. Per-item failures become ERROR results and the
run continues. A transport failure (the upsert call raising) marks that
batch's rows as errors and stops further batches. A set cancel event stops
further batches as well. The audit record is written in every case, including
partial runs.

Callers must check that no decision is ERROR or CONFLICT before executing;
such rows are neither sent nor reported here.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "IGNORED_MESSAGE",
    "DEFAULT_ERROR_MESSAGE",
    "MISSING_RESULT_MESSAGE",
    "UpsertFn",
    "AuditFn",
    "chunk",
    "execute_decisions",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 200
IGNORED_MESSAGE = "Linha ignorada pelo usuário."
DEFAULT_ERROR_MESSAGE = "Erro no processamento."
MISSING_RESULT_MESSAGE = "Resposta ausente para o item."
TRANSPORT_ERROR_PREFIX = "transport_error"

UpsertFn = Callable[[list[UpsertItem]], Awaitable[Sequence[UpsertItemResult]]]
AuditFn = Callable[[AuditRecord], Awaitable[None]]
BatchCallback = Callable[[int, int, ImportCounters], None]  # (batch_index, total_batches, counters)

T = TypeVar("T")


def chunk(values: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(values[i : i + size]) for i in range(0, len(values), size)]


@dataclass
class _RunState:
    results: list[ExecutionResult] = field(default_factory=list)
    counters: ImportCounters = field(default_factory=ImportCounters)
    stats: BatchStatsAccumulator = field(default_factory=BatchStatsAccumulator)
    sent_batches: int = 0
    unsent_rows: list[str] = field(default_factory=list)
    error: str | None = None


def _result(snapshot: DecisionSnapshot, result: RowResult, message: str | None = None,
            client_id: str | None = None) -> ExecutionResult:
    return ExecutionResult(
        row_id=snapshot.row_id,
        row_number=snapshot.row_number,
        account_number=snapshot.account_number,
        action=snapshot.effective_action,
        result=result,
        message=message,
        client_id=client_id,
    )


def _to_items(batch: Sequence[DecisionSnapshot], import_id: str) -> list[UpsertItem]:
    items: list[UpsertItem] = []
    for snapshot in batch:
        if snapshot.backend_action is None or snapshot.payload is None:
            raise ValueError(f"row {snapshot.row_id} has no backend action or payload to send")
        items.append(
            UpsertItem(
                action=snapshot.backend_action,
                data=snapshot.payload,
                import_id=import_id,
                row_number=snapshot.row_number,
                client_id=snapshot.client_id,
            )
        )
    return items


def _fold_batch(batch: Sequence[DecisionSnapshot], response: Sequence[UpsertItemResult], state: _RunState) -> None:
    """Fold positional results into the run state."""
    for position, snapshot in enumerate(batch):
        item = response[position] if position < len(response) else None
        if item is None:
            state.counters.errors += 1
            state.results.append(_result(snapshot, RowResult.ERROR, MISSING_RESULT_MESSAGE))
        elif item.status == UpsertStatus.CREATED:
            state.counters.created += 1
            state.results.append(_result(snapshot, RowResult.CREATED, client_id=item.client_id))
        elif item.status == UpsertStatus.UPDATED:
            state.counters.updated += 1
            state.results.append(_result(snapshot, RowResult.UPDATED, client_id=item.client_id))
        else:
            state.counters.errors += 1
            state.results.append(_result(snapshot, RowResult.ERROR, item.error or DEFAULT_ERROR_MESSAGE))
    if len(response) > len(batch):
        logger.warning("upsert returned %d results for %d items; extra ignored", len(response), len(batch))


async def _run_batches(
    batches: list[list[DecisionSnapshot]],
    upsert: UpsertFn,
    import_id: str,
    state: _RunState,
    cancel_event: asyncio.Event | None,
    on_batch: BatchCallback | None,
    metrics_callback: Callable[[BatchMetrics], None] | None,
) -> RunStatus:
    with ProgressTracker(len(batches)) as progress:
        for index, batch in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                state.unsent_rows = [s.row_id for b in batches[index - 1 :] for s in b]
                logger.warning("import cancelled before batch %d/%d", index, len(batches))
                return RunStatus.CANCELLED

            progress.start_batch(len(batch))
            items = _to_items(batch, import_id)
            start_time = time.time()
            try:
                response = await upsert(items)
            except Exception as e:
                state.error = str(e)
                message = f"{TRANSPORT_ERROR_PREFIX}: {e}"
                for snapshot in batch:
                    state.counters.errors += 1
                    state.results.append(_result(snapshot, RowResult.ERROR, message))
                state.unsent_rows = [s.row_id for b in batches[index:] for s in b]
                logger.error("upsert batch %d/%d failed: %s", index, len(batches), e)
                return RunStatus.ABORTED
            finally:
                end_time = time.time()
                state.stats.add_batch_time(end_time - start_time)
                if metrics_callback is not None:
                    metrics_callback(
                        BatchMetrics(
                            batch_index=index,
                            batch_size=len(batch),
                            elapsed_seconds=end_time - start_time,
                            start_time=start_time,
                            end_time=end_time,
                        )
                    )

            state.sent_batches += 1
            _fold_batch(batch, response, state)
            logger.debug("batch %d/%d done counters=%s", index, len(batches), state.counters.to_dict())
            progress.finish_batch(**state.counters.to_dict())
            if on_batch is not None:
                on_batch(index, len(batches), state.counters)
    return RunStatus.COMPLETED


async def _write_audit(audit: AuditFn, record: AuditRecord) -> bool:
    try:
        await audit(record)
    except Exception as e:
        logger.error("audit write failed import_id=%s: %s", record.import_id, e)
        return False
    return True


async def execute_decisions(
    snapshots: Sequence[DecisionSnapshot],
    upsert: UpsertFn,
    audit: AuditFn,
    *,
    file_name: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    import_id: str | None = None,
    cancel_event: asyncio.Event | None = None,
    on_batch: BatchCallback | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> ExecutionReport:
    """Execute decisions in sequential batches and write the audit record.

    Args:
        snapshots: decisions of the session (ERROR/CONFLICT must already be resolved)
        upsert: async bulk upsert collaborator, one positional result per item
        audit: async audit writer
        file_name: source file name recorded in the audit
        batch_size: items per upsert call
        import_id: run identifier, random when omitted
        cancel_event: when set, no further batches are sent
        on_batch: called after each batch with the running counters
        metrics_callback: receives BatchMetrics for every upsert call

    Returns:
        ExecutionReport with results sorted by row number
    """
    batches = chunk([s for s in snapshots if s.backend_action is not None and s.payload is not None], batch_size)
    import_id = import_id or uuid.uuid4().hex
    state = _RunState()
    started = time.monotonic()

    for snapshot in snapshots:
        if snapshot.effective_action is EffectiveAction.IGNORE:
            state.counters.ignored += 1
            state.results.append(_result(snapshot, RowResult.IGNORED, IGNORED_MESSAGE))

    logger.info("import %s started batches=%d ignored=%d", import_id, len(batches), state.counters.ignored)
    status = RunStatus.ABORTED
    try:
        status = await _run_batches(batches, upsert, import_id, state, cancel_event, on_batch, metrics_callback)
    except asyncio.CancelledError:
        status = RunStatus.CANCELLED
        raise
    finally:
        record = AuditRecord.create(
            file_name=file_name,
            created_count=state.counters.created,
            updated_count=state.counters.updated,
            ignored_count=state.counters.ignored,
            error_count=state.counters.errors,
            top_errors=top_error_messages(r.message for r in state.results if r.result is RowResult.ERROR),
            import_id=import_id,
            status=status.value,
        )
        audit_written = await _write_audit(audit, record)

    _, avg_batch, p95_batch = state.stats.get_stats()
    return ExecutionReport(
        import_id=import_id,
        status=status,
        results=sorted(state.results, key=lambda r: r.row_number),
        counters=state.counters,
        total_batches=state.sent_batches,
        elapsed_seconds=time.monotonic() - started,
        audit_written=audit_written,
        error=state.error,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
        unsent_rows=state.unsent_rows,
    )
