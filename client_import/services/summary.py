from __future__ import annotations

from ..models.execution import ExecutionReport

"""SUMMARY line rendering for an import run.

Format:
SUMMARY rows={rows} created={c} updated={u} ignored={i} errors={e}
batches={b} status={status} elapsed_sec={elapsed}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or a trailing '.0'."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: ExecutionReport) -> str:
    """Render the SUMMARY line for a finished (or partial) run.

    Examples:
        >>> from client_import.models.execution import ImportCounters, RunStatus
        >>> report = ExecutionReport(
        ...     import_id="abc", status=RunStatus.COMPLETED, results=[],
        ...     counters=ImportCounters(created=2, updated=1, ignored=1, errors=0),
        ...     total_batches=1, elapsed_seconds=2.0, audit_written=True,
        ... )
        >>> render_summary_line(report)
        'SUMMARY rows=0 created=2 updated=1 ignored=1 errors=0 batches=1 status=completed elapsed_sec=2'
    """
    counters = report.counters
    return (
        f"SUMMARY rows={len(report.results)} "
        f"created={counters.created} "
        f"updated={counters.updated} "
        f"ignored={counters.ignored} "
        f"errors={counters.errors} "
        f"batches={report.total_batches} "
        f"status={report.status.value} "
        f"elapsed_sec={format_seconds(report.elapsed_seconds)}"
    )
