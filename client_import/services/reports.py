from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..models.decision import DecisionSnapshot
from ..models.execution import ExecutionResult, ImportCounters

"""Downstream reports: semicolon CSV of results and a JSON debug dump."""

__all__ = [
    "CSV_HEADER",
    "build_csv_report",
    "build_json_report",
    "write_reports",
]

CSV_HEADER = ("rowNumber", "accountNumber", "action", "result", "message")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def _escape(value: object) -> str:
    text = "" if value is None else str(value)
    if ";" not in text and '"' not in text and "\n" not in text:
        return text
    return '"' + text.replace('"', '""') + '"'


def build_csv_report(results: Sequence[ExecutionResult]) -> str:
    lines = [";".join(CSV_HEADER)]
    for r in results:
        lines.append(
            ";".join(
                _escape(v) for v in (r.row_number, r.account_number, r.action.value, r.result.value, r.message)
            )
        )
    return "\n".join(lines)


def build_json_report(
    file_name: str | None,
    counters: ImportCounters,
    results: Sequence[ExecutionResult],
    decisions: Sequence[DecisionSnapshot],
) -> dict[str, Any]:
    return {
        "generatedAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "fileName": file_name,
        "counters": counters.to_dict(),
        "results": [r.to_dict() for r in results],
        "decisions": [d.to_dict() for d in decisions],
    }


def write_reports(
    directory: Path,
    file_name: str | None,
    counters: ImportCounters,
    results: Sequence[ExecutionResult],
    decisions: Sequence[DecisionSnapshot],
) -> tuple[Path, Path]:
    """Write both reports under `directory`; returns (csv_path, json_path)."""
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
    csv_path = directory / f"import-clientes-relatorio-{stamp}.csv"
    json_path = directory / f"import-clientes-debug-{stamp}.json"
    csv_path.write_text(build_csv_report(results), encoding="utf-8")
    json_path.write_text(
        json.dumps(build_json_report(file_name, counters, results, decisions), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return csv_path, json_path
