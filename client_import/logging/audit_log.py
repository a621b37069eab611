from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..models.audit_record import AuditRecord

"""Audit log writer: one JSON Lines record per import run.

Records are appended to `<directory>/import-audit-YYYYMMDD.log` (UTC date).
Writes are serial; no locking.
"""

__all__ = [
    "AuditRecord",
    "AuditLogWriter",
]

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = Path("./logs")
DATE_FMT = "%Y%m%d"


class AuditLogWriter:
    """Append-only audit sink usable as the executor's async audit collaborator."""

    def __init__(self, directory: Path = DEFAULT_AUDIT_DIR) -> None:
        self.directory = Path(directory)
        self.written: list[AuditRecord] = []

    def path_for(self, when: datetime | None = None) -> Path:
        stamp = (when or datetime.now(UTC)).strftime(DATE_FMT)
        return self.directory / f"import-audit-{stamp}.log"

    def append(self, record: AuditRecord) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        fp = self.path_for()
        with fp.open("a", encoding="utf-8") as f:
            f.write(record.to_json_line() + "\n")
        self.written.append(record)
        logger.info("audit record written: %s import_id=%s", fp, record.import_id)
        return fp

    async def __call__(self, record: AuditRecord) -> None:
        self.append(record)
