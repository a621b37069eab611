from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, DecisionsConfig, ImportConfig, load_config, load_decisions
from ..db.client_store import ClientStoreError, PostgresClientStore, ensure_table
from ..db.memory_store import InMemoryClientStore
from ..excel.reader import ImportFileError, ParsedSheet, SheetHeaderError, default_sheet_name, read_import_file
from ..logging.audit_log import AuditLogWriter
from ..logging.init import log_summary, setup_logging
from ..mapping.header_mapper import apply_mapping_model, auto_map
from ..mapping.model_store import MappingModelError, MappingModelStore
from ..models.decision import EffectiveAction
from ..models.execution import RunStatus
from ..models.fields import IGNORE_COLUMN, ColumnMapping, get_field_definition
from ..models.mapping_model import MappingModel
from ..services.orchestrator import ImportBlockedError, ImportSession
from ..services.preview import LookupForbiddenError, PreviewError, describe_changes, prepare_preview
from ..services.reports import write_reports
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (override) and config/import.yml
- Read the spreadsheet, pick the sheet, build the column mapping
  (--model, else the last used saved model, else auto mapping)
- Preview: normalize rows, look up existing clients, detect conflicts
- Apply decisions (--decisions file), refuse to run while rows block
- Execute in batches, write reports + audit record, print SUMMARY

DISABLE_DB_CONNECT=1 switches to the in-memory client store (mock mode).
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_BLOCKED = 3

INSPECT_SAMPLE_ROWS = 3


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a psycopg2 connection.

    Resolution order:
        1. DATABASE_URL / PGDSN (after .env was loaded with override)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. database section of config/import.yml
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Spreadsheet -> client records import")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config path")
    p.add_argument("--file", help="Spreadsheet to import (overrides source_file)")
    p.add_argument("--sheet", help="Sheet name (default: first sheet with rows)")
    p.add_argument("--model", help="Saved mapping model name to apply (default: last used model)")
    p.add_argument("--auto-map", action="store_true", help="Ignore the last used mapping model and map headers automatically")
    p.add_argument("--save-model", metavar="NAME", help="Save the mapping in use under NAME")
    p.add_argument("--decisions", help="YAML file with row overrides and conflict resolutions")
    p.add_argument("--preview-only", action="store_true", help="Print the preview and exit without importing")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, mapping and first rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _describe_mapping(mapping: ColumnMapping) -> list[str]:
    lines = []
    for header, key in mapping.items():
        definition = get_field_definition(key)
        target = definition.label if definition is not None else "(ignorar)"
        lines.append(f"  {header!r} -> {key if key != IGNORE_COLUMN else '-'} {target}")
    return lines


def _inspect_data(sheet: ParsedSheet, mapping: ColumnMapping) -> int:
    print(f"SHEET: {sheet.name} rows={len(sheet.rows)}")
    print(f"  headers={sheet.headers}")
    for line in _describe_mapping(mapping):
        print(line)
    for row in sheet.rows[:INSPECT_SAMPLE_ROWS]:
        print("  sample_row=", {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.items()})
    return EXIT_SUCCESS_ALL


def _print_preview(session: ImportSession) -> None:
    actions = Counter(session.effective_action(row).value for row in session.rows)
    print(f"PREVIEW rows={len(session.rows)} " + " ".join(f"{k}={v}" for k, v in sorted(actions.items())))
    for row in session.rows:
        issues = "; ".join(f"{i.severity.value}:{i.code}" for i in row.issues)
        group = f" [{row.conflict_group_id}]" if row.conflict_group_id else ""
        print(
            f"  {row.row_number:>5} {row.row_id} conta={row.account_number or '-'} "
            f"{session.effective_action(row).value}{group} {describe_changes(row)}"
            + (f" issues={issues}" if issues else "")
        )


def _last_used_model(store: MappingModelStore, headers: list[str], logger: logging.Logger) -> MappingModel | None:
    last_id = store.last_used_id()
    model = store.get(last_id) if last_id else None
    if model is None:
        return None
    if not any(header in model.mapping for header in headers):
        logger.info(f"last used mapping model {model.name!r} knows none of the headers; using auto mapping")
        return None
    return model


def _resolve_mapping(args: argparse.Namespace, cfg: ImportConfig, sheet: ParsedSheet, logger: logging.Logger) -> ColumnMapping:
    store = MappingModelStore(Path(cfg.mapping_store), capacity=cfg.mapping_model_capacity)
    if args.model:
        model = store.find_by_name(args.model)
        if model is None:
            raise MappingModelError(f"mapping model not found: {args.model}")
    else:
        model = None if args.auto_map else _last_used_model(store, sheet.headers, logger)

    if model is not None:
        store.mark_used(model.id)
        mapping = apply_mapping_model(sheet.headers, model)
        logger.info(f"mapping model applied: {model.name}")
    else:
        mapping = auto_map(sheet.headers)
        mapped = sum(1 for v in mapping.values() if v != IGNORE_COLUMN)
        logger.info(f"auto mapping: {mapped}/{len(mapping)} columns mapped")
    if args.save_model:
        store.save(args.save_model, mapping)
        logger.info(f"mapping model saved: {args.save_model.strip()}")
    return mapping


def _apply_decisions(session: ImportSession, decisions: DecisionsConfig) -> None:
    try:
        for row_id, action in decisions.overrides.items():
            session.set_override(row_id, action)
        for group_id, resolution in decisions.conflicts.items():
            session.resolve_conflict(group_id, resolution.winner_row_id, resolution.ignore_all)
    except (KeyError, ValueError) as e:
        raise ConfigError(f"decisions do not match the preview: {e}") from e


def _log_blocking(session: ImportSession, logger: logging.Logger) -> None:
    for decision in session.decisions():
        if decision.effective_action not in (EffectiveAction.ERROR, EffectiveAction.CONFLICT):
            continue
        codes = ",".join(i.code for i in decision.issues) or "-"
        logger.error(
            f"blocked row={decision.row_number} id={decision.row_id} action={decision.effective_action.value} "
            f"group={decision.conflict_group_id or '-'} issues={codes}"
        )


async def _run_import(
    args: argparse.Namespace,
    cfg: ImportConfig,
    file_name: str,
    sheet: ParsedSheet,
    mapping: ColumnMapping,
    decisions: DecisionsConfig,
    store: Any,
    logger: logging.Logger,
) -> int:
    preview = await prepare_preview(sheet.rows, mapping, store.lookup, tz=cfg.tz)
    session = ImportSession(preview, file_name=file_name)
    _apply_decisions(session, decisions)

    if args.preview_only:
        _print_preview(session)
        return EXIT_SUCCESS_ALL

    try:
        report = await session.run(store.upsert, AuditLogWriter(Path(cfg.audit_log_directory)), batch_size=cfg.batch_size)
    except ImportBlockedError as e:
        _log_blocking(session, logger)
        logger.error(str(e))
        return EXIT_BLOCKED

    csv_path, json_path = write_reports(
        Path(cfg.reports_directory), file_name, report.counters, report.results, session.decisions()
    )
    logger.info(f"reports written: {csv_path} {json_path}")
    if not report.audit_written:
        logger.warning(f"audit record not written for import {report.import_id}")

    summary_line = render_summary_line(report)
    log_summary(summary_line)

    if report.counters.errors > 0 or report.status is not RunStatus.COMPLETED:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(logging.DEBUG if args.debug else logging.INFO)
    _load_env_file(Path(".env"), override=True)
    logger.debug("debug mode enabled")

    try:
        cfg = load_config(Path(args.config))
        decisions = load_decisions(Path(args.decisions)) if args.decisions else DecisionsConfig()
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    source = args.file or cfg.source_file
    if not source:
        logger.error("no input file: pass --file or set source_file")
        return EXIT_FATAL

    try:
        parsed = read_import_file(Path(source))
        sheet_name = args.sheet or cfg.sheet or default_sheet_name(parsed)
        if sheet_name is None:
            logger.error(f"no sheets found in {parsed.file_name}")
            return EXIT_FATAL
        sheet = parsed.get_sheet(sheet_name)
    except (ImportFileError, SheetHeaderError) as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL
    logger.info(f"Processing file: {parsed.file_name} sheet={sheet.name} rows={len(sheet.rows)}")

    try:
        mapping = _resolve_mapping(args, cfg, sheet, logger)
    except MappingModelError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(sheet, mapping)

    try:
        if os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            store = InMemoryClientStore()
            code = asyncio.run(_run_import(args, cfg, parsed.file_name, sheet, mapping, decisions, store, logger))
            logger.info(f"mode=mock stored_clients={len(store.clients)}")
            return code
        with _db_connection(cfg) as conn:
            with conn.cursor() as cur:
                ensure_table(cur, cfg.table)
            conn.commit()
            store = PostgresClientStore(conn, cfg.table)
            return asyncio.run(_run_import(args, cfg, parsed.file_name, sheet, mapping, decisions, store, logger))
    except LookupForbiddenError as e:
        logger.error(f"lookup forbidden: {e}")
        return EXIT_FATAL
    except PreviewError as e:
        logger.error(f"preview: {e}")
        return EXIT_FATAL
    except ConfigError as e:
        logger.error(f"decisions: {e}")
        return EXIT_FATAL
    except (psycopg2.Error, ClientStoreError) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
