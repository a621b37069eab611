from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..models.preview import RawRow

"""Spreadsheet reader.

The first row of every sheet is the header row; data rows follow, so the
first data row is spreadsheet row 2. Cell values are handed to the
normalizer as plain Python scalars (str/int/float/bool/datetime/None).
"""

__all__ = [
    "ImportFileError",
    "SheetHeaderError",
    "ParsedSheet",
    "ParsedImportFile",
    "SUPPORTED_SUFFIXES",
    "read_import_file",
    "default_sheet_name",
    "to_python_scalar",
]

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".xls", ".csv")


class ImportFileError(Exception):
    """Raised when the file is missing, unreadable or of an unsupported type."""


class SheetHeaderError(Exception):
    """Raised when a sheet has no usable header row."""


@dataclass(frozen=True)
class ParsedSheet:
    name: str
    headers: list[str]
    rows: list[RawRow]  # header -> cell value, blank rows dropped


@dataclass(frozen=True)
class ParsedImportFile:
    file_name: str
    file_size: int  # bytes
    file_type: str  # "xlsx" | "csv" ...
    sheets: list[ParsedSheet]

    def get_sheet(self, name: str) -> ParsedSheet:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        raise ImportFileError(f"sheet not found: {name}")


def to_python_scalar(value: Any) -> Any:
    """Convert pandas/numpy cell values into plain Python values.

    NaN/NaT -> None, numpy scalars -> ``.item()``, Timestamp -> datetime.
    """
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    return value


def _frame_to_sheet(name: str, df: pd.DataFrame) -> ParsedSheet:
    headers = [str(c).strip() for c in df.columns]
    if not headers or all(h == "" or h.startswith("Unnamed:") for h in headers):
        raise SheetHeaderError(f"sheet '{name}' has no header row")

    rows: list[RawRow] = []
    for record in df.itertuples(index=False, name=None):
        row = {h: to_python_scalar(v) for h, v in zip(headers, record, strict=False)}
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
    return ParsedSheet(name=name, headers=headers, rows=rows)


def _read_excel(path: Path) -> list[ParsedSheet]:
    sheets: list[ParsedSheet] = []
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            df = xls.parse(name, header=0)
            if df.columns.empty:
                logger.info("sheet skipped (empty) sheet=%s", name)
                continue
            sheets.append(_frame_to_sheet(str(name), df))
    return sheets


def _read_csv(path: Path) -> list[ParsedSheet]:
    # Everything as text; the normalizer owns number/date parsing.
    df = pd.read_csv(
        path,
        sep=None,
        engine="python",
        dtype=str,
        keep_default_na=False,
        encoding="utf-8-sig",
    )
    return [_frame_to_sheet(path.stem, df)]


def read_import_file(path: Path) -> ParsedImportFile:
    """Read an .xlsx/.xls/.csv file into headers and raw rows per sheet.

    Raises:
        ImportFileError: missing file, unsupported suffix or parse failure
        SheetHeaderError: a sheet without header row
    """
    if not path.exists():
        raise ImportFileError(f"file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ImportFileError(f"unsupported file type: {suffix or '(none)'}")

    try:
        sheets = _read_csv(path) if suffix == ".csv" else _read_excel(path)
    except SheetHeaderError:
        raise
    except (ValueError, OSError, csv.Error, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ImportFileError(f"failed to read {path.name}: {e}") from e

    parsed = ParsedImportFile(
        file_name=path.name,
        file_size=path.stat().st_size,
        file_type=suffix.lstrip("."),
        sheets=sheets,
    )
    logger.info(
        "file read file=%s sheets=%d rows=%d",
        parsed.file_name,
        len(sheets),
        sum(len(s.rows) for s in sheets),
    )
    return parsed


def default_sheet_name(parsed: ParsedImportFile) -> str | None:
    """First sheet holding data rows, else the first sheet, else None."""
    for sheet in parsed.sheets:
        if sheet.rows:
            return sheet.name
    return parsed.sheets[0].name if parsed.sheets else None
