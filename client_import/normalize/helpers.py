from __future__ import annotations

import math
import re
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any

from ..mapping.header_mapper import strip_accents

"""Cell-level parsers for Brazilian spreadsheet conventions.

All parsers return None for blank input and for values they cannot
interpret; callers decide whether a None from a non-blank cell is a warning.
"""

__all__ = [
    "EXCEL_EPOCH",
    "is_blank",
    "clean_text",
    "normalize_account_number",
    "parse_br_number",
    "parse_percent_cdi",
    "parse_boolean_sim_nao",
    "parse_spreadsheet_date",
    "to_iso_date",
    "to_iso_datetime",
    "normalize_perfil_investidor",
    "normalize_status",
]

EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=UTC)

_NON_NUMERIC = re.compile(r"[^\d,.\-]")
_DD_MM_YYYY = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{2,4})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_TRUE_WORDS = frozenset({"sim", "s", "yes", "y", "true", "1"})
_FALSE_WORDS = frozenset({"nao", "n", "no", "false", "0"})


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return not value.replace("\xa0", " ").strip()
    return False


def clean_text(value: Any) -> str:
    """Cell as trimmed text; integral floats lose their '.0' (phones, documents)."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).replace("\xa0", " ").strip()


def normalize_account_number(value: Any) -> str:
    """Digits only. Idempotent: normalizing a normalized account is a no-op."""
    if isinstance(value, bool):
        return ""
    return re.sub(r"\D", "", clean_text(value))


def parse_br_number(value: Any) -> float | None:
    """Parse Brazilian or international decimal notation.

    With both ',' and '.', the rightmost one is the decimal point and the other
    is a thousands separator. A lone ',' is the decimal point. A separator
    repeated on its own ('1.234.567') can only be a thousands separator.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = _NON_NUMERIC.sub("", str(value).replace("\xa0", " ").strip().replace(" ", ""))
    if not text or text in {"-", ",", "."}:
        return None

    has_comma = "," in text
    has_dot = "." in text
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        text = text.replace(",", "") if text.count(",") > 1 else text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_percent_cdi(value: Any) -> float | None:
    """Fraction in the sheet (0.95) -> percentage in the payload (95.0)."""
    parsed = parse_br_number(value)
    if parsed is None:
        return None
    return parsed * 100


def parse_boolean_sim_nao(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    normalized = strip_accents(str(value).strip().lower()).rstrip(".")
    if normalized in _TRUE_WORDS:
        return True
    if normalized in _FALSE_WORDS:
        return False
    return None


def _parse_date_string(raw: str, tz: tzinfo) -> datetime | None:
    text = raw.strip()
    if not text:
        return None

    match = _DD_MM_YYYY.match(text)
    if match:
        day, month, year_raw = int(match.group(1)), int(match.group(2)), int(match.group(3))
        year = 2000 + year_raw if year_raw < 100 else year_raw
        hour = int(match.group(4) or 0)
        minute = int(match.group(5) or 0)
        second = int(match.group(6) or 0)
        try:
            return datetime(year, month, day, hour, minute, second, tzinfo=tz)
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=tz)


def parse_spreadsheet_date(value: Any, tz: tzinfo = UTC) -> datetime | None:
    """Accept an Excel serial (days since 1899-12-30 UTC), date/datetime, dd/mm/yyyy or ISO text.

    Naive inputs are interpreted in `tz`; the returned datetime is always aware.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=tz)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return EXCEL_EPOCH + timedelta(days=value)
        except OverflowError:
            return None
    return _parse_date_string(str(value), tz)


def to_iso_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def to_iso_datetime(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_perfil_investidor(value: Any) -> str | None:
    normalized = strip_accents(clean_text(value).lower())
    if not normalized:
        return None
    if "profissional" in normalized:
        return "Profissional"
    if "qualificado" in normalized:
        return "Qualificado"
    if "regular" in normalized:
        return "Regular"
    return None


def normalize_status(value: Any) -> str | None:
    normalized = strip_accents(clean_text(value).lower())
    if not normalized:
        return None
    # 'inativo' contains 'ativo': test it first
    if "inativo" in normalized:
        return "inativo"
    if "ativo" in normalized:
        return "ativo"
    if "prospect" in normalized:
        return "prospecto"
    return None
