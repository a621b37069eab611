from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence

from ..models.fields import FIELD_DEFINITIONS, IGNORE_COLUMN, ColumnMapping, FieldDefinition
from ..models.mapping_model import MappingModel

"""Header auto-mapping.

Scoring per (header, field): exact match after normalization = 100, header
contains a hint = 60, hint contains header = 40. A header claims the best
still-unclaimed field when the score reaches AUTO_MAP_THRESHOLD; headers are
processed greedily in their original order. The resulting mapping is total.
"""

__all__ = [
    "AUTO_MAP_THRESHOLD",
    "strip_accents",
    "normalize_header",
    "score_header",
    "auto_map",
    "apply_mapping_model",
    "field_options",
]

AUTO_MAP_THRESHOLD = 60
SCORE_EXACT = 100
SCORE_HEADER_CONTAINS_HINT = 60
SCORE_HINT_CONTAINS_HEADER = 40

_SEPARATORS = re.compile(r"[^0-9a-z]+")


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_header(header: str) -> str:
    """Lowercase, strip accents and collapse any separator run into one space."""
    return _SEPARATORS.sub(" ", strip_accents(str(header)).lower()).strip()


def score_header(normalized_header: str, definition: FieldDefinition) -> int:
    """Best score of a normalized header against all hints of one field."""
    if not normalized_header:
        return 0
    best = 0
    for hint in definition.hints:
        if normalized_header == hint:
            return SCORE_EXACT
        if hint in normalized_header:
            best = max(best, SCORE_HEADER_CONTAINS_HINT)
        elif normalized_header in hint:
            best = max(best, SCORE_HINT_CONTAINS_HEADER)
    return best


def auto_map(headers: Sequence[str]) -> ColumnMapping:
    """Propose a header -> field mapping; unmatched headers map to IGNORE_COLUMN."""
    mapping: ColumnMapping = {}
    claimed: set[str] = set()
    for header in headers:
        normalized = normalize_header(header)
        best_key: str | None = None
        best_score = 0
        # Strict '>' keeps FIELD_DEFINITIONS order on ties
        for definition in FIELD_DEFINITIONS:
            key = definition.key.value
            if key in claimed:
                continue
            score = score_header(normalized, definition)
            if score > best_score:
                best_key, best_score = key, score
        if best_key is not None and best_score >= AUTO_MAP_THRESHOLD:
            mapping[header] = best_key
            claimed.add(best_key)
        else:
            mapping[header] = IGNORE_COLUMN
    return mapping


def apply_mapping_model(headers: Sequence[str], model: MappingModel) -> ColumnMapping:
    """Copy the model's value for every header it knows; the rest stay ignored."""
    return {header: model.mapping.get(header, IGNORE_COLUMN) for header in headers}


def field_options() -> list[dict[str, str]]:
    """Field choices for a mapping editor (ignore option first)."""
    options = [{"key": IGNORE_COLUMN, "label": "Ignorar coluna", "help": "A coluna não será importada."}]
    options.extend({"key": d.key.value, "label": d.label, "help": d.help} for d in FIELD_DEFINITIONS)
    return options
