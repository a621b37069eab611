"""Domain models for the client import reconciliation engine.

Rows travel RawRow -> NormalizeResult -> PreviewRow -> DecisionSnapshot ->
ExecutionResult; each stage is a separate immutable model.
"""

from .audit_record import AuditRecord, TopError
from .decision import ConflictResolutionMap, DecisionSnapshot, EffectiveAction, OverrideAction, RowOverrideMap
from .execution import (
    ExecutionReport,
    ExecutionResult,
    ImportCounters,
    RowResult,
    RunStatus,
    UpsertItem,
    UpsertItemResult,
    UpsertStatus,
)
from .fields import FIELD_DEFINITIONS, IGNORE_COLUMN, ColumnMapping, FieldKey
from .issues import ImportIssue, IssueSeverity
from .mapping_model import MappingModel
from .payload import ClientMetrics, NormalizedClientPayload
from .preview import BaseAction, ConflictResolution, LookupMatch, NormalizeResult, PreviewRow, RawRow

__all__ = [
    # Field catalogue
    "FIELD_DEFINITIONS",
    "IGNORE_COLUMN",
    "ColumnMapping",
    "FieldKey",
    "MappingModel",
    # Normalization / preview
    "ClientMetrics",
    "NormalizedClientPayload",
    "ImportIssue",
    "IssueSeverity",
    "RawRow",
    "NormalizeResult",
    "LookupMatch",
    "BaseAction",
    "PreviewRow",
    "ConflictResolution",
    # Decisions
    "EffectiveAction",
    "OverrideAction",
    "DecisionSnapshot",
    "RowOverrideMap",
    "ConflictResolutionMap",
    # Execution
    "UpsertItem",
    "UpsertItemResult",
    "UpsertStatus",
    "ExecutionResult",
    "RowResult",
    "ImportCounters",
    "RunStatus",
    "ExecutionReport",
    "AuditRecord",
    "TopError",
]
