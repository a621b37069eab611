from .decisions import build_decision_snapshots, count_blocking, has_unresolved_conflicts, resolve_effective_action
from .executor import DEFAULT_BATCH_SIZE, execute_decisions
from .merger import merge_preview_rows
from .orchestrator import ImportBlockedError, ImportSession, PreviewFilter
from .preview import LookupForbiddenError, PreviewError, describe_changes, prepare_preview

__all__ = [
    "merge_preview_rows",
    "prepare_preview",
    "describe_changes",
    "PreviewError",
    "LookupForbiddenError",
    "resolve_effective_action",
    "build_decision_snapshots",
    "has_unresolved_conflicts",
    "count_blocking",
    "execute_decisions",
    "DEFAULT_BATCH_SIZE",
    "ImportSession",
    "ImportBlockedError",
    "PreviewFilter",
]
