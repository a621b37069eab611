from .header_mapper import apply_mapping_model, auto_map, field_options, normalize_header, score_header
from .model_store import MappingModelError, MappingModelStore

__all__ = [
    "auto_map",
    "apply_mapping_model",
    "field_options",
    "normalize_header",
    "score_header",
    "MappingModelStore",
    "MappingModelError",
]
