"""
Field normalization before proposal comparison.

This module provides:
- Dot-path helpers with "*" segment patterns
- A registry of named transformers with strategies and conditions
- Three-layer validation config (global, example, record) with YAML loading
"""

from .paths import (
    get_value_at_path,
    has_value_at_path,
    path_matches_pattern,
    set_value_at_path,
    strip_ignored_paths,
)
from .transformers import (
    ConditionTarget,
    RegisteredTransformer,
    TransformerCondition,
    TransformerContext,
    TransformerRegistry,
    TransformerStrategy,
    default_transformer_registry,
)
from .config import (
    GLOBAL_VALIDATION_DEFAULTS,
    FieldExtractor,
    NormalizationRule,
    TransformResult,
    ValidationConfig,
    apply_add_transformers,
    apply_existing_transformers,
    apply_transformer,
    load_validation_config,
    merge_validation_configs,
    normalize_with_config,
    prepare_records,
    should_ignore_path,
)

__all__ = [
    # Paths
    "get_value_at_path",
    "has_value_at_path",
    "path_matches_pattern",
    "set_value_at_path",
    "strip_ignored_paths",
    # Transformers
    "ConditionTarget",
    "RegisteredTransformer",
    "TransformerCondition",
    "TransformerContext",
    "TransformerRegistry",
    "TransformerStrategy",
    "default_transformer_registry",
    # Config
    "GLOBAL_VALIDATION_DEFAULTS",
    "FieldExtractor",
    "NormalizationRule",
    "TransformResult",
    "ValidationConfig",
    "apply_add_transformers",
    "apply_existing_transformers",
    "apply_transformer",
    "load_validation_config",
    "merge_validation_configs",
    "normalize_with_config",
    "prepare_records",
    "should_ignore_path",
]
