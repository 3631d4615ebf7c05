"""
Layered validation configuration for proposal comparison.

Three layers, each with the same three facets (ignorePaths, transformers,
normalization):
1. Global defaults (in code or a YAML file)
2. Dataset example overrides (example metadata)
3. Record overrides (keys on a single expected proposal)

Facets are resolved independently. The highest layer that sets a facet
replaces it entirely; nothing is deep-merged. An explicit empty value
("transformers: {}") means "none", it does not fall back to a lower layer.
"""

import copy
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .paths import (
    get_value_at_path,
    has_value_at_path,
    iter_paths,
    matches_any_pattern,
    path_matches_pattern,
    set_value_at_path,
    strip_ignored_paths,
)
from .transformers import (
    DEFAULT_TRANSFORMER_MAPPINGS,
    ConditionTarget,
    RegisteredTransformer,
    TransformerCondition,
    TransformerContext,
    TransformerRegistry,
    TransformerStrategy,
    default_transformer_registry,
)

logger = logging.getLogger(__name__)

FACETS = ("ignore_paths", "transformers", "normalization")
FACET_DEFAULTS = {"ignore_paths": list, "transformers": dict, "normalization": list}

# Keys an expected record may carry as its own (layer 3) overrides
RECORD_OVERRIDE_KEYS = ("ignorePaths", "transformers", "normalization")

SELF_SOURCE = "__self__"
LITERAL_SOURCE = "__literal__"


# =============================================================================
# Pydantic Config Models
# =============================================================================


class FieldExtractor(BaseModel):
    """Where a normalized field comes from."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    default_value: Any = Field(None, alias="defaultValue")
    transform: Optional[str] = None  # registered transformer key


class NormalizationRule(BaseModel):
    """Field mapping for records whose changeType equals `when` (all records if unset)."""

    when: Optional[str] = None
    fields: dict[str, Union[str, FieldExtractor]] = Field(default_factory=dict)


class TransformerOverride(BaseModel):
    """Inline transformer entry: a registered key with strategy/condition overrides."""

    model_config = ConfigDict(populate_by_name=True)

    transformer: str
    strategy: Optional[TransformerStrategy] = None
    when: Union[TransformerCondition, list[TransformerCondition], None] = None
    condition_target: Optional[ConditionTarget] = Field(None, alias="conditionTarget")


class ValidationConfig(BaseModel):
    """
    One layer of validation policy.

    None means the layer does not set that facet. Transformer values are a
    registered key ("transformer-trim"), an inline override mapping, a
    RegisteredTransformer, or a plain callable(value, context).
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    ignore_paths: Optional[list[str]] = Field(None, alias="ignorePaths")
    transformers: Optional[dict[str, Any]] = None
    normalization: Optional[list[NormalizationRule]] = None


ConfigLayer = Union[ValidationConfig, dict, None]


GLOBAL_VALIDATION_DEFAULTS = ValidationConfig(
    ignore_paths=[],
    transformers=dict(DEFAULT_TRANSFORMER_MAPPINGS),
    normalization=[],
)


@dataclass
class TransformResult:
    """Value after transformation; was_added marks a field filled only for comparison."""
    value: Any
    was_added: bool = False


# =============================================================================
# Config Loading and Merging
# =============================================================================


def _as_config(layer: ConfigLayer) -> Optional[ValidationConfig]:
    if layer is None:
        return None
    if isinstance(layer, ValidationConfig):
        return layer
    return ValidationConfig.model_validate(layer)


def load_validation_config(path: Union[str, Path]) -> ValidationConfig:
    """
    Load one config layer from YAML.

    Args:
        path: YAML file with ignorePaths / transformers / normalization keys

    Returns:
        ValidationConfig (facets missing from the file stay unset)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Validation config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = ValidationConfig.model_validate(data)
    logger.info(
        f"Loaded validation config from {path} "
        f"(set facets: {sorted(config.model_fields_set)})"
    )
    return config


def merge_validation_configs(
    global_config: ConfigLayer,
    example_config: ConfigLayer = None,
    record_overrides: ConfigLayer = None,
) -> ValidationConfig:
    """
    Resolve the three layers into one config.

    For each facet the highest layer that sets it (record, then example,
    then global) wins wholesale.

    Args:
        global_config: Layer 1 defaults
        example_config: Layer 2 dataset example overrides
        record_overrides: Layer 3 single-record overrides

    Returns:
        ValidationConfig with every facet set
    """
    layers = [
        ("record", _as_config(record_overrides)),
        ("example", _as_config(example_config)),
        ("global", _as_config(global_config)),
    ]

    resolved = {}
    for facet in FACETS:
        for layer_name, layer in layers:
            if layer is not None and getattr(layer, facet) is not None:
                resolved[facet] = copy.copy(getattr(layer, facet))
                logger.debug(f"Facet '{facet}' taken from {layer_name} layer")
                break
        else:
            resolved[facet] = FACET_DEFAULTS[facet]()

    return ValidationConfig(**resolved)


def record_overrides_of(record: dict) -> Optional[dict]:
    """Layer 3 overrides carried on a record, or None if it has none."""
    overrides = {key: record[key] for key in RECORD_OVERRIDE_KEYS if key in record}
    if isinstance(overrides.get("ignorePaths"), str):
        overrides["ignorePaths"] = [overrides["ignorePaths"]]
    return overrides or None


def without_record_overrides(record: dict) -> dict:
    return {key: value for key, value in record.items() if key not in RECORD_OVERRIDE_KEYS}


# =============================================================================
# Ignore Paths
# =============================================================================


def should_ignore_path(path: str, config: ValidationConfig) -> bool:
    """Check a path against config.ignore_paths (exact or "*" segment match)."""
    matched = matches_any_pattern(path, config.ignore_paths or [])
    if matched:
        logger.debug(f"Path '{path}' ignored by pattern '{matched}'")
    return matched is not None


# =============================================================================
# Transformers
# =============================================================================


def resolve_transformer(
    entry: Any,
    registry: Optional[TransformerRegistry] = None,
) -> Optional[RegisteredTransformer]:
    """Turn a config transformer entry into a RegisteredTransformer (None if unknown)."""
    registry = registry or default_transformer_registry

    if isinstance(entry, RegisteredTransformer):
        return entry

    if isinstance(entry, str):
        transformer = registry.get(entry)
        if transformer is None:
            logger.debug(f"Unknown transformer key '{entry}'")
        return transformer

    if isinstance(entry, (dict, TransformerOverride)):
        override = TransformerOverride.model_validate(entry) if isinstance(entry, dict) else entry
        base = registry.get(override.transformer)
        if base is None:
            logger.debug(f"Unknown transformer key '{override.transformer}'")
            return None
        changes = {
            name: getattr(override, name)
            for name in ("strategy", "when", "condition_target")
            if name in override.model_fields_set
        }
        return replace(base, **changes)

    if callable(entry):
        return RegisteredTransformer(
            key=getattr(entry, "__name__", "custom"),
            description="Custom transform function",
            transform=entry,
        )

    logger.warning(f"Unsupported transformer config entry: {entry!r}")
    return None


def get_path_transformer(
    path: str,
    config: ValidationConfig,
    registry: Optional[TransformerRegistry] = None,
) -> Optional[RegisteredTransformer]:
    """Transformer configured for path: exact key first, then "*" patterns."""
    if not config.transformers:
        return None

    if path in config.transformers:
        return resolve_transformer(config.transformers[path], registry)

    for pattern, entry in config.transformers.items():
        if path_matches_pattern(path, pattern):
            return resolve_transformer(entry, registry)

    return None


_UNAVAILABLE = object()


def _condition_record(
    transformer: RegisteredTransformer,
    record: Any,
    counterpart: Any,
    is_expected: bool,
) -> Any:
    """Pick the record the transformer's condition should be checked against."""
    target = transformer.condition_target
    if target == ConditionTarget.SELF:
        chosen = record
    elif target == ConditionTarget.ACTUAL:
        chosen = counterpart if is_expected else record
    else:
        chosen = record if is_expected else counterpart
    return _UNAVAILABLE if chosen is None else chosen


def _run_transformer(
    transformer: RegisteredTransformer,
    value: Any,
    path: str,
    is_expected: bool,
    current_date: Any = None,
    record: Any = None,
    counterpart: Any = None,
) -> TransformResult:
    unchanged = TransformResult(value=value, was_added=False)
    strategy = transformer.strategy

    # add strategies only ever fill in the expected side
    if strategy.adds and not is_expected:
        return unchanged

    if transformer.conditions:
        condition_record = _condition_record(transformer, record, counterpart, is_expected)
        if condition_record is _UNAVAILABLE:
            logger.debug(
                f"Cannot check condition for '{path}' on "
                f"{transformer.condition_target.value} record - not provided"
            )
            return unchanged
        if not transformer.conditions_met(condition_record):
            logger.debug(f"Skipping transformer '{transformer.key}' for '{path}': condition not met")
            return unchanged

    context = TransformerContext(path=path, is_expected=is_expected, current_date=current_date)

    try:
        if value is None:
            if strategy == TransformerStrategy.ADD_MISSING_ONLY:
                return TransformResult(value=transformer.transform(None, context), was_added=True)
            if strategy == TransformerStrategy.ADD_IF_ACTUAL_HAS:
                if counterpart is not None and has_value_at_path(counterpart, path):
                    return TransformResult(value=transformer.transform(None, context), was_added=True)
            return unchanged

        if strategy.adds:
            return unchanged

        return TransformResult(value=transformer.transform(value, context), was_added=False)

    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to apply transformer '{transformer.key}' to '{path}': {e}")
        return unchanged


def apply_transformer(
    value: Any,
    path: str,
    config: ValidationConfig,
    is_expected: bool,
    current_date: Any = None,
    record: Any = None,
    counterpart: Any = None,
    registry: Optional[TransformerRegistry] = None,
) -> TransformResult:
    """
    Apply the transformer configured for path to a single value.

    Args:
        value: Current value (None when the field is absent)
        path: Dot path of the field
        config: Resolved validation config
        is_expected: True for the golden side, False for the agent's output
        current_date: Clock for date-producing transformers (defaults to now)
        record: Record the value belongs to, for "self" conditions
        counterpart: Record on the other side, for "actual"/"expected" conditions
            and add-if-actual-has
        registry: Transformer registry (default registry if omitted)

    Returns:
        TransformResult; was_added is True when the value was filled in
        purely so the comparison can pass
    """
    transformer = get_path_transformer(path, config, registry)
    if transformer is None:
        return TransformResult(value=value, was_added=False)

    return _run_transformer(
        transformer, value, path, is_expected,
        current_date=current_date, record=record, counterpart=counterpart,
    )


def _counterpart_at(counterparts: Optional[list], index: int) -> Any:
    if counterparts and index < len(counterparts):
        return counterparts[index]
    return None


def apply_add_transformers(
    records: list[dict],
    config: ValidationConfig,
    is_expected: bool = True,
    counterpart_records: Optional[list[dict]] = None,
    current_date: Any = None,
    registry: Optional[TransformerRegistry] = None,
) -> list[dict]:
    """
    Fill in absent fields using add-type transformers.

    Existing fields are never overwritten. A record's own "ignorePaths"
    key replaces config.ignore_paths for that record only.

    Args:
        records: Records to transform (not mutated)
        config: Resolved validation config
        is_expected: Which side these records are on
        counterpart_records: Records on the other side, paired by index
        current_date: Clock for date-producing transformers

    Returns:
        New list of transformed record copies
    """
    add_transformers = []
    for path, entry in (config.transformers or {}).items():
        if "*" in path:
            continue
        transformer = resolve_transformer(entry, registry)
        if transformer is not None and transformer.strategy.adds:
            add_transformers.append((path, transformer))

    if add_transformers:
        logger.debug(
            f"Applying add transformers to {len(records)} "
            f"{'expected' if is_expected else 'actual'} records: "
            f"{[path for path, _ in add_transformers]}"
        )

    results = []
    for index, record in enumerate(records):
        modified = copy.deepcopy(record)
        counterpart = _counterpart_at(counterpart_records, index)

        if "ignorePaths" in modified:
            ignore_patterns = modified["ignorePaths"]
            if isinstance(ignore_patterns, str):
                ignore_patterns = [ignore_patterns]
        else:
            ignore_patterns = config.ignore_paths or []

        fields_added = 0
        for path, transformer in add_transformers:
            if has_value_at_path(modified, path):
                continue

            if matches_any_pattern(path, ignore_patterns):
                logger.debug(f"Record {index}: not adding ignored path '{path}'")
                continue

            result = _run_transformer(
                transformer, None, path, is_expected,
                current_date=current_date, record=modified, counterpart=counterpart,
            )
            if result.was_added:
                set_value_at_path(modified, path, result.value)
                fields_added += 1
                logger.debug(f"Record {index}: added '{path}' = {result.value!r}")

        if fields_added:
            logger.debug(f"Record {index}: {fields_added} fields added")

        results.append(modified)

    return results


def apply_existing_transformers(
    records: list[dict],
    config: ValidationConfig,
    is_expected: bool,
    counterpart_records: Optional[list[dict]] = None,
    current_date: Any = None,
    registry: Optional[TransformerRegistry] = None,
) -> list[dict]:
    """Run transform-always / transform-existing transformers on present fields."""
    if not config.transformers:
        return [copy.deepcopy(record) for record in records]

    results = []
    for index, record in enumerate(records):
        modified = copy.deepcopy(record)
        counterpart = _counterpart_at(counterpart_records, index)

        for path in iter_paths(record):
            transformer = get_path_transformer(path, config, registry)
            if transformer is None or transformer.strategy.adds:
                continue

            current = get_value_at_path(modified, path)
            result = _run_transformer(
                transformer, current, path, is_expected,
                current_date=current_date, record=modified, counterpart=counterpart,
            )
            if result.value is not current:
                set_value_at_path(modified, path, result.value)

        results.append(modified)

    return results


def prepare_records(
    records: list[dict],
    config: ValidationConfig,
    is_expected: bool,
    counterpart_records: Optional[list[dict]] = None,
    current_date: Any = None,
    registry: Optional[TransformerRegistry] = None,
) -> list[dict]:
    """
    Normalize one side of a comparison.

    Order: add transformers, transformers on existing values, then removal
    of ignored paths and of record-level override keys.
    """
    prepared = apply_add_transformers(
        records, config, is_expected, counterpart_records, current_date, registry,
    )
    prepared = apply_existing_transformers(
        prepared, config, is_expected, counterpart_records, current_date, registry,
    )
    return [
        strip_ignored_paths(without_record_overrides(record), config.ignore_paths or [])
        for record in prepared
    ]


# =============================================================================
# Normalization Rules
# =============================================================================


def _select_rule(record: dict, rules: list[NormalizationRule]) -> Optional[NormalizationRule]:
    """A rule whose `when` matches changeType wins; otherwise the last catch-all rule."""
    selected = None
    for rule in rules:
        if rule.when is None:
            selected = rule
        elif record.get("changeType") == rule.when:
            return rule
    return selected


def normalize_with_config(
    record: dict,
    config: ValidationConfig,
    registry: Optional[TransformerRegistry] = None,
) -> dict:
    """
    Map a raw record onto normalized fields using config.normalization.

    Args:
        record: Raw record
        config: Resolved validation config

    Returns:
        Normalized record, or the record unchanged when there are no rules
        or none match
    """
    if not config.normalization:
        return record

    rule = _select_rule(record, config.normalization)
    if rule is None:
        logger.warning(
            f"No normalization rule for changeType={record.get('changeType')!r} "
            f"(rules: {[r.when or 'default' for r in config.normalization]})"
        )
        return record

    normalized = {}
    for target, extractor in rule.fields.items():
        if isinstance(extractor, str):
            extractor = FieldExtractor(from_=extractor)

        if extractor.from_ == LITERAL_SOURCE:
            value = extractor.default_value if extractor.default_value is not None else rule.when
        elif extractor.from_ == SELF_SOURCE:
            value = record
        else:
            value = get_value_at_path(record, extractor.from_)

        if value is None:
            value = extractor.default_value

        if value is not None and extractor.transform:
            transformer = resolve_transformer(extractor.transform, registry)
            if transformer is not None:
                value = transformer.transform(value, None)

        if value is not None:
            normalized[target] = value

    logger.debug(
        f"Normalized record with rule '{rule.when or 'default'}': "
        f"{sorted(record)} -> {sorted(normalized)}"
    )
    return normalized
