"""
Registry of named value transformers.

A transformer normalizes one field before comparison. Its strategy decides
where it fires:

| Strategy            | Expected side                         | Actual side        |
|---------------------|---------------------------------------|--------------------|
| add-missing-only    | add if absent, never overwrite        | untouched          |
| transform-always    | replace existing value                | replace existing   |
| transform-existing  | replace existing value                | replace existing   |
| add-if-actual-has   | add if absent and actual has the field| untouched          |

Keys of the form "transformer-template-<expression>" are resolved on lookup
through the template variables, e.g. "transformer-template-currentMonth+1"
adds the first day of next month as an ISO timestamp.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..templates.variables import (
    TemplateContext,
    TemplateVariableRegistry,
    default_variable_registry,
    today_at_utc_midnight,
    utc_now,
)
from .paths import get_value_at_path, has_value_at_path

logger = logging.getLogger(__name__)

TEMPLATE_PREFIX = "transformer-template-"
TEMPLATE_CACHE_SIZE = 256


class TransformerStrategy(str, Enum):
    """When and on which side a transformer applies."""
    ADD_MISSING_ONLY = "add-missing-only"
    TRANSFORM_ALWAYS = "transform-always"
    TRANSFORM_EXISTING = "transform-existing"
    ADD_IF_ACTUAL_HAS = "add-if-actual-has"

    @property
    def adds(self) -> bool:
        return self in (TransformerStrategy.ADD_MISSING_ONLY, TransformerStrategy.ADD_IF_ACTUAL_HAS)


class ConditionTarget(str, Enum):
    """Which record a transformer condition is checked against."""
    SELF = "self"
    ACTUAL = "actual"
    EXPECTED = "expected"


class TransformerCondition(BaseModel):
    """
    Gate on a record value, e.g. {"path": "changeType", "equals": "change"}.

    equals / notEquals accept a single value or a list of allowed values.
    Only the checks that were set are applied.
    """

    model_config = ConfigDict(populate_by_name=True)

    path: str
    equals: Any = None
    not_equals: Any = Field(None, alias="notEquals")
    exists: Optional[bool] = None

    def is_met(self, record: Any) -> bool:
        value = get_value_at_path(record, self.path)

        if self.exists is not None and has_value_at_path(record, self.path) != self.exists:
            return False

        if "equals" in self.model_fields_set:
            allowed = self.equals if isinstance(self.equals, list) else [self.equals]
            if value not in allowed:
                return False

        if "not_equals" in self.model_fields_set:
            forbidden = self.not_equals if isinstance(self.not_equals, list) else [self.not_equals]
            if value in forbidden:
                return False

        return True


@dataclass
class TransformerContext:
    """Passed to transform functions."""
    path: str
    is_expected: bool
    current_date: Optional[datetime] = None


TransformFunction = Callable[[Any, Optional[TransformerContext]], Any]


@dataclass
class RegisteredTransformer:
    """A named transform with its strategy and optional condition."""
    key: str
    description: str
    transform: TransformFunction
    strategy: TransformerStrategy = TransformerStrategy.TRANSFORM_ALWAYS
    when: Union[TransformerCondition, list[TransformerCondition], None] = None
    condition_target: ConditionTarget = ConditionTarget.SELF

    @property
    def conditions(self) -> list[TransformerCondition]:
        if self.when is None:
            return []
        return self.when if isinstance(self.when, list) else [self.when]

    def conditions_met(self, record: Any) -> bool:
        """All conditions must hold (AND)."""
        return all(condition.is_met(record) for condition in self.conditions)


# =============================================================================
# Built-in Transformers
# =============================================================================


def _today_utc(value: Any, context: Optional[TransformerContext] = None) -> str:
    now = context.current_date if context is not None else None
    return today_at_utc_midnight(now)


def _string_op(op: Callable[[str], str]) -> TransformFunction:
    def transform(value: Any, context: Optional[TransformerContext] = None) -> Any:
        return op(value) if isinstance(value, str) else value
    return transform


BUILTIN_TRANSFORMERS = [
    RegisteredTransformer(
        key="transformer-today-utc",
        description="Sets value to today at UTC midnight",
        transform=_today_utc,
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
    ),
    RegisteredTransformer(
        key="transformer-today-utc-for-change",
        description="Sets effectiveDate to today at UTC midnight for change proposals",
        transform=_today_utc,
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
        when=TransformerCondition(path="changeType", equals="change"),
        condition_target=ConditionTarget.ACTUAL,
    ),
    RegisteredTransformer(
        key="transformer-today-utc-for-creation",
        description="Sets startDate to today at UTC midnight for creation proposals",
        transform=_today_utc,
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
        when=TransformerCondition(path="changeType", equals="creation"),
        condition_target=ConditionTarget.ACTUAL,
    ),
    RegisteredTransformer(
        key="transformer-today-utc-if-actual-has",
        description="Sets value to today at UTC midnight when the actual proposal has the field",
        transform=_today_utc,
        strategy=TransformerStrategy.ADD_IF_ACTUAL_HAS,
    ),
    RegisteredTransformer(
        key="transformer-uppercase",
        description="Converts string values to uppercase",
        transform=_string_op(str.upper),
    ),
    RegisteredTransformer(
        key="transformer-lowercase",
        description="Converts string values to lowercase",
        transform=_string_op(str.lower),
    ),
    RegisteredTransformer(
        key="transformer-trim",
        description="Trims whitespace from string values",
        transform=_string_op(str.strip),
    ),
    RegisteredTransformer(
        key="transformer-boolean-true",
        description="Sets value to true",
        transform=lambda value, context=None: True,
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
    ),
    RegisteredTransformer(
        key="transformer-boolean-false",
        description="Sets value to false",
        transform=lambda value, context=None: False,
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
    ),
    RegisteredTransformer(
        key="transformer-empty-array",
        description="Sets value to an empty list",
        transform=lambda value, context=None: [],
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
    ),
    RegisteredTransformer(
        key="transformer-empty-object",
        description="Sets value to an empty object",
        transform=lambda value, context=None: {},
        strategy=TransformerStrategy.ADD_MISSING_ONLY,
    ),
]

# Layer 1 (global) transformer mappings for data change proposals
DEFAULT_TRANSFORMER_MAPPINGS = {
    "mutationVariables.data.effectiveDate": "transformer-today-utc-for-change",
    "mutationVariables.data.startDate": "transformer-today-utc-for-creation",
}


# =============================================================================
# Registry
# =============================================================================


class TransformerRegistry:
    """
    Lookup of transformers by key.

    Static transformers are registered up front. Template-backed keys are
    built on first lookup and kept in a bounded cache; a key whose
    expression does not evaluate is reported as missing.
    """

    def __init__(
        self,
        transformers: Optional[list[RegisteredTransformer]] = None,
        variables: Optional[TemplateVariableRegistry] = None,
    ):
        source = BUILTIN_TRANSFORMERS if transformers is None else transformers
        self._transformers = {t.key: t for t in source}
        self._variables = variables or default_variable_registry
        self._template_cache: OrderedDict[str, RegisteredTransformer] = OrderedDict()

    def get(self, key: str) -> Optional[RegisteredTransformer]:
        transformer = self._transformers.get(key)
        if transformer is not None:
            return transformer

        if key.startswith(TEMPLATE_PREFIX):
            return self._get_template_transformer(key)

        return None

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def get_keys(self) -> list[str]:
        """Keys of registered transformers (template-backed keys are not listed)."""
        return list(self._transformers)

    def get_all(self) -> list[RegisteredTransformer]:
        return list(self._transformers.values())

    def register(self, transformer: RegisteredTransformer) -> None:
        self._transformers[transformer.key] = transformer

    def _get_template_transformer(self, key: str) -> Optional[RegisteredTransformer]:
        cached = self._template_cache.get(key)
        if cached is not None:
            try:
                self._template_cache.move_to_end(key)
            except KeyError:
                # evicted by another caller since the lookup; the transformer is still valid
                pass
            return cached

        built = self._build_template_transformer(key)
        if built is None:
            return None

        if len(self._template_cache) >= TEMPLATE_CACHE_SIZE:
            self._template_cache.popitem(last=False)
        # concurrent builders of the same key produce equivalent transformers
        return self._template_cache.setdefault(key, built)

    def _build_template_transformer(self, key: str) -> Optional[RegisteredTransformer]:
        expression = key[len(TEMPLATE_PREFIX):]
        variables = self._variables

        if variables.evaluate_expression(expression, TemplateContext(utc_now())) is None:
            logger.debug(f"Transformer key '{key}' has no valid template expression")
            return None

        def transform(value: Any, context: Optional[TransformerContext] = None) -> Any:
            now = context.current_date if context is not None and context.current_date else utc_now()
            result = variables.evaluate_expression(expression, TemplateContext(now))
            return result.data_value if result is not None else value

        return RegisteredTransformer(
            key=key,
            description=f"Sets value from template expression '{expression}'",
            transform=transform,
            strategy=TransformerStrategy.ADD_MISSING_ONLY,
        )


default_transformer_registry = TransformerRegistry()
