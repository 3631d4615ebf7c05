"""
Tests for the transformer registry.

Tests cover:
1. Built-in transformers and their strategies
2. Conditions (equals / notEquals / exists)
3. Template-backed transformer keys and their cache
4. Runtime registration
"""

from datetime import datetime, timezone

import pytest

from proposal_eval.validate.transformers import (
    TEMPLATE_CACHE_SIZE,
    ConditionTarget,
    RegisteredTransformer,
    TransformerCondition,
    TransformerContext,
    TransformerRegistry,
    TransformerStrategy,
    default_transformer_registry,
)


# ─── Test Data ───

SEP_18 = datetime(2024, 9, 18, 15, 30, tzinfo=timezone.utc)


def _context(path: str = "field", current_date=SEP_18) -> TransformerContext:
    return TransformerContext(path=path, is_expected=True, current_date=current_date)


class TestBuiltinTransformers:
    """Tests for the built-in transformer catalog."""

    @pytest.mark.parametrize("key", [
        "transformer-today-utc",
        "transformer-today-utc-for-change",
        "transformer-today-utc-for-creation",
        "transformer-today-utc-if-actual-has",
        "transformer-uppercase",
        "transformer-lowercase",
        "transformer-trim",
        "transformer-boolean-true",
        "transformer-boolean-false",
        "transformer-empty-array",
        "transformer-empty-object",
    ])
    def test_builtin_registered(self, key):
        """Test every built-in key resolves."""
        assert default_transformer_registry.has(key)
        assert key in default_transformer_registry.get_keys()

    def test_get_all_matches_keys(self):
        """Test get_all returns one entry per key."""
        registry = TransformerRegistry()
        assert [t.key for t in registry.get_all()] == registry.get_keys()

    def test_unknown_key(self):
        """Test unknown keys resolve to None."""
        assert default_transformer_registry.get("transformer-nope") is None
        assert not default_transformer_registry.has("transformer-nope")

    def test_today_utc_uses_context_clock(self):
        """Test today-utc produces UTC midnight of the context date."""
        transformer = default_transformer_registry.get("transformer-today-utc")
        assert transformer.strategy == TransformerStrategy.ADD_MISSING_ONLY
        assert transformer.transform(None, _context()) == "2024-09-18T00:00:00.000Z"

    def test_for_change_condition(self):
        """Test the change variant is gated on the actual record's changeType."""
        transformer = default_transformer_registry.get("transformer-today-utc-for-change")
        assert transformer.condition_target == ConditionTarget.ACTUAL
        assert transformer.conditions_met({"changeType": "change"})
        assert not transformer.conditions_met({"changeType": "creation"})

    def test_for_creation_condition(self):
        """Test the creation variant is gated on changeType creation."""
        transformer = default_transformer_registry.get("transformer-today-utc-for-creation")
        assert transformer.conditions_met({"changeType": "creation"})
        assert not transformer.conditions_met({"changeType": "change"})

    def test_string_transformers(self):
        """Test case and whitespace transformers."""
        registry = default_transformer_registry
        assert registry.get("transformer-uppercase").transform("abc", None) == "ABC"
        assert registry.get("transformer-lowercase").transform("ABC", None) == "abc"
        assert registry.get("transformer-trim").transform("  abc ", None) == "abc"

    def test_string_transformers_ignore_non_strings(self):
        """Test non-string values pass through string transformers."""
        assert default_transformer_registry.get("transformer-uppercase").transform(5, None) == 5

    def test_constant_transformers(self):
        """Test constant-valued transformers."""
        registry = default_transformer_registry
        assert registry.get("transformer-boolean-true").transform(None, None) is True
        assert registry.get("transformer-boolean-false").transform(None, None) is False
        assert registry.get("transformer-empty-array").transform(None, None) == []
        assert registry.get("transformer-empty-object").transform(None, None) == {}

    def test_strategy_adds(self):
        """Test which strategies count as add strategies."""
        assert TransformerStrategy.ADD_MISSING_ONLY.adds
        assert TransformerStrategy.ADD_IF_ACTUAL_HAS.adds
        assert not TransformerStrategy.TRANSFORM_ALWAYS.adds
        assert not TransformerStrategy.TRANSFORM_EXISTING.adds


# ─── Conditions ───


class TestTransformerCondition:
    """Tests for TransformerCondition.is_met()."""

    def test_equals(self):
        """Test equals against a single value."""
        condition = TransformerCondition(path="changeType", equals="change")
        assert condition.is_met({"changeType": "change"})
        assert not condition.is_met({"changeType": "creation"})
        assert not condition.is_met({})

    def test_equals_list(self):
        """Test equals against a list of allowed values."""
        condition = TransformerCondition(path="status", equals=["a", "b"])
        assert condition.is_met({"status": "b"})
        assert not condition.is_met({"status": "c"})

    def test_not_equals_alias(self):
        """Test notEquals is accepted by alias."""
        condition = TransformerCondition.model_validate({"path": "changeType", "notEquals": "creation"})
        assert condition.is_met({"changeType": "change"})
        assert not condition.is_met({"changeType": "creation"})

    def test_exists(self):
        """Test exists checks presence, not truthiness."""
        present = TransformerCondition(path="a.b", exists=True)
        assert present.is_met({"a": {"b": None}})
        assert not present.is_met({"a": {}})

        absent = TransformerCondition(path="a.b", exists=False)
        assert absent.is_met({"a": {}})

    def test_path_only_always_met(self):
        """Test a condition with no checks set passes."""
        assert TransformerCondition(path="anything").is_met({})

    def test_multiple_conditions_are_anded(self):
        """Test a list of conditions must all hold."""
        transformer = RegisteredTransformer(
            key="t",
            description="",
            transform=lambda value, context=None: value,
            when=[
                TransformerCondition(path="changeType", equals="change"),
                TransformerCondition(path="relatedUserId", exists=True),
            ],
        )
        assert transformer.conditions_met({"changeType": "change", "relatedUserId": "u1"})
        assert not transformer.conditions_met({"changeType": "change"})


# ─── Template-backed Keys ───


class TestTemplateTransformers:
    """Tests for transformer-template-<expression> keys."""

    def test_valid_expression_resolves(self):
        """Test a valid template key synthesizes an add-missing-only transformer."""
        registry = TransformerRegistry()
        transformer = registry.get("transformer-template-currentMonth+1")
        assert transformer is not None
        assert transformer.strategy == TransformerStrategy.ADD_MISSING_ONLY
        assert registry.has("transformer-template-currentMonth+1")

    @pytest.mark.parametrize("key", [
        "transformer-template-bogus",
        "transformer-template-today+1",
        "transformer-template-currentMonth++1",
        "transformer-template-",
        "transformer-template-currentMonth+999999",
        "transformer-template-currentDay+99999999",
    ])
    def test_invalid_expression_missing(self, key):
        """Test invalid template keys report as missing."""
        registry = TransformerRegistry()
        assert registry.get(key) is None
        assert not registry.has(key)

    def test_value_uses_call_time_clock(self):
        """Test the transform evaluates against the clock it is called with."""
        transformer = TransformerRegistry().get("transformer-template-currentMonth+1")
        assert transformer.transform(None, _context()) == "2024-10-01T00:00:00.000Z"

        december = datetime(2024, 12, 5, tzinfo=timezone.utc)
        assert transformer.transform(None, _context(current_date=december)) == "2025-01-01T00:00:00.000Z"

    def test_year_data_value(self):
        """Test currentYear templates produce numbers."""
        transformer = TransformerRegistry().get("transformer-template-currentYear-1")
        assert transformer.transform(None, _context()) == 2023

    def test_cached_per_key(self):
        """Test repeated lookups return the same transformer."""
        registry = TransformerRegistry()
        key = "transformer-template-currentDay+7"
        assert registry.get(key) is registry.get(key)

    def test_cache_bounded(self):
        """Test the template cache never grows past its limit."""
        registry = TransformerRegistry()
        for n in range(TEMPLATE_CACHE_SIZE + 20):
            assert registry.get(f"transformer-template-currentYear+{n}") is not None
        assert len(registry._template_cache) == TEMPLATE_CACHE_SIZE

    def test_cache_evicts_least_recently_used(self):
        """Test a lookup keeps a key from being the next one evicted."""
        registry = TransformerRegistry()
        keys = [f"transformer-template-currentYear+{n}" for n in range(TEMPLATE_CACHE_SIZE)]
        for key in keys:
            registry.get(key)

        first = registry.get(keys[0])
        registry.get("transformer-template-currentDay+1")

        assert registry._template_cache[keys[0]] is first
        assert keys[1] not in registry._template_cache
        assert len(registry._template_cache) == TEMPLATE_CACHE_SIZE

    def test_template_keys_not_listed(self):
        """Test synthesized keys are not part of get_keys()."""
        registry = TransformerRegistry()
        registry.get("transformer-template-currentMonth")
        assert "transformer-template-currentMonth" not in registry.get_keys()


class TestRegistration:
    """Tests for registering transformers at runtime."""

    def test_register_custom(self):
        """Test a custom transformer can be registered and looked up."""
        registry = TransformerRegistry()
        registry.register(RegisteredTransformer(
            key="transformer-strip-currency",
            description="Removes a leading dollar sign",
            transform=lambda value, context=None: value.lstrip("$"),
        ))
        transformer = registry.get("transformer-strip-currency")
        assert transformer.transform("$5000", None) == "5000"
        assert transformer.strategy == TransformerStrategy.TRANSFORM_ALWAYS

    def test_register_does_not_touch_default(self):
        """Test registries are independent."""
        registry = TransformerRegistry()
        registry.register(RegisteredTransformer(
            key="transformer-local-only",
            description="",
            transform=lambda value, context=None: value,
        ))
        assert not default_transformer_registry.has("transformer-local-only")

    def test_empty_registry(self):
        """Test a registry built from an explicit empty list."""
        registry = TransformerRegistry(transformers=[])
        assert registry.get_keys() == []
        assert registry.has("transformer-template-currentYear")
