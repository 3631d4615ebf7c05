"""
Template expressions for date-relative expected values.

This module provides:
- A catalog of date variables (currentMonth, currentYear, currentDay, today)
- Evaluation of "name", "name+N" and "name-N" expressions in UTC
- Substitution of delimited expressions in free text with offset tracking
"""

from .variables import (
    TemplateContext,
    TemplateEvaluationResult,
    TemplateVariable,
    TemplateVariableRegistry,
    default_variable_registry,
    evaluate_expression,
    today_at_utc_midnight,
    utc_now,
)
from .processor import (
    Delimiters,
    DEFAULT_DELIMITERS,
    TemplateReplacement,
    TemplateProcessingResult,
    TemplateProcessor,
    process_template,
)

__all__ = [
    # Variables
    "TemplateContext",
    "TemplateEvaluationResult",
    "TemplateVariable",
    "TemplateVariableRegistry",
    "default_variable_registry",
    "evaluate_expression",
    "today_at_utc_midnight",
    "utc_now",
    # Processor
    "Delimiters",
    "DEFAULT_DELIMITERS",
    "TemplateReplacement",
    "TemplateProcessingResult",
    "TemplateProcessor",
    "process_template",
]
