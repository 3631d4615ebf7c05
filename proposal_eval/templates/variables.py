"""
Template variables for date-relative expected values.

Expressions are a variable name with optional integer arithmetic:
- "currentMonth"      -> "September"          / "2024-09-01T00:00:00.000Z"
- "currentMonth+4"    -> "January 2025"       / "2025-01-01T00:00:00.000Z"
- "currentYear-1"     -> "2023"               / 2023
- "currentDay+3"      -> "21"                 / "2024-09-21T00:00:00.000Z"
- "today"             -> "9/18/2024"          / "2024-09-18T00:00:00.000Z"

All dates are computed in UTC. Anything that is not a valid expression
evaluates to None rather than raising.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# name, then optionally a sign and digits - nothing else
EXPRESSION_PATTERN = re.compile(r"([A-Za-z0-9_]+)(?:([+-])([0-9]+))?")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class TemplateContext:
    """Evaluation-time clock. Naive datetimes are read as UTC."""

    current_date: datetime

    @property
    def utc_date(self) -> date:
        return to_utc(self.current_date).date()


@dataclass(frozen=True)
class TemplateEvaluationResult:
    """Resolved expression: text for prompts, data for comparisons."""

    display_value: str
    data_value: Any


Evaluator = Callable[[TemplateContext, int], Optional[TemplateEvaluationResult]]


@dataclass
class TemplateVariable:
    """A named variable; evaluate receives the context and a signed offset."""

    key: str
    description: str
    evaluate: Evaluator
    supports_arithmetic: bool = True


# =============================================================================
# Date Helpers
# =============================================================================


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    # plain date
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def to_utc_midnight_iso(day: date) -> str:
    """Format a date as an ISO timestamp at UTC midnight (millisecond precision)."""
    return f"{day.isoformat()}T00:00:00.000Z"


def today_at_utc_midnight(now: Optional[datetime] = None) -> str:
    """Today's date at UTC midnight, e.g. "2024-09-18T00:00:00.000Z"."""
    current = to_utc(now) if now is not None else utc_now()
    return to_utc_midnight_iso(current.date())


def add_months(day: date, months: int) -> date:
    """First day of the month `months` away from day's month."""
    total = day.year * 12 + (day.month - 1) + months
    year, month_index = divmod(total, 12)
    return date(year, month_index + 1, 1)


# =============================================================================
# Built-in Variables
# =============================================================================


def _current_month(context: TemplateContext, offset: int) -> TemplateEvaluationResult:
    base = context.utc_date
    target = add_months(base, offset)
    name = MONTH_NAMES[target.month - 1]

    display = name if target.year == base.year else f"{name} {target.year}"
    return TemplateEvaluationResult(
        display_value=display,
        data_value=to_utc_midnight_iso(target),
    )


def _current_year(context: TemplateContext, offset: int) -> TemplateEvaluationResult:
    year = context.utc_date.year + offset
    return TemplateEvaluationResult(display_value=str(year), data_value=year)


def _current_day(context: TemplateContext, offset: int) -> TemplateEvaluationResult:
    base = context.utc_date
    target = base + timedelta(days=offset)
    month_name = MONTH_NAMES[target.month - 1]

    if target.year != base.year:
        display = f"{month_name} {target.day}, {target.year}"
    elif target.month != base.month:
        display = f"{month_name} {target.day}"
    else:
        display = str(target.day)

    return TemplateEvaluationResult(
        display_value=display,
        data_value=to_utc_midnight_iso(target),
    )


def _today(context: TemplateContext, offset: int) -> TemplateEvaluationResult:
    day = context.utc_date
    return TemplateEvaluationResult(
        display_value=f"{day.month}/{day.day}/{day.year}",
        data_value=to_utc_midnight_iso(day),
    )


BUILTIN_VARIABLES = [
    TemplateVariable(
        key="currentMonth",
        description="Month name (with year when it differs), supports +/- months",
        evaluate=_current_month,
    ),
    TemplateVariable(
        key="currentYear",
        description="Four-digit year, supports +/- years",
        evaluate=_current_year,
    ),
    TemplateVariable(
        key="currentDay",
        description="Day of month, supports +/- days",
        evaluate=_current_day,
    ),
    TemplateVariable(
        key="today",
        description="Today's date as M/D/YYYY; no arithmetic",
        evaluate=_today,
        supports_arithmetic=False,
    ),
]


# =============================================================================
# Registry
# =============================================================================


@dataclass
class TemplateVariableRegistry:
    """Catalog of template variables, seeded with the built-ins."""

    variables: dict[str, TemplateVariable] = field(
        default_factory=lambda: {v.key: v for v in BUILTIN_VARIABLES}
    )

    def get(self, key: str) -> Optional[TemplateVariable]:
        return self.variables.get(key)

    def has(self, key: str) -> bool:
        return key in self.variables

    def get_keys(self) -> list[str]:
        return list(self.variables)

    def register(self, variable: TemplateVariable) -> None:
        """Add or replace a variable."""
        if variable.key in self.variables:
            logger.debug(f"Replacing template variable '{variable.key}'")
        self.variables[variable.key] = variable

    def evaluate_expression(
        self,
        expression: str,
        context: TemplateContext,
    ) -> Optional[TemplateEvaluationResult]:
        """
        Evaluate an expression like "currentMonth+3".

        Args:
            expression: Variable name with optional +N / -N
            context: Evaluation clock

        Returns:
            TemplateEvaluationResult, or None for malformed expressions,
            unknown variables and arithmetic on variables without it
        """
        match = EXPRESSION_PATTERN.fullmatch(expression or "")
        if not match:
            return None

        key, operator, operand = match.groups()
        variable = self.get(key)
        if variable is None:
            return None

        if operator is None:
            offset = 0
        elif not variable.supports_arithmetic:
            return None
        else:
            offset = int(operand) if operator == "+" else -int(operand)

        try:
            return variable.evaluate(context, offset)
        except (OverflowError, ValueError) as e:
            # offset pushed the date outside what datetime can represent
            logger.debug(f"Template expression '{expression}' out of range: {e}")
            return None


default_variable_registry = TemplateVariableRegistry()


def evaluate_expression(
    expression: str,
    context: TemplateContext,
    registry: Optional[TemplateVariableRegistry] = None,
) -> Optional[TemplateEvaluationResult]:
    """Evaluate an expression against the default (or a given) registry."""
    return (registry or default_variable_registry).evaluate_expression(expression, context)
