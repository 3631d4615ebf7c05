"""
Substitutes template expressions embedded in free text.

Usage:
    processor = TemplateProcessor()
    result = processor.process(
        "Update salary starting {{currentMonth+1}}",
        TemplateContext(current_date=datetime(2024, 9, 18, tzinfo=timezone.utc)),
    )
    result.processed  # "Update salary starting October"

Delimiters are part of the processor, not shared state:
    TemplateProcessor(Delimiters(start="[[", end="]]"))
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .variables import (
    TemplateContext,
    TemplateEvaluationResult,
    TemplateVariableRegistry,
    default_variable_registry,
)

logger = logging.getLogger(__name__)

_EXPRESSION = r"[A-Za-z0-9_]+(?:[+-][0-9]+)?"


@dataclass(frozen=True)
class Delimiters:
    """Markers around an expression. Matched literally, never as regex syntax."""

    start: str = "{{"
    end: str = "}}"

    def pattern(self) -> re.Pattern:
        return re.compile(f"{re.escape(self.start)}({_EXPRESSION}){re.escape(self.end)}")


DEFAULT_DELIMITERS = Delimiters()


@dataclass
class TemplateReplacement:
    """One substitution. start_index is a position in the processed text; end_index adds len(original)."""

    original: str
    expression: str
    result: TemplateEvaluationResult
    start_index: int
    end_index: int


@dataclass
class TemplateProcessingResult:
    """Processed text plus what was replaced and what each expression resolved to."""

    original: str
    processed: str
    replacements: list[TemplateReplacement] = field(default_factory=list)
    metadata: dict[str, TemplateEvaluationResult] = field(default_factory=dict)


class TemplateProcessor:
    """Finds delimited expressions in text and replaces them with display values."""

    def __init__(
        self,
        delimiters: Delimiters = DEFAULT_DELIMITERS,
        registry: Optional[TemplateVariableRegistry] = None,
    ):
        self.delimiters = delimiters
        self.registry = registry or default_variable_registry
        self._pattern = delimiters.pattern()

    def process(self, text: str, context: TemplateContext) -> TemplateProcessingResult:
        """
        Replace every evaluable expression in text.

        Tokens that do not evaluate are left verbatim. Each replacement's
        start_index is shifted by the length drift of all earlier
        replacements; end_index is start_index plus the token length.

        Args:
            text: Input text, e.g. "From {{currentMonth}} to {{currentMonth+3}}"
            context: Evaluation clock

        Returns:
            TemplateProcessingResult
        """
        result = TemplateProcessingResult(original=text, processed=text)
        pieces: list[str] = []
        last_end = 0
        drift = 0

        for match in self._pattern.finditer(text):
            token = match.group(0)
            expression = match.group(1)

            evaluation = self.registry.evaluate_expression(expression, context)
            if evaluation is None:
                logger.debug(f"Template expression '{expression}' did not evaluate, leaving as-is")
                continue

            start = match.start() + drift
            result.replacements.append(TemplateReplacement(
                original=token,
                expression=expression,
                result=evaluation,
                start_index=start,
                end_index=start + len(token),
            ))
            # last occurrence wins
            result.metadata[expression] = evaluation

            pieces.append(text[last_end:match.start()])
            pieces.append(evaluation.display_value)
            last_end = match.end()
            drift += len(evaluation.display_value) - len(token)

        if result.replacements:
            pieces.append(text[last_end:])
            result.processed = "".join(pieces)

        return result

    def has_templates(self, text: str) -> bool:
        """Check if text contains at least one delimited expression."""
        return bool(text) and self._pattern.search(text) is not None

    def extract_expressions(self, text: str) -> list[str]:
        """All delimited expressions in order, duplicates kept."""
        if not text:
            return []
        return [match.group(1) for match in self._pattern.finditer(text)]


def process_template(
    text: str,
    context: TemplateContext,
    delimiters: Delimiters = DEFAULT_DELIMITERS,
) -> TemplateProcessingResult:
    """Shorthand for TemplateProcessor(delimiters).process(text, context)."""
    return TemplateProcessor(delimiters).process(text, context)
