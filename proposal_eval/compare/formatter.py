"""
Human-readable evaluation reports for proposal comparisons.

On mismatch the records are aligned (see alignment.py) and each pair is
shown as a line diff of its canonical pretty-printed JSON:

    Proposal 1 diff
    ---------------
      {
        "changeType": "change",
    -   "newValue": "5000"
    +   "newValue": "4000"
      }
"""

import difflib
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from .alignment import Aligner, compute_alignment
from .canonical import to_canonical_text
from .harness import ProposalComparisonResult

logger = logging.getLogger(__name__)

PASS_MESSAGE = "✅ Evaluation Passed: All data change proposals matched successfully!"
FAIL_MESSAGE = "❌ Evaluation Failed: Data Change Proposals Don't Match"
MISSING_SIDE = "<none>"


@dataclass(frozen=True)
class DiffRendered:
    text: str


@dataclass(frozen=True)
class DiffFailed:
    error: str


DiffOutcome = Union[DiffRendered, DiffFailed]


def _pretty(record: Optional[Any]) -> list[str]:
    if record is None:
        return [MISSING_SIDE]
    return to_canonical_text(record, indent=2).split("\n")


def _line_diff(expected_lines: list[str], actual_lines: list[str]) -> list[str]:
    """Prefix each line with "  " (unchanged), "- " (expected only) or "+ " (actual only)."""
    lines = []
    matcher = difflib.SequenceMatcher(None, expected_lines, actual_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            lines.extend(f"  {line}" for line in expected_lines[i1:i2])
            continue
        if tag in ("replace", "delete"):
            lines.extend(f"- {line}" for line in expected_lines[i1:i2])
        if tag in ("replace", "insert"):
            lines.extend(f"+ {line}" for line in actual_lines[j1:j2])
    return lines


def render_diff(
    expected: list[Any],
    actual: list[Any],
    aligner: Aligner = compute_alignment,
) -> DiffOutcome:
    """
    Render aligned per-proposal diffs.

    Args:
        expected: Prepared expected records
        actual: Prepared actual records
        aligner: Pairing function (greedy by default)

    Returns:
        DiffRendered with the report text, or DiffFailed if a record could
        not be rendered
    """
    try:
        blocks = []
        for number, pair in enumerate(aligner(expected, actual), start=1):
            e = expected[pair.expected_index] if pair.expected_index is not None else None
            a = actual[pair.actual_index] if pair.actual_index is not None else None

            title = f"Proposal {number} diff"
            block = ["", title, "-" * len(title)]
            block.extend(_line_diff(_pretty(e), _pretty(a)))
            blocks.append("\n".join(block) + "\n")

        return DiffRendered(text="".join(blocks))

    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to generate proposal diff: {e}")
        return DiffFailed(error=str(e))


class ProposalFormatter:
    """Builds the evaluation comment for a comparison result."""

    def __init__(self, aligner: Aligner = compute_alignment):
        self.aligner = aligner

    def format_success(self) -> str:
        return PASS_MESSAGE

    def format_failure(self, expected: list[Any], actual: list[Any]) -> str:
        outcome = render_diff(expected, actual, self.aligner)
        if isinstance(outcome, DiffRendered):
            body = outcome.text
        else:
            body = f"(diff unavailable: {outcome.error})"

        return "\n".join([FAIL_MESSAGE, "", "---", body, "---"])

    def format(
        self,
        expected: list[Any],
        actual: list[Any],
        result: ProposalComparisonResult,
    ) -> str:
        if result.matches:
            return self.format_success()
        return self.format_failure(expected, actual)
