"""
Order-independent comparison of expected and actual proposal sets.

Every record is fingerprinted from its canonical JSON; the two sides are
compared as sets of fingerprints. Duplicate records collapse to a single
fingerprint, so proposing the same change twice when it was expected once
still matches.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .canonical import fingerprint

logger = logging.getLogger(__name__)


@dataclass
class ProposalComparisonResult:
    """Outcome of comparing two proposal collections."""

    matches: bool
    missing_in_actual: list[str] = field(default_factory=list)
    unexpected_in_actual: list[str] = field(default_factory=list)
    expected_hashes: list[str] = field(default_factory=list)
    actual_hashes: list[str] = field(default_factory=list)
    matched_count: int = 0

    def to_dict(self) -> dict:
        return {
            "matches": self.matches,
            "missing_in_actual": self.missing_in_actual,
            "unexpected_in_actual": self.unexpected_in_actual,
            "expected_hashes": self.expected_hashes,
            "actual_hashes": self.actual_hashes,
            "matched_count": self.matched_count,
        }


def _unique(hashes: list[str]) -> list[str]:
    return list(dict.fromkeys(hashes))


def compare_proposal_sets(
    expected: list[Any],
    actual: list[Any],
    log_details: bool = False,
) -> ProposalComparisonResult:
    """
    Compare two proposal collections ignoring order.

    Args:
        expected: Prepared expected records
        actual: Prepared actual records
        log_details: Log every fingerprint at debug level

    Returns:
        ProposalComparisonResult. missing_in_actual and unexpected_in_actual
        list fingerprints in the order their records first appear.
    """
    expected_hashes = [fingerprint(record) for record in expected]
    actual_hashes = [fingerprint(record) for record in actual]

    expected_set = set(expected_hashes)
    actual_set = set(actual_hashes)

    missing = [h for h in _unique(expected_hashes) if h not in actual_set]
    unexpected = [h for h in _unique(actual_hashes) if h not in expected_set]
    matched = len(expected_set & actual_set)

    if log_details:
        for i, h in enumerate(expected_hashes):
            logger.debug(f"Expected[{i}] {h}{'' if h in actual_set else ' (missing)'}")
        for j, h in enumerate(actual_hashes):
            logger.debug(f"Actual[{j}] {h}{'' if h in expected_set else ' (unexpected)'}")

    result = ProposalComparisonResult(
        matches=not missing and not unexpected,
        missing_in_actual=missing,
        unexpected_in_actual=unexpected,
        expected_hashes=expected_hashes,
        actual_hashes=actual_hashes,
        matched_count=matched,
    )

    logger.info(
        f"Compared {len(expected)} expected vs {len(actual)} actual proposals: "
        f"{matched} matched, {len(missing)} missing, {len(unexpected)} unexpected"
    )
    return result
