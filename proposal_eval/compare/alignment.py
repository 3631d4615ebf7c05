"""
Best-effort pairing of expected and actual proposals for diff output.

Pairs are scored by which fields agree and committed greedily, highest
score first. This is not an optimal bipartite matching; it only has to put
similar records next to each other in a human-readable report. Callers go
through the Aligner signature so a different matcher can be dropped in.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .canonical import canonical_equal

# Points for an agreeing field
KEY_WEIGHTS = {
    "changeType": 3,
    "changedField": 5,
    "mutationQueryPropertyPath": 3,
    "relatedUserId": 2,
    "newValue": 2,
    "mutationVariables": 4,
}

DEFAULT_PRIMITIVE_POINTS = 1
DEFAULT_OBJECT_POINTS = 2


@dataclass(frozen=True)
class AlignmentPair:
    """One diff block. Either index is None for a record with no partner."""
    expected_index: Optional[int]
    actual_index: Optional[int]
    score: int = 0


Aligner = Callable[[list[Any], list[Any]], list[AlignmentPair]]


def score_pair(expected: dict, actual: dict) -> int:
    """Sum the weights of fields that are set on both sides and canonically equal."""
    score = 0
    for key, expected_value in expected.items():
        if expected_value is None:
            continue
        actual_value = actual.get(key)
        if actual_value is None:
            continue
        if not canonical_equal(expected_value, actual_value):
            continue

        if key in KEY_WEIGHTS:
            score += KEY_WEIGHTS[key]
        elif isinstance(expected_value, (dict, list)):
            score += DEFAULT_OBJECT_POINTS
        else:
            score += DEFAULT_PRIMITIVE_POINTS
    return score


def compute_alignment(expected: list[Any], actual: list[Any]) -> list[AlignmentPair]:
    """
    Greedily pair expected and actual records by similarity.

    Args:
        expected: Expected records
        actual: Actual records

    Returns:
        Committed pairs in descending score order, then unpaired expected
        indices, then unpaired actual indices (each in original order).
        No index appears twice.
    """
    candidates = [
        (score_pair(e, a), i, j)
        for i, e in enumerate(expected)
        for j, a in enumerate(actual)
    ]
    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    used_expected: set[int] = set()
    used_actual: set[int] = set()
    pairs: list[AlignmentPair] = []

    for score, i, j in candidates:
        if score <= 0:
            break
        if i in used_expected or j in used_actual:
            continue
        used_expected.add(i)
        used_actual.add(j)
        pairs.append(AlignmentPair(expected_index=i, actual_index=j, score=score))

    pairs.extend(
        AlignmentPair(expected_index=i, actual_index=None)
        for i in range(len(expected)) if i not in used_expected
    )
    pairs.extend(
        AlignmentPair(expected_index=None, actual_index=j)
        for j in range(len(actual)) if j not in used_actual
    )
    return pairs
