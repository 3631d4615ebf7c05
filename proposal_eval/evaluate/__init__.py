"""End-to-end evaluation of data change proposals."""

from .evaluator import (
    DEFAULT_REFERENCE_KEY,
    EvaluationResult,
    evaluate_data_change_proposals,
)

__all__ = [
    "DEFAULT_REFERENCE_KEY",
    "EvaluationResult",
    "evaluate_data_change_proposals",
]
