"""
Data change proposal evaluator.

Grades an agent run by checking that the proposals it produced are the
same set as the expected proposals stored with the dataset example.

Flow:
1. Read expected proposals from reference outputs (a single mapping is
   treated as a one-element list)
2. Resolve validation config per record (global, example, record layers)
3. Normalize actual proposals from outputs["dataChangeProposals"], using
   the resolved normalization rules when there are any
4. Prepare both sides (add transformers, transformers, ignored paths)
5. Compare fingerprint sets and format the comment
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from ..compare.formatter import ProposalFormatter
from ..compare.harness import compare_proposal_sets
from ..compare.schemas import normalize_proposal
from ..validate.config import (
    GLOBAL_VALIDATION_DEFAULTS,
    ConfigLayer,
    ValidationConfig,
    merge_validation_configs,
    normalize_with_config,
    prepare_records,
    record_overrides_of,
)

logger = logging.getLogger(__name__)

EVALUATION_KEY = "data_change_proposal_verification"
DEFAULT_REFERENCE_KEY = "expectedDataProposal"
ACTUAL_OUTPUT_KEY = "dataChangeProposals"
COMPARISON_METHOD = "canonical_md5_set"

# Agent proposals that are not mappings are compared wrapped under this key
RAW_PROPOSAL_KEY = "rawProposal"


@dataclass
class EvaluationResult:
    """Score and comment reported back for one example."""

    score: int
    comment: str
    key: str = EVALUATION_KEY
    value: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "score": self.score,
            "comment": self.comment,
            "value": self.value,
        }


def _normalize_actual(raw: Any, config: ValidationConfig) -> dict:
    """Normalize one agent proposal, preferring the config's normalization rules."""
    if config.normalization and isinstance(raw, dict):
        normalized = normalize_with_config(raw, config)
        if normalized is not raw:
            return normalized

    try:
        return normalize_proposal(raw)
    except ValidationError as e:
        logger.warning(f"Agent proposal is not a mapping, comparing it as-is ({e.error_count()} errors)")
        return {RAW_PROPOSAL_KEY: raw}


def _prepare_side(
    records: list[dict],
    configs: list[ValidationConfig],
    is_expected: bool,
    counterparts: list[dict],
    current_date: Optional[datetime],
) -> list[dict]:
    """Prepare each record with its own resolved config and index-paired counterpart."""
    prepared = []
    for index, record in enumerate(records):
        counterpart = [counterparts[index]] if index < len(counterparts) else None
        prepared.extend(prepare_records(
            [record], configs[index], is_expected,
            counterpart_records=counterpart, current_date=current_date,
        ))
    return prepared


def evaluate_data_change_proposals(
    outputs: dict,
    reference_outputs: Optional[dict],
    reference_key: Optional[str] = None,
    example_config: ConfigLayer = None,
    global_config: ConfigLayer = None,
    current_date: Optional[datetime] = None,
) -> EvaluationResult:
    """
    Evaluate the agent's data change proposals against the expected ones.

    Args:
        outputs: Run outputs; proposals are read from "dataChangeProposals"
        reference_outputs: Dataset example reference outputs
        reference_key: Key holding expected proposals (default "expectedDataProposal")
        example_config: Layer 2 validation config from the example metadata
        global_config: Layer 1 validation config (GLOBAL_VALIDATION_DEFAULTS if omitted)
        current_date: Clock for date transformers (defaults to now)

    Returns:
        EvaluationResult with score 1 on match, 0 otherwise
    """
    key = reference_key or DEFAULT_REFERENCE_KEY
    global_config = GLOBAL_VALIDATION_DEFAULTS if global_config is None else global_config

    if not reference_outputs or reference_outputs.get(key) is None:
        available = sorted(reference_outputs) if reference_outputs else []
        logger.warning(f"Required reference key '{key}' not found (available: {available})")
        return EvaluationResult(
            score=0,
            comment=f"Error: Required reference key '{key}' not found",
        )

    reference_value = reference_outputs[key]
    expected_raw = reference_value if isinstance(reference_value, list) else [reference_value]

    actual_raw = (outputs or {}).get(ACTUAL_OUTPUT_KEY) or []

    # expected[i] gets its own overrides; actual[j] uses the config of expected[j]
    example_level = merge_validation_configs(global_config, example_config)
    expected_configs = [
        merge_validation_configs(global_config, example_config, record_overrides_of(record))
        for record in expected_raw
    ]
    actual_configs = [
        expected_configs[j] if j < len(expected_configs) else example_level
        for j in range(len(actual_raw))
    ]
    actual = [_normalize_actual(raw, config) for raw, config in zip(actual_raw, actual_configs)]

    expected_prepared = _prepare_side(expected_raw, expected_configs, True, actual, current_date)
    actual_prepared = _prepare_side(actual, actual_configs, False, expected_raw, current_date)

    result = compare_proposal_sets(expected_prepared, actual_prepared, log_details=True)
    comment = ProposalFormatter().format(expected_prepared, actual_prepared, result)

    logger.info(
        f"Data change proposal evaluation: {'passed' if result.matches else 'failed'} "
        f"({len(expected_prepared)} expected, {len(actual_prepared)} actual)"
    )

    return EvaluationResult(
        score=1 if result.matches else 0,
        comment=comment,
        value={
            "expected_count": len(expected_prepared),
            "actual_count": len(actual_prepared),
            "expected_hashes": result.expected_hashes,
            "actual_hashes": result.actual_hashes,
            "missing_count": len(result.missing_in_actual),
            "unexpected_count": len(result.unexpected_in_actual),
            "matched_count": result.matched_count,
            "reference_key": key,
            "comparison_method": COMPARISON_METHOD,
        },
    )
