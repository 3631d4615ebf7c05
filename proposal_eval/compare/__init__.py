"""
Comparison of expected and actual data change proposals.

This module provides:
- Canonical JSON and fingerprints (key-order independent)
- Set comparison of proposal collections
- Greedy alignment and line diffs for mismatch reports
"""

from .canonical import (
    canonicalize,
    canonical_equal,
    fingerprint,
    to_canonical_text,
)
from .schemas import (
    ChangeType,
    DataChangeProposal,
    normalize_proposal,
)
from .harness import (
    ProposalComparisonResult,
    compare_proposal_sets,
)
from .alignment import (
    AlignmentPair,
    compute_alignment,
    score_pair,
)
from .formatter import (
    DiffFailed,
    DiffRendered,
    ProposalFormatter,
    render_diff,
)

__all__ = [
    # Canonical JSON
    "canonicalize",
    "canonical_equal",
    "fingerprint",
    "to_canonical_text",
    # Proposals
    "ChangeType",
    "DataChangeProposal",
    "normalize_proposal",
    # Comparison
    "ProposalComparisonResult",
    "compare_proposal_sets",
    # Alignment and reports
    "AlignmentPair",
    "compute_alignment",
    "score_pair",
    "DiffFailed",
    "DiffRendered",
    "ProposalFormatter",
    "render_diff",
]
