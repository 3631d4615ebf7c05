"""
Data Change Proposal Evaluation.

This package grades an agent's proposed data changes against golden data:
- Canonical fingerprints for order-independent record comparison
- Date template expressions ({{currentMonth+1}}) resolved at evaluation time
- Layered validation config (global -> dataset example -> record) with transformers
- Set comparison of proposals and aligned diffs for human review
"""
