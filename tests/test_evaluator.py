"""
End-to-end tests for the data change proposal evaluator.

Tests cover:
1. Passing and failing evaluations
2. Default date transformers driven by the actual changeType
3. Example- and record-level config overrides, normalization rules included
4. Missing reference data
5. Agent proposals with mistyped fields
"""

from datetime import datetime, timezone

from proposal_eval.compare.formatter import FAIL_MESSAGE, PASS_MESSAGE
from proposal_eval.evaluate import (
    DEFAULT_REFERENCE_KEY,
    EvaluationResult,
    evaluate_data_change_proposals,
)


# ─── Test Data ───

SEP_18 = datetime(2024, 9, 18, 10, 0, tzinfo=timezone.utc)
TODAY = "2024-09-18T00:00:00.000Z"


def _actual_change(new_value="5000", user="user-1", effective_date=TODAY) -> dict:
    variables = {"data": {"salary": new_value, "employeeId": "e1"}}
    if effective_date is not None:
        variables["data"]["effectiveDate"] = effective_date
    return {
        "id": "proposal-1",
        "status": "pending",
        "description": "Raise salary",
        "changeType": "change",
        "changedField": "salary",
        "newValue": new_value,
        "relatedUserId": user,
        "mutationQuery": {
            "query": "mutation UpdateSalary { ... }",
            "propertyPath": "data.salary",
            "variables": variables,
        },
        "createdAt": "2024-09-18T10:00:00Z",
    }


def _expected_change(new_value="5000", user="user-1", **overrides) -> dict:
    record = {
        "changeType": "change",
        "changedField": "salary",
        "newValue": new_value,
        "mutationQueryPropertyPath": "data.salary",
        "relatedUserId": user,
        "mutationVariables": {"data": {"salary": new_value, "employeeId": "e1"}},
    }
    record.update(overrides)
    return record


class TestEvaluateDataChangeProposals:
    """Tests for evaluate_data_change_proposals()."""

    def test_match_with_default_effective_date(self):
        """Test the expected effectiveDate is filled in from the clock."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert isinstance(result, EvaluationResult)
        assert result.score == 1
        assert result.comment == PASS_MESSAGE
        assert result.key == "data_change_proposal_verification"

    def test_single_mapping_reference(self):
        """Test a single expected mapping is treated as a one-element list."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": _expected_change()},
            current_date=SEP_18,
        )
        assert result.score == 1
        assert result.value["expected_count"] == 1

    def test_other_day_fails(self):
        """Test an effectiveDate from another day does not match."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change(effective_date="2024-09-17T00:00:00.000Z")]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.comment.startswith(FAIL_MESSAGE)
        assert '-       "effectiveDate": "2024-09-18T00:00:00.000Z",' in result.comment
        assert '+       "effectiveDate": "2024-09-17T00:00:00.000Z",' in result.comment

    def test_order_independent(self):
        """Test proposals match regardless of order."""
        actual = [_actual_change("5000", "user-1"), _actual_change("6000", "user-2")]
        expected = [_expected_change("6000", "user-2"), _expected_change("5000", "user-1")]
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": actual},
            {"expectedDataProposal": expected},
            current_date=SEP_18,
        )
        assert result.score == 1
        assert result.value["matched_count"] == 2

    def test_wrong_value_fails(self):
        """Test a different newValue is reported as missing and unexpected."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change("4000")]},
            {"expectedDataProposal": [_expected_change("5000")]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.value["missing_count"] == 1
        assert result.value["unexpected_count"] == 1

    def test_no_actual_proposals(self):
        """Test an agent that proposed nothing fails."""
        result = evaluate_data_change_proposals(
            {"answer": "Done"},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.value["actual_count"] == 0
        assert "+ <none>" in result.comment

    def test_creation_proposal(self):
        """Test the expected startDate is added for creation proposals."""
        actual = {
            "changeType": "creation",
            "relatedUserId": "user-1",
            "mutationQuery": {"variables": {"data": {"name": "Ann", "startDate": TODAY}}},
        }
        expected = {
            "changeType": "creation",
            "relatedUserId": "user-1",
            "mutationVariables": {"data": {"name": "Ann"}},
        }
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [actual]},
            {"expectedDataProposal": [expected]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_example_config_disables_defaults(self):
        """Test an empty example-level transformers facet turns the date filling off."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [_expected_change()]},
            example_config={"transformers": {}},
            current_date=SEP_18,
        )
        assert result.score == 0

    def test_example_ignore_paths(self):
        """Test example-level ignorePaths apply to both sides."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change(user="someone-else", effective_date=None)]},
            {"expectedDataProposal": [_expected_change()]},
            example_config={"ignorePaths": ["relatedUserId", "mutationVariables.data.effectiveDate"]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_record_overrides(self):
        """Test record-level ignorePaths apply and are not compared."""
        expected = _expected_change(ignorePaths=["relatedUserId"])
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change(user="someone-else")]},
            {"expectedDataProposal": [expected]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_record_transformers_override(self):
        """Test a record-level transformers facet replaces the global one."""
        expected = _expected_change(
            changedField=" salary ",
            transformers={"changedField": "transformer-trim"},
        )
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change(effective_date=None)]},
            {"expectedDataProposal": [expected]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_example_normalization_rules(self):
        """Test example-level normalization rules reshape the actual proposals."""
        example_config = {
            "transformers": {},
            "normalization": [{
                "when": "change",
                "fields": {
                    "changeType": {"from": "__literal__"},
                    "field": "changedField",
                    "value": "newValue",
                    "salary": "mutationQuery.variables.data.salary",
                },
            }],
        }
        expected = {"changeType": "change", "field": "salary", "value": "5000", "salary": "5000"}
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [expected]},
            example_config=example_config,
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_record_normalization_override(self):
        """Test a record-level normalization facet applies to its paired proposal."""
        expected = {
            "user": "user-1",
            "transformers": {},
            "normalization": [{"fields": {"user": "relatedUserId"}}],
        }
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [expected]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_unmatched_normalization_rule_falls_back(self):
        """Test proposals no rule matches get the standard normalized shape."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [_expected_change()]},
            example_config={"normalization": [{"when": "creation", "fields": {"user": "relatedUserId"}}]},
            current_date=SEP_18,
        )
        assert result.score == 1
    def test_missing_reference_key(self):
        """Test a missing reference key scores 0 with an error comment."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"somethingElse": []},
        )
        assert result.score == 0
        assert result.comment == f"Error: Required reference key '{DEFAULT_REFERENCE_KEY}' not found"

    def test_missing_reference_outputs(self):
        """Test absent reference outputs are handled like a missing key."""
        result = evaluate_data_change_proposals({"dataChangeProposals": []}, None)
        assert result.score == 0
        assert "not found" in result.comment

    def test_custom_reference_key(self):
        """Test expected proposals can live under another key."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"goldenProposals": [_expected_change()]},
            reference_key="goldenProposals",
            current_date=SEP_18,
        )
        assert result.score == 1
        assert result.value["reference_key"] == "goldenProposals"

    def test_value_payload(self):
        """Test the value payload carries counts and hashes."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change()]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        value = result.value
        assert value["expected_count"] == 1
        assert value["actual_count"] == 1
        assert value["expected_hashes"] == value["actual_hashes"]
        assert value["comparison_method"] == "canonical_md5_set"
        assert result.to_dict()["score"] == 1


class TestMistypedAgentOutput:
    """Tests for agent proposals whose fields have unexpected types."""

    def test_numeric_user_id_is_a_mismatch(self):
        """Test a number where a string is expected fails without raising."""
        actual = _actual_change()
        actual["relatedUserId"] = 42
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [actual]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.comment.startswith(FAIL_MESSAGE)
        assert '"relatedUserId": 42' in result.comment

    def test_numeric_values_can_match(self):
        """Test numbers compare as-is when the expected record has numbers too."""
        actual = _actual_change()
        actual["relatedUserId"] = 42
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [actual]},
            {"expectedDataProposal": [_expected_change(user=42)]},
            current_date=SEP_18,
        )
        assert result.score == 1

    def test_non_mapping_mutation_query(self):
        """Test a mutationQuery that is not a mapping drops its fields and fails."""
        actual = _actual_change()
        actual["mutationQuery"] = "mutation UpdateSalary"
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [actual]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.value["unexpected_count"] == 1

    def test_non_mapping_proposal(self):
        """Test a proposal that is not a mapping is reported as unexpected."""
        result = evaluate_data_change_proposals(
            {"dataChangeProposals": [_actual_change(), "oops"]},
            {"expectedDataProposal": [_expected_change()]},
            current_date=SEP_18,
        )
        assert result.score == 0
        assert result.value["actual_count"] == 2
        assert result.value["unexpected_count"] == 1
        assert '"rawProposal": "oops"' in result.comment
