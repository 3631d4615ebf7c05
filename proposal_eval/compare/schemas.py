"""
Normalized shape of data change proposals.

Raw proposals come from the agent's output with the mutation nested under
"mutationQuery". The normalized shape flattens it:

    {
        "changeType": "change",
        "changedField": "salary",
        "newValue": "5000",
        "mutationQueryPropertyPath": "data.salary",
        "relatedUserId": "user-1",
        "mutationVariables": {...},
    }

Creation proposals keep only changeType, relatedUserId and mutationVariables.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChangeType(str, Enum):
    CHANGE = "change"
    CREATION = "creation"


class MutationQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    property_path: Any = Field(None, alias="propertyPath")
    variables: Any = None


class DataChangeProposal(BaseModel):
    """
    A raw proposal as produced by the agent.

    Field values are not type-checked: the agent may emit a number where a
    string is expected, and that must show up as a mismatch, not a crash.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    change_type: Any = Field(ChangeType.CHANGE.value, alias="changeType")
    changed_field: Any = Field(None, alias="changedField")
    new_value: Any = Field(None, alias="newValue")
    related_user_id: Any = Field(None, alias="relatedUserId")
    mutation_query: Any = Field(None, alias="mutationQuery")

    @property
    def query(self) -> Optional[MutationQuery]:
        """The mutation query, or None when it is missing or not a mapping."""
        if isinstance(self.mutation_query, MutationQuery):
            return self.mutation_query
        if isinstance(self.mutation_query, dict):
            return MutationQuery.model_validate(self.mutation_query)
        return None


def normalize_proposal(raw: Any) -> dict:
    """
    Flatten a raw proposal into the normalized comparison shape.

    Args:
        raw: Proposal mapping (or DataChangeProposal)

    Returns:
        Normalized proposal dict; absent values are omitted, not stored as None

    Raises:
        pydantic.ValidationError: raw is not a mapping
    """
    proposal = raw if isinstance(raw, DataChangeProposal) else DataChangeProposal.model_validate(raw)
    query = proposal.query

    if proposal.change_type == ChangeType.CREATION.value:
        fields = {
            "changeType": ChangeType.CREATION.value,
            "relatedUserId": proposal.related_user_id,
            "mutationVariables": query.variables if query else None,
        }
    else:
        fields = {
            "changeType": proposal.change_type,
            "changedField": proposal.changed_field,
            "newValue": proposal.new_value,
            "mutationQueryPropertyPath": query.property_path if query else None,
            "relatedUserId": proposal.related_user_id,
            "mutationVariables": query.variables if query else None,
        }

    return {key: value for key, value in fields.items() if value is not None}
