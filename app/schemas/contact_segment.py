"""
Contact Segment Schemas
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

from app.schemas.contact import ContactResponse
from app.services.segments.operators import SegmentOperator


def _node_kind(data: Any) -> str:
    """Groups are the nodes that carry a rules list."""
    if isinstance(data, dict):
        return "group" if "rules" in data else "rule"
    return "group" if hasattr(data, "rules") else "rule"


class RuleSchema(BaseModel):
    """Single rule: compare a contact field against a value."""
    field: str = Field(..., min_length=1, description="Field to evaluate (e.g. 'engagementScore', 'tags')")
    operator: SegmentOperator
    value: Any = Field(None, description="Comparison operand; ignored by is_empty / is_not_empty")


class ConditionGroupSchema(BaseModel):
    """AND/OR group of rules and nested groups."""
    operator: Literal["AND", "OR"] = "AND"
    rules: list[
        Annotated[
            Union[
                Annotated[RuleSchema, Tag("rule")],
                Annotated["ConditionGroupSchema", Tag("group")],
            ],
            Discriminator(_node_kind),
        ]
    ] = Field(default_factory=list)

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


# Enable self-referencing
ConditionGroupSchema.model_rebuild()


class ContactSegmentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    conditions: Optional[ConditionGroupSchema] = None
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    is_auto_update: bool = Field(True, validation_alias=AliasChoices("is_auto_update", "isAutoUpdate"))


class ContactSegmentCreate(ContactSegmentBase):
    """Schema for creating a segment."""
    pass


class ContactSegmentUpdate(BaseModel):
    """Schema for updating a segment. Only fields sent are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    conditions: Optional[ConditionGroupSchema] = None
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    is_auto_update: Optional[bool] = Field(
        None, validation_alias=AliasChoices("is_auto_update", "isAutoUpdate")
    )


class ContactSegmentResponse(BaseModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    conditions: Optional[dict] = None
    is_active: bool = True
    is_auto_update: bool = True
    contact_count: int = 0
    last_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("contact_count", mode="before")
    @classmethod
    def default_count(cls, v: Any) -> Any:
        return 0 if v is None else v


class ContactSegmentListResponse(BaseModel):
    items: list[ContactSegmentResponse]
    total: int
    page: int
    page_size: int


class SegmentPreviewRequest(BaseModel):
    conditions: Optional[ConditionGroupSchema] = None
    sample_size: Optional[int] = Field(None, ge=1, le=100)


class SegmentPreviewResponse(BaseModel):
    total_matches: int
    contacts_evaluated: int
    sample_contacts: list[ContactResponse] = Field(default_factory=list)
    evaluation_errors: list[str] = Field(default_factory=list)


class SegmentFieldResponse(BaseModel):
    name: str
    display_name: str
    field_type: str
    operators: list[str]


class SegmentFieldsResponse(BaseModel):
    fields: list[SegmentFieldResponse]
    operators: list[str]


class SegmentMembershipChangeResponse(BaseModel):
    status: str
    changed: bool
    contact_count: int
