from app.schemas.contact import ContactResponse
from app.schemas.contact_segment import (
    RuleSchema,
    ConditionGroupSchema,
    ContactSegmentCreate,
    ContactSegmentUpdate,
    ContactSegmentResponse,
    ContactSegmentListResponse,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentFieldsResponse,
    SegmentMembershipChangeResponse,
)

__all__ = [
    "ContactResponse",
    "RuleSchema",
    "ConditionGroupSchema",
    "ContactSegmentCreate",
    "ContactSegmentUpdate",
    "ContactSegmentResponse",
    "ContactSegmentListResponse",
    "SegmentPreviewRequest",
    "SegmentPreviewResponse",
    "SegmentFieldsResponse",
    "SegmentMembershipChangeResponse",
]
