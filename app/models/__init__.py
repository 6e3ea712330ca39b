from app.models.user import User
from app.models.contact import Contact
from app.models.contact_segment import ContactSegment, SegmentMembership

__all__ = [
    "User",
    "Contact",
    "ContactSegment",
    "SegmentMembership",
]
