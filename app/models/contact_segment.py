"""
Contact Segment Models

A segment is a user-defined AND/OR condition tree over contact attributes.
Matching contacts are materialized into contact_segment_memberships so that
campaign sends and analytics never evaluate rules at read time.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class ContactSegment(Base):
    """
    Dynamic contact segment definition.

    conditions holds the root condition group, e.g.:
    {
        "operator": "AND",
        "rules": [
            {"field": "engagementScore", "operator": "greater_equal", "value": 75},
            {
                "operator": "OR",
                "rules": [
                    {"field": "tags", "operator": "tag_contains", "value": "vip"},
                    {"field": "company", "operator": "contains", "value": "acme"}
                ]
            }
        ]
    }
    """
    __tablename__ = "contact_segments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("api_users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)

    # None is stored as SQL NULL, not JSON null
    conditions = Column(JSON(none_as_null=True))

    # Participates in sends and previews
    is_active = Column(Boolean, default=True)
    # Re-materialize on create and on condition changes
    is_auto_update = Column(Boolean, default=True)

    # Cached from the membership table
    contact_count = Column(Integer, default=0)
    last_updated_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="contact_segments")
    memberships = relationship(
        "SegmentMembership",
        back_populates="segment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<ContactSegment id={self.id} name='{self.name}' count={self.contact_count}>"


class SegmentMembership(Base):
    """Materialized (contact, segment) pair as of the last refresh."""

    __tablename__ = "contact_segment_memberships"

    id = Column(Integer, primary_key=True, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    segment_id = Column(Integer, ForeignKey("contact_segments.id", ondelete="CASCADE"), nullable=False, index=True)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    segment = relationship("ContactSegment", back_populates="memberships")
    contact = relationship("Contact")

    __table_args__ = (
        UniqueConstraint('contact_id', 'segment_id', name='uq_segment_membership_contact_segment'),
        Index('ix_segment_membership_segment_added', 'segment_id', 'added_at'),
    )

    def __repr__(self):
        return f"<SegmentMembership segment_id={self.segment_id} contact_id={self.contact_id}>"
