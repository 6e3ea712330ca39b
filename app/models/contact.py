from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class Contact(Base):
    """
    Email contact owned by a single user.

    Written by the contact CRUD and CSV import layers; segmentation only
    reads these rows.
    """

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("api_users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)

    first_name = Column(String(100))
    last_name = Column(String(100))
    company = Column(String(255))
    job_title = Column(String(255))
    location = Column(String(255))
    website = Column(String(500))
    phone = Column(String(50))

    # Open key/value map, e.g. {"plan": "pro", "industry": "retail"}
    custom_fields = Column(JSON)
    tags = Column(JSON)  # ["vip", "newsletter"]

    # Engagement counters
    total_emails_opened = Column(Integer, default=0)
    total_emails_clicked = Column(Integer, default=0)
    engagement_score = Column(Integer, default=0)

    # Lifecycle
    is_active = Column(Boolean, default=True)
    subscription_date = Column(DateTime(timezone=True), server_default=func.now())
    unsubscribed_at = Column(DateTime(timezone=True))
    last_activity_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="contacts")

    __table_args__ = (
        Index('ix_contacts_user_email', 'user_id', 'email'),
    )

    def __repr__(self):
        return f"<Contact id={self.id} email={self.email}>"
