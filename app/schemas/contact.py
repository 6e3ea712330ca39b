"""
Contact Schemas (read side only; contacts are written by the contact CRUD layer)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ContactResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[list[str]] = None
    engagement_score: Optional[int] = None
    total_emails_opened: Optional[int] = None
    total_emails_clicked: Optional[int] = None
    is_active: Optional[bool] = None
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
