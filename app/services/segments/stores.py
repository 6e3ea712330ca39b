"""
Storage collaborators for segment materialization.

ContactStore reads tenant contacts; MembershipStore owns the
contact_segment_memberships table and the cached segment count. Neither
commits: the materializer controls the transaction.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, delete, func, insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.contact import Contact
from app.models.contact_segment import ContactSegment, SegmentMembership


class ContactStore:
    """Read-only access to contacts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_contacts_by_user_id(self, user_id: int) -> List[Contact]:
        """All contacts of a tenant, active or not."""
        result = await self.db.execute(
            select(Contact).where(Contact.user_id == user_id).order_by(Contact.id)
        )
        return list(result.scalars().all())

    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        result = await self.db.execute(select(Contact).where(Contact.id == contact_id))
        return result.scalar_one_or_none()

    async def get_contacts_by_ids(self, contact_ids: Sequence[int]) -> List[Contact]:
        if not contact_ids:
            return []
        result = await self.db.execute(
            select(Contact).where(Contact.id.in_(list(contact_ids))).order_by(Contact.id)
        )
        return list(result.scalars().all())


class MembershipStore:
    """Membership rows and the segment's cached count."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_segment(self, segment_id: int, for_update: bool = False) -> Optional[ContactSegment]:
        query = select(ContactSegment).where(ContactSegment.id == segment_id)
        if for_update:
            # Row lock on PostgreSQL; ignored by SQLite
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_member_ids(self, segment_id: int) -> List[int]:
        result = await self.db.execute(
            select(SegmentMembership.contact_id)
            .where(SegmentMembership.segment_id == segment_id)
            .order_by(SegmentMembership.contact_id)
        )
        return [row[0] for row in result.all()]

    async def get_member_added_at(self, segment_id: int) -> Dict[int, datetime]:
        result = await self.db.execute(
            select(SegmentMembership.contact_id, SegmentMembership.added_at).where(
                SegmentMembership.segment_id == segment_id
            )
        )
        return {contact_id: added_at for contact_id, added_at in result.all()}

    async def is_member(self, segment_id: int, contact_id: int) -> bool:
        result = await self.db.execute(
            select(SegmentMembership.id).where(
                SegmentMembership.segment_id == segment_id,
                SegmentMembership.contact_id == contact_id,
            )
        )
        return result.first() is not None

    async def delete_all_by_segment(self, segment_id: int) -> int:
        result = await self.db.execute(
            delete(SegmentMembership).where(SegmentMembership.segment_id == segment_id)
        )
        return result.rowcount or 0

    async def bulk_insert(
        self,
        segment_id: int,
        contact_ids: Iterable[int],
        added_at: Dict[int, datetime],
        now: datetime,
    ) -> int:
        rows = [
            {
                "segment_id": segment_id,
                "contact_id": contact_id,
                "added_at": added_at.get(contact_id, now),
            }
            for contact_id in contact_ids
        ]
        if not rows:
            return 0
        await self.db.execute(insert(SegmentMembership), rows)
        return len(rows)

    async def add_member(self, segment_id: int, contact_id: int, now: datetime) -> None:
        self.db.add(SegmentMembership(segment_id=segment_id, contact_id=contact_id, added_at=now))
        await self.db.flush()

    async def remove_member(self, segment_id: int, contact_id: int) -> bool:
        result = await self.db.execute(
            delete(SegmentMembership).where(
                SegmentMembership.segment_id == segment_id,
                SegmentMembership.contact_id == contact_id,
            )
        )
        return (result.rowcount or 0) > 0

    async def count_members(self, segment_id: int) -> int:
        result = await self.db.execute(
            select(func.count(SegmentMembership.id)).where(SegmentMembership.segment_id == segment_id)
        )
        return result.scalar() or 0

    async def update_segment_count(self, segment_id: int, contact_count: int, now: datetime) -> None:
        await self.db.execute(
            update(ContactSegment)
            .where(ContactSegment.id == segment_id)
            .values(contact_count=contact_count, last_updated_at=now)
        )
