"""
Segment Membership Materializer

Evaluates a segment's condition tree against every contact of the segment
owner and replaces the stored membership set:

1. Load the segment (no condition tree -> nothing to do)
2. Load all of the owner's contacts (inactive contacts included)
3. Classify contacts in chunks, yielding to the event loop between chunks
4. Delete the segment's membership rows and bulk-insert the matches
5. Store contact_count and last_updated_at, then commit

Refreshes of the same segment are serialized; different segments refresh
independently. The scan is a full re-evaluation on every refresh.
"""

import asyncio
import logging
import time
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    BusinessRuleError,
    ContactNotFoundError,
    SegmentNotFoundError,
    SegmentRefreshError,
)
from app.models.contact import Contact
from app.models.contact_segment import ContactSegment
from app.services.segments.conditions import parse_conditions
from app.services.segments.evaluator import RuleEvaluationError, evaluate_segment
from app.services.segments.stores import ContactStore, MembershipStore
from app.services.segments.triggers import RefreshAction, SegmentEvent, decide_refresh

logger = logging.getLogger(__name__)

# One lock per segment id and event loop, shared by every materializer in this process
_refresh_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[int, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def get_refresh_lock(segment_id: int) -> asyncio.Lock:
    locks = _refresh_locks.setdefault(asyncio.get_running_loop(), {})
    if segment_id not in locks:
        locks[segment_id] = asyncio.Lock()
    return locks[segment_id]


def _discard_refresh_lock(segment_id: int) -> None:
    locks = _refresh_locks.get(asyncio.get_running_loop())
    if locks is not None:
        locks.pop(segment_id, None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MembershipRefreshResult:
    """Outcome of one refresh."""

    segment_id: int
    added: int = 0
    removed: int = 0
    total: int = 0
    contacts_evaluated: int = 0
    evaluation_errors: List[str] = field(default_factory=list)
    skipped: bool = False
    execution_time_ms: float = 0


@dataclass
class SegmentPreviewResult:
    """Live evaluation of a condition tree without writing membership."""

    total_matches: int
    contacts_evaluated: int
    sample_contacts: List[Contact] = field(default_factory=list)
    evaluation_errors: List[str] = field(default_factory=list)


class SegmentMaterializer:
    """Materializes and maintains contact segment membership."""

    def __init__(self, db: AsyncSession, chunk_size: Optional[int] = None):
        self.db = db
        self.contacts = ContactStore(db)
        self.memberships = MembershipStore(db)
        self.chunk_size = chunk_size or settings.SEGMENT_REFRESH_CHUNK_SIZE

    # =========================================================================
    # FULL REFRESH
    # =========================================================================

    async def refresh_segment_membership(self, segment_id: int) -> MembershipRefreshResult:
        """
        Re-evaluate a segment and replace its membership.

        Idempotent: with unchanged contacts a second call yields the same
        membership set and count.

        Raises:
            SegmentNotFoundError: segment does not exist
            SegmentRefreshError: membership could not be persisted
        """
        async with get_refresh_lock(segment_id):
            return await self._refresh_locked(segment_id)

    async def _refresh_locked(self, segment_id: int) -> MembershipRefreshResult:
        start_time = time.monotonic()

        segment = await self.memberships.get_segment(segment_id, for_update=True)
        if segment is None:
            raise SegmentNotFoundError(segment_id)

        root = parse_conditions(segment.conditions)
        if root is None:
            total = segment.contact_count or 0
            # Release the row lock taken above
            await self.db.rollback()
            logger.info(f"Segment {segment_id} has no conditions; skipping refresh")
            return MembershipRefreshResult(
                segment_id=segment_id,
                total=total,
                skipped=True,
            )

        logger.info(f"Refreshing membership for segment {segment_id} (user {segment.user_id})")

        candidates = await self.contacts.get_contacts_by_user_id(segment.user_id)
        errors: List[RuleEvaluationError] = []
        matching_ids = await self._classify(root, candidates, errors)

        previous_added_at = await self.memberships.get_member_added_at(segment_id)
        now = _utcnow()

        try:
            await self.memberships.delete_all_by_segment(segment_id)
            await self.memberships.bulk_insert(segment_id, matching_ids, previous_added_at, now)
            await self.memberships.update_segment_count(segment_id, len(matching_ids), now)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Failed to persist membership for segment {segment_id}")
            raise SegmentRefreshError(segment_id, type(e).__name__) from e

        new_members = set(matching_ids)
        old_members = set(previous_added_at)
        result = MembershipRefreshResult(
            segment_id=segment_id,
            added=len(new_members - old_members),
            removed=len(old_members - new_members),
            total=len(new_members),
            contacts_evaluated=len(candidates),
            evaluation_errors=[str(error) for error in errors],
            execution_time_ms=(time.monotonic() - start_time) * 1000,
        )
        logger.info(
            f"Segment {segment_id} refreshed: {result.total} members "
            f"(+{result.added}/-{result.removed}, {len(errors)} rule errors, "
            f"{result.execution_time_ms:.0f}ms)"
        )
        return result

    async def _classify(
        self,
        root: Any,
        candidates: List[Contact],
        errors: List[RuleEvaluationError],
    ) -> List[int]:
        """Ids of matching contacts, evaluated chunk by chunk."""
        matching_ids: List[int] = []
        for offset in range(0, len(candidates), self.chunk_size):
            for contact in candidates[offset:offset + self.chunk_size]:
                try:
                    if evaluate_segment(root, contact, errors):
                        matching_ids.append(contact.id)
                except Exception:
                    logger.exception(f"Excluding contact {contact.id} after evaluation failure")
            # Cancellation point between chunks
            await asyncio.sleep(0)
        return matching_ids

    # =========================================================================
    # PREVIEW
    # =========================================================================

    async def preview_segment(
        self,
        user_id: int,
        conditions: Any,
        sample_size: Optional[int] = None,
    ) -> SegmentPreviewResult:
        """Evaluate conditions against a user's contacts without persisting anything."""
        sample_size = settings.SEGMENT_PREVIEW_SAMPLE_SIZE if sample_size is None else sample_size
        root = parse_conditions(conditions)
        candidates = await self.contacts.get_contacts_by_user_id(user_id)

        errors: List[RuleEvaluationError] = []
        if root is None:
            matching_ids = [contact.id for contact in candidates]
        else:
            matching_ids = await self._classify(root, candidates, errors)

        matched = set(matching_ids)
        sample = [contact for contact in candidates if contact.id in matched][:sample_size]
        return SegmentPreviewResult(
            total_matches=len(matching_ids),
            contacts_evaluated=len(candidates),
            sample_contacts=sample,
            evaluation_errors=[str(error) for error in errors],
        )

    # =========================================================================
    # MANUAL MEMBERSHIP OVERRIDES
    # =========================================================================

    async def add_contact_to_segment(self, segment_id: int, contact_id: int) -> bool:
        """
        Add one contact to a segment outside of rule evaluation.

        The next full refresh may remove it again. Returns False when the
        contact was already a member.
        """
        async with get_refresh_lock(segment_id):
            segment = await self._get_segment_or_raise(segment_id)
            contact = await self.contacts.get_contact(contact_id)
            if contact is None:
                raise ContactNotFoundError(contact_id)
            if contact.user_id != segment.user_id:
                raise BusinessRuleError("Contact belongs to a different account than the segment")

            if await self.memberships.is_member(segment_id, contact_id):
                return False

            now = _utcnow()
            await self.memberships.add_member(segment_id, contact_id, now)
            await self._recount(segment_id, now)
            await self.db.commit()
            logger.info(f"Contact {contact_id} manually added to segment {segment_id}")
            return True

    async def remove_contact_from_segment(self, segment_id: int, contact_id: int) -> bool:
        """Remove one contact from a segment. Returns False if it was not a member."""
        async with get_refresh_lock(segment_id):
            await self._get_segment_or_raise(segment_id)

            removed = await self.memberships.remove_member(segment_id, contact_id)
            if not removed:
                return False

            await self._recount(segment_id, _utcnow())
            await self.db.commit()
            logger.info(f"Contact {contact_id} manually removed from segment {segment_id}")
            return True

    async def _recount(self, segment_id: int, now: datetime) -> int:
        count = await self.memberships.count_members(segment_id)
        await self.memberships.update_segment_count(segment_id, count, now)
        return count

    # =========================================================================
    # READS AND LIFECYCLE
    # =========================================================================

    async def get_segment_contacts(self, segment_id: int) -> List[Contact]:
        """Materialized members of a segment, as downstream readers see them."""
        await self._get_segment_or_raise(segment_id)
        member_ids = await self.memberships.get_member_ids(segment_id)
        return await self.contacts.get_contacts_by_ids(member_ids)

    async def delete_segment(self, segment_id: int) -> None:
        async with get_refresh_lock(segment_id):
            segment = await self._get_segment_or_raise(segment_id)
            await self.memberships.delete_all_by_segment(segment_id)
            await self.db.delete(segment)
            await self.db.commit()
        _discard_refresh_lock(segment_id)

    async def handle_segment_event(
        self,
        event: SegmentEvent,
        segment: ContactSegment,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[MembershipRefreshResult]:
        """Run whatever the refresh policy asks for after a segment event."""
        action = decide_refresh(event, segment, changes)
        if action == RefreshAction.FULL_REFRESH:
            return await self.refresh_segment_membership(segment.id)
        if action == RefreshAction.RECOUNT:
            async with get_refresh_lock(segment.id):
                await self._recount(segment.id, _utcnow())
                await self.db.commit()
        return None

    async def _get_segment_or_raise(self, segment_id: int) -> ContactSegment:
        segment = await self.memberships.get_segment(segment_id)
        if segment is None:
            raise SegmentNotFoundError(segment_id)
        return segment
