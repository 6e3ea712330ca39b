"""
Contact Segment API Endpoints

Includes:
- CRUD for dynamic contact segments (scoped to the current user)
- Live preview of a condition tree
- Manual membership refresh
- Manual membership overrides
"""

from fastapi import APIRouter, status, Query, Response
from sqlalchemy import select, func
from typing import Optional, List
import logging

from app.api.deps import DbSession, CurrentUser
from app.exceptions import NotFoundError, SegmentNotFoundError
from app.models.contact_segment import ContactSegment
from app.schemas.contact import ContactResponse
from app.schemas.contact_segment import (
    ContactSegmentCreate,
    ContactSegmentUpdate,
    ContactSegmentResponse,
    ContactSegmentListResponse,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentFieldResponse,
    SegmentFieldsResponse,
    SegmentMembershipChangeResponse,
)
from app.services.segments import SegmentEvent, SegmentMaterializer
from app.services.segments.field_resolver import FieldType, available_fields
from app.services.segments.operators import available_operators

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns that cannot be cleared through PATCH
NON_NULLABLE_UPDATES = {"name", "is_active", "is_auto_update"}


async def _get_segment_or_404(segment_id: int, db: DbSession, user_id: int) -> ContactSegment:
    """Segments of other users are reported as missing."""
    result = await db.execute(
        select(ContactSegment).where(
            ContactSegment.id == segment_id,
            ContactSegment.user_id == user_id,
        )
    )
    segment = result.scalar_one_or_none()
    if not segment:
        raise SegmentNotFoundError(segment_id)
    return segment


# =============================================================================
# RULE BUILDER METADATA AND PREVIEW
# =============================================================================


@router.get("/fields", response_model=SegmentFieldsResponse)
async def get_available_fields(current_user: CurrentUser):
    """Get available fields and operators for segment rules."""
    return SegmentFieldsResponse(
        fields=[
            SegmentFieldResponse(
                name=f["name"],
                display_name=f["display_name"],
                field_type=f["field_type"],
                operators=available_operators(FieldType(f["field_type"])),
            )
            for f in available_fields()
        ],
        operators=available_operators(),
    )


@router.post("/preview", response_model=SegmentPreviewResponse)
async def preview_segment(
    request: SegmentPreviewRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Evaluate conditions against the user's contacts without saving anything."""
    conditions = request.conditions.model_dump(mode="json") if request.conditions else None

    materializer = SegmentMaterializer(db)
    preview = await materializer.preview_segment(
        current_user.id,
        conditions,
        sample_size=request.sample_size,
    )

    return SegmentPreviewResponse(
        total_matches=preview.total_matches,
        contacts_evaluated=preview.contacts_evaluated,
        sample_contacts=[ContactResponse.model_validate(c) for c in preview.sample_contacts],
        evaluation_errors=preview.evaluation_errors,
    )


# =============================================================================
# SEGMENT CRUD
# =============================================================================


@router.get("/", response_model=ContactSegmentListResponse)
async def list_segments(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
):
    """List the current user's segments."""
    query = select(ContactSegment).where(ContactSegment.user_id == current_user.id)

    if is_active is not None:
        query = query.where(ContactSegment.is_active == is_active)
    if search:
        query = query.where(ContactSegment.name.ilike(f"%{search}%"))

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar()

    # Apply pagination
    offset = (page - 1) * page_size
    query = query.order_by(ContactSegment.name, ContactSegment.id).offset(offset).limit(page_size)

    result = await db.execute(query)
    segments = result.scalars().all()

    return ContactSegmentListResponse(
        items=[ContactSegmentResponse.model_validate(s) for s in segments],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/", response_model=ContactSegmentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(
    data: ContactSegmentCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Create a segment and materialize its membership when auto-update is on."""
    segment = ContactSegment(
        user_id=current_user.id,
        name=data.name,
        description=data.description,
        conditions=data.conditions.model_dump(mode="json") if data.conditions else None,
        is_active=data.is_active,
        is_auto_update=data.is_auto_update,
        contact_count=0,
    )
    db.add(segment)
    await db.commit()
    await db.refresh(segment)

    logger.info(f"Segment {segment.id} created by user {current_user.id}")

    materializer = SegmentMaterializer(db)
    await materializer.handle_segment_event(SegmentEvent.CREATED, segment)

    await db.refresh(segment)
    return segment


@router.get("/{segment_id}", response_model=ContactSegmentResponse)
async def get_segment(
    segment_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Get a specific segment."""
    return await _get_segment_or_404(segment_id, db, current_user.id)


@router.patch("/{segment_id}", response_model=ContactSegmentResponse)
async def update_segment(
    segment_id: int,
    data: ContactSegmentUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Update a segment. Changing conditions or is_auto_update re-materializes it."""
    segment = await _get_segment_or_404(segment_id, db, current_user.id)

    update_data = data.model_dump(exclude_unset=True)
    if "conditions" in update_data:
        update_data["conditions"] = (
            data.conditions.model_dump(mode="json") if data.conditions else None
        )
    update_data = {
        field: value
        for field, value in update_data.items()
        if not (field in NON_NULLABLE_UPDATES and value is None)
    }

    for field, value in update_data.items():
        setattr(segment, field, value)

    await db.commit()
    await db.refresh(segment)

    materializer = SegmentMaterializer(db)
    await materializer.handle_segment_event(SegmentEvent.UPDATED, segment, update_data)

    await db.refresh(segment)
    return segment


@router.delete("/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment(
    segment_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Delete a segment together with its membership rows."""
    await _get_segment_or_404(segment_id, db, current_user.id)

    materializer = SegmentMaterializer(db)
    await materializer.delete_segment(segment_id)

    logger.info(f"Segment {segment_id} deleted by user {current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# MEMBERSHIP
# =============================================================================


@router.get("/{segment_id}/contacts", response_model=List[ContactResponse])
async def list_segment_contacts(
    segment_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Materialized members of a segment as of its last refresh."""
    await _get_segment_or_404(segment_id, db, current_user.id)

    materializer = SegmentMaterializer(db)
    return await materializer.get_segment_contacts(segment_id)


@router.post("/{segment_id}/refresh", response_model=ContactSegmentResponse)
async def refresh_segment(
    segment_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Re-evaluate the segment now and replace its membership."""
    segment = await _get_segment_or_404(segment_id, db, current_user.id)

    materializer = SegmentMaterializer(db)
    await materializer.handle_segment_event(SegmentEvent.MANUAL_REFRESH, segment)

    await db.refresh(segment)
    return segment


@router.post("/{segment_id}/contacts/{contact_id}", response_model=SegmentMembershipChangeResponse)
async def add_contact_to_segment(
    segment_id: int,
    contact_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Manually add a contact. A later refresh re-applies the rules."""
    segment = await _get_segment_or_404(segment_id, db, current_user.id)

    materializer = SegmentMaterializer(db)
    added = await materializer.add_contact_to_segment(segment_id, contact_id)

    await db.refresh(segment)
    return SegmentMembershipChangeResponse(
        status="added" if added else "already_member",
        changed=added,
        contact_count=segment.contact_count or 0,
    )


@router.delete("/{segment_id}/contacts/{contact_id}", response_model=SegmentMembershipChangeResponse)
async def remove_contact_from_segment(
    segment_id: int,
    contact_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Manually remove a contact from a segment."""
    segment = await _get_segment_or_404(segment_id, db, current_user.id)

    materializer = SegmentMaterializer(db)
    removed = await materializer.remove_contact_from_segment(segment_id, contact_id)
    if not removed:
        raise NotFoundError("Segment membership", contact_id)

    await db.refresh(segment)
    return SegmentMembershipChangeResponse(
        status="removed",
        changed=True,
        contact_count=segment.contact_count or 0,
    )
