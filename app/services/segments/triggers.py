"""
Refresh trigger policy.

Decides what has to happen to a segment's membership after an event.
Refreshes run synchronously at these event points; the periodic job in
app.tasks.segment_refresh_scheduler is an optional extra.
"""

from enum import Enum
from typing import Any, Mapping, Optional

# Update payload keys that change which contacts match
REFRESH_FIELDS = frozenset({"conditions", "is_auto_update"})


class SegmentEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    MANUAL_REFRESH = "manual_refresh"
    CONTACT_ADDED = "contact_added"
    CONTACT_REMOVED = "contact_removed"


class RefreshAction(str, Enum):
    FULL_REFRESH = "full_refresh"
    RECOUNT = "recount"
    NONE = "none"


def should_refresh_on_create(segment: Any) -> bool:
    return bool(getattr(segment, "is_auto_update", False))


def should_refresh_on_update(changes: Optional[Mapping[str, Any]]) -> bool:
    """True when the update payload touches conditions or is_auto_update."""
    if not changes:
        return False
    return any(key in REFRESH_FIELDS for key in changes)


def decide_refresh(
    event: SegmentEvent,
    segment: Any = None,
    changes: Optional[Mapping[str, Any]] = None,
) -> RefreshAction:
    if event == SegmentEvent.CREATED:
        return RefreshAction.FULL_REFRESH if should_refresh_on_create(segment) else RefreshAction.NONE
    if event == SegmentEvent.UPDATED:
        return RefreshAction.FULL_REFRESH if should_refresh_on_update(changes) else RefreshAction.NONE
    if event == SegmentEvent.MANUAL_REFRESH:
        return RefreshAction.FULL_REFRESH
    if event in (SegmentEvent.CONTACT_ADDED, SegmentEvent.CONTACT_REMOVED):
        return RefreshAction.RECOUNT
    return RefreshAction.NONE
