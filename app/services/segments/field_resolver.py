"""
Field resolution for segment rules.

Maps rule field names (as sent by the rule builder) to contact attributes.
Names outside the known set are looked up in the contact's custom_fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    TAGS = "tags"
    BOOLEAN = "boolean"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FieldDefinition:
    """A contact field that rules can reference."""

    name: str
    display_name: str
    field_type: FieldType
    attribute: str


@dataclass(frozen=True)
class ResolvedField:
    """Value of a field on one contact, with its semantic type."""

    value: Any
    field_type: FieldType
    is_present: bool = True


FIELD_DEFINITIONS: Dict[str, FieldDefinition] = {
    # Identity and profile
    "email": FieldDefinition("email", "Email", FieldType.TEXT, "email"),
    "firstName": FieldDefinition("firstName", "First Name", FieldType.TEXT, "first_name"),
    "lastName": FieldDefinition("lastName", "Last Name", FieldType.TEXT, "last_name"),
    "company": FieldDefinition("company", "Company", FieldType.TEXT, "company"),
    "jobTitle": FieldDefinition("jobTitle", "Job Title", FieldType.TEXT, "job_title"),
    "location": FieldDefinition("location", "Location", FieldType.TEXT, "location"),
    "website": FieldDefinition("website", "Website", FieldType.TEXT, "website"),
    "phone": FieldDefinition("phone", "Phone", FieldType.TEXT, "phone"),
    # Engagement
    "engagementScore": FieldDefinition("engagementScore", "Engagement Score", FieldType.NUMBER, "engagement_score"),
    "totalEmailsOpened": FieldDefinition("totalEmailsOpened", "Emails Opened", FieldType.NUMBER, "total_emails_opened"),
    "totalEmailsClicked": FieldDefinition(
        "totalEmailsClicked", "Emails Clicked", FieldType.NUMBER, "total_emails_clicked"
    ),
    # Lifecycle
    "createdAt": FieldDefinition("createdAt", "Sign-up Date", FieldType.DATE, "created_at"),
    "lastActivityAt": FieldDefinition("lastActivityAt", "Last Activity", FieldType.DATE, "last_activity_at"),
    "subscriptionDate": FieldDefinition(
        "subscriptionDate", "Subscription Date", FieldType.DATE, "subscription_date"
    ),
    "unsubscribedAt": FieldDefinition("unsubscribedAt", "Unsubscribed At", FieldType.DATE, "unsubscribed_at"),
    "isActive": FieldDefinition("isActive", "Active", FieldType.BOOLEAN, "is_active"),
    # Tags
    "tags": FieldDefinition("tags", "Tags", FieldType.TAGS, "tags"),
}

# Value used when a known field is unset on the contact
_DEFAULTS = {
    FieldType.TEXT: lambda: "",
    FieldType.NUMBER: lambda: 0,
    FieldType.DATE: lambda: None,
    FieldType.TAGS: lambda: [],
    FieldType.BOOLEAN: lambda: False,
}


def _read_attribute(contact: Any, attribute: str) -> Any:
    if isinstance(contact, Mapping):
        return contact.get(attribute)
    return getattr(contact, attribute, None)


def _lookup_custom_field(contact: Any, key: str) -> ResolvedField:
    custom_fields = _read_attribute(contact, "custom_fields")
    if not isinstance(custom_fields, Mapping) or key not in custom_fields:
        return ResolvedField(value=None, field_type=FieldType.CUSTOM, is_present=False)
    return ResolvedField(value=custom_fields[key], field_type=FieldType.CUSTOM)


def resolve_field(contact: Any, field_name: str) -> ResolvedField:
    """
    Resolve field_name on a contact (ORM object or attribute-keyed mapping).

    Known fields fall back to a type-appropriate default when unset;
    unknown names are custom-field lookups that may be absent.
    """
    definition = FIELD_DEFINITIONS.get(field_name)
    if definition is None:
        return _lookup_custom_field(contact, field_name)

    value = _read_attribute(contact, definition.attribute)
    if value is None:
        return ResolvedField(
            value=_DEFAULTS[definition.field_type](),
            field_type=definition.field_type,
            is_present=False,
        )
    if definition.field_type == FieldType.TAGS and not isinstance(value, list):
        value = list(value) if isinstance(value, (tuple, set)) else [value]
    return ResolvedField(value=value, field_type=definition.field_type)


def get_field_type(field_name: str) -> FieldType:
    definition = FIELD_DEFINITIONS.get(field_name)
    return definition.field_type if definition else FieldType.CUSTOM


def available_fields() -> List[Dict[str, Any]]:
    """Known fields for the rule builder."""
    return [
        {
            "name": definition.name,
            "display_name": definition.display_name,
            "field_type": definition.field_type.value,
        }
        for definition in FIELD_DEFINITIONS.values()
    ]
