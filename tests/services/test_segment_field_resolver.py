"""Tests for contact field resolution."""

from datetime import datetime, timezone
from types import SimpleNamespace

from app.models.contact import Contact
from app.services.segments.field_resolver import (
    FIELD_DEFINITIONS,
    FieldType,
    available_fields,
    get_field_type,
    resolve_field,
)


def _contact(**values) -> Contact:
    return Contact(id=1, user_id=1, email="jane@acme.com", **values)


class TestKnownFields:
    def test_profile_fields(self):
        contact = _contact(first_name="Jane", company="Acme", job_title="CTO")

        assert resolve_field(contact, "firstName").value == "Jane"
        assert resolve_field(contact, "company").value == "Acme"
        assert resolve_field(contact, "jobTitle").value == "CTO"
        assert resolve_field(contact, "email").field_type == FieldType.TEXT

    def test_engagement_fields(self):
        contact = _contact(engagement_score=82, total_emails_opened=14, total_emails_clicked=3)

        score = resolve_field(contact, "engagementScore")
        assert score.value == 82
        assert score.field_type == FieldType.NUMBER
        assert resolve_field(contact, "totalEmailsOpened").value == 14
        assert resolve_field(contact, "totalEmailsClicked").value == 3

    def test_dates_and_flags(self):
        seen = datetime(2024, 5, 1, tzinfo=timezone.utc)
        contact = _contact(last_activity_at=seen, is_active=False)

        assert resolve_field(contact, "lastActivityAt").value == seen
        assert resolve_field(contact, "lastActivityAt").field_type == FieldType.DATE
        assert resolve_field(contact, "isActive").value is False

    def test_tags(self):
        contact = _contact(tags=["vip", "newsletter"])
        resolved = resolve_field(contact, "tags")
        assert resolved.value == ["vip", "newsletter"]
        assert resolved.field_type == FieldType.TAGS


class TestDefaults:
    """Unset known fields resolve to a type-appropriate default."""

    def test_text_defaults_to_empty_string(self):
        resolved = resolve_field(_contact(), "company")
        assert resolved.value == ""
        assert resolved.is_present is False

    def test_number_defaults_to_zero(self):
        assert resolve_field(_contact(), "engagementScore").value == 0

    def test_tags_default_to_empty_list(self):
        assert resolve_field(_contact(), "tags").value == []

    def test_date_defaults_to_none(self):
        assert resolve_field(_contact(), "unsubscribedAt").value is None

    def test_boolean_defaults_to_false(self):
        assert resolve_field(SimpleNamespace(), "isActive").value is False

    def test_scalar_tags_wrapped_in_list(self):
        assert resolve_field({"tags": "vip"}, "tags").value == ["vip"]


class TestCustomFields:
    def test_unknown_name_reads_custom_fields(self):
        contact = _contact(custom_fields={"plan": "pro"})
        resolved = resolve_field(contact, "plan")

        assert resolved.value == "pro"
        assert resolved.field_type == FieldType.CUSTOM
        assert resolved.is_present is True

    def test_missing_custom_field_is_absent(self):
        resolved = resolve_field(_contact(custom_fields={"plan": "pro"}), "industry")
        assert resolved.value is None
        assert resolved.is_present is False

    def test_custom_fields_not_a_mapping(self):
        resolved = resolve_field(_contact(custom_fields=["plan"]), "plan")
        assert resolved.is_present is False

    def test_snake_case_names_are_custom(self):
        contact = _contact(engagement_score=90)
        assert resolve_field(contact, "engagement_score").field_type == FieldType.CUSTOM
        assert resolve_field(contact, "engagement_score").value is None


class TestMappings:
    def test_attribute_keyed_dict(self):
        contact = {"id": 7, "engagement_score": 55, "custom_fields": {"tier": "gold"}}

        assert resolve_field(contact, "engagementScore").value == 55
        assert resolve_field(contact, "tier").value == "gold"


class TestFieldCatalogue:
    def test_available_fields_lists_every_definition(self):
        names = [field["name"] for field in available_fields()]
        assert names == list(FIELD_DEFINITIONS)

    def test_get_field_type(self):
        assert get_field_type("tags") == FieldType.TAGS
        assert get_field_type("favouriteColour") == FieldType.CUSTOM
