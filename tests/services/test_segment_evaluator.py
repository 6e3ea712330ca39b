"""
Tests for condition tree parsing and evaluation.

Contacts are attribute-keyed dicts; the evaluator reads them the same way
it reads ORM rows.
"""

import pytest

from app.services.segments.conditions import (
    ConditionGroup,
    GroupOperator,
    Rule,
    conditions_to_dict,
    parse_conditions,
)
from app.services.segments.evaluator import (
    RuleEvaluationError,
    evaluate_node,
    evaluate_rule,
    evaluate_segment,
)


@pytest.fixture
def engaged_contact():
    return {
        "id": 1,
        "email": "ada@acme.com",
        "job_title": "CTO",
        "engagement_score": 80,
        "total_emails_opened": 12,
        "tags": ["vip", "newsletter"],
        "custom_fields": {"plan": "pro"},
    }


@pytest.fixture
def quiet_contact():
    return {
        "id": 2,
        "email": "bob@globex.com",
        "job_title": "Engineer",
        "engagement_score": 80,
        "total_emails_opened": 5,
        "tags": [],
    }


ENGAGED = {
    "operator": "AND",
    "rules": [
        {"field": "engagementScore", "operator": "greater_equal", "value": 75},
        {"field": "totalEmailsOpened", "operator": "greater_equal", "value": 10},
    ],
}


# ============================================
# Parsing
# ============================================


class TestParseConditions:
    def test_none_and_empty_mapping_mean_unconfigured(self):
        assert parse_conditions(None) is None
        assert parse_conditions({}) is None

    def test_group_with_nested_group(self):
        root = parse_conditions({
            "operator": "or",
            "rules": [
                {"field": "company", "operator": "contains", "value": "acme"},
                {"operator": "AND", "rules": []},
            ],
        })
        assert root.operator == GroupOperator.OR
        assert isinstance(root.rules[0], Rule)
        assert isinstance(root.rules[1], ConditionGroup)
        assert root.rules[1].is_empty

    def test_bare_rule_is_wrapped(self):
        root = parse_conditions({"field": "tags", "operator": "tag_contains", "value": "vip"})
        assert root.operator == GroupOperator.AND
        assert root.rules == (Rule("tags", "tag_contains", "vip"),)

    def test_missing_group_operator_defaults_to_and(self):
        assert parse_conditions({"rules": []}).operator == GroupOperator.AND

    def test_malformed_leaf(self):
        root = parse_conditions({"operator": "AND", "rules": ["nonsense"]})
        assert root.rules == (Rule(field="", operator=""),)

    def test_serializes_back(self):
        assert conditions_to_dict(parse_conditions(ENGAGED)) == ENGAGED


# ============================================
# Evaluation
# ============================================


class TestVacuousGroups:
    def test_empty_root_matches_everyone(self, engaged_contact, quiet_contact):
        empty_and = {"operator": "AND", "rules": []}
        empty_or = {"operator": "OR", "rules": []}

        assert evaluate_segment(empty_and, engaged_contact) is True
        assert evaluate_segment(empty_or, quiet_contact) is True
        assert evaluate_segment(None, quiet_contact) is True

    def test_nested_empty_or_is_false(self, engaged_contact):
        conditions = {"operator": "AND", "rules": [{"operator": "OR", "rules": []}]}
        assert evaluate_segment(conditions, engaged_contact) is False

    def test_nested_empty_and_is_true(self, engaged_contact):
        conditions = {"operator": "OR", "rules": [{"operator": "AND", "rules": []}]}
        assert evaluate_segment(conditions, engaged_contact) is True


class TestScenarios:
    def test_engagement_segment(self, engaged_contact, quiet_contact):
        assert evaluate_segment(ENGAGED, engaged_contact) is True
        assert evaluate_segment(ENGAGED, quiet_contact) is False

    def test_vip_tag(self, engaged_contact, quiet_contact):
        conditions = {
            "operator": "AND",
            "rules": [{"field": "tags", "operator": "tag_contains", "value": "VIP"}],
        }
        assert evaluate_segment(conditions, engaged_contact) is True
        assert evaluate_segment(conditions, quiet_contact) is False

    def test_comma_separated_operand_is_literal(self, engaged_contact):
        conditions = {
            "operator": "AND",
            "rules": [{"field": "jobTitle", "operator": "contains", "value": "CEO,CTO"}],
        }
        assert evaluate_segment(conditions, engaged_contact) is False

    def test_or_of_groups(self, engaged_contact, quiet_contact):
        conditions = {
            "operator": "OR",
            "rules": [
                ENGAGED,
                {"field": "email", "operator": "ends_with", "value": "@globex.com"},
            ],
        }
        assert evaluate_segment(conditions, engaged_contact) is True
        assert evaluate_segment(conditions, quiet_contact) is True

    def test_custom_field_rule(self, engaged_contact, quiet_contact):
        conditions = {"rules": [{"field": "plan", "operator": "equals", "value": "pro"}]}
        assert evaluate_segment(conditions, engaged_contact) is True
        assert evaluate_segment(conditions, quiet_contact) is False

    def test_accepts_parsed_tree(self, engaged_contact):
        assert evaluate_segment(parse_conditions(ENGAGED), engaged_contact) is True


class TestFailClosed:
    def test_unknown_rule_operator(self, engaged_contact):
        conditions = {"operator": "AND", "rules": [{"field": "email", "operator": "matches_regex", "value": ".*"}]}
        assert evaluate_segment(conditions, engaged_contact) is False

    def test_unknown_group_operator(self, engaged_contact):
        group = parse_conditions({
            "operator": "XOR",
            "rules": [{"field": "engagementScore", "operator": "greater_than", "value": 0}],
        })
        assert evaluate_node(group, engaged_contact) is False

    def test_unknown_operator_inside_or_does_not_block_siblings(self, engaged_contact):
        conditions = {
            "operator": "OR",
            "rules": [
                {"field": "email", "operator": "sounds_like", "value": "ada"},
                {"field": "tags", "operator": "tag_contains", "value": "vip"},
            ],
        }
        assert evaluate_segment(conditions, engaged_contact) is True


class TestErrorChannel:
    def test_invalid_operand_reported(self, engaged_contact):
        errors = []
        rule = Rule("location", "in_list", "Austin,Dallas")

        assert evaluate_rule(rule, engaged_contact, errors) is False
        assert len(errors) == 1
        assert isinstance(errors[0], RuleEvaluationError)
        assert errors[0].contact_id == 1
        assert errors[0].rule is rule

    def test_error_without_collector_is_swallowed(self, engaged_contact):
        assert evaluate_rule(Rule("location", "not_in_list", 5), engaged_contact) is False

    def test_failed_rule_counts_as_non_match_in_or(self, engaged_contact):
        errors = []
        conditions = {
            "operator": "OR",
            "rules": [
                {"field": "location", "operator": "in_list", "value": "Austin"},
                {"field": "engagementScore", "operator": "greater_than", "value": 50},
            ],
        }
        assert evaluate_segment(conditions, engaged_contact, errors) is True
        assert len(errors) == 1
