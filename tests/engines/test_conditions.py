"""
Tests for the condition evaluator (ticketflow_engines.conditions).

Tests cover:
- each operator's positive and negative cases
- strict typing: no coercion between strings, numbers and booleans
- dot-path resolution, missing fields and exact dotted keys
- unsupported operators and conjunctions
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ticketflow_engines.conditions import (
    MISSING,
    describe,
    evaluate,
    evaluate_condition,
    first_failing,
    is_supported_operator,
    resolve_path,
    strict_equals,
)

from tests.builders import cond


class TestEquals:
    def test_matching_string(self):
        assert evaluate(cond("Priority", "equals", "Low"), {"Priority": "Low"})

    def test_is_case_sensitive(self):
        assert not evaluate(cond("Priority", "equals", "Low"), {"Priority": "low"})

    def test_no_string_number_coercion(self):
        assert not evaluate(cond("impact", "equals", "1"), {"impact": 1})
        assert not evaluate(cond("impact", "equals", 1), {"impact": "1"})

    def test_bool_is_not_int(self):
        assert not evaluate(cond("flag", "equals", 1), {"flag": True})
        assert evaluate(cond("flag", "equals", True), {"flag": True})

    def test_int_equals_float(self):
        assert evaluate(cond("score", "equals", 3), {"score": 3.0})

    def test_missing_field_equals_none(self):
        assert evaluate(cond("assignee", "equals", None), {})
        assert not evaluate(cond("assignee", "equals", "bob"), {})

    def test_not_equals_on_missing_field(self):
        assert evaluate(cond("assignee", "not_equals", "bob"), {})

    def test_list_equals_tuple_elementwise(self):
        assert strict_equals([1, "a"], (1, "a"))
        assert not strict_equals([1, "a"], (1, "a", 2))


class TestOrdering:
    @pytest.mark.parametrize(
        "actual,expected,result",
        [
            (5, 3, True),
            (3, 5, False),
            (Decimal("2.5"), 2, True),
            ("5", 3, False),
            (None, 3, False),
            (True, 0, False),
        ],
    )
    def test_greater_than(self, actual, expected, result):
        assert evaluate(cond("n", "greater_than", expected), {"n": actual}) is result

    def test_less_than_dates(self):
        assert evaluate(
            cond("due", "less_than", date(2024, 6, 1)), {"due": date(2024, 1, 1)},
        )

    def test_date_and_datetime_do_not_compare(self):
        assert not evaluate(
            cond("due", "less_than", datetime(2024, 6, 1)), {"due": date(2024, 1, 1)},
        )

    def test_naive_vs_aware_datetime_is_false_not_error(self):
        naive = datetime(2024, 1, 1)
        aware = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert evaluate(cond("at", "less_than", aware), {"at": naive}) is False


class TestContainsAndIn:
    def test_substring(self):
        assert evaluate(cond("title", "contains", "VPN"), {"title": "VPN is down"})
        assert not evaluate(cond("title", "contains", "vpn"), {"title": "VPN is down"})

    def test_list_membership(self):
        assert evaluate(cond("tags", "contains", "urgent"), {"tags": ["urgent", "network"]})
        assert not evaluate(cond("tags", "contains", 1), {"tags": ["1"]})

    def test_contains_on_scalar_is_false(self):
        assert not evaluate(cond("count", "contains", 1), {"count": 10})

    def test_in(self):
        assert evaluate(cond("Priority", "in", ["High", "Critical"]), {"Priority": "High"})
        assert not evaluate(cond("Priority", "in", ["High"]), {"Priority": "Low"})

    def test_in_requires_a_collection(self):
        assert not evaluate(cond("Priority", "in", "High"), {"Priority": "High"})


class TestPaths:
    def test_nested_path(self):
        fields = {"caller": {"department": {"name": "IT"}}}
        assert resolve_path(fields, "caller.department.name") == "IT"
        assert evaluate(cond("caller.department.name", "equals", "IT"), fields)

    def test_path_through_scalar_is_missing(self):
        assert resolve_path({"caller": "bob"}, "caller.name") is MISSING

    def test_exact_dotted_key_wins(self):
        assert resolve_path({"a.b": 1, "a": {"b": 2}}, "a.b") == 1

    def test_non_mapping_fields(self):
        assert resolve_path(None, "x") is MISSING
        assert evaluate(cond("x", "equals", None), None)


class TestOperatorsAndConjunctions:
    def test_unknown_operator_is_false(self):
        assert not is_supported_operator("regex")
        assert not evaluate(cond("title", "regex", ".*"), {"title": "x"})
        assert not evaluate(cond("title", "regex", ".*"), {})

    def test_every_declared_operator_is_supported(self):
        for op in ("equals", "not_equals", "greater_than", "less_than", "contains", "in"):
            assert is_supported_operator(op)

    def test_empty_conjunction_is_true(self):
        assert evaluate([], {"anything": 1})

    def test_conjunction_is_and(self):
        conditions = [cond("a", "equals", 1), cond("b", "equals", 2)]
        assert evaluate(conditions, {"a": 1, "b": 2})
        assert not evaluate(conditions, {"a": 1, "b": 3})

    def test_first_failing_reports_the_culprit(self):
        conditions = [cond("a", "equals", 1), cond("b", "equals", 2)]
        failing = first_failing(conditions, {"a": 1, "b": 3})
        assert failing is conditions[1]
        assert describe(failing) == "b equals 2"

    def test_single_condition_entry_point(self):
        assert evaluate_condition(cond("a", "not_equals", 1), {"a": 2})
