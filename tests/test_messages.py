"""
Tests for tally.messages module.
"""

import pytest

from tally import (
    UNDEFINED,
    array_schema,
    collect_issues,
    format_report,
    number_schema,
    object_schema,
    string_schema,
)
from tally.messages import format_path, stringify, type_of


class TestTypeOf:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "null"),
            (UNDEFINED, "undefined"),
            (True, "boolean"),
            (1, "number"),
            (1.5, "number"),
            ("x", "string"),
            ({}, "object"),
            ([], "array"),
            ((1,), "array"),
        ],
    )
    def test_names(self, value, expected):
        assert type_of(value) == expected

    def test_custom_class(self):
        class Point:
            pass

        assert type_of(Point()) == "Point"


class TestStringify:
    def test_scalars(self):
        assert stringify("a") == '"a"'
        assert stringify(None) == "null"
        assert stringify(UNDEFINED) == "undefined"
        assert stringify(False) == "false"
        assert stringify(3) == "3"

    def test_containers(self):
        assert stringify({"a": [1]}) == '{"a": [1]}'


class TestFormatPath:
    def test_root(self):
        assert format_path(()) == "<root>"

    def test_nested(self):
        assert format_path(("user", "tags", 0)) == "user.tags[0]"
        assert format_path((2, "name")) == "[2].name"


class TestReportFormatting:
    def test_success(self):
        report = string_schema().build_sync().safe_parse("a")
        assert format_report(report) == "OK"
        assert collect_issues(report) == []

    def test_root_failure(self):
        report = string_schema().build_sync().safe_parse(1)
        assert format_report(report) == (
            "<root>: Expected type string but received type number"
        )

    def test_nested_paths(self):
        schema = object_schema(
            {"user": object_schema({"tags": array_schema(string_schema())})}
        )
        report = schema.build_sync().safe_parse({"user": {"tags": ["a", 1]}})
        assert collect_issues(report) == [
            (("user", "tags", 1), "Expected type string but received type number")
        ]
        assert format_report(report) == (
            "user.tags[1]: Expected type string but received type number"
        )

    def test_one_line_per_failed_check(self):
        schema = object_schema(
            {"name": string_schema().min_length(2), "age": number_schema().max(3)}
        )
        report = schema.build_sync().safe_parse({"name": "a", "age": 9})
        assert format_report(report).splitlines() == [
            "name: Expected length >= 2 but received length 1",
            "age: Expected number <= 3 but received 9",
        ]

    def test_error_messages_are_node_local(self):
        schema = object_schema({"name": string_schema()})
        report = schema.build_sync().safe_parse({"name": 1})
        assert report.meta.error_messages() == []
        assert report.meta.child_reports[0].meta.error_messages() == [
            "Expected type string but received type number"
        ]
