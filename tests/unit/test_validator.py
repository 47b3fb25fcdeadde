"""
Unit tests for JSON Schema payload validation.

Tests cover:
- JSON pointer construction
- Schema compilation errors
- Issue reporting for payload violations
- Format enforcement
"""

from collections import deque
from typing import Any

import pytest

from actionpacks.errors import SchemaCompileError
from actionpacks.policy.validator import SchemaValidator, json_pointer
from actionpacks.schema import IssueKind


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator()


class TestJsonPointer:
    def test_root(self) -> None:
        assert json_pointer(deque()) == "/"

    def test_nested(self) -> None:
        assert json_pointer(deque(["labels", 0])) == "/labels/0"

    def test_escaping(self) -> None:
        assert json_pointer(["a/b", "c~d"]) == "/a~1b/c~0d"


class TestCompile:
    """Tests for SchemaValidator.compile."""

    def test_valid_schema(self, validator: SchemaValidator, issue_schema: dict[str, Any]) -> None:
        compiled = validator.compile(issue_schema)
        assert compiled.is_valid({"title": "Printer on fire"})

    def test_malformed_schema_raises(self, validator: SchemaValidator) -> None:
        with pytest.raises(SchemaCompileError) as exc_info:
            validator.compile({"type": "not-a-type"}, tool="create_issue", pack="p@1.0.0")
        assert exc_info.value.tool == "create_issue"
        assert exc_info.value.pack == "p@1.0.0"

    def test_non_object_schema_raises(self, validator: SchemaValidator) -> None:
        with pytest.raises(SchemaCompileError):
            validator.compile(["not", "a", "schema"])  # type: ignore[arg-type]

    def test_empty_schema_accepts_anything(self, validator: SchemaValidator) -> None:
        assert validator.validate({}, {"anything": [1, 2, 3]}) == []


class TestValidate:
    """Tests for SchemaValidator.validate."""

    def test_valid_payload(self, validator: SchemaValidator, issue_schema: dict[str, Any]) -> None:
        assert validator.validate(issue_schema, {"title": "Broken build", "labels": ["ci"]}) == []

    def test_missing_required(self, validator: SchemaValidator, issue_schema: dict[str, Any]) -> None:
        issues = validator.validate(issue_schema, {"body": "no title"})
        assert len(issues) == 1
        assert issues[0].kind == IssueKind.SCHEMA
        assert issues[0].pointer == "/"
        assert "title" in issues[0].message

    def test_wrong_type_has_pointer(self, validator: SchemaValidator, issue_schema: dict[str, Any]) -> None:
        issues = validator.validate(issue_schema, {"title": "x", "labels": ["ok", 7]})
        assert [issue.pointer for issue in issues] == ["/labels/1"]

    def test_all_violations_reported(
        self, validator: SchemaValidator, issue_schema: dict[str, Any]
    ) -> None:
        issues = validator.validate(issue_schema, {"title": "", "body": 3})
        pointers = {issue.pointer for issue in issues}
        assert pointers == {"/title", "/body"}

    def test_format_enforced(self, validator: SchemaValidator, issue_schema: dict[str, Any]) -> None:
        issues = validator.validate(issue_schema, {"title": "x", "assignee_email": "not-an-email"})
        assert len(issues) == 1
        assert issues[0].pointer == "/assignee_email"

    def test_format_accepts_valid_value(
        self, validator: SchemaValidator, issue_schema: dict[str, Any]
    ) -> None:
        assert validator.validate(issue_schema, {"title": "x", "assignee_email": "ops@example.com"}) == []

    def test_draft_from_schema_keyword(self, validator: SchemaValidator) -> None:
        schema = {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "properties": {"n": {"type": "integer"}},
        }
        issues = validator.validate(schema, {"n": "one"})
        assert [issue.pointer for issue in issues] == ["/n"]

    def test_unresolvable_ref_raises(self, validator: SchemaValidator) -> None:
        schema = {"type": "object", "properties": {"a": {"$ref": "#/$defs/missing"}}}
        with pytest.raises(SchemaCompileError):
            validator.validate(schema, {"a": 1})
