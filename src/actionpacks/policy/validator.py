"""
JSON Schema validation for tool payloads.

Wraps the ``jsonschema`` library behind a small contract:
    - ``compile(schema)`` checks the schema document and returns a validator,
      raising SchemaCompileError if the document itself is malformed
    - ``validate(schema, payload)`` returns every payload violation as an
      Issue with a JSON pointer; it never raises for well-formed JSON

The validator class follows the schema's ``$schema`` keyword (Draft 2020-12
when absent) and always carries a FormatChecker, so ``format`` is enforced
rather than treated as an annotation.
"""

from typing import Any

from jsonschema import FormatChecker
from jsonschema.exceptions import SchemaError
from jsonschema.protocols import Validator
from jsonschema.validators import Draft202012Validator, validator_for
from referencing.exceptions import Unresolvable

from actionpacks.errors import SchemaCompileError
from actionpacks.schema import Issue


def json_pointer(path: Any) -> str:
    """
    Build a JSON pointer from a jsonschema error path.

    Examples:
        deque([]) -> "/"
        deque(["labels", 0]) -> "/labels/0"
        deque(["a/b"]) -> "/a~1b"
    """
    parts = [str(p).replace("~", "~0").replace("/", "~1") for p in path]
    if not parts:
        return "/"
    return "/" + "/".join(parts)


class SchemaValidator:
    """
    Validates payloads against JSON Schema documents.

    Usage:
        validator = SchemaValidator()
        issues = validator.validate(tool.input_schema, payload)
    """

    def __init__(self, format_checker: FormatChecker | None = None) -> None:
        self.format_checker = format_checker or FormatChecker()

    def compile(self, schema: dict[str, Any], tool: str = "", pack: str = "") -> Validator:
        """
        Check a schema document and build a validator for it.

        Args:
            schema: The JSON Schema document
            tool: Tool name, for error context
            pack: Pack identifier, for error context

        Returns:
            A jsonschema validator instance

        Raises:
            SchemaCompileError: If the schema is not a valid JSON Schema
        """
        if not isinstance(schema, dict):
            raise SchemaCompileError(
                tool=tool,
                pack=pack,
                schema_error=f"schema must be an object, got {type(schema).__name__}",
            )

        cls = validator_for(schema, default=Draft202012Validator)
        try:
            cls.check_schema(schema)
        except SchemaError as e:
            raise SchemaCompileError(tool=tool, pack=pack, schema_error=e.message) from e

        return cls(schema, format_checker=self.format_checker)

    def iter_issues(
        self,
        validator: Validator,
        payload: Any,
        tool: str = "",
        pack: str = "",
    ) -> list[Issue]:
        """
        Collect all violations from an already compiled validator.

        Raises:
            SchemaCompileError: If a $ref in the schema cannot be resolved
        """
        try:
            return [
                Issue.schema_violation(json_pointer(error.absolute_path), error.message)
                for error in validator.iter_errors(payload)
            ]
        except Unresolvable as e:
            raise SchemaCompileError(
                tool=tool,
                pack=pack,
                schema_error=f"unresolvable reference: {e}",
            ) from e

    def validate(self, schema: dict[str, Any], payload: Any) -> list[Issue]:
        """
        Validate a payload and return every violation.

        Args:
            schema: The JSON Schema document
            payload: The decoded JSON payload

        Returns:
            Issues in validator traversal order (empty if valid)

        Raises:
            SchemaCompileError: If the schema itself is malformed
        """
        validator = self.compile(schema)
        return self.iter_issues(validator, payload)
