"""
Pytest configuration and fixtures for ActionPacks tests.

This module provides shared fixtures used across unit and integration tests:
sample schemas, tool descriptors, rules and on-disk packs.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import pytest
import yaml

from actionpacks.schema import ConfirmSpec, PolicyRule, RateLimit, ToolDescriptor


PACK_ID = "issues-basic@1.0.0"

ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Create an issue in the tracker",
    "properties": {
        "title": {"type": "string", "minLength": 1},
        "body": {"type": "string"},
        "labels": {"type": "array", "items": {"type": "string"}},
        "assignee_email": {"type": "string", "format": "email"},
        "api_token": {"type": "string"},
    },
    "required": ["title"],
}

LIST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "state": {"type": "string", "enum": ["open", "closed"]},
        "limit": {"type": "integer", "minimum": 1},
    },
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def issue_schema() -> dict[str, Any]:
    """Return a copy of the create_issue input schema."""
    return json.loads(json.dumps(ISSUE_SCHEMA))


@pytest.fixture
def create_issue_tool(issue_schema: dict[str, Any]) -> ToolDescriptor:
    """Tool descriptor for issues-basic@1.0.0:create_issue."""
    return ToolDescriptor(
        pack_id=PACK_ID,
        name="create_issue",
        input_schema=issue_schema,
        side_effects=frozenset({"create"}),
    )


@pytest.fixture
def create_issue_rule() -> PolicyRule:
    """Rule requiring confirmation, with a three-field allowlist and 20 calls/60s."""
    return PolicyRule(
        pack=PACK_ID,
        tool="create_issue",
        confirm=ConfirmSpec(required=True, message="Proceed with create_issue?"),
        allowlist=["title", "body", "labels"],
        rate_limit=RateLimit(max_calls=20, window_sec=60),
    )


@pytest.fixture
def make_pack(temp_dir: Path) -> Callable[..., Path]:
    """
    Factory that writes a pack directory.

    Usage:
        pack_dir = make_pack(manifest={...}, schemas={"schemas/x.json": {...}})
    """

    def _make(
        manifest: dict[str, Any],
        schemas: dict[str, Any] | None = None,
        dirname: str | None = None,
    ) -> Path:
        pack_dir = temp_dir / "packs" / (dirname or manifest.get("name", "pack"))
        pack_dir.mkdir(parents=True, exist_ok=True)
        (pack_dir / "manifest.yaml").write_text(yaml.safe_dump(manifest, sort_keys=False))
        for rel, schema in (schemas or {}).items():
            path = pack_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(schema, str):
                path.write_text(schema)
            else:
                path.write_text(json.dumps(schema, indent=2))
        return pack_dir

    return _make


@pytest.fixture
def sample_pack(make_pack: Callable[..., Path]) -> Path:
    """
    The issues-basic@1.0.0 pack with three tools:

    - create_issue: schema file, side effect "create"
    - list_issues: schema file, no side effects
    - notify: inline schema, camelCase keys, explicit allowlist, side effect "Send"
    """
    manifest = {
        "name": "issues-basic",
        "version": "1.0.0",
        "description": "Basic issue tracker tools",
        "tools": [
            {
                "name": "create_issue",
                "description": "Create an issue",
                "schema": "schemas/create_issue.json",
                "side_effects": ["create"],
            },
            {
                "name": "list_issues",
                "schema": "schemas/list_issues.json",
            },
            {
                "name": "notify",
                "sideEffects": ["Send"],
                "allowlistFields": ["channel", "text"],
                "schema": {
                    "type": "object",
                    "properties": {
                        "channel": {"type": "string"},
                        "text": {"type": "string"},
                        "client_secret": {"type": "string"},
                    },
                },
            },
        ],
    }
    return make_pack(
        manifest=manifest,
        schemas={
            "schemas/create_issue.json": ISSUE_SCHEMA,
            "schemas/list_issues.json": LIST_SCHEMA,
        },
    )
