"""
Pack manifest schema definitions.

This module defines the Pydantic models for pack manifests:
- ToolSpec: One tool declared by a pack
- PackManifest: Complete pack manifest (manifest.yaml)

Design Decisions:
    - All models use strict validation (extra="forbid")
    - PackManifest is frozen (immutable after creation)
    - Pack names follow lowercase alphanumeric with hyphens/underscores
    - A pack is identified as <name>@<version>; tools as <pack-id>:<tool>
    - Tool keys accept both snake_case (side_effects) and camelCase
      (sideEffects, allowlistFields) spellings
"""

import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from actionpacks.errors import ToolSelectorError


# =============================================================================
# Tool Spec Model
# =============================================================================


class ToolSpec(BaseModel):
    """
    A tool as declared in a pack manifest.

    Attributes:
        name: Tool name, unique within the pack
        description: Human-readable description
        schema_ref: Path to the input schema (relative to the pack root) or an
            inline schema mapping (manifest key: schema)
        side_effects: Side-effect tags such as "create" or "send"
        allowlist: Explicit allowlist of payload fields, if the author set one
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., description="Tool name", min_length=1, max_length=128)
    description: str = Field(default="", description="Human-readable description")
    schema_ref: str | dict[str, Any] | None = Field(
        default=None,
        alias="schema",
        description="Schema path relative to pack root, or inline schema",
    )
    side_effects: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("side_effects", "sideEffects"),
        description="Side-effect tags",
    )
    allowlist: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("allowlist", "allowlistFields"),
        description="Explicit payload field allowlist",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Tool names are identifiers: letters, digits, '_', '-' and '.'."""
        if not re.match(r"^[A-Za-z][A-Za-z0-9_.-]*$", v):
            msg = f"Invalid tool name: {v}"
            raise ValueError(msg)
        return v


# =============================================================================
# Pack Manifest Model
# =============================================================================


class PackManifest(BaseModel):
    """
    Complete manifest for an ActionPacks pack.

    Loaded from manifest.yaml in the pack directory.

    Attributes:
        name: Pack name (lowercase alphanumeric with hyphens/underscores)
        version: Semantic version string (e.g., "1.0.0")
        description: Human-readable description of the pack
        author: Pack author name or organization
        tags: List of tags for categorization
        tools: Tools declared by the pack
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Pack name", min_length=1, max_length=64)
    version: str = Field(..., description="Semantic version string")
    description: str = Field(default="", description="Human-readable description")
    author: str = Field(default="", description="Pack author name or organization")
    tags: list[str] = Field(default_factory=list, description="Tags for categorization")
    tools: list[ToolSpec] = Field(default_factory=list, description="Declared tools")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate pack name format (lowercase alphanumeric with hyphens/underscores)."""
        if not re.match(r"^[a-z][a-z0-9_-]*$", v):
            msg = (
                f"Invalid pack name: {v}. "
                "Must start with lowercase letter, contain only lowercase letters, "
                "numbers, hyphens, and underscores."
            )
            raise ValueError(msg)
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate semantic version format."""
        if not re.match(r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$", v):
            msg = f"Invalid version format: {v}. Expected semver (e.g., '1.0.0')"
            raise ValueError(msg)
        return v

    @field_validator("tools")
    @classmethod
    def validate_unique_tools(cls, v: list[ToolSpec]) -> list[ToolSpec]:
        """Tool names must be unique within a pack."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for spec in v:
            if spec.name in seen:
                duplicates.add(spec.name)
            seen.add(spec.name)
        if duplicates:
            msg = f"Duplicate tool names: {', '.join(sorted(duplicates))}"
            raise ValueError(msg)
        return v

    @property
    def id(self) -> str:
        """Pack identifier: <name>@<version>."""
        return f"{self.name}@{self.version}"

    def tool(self, name: str) -> ToolSpec | None:
        """Find a declared tool by name."""
        for spec in self.tools:
            if spec.name == name:
                return spec
        return None


def parse_tool_selector(selector: str) -> tuple[str, str]:
    """
    Split a <pack-id>:<tool> selector.

    Examples:
        "issues-basic@1.0.0:create_issue" -> ("issues-basic@1.0.0", "create_issue")

    Raises:
        ToolSelectorError: If either side of the colon is empty
    """
    pack_id, sep, tool_name = selector.partition(":")
    if not sep or not pack_id or not tool_name:
        raise ToolSelectorError(selector=selector)
    return pack_id, tool_name
