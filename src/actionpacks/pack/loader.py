"""
Pack loader for loading and validating pack directories.

This module provides the PackLoader class for:
- Loading and validating manifest.yaml
- Resolving each tool's input schema (file path or inline mapping)
- Building ToolDescriptors for the rule suggester and decision engine
- Validating pack structure (manifest, schema files, schema compilation)

Design Decisions:
    - Schema paths are relative to the pack root and must stay inside it
    - Schema files ending in .json are parsed as JSON, anything else as YAML
    - Validation is strict and fails fast on load; validate_structure()
      collects every problem instead
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from actionpacks.errors import (
    PackManifestError,
    PackMissingFileError,
    PackNotFoundError,
    SchemaCompileError,
    ToolNotFoundError,
)
from actionpacks.pack.manifest import PackManifest, ToolSpec
from actionpacks.policy.validator import SchemaValidator
from actionpacks.schema import ToolDescriptor, load_document


logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.yaml"


class PackLoader:
    """
    Loads and validates a pack directory.

    Attributes:
        pack_path: Absolute path to the pack directory
        manifest: Loaded PackManifest (loaded lazily on first access)

    Example:
        >>> loader = PackLoader("packs/issues-basic")
        >>> loader.manifest.id
        'issues-basic@1.0.0'
        >>> tools = loader.tool_descriptors()
    """

    def __init__(self, pack_path: Path | str) -> None:
        """
        Initialize with path to pack directory.

        Raises:
            PackNotFoundError: If the pack directory doesn't exist
        """
        self.pack_path = Path(pack_path).resolve()
        self._manifest: PackManifest | None = None

        if not self.pack_path.exists():
            raise PackNotFoundError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
            )

        if not self.pack_path.is_dir():
            raise PackNotFoundError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                message=f"Pack path is not a directory: {self.pack_path}",
            )

    @property
    def manifest(self) -> PackManifest:
        """The pack manifest, loaded on first access."""
        if self._manifest is None:
            self._manifest = self.load_manifest()
        return self._manifest

    def load_manifest(self) -> PackManifest:
        """
        Load and validate manifest.yaml.

        Raises:
            PackMissingFileError: If manifest.yaml doesn't exist
            PackManifestError: If manifest is invalid
        """
        manifest_path = self.pack_path / MANIFEST_FILE

        if not manifest_path.exists():
            raise PackMissingFileError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                missing_file=MANIFEST_FILE,
            )

        try:
            with manifest_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                validation_error=f"Invalid YAML: {e}",
            ) from e

        if data is None:
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                validation_error="Empty manifest file",
            )

        try:
            return PackManifest.model_validate(data)
        except ValidationError as e:
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                validation_error=str(e),
            ) from e

    def schema_path(self, spec: ToolSpec) -> Path | None:
        """
        Absolute path of a tool's schema file, or None for inline/no schema.

        Raises:
            PackManifestError: If the path escapes the pack directory
        """
        if not isinstance(spec.schema_ref, str):
            return None

        path = (self.pack_path / spec.schema_ref).resolve()
        try:
            path.relative_to(self.pack_path)
        except ValueError as e:
            raise PackManifestError(
                pack_name=self.manifest.name,
                pack_path=str(self.pack_path),
                validation_error=f"Schema path for {spec.name} escapes the pack: {spec.schema_ref}",
            ) from e
        return path

    def load_schema(self, spec: ToolSpec) -> dict[str, Any] | None:
        """
        Resolve a tool's input schema document.

        Returns:
            The schema mapping, or None if the tool declares no schema

        Raises:
            PackMissingFileError: If the schema file doesn't exist
            PackManifestError: If the schema file can't be parsed
        """
        if spec.schema_ref is None:
            return None
        if isinstance(spec.schema_ref, dict):
            return dict(spec.schema_ref)

        path = self.schema_path(spec)
        if path is None or not path.exists():
            raise PackMissingFileError(
                pack_name=self.manifest.name,
                pack_path=str(self.pack_path),
                missing_file=spec.schema_ref,
            )

        try:
            schema = load_document(path)
        except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
            raise PackManifestError(
                pack_name=self.manifest.name,
                pack_path=str(self.pack_path),
                validation_error=f"Unparsable schema {spec.schema_ref}: {e}",
            ) from e

        if not isinstance(schema, dict):
            raise PackManifestError(
                pack_name=self.manifest.name,
                pack_path=str(self.pack_path),
                validation_error=f"Schema {spec.schema_ref} is not an object",
            )
        return schema

    def descriptor(self, tool_name: str) -> ToolDescriptor:
        """
        Build the ToolDescriptor for one tool.

        Raises:
            ToolNotFoundError: If the pack doesn't declare the tool
        """
        spec = self.manifest.tool(tool_name)
        if spec is None:
            raise ToolNotFoundError(tool=tool_name, pack=self.manifest.id)
        return self._descriptor(spec)

    def tool_descriptors(self) -> list[ToolDescriptor]:
        """Build ToolDescriptors for every tool, in manifest order."""
        return [self._descriptor(spec) for spec in self.manifest.tools]

    def _descriptor(self, spec: ToolSpec) -> ToolDescriptor:
        return ToolDescriptor(
            pack_id=self.manifest.id,
            name=spec.name,
            input_schema=self.load_schema(spec),
            side_effects=frozenset(spec.side_effects),
            explicit_allowlist=tuple(spec.allowlist) if spec.allowlist is not None else None,
        )

    def validate_structure(self, validator: SchemaValidator | None = None) -> list[str]:
        """
        Validate pack structure, return list of errors.

        Checks:
        - manifest.yaml exists and is valid
        - every schema file exists and parses
        - every schema compiles as JSON Schema

        Returns:
            List of error messages (empty if valid)
        """
        errors: list[str] = []
        validator = validator or SchemaValidator()

        if not (self.pack_path / MANIFEST_FILE).exists():
            errors.append(f"{MANIFEST_FILE} not found")
            return errors

        try:
            manifest = self.load_manifest()
        except PackManifestError as e:
            errors.append(f"Invalid manifest: {e.context.get('validation_error', e.message)}")
            return errors
        self._manifest = manifest

        if not manifest.tools:
            errors.append("Pack declares no tools")

        for spec in manifest.tools:
            try:
                schema = self.load_schema(spec)
            except PackMissingFileError:
                errors.append(f"Schema not found for {spec.name}: {spec.schema_ref}")
                continue
            except PackManifestError as e:
                errors.append(e.context.get("validation_error", e.message))
                continue

            if schema is None:
                logger.debug("Tool %s declares no schema", spec.name)
                continue

            try:
                validator.compile(schema, tool=spec.name, pack=manifest.id)
            except SchemaCompileError as e:
                errors.append(f"Invalid schema for {spec.name}: {e.schema_error}")

        return errors
