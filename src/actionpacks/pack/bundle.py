"""
Bundle export and loading.

A bundle is a self-contained directory a host can consume without access to
the original pack directories or policy file:

    <bundle>/
        actionpack.json
        schemas/<pack-id>/<tool>.json

actionpack.json lists every pack and tool with its schema path (relative to
the bundle), side effects, effective allowlist and the embedded rule record:

    {
      "format": 1,
      "packs": [
        {"id": "issues-basic@1.0.0", "name": "issues-basic", "version": "1.0.0",
         "description": "", "tools": [
           {"name": "create_issue", "schema": "schemas/issues-basic@1.0.0/create_issue.json",
            "side_effects": ["create"], "allowlist": ["title", "body"],
            "rule": {"pack": "...", "tool": "...", "confirm": {...},
                     "allowlist": [...], "rateLimit": {...}}}
         ]}
      ]
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from actionpacks.errors import BundleError, SchemaCompileError, ToolNotFoundError
from actionpacks.pack.loader import PackLoader
from actionpacks.policy.store import PolicyStore
from actionpacks.schema import PolicyRule, ToolDescriptor


logger = logging.getLogger(__name__)

BUNDLE_MANIFEST = "actionpack.json"
BUNDLE_FORMAT = 1


# =============================================================================
# Bundle Manifest Models
# =============================================================================


class BundleTool(BaseModel):
    """One tool entry in actionpack.json."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    schema_path: str | None = Field(default=None, alias="schema")
    side_effects: list[str] = Field(default_factory=list)
    allowlist: list[str] = Field(default_factory=list)
    rule: PolicyRule | None = Field(default=None)


class BundlePack(BaseModel):
    """One pack entry in actionpack.json."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    description: str = ""
    tools: list[BundleTool] = Field(default_factory=list)

    def tool(self, name: str) -> BundleTool | None:
        for entry in self.tools:
            if entry.name == name:
                return entry
        return None


class BundleManifest(BaseModel):
    """Top level of actionpack.json."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    format: int = BUNDLE_FORMAT
    packs: list[BundlePack] = Field(default_factory=list)


# =============================================================================
# Export
# =============================================================================


def export_bundle(
    loaders: Iterable[PackLoader],
    store: PolicyStore,
    out_dir: Path | str,
) -> Path:
    """
    Export packs and their rules into a bundle directory.

    The rule embedded for each tool is whatever the store resolves for it
    (exact or pack-name match), re-keyed to the exported pack id.

    Args:
        loaders: Packs to export
        store: Policy store supplying the rules
        out_dir: Bundle directory (created if missing)

    Returns:
        Path to the written actionpack.json

    Raises:
        BundleError: If the bundle cannot be written
    """
    out_dir = Path(out_dir)
    packs: list[BundlePack] = []

    try:
        for loader in loaders:
            manifest = loader.manifest
            tools: list[BundleTool] = []

            for spec in manifest.tools:
                schema = loader.load_schema(spec)
                schema_rel = None
                if schema is not None:
                    rel = Path("schemas") / manifest.id / f"{spec.name}.json"
                    target = out_dir / rel
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_text(json.dumps(schema, indent=2) + "\n", encoding="utf-8")
                    schema_rel = rel.as_posix()

                rule = store.lookup(manifest.id, spec.name)
                if rule is not None and rule.pack != manifest.id:
                    rule = rule.model_copy(update={"pack": manifest.id})

                if rule is not None:
                    allowlist = list(rule.allowlist)
                else:
                    allowlist = list(spec.allowlist or [])

                tools.append(
                    BundleTool(
                        name=spec.name,
                        schema_path=schema_rel,
                        side_effects=list(spec.side_effects),
                        allowlist=allowlist,
                        rule=rule,
                    )
                )

            packs.append(
                BundlePack(
                    id=manifest.id,
                    name=manifest.name,
                    version=manifest.version,
                    description=manifest.description,
                    tools=tools,
                )
            )
            logger.debug("Exported %s with %d tool(s)", manifest.id, len(tools))

        bundle = BundleManifest(packs=packs)
        manifest_path = out_dir / BUNDLE_MANIFEST
        out_dir.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text(
            json.dumps(_dump_bundle(bundle), indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        raise BundleError(bundle_path=str(out_dir), reason=f"cannot write: {e}") from e

    return manifest_path


def _dump_bundle(bundle: BundleManifest) -> dict[str, Any]:
    """Serialize a bundle manifest, writing embedded rules as rule records."""
    data = bundle.model_dump(mode="json", by_alias=True, exclude={"packs"})
    data["packs"] = []
    for pack in bundle.packs:
        pack_data = pack.model_dump(mode="json", exclude={"tools"})
        pack_data["tools"] = [
            {
                "name": tool.name,
                "schema": tool.schema_path,
                "side_effects": tool.side_effects,
                "allowlist": tool.allowlist,
                "rule": tool.rule.to_record() if tool.rule is not None else None,
            }
            for tool in pack.tools
        ]
        data["packs"].append(pack_data)
    return data


# =============================================================================
# Loading
# =============================================================================


class Bundle:
    """
    Read access to an exported bundle.

    Attributes:
        bundle_path: Absolute path to the bundle directory
        manifest: Parsed actionpack.json
    """

    def __init__(self, bundle_path: Path | str) -> None:
        """
        Load a bundle directory.

        Raises:
            BundleError: If actionpack.json is missing or invalid
        """
        self.bundle_path = Path(bundle_path).resolve()
        manifest_path = self.bundle_path / BUNDLE_MANIFEST

        if not manifest_path.exists():
            raise BundleError(
                bundle_path=str(self.bundle_path),
                reason=f"missing {BUNDLE_MANIFEST}",
                message=f"Not an ActionPacks bundle: missing {manifest_path}",
            )

        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
            self.manifest = BundleManifest.model_validate(data)
        except json.JSONDecodeError as e:
            raise BundleError(bundle_path=str(self.bundle_path), reason=f"invalid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise BundleError(bundle_path=str(self.bundle_path), reason=f"invalid UTF-8: {e}") from e
        except ValidationError as e:
            raise BundleError(bundle_path=str(self.bundle_path), reason=str(e)) from e

    def pack(self, pack_id: str) -> BundlePack:
        """
        Find a pack by id.

        Raises:
            BundleError: If the pack isn't in the bundle
        """
        for pack in self.manifest.packs:
            if pack.id == pack_id:
                return pack
        raise BundleError(
            bundle_path=str(self.bundle_path),
            reason=f"pack {pack_id} not found",
            message=f"Pack {pack_id} not found in manifest.",
        )

    def tool(self, pack_id: str, tool_name: str) -> BundleTool:
        """
        Find a tool entry.

        Raises:
            BundleError: If the pack isn't in the bundle
            ToolNotFoundError: If the pack has no such tool
        """
        entry = self.pack(pack_id).tool(tool_name)
        if entry is None:
            raise ToolNotFoundError(tool=tool_name, pack=pack_id)
        return entry

    def descriptor(self, pack_id: str, tool_name: str) -> ToolDescriptor:
        """
        Build the ToolDescriptor for a bundled tool, loading its schema.

        Raises:
            BundleError: If the schema file is missing or unreadable
            SchemaCompileError: If the schema document is not an object
        """
        entry = self.tool(pack_id, tool_name)
        schema = None
        if entry.schema_path is not None:
            schema_file = (self.bundle_path / entry.schema_path).resolve()
            if not schema_file.exists():
                raise BundleError(
                    bundle_path=str(self.bundle_path),
                    reason=f"schema file missing: {schema_file}",
                    message=f"Schema file missing: {schema_file}",
                )
            try:
                schema = json.loads(schema_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise BundleError(
                    bundle_path=str(self.bundle_path),
                    reason=f"unreadable schema {entry.schema_path}: {e}",
                ) from e
            if not isinstance(schema, dict):
                raise SchemaCompileError(
                    tool=tool_name,
                    pack=pack_id,
                    schema_error=f"schema must be an object, got {type(schema).__name__}",
                )

        return ToolDescriptor(
            pack_id=pack_id,
            name=tool_name,
            input_schema=schema,
            side_effects=frozenset(entry.side_effects),
            explicit_allowlist=tuple(entry.allowlist) if entry.allowlist else None,
        )

    def policy_store(self) -> PolicyStore:
        """Policy store built from the rules embedded in the bundle."""
        return PolicyStore(
            entry.rule
            for pack in self.manifest.packs
            for entry in pack.tools
            if entry.rule is not None
        )
