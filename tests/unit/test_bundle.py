"""
Unit tests for bundle export and loading.

Tests cover:
- Bundle layout (actionpack.json and per-tool schema files)
- Rule embedding, including rules matched by pack name
- Loading bundles back into descriptors and a policy store
- Malformed bundles
"""

import json
from pathlib import Path

import pytest

from actionpacks.errors import BundleError, SchemaCompileError, ToolNotFoundError
from actionpacks.pack.bundle import BUNDLE_MANIFEST, Bundle, export_bundle
from actionpacks.pack.loader import PackLoader
from actionpacks.policy.store import PolicyStore
from actionpacks.policy.suggest import RuleSuggester
from actionpacks.schema import PolicyRule


@pytest.fixture
def suggested_store(sample_pack: Path) -> PolicyStore:
    store = PolicyStore()
    RuleSuggester().suggest_into(store, PackLoader(sample_pack).tool_descriptors())
    return store


@pytest.fixture
def bundle_dir(sample_pack: Path, suggested_store: PolicyStore, temp_dir: Path) -> Path:
    out = temp_dir / "dist" / "it-ops"
    export_bundle([PackLoader(sample_pack)], suggested_store, out)
    return out


class TestExport:
    """Tests for export_bundle."""

    def test_layout(self, bundle_dir: Path) -> None:
        assert (bundle_dir / BUNDLE_MANIFEST).exists()
        assert (bundle_dir / "schemas" / "issues-basic@1.0.0" / "create_issue.json").exists()
        assert (bundle_dir / "schemas" / "issues-basic@1.0.0" / "notify.json").exists()

    def test_manifest_content(self, bundle_dir: Path) -> None:
        data = json.loads((bundle_dir / BUNDLE_MANIFEST).read_text())
        assert data["format"] == 1
        pack = data["packs"][0]
        assert pack["id"] == "issues-basic@1.0.0"
        assert pack["name"] == "issues-basic"
        tool = pack["tools"][0]
        assert tool["name"] == "create_issue"
        assert tool["schema"] == "schemas/issues-basic@1.0.0/create_issue.json"
        assert tool["side_effects"] == ["create"]
        assert tool["allowlist"] == ["title", "body", "labels", "assignee_email"]
        assert tool["rule"]["rateLimit"] == {"maxCalls": 20, "windowSec": 60}
        assert tool["rule"]["confirm"]["required"] is True

    def test_tool_without_rule(self, sample_pack: Path, temp_dir: Path) -> None:
        out = temp_dir / "bare"
        export_bundle([PackLoader(sample_pack)], PolicyStore(), out)
        data = json.loads((out / BUNDLE_MANIFEST).read_text())
        tools = {t["name"]: t for t in data["packs"][0]["tools"]}
        assert tools["create_issue"]["rule"] is None
        assert tools["create_issue"]["allowlist"] == []
        assert tools["notify"]["allowlist"] == ["channel", "text"]

    def test_rule_matched_by_pack_name_rekeyed(self, sample_pack: Path, temp_dir: Path) -> None:
        store = PolicyStore([PolicyRule(pack="issues-basic@0.9.0", tool="create_issue", allowlist=["title"])])
        out = temp_dir / "rekeyed"
        export_bundle([PackLoader(sample_pack)], store, out)
        rule = Bundle(out).policy_store().get("issues-basic@1.0.0", "create_issue")
        assert rule is not None
        assert rule.allowlist == ["title"]

    def test_tool_without_schema(self, make_pack, temp_dir: Path) -> None:
        pack = make_pack({"name": "bare", "version": "1.0.0", "tools": [{"name": "ping"}]})
        out = temp_dir / "nb"
        export_bundle([PackLoader(pack)], PolicyStore(), out)
        data = json.loads((out / BUNDLE_MANIFEST).read_text())
        assert data["packs"][0]["tools"][0]["schema"] is None


class TestBundleLoading:
    """Tests for Bundle."""

    def test_descriptor(self, bundle_dir: Path) -> None:
        tool = Bundle(bundle_dir).descriptor("issues-basic@1.0.0", "create_issue")
        assert tool.input_schema["required"] == ["title"]
        assert tool.side_effects == frozenset({"create"})

    def test_policy_store(self, bundle_dir: Path, suggested_store: PolicyStore) -> None:
        store = Bundle(bundle_dir).policy_store()
        assert store.rules == suggested_store.rules

    def test_unknown_pack(self, bundle_dir: Path) -> None:
        with pytest.raises(BundleError) as exc_info:
            Bundle(bundle_dir).pack("issues-basic@9.9.9")
        assert exc_info.value.message == "Pack issues-basic@9.9.9 not found in manifest."

    def test_unknown_tool(self, bundle_dir: Path) -> None:
        with pytest.raises(ToolNotFoundError):
            Bundle(bundle_dir).tool("issues-basic@1.0.0", "nope")

    def test_not_a_bundle(self, temp_dir: Path) -> None:
        with pytest.raises(BundleError) as exc_info:
            Bundle(temp_dir)
        assert exc_info.value.message.startswith("Not an ActionPacks bundle")

    def test_invalid_json(self, temp_dir: Path) -> None:
        (temp_dir / BUNDLE_MANIFEST).write_text("{not json")
        with pytest.raises(BundleError):
            Bundle(temp_dir)

    def test_invalid_utf8(self, temp_dir: Path) -> None:
        (temp_dir / BUNDLE_MANIFEST).write_bytes(b'{"packs": [], "x": "\xff"}')
        with pytest.raises(BundleError) as exc_info:
            Bundle(temp_dir)
        assert "invalid UTF-8" in exc_info.value.reason

    def test_invalid_structure(self, temp_dir: Path) -> None:
        (temp_dir / BUNDLE_MANIFEST).write_text('{"packs": [{"id": "x"}]}')
        with pytest.raises(BundleError):
            Bundle(temp_dir)

    def test_missing_schema_file(self, bundle_dir: Path) -> None:
        (bundle_dir / "schemas" / "issues-basic@1.0.0" / "create_issue.json").unlink()
        with pytest.raises(BundleError) as exc_info:
            Bundle(bundle_dir).descriptor("issues-basic@1.0.0", "create_issue")
        assert exc_info.value.message.startswith("Schema file missing:")

    def test_schema_not_utf8(self, bundle_dir: Path) -> None:
        (bundle_dir / "schemas" / "issues-basic@1.0.0" / "create_issue.json").write_bytes(b'{"title": "\xff"}')
        with pytest.raises(BundleError):
            Bundle(bundle_dir).descriptor("issues-basic@1.0.0", "create_issue")

    def test_schema_not_an_object(self, bundle_dir: Path) -> None:
        (bundle_dir / "schemas" / "issues-basic@1.0.0" / "create_issue.json").write_text("[1, 2]")
        with pytest.raises(SchemaCompileError) as exc_info:
            Bundle(bundle_dir).descriptor("issues-basic@1.0.0", "create_issue")
        assert exc_info.value.pack == "issues-basic@1.0.0"
        assert exc_info.value.tool == "create_issue"
