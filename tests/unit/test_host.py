"""
Unit tests for the embedding host.

Tests cover:
- Payload loading
- End-to-end verdicts through a bundle
- Rolling-window counting of admitted calls only, and resets
- Pack-name rule fallback and missing rules
"""

import json
from pathlib import Path

import pytest

from actionpacks.errors import BundleError, PayloadError, SchemaCompileError, ToolSelectorError
from actionpacks.host import Host, load_payload
from actionpacks.pack.bundle import Bundle, export_bundle
from actionpacks.pack.loader import PackLoader
from actionpacks.policy.store import MatchKind, PolicyStore
from actionpacks.policy.suggest import RuleSuggester
from actionpacks.ratelimit import CallCounter
from actionpacks.schema import PolicyRule, RateLimit, VerdictStatus


CREATE = "issues-basic@1.0.0:create_issue"
LIST = "issues-basic@1.0.0:list_issues"


@pytest.fixture
def bundle_dir(sample_pack: Path, temp_dir: Path) -> Path:
    store = PolicyStore()
    RuleSuggester().suggest_into(
        store,
        PackLoader(sample_pack).tool_descriptors(),
        RateLimit(max_calls=2, window_sec=60),
    )
    out = temp_dir / "bundle"
    export_bundle([PackLoader(sample_pack)], store, out)
    return out


@pytest.fixture
def host(bundle_dir: Path) -> Host:
    return Host(Bundle(bundle_dir))


class TestLoadPayload:
    def test_object(self, temp_dir: Path) -> None:
        path = temp_dir / "ok.json"
        path.write_text('{"title": "x"}')
        assert load_payload(path) == {"title": "x"}

    def test_not_an_object(self, temp_dir: Path) -> None:
        path = temp_dir / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(PayloadError):
            load_payload(path)

    def test_invalid_json(self, temp_dir: Path) -> None:
        path = temp_dir / "bad.json"
        path.write_text("{")
        with pytest.raises(PayloadError) as exc_info:
            load_payload(path)
        assert "invalid JSON" in exc_info.value.reason

    def test_invalid_utf8(self, temp_dir: Path) -> None:
        path = temp_dir / "latin.json"
        path.write_bytes(b'{"title": "\xff\xfe"}')
        with pytest.raises(PayloadError) as exc_info:
            load_payload(path)
        assert "invalid UTF-8" in exc_info.value.reason

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(PayloadError):
            load_payload(temp_dir / "missing.json")


class TestInvoke:
    """Tests for Host.invoke verdicts."""

    def test_needs_confirmation(self, host: Host) -> None:
        result = host.invoke(CREATE, {"title": "x"})
        assert result.verdict.status == VerdictStatus.NEEDS_CONFIRMATION
        assert result.executed is False
        assert result.exit_code == 2

    def test_confirmed_ok(self, host: Host) -> None:
        result = host.invoke(CREATE, {"title": "x"}, assume_yes=True)
        assert result.verdict.status == VerdictStatus.OK
        assert result.executed is True
        assert result.exit_code == 0
        assert result.match == MatchKind.EXACT
        assert result.schema_path == "schemas/issues-basic@1.0.0/create_issue.json"

    def test_blocked_by_allowlist(self, host: Host) -> None:
        result = host.invoke(CREATE, {"title": "x", "api_token": "t"}, assume_yes=True)
        assert result.verdict.status == VerdictStatus.BLOCKED
        assert result.exit_code == 1
        assert str(result.verdict.issues[0]) == "allowlist: unexpected fields api_token"

    def test_rate_limit_counts_admitted_calls(self, host: Host) -> None:
        """Only ok verdicts consume quota."""
        host.invoke(LIST, {"state": "open"})
        host.invoke(LIST, {"state": "bogus"})
        host.invoke(LIST, {"state": "closed"})
        result = host.invoke(LIST, {})
        assert result.verdict.status == VerdictStatus.RATE_LIMITED
        assert result.verdict.attempted == 3
        assert result.exit_code == 3

    def test_calls_made_override(self, host: Host) -> None:
        result = host.invoke(LIST, {}, calls_made=2)
        assert result.verdict.status == VerdictStatus.RATE_LIMITED
        assert host.invoke(LIST, {}, calls_made=1).executed is True

    def test_calls_made_leaves_counter_untouched(self, host: Host) -> None:
        """A caller-tracked window is not added to the host's own count."""
        for _ in range(5):
            assert host.invoke(LIST, {}, calls_made=0).executed is True
        assert host.invoke(LIST, {}).executed is True
        assert host.invoke(LIST, {}).executed is True
        assert host.invoke(LIST, {}).verdict.status == VerdictStatus.RATE_LIMITED

    def test_reset_counts_for_tool(self, host: Host) -> None:
        host.invoke(LIST, {})
        host.invoke(LIST, {})
        host.reset_counts(LIST)
        assert host.invoke(LIST, {}).verdict.status == VerdictStatus.OK

    def test_reset_counts_all(self, host: Host) -> None:
        host.invoke(LIST, {})
        host.invoke(LIST, {})
        host.invoke(CREATE, {"title": "x"}, assume_yes=True)
        host.invoke(CREATE, {"title": "x"}, assume_yes=True)
        host.reset_counts()
        assert host.invoke(LIST, {}).verdict.status == VerdictStatus.OK
        assert host.invoke(CREATE, {"title": "x"}, assume_yes=True).verdict.status == VerdictStatus.OK

    def test_shared_counter(self, bundle_dir: Path) -> None:
        counter = CallCounter()
        first = Host(Bundle(bundle_dir), counter=counter)
        second = Host(Bundle(bundle_dir), counter=counter)
        first.invoke(LIST, {})
        first.invoke(LIST, {})
        assert second.invoke(LIST, {}).verdict.status == VerdictStatus.RATE_LIMITED

    def test_non_object_payload(self, host: Host) -> None:
        with pytest.raises(PayloadError):
            host.invoke(CREATE, ["title"])

    def test_bad_selector(self, host: Host) -> None:
        with pytest.raises(ToolSelectorError):
            host.invoke("create_issue", {})

    def test_unknown_pack(self, host: Host) -> None:
        with pytest.raises(BundleError):
            host.invoke("issues-basic@2.0.0:create_issue", {})


class TestRuleResolution:
    def test_no_rule_is_permissive(self, sample_pack: Path, temp_dir: Path) -> None:
        out = temp_dir / "norules"
        export_bundle([PackLoader(sample_pack)], PolicyStore(), out)
        host = Host(Bundle(out))
        for _ in range(50):
            result = host.invoke(CREATE, {"title": "x", "extra": True})
            assert result.verdict.status == VerdictStatus.OK
        assert result.rule is None
        assert result.match == MatchKind.NONE

    def test_external_store_pack_name_fallback(self, bundle_dir: Path) -> None:
        store = PolicyStore([PolicyRule(pack="issues-basic@0.1.0", tool="list_issues", allowlist=["state"])])
        host = Host(Bundle(bundle_dir), store=store)
        result = host.invoke(LIST, {"limit": 5})
        assert result.match == MatchKind.PACK_NAME
        assert result.verdict.status == VerdictStatus.BLOCKED

    def test_malformed_bundled_schema(self, bundle_dir: Path) -> None:
        schema_file = bundle_dir / "schemas" / "issues-basic@1.0.0" / "list_issues.json"
        schema_file.write_text(json.dumps({"type": "object", "properties": {"state": {"type": 7}}}))
        with pytest.raises(SchemaCompileError):
            Host(Bundle(bundle_dir)).invoke(LIST, {})

    def test_bundled_schema_not_an_object(self, bundle_dir: Path) -> None:
        schema_file = bundle_dir / "schemas" / "issues-basic@1.0.0" / "list_issues.json"
        schema_file.write_text("[1, 2]")
        with pytest.raises(SchemaCompileError):
            Host(Bundle(bundle_dir)).invoke(LIST, {})
