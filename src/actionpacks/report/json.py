"""
JSON output for ActionPacks results.

Generates structured JSON for programmatic consumption. The call result keeps
the shape hosts already parse: status, pack, tool, schema, allowlist,
side_effects, confirm and payload, extended with issues, rate-limit details
and the exit code.
"""

import json
from typing import Any

from actionpacks.host import HostResult
from actionpacks.policy.store import RuleMatch
from actionpacks.schema import Verdict, VerdictStatus


def build_verdict_dict(verdict: Verdict) -> dict[str, Any]:
    """Serialize a verdict with only the fields its status carries."""
    data: dict[str, Any] = {
        "status": verdict.status.value,
        "exit_code": verdict.exit_code,
    }
    if verdict.status == VerdictStatus.BLOCKED:
        data["issues"] = [
            {"kind": issue.kind.value, "pointer": issue.pointer, "message": issue.message}
            for issue in verdict.issues
        ]
    elif verdict.status == VerdictStatus.NEEDS_CONFIRMATION:
        data["message"] = verdict.message
    elif verdict.status == VerdictStatus.RATE_LIMITED:
        data["rate_limit"] = {
            "attempted": verdict.attempted,
            "maxCalls": verdict.max_calls,
            "windowSec": verdict.window_sec,
        }
    return data


def build_result_dict(result: HostResult) -> dict[str, Any]:
    """
    Build the JSON result for one host call.

    Args:
        result: The host's result

    Returns:
        Dictionary ready for json.dumps
    """
    rule = result.rule
    return {
        "status": result.verdict.status.value,
        "pack": result.tool.pack_id,
        "tool": result.tool.name,
        "schema": result.schema_path,
        "allowlist": list(rule.allowlist) if rule else [],
        "side_effects": sorted(s.lower() for s in result.tool.side_effects),
        "confirm": {
            "required": rule.confirm_required if rule else False,
            "message": rule.confirm_message if rule else None,
        },
        "rateLimit": rule.rate_limit.model_dump(by_alias=True) if rule else None,
        "rule_match": result.match.value,
        "issues": [str(issue) for issue in result.verdict.issues],
        "verdict": build_verdict_dict(result.verdict),
        "executed": result.executed,
        "payload": result.payload,
    }


def build_rule_dict(match: RuleMatch, pack_id: str, tool_name: str) -> dict[str, Any]:
    """Serialize a rule lookup for `ap policy show --json`."""
    return {
        "pack": pack_id,
        "tool": tool_name,
        "match": match.kind.value,
        "rule": match.rule.to_record() if match.rule is not None else None,
    }


def generate_json_result(result: HostResult, indent: int = 2) -> str:
    """Render a host result as a JSON string."""
    return json.dumps(build_result_dict(result), indent=indent, default=str)
