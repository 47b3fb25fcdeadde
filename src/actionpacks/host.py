"""
Embedding host for ActionPacks bundles.

The host is the caller the decision engine was designed for. For each call it:
    1. Resolves the tool from the bundle (<pack-id>:<tool>)
    2. Looks up the governing rule in a policy-store snapshot
    3. Reads the rolling-window count under the tool's admission lock
    4. Asks the engine for a verdict
    5. Records the call as admitted only when the verdict is ok
    6. "Executes" the call; execution is always mocked

Side effects are never performed. An ok verdict yields a result marked
executed=True and nothing else happens.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from actionpacks.errors import PayloadError
from actionpacks.pack.bundle import Bundle
from actionpacks.pack.manifest import parse_tool_selector
from actionpacks.policy.engine import DecisionEngine
from actionpacks.policy.store import MatchKind, PolicyStore
from actionpacks.ratelimit import CallCounter
from actionpacks.schema import CallContext, PolicyRule, ToolDescriptor, Verdict


logger = logging.getLogger(__name__)


@dataclass
class HostResult:
    """
    Outcome of one call attempt through the host.

    Attributes:
        tool: The resolved tool
        rule: The rule that governed the call (None = permissive defaults)
        match: How the rule was found
        verdict: The engine's verdict
        payload: The payload that was evaluated
        executed: Whether the (mock) execution ran
        schema_path: Schema file inside the bundle, if any
    """

    tool: ToolDescriptor
    rule: PolicyRule | None
    match: MatchKind
    verdict: Verdict
    payload: dict[str, Any] = field(default_factory=dict)
    executed: bool = False
    schema_path: str | None = None

    @property
    def exit_code(self) -> int:
        return self.verdict.exit_code


def load_payload(path: Path | str) -> dict[str, Any]:
    """
    Read a JSON object payload from a file.

    Raises:
        PayloadError: If the file can't be read, isn't JSON, or isn't an object
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PayloadError(source=str(path), reason=str(e)) from e
    except json.JSONDecodeError as e:
        raise PayloadError(source=str(path), reason=f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise PayloadError(source=str(path), reason=f"invalid UTF-8: {e}") from e

    if not isinstance(payload, dict):
        raise PayloadError(source=str(path), reason="payload must be a JSON object")
    return payload


class Host:
    """
    Evaluates and mock-executes tool calls from a bundle.

    Usage:
        host = Host(Bundle("dist/it-ops"))
        result = host.invoke("issues-basic@1.0.0:create_issue", payload, assume_yes=True)
        sys.exit(result.exit_code)

    Attributes:
        bundle: The bundle tools are resolved from
        store: Policy store snapshot used for rule lookup
        engine: Decision engine
        counter: Rolling-window call counter shared across invocations
    """

    def __init__(
        self,
        bundle: Bundle,
        store: PolicyStore | None = None,
        engine: DecisionEngine | None = None,
        counter: CallCounter | None = None,
    ) -> None:
        self.bundle = bundle
        self.store = (store if store is not None else bundle.policy_store()).snapshot()
        self.engine = engine or DecisionEngine()
        self.counter = counter or CallCounter()

    def invoke(
        self,
        selector: str,
        payload: Any,
        assume_yes: bool = False,
        calls_made: int | None = None,
    ) -> HostResult:
        """
        Evaluate one call and mock-execute it if admitted.

        Args:
            selector: Tool selector <pack-id>:<tool>
            payload: Decoded JSON payload (must be an object)
            assume_yes: Treat confirmation as granted
            calls_made: Window count tracked by the caller. When given, the
                host counter is neither read nor updated

        Returns:
            HostResult with the verdict

        Raises:
            ToolSelectorError: If the selector is malformed
            BundleError / ToolNotFoundError: If the tool can't be resolved
            PayloadError: If the payload isn't a JSON object
            SchemaCompileError: If the tool's schema is malformed
        """
        pack_id, tool_name = parse_tool_selector(selector)
        tool = self.bundle.descriptor(pack_id, tool_name)
        entry = self.bundle.tool(pack_id, tool_name)

        if not isinstance(payload, dict):
            raise PayloadError(source=selector, reason="payload must be a JSON object")

        match = self.store.resolve(pack_id, tool_name)
        rule = match.rule

        if rule is None or calls_made is not None:
            ctx = CallContext(
                payload=payload,
                confirmation_granted=assume_yes,
                calls_already_made_in_window=calls_made or 0,
            )
            verdict = self.engine.decide(tool, rule, ctx)
        else:
            with self.counter.admission(tool.key, rule.rate_limit.window_sec) as slot:
                ctx = CallContext(
                    payload=payload,
                    confirmation_granted=assume_yes,
                    calls_already_made_in_window=slot.count,
                )
                verdict = self.engine.decide(tool, rule, ctx)
                if verdict.allowed:
                    slot.record()

        executed = verdict.allowed
        if executed:
            logger.info("Admitted %s (mock execution)", tool.selector)
        else:
            logger.info("Withheld %s: %s", tool.selector, verdict.reason)

        return HostResult(
            tool=tool,
            rule=rule,
            match=match.kind,
            verdict=verdict,
            payload=payload,
            executed=executed,
            schema_path=entry.schema_path,
        )

    def reset_counts(self, selector: str | None = None) -> None:
        """
        Forget admitted calls so rate limits start over.

        Args:
            selector: Tool selector <pack-id>:<tool>, or None for every tool

        Raises:
            ToolSelectorError: If the selector is malformed
        """
        if selector is None:
            self.counter.reset()
        else:
            self.counter.reset(parse_tool_selector(selector))
        logger.debug("Reset call counts for %s", selector or "all tools")
