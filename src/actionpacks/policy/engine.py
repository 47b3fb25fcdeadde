"""
Decision Engine for ActionPacks.

Every tool call passes through the decision engine before a host is allowed
to act on it. The engine combines four independent checks into one verdict.

Design Principles:
    - Stateless: the engine never stores or increments call counts; the
      caller supplies the count for the current window
    - Predictable: same inputs always produce the same verdict
    - Total: payload problems are data (Issues), never exceptions; the only
      failure raised is a schema that cannot be compiled

How it works:
    1. Compile the tool's schema (SchemaCompileError stops here)
    2. Run every check without short-circuiting:
       schema, allowlist, rate limit, confirmation
    3. Combine them in a fixed order, first match wins:
       blocked > needs-confirmation > rate-limited > ok

A call withheld for confirmation reports the prompt, not the quota, even when
both apply.
"""

import logging
from dataclasses import dataclass
from typing import Any

from actionpacks.policy.store import PolicyStore
from actionpacks.policy.validator import SchemaValidator
from actionpacks.schema import (
    CallContext,
    Issue,
    PolicyRule,
    RateLimit,
    ToolDescriptor,
    Verdict,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallChecks:
    """
    Raw outcome of each check for one call, before precedence is applied.

    Attributes:
        schema_issues: Schema violations in the payload
        allowlist_issue: The unexpected-fields issue, if any
        needs_confirm: Whether the rule requires confirmation
        confirmation_granted: Whether the caller granted it
        would_exceed: Whether admitting this call exceeds the rate limit
        attempted: Number this call would have in the window
        rate_limit: Effective (clamped) limit, None when no rule applies
        confirm_message: Prompt to show when confirmation is missing
    """

    schema_issues: tuple[Issue, ...] = ()
    allowlist_issue: Issue | None = None
    needs_confirm: bool = False
    confirmation_granted: bool = False
    would_exceed: bool = False
    attempted: int = 1
    rate_limit: RateLimit | None = None
    confirm_message: str | None = None

    @property
    def issues(self) -> list[Issue]:
        """Schema issues followed by the allowlist issue."""
        issues = list(self.schema_issues)
        if self.allowlist_issue is not None:
            issues.append(self.allowlist_issue)
        return issues

    def verdict(self) -> Verdict:
        """Combine the checks in their fixed precedence order."""
        issues = self.issues
        if issues:
            return Verdict.blocked(issues)

        if self.needs_confirm and not self.confirmation_granted:
            return Verdict.needs_confirmation(self.confirm_message or "Proceed?")

        if self.would_exceed and self.rate_limit is not None:
            return Verdict.rate_limited(
                attempted=self.attempted,
                max_calls=self.rate_limit.max_calls,
                window_sec=self.rate_limit.window_sec,
            )

        return Verdict.ok()


class DecisionEngine:
    """
    Evaluates tool calls against policy rules.

    Usage:
        engine = DecisionEngine()
        verdict = engine.decide(tool, rule, CallContext(payload={"title": "x"}))
        if verdict.allowed:
            # proceed with the call
        else:
            # report verdict.reason, exit with verdict.exit_code

    Attributes:
        validator: Schema validator used for the schema check
    """

    def __init__(self, validator: SchemaValidator | None = None) -> None:
        self.validator = validator or SchemaValidator()

    def decide(
        self,
        tool: ToolDescriptor,
        rule: PolicyRule | None,
        ctx: CallContext,
    ) -> Verdict:
        """
        Decide whether a call may proceed.

        Args:
            tool: Metadata of the tool being called
            rule: The rule governing the tool (None = permissive defaults,
                no rate limiting)
            ctx: The call's payload, confirmation flag and window count

        Returns:
            The verdict for this call

        Raises:
            SchemaCompileError: If the tool's schema is malformed
        """
        checks = self.check(tool, rule, ctx)
        verdict = checks.verdict()
        logger.debug("Verdict for %s: %s (%s)", tool.selector, verdict.status.value, verdict.reason)
        return verdict

    def evaluate(
        self,
        tool: ToolDescriptor,
        store: PolicyStore,
        ctx: CallContext,
    ) -> Verdict:
        """Resolve the tool's rule from a store, then decide."""
        rule = store.lookup(tool.pack_id, tool.name)
        if rule is None:
            logger.debug("No rule for %s; using permissive defaults", tool.selector)
        return self.decide(tool, rule, ctx)

    def check(
        self,
        tool: ToolDescriptor,
        rule: PolicyRule | None,
        ctx: CallContext,
    ) -> CallChecks:
        """
        Run every check for a call without applying precedence.

        Raises:
            SchemaCompileError: If the tool's schema is malformed
        """
        schema_issues = self._check_schema(tool, ctx.payload)
        allowlist_issue = self._check_allowlist(rule, ctx.payload)
        attempted = ctx.calls_already_made_in_window + 1

        rate_limit = None
        would_exceed = False
        if rule is not None:
            rate_limit = RateLimit(
                max_calls=max(1, rule.rate_limit.max_calls),
                window_sec=max(1, rule.rate_limit.window_sec),
            )
            would_exceed = attempted > rate_limit.max_calls

        return CallChecks(
            schema_issues=tuple(schema_issues),
            allowlist_issue=allowlist_issue,
            needs_confirm=rule.confirm_required if rule is not None else False,
            confirmation_granted=ctx.confirmation_granted,
            would_exceed=would_exceed,
            attempted=attempted,
            rate_limit=rate_limit,
            confirm_message=rule.confirm_message if rule is not None else None,
        )

    def _check_schema(self, tool: ToolDescriptor, payload: dict[str, Any]) -> list[Issue]:
        """Validate the payload against the tool schema (no schema = no issues)."""
        if tool.input_schema is None:
            return []

        validator = self.validator.compile(tool.input_schema, tool=tool.name, pack=tool.pack_id)
        return self.validator.iter_issues(validator, payload, tool=tool.name, pack=tool.pack_id)

    def _check_allowlist(self, rule: PolicyRule | None, payload: dict[str, Any]) -> Issue | None:
        """
        Flag top-level payload fields outside the rule's allowlist.

        An empty allowlist means no restriction. Nested fields are not checked.
        """
        if rule is None or not rule.allowlist:
            return None

        allowed = set(rule.allowlist)
        extra = [key for key in payload if key not in allowed]
        if not extra:
            return None
        return Issue.unexpected_fields(extra)
