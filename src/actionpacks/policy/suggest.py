"""
Rule suggestion for ActionPacks tools.

Derives a default PolicyRule from what a tool declares about itself:
    1. Confirmation is required when any side-effect tag is a confirm verb
       (send, create, update, delete, write, post by default)
    2. The allowlist is the pack author's explicit list, or else the schema's
       top-level properties minus sensitive-looking names
    3. The rate limit is copied from the caller's defaults
    4. The description is copied from the schema

Suggestion is a pure function of (tool, defaults, settings), so re-running it
produces the same rule and overwriting a stored rule is idempotent.
"""

import logging
from collections.abc import Iterable
from typing import Any

from actionpacks.config import GovernanceSettings
from actionpacks.policy.store import PolicyStore
from actionpacks.schema import ConfirmSpec, PolicyRule, RateLimit, ToolDescriptor


logger = logging.getLogger(__name__)


class RuleSuggester:
    """
    Builds default policy rules from tool metadata.

    Usage:
        suggester = RuleSuggester()
        rule = suggester.suggest(tool, RateLimit(max_calls=20, window_sec=60))

    Attributes:
        settings: Keyword heuristics and default rate limit
    """

    def __init__(self, settings: GovernanceSettings | None = None) -> None:
        self.settings = settings or GovernanceSettings()

    def requires_confirmation(self, side_effects: Iterable[str]) -> bool:
        """True if any side-effect tag is a confirm verb (case-insensitive)."""
        tags = {str(s).lower() for s in side_effects}
        return not tags.isdisjoint(self.settings.confirm_side_effects)

    def is_sensitive_field(self, name: str) -> bool:
        """True if a property name contains any sensitive marker as a substring."""
        lowered = name.lower()
        return any(marker in lowered for marker in self.settings.sensitive_field_markers)

    def infer_allowlist(self, tool: ToolDescriptor) -> list[str]:
        """
        Determine the allowlist for a tool.

        An explicit, non-empty allowlist is used verbatim. Otherwise the
        schema's property names are used in declaration order, excluding
        sensitive ones. A schema without properties yields an empty
        (unrestricted) allowlist.
        """
        if tool.explicit_allowlist:
            return list(tool.explicit_allowlist)

        properties = _schema_properties(tool.input_schema)
        allowlist = []
        for name in properties:
            if self.is_sensitive_field(name):
                logger.debug("Excluding sensitive field %r from %s allowlist", name, tool.selector)
                continue
            allowlist.append(name)
        return allowlist

    def default_rate_limit(self) -> RateLimit:
        return RateLimit(
            max_calls=self.settings.default_max_calls,
            window_sec=self.settings.default_window_sec,
        )

    def suggest(self, tool: ToolDescriptor, defaults: RateLimit | None = None) -> PolicyRule:
        """
        Suggest a rule for one tool.

        Args:
            tool: Tool metadata
            defaults: Rate limit to copy into the rule (settings default if None)

        Returns:
            The suggested PolicyRule
        """
        rate_limit = defaults if defaults is not None else self.default_rate_limit()
        description = None
        if isinstance(tool.input_schema, dict):
            raw = tool.input_schema.get("description")
            if isinstance(raw, str):
                description = raw

        return PolicyRule(
            pack=tool.pack_id,
            tool=tool.name,
            description=description,
            confirm=ConfirmSpec(
                required=self.requires_confirmation(tool.side_effects),
                message=f"Proceed with {tool.name}?",
            ),
            allowlist=self.infer_allowlist(tool),
            rate_limit=RateLimit(max_calls=rate_limit.max_calls, window_sec=rate_limit.window_sec),
        )

    def suggest_into(
        self,
        store: PolicyStore,
        tools: Iterable[ToolDescriptor],
        defaults: RateLimit | None = None,
    ) -> list[PolicyRule]:
        """
        Suggest a rule for every tool and write it into a store.

        Existing rules for the same (pack, tool) are overwritten.

        Returns:
            The suggested rules, in tool order
        """
        rules = []
        for tool in tools:
            rule = self.suggest(tool, defaults)
            store.upsert(rule)
            rules.append(rule)
        logger.debug("Suggested %d rule(s)", len(rules))
        return rules


def _schema_properties(schema: dict[str, Any] | None) -> dict[str, Any]:
    """Return the schema's top-level properties mapping, or {} if absent."""
    if not isinstance(schema, dict):
        return {}
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return {}
    return properties
