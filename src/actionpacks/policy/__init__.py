"""
Policy module for ActionPacks.

This module implements the governance core: deriving rules for tools and
deciding, per call, whether a tool invocation may proceed.

Key concepts:
    - SchemaValidator: Validates payloads against a tool's JSON Schema
    - RuleSuggester: Derives a default PolicyRule from side effects and schema
    - PolicyStore: (pack, tool) -> PolicyRule with pack-name fallback lookup
    - DecisionEngine: Combines schema, allowlist, confirmation and rate-limit
      checks into one Verdict

The engine is stateless and deterministic: same tool, rule and call context
always produce the same verdict.
"""

from actionpacks.policy.engine import CallChecks, DecisionEngine
from actionpacks.policy.store import MatchKind, PolicyStore, RuleMatch, split_pack_id
from actionpacks.policy.suggest import RuleSuggester
from actionpacks.policy.validator import SchemaValidator

__all__ = [
    "CallChecks",
    "DecisionEngine",
    "MatchKind",
    "PolicyStore",
    "RuleMatch",
    "RuleSuggester",
    "SchemaValidator",
    "split_pack_id",
]
