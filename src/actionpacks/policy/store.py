"""
Policy store: the mapping from (pack, tool) to a PolicyRule.

Rules are kept in insertion order, one per (pack, tool). Lookup is two-phase:
    1. Exact match on (pack id, tool name)
    2. Fallback: the first rule for the same tool whose pack *name* matches,
       ignoring the version ("issues-basic@1.0.0" serves "issues-basic@1.1.0")
A miss is not an error; the engine treats it as permissive defaults.

The store is also responsible for reading and writing the policy file
(YAML, or JSON when the path ends in .json).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import yaml
from pydantic import ValidationError

from actionpacks.errors import PolicyFileError
from actionpacks.schema import PolicyFile, PolicyRule, load_policy_file


logger = logging.getLogger(__name__)


def split_pack_id(pack_id: str) -> tuple[str, str | None]:
    """
    Split a pack identifier into (name, version).

    Examples:
        "issues-basic@1.0.0" -> ("issues-basic", "1.0.0")
        "issues-basic" -> ("issues-basic", None)
        "@acme/issues@2.0.0" -> ("@acme/issues", "2.0.0")
    """
    name, sep, version = pack_id.rpartition("@")
    if not sep or not name:
        return pack_id, None
    return name, version


class MatchKind(str, Enum):
    """How a rule was found for a (pack, tool) pair."""

    EXACT = "exact"
    PACK_NAME = "pack-name"
    NONE = "none"


@dataclass(frozen=True)
class RuleMatch:
    """Result of a rule lookup."""

    rule: PolicyRule | None
    kind: MatchKind

    @property
    def found(self) -> bool:
        return self.rule is not None


class PolicyStore:
    """
    Ordered collection of policy rules with two-phase lookup.

    Usage:
        store = PolicyStore.load("policies.yaml", missing_ok=True)
        store.upsert(rule)
        store.save("policies.yaml")
        rule = store.lookup("issues-basic@1.0.0", "create_issue")
    """

    def __init__(self, rules: Iterable[PolicyRule] = ()) -> None:
        self._rules: list[PolicyRule] = []
        self._index: dict[tuple[str, str], int] = {}
        for rule in rules:
            self.upsert(rule)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[PolicyRule]:
        return iter(list(self._rules))

    @property
    def rules(self) -> list[PolicyRule]:
        return list(self._rules)

    def upsert(self, rule: PolicyRule) -> None:
        """Insert a rule, replacing any existing rule for the same (pack, tool) in place."""
        position = self._index.get(rule.key)
        if position is None:
            self._index[rule.key] = len(self._rules)
            self._rules.append(rule)
        else:
            self._rules[position] = rule

    def get(self, pack: str, tool: str) -> PolicyRule | None:
        """Exact-match lookup only."""
        position = self._index.get((pack, tool))
        return None if position is None else self._rules[position]

    def resolve(self, pack_id: str, tool_name: str) -> RuleMatch:
        """
        Find the rule that governs a tool, reporting how it was matched.

        Args:
            pack_id: Pack identifier of the tool (name@version)
            tool_name: Tool name

        Returns:
            RuleMatch with the rule (or None) and the match kind
        """
        exact = self.get(pack_id, tool_name)
        if exact is not None:
            return RuleMatch(rule=exact, kind=MatchKind.EXACT)

        pack_name, _ = split_pack_id(pack_id)
        for rule in self._rules:
            if rule.tool == tool_name and split_pack_id(rule.pack)[0] == pack_name:
                logger.debug(
                    "Rule for %s:%s matched by pack name via %s",
                    pack_id,
                    tool_name,
                    rule.pack,
                )
                return RuleMatch(rule=rule, kind=MatchKind.PACK_NAME)

        return RuleMatch(rule=None, kind=MatchKind.NONE)

    def lookup(self, pack_id: str, tool_name: str) -> PolicyRule | None:
        """Find the rule that governs a tool, or None."""
        return self.resolve(pack_id, tool_name).rule

    def snapshot(self) -> PolicyStore:
        """Independent copy for evaluating calls without seeing later edits."""
        return PolicyStore(self._rules)

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_policy_file(self) -> PolicyFile:
        return PolicyFile(rules=list(self._rules))

    def to_records(self) -> list[dict]:
        """Rules as plain rule records (pack, tool, confirm, allowlist, rateLimit)."""
        return [rule.to_record() for rule in self._rules]

    @classmethod
    def load(cls, path: Path | str, missing_ok: bool = False) -> PolicyStore:
        """
        Load a policy file.

        Args:
            path: Path to the policy file (.yaml/.yml/.json)
            missing_ok: Return an empty store if the file doesn't exist

        Raises:
            PolicyFileError: If the file is missing (and not missing_ok),
                unparsable, or structurally invalid
        """
        path = Path(path)
        if not path.exists():
            if missing_ok:
                return cls()
            raise PolicyFileError(
                path=str(path),
                validation_error="file not found",
                suggestion="Create one with `ap policy suggest`",
            )

        try:
            policy_file = load_policy_file(path)
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PolicyFileError(path=str(path), validation_error=f"unparsable: {e}") from e
        except ValidationError as e:
            raise PolicyFileError(path=str(path), validation_error=str(e)) from e

        logger.debug("Loaded %d rule(s) from %s", len(policy_file.rules), path)
        return cls(policy_file.rules)

    def save(self, path: Path | str) -> None:
        """
        Write the store to a policy file, creating parent directories.

        Raises:
            PolicyFileError: If the file cannot be written
        """
        path = Path(path)
        data = {
            "version": self.to_policy_file().version,
            "rules": self.to_records(),
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.suffix.lower() == ".json":
                path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
            else:
                path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        except OSError as e:
            raise PolicyFileError(path=str(path), validation_error=f"cannot write: {e}") from e

        logger.debug("Saved %d rule(s) to %s", len(self._rules), path)
