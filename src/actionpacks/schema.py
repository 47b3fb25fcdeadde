"""
Schema definitions for ActionPacks.

This module defines the Pydantic models shared by the policy engine and its
collaborators:
- ToolDescriptor: A tool's identity, input schema and side-effect tags
- PolicyRule/ConfirmSpec/RateLimit: The governance rule attached to one tool
- CallContext: Everything the engine needs to know about one call attempt
- Issue/Verdict: The outcome of evaluating a call

Design Decisions:
    - Models are immutable (frozen=True) and reject unknown fields
    - PolicyRule serializes to the rule record exchanged with policy-store
      consumers (pack, tool, confirm, allowlist, rateLimit)
    - Rate-limit values below 1 are clamped, not rejected
    - Verdicts are built through named constructors so every status carries
      exactly the fields it needs
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from actionpacks.config import DEFAULT_MAX_CALLS, DEFAULT_WINDOW_SEC


# =============================================================================
# Enums
# =============================================================================


class IssueKind(str, Enum):
    """Which check produced an issue."""

    SCHEMA = "schema"
    ALLOWLIST = "allowlist"


class VerdictStatus(str, Enum):
    """The single outcome of evaluating one call."""

    OK = "ok"
    BLOCKED = "blocked"
    NEEDS_CONFIRMATION = "needs-confirmation"
    RATE_LIMITED = "rate-limited"


# Process exit codes for each verdict. Blocked and needs-confirmation must differ.
EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_NEEDS_CONFIRMATION = 2
EXIT_RATE_LIMITED = 3
EXIT_SCHEMA_ERROR = 4

VERDICT_EXIT_CODES: dict[VerdictStatus, int] = {
    VerdictStatus.OK: EXIT_OK,
    VerdictStatus.BLOCKED: EXIT_BLOCKED,
    VerdictStatus.NEEDS_CONFIRMATION: EXIT_NEEDS_CONFIRMATION,
    VerdictStatus.RATE_LIMITED: EXIT_RATE_LIMITED,
}


# =============================================================================
# Tool Models
# =============================================================================


class ToolDescriptor(BaseModel):
    """
    Metadata for one tool, as consumed by the suggester and the engine.

    Attributes:
        pack_id: Identifier of the pack the tool belongs to (name@version)
        name: Tool name, unique within its pack
        input_schema: Resolved JSON Schema document (None if the tool has none)
        side_effects: Declared side-effect tags (e.g. {"create", "send"})
        explicit_allowlist: Allowlist declared by the pack author, if any
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pack_id: str = Field(..., description="Pack identifier", min_length=1)
    name: str = Field(..., description="Tool name", min_length=1)
    input_schema: dict[str, Any] | None = Field(
        default=None,
        description="Resolved JSON Schema for the tool input",
    )
    side_effects: frozenset[str] = Field(
        default_factory=frozenset,
        description="Declared side-effect tags",
    )
    explicit_allowlist: tuple[str, ...] | None = Field(
        default=None,
        description="Allowlist declared by the pack author",
    )

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the tool: (pack_id, name)."""
        return (self.pack_id, self.name)

    @property
    def selector(self) -> str:
        """The <pack-id>:<tool> form used on the command line."""
        return f"{self.pack_id}:{self.name}"


# =============================================================================
# Policy Models
# =============================================================================


class RateLimit(BaseModel):
    """
    Rolling-window call limit.

    Attributes:
        max_calls: Maximum admitted calls per window (record key: maxCalls)
        window_sec: Window length in seconds (record key: windowSec)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    max_calls: int = Field(
        default=DEFAULT_MAX_CALLS,
        alias="maxCalls",
        description="Maximum calls per window",
    )
    window_sec: int = Field(
        default=DEFAULT_WINDOW_SEC,
        alias="windowSec",
        description="Window length in seconds",
    )

    @field_validator("max_calls", "window_sec")
    @classmethod
    def clamp_positive(cls, v: int) -> int:
        """Clamp non-positive values to 1."""
        return max(1, v)


class ConfirmSpec(BaseModel):
    """Whether a human must confirm the call, and what to ask them."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    required: bool = Field(default=False, description="Whether confirmation is required")
    message: str | None = Field(default=None, description="Prompt shown to the user")


class PolicyRule(BaseModel):
    """
    Governance rule for one tool.

    Attributes:
        pack: Pack identifier the rule applies to
        tool: Tool name the rule applies to
        description: Optional description copied from the tool schema
        confirm: Confirmation requirement
        allowlist: Permitted top-level payload fields (empty = unrestricted)
        rate_limit: Rolling-window limit (record key: rateLimit)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    pack: str = Field(..., description="Pack identifier", min_length=1)
    tool: str = Field(..., description="Tool name", min_length=1)
    description: str | None = Field(default=None, description="Rule description")
    confirm: ConfirmSpec = Field(
        default_factory=ConfirmSpec,
        description="Confirmation requirement",
    )
    allowlist: list[str] = Field(
        default_factory=list,
        description="Permitted payload fields (empty = no restriction)",
    )
    rate_limit: RateLimit = Field(
        default_factory=RateLimit,
        alias="rateLimit",
        description="Rolling-window call limit",
    )

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the rule: (pack, tool)."""
        return (self.pack, self.tool)

    @property
    def confirm_required(self) -> bool:
        return self.confirm.required

    @property
    def confirm_message(self) -> str:
        """Confirmation prompt, defaulting to 'Proceed with <tool>?'."""
        return self.confirm.message or f"Proceed with {self.tool}?"

    def to_record(self) -> dict[str, Any]:
        """Serialize to the rule record (camelCase keys, no null fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PolicyFile(BaseModel):
    """
    On-disk container for policy rules.

    Attributes:
        version: File format version
        rules: Rules in file order (order matters for fallback lookups)
    """

    model_config = ConfigDict(extra="forbid")

    version: int = Field(default=1, description="Policy file format version")
    rules: list[PolicyRule] = Field(default_factory=list, description="Policy rules")


# =============================================================================
# Runtime Models
# =============================================================================


class CallContext(BaseModel):
    """
    Per-call input to the decision engine.

    The caller owns the rolling-window count; the engine never stores or
    increments it.

    Attributes:
        payload: The call's JSON object payload
        confirmation_granted: Whether the user already confirmed the call
        calls_already_made_in_window: Admitted calls in the current window
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: dict[str, Any] = Field(default_factory=dict, description="Call payload")
    confirmation_granted: bool = Field(default=False, description="Confirmation given")
    calls_already_made_in_window: int = Field(
        default=0,
        description="Calls already admitted in the current window",
        ge=0,
    )


class Issue(BaseModel):
    """
    One payload defect found by the schema or allowlist check.

    Attributes:
        kind: Which check produced the issue
        pointer: JSON pointer to the offending location ("/" for the root)
        message: Human-readable description
        field_names: Offending field names (allowlist issues only)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: IssueKind = Field(..., description="Check that produced the issue")
    pointer: str = Field(default="/", description="JSON pointer to the location")
    message: str = Field(..., description="Human-readable description")
    field_names: tuple[str, ...] = Field(default=(), description="Offending field names")

    @classmethod
    def schema_violation(cls, pointer: str, message: str) -> "Issue":
        """Create a schema issue."""
        return cls(kind=IssueKind.SCHEMA, pointer=pointer, message=message)

    @classmethod
    def unexpected_fields(cls, fields: list[str]) -> "Issue":
        """Create the allowlist issue for fields outside the allowlist."""
        return cls(
            kind=IssueKind.ALLOWLIST,
            message=f"unexpected fields {', '.join(fields)}",
            field_names=tuple(fields),
        )

    def __str__(self) -> str:
        if self.kind == IssueKind.ALLOWLIST:
            return f"allowlist: {self.message}"
        return f"schema: {self.pointer} {self.message}"


class Verdict(BaseModel):
    """
    The engine's single decision for one call attempt.

    Use the named constructors rather than building instances directly.

    Attributes:
        status: Outcome of the evaluation
        issues: Schema and allowlist issues (blocked only)
        message: Confirmation prompt (needs-confirmation only)
        attempted: Position of this call in the window (rate-limited only)
        max_calls: Configured limit (rate-limited only)
        window_sec: Configured window (rate-limited only)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: VerdictStatus = Field(..., description="Outcome of the evaluation")
    issues: tuple[Issue, ...] = Field(default=(), description="Blocking issues")
    message: str | None = Field(default=None, description="Confirmation prompt")
    attempted: int | None = Field(default=None, description="Attempted call number")
    max_calls: int | None = Field(default=None, description="Configured limit")
    window_sec: int | None = Field(default=None, description="Configured window")

    @classmethod
    def ok(cls) -> "Verdict":
        """The call may proceed."""
        return cls(status=VerdictStatus.OK)

    @classmethod
    def blocked(cls, issues: list[Issue]) -> "Verdict":
        """The payload failed the schema or allowlist check."""
        return cls(status=VerdictStatus.BLOCKED, issues=tuple(issues))

    @classmethod
    def needs_confirmation(cls, message: str) -> "Verdict":
        """The call is withheld until the user confirms it."""
        return cls(status=VerdictStatus.NEEDS_CONFIRMATION, message=message)

    @classmethod
    def rate_limited(cls, attempted: int, max_calls: int, window_sec: int) -> "Verdict":
        """Admitting the call would exceed the rate limit."""
        return cls(
            status=VerdictStatus.RATE_LIMITED,
            attempted=attempted,
            max_calls=max_calls,
            window_sec=window_sec,
        )

    @property
    def allowed(self) -> bool:
        return self.status == VerdictStatus.OK

    @property
    def exit_code(self) -> int:
        """Process exit code a CLI should use for this verdict."""
        return VERDICT_EXIT_CODES[self.status]

    @property
    def reason(self) -> str:
        """One-line human-readable explanation."""
        if self.status == VerdictStatus.BLOCKED:
            return "; ".join(str(issue) for issue in self.issues)
        if self.status == VerdictStatus.NEEDS_CONFIRMATION:
            return f"Confirmation required: {self.message}"
        if self.status == VerdictStatus.RATE_LIMITED:
            return (
                f"Rate limit exceeded: call {self.attempted} of max {self.max_calls} "
                f"per {self.window_sec}s"
            )
        return "Call accepted"


# =============================================================================
# Loading Helpers
# =============================================================================


def load_document(path: Path | str) -> Any:
    """
    Load a JSON or YAML document, chosen by file suffix.

    Files ending in .json are parsed as JSON; everything else as YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError / yaml.YAMLError: If the content can't be parsed
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def load_policy_file(path: Path | str) -> PolicyFile:
    """
    Load a policy file (YAML or JSON).

    Args:
        path: Path to the policy file

    Returns:
        Validated PolicyFile object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the content doesn't match the schema
    """
    data = load_document(path)
    return PolicyFile.model_validate(data or {})
