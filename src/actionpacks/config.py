"""
Governance settings for ActionPacks.

The rule suggester relies on two keyword heuristics: side-effect verbs that
make a tool require confirmation, and field-name markers that keep a property
out of an inferred allowlist. Both live here as named defaults and can be
overridden per deployment through a YAML settings file:

    confirm_side_effects: [send, create, update, delete, write, post, publish]
    sensitive_field_markers: [password, secret, token, session]
    default_max_calls: 50
    default_window_sec: 300
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Side-effect tags that make a tool require confirmation (matched case-insensitively)
CONFIRM_SIDE_EFFECTS: frozenset[str] = frozenset(
    {"send", "create", "update", "delete", "write", "post"}
)

# Substrings that mark a property name as sensitive (matched case-insensitively)
SENSITIVE_FIELD_MARKERS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "apikey",
    "api_key",
    "auth",
    "bearer",
    "credential",
)

DEFAULT_MAX_CALLS = 20
DEFAULT_WINDOW_SEC = 60


class GovernanceSettings(BaseModel):
    """
    Tunable heuristics used when suggesting policy rules.

    Attributes:
        confirm_side_effects: Side-effect tags that require confirmation
        sensitive_field_markers: Substrings that exclude a field from allowlists
        default_max_calls: Rate limit applied to suggested rules
        default_window_sec: Rate-limit window applied to suggested rules
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    confirm_side_effects: frozenset[str] = Field(
        default=CONFIRM_SIDE_EFFECTS,
        description="Side-effect tags that require confirmation",
    )
    sensitive_field_markers: tuple[str, ...] = Field(
        default=SENSITIVE_FIELD_MARKERS,
        description="Substrings that exclude a property from inferred allowlists",
    )
    default_max_calls: int = Field(
        default=DEFAULT_MAX_CALLS,
        description="Maximum calls per window for suggested rules",
        ge=1,
    )
    default_window_sec: int = Field(
        default=DEFAULT_WINDOW_SEC,
        description="Rate-limit window in seconds for suggested rules",
        ge=1,
    )

    @field_validator("confirm_side_effects")
    @classmethod
    def lowercase_side_effects(cls, v: frozenset[str]) -> frozenset[str]:
        """Normalize side-effect keywords so matching is case-insensitive."""
        return frozenset(s.lower() for s in v)

    @field_validator("sensitive_field_markers")
    @classmethod
    def lowercase_markers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Normalize markers so matching is case-insensitive."""
        return tuple(m.lower() for m in v if m)


def load_settings(path: Path | str | None = None) -> GovernanceSettings:
    """
    Load governance settings from a YAML file.

    Args:
        path: Path to the YAML file, or None for the built-in defaults

    Returns:
        Validated GovernanceSettings

    Raises:
        FileNotFoundError: If the file doesn't exist
        UnicodeDecodeError: If the file isn't UTF-8
        ValidationError: If the YAML doesn't match the model
    """
    if path is None:
        return GovernanceSettings()

    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return GovernanceSettings.model_validate(data or {})
