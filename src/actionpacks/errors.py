"""
Exception hierarchy for ActionPacks.

All ActionPacks exceptions inherit from ActionPacksError, allowing callers to
catch every ActionPacks-specific failure with a single except clause.

Exception Categories:
    - SchemaCompileError: A tool's input schema is itself malformed
    - PolicyFileError: The policy file cannot be read or is structurally invalid
    - PackError: Pack directories, manifests and referenced files
    - BundleError: Exported bundles
    - PayloadError: Call payloads supplied by the caller

Payload validation problems are NOT exceptions. They are reported as
``Issue`` values inside a ``Verdict``. Only a schema that cannot be compiled
is raised, so callers never mistake "schema unusable" for "payload invalid".
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Schema errors: 1xxx
ERROR_SCHEMA_COMPILE = 1001

# Policy errors: 2xxx
ERROR_POLICY_FILE_INVALID = 2001

# Pack errors: 3xxx
ERROR_PACK_NOT_FOUND = 3001
ERROR_PACK_MANIFEST_INVALID = 3002
ERROR_PACK_MISSING_FILE = 3003
ERROR_TOOL_NOT_FOUND = 3004
ERROR_TOOL_SELECTOR_INVALID = 3005

# Bundle errors: 4xxx
ERROR_BUNDLE_INVALID = 4001

# Payload errors: 5xxx
ERROR_PAYLOAD_INVALID = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ActionPacksError(Exception):
    """
    Base exception for all ActionPacks errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Schema Errors
# =============================================================================


@dataclass
class SchemaCompileError(ActionPacksError):
    """
    Raised when a tool's input schema cannot be compiled.

    This halts evaluation of the tool before any payload check runs.

    Attributes:
        tool: Name of the tool whose schema is broken
        pack: Pack identifier the tool belongs to
        schema_error: Message from the schema checker
    """

    tool: str = ""
    pack: str = ""
    schema_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            target = f"{self.pack}:{self.tool}" if self.pack else (self.tool or "tool")
            self.message = f"Schema for {target} is malformed: {self.schema_error}"
        if self.code == 0:
            self.code = ERROR_SCHEMA_COMPILE
        if not self.suggestion:
            self.suggestion = "Fix the tool's JSON Schema document; payloads were not checked"
        self.context.update({
            "tool": self.tool,
            "pack": self.pack,
            "schema_error": self.schema_error,
        })


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyFileError(ActionPacksError):
    """Raised when a policy file cannot be loaded or saved."""

    path: str = ""
    validation_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid policy file {self.path}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_POLICY_FILE_INVALID
        self.context.update({
            "path": self.path,
            "validation_error": self.validation_error,
        })


# =============================================================================
# Pack Errors
# =============================================================================


@dataclass
class PackError(ActionPacksError):
    """
    Base class for pack errors.

    Attributes:
        pack_name: Name (or directory name) of the pack
        pack_path: Filesystem location of the pack
    """

    pack_name: str = ""
    pack_path: str = ""

    def __post_init__(self) -> None:
        self.context.update({
            "pack_name": self.pack_name,
            "pack_path": self.pack_path,
        })


@dataclass
class PackNotFoundError(PackError):
    """Raised when a pack directory doesn't exist."""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Pack not found: {self.pack_path or self.pack_name}"
        if self.code == 0:
            self.code = ERROR_PACK_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Provide the path to a directory containing manifest.yaml"
        super().__post_init__()


@dataclass
class PackManifestError(PackError):
    """Raised when manifest.yaml is invalid."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid manifest for pack {self.pack_name}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_PACK_MANIFEST_INVALID
        super().__post_init__()
        self.context["validation_error"] = self.validation_error


@dataclass
class PackMissingFileError(PackError):
    """Raised when a file referenced by the pack doesn't exist."""

    missing_file: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Pack {self.pack_name} is missing {self.missing_file}"
        if self.code == 0:
            self.code = ERROR_PACK_MISSING_FILE
        super().__post_init__()
        self.context["missing_file"] = self.missing_file


@dataclass
class ToolNotFoundError(ActionPacksError):
    """Raised when a tool isn't declared by the pack or bundle."""

    tool: str = ""
    pack: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Tool {self.tool} not found in {self.pack}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the tool name with `ap pack tools`"
        self.context.update({"tool": self.tool, "pack": self.pack})


@dataclass
class ToolSelectorError(ActionPacksError):
    """Raised when a tool selector isn't of the form <pack-id>:<tool>."""

    selector: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'Invalid tool selector "{self.selector}"'
        if self.code == 0:
            self.code = ERROR_TOOL_SELECTOR_INVALID
        if not self.suggestion:
            self.suggestion = "Use <packId>:<toolName>, e.g. issues-basic@1.0.0:create_issue"
        self.context["selector"] = self.selector


# =============================================================================
# Bundle / Payload Errors
# =============================================================================


@dataclass
class BundleError(ActionPacksError):
    """Raised when an exported bundle is missing or malformed."""

    bundle_path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid bundle {self.bundle_path}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_BUNDLE_INVALID
        self.context.update({
            "bundle_path": self.bundle_path,
            "reason": self.reason,
        })


@dataclass
class PayloadError(ActionPacksError):
    """Raised when a call payload cannot be read or is not a JSON object."""

    source: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to read payload {self.source}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_PAYLOAD_INVALID
        self.context.update({
            "source": self.source,
            "reason": self.reason,
        })
