"""
ActionPacks - Governance for tool calls described by JSON Schema.

ActionPacks decides whether a request to invoke a tool may proceed.
It provides:
- Rule suggestion from a tool's side effects and input schema
- Deterministic per-call verdicts (ok, blocked, needs-confirmation, rate-limited)
- Pack manifests, policy files and self-contained bundles for hosts

Example usage:
    $ ap policy suggest packs/issues-basic --policy policies.yaml
    $ ap export packs/issues-basic --policy policies.yaml --out dist/it-ops
    $ ap call --bundle dist/it-ops --tool issues-basic@1.0.0:create_issue --file ok.json
"""

__version__ = "0.1.0"
__author__ = "ActionPacks Contributors"

__all__ = [
    "__version__",
    "__author__",
]
