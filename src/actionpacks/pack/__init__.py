"""
Pack system for ActionPacks.

A pack is a versioned set of tools, each with a JSON Schema input and
side-effect tags. Packs are authored as directories and shipped to hosts as
exported bundles.

Key Components:
    - PackManifest / ToolSpec: Pydantic models for manifest.yaml
    - PackLoader: Load a pack directory and build ToolDescriptors
    - export_bundle / Bundle: Write and read self-contained bundles
    - parse_tool_selector: Split <pack-id>:<tool> selectors
"""

from actionpacks.pack.bundle import BUNDLE_MANIFEST, Bundle, export_bundle
from actionpacks.pack.loader import PackLoader
from actionpacks.pack.manifest import PackManifest, ToolSpec, parse_tool_selector

__all__ = [
    "BUNDLE_MANIFEST",
    "Bundle",
    "PackLoader",
    "PackManifest",
    "ToolSpec",
    "export_bundle",
    "parse_tool_selector",
]
