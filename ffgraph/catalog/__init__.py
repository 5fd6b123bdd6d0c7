"""Node schema catalog: registry and capability manifest loading."""

from .registry import (
    NodeCategory,
    NodeRegistry,
    NodeSchema,
    OptionSchema,
    OptionType,
    get_registry,
)
from .manifest_loader import load_builtin_manifests, load_manifest, load_manifest_data
from .scanner import CapabilityScanner, scan_into, write_manifest

__all__ = [
    "CapabilityScanner",
    "NodeCategory",
    "NodeRegistry",
    "NodeSchema",
    "OptionSchema",
    "OptionType",
    "get_registry",
    "load_builtin_manifests",
    "load_manifest",
    "load_manifest_data",
    "scan_into",
    "write_manifest",
]
