"""Capability manifest loader.

A capability manifest lists what an FFmpeg build offers, one entry per
filter, codec or format plus one entry per group of general flags::

    nodes:
      - name: scale
        is_av_option: true
        category: "..FV......."
        pcategory: filters
        desc: Scale the input video size and/or convert the image format.
        options:
          - {flag: w, type: "<string>", desc: Output video width}
          - {flag: h, type: "<string>", desc: Output video height}
      - name: Main options
        is_av_option: false
        pcategory: general
        options:
          - {flag: -t, type: "<duration>", desc: Duration}
          - {flag: -y, no_args: true, desc: Overwrite output files}

Manifests may be YAML or JSON, either a bare list of entries or a mapping
with a ``nodes`` list. The shipped manifests live in ``manifests/``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import BaseModel, Field, ValidationError

from .registry import (
    NodeCategory,
    NodeRegistry,
    NodeSchema,
    OptionSchema,
    OptionType,
    general_path,
    schema_path,
)

logger = logging.getLogger("ffgraph")

BUILTIN_MANIFEST_DIR = Path(__file__).parent / "manifests"
_MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")


class ManifestOption(BaseModel):
    """An option line of a manifest entry."""
    flag: str
    type: str = "<string>"
    category: str = ""
    desc: str = ""
    enum_vals: list[str] = Field(default_factory=list)
    no_args: bool = False


class ManifestEntry(BaseModel):
    """A filter, codec, format or general-flag group."""
    name: str
    is_av_option: bool = True
    category: str = ""
    pcategory: str
    desc: str = ""
    full_desc: list[str] = Field(default_factory=list)
    options: list[ManifestOption] = Field(default_factory=list)


def _to_option(opt: ManifestOption) -> OptionSchema:
    return OptionSchema(
        flag=opt.flag,
        type=OptionType.parse(opt.type),
        description=opt.desc,
        category=opt.category,
        enum_vals=list(opt.enum_vals),
        no_args=opt.no_args,
    )


def entry_to_schemas(entry: ManifestEntry) -> list[NodeSchema]:
    """Convert a manifest entry into the schemas it registers.

    AV-option entries (filters, codecs, formats) become one schema each.
    General entries become one schema per flag, grouped under the entry's
    name.
    """
    try:
        category = NodeCategory(entry.pcategory)
    except ValueError:
        logger.warning("Skipping manifest entry %s: unknown category '%s'", entry.name, entry.pcategory)
        return []

    if not entry.is_av_option or category == NodeCategory.GENERAL:
        return [
            NodeSchema(
                name=opt.flag,
                category=NodeCategory.GENERAL,
                path=general_path(entry.name, opt.flag),
                description=opt.desc,
                options=[_to_option(opt)],
            )
            for opt in entry.options
        ]

    return [
        NodeSchema(
            name=entry.name,
            category=category,
            path=schema_path(category, entry.name, entry.category),
            description=entry.desc,
            media=entry.category,
            options=[_to_option(opt) for opt in entry.options],
            full_description=list(entry.full_desc),
        )
    ]


def _entries_from(data: Any, source: str) -> Iterable[dict]:
    if isinstance(data, dict):
        data = data.get("nodes")
    if not isinstance(data, list):
        logger.warning("Invalid manifest %s: expected a list of nodes", source)
        return []
    return data


def load_manifest_data(data: Any, registry: NodeRegistry, source: str = "<data>") -> int:
    """Register every valid entry of already-decoded manifest data.

    Returns:
        Number of schemas registered.
    """
    count = 0
    for raw in _entries_from(data, source):
        if not isinstance(raw, dict):
            logger.warning("Skipping manifest entry in %s: not a mapping", source)
            continue
        try:
            entry = ManifestEntry(**raw)
        except ValidationError as exc:
            logger.warning("Skipping invalid manifest entry in %s: %s", source, exc)
            continue
        for schema in entry_to_schemas(entry):
            registry.register(schema)
            count += 1
    return count


def load_manifest(path: str | Path, registry: NodeRegistry) -> int:
    """Load a manifest file, or every manifest in a directory.

    Args:
        path: A ``.yaml``/``.yml``/``.json`` file or a directory of them.
        registry: Registry to populate.

    Returns:
        Number of schemas registered. Unreadable files log a warning and
        contribute nothing.
    """
    path = Path(path)
    if path.is_dir():
        return sum(
            load_manifest(child, registry)
            for child in sorted(path.iterdir())
            if child.suffix.lower() in _MANIFEST_SUFFIXES
        )

    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.suffix.lower() == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Failed to read manifest %s: %s", path, exc)
        return 0

    count = load_manifest_data(data, registry, source=str(path))
    logger.info("Loaded %d node schemas from %s", count, path)
    return count


def load_builtin_manifests(registry: NodeRegistry) -> int:
    """Load the manifests shipped with the package."""
    return load_manifest(BUILTIN_MANIFEST_DIR, registry)
