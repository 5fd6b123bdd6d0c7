"""Registry of node schemas built from FFmpeg's capability listing."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger("ffgraph")

PATH_ROOT = "ffmpeg"


class NodeCategory(str, Enum):
    """Top-level schema categories, named after FFmpeg's ``-h`` sections."""
    FILTERS = "filters"
    ENCODERS = "encoders"
    DECODERS = "decoders"
    MUXERS = "muxers"
    DEMUXERS = "demuxers"
    GENERAL = "general"


class OptionType(str, Enum):
    """Value types of FFmpeg options, as printed by ``ffmpeg -h``."""
    ENUM = "<enum>"
    BOOL = "<bool>"
    BOOLEAN = "<boolean>"
    INT = "<int>"
    INT64 = "<int64>"
    UINT64 = "<uint64>"
    FLOAT = "<float>"
    DOUBLE = "<double>"
    STRING = "<string>"
    RATIONAL = "<rational>"
    DURATION = "<duration>"
    IMAGE_SIZE = "<image_size>"
    PIX_FMT = "<pix_fmt>"
    SAMPLE_FMT = "<sample_fmt>"
    COLOR = "<color>"
    CHANNEL_LAYOUT = "<channel_layout>"
    FLAGS = "<flags>"

    @classmethod
    def parse(cls, value: str) -> "OptionType":
        """Map a type tag to its enum value, defaulting to ``<string>``."""
        try:
            return cls(value)
        except ValueError:
            return cls.STRING


_INT_TYPES = (OptionType.INT, OptionType.INT64, OptionType.UINT64)
_FLOAT_TYPES = (OptionType.FLOAT, OptionType.DOUBLE)
_BOOL_VALUES = ("0", "1", "true", "false")

# Search order for media sub-paths under each category.
_CODEC_SEARCH = ("video/", "audio/", "all/", "")
_FORMAT_SEARCH = ("", "video/", "audio/", "all/")


@dataclass
class OptionSchema:
    """One option a node exposes as a property."""
    flag: str
    type: OptionType = OptionType.STRING
    description: str = ""
    category: str = ""
    enum_vals: list[str] = field(default_factory=list)
    no_args: bool = False

    def validate(self, value: str) -> tuple[bool, Optional[str]]:
        """Check a textual value against the option type.

        Expressions are common in option values, so only enums, booleans
        and plain numeric types are checked.

        Returns:
            Tuple of (is_valid, error_message).
        """
        if value == "" or value in self.enum_vals:
            return True, None

        if self.type == OptionType.ENUM:
            if self.enum_vals:
                return False, f"Option '{self.flag}' must be one of {self.enum_vals}"

        elif self.type in _INT_TYPES:
            try:
                int(value)
            except ValueError:
                return False, f"Option '{self.flag}' must be an integer"

        elif self.type in _FLOAT_TYPES:
            try:
                float(value)
            except ValueError:
                return False, f"Option '{self.flag}' must be a number"

        elif self.type in (OptionType.BOOL, OptionType.BOOLEAN):
            if value.lower() not in _BOOL_VALUES:
                return False, f"Option '{self.flag}' must be a boolean"

        return True, None


@dataclass
class NodeSchema:
    """Definition of a node type registered under a category path."""
    name: str
    category: NodeCategory
    path: str
    description: str = ""
    media: str = ""
    options: list[OptionSchema] = field(default_factory=list)
    full_description: list[str] = field(default_factory=list)
    _search_text: str = field(init=False, repr=False, default="")

    def __post_init__(self):
        parts = [self.name, self.path, self.description]
        self._search_text = " ".join(parts).lower()

    def get_option(self, flag: str) -> Optional[OptionSchema]:
        """Get an option definition by flag."""
        for opt in self.options:
            if opt.flag == flag:
                return opt
        return None


def media_subpath(flag_category: str) -> str:
    """Derive the media sub-path from an AVOption flag category string.

    ``flag_category`` is the column FFmpeg prints beside each option, e.g.
    ``E..V.......`` for a video encoder option.
    """
    if "VA" in flag_category:
        return "all/"
    if "V" in flag_category:
        return "video/"
    if "A" in flag_category:
        return "audio/"
    if "E" in flag_category or "D" in flag_category:
        return "all/"
    return ""


def schema_path(category: NodeCategory, name: str, flag_category: str = "") -> str:
    """Build the category path a schema is registered under."""
    prefix = "subtitles/" if "S" in flag_category else ""
    return f"{PATH_ROOT}/{category.value}/{prefix}{media_subpath(flag_category)}{name}"


def general_path(group: str, flag: str) -> str:
    return f"{PATH_ROOT}/{NodeCategory.GENERAL.value}/{group}/{flag}"


class NodeRegistry:
    """Central registry of node schemas keyed by category path."""

    def __init__(self):
        self._schemas: dict[str, NodeSchema] = {}
        self._by_category: dict[NodeCategory, list[NodeSchema]] = {
            cat: [] for cat in NodeCategory
        }

    def __contains__(self, path: str) -> bool:
        return path in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def register(self, schema: NodeSchema) -> None:
        """Register a schema, replacing any previous one at the same path.

        Args:
            schema: Schema to register.
        """
        previous = self._schemas.get(schema.path)
        if previous is not None:
            self._by_category[previous.category].remove(previous)
        self._schemas[schema.path] = schema
        self._by_category[schema.category].append(schema)

    def get(self, path: str) -> Optional[NodeSchema]:
        """Get a schema by its category path.

        Args:
            path: Full path, e.g. ``ffmpeg/filters/video/scale``.

        Returns:
            NodeSchema if found, None otherwise.
        """
        return self._schemas.get(path)

    def paths(self) -> list[str]:
        return list(self._schemas.keys())

    def find(self, category: NodeCategory, name: str) -> Optional[NodeSchema]:
        """Look up a filter, codec or format by its FFmpeg name.

        Media sub-paths are tried in a fixed order, so a name registered
        both as ``video/`` and ``all/`` resolves to the video schema.
        """
        search = _FORMAT_SEARCH if category in (NodeCategory.MUXERS, NodeCategory.DEMUXERS) else _CODEC_SEARCH
        for sub in search:
            schema = self._schemas.get(f"{PATH_ROOT}/{category.value}/{sub}{name}")
            if schema is not None:
                return schema
        for sub in search:
            schema = self._schemas.get(f"{PATH_ROOT}/{category.value}/subtitles/{sub}{name}")
            if schema is not None:
                return schema
        return None

    def find_flag(self, flag: str) -> Optional[NodeSchema]:
        """Find the general-flag schema whose path ends in ``/<flag>``."""
        suffix = f"/{flag}"
        for schema in self._by_category[NodeCategory.GENERAL]:
            if schema.path.endswith(suffix):
                return schema
        return None

    def list_by_category(self, category: NodeCategory) -> list[NodeSchema]:
        """List schemas in a category.

        Args:
            category: Category to filter by.

        Returns:
            Schemas in registration order.
        """
        return list(self._by_category.get(category, []))

    def search(self, query: str) -> list[NodeSchema]:
        """Search schemas by name, path or description."""
        query = query.lower()
        return [
            schema for schema in self._schemas.values()
            if query in schema._search_text
        ]


# Global registry instance
_registry: Optional[NodeRegistry] = None


def get_registry() -> NodeRegistry:
    """Get the global node registry, loading the shipped manifests once.

    Returns:
        Global NodeRegistry instance.
    """
    global _registry
    if _registry is None:
        from .manifest_loader import load_builtin_manifests

        _registry = NodeRegistry()
        load_builtin_manifests(_registry)
    return _registry
