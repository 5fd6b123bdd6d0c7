"""Studio configuration loaded from YAML."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("ffgraph")

CONFIG_ENV_VAR = "FFGRAPH_CONFIG"


class StudioConfig(BaseModel):
    """Tunable settings for command generation, expansion and editing."""

    ffmpeg_bin: str = "ffmpeg"
    manifest_paths: list[str] = Field(default_factory=list)
    hash_length: int = Field(default=8, ge=1, le=64)
    index_padding: int = Field(default=0, ge=0)
    undo_max_history: int = Field(default=10, ge=1)
    undo_debounce_ms: int = Field(default=250, ge=0)
    merge_jitter: int = Field(default=200, ge=0)
    scan_workers: int = Field(default=8, ge=1)
    log_level: str = "INFO"

    @property
    def undo_debounce_seconds(self) -> float:
        return self.undo_debounce_ms / 1000.0


def load_config(path: Optional[str | Path] = None) -> StudioConfig:
    """Load configuration from a YAML file.

    Args:
        path: Config file path. Falls back to the ``FFGRAPH_CONFIG``
            environment variable, then to built-in defaults.

    Returns:
        The parsed configuration. Unreadable or invalid files log a
        warning and yield the defaults.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return StudioConfig()

    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to read config %s: %s", path, exc)
        return StudioConfig()

    if data is None:
        return StudioConfig()
    if not isinstance(data, dict):
        logger.warning("Invalid config %s: top-level must be a mapping", path)
        return StudioConfig()

    try:
        return StudioConfig(**data)
    except ValidationError as exc:
        logger.warning("Invalid config %s: %s", path, exc)
        return StudioConfig()
