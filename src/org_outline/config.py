"""Configuration for org-outline."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from org_outline.models.todo import TodoKeywordConfig

# Only files with these suffixes are parsed. Hidden files are always skipped.
ORG_SUFFIXES: tuple[str, ...] = (".org",)

# Properties that describe a single entry. They are never inherited from
# ancestors and never fall back to the document level.
ALWAYS_LOCAL_PROPERTIES: frozenset[str] = frozenset(
    {"ID", "CUSTOM_ID", "SCHEDULED", "DEADLINE", "CLOSED"}
)

DEFAULT_PRIORITIES: tuple[str, ...] = ("A", "B", "C")

# Sampled values kept per property key per document for filter surfaces.
MAX_PROPERTY_SAMPLES: int = 20

# Minimum seconds between MCP re-reads of the source directory.
REFRESH_INTERVAL: int = 30

# Settings file locations. First file found is used.
CONFIG_FILES: list[Path] = [
    Path("~/.config/org-outline/config.json").expanduser(),
    Path("~/.org-outline.json").expanduser(),
]

# Directories with org files. First directory which is found is used.
SOURCE_DIRECTORIES: list[Path] = [
    Path("~/org").expanduser(),
    Path("~/Documents/org").expanduser(),
]


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared read-only by every document parse."""

    todo_keywords: TodoKeywordConfig = field(default_factory=TodoKeywordConfig.default)
    non_inheritable_keys: frozenset[str] = frozenset()
    priorities: tuple[str, ...] = DEFAULT_PRIORITIES
    display_properties: tuple[str, ...] = ()

    @property
    def display_keys(self) -> tuple[str, ...]:
        """Property keys whose resolved values feed headline fingerprints."""
        keys = ["CATEGORY"]
        keys.extend(k.upper() for k in self.display_properties if k.upper() != "CATEGORY")
        return tuple(keys)


def config_from_dict(data: dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from parsed settings JSON."""
    keywords = data.get("todo_keywords")
    if keywords is None:
        logger.debug("No TODO keywords configured, using defaults")
        todo_keywords = TodoKeywordConfig.default()
    else:
        todo_keywords = TodoKeywordConfig(
            active=tuple(keywords.get("active", ())),
            closed=tuple(keywords.get("closed", ())),
        )
    return PipelineConfig(
        todo_keywords=todo_keywords,
        non_inheritable_keys=frozenset(
            k.upper() for k in data.get("non_inheritable_properties", ())
        ),
        priorities=tuple(data.get("priorities", DEFAULT_PRIORITIES)),
        display_properties=tuple(data.get("display_properties", ())),
    )


def resolve_config_file() -> Path | None:
    """Return the settings file to use, honouring ``ORG_OUTLINE_CONFIG``."""
    env = os.environ.get("ORG_OUTLINE_CONFIG")
    if env:
        return Path(env).expanduser()
    for path in CONFIG_FILES:
        if path.is_file():
            return path
    return None


def load_config(path: Path | None = None) -> PipelineConfig:
    """Load settings from JSON. A missing file gives the defaults."""
    path = path or resolve_config_file()
    if path is None or not path.is_file():
        if path is not None:
            logger.warning("Config file {} not found, using defaults", path)
        return PipelineConfig()
    data = json.loads(path.read_text())
    logger.debug("Loaded config from {}", path)
    return config_from_dict(data)


def resolve_source_directory() -> Path:
    """Return the org source directory, honouring ``ORG_OUTLINE_SOURCE_DIR``."""
    env = os.environ.get("ORG_OUTLINE_SOURCE_DIR")
    if env:
        return Path(env).expanduser()
    for path in SOURCE_DIRECTORIES:
        if path.is_dir():
            return path
    return SOURCE_DIRECTORIES[0]
