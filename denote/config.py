"""Configuration loading, validation and defaults.

The config file is YAML (JSON files load too, JSON being a subset of YAML).
Loaded configs are plain dicts, read with ``.get`` throughout the pipeline.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

from denote.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

FEED_TYPES = ("rss", "atom", "arxiv", "doi", "github", "youtube", "url")
LLM_PROVIDERS = ("ollama", "openai", "anthropic", "mock")

_POSITIVE_INTS = ("summary_length", "max_items_per_week", "max_per_topic", "recent_days")

DEFAULTS: Dict[str, Any] = {
    "summary_length": 150,
    "max_items_per_week": 10,
    "max_per_topic": 3,
    "recent_days": 7,
    "output": {
        "directory": "./output",
        "filename": "weekly_summary.md",
    },
    "database": {
        "path": "./denote.db",
    },
    "llm": {
        "provider": "ollama",
        "url": "http://localhost:11434/api/generate",
        "parameters": {},
    },
}

STARTER_CONFIG: Dict[str, Any] = {
    "feeds": [
        {"id": "arxiv_ai", "url": "http://export.arxiv.org/rss/cs.AI"},
        {"id": "answerai_blog", "url": "https://www.answer.ai/index.xml"},
    ],
    "topics": ["ai", "llm", "machine learning", "deep learning"],
    **copy.deepcopy(DEFAULTS),
}
# model is left out of DEFAULTS; each provider picks its own when unset
STARTER_CONFIG["llm"]["model"] = "mistral"


def load_config(config_path: str | Path) -> Dict[str, Any]:
    """Load, validate and complete the configuration at ``config_path``."""
    path = Path(config_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")

    validate_config(raw)
    config = apply_defaults(raw)
    logger.info(
        "Loaded configuration from %s (%d feeds, %d topics)",
        path,
        len(config["feeds"]),
        len(config["topics"]),
    )
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Raise ConfigError if required fields are missing or malformed."""
    feeds = config.get("feeds")
    if not isinstance(feeds, list) or not feeds:
        raise ConfigError("Configuration must include at least one feed")

    for feed in feeds:
        if not isinstance(feed, dict) or not feed.get("id"):
            raise ConfigError("Each feed must have an id")
        feed_id = feed["id"]
        url = feed.get("url")
        if not url:
            raise ConfigError(f'Feed "{feed_id}" is missing a URL')
        parsed = urlparse(str(url))
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f'Feed "{feed_id}" has an invalid URL: {url}')
        feed_type = feed.get("type")
        if feed_type and feed_type not in FEED_TYPES:
            raise ConfigError(f'Feed "{feed_id}" has an invalid type: {feed_type}')

    topics = config.get("topics")
    if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
        raise ConfigError("Configuration must include a list of topics")

    for key in _POSITIVE_INTS:
        if key not in config:
            continue
        value = config[key]
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"{key} must be a positive integer")

    output = config.get("output")
    if output is not None:
        if not isinstance(output, dict):
            raise ConfigError("output must be a mapping")
        if not output.get("directory"):
            raise ConfigError("Output configuration must specify a directory")
        if not output.get("filename"):
            raise ConfigError("Output configuration must specify a filename")

    llm = config.get("llm")
    if llm is not None:
        if not isinstance(llm, dict):
            raise ConfigError("llm must be a mapping")
        provider = llm.get("provider", DEFAULTS["llm"]["provider"])
        if provider not in LLM_PROVIDERS:
            raise ConfigError(
                f"Unknown llm provider {provider!r} (expected one of {', '.join(LLM_PROVIDERS)})"
            )


def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``config`` with defaults filled in."""
    merged = copy.deepcopy(config)
    for key, default in DEFAULTS.items():
        if isinstance(default, dict):
            section = dict(copy.deepcopy(default))
            section.update(merged.get(key) or {})
            merged[key] = section
        else:
            merged.setdefault(key, default)
    merged.setdefault("topics", [])
    return merged


def create_default_config(config_path: str | Path) -> bool:
    """Write a starter config unless one exists. Returns True if written."""
    path = Path(config_path)
    if path.exists():
        return False

    Path(STARTER_CONFIG["output"]["directory"]).mkdir(parents=True, exist_ok=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(STARTER_CONFIG, f, sort_keys=False)

    logger.info("Created default configuration at %s", path)
    return True
