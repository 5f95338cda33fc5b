"""Configuration for streamchat.

Config discovery (first match wins):
  1. explicit ``path`` argument
  2. ``./streamchat.yaml``
  3. ``~/.config/streamchat/config.yaml``
  4. Built-in defaults

Environment variables (``STREAMCHAT_BASE_URL``, ``STREAMCHAT_API_KEY``,
``STREAMCHAT_MODEL``, ``STREAMCHAT_TIMEOUT``, ``STREAMCHAT_STREAM_TIMEOUT``)
override the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ServerSpec:
    """Where and how to reach the inference server."""

    base_url: str = "http://localhost:1234"
    api_key: str = "lm-studio"
    api_version: str = "v1"  # "v1" (OpenAI-compatible) | "v0" (LM Studio REST)
    timeout: float = 30
    connect_timeout: float = 10
    read_timeout: float = 60
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ChatConfig:
    """Top-level config."""

    server: ServerSpec = field(default_factory=ServerSpec)

    # Request defaults
    default_model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None

    # Turn loop
    max_iterations: int = 5
    max_malformed_chunks: int = 20
    max_tool_output: int = 0
    streaming: bool = True
    stream_timeout: float = 60  # seconds per request/stream; 0 disables


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./streamchat.yaml"),
    Path.home() / ".config" / "streamchat" / "config.yaml",
]

_ENV_OVERRIDES = {
    "STREAMCHAT_BASE_URL": ("server", "base_url", str),
    "STREAMCHAT_API_KEY": ("server", "api_key", str),
    "STREAMCHAT_TIMEOUT": ("server", "timeout", float),
    "STREAMCHAT_MODEL": (None, "default_model", str),
    "STREAMCHAT_STREAM_TIMEOUT": (None, "stream_timeout", float),
}


def _parse_server(raw: dict[str, Any] | None) -> ServerSpec:
    if not raw:
        return ServerSpec()
    known = {k: v for k, v in raw.items() if k in ServerSpec.__dataclass_fields__}
    unknown = set(raw) - set(known)
    if unknown:
        _logger.warning("Ignoring unknown server config keys: %s", sorted(unknown))
    return ServerSpec(**known)


def _apply_env(config: ChatConfig, environ: Mapping[str, str]) -> None:
    for var, (section, attr, convert) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        target = config.server if section == "server" else config
        try:
            setattr(target, attr, convert(value))
        except ValueError:
            _logger.warning("Ignoring invalid %s=%r", var, value)


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ChatConfig:
    """Load configuration from YAML plus environment overrides.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.
    environ:
        Environment mapping (defaults to ``os.environ``).

    Returns
    -------
    ChatConfig
    """
    environ = os.environ if environ is None else environ
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s — using defaults", path)
            config_path = None
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    raw: dict[str, Any] = {}
    if config_path is None:
        _logger.info("No config file found — using defaults")
    else:
        _logger.info("Loading config from %s", config_path)
        try:
            with open(config_path) as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

    config = ChatConfig(
        server=_parse_server(raw.get("server")),
        default_model=raw.get("default_model", ""),
        temperature=raw.get("temperature"),
        max_tokens=raw.get("max_tokens"),
        max_iterations=raw.get("max_iterations", 5),
        max_malformed_chunks=raw.get("max_malformed_chunks", 20),
        max_tool_output=raw.get("max_tool_output", 0),
        streaming=raw.get("streaming", True),
        stream_timeout=raw.get("stream_timeout", 60),
    )
    _apply_env(config, environ)
    return config
