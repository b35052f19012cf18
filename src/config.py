"""Unified configuration loaded from .repochat.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from repochat.markdown.fences import MAX_REPAIR_PASSES

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".repochat.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "repochat" / "config.toml"


class FencesConfig(BaseModel):
    """[fences] section."""

    max_passes: int = Field(default=MAX_REPAIR_PASSES, ge=1)


class DiagramsConfig(BaseModel):
    """[diagrams] section."""

    convert_json: bool = True
    sanitize: bool = True
    use_fallback: bool = False
    drop_invalid: bool = False


class LoggingConfig(BaseModel):
    """[logging] section."""

    level: str = "INFO"


class RepochatConfig(BaseModel):
    """Top-level configuration for message processing."""

    fences: FencesConfig = Field(default_factory=FencesConfig)
    diagrams: DiagramsConfig = Field(default_factory=DiagramsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path | None = None) -> RepochatConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .repochat.toml in CWD
    3. ~/.config/repochat/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged RepochatConfig.
    """
    data: dict[str, object] = {}
    source: Path | None = None

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
            source = toml_path
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                source = candidate
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            source = GLOBAL_CONFIG_PATH
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = _validate(data, source)

    return _apply_env_vars(config)


def merge_cli_overrides(config: RepochatConfig, **cli_kwargs: object) -> RepochatConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values, e.g. ``max_passes``,
            ``use_fallback``, ``drop_invalid``, ``log_level``.

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "max_passes": ("fences", "max_passes"),
        "convert_json": ("diagrams", "convert_json"),
        "sanitize": ("diagrams", "sanitize"),
        "use_fallback": ("diagrams", "use_fallback"),
        "drop_invalid": ("diagrams", "drop_invalid"),
        "log_level": ("logging", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return RepochatConfig.model_validate(data)


def _validate(data: dict[str, object], source: Path | None) -> RepochatConfig:
    """Build a config from raw data; invalid values fall back to defaults."""
    if not data:
        return RepochatConfig()
    try:
        return RepochatConfig.model_validate(data)
    except ValidationError as exc:
        logger.warning("Ignoring invalid config in %s: %s", source, exc)
        return RepochatConfig()


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _parse_bool(raw: str) -> bool:
    return raw.lower() in ("true", "1", "yes")


def _apply_env_vars(config: RepochatConfig) -> RepochatConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    passes_raw = os.environ.get("REPOCHAT_MAX_PASSES")
    if passes_raw is not None:
        try:
            data["fences"]["max_passes"] = int(passes_raw)
        except ValueError:
            logger.warning("Ignoring non-integer REPOCHAT_MAX_PASSES=%r", passes_raw)

    for env_var, field in [
        ("REPOCHAT_USE_FALLBACK", "use_fallback"),
        ("REPOCHAT_DROP_INVALID", "drop_invalid"),
    ]:
        value = os.environ.get(env_var)
        if value is not None:
            data["diagrams"][field] = _parse_bool(value)

    level = os.environ.get("REPOCHAT_LOG_LEVEL")
    if level:
        data["logging"]["level"] = level.upper()

    try:
        return RepochatConfig.model_validate(data)
    except ValidationError as exc:
        logger.warning("Ignoring invalid REPOCHAT_* environment overrides: %s", exc)
        return config
