"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from codeopt.domain.ports.config import (
    AppConfig,
    OpenAICompatibleConfig,
    OptimizerConfig,
    SecurityConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"


def _load_toml(path: Path) -> dict:
    """Load TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge_sections(base: dict, override: dict) -> dict:
    """Merge override into base one section deep."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# (env var, section, key, converter)
ENV_OVERRIDES: tuple[tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("OPENAI_BASE_URL", "openai_compatible", "base_url", str.strip),
    ("OPENAI_API_KEY", "openai_compatible", "api_key", str.strip),
    ("OPENAI_MODEL", "openai_compatible", "model", str.strip),
    ("OPENAI_MAX_RETRIES", "openai_compatible", "max_retries", int),
    ("PORT", "server", "port", int),
    ("LOG_LEVEL", "logging", "level", str.upper),
    ("LOG_FILE", "logging", "file", str.strip),
    ("CORS_ORIGINS", "security", "cors_origins", _csv),
    ("RATE_LIMIT_PER_MINUTE", "security", "rate_limit_requests_per_minute", int),
    ("OPTIMIZER_PACING_DELAY", "optimizer", "pacing_delay", float),
    ("OPTIMIZER_MAX_FILES", "optimizer", "max_files", int),
)


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides. Unparseable values are logged and ignored."""
    for name, section, key, convert in ENV_OVERRIDES:
        raw = os.getenv(name)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning("Invalid %s env value: %r, ignoring", name, raw)
            continue
        config.setdefault(section, {})[key] = value
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = DEFAULT_CONFIG_DIR

    config: dict = {}

    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)

    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        config = _merge_sections(config, _load_toml(dev_path))

    config = _apply_env_overrides(config)

    logging_raw = config.get("logging") or {}

    return AppConfig(
        server=ServerConfig(**(config.get("server") or {})),
        openai_compatible=OpenAICompatibleConfig(**(config.get("openai_compatible") or {})),
        optimizer=OptimizerConfig(**(config.get("optimizer") or {})),
        security=SecurityConfig(**(config.get("security") or {})),
        log_level=logging_raw.get("level", "INFO"),
        log_file=(logging_raw.get("file") or "").strip(),
        log_rotation_max_mb=int(logging_raw.get("log_rotation_max_mb", 5)),
        log_rotation_backups=int(logging_raw.get("log_rotation_backups", 3)),
    )
