"""Unified configuration loaded from .digitaldna.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from digitaldna.shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".digitaldna.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "digitaldna" / "config.toml"

MIB = 1024 * 1024


class StorageSectionConfig(BaseModel):
    """[storage] section."""

    backend: Literal["local", "s3", "memory"] = "local"
    bucket: str = ""
    root_dir: str = ""
    endpoint_url: str = ""


class LLMSectionConfig(BaseModel):
    """[llm] section."""

    api_key: str = ""
    model: str = "claude-haiku-4-5-20251001"
    timeout: float = 60.0
    max_tokens: int = 4000


class PipelineSectionConfig(BaseModel):
    """[pipeline] section: chunking and admission limits."""

    chunk_size: int = 20 * 1024
    chunk_overlap: int = 2 * 1024
    max_raw_bytes: int = 50 * MIB
    max_normalized_bytes: int = 10 * MIB
    max_content_chars: int = 100_000
    normalizer_handoff: bool = True
    dispatch_workers: int = 4


class ThrottleSectionConfig(BaseModel):
    """[throttle] section: backlog token bucket."""

    capacity: int = 5
    refill_per_second: float = 0.5


class ServerSectionConfig(BaseModel):
    """[server] section."""

    host: str = "127.0.0.1"
    port: int = 8000


class DigitalDnaConfig(BaseModel):
    """Top-level configuration model for the whole pipeline."""

    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    llm: LLMSectionConfig = Field(default_factory=LLMSectionConfig)
    pipeline: PipelineSectionConfig = Field(default_factory=PipelineSectionConfig)
    throttle: ThrottleSectionConfig = Field(default_factory=ThrottleSectionConfig)
    server: ServerSectionConfig = Field(default_factory=ServerSectionConfig)

    def require_storage(self) -> None:
        """Raise ``ConfigurationError`` unless a storage location is set."""
        backend = self.storage.backend
        if backend == "s3" and not self.storage.bucket:
            raise ConfigurationError(
                "S3 bucket name not configured (set S3_BUCKET_NAME or [storage].bucket)"
            )
        if backend == "local" and not self.storage.root_dir:
            raise ConfigurationError(
                "Local storage root not configured "
                "(set DIGITALDNA_STORAGE_ROOT or [storage].root_dir)"
            )

    def require_llm(self) -> None:
        """Raise ``ConfigurationError`` unless an AI credential is set."""
        if not self.llm.api_key:
            raise ConfigurationError(
                "Anthropic API key not configured (set ANTHROPIC_API_KEY or [llm].api_key)"
            )


def load_config(path: str | Path | None = None) -> DigitalDnaConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .digitaldna.toml in CWD
    3. ~/.config/digitaldna/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged DigitalDnaConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = DigitalDnaConfig.model_validate(data) if data else DigitalDnaConfig()

    # Overlay environment variables
    config = _apply_env_vars(config)

    return config


def merge_cli_overrides(config: DigitalDnaConfig, **cli_kwargs: object) -> DigitalDnaConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).

    Args:
        config: Base config.
        **cli_kwargs: CLI flag values, e.g. ``storage_root``, ``model``.

    Returns:
        Updated config with CLI overrides applied.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "storage_backend": ("storage", "backend"),
        "storage_root": ("storage", "root_dir"),
        "bucket": ("storage", "bucket"),
        "endpoint_url": ("storage", "endpoint_url"),
        "model": ("llm", "model"),
        "host": ("server", "host"),
        "port": ("server", "port"),
        "handoff": ("pipeline", "normalizer_handoff"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value
        else:
            logger.debug("Ignoring unknown CLI override %s", key)

    return DigitalDnaConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: DigitalDnaConfig) -> DigitalDnaConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "DIGITALDNA_STORAGE_BACKEND": ("storage", "backend"),
        "DIGITALDNA_STORAGE_ROOT": ("storage", "root_dir"),
        "S3_BUCKET_NAME": ("storage", "bucket"),
        "S3_ENDPOINT_URL": ("storage", "endpoint_url"),
        "ANTHROPIC_API_KEY": ("llm", "api_key"),
        "DIGITALDNA_MODEL": ("llm", "model"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # A bucket without an explicit backend means S3
    if os.environ.get("S3_BUCKET_NAME") and "DIGITALDNA_STORAGE_BACKEND" not in os.environ:
        data["storage"]["backend"] = "s3"

    return DigitalDnaConfig.model_validate(data)
