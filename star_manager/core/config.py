"""
Configuration module for the GitHub stars manager.

This module loads settings from a YAML file into a typed dataclass, creates
a default configuration file, and resolves the API tokens, which are only
ever read from the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from star_manager.constants import (
    BACKUP_DIR_NAME,
    BULK_CONCURRENCY,
    DEBUG_BATCH_LIMIT,
    DEFAULT_MODEL,
    GITHUB_API_URL,
    GITHUB_TOKEN_ENV,
    LLM_BATCH_SIZE,
    LLM_MAX_ATTEMPTS,
    LOW_STARS_THRESHOLD,
    MAX_ERROR_MESSAGES,
    OPENROUTER_BASE_URL,
    OPENROUTER_KEY_ENV,
    OUTPUT_DIR_NAME,
    PAGE_FETCH_CONCURRENCY,
    STALE_YEARS,
)
from star_manager.exceptions import ConfigError
from star_manager.utils.logging import log_with_context

_POSITIVE_INT_FIELDS = (
    "concurrency",
    "page_fetch_concurrency",
    "llm_batch_size",
    "llm_max_attempts",
    "debug_batch_limit",
    "stale_years",
    "max_error_messages",
)


@dataclass
class ModelConfig:
    """LLM model identifiers used by each analysis stage."""

    analysis: str = DEFAULT_MODEL
    categorization: str = DEFAULT_MODEL

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ModelConfig:
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"'models' must be a mapping, got {type(data).__name__}")
        return cls(
            analysis=data.get("analysis", DEFAULT_MODEL),
            categorization=data.get("categorization", DEFAULT_MODEL),
        )


@dataclass
class StarManagerConfig:
    """Typed configuration for the stars manager.

    Every field has a default so an empty or missing file yields a working
    configuration.
    """

    models: ModelConfig = field(default_factory=ModelConfig)

    # Endpoints
    llm_base_url: str = OPENROUTER_BASE_URL
    github_api_url: str = GITHUB_API_URL

    # Concurrency
    concurrency: int = BULK_CONCURRENCY
    page_fetch_concurrency: int = PAGE_FETCH_CONCURRENCY

    # LLM batching
    llm_batch_size: int = LLM_BATCH_SIZE
    llm_max_attempts: int = LLM_MAX_ATTEMPTS
    debug_batch_limit: int = DEBUG_BATCH_LIMIT

    # Cleanup criteria defaults
    stale_years: int = STALE_YEARS
    low_stars_threshold: int = LOW_STARS_THRESHOLD

    # Error handling
    max_error_messages: int = MAX_ERROR_MESSAGES
    max_retries: int = 3
    retry_delay: float = 1

    # Local files
    backup_dir: str = str(Path.home() / BACKUP_DIR_NAME)
    output_dir: str = OUTPUT_DIR_NAME

    # Cap on fetched stars, None for all
    max_repos: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StarManagerConfig:
        """Create a StarManagerConfig from a raw config dictionary.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )
        defaults = cls()
        config = cls(
            models=ModelConfig.from_dict(data.get("models")),
            llm_base_url=data.get("llm_base_url", defaults.llm_base_url),
            github_api_url=data.get("github_api_url", defaults.github_api_url),
            concurrency=data.get("concurrency", defaults.concurrency),
            page_fetch_concurrency=data.get(
                "page_fetch_concurrency", defaults.page_fetch_concurrency
            ),
            llm_batch_size=data.get("llm_batch_size", defaults.llm_batch_size),
            llm_max_attempts=data.get("llm_max_attempts", defaults.llm_max_attempts),
            debug_batch_limit=data.get(
                "debug_batch_limit", defaults.debug_batch_limit
            ),
            stale_years=data.get("stale_years", defaults.stale_years),
            low_stars_threshold=data.get(
                "low_stars_threshold", defaults.low_stars_threshold
            ),
            max_error_messages=data.get(
                "max_error_messages", defaults.max_error_messages
            ),
            max_retries=data.get("max_retries", defaults.max_retries),
            retry_delay=data.get("retry_delay", defaults.retry_delay),
            backup_dir=os.path.expanduser(
                str(data.get("backup_dir") or defaults.backup_dir)
            ),
            output_dir=str(data.get("output_dir") or defaults.output_dir),
            max_repos=data.get("max_repos"),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check value types and ranges.

        Raises:
            ConfigError: On the first invalid value.
        """
        for name in _POSITIVE_INT_FIELDS:
            value = getattr(self, name)
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")

        for name in ("max_retries", "low_stars_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(
                    f"'{name}' must be a non-negative integer, got {value!r}"
                )

        if isinstance(self.retry_delay, bool) or not isinstance(
            self.retry_delay, (int, float)
        ):
            raise ConfigError(f"'retry_delay' must be a number, got {self.retry_delay!r}")
        if self.retry_delay < 0:
            raise ConfigError("'retry_delay' must not be negative")

        if self.max_repos is not None and (
            isinstance(self.max_repos, bool)
            or not isinstance(self.max_repos, int)
            or self.max_repos < 1
        ):
            raise ConfigError(
                f"'max_repos' must be a positive integer, got {self.max_repos!r}"
            )

        for name in ("llm_base_url", "github_api_url"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.startswith(("http://", "https://")):
                raise ConfigError(f"'{name}' must be an http(s) URL, got {value!r}")

        for name in ("analysis", "categorization"):
            value = getattr(self.models, name)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"'models.{name}' must be a non-empty string")


def load_config(config_path: Path) -> StarManagerConfig:
    """
    Load configuration from YAML file and apply default values.

    A missing or unreadable file logs a warning and yields the defaults. A
    file that parses but holds invalid values is an error.

    Args:
        config_path: Path to the config YAML file

    Returns:
        StarManagerConfig with all necessary defaults applied

    Raises:
        ConfigError: If the file contains invalid settings
    """
    raw: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                loaded_config = yaml.safe_load(f)
                # Handle None result from empty file
                if loaded_config is not None:
                    raw = loaded_config
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        except (yaml.YAMLError, OSError) as e:
            log_with_context(
                logging.WARNING, f"Failed to load config file {config_path}: {e}"
            )
    else:
        log_with_context(
            logging.DEBUG,
            f"Config file {config_path} not found, using default settings",
        )

    return StarManagerConfig.from_dict(raw)


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    The function will not overwrite an existing configuration file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        "models": {
            "analysis": DEFAULT_MODEL,
            "categorization": DEFAULT_MODEL,
        },
        "llm_base_url": OPENROUTER_BASE_URL,
        "github_api_url": GITHUB_API_URL,
        # Parallel GitHub writes per batch
        "concurrency": BULK_CONCURRENCY,
        "page_fetch_concurrency": PAGE_FETCH_CONCURRENCY,
        "llm_batch_size": LLM_BATCH_SIZE,
        "llm_max_attempts": LLM_MAX_ATTEMPTS,
        "debug_batch_limit": DEBUG_BATCH_LIMIT,
        "stale_years": STALE_YEARS,
        "low_stars_threshold": LOW_STARS_THRESHOLD,
        "max_error_messages": MAX_ERROR_MESSAGES,
        "max_retries": 3,
        "retry_delay": 1,
        "backup_dir": f"~/{BACKUP_DIR_NAME}",
        "output_dir": OUTPUT_DIR_NAME,
    }

    try:
        with open(output_path, "w") as f:
            yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False


def get_env_token(name: str) -> str | None:
    """Return a stripped token from the environment, or None when unset or blank."""
    value = os.environ.get(name, "").strip()
    return value or None


def get_github_token() -> str | None:
    return get_env_token(GITHUB_TOKEN_ENV)


def get_openrouter_key() -> str | None:
    return get_env_token(OPENROUTER_KEY_ENV)
