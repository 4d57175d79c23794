"""Configuration loading from files and environment.

Supports:
- TOML config files
- Environment variables (QUICKRAG_* prefix)
- .env files
- Profiles (e.g. "openai", "local", "offline")
"""

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from quickrag.config.schema import AppConfig
from quickrag.observability.logging import get_logger

logger = get_logger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in a data structure.

    Supports ``${VAR_NAME}`` and ``${VAR_NAME:-default}``. Unset variables
    without a default are left untouched.
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if not isinstance(obj, str):
        return obj

    def replace_var(match: re.Match) -> str:
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default_value = var_expr.split(":-", 1)
            return os.getenv(var_name.strip(), default_value)

        var_name = var_expr.strip()
        value = os.getenv(var_name)
        if value is None:
            logger.warning(
                "env_var_not_found",
                var_name=var_name,
                suggestion="Check that the environment variable is set",
            )
            return match.group(0)
        return value

    return _ENV_PATTERN.sub(replace_var, obj)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge two config mappings; values from override win."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: Optional[Path] = None,
    profile: Optional[str] = None,
    env_file: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Profile section of the config file
    3. Config file
    4. Defaults

    Args:
        config_path: Path to TOML config file
        profile: Config profile to apply (a key under [profiles])
        env_file: Path to .env file

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logger.info("loaded_config_file", path=str(config_path))

        profiles = config_data.pop("profiles", {})
        if profile:
            if profile not in profiles:
                raise ValueError(f"Unknown config profile: '{profile}'")
            config_data = _merge(config_data, profiles[profile])
            logger.info("applied_profile", profile=profile)

        config_data = _substitute_env_vars(config_data)

    # pydantic-settings ranks init kwargs above the environment, so file keys
    # with a QUICKRAG_* override must not be passed in.
    config_data = _drop_env_overridden(config_data)

    config = AppConfig(**config_data)
    logger.info(
        "config_loaded",
        embedding_provider=config.embedding.provider.value,
        llm_provider=config.llm.provider.value,
        vector_store=config.vector_store.store_type.value,
        search_type=config.retriever.search_type.value,
    )
    return config


def _drop_env_overridden(config_data: dict[str, Any], prefix: str = "QUICKRAG_") -> dict[str, Any]:
    """Remove keys from file data that a QUICKRAG_* variable overrides."""
    result: dict[str, Any] = {}
    for key, value in config_data.items():
        env_name = f"{prefix}{key}".upper()
        if env_name in os.environ:
            continue
        if isinstance(value, dict):
            result[key] = _drop_env_overridden(value, prefix=f"{env_name}__")
        else:
            result[key] = value
    return result


def get_default_config_path() -> Path:
    """Get the default config file path.

    Searches in order:
    1. ./quickrag.toml
    2. ~/.quickrag/config.toml
    3. /etc/quickrag/config.toml
    """
    search_paths = [
        Path.cwd() / "quickrag.toml",
        Path.home() / ".quickrag" / "config.toml",
        Path("/etc/quickrag/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
