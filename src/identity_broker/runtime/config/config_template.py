"""Load ``config.yaml`` after expanding ``${...}`` environment placeholders."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic_core import ValidationError

from src.identity_broker.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _resolve(expression: str) -> str:
    """Value for one placeholder body such as ``VAR``, ``VAR:-x`` or ``VAR:?msg``."""
    name, sep, default = expression.partition(":-")
    if sep:
        return os.getenv(name, default)

    name, sep, hint = expression.partition(":?")
    value = os.getenv(name)
    if value is not None:
        return value
    if sep:
        raise ValueError(f"Required environment variable {name}: {hint}")
    raise ValueError(f"Required environment variable {name} not set")


def substitute_env_vars(text: str) -> str:
    """Expand every placeholder in ``text``.

    - ``${VAR}`` fails when VAR is unset
    - ``${VAR:-default}`` falls back to ``default``
    - ``${VAR:?message}`` fails with ``message`` when VAR is unset
    """
    return _PLACEHOLDER.sub(lambda match: _resolve(match.group(1)), text)


def apply_environment_overrides(env_mode: str) -> None:
    """Promote ``<ENV>_NAME`` variables to ``NAME`` for the active environment.

    ``PRODUCTION_KEYCLOAK_REALM`` therefore wins over ``KEYCLOAK_REALM`` when
    running in production.
    """
    prefix = f"{env_mode.upper()}_"
    promoted = {
        name.removeprefix(prefix): value
        for name, value in os.environ.items()
        if name.startswith(prefix)
    }
    if promoted:
        logger.info("Applying {} overrides: {}", env_mode, sorted(promoted))
    os.environ.update(promoted)


def _config_section(content: str) -> dict[str, Any]:
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e
    if not document:
        raise ValueError("Configuration file is empty")
    return document.get("config") or {}


def load_templated_yaml(file_path: Path, env_mode: str | None = None) -> ConfigData:
    """Read, expand and validate a configuration file.

    Raises:
        ValueError: A required variable is missing, the YAML is malformed, or
            the values do not fit ``ConfigData``.
        FileNotFoundError: ``file_path`` does not exist.
    """
    env_mode = env_mode or os.getenv("APP_ENVIRONMENT", "development")
    logger.info("Loading configuration from {} for {}", file_path, env_mode)
    apply_environment_overrides(env_mode)

    section = _config_section(substitute_env_vars(Path(file_path).read_text()))
    try:
        config = ConfigData(**section)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    if env_mode == "production" and not config.identity_provider.client_secret:
        logger.warning("Identity provider client secret is not configured")
    return config
