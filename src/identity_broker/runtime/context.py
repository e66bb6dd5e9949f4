from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger
from pydantic import BaseModel

from src.identity_broker.runtime.config.config_data import ConfigData
from src.identity_broker.runtime.config.config_template import load_templated_yaml
from src.identity_broker.runtime.config.settings import BootstrapSettings


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


def load_default_config() -> ConfigData:
    """Load config.yaml (or CONFIG_PATH), falling back to built-in defaults."""
    settings = BootstrapSettings()
    path = settings.config_path
    if not path.exists():
        logger.warning("Configuration file {} not found, using defaults", path)
        return ConfigData()
    return load_templated_yaml(path, env_mode=settings.environment)


_default_context = AppContext(config=load_default_config())

_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=_default_context
)


def get_context() -> AppContext:
    """Get the current application context."""
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    """Set the current application context.

    Args:
        context: AppContext instance to set as current.
    """
    return _app_context.set(context)


def _explicit_fields(model: BaseModel) -> dict[str, Any]:
    """Dump only the fields that were set on ``model`` or any nested model.

    A nested model assigned as a whole is dumped completely; a nested model
    that was only mutated contributes just the fields touched on it.
    """
    result: dict[str, Any] = {}
    for name in type(model).model_fields:
        value = getattr(model, name)
        if isinstance(value, BaseModel):
            if name in model.model_fields_set:
                result[name] = value.model_dump()
            else:
                nested = _explicit_fields(value)
                if nested:
                    result[name] = nested
        elif name in model.model_fields_set:
            result[name] = value
    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_config(
    base_config: ConfigData, override: ConfigData | dict[str, Any]
) -> ConfigData:
    """Overlay ``override`` onto ``base_config``, inheriting everything it leaves unset."""
    if isinstance(override, ConfigData):
        override_dict = _explicit_fields(override)
    elif isinstance(override, dict):
        override_dict = override
    else:
        raise ValueError(
            f"config_override must be ConfigData, dict or None, got {type(override)}"
        )
    return ConfigData.model_validate(_deep_merge(base_config.model_dump(), override_dict))


@contextmanager
def with_context(config_override: ConfigData | dict[str, Any] | None = None):
    """Temporarily override the application configuration.

    Example:
        with with_context({"cache": {"item_ttl_seconds": 5}}):
            assert get_config().cache.item_ttl_seconds == 5

        override = ConfigData()
        override.identity_provider.realm = "other"
        with with_context(override):
            # realm replaced, every other identity_provider field inherited
            ...
    """
    if config_override is None:
        yield
        return

    merged_config = merge_config(get_context().config, config_override)
    token = set_context(replace(get_context(), config=merged_config))
    try:
        yield
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the entire current configuration."""
    set_context(replace(get_context(), config=config))


def get_config() -> ConfigData:
    """Convenience function to get the current configuration."""
    return get_context().config
