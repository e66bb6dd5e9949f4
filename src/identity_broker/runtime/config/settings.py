"""Process settings needed before ``config.yaml`` can be located and read."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvironmentName = Literal["development", "production", "test"]


class BootstrapSettings(BaseSettings):
    """Where the broker's configuration lives and which environment it runs in.

    Read from the process environment and an optional ``.env`` file; every
    other setting comes from the YAML file these point at.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: EnvironmentName = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )
    config_path: Path = Field(default=Path("config.yaml"), validation_alias="CONFIG_PATH")
