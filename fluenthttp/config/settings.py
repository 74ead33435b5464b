import os
import tomllib
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fluenthttp.exceptions import ConfigurationError

from .http import HTTPSettings
from .logging import LoggingSettings


__all__ = ["Settings", "find_toml_config_file"]


logger = structlog.get_logger(__name__)


def find_toml_config_file() -> Path | None:
    """Find a TOML configuration file.

    Searches in the following order:
    1. .fluenthttp.toml in current directory
    2. fluenthttp.toml in current directory
    """
    for name in (".fluenthttp.toml", "fluenthttp.toml"):
        candidate = Path.cwd() / name
        if candidate.exists():
            return candidate
    return None


class Settings(BaseSettings):
    """
    Process-level configuration for fluenthttp.

    Settings are loaded from environment variables (prefix ``FLUENTHTTP_``,
    nested with ``__``), .env files and an optional TOML file. Environment
    variables take precedence over TOML values.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLUENTHTTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    http: HTTPSettings = Field(
        default_factory=HTTPSettings,
        description="HTTP call defaults and connection pool settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings from a TOML file, the environment and overrides.

        ``kwargs`` are applied last and win over both sources.
        """
        if config_path is None:
            config_path_env = os.environ.get("FLUENTHTTP_CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ConfigurationError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)
            logger.info(
                "config_file_loaded",
                path=str(config_path),
                category="config",
            )

        settings = cls()

        def _apply(target: BaseModel, values: dict[str, Any], env_prefix: str) -> None:
            for key, value in values.items():
                if not hasattr(target, key):
                    continue
                env_key = f"{env_prefix}{key.upper()}"
                current = getattr(target, key)
                if isinstance(value, dict) and isinstance(current, BaseModel):
                    _apply(current, value, f"{env_key}__")
                elif os.getenv(env_key) is None:
                    setattr(target, key, value)

        _apply(settings, config_data, "FLUENTHTTP_")

        def _apply_overrides(target: BaseModel, overrides: dict[str, Any]) -> None:
            for k, v in overrides.items():
                sub = getattr(target, k, None)
                if isinstance(v, dict) and isinstance(sub, BaseModel):
                    _apply_overrides(sub, v)
                else:
                    setattr(target, k, v)

        if kwargs:
            _apply_overrides(settings, kwargs)

        # Assignment above bypasses field validation; re-validate once.
        return cls.model_validate(settings.model_dump())
