"""
Loader configuration.

Settings are layered: model defaults, then a YAML file with the sections
csv, bulk_load, database and logging, then a .env file, then the process
environment. The database password is never written to logs.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, SecretStr, field_validator

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "LOG_LEVEL": ("logging", "level"),
}


class CsvSettings(BaseModel):
    """How the source file is read."""

    delimiter: str = ","
    has_header: bool = True
    encoding: str = "utf-8"
    ignore_blank_lines: bool = True
    strict_headers: bool = False

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        if v.lower() in ("tab", "\\t"):
            return "\t"
        if len(v) != 1:
            raise ValueError(f"delimiter must be a single character, got {v!r}")
        return v


class BulkLoadSettings(BaseModel):
    """Batching, retry and verification behaviour of a load run."""

    batch_size: int = Field(1000, ge=1)
    command_timeout: float = Field(300.0, gt=0)
    max_connection_retries: int = Field(3, ge=0)
    retry_delay: float = Field(1.0, ge=0)
    retry_backoff: float = Field(1.0, ge=1.0)
    validate_data: bool = True
    max_workers: int = Field(1, ge=1)
    verify_schema: bool = True
    verify_after_load: bool = True


class DatabaseSettings(BaseModel):
    """PostgreSQL connection settings."""

    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    name: str = "dur"
    user: str = "durloader"
    password: SecretStr | None = None
    connect_timeout: float = Field(30.0, gt=0)
    min_pool_size: int = Field(1, ge=1)
    max_pool_size: int = Field(4, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class LoaderSettings(BaseModel):
    """All settings of a load run."""

    csv: CsvSettings = Field(default_factory=CsvSettings)
    bulk_load: BulkLoadSettings = Field(default_factory=BulkLoadSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        json_schema_extra = {
            "example": {
                "csv": {"delimiter": ",", "has_header": True, "encoding": "utf-8"},
                "bulk_load": {"batch_size": 1000, "command_timeout": 300, "max_connection_retries": 3},
                "database": {"host": "localhost", "port": 5432, "name": "dur", "user": "durloader"},
                "logging": {"level": "INFO", "format": "json"},
            }
        }


def read_yaml(config_path: str | Path) -> dict[str, Any]:
    """
    Read a YAML settings file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping of sections
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping of sections")
    return data


def load_settings(
    config_path: str | Path | None = None,
    env_file: str | Path | None = ".env",
    environ: Mapping[str, str] | None = None,
) -> LoaderSettings:
    """
    Build LoaderSettings from defaults, a YAML file and the environment.

    Args:
        config_path: YAML file (optional)
        env_file: .env file consulted for the override variables (optional)
        environ: Environment to read overrides from (defaults to os.environ)

    Returns:
        Validated LoaderSettings
    """
    data: dict[str, Any] = read_yaml(config_path) if config_path else {}

    overrides: dict[str, Any] = {}
    if env_file and Path(env_file).exists():
        overrides.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    overrides.update(os.environ if environ is None else environ)

    for variable, (section, key) in ENV_OVERRIDES.items():
        value = overrides.get(variable)
        if value:
            data.setdefault(section, {})
            data[section][key] = value

    return LoaderSettings(**data)
