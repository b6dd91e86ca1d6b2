"""Configuration loading with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from bucketview.exceptions import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class StoreConfig(BaseModel):
    """Object store backend configuration."""

    backend: str = "memory"  # memory | s3
    endpoint: str | None = None
    region: str = "us-east-1"
    bucket: str = "bucket"
    access_key: str | None = None
    secret_key: str | None = None
    timeout_seconds: float | None = None  # None disables the client timeout


class ListingConfig(BaseModel):
    """Hierarchical listing settings."""

    default_limit: int = Field(default=50, ge=1)
    page_size: int = Field(default=1000, ge=1, le=1000)
    max_fetch_attempts: int = Field(default=200, ge=1)


class StatsConfig(BaseModel):
    """Stats aggregation settings."""

    max_folders: int = Field(default=1000, ge=1)


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value


class Config(BaseModel):
    """Main configuration for bucketview."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    listing: ListingConfig = Field(default_factory=ListingConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        data = substitute_env_vars(data)
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Config":
        """Build an s3-backed configuration from S3_* environment variables.

        Raises:
            ConfigError: If a required variable is missing or blank
        """
        env = os.environ if environ is None else environ

        def require(name: str) -> str:
            value = env.get(name, "").strip()
            if not value:
                raise ConfigError(f"missing env: {name}")
            return value

        data: dict[str, Any] = {
            "store": {
                "backend": "s3",
                "endpoint": require("S3_ENDPOINT"),
                "region": require("S3_REGION"),
                "access_key": require("S3_ACCESS_KEY_ID"),
                "secret_key": require("S3_SECRET_ACCESS_KEY"),
                "bucket": require("S3_BUCKET"),
            },
        }
        port = env.get("PORT", "").strip()
        if port:
            data["server"] = {"port": port}
        if env.get("LOG_LEVEL"):
            data["logging"] = {"level": env["LOG_LEVEL"]}
        return cls.model_validate(data)
