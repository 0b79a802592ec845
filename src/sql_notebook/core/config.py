"""Configuration management for SQL Notebook.

Handles the TOML config file, environment variables, named data source
profiles, and configuration precedence resolution.

Precedence order (highest to lowest):
1. CLI flags (--host, --port, etc.)
2. --dsn flag (parsed into components)
3. Environment variables (PGHOST, PGPORT, PGDATABASE, PGUSER, PGPASSWORD)
4. Named profile (--profile or SQL_NOTEBOOK_PROFILE env var)
5. Config file defaults
6. Built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, field_validator, model_validator

from sql_notebook.core.exceptions import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "sql-notebook" / "config.toml"

PROFILE_ENV_VAR = "SQL_NOTEBOOK_PROFILE"

MAX_PAGE_SIZE = 10_000

_PG_ENV_VARS: dict[str, str] = {
    "PGHOST": "host",
    "PGPORT": "port",
    "PGDATABASE": "dbname",
    "PGUSER": "user",
    "PGPASSWORD": "password",  # pragma: allowlist secret
}

_PROFILE_DEFAULTS: dict[str, Any] = {
    "driver": "postgres",
    "host": "localhost",
    "port": 5432,
    "dbname": "postgres",
    "user": None,
    "password": None,
    "sslmode": "prefer",
    "connect_timeout": 10,
    "application_name": "sql-notebook",
    "path": ":memory:",
}

_SERVER_DEFAULTS: dict[str, Any] = {
    "server_host": "localhost",
    "server_port": 1995,
    "page_size": 100,
}

_VALID_SSLMODES = {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}


def _check_port(v: int) -> int:
    if not (1 <= v <= 65535):
        msg = f"Invalid port: {v}. Must be 1-65535"
        raise ValueError(msg)
    return v


def _check_page_size(v: int) -> int:
    if not (1 <= v <= MAX_PAGE_SIZE):
        msg = f"Invalid page size: {v}. Must be 1-{MAX_PAGE_SIZE}"
        raise ValueError(msg)
    return v


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Split a DSN into profile fields.

    Supports postgresql:// and postgres:// URLs with query params, and
    sqlite:///path/to/file.db (sqlite:// alone means an in-memory database).
    """
    parsed = urlparse(dsn)
    if parsed.scheme == "sqlite":
        path = parsed.path
        if parsed.netloc:
            path = parsed.netloc + path
        return {"driver": "sqlite", "path": path or ":memory:"}

    if parsed.scheme not in ("postgresql", "postgres"):
        msg = (
            f"Invalid DSN scheme: '{parsed.scheme}'. "
            "Expected 'postgresql', 'postgres' or 'sqlite'"
        )
        raise ConfigError(msg)

    result: dict[str, Any] = {"driver": "postgres"}
    if parsed.hostname:
        result["host"] = parsed.hostname
    if parsed.port:
        result["port"] = parsed.port
    if parsed.path and parsed.path.strip("/"):
        result["dbname"] = parsed.path.strip("/")
    if parsed.username:
        result["user"] = parsed.username
    if parsed.password:
        result["password"] = parsed.password
    query_params = parse_qs(parsed.query)
    if "sslmode" in query_params:
        result["sslmode"] = query_params["sslmode"][0]
    if "connect_timeout" in query_params:
        result["connect_timeout"] = int(query_params["connect_timeout"][0])
    if "application_name" in query_params:
        result["application_name"] = query_params["application_name"][0]
    return result


class SourceProfile(BaseModel):
    dsn: str | None = None
    driver: Literal["postgres", "sqlite"] = "postgres"
    host: str = "localhost"
    port: int = 5432
    dbname: str = "postgres"
    user: str | None = None
    password: str | None = None
    sslmode: str = "prefer"
    connect_timeout: int = 10
    application_name: str = "sql-notebook"
    path: str = ":memory:"

    @model_validator(mode="before")
    @classmethod
    def parse_dsn_into_components(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("dsn"):
            dsn_fields = parse_dsn(data["dsn"])
            for key, value in dsn_fields.items():
                if key not in data:
                    data[key] = value
        return data

    @field_validator("sslmode")
    @classmethod
    def validate_sslmode(cls, v: str) -> str:
        if v not in _VALID_SSLMODES:
            msg = f"Invalid sslmode: '{v}'. Must be one of: {', '.join(sorted(_VALID_SSLMODES))}"
            raise ValueError(msg)
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        return _check_port(v)


class ServerSettings(BaseModel):
    host: str = "localhost"
    port: int = 1995
    page_size: int = 100

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        return _check_port(v)

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        return _check_page_size(v)


class AppConfig(BaseModel):
    default_timeout: float = 30.0
    default_profile: str | None = None
    server: ServerSettings = ServerSettings()
    profiles: dict[str, SourceProfile] = {}


class ResolvedConfig(BaseModel):
    driver: Literal["postgres", "sqlite"] = "postgres"
    host: str = "localhost"
    port: int = 5432
    dbname: str = "postgres"
    user: str | None = None
    password: str | None = None
    sslmode: str = "prefer"
    connect_timeout: int = 10
    application_name: str = "sql-notebook"
    path: str = ":memory:"
    default_timeout: float = 30.0
    server_host: str = "localhost"
    server_port: int = 1995
    page_size: int = 100
    active_profile: str | None = None
    sources: dict[str, str] = {}


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file.

    Returns default AppConfig if file doesn't exist.
    Raises ConfigError on malformed TOML or invalid config.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return AppConfig.model_validate(data)
    except (ValueError, ConfigError) as e:
        msg = f"Invalid configuration in {config_path}: {e}"
        raise ConfigError(msg) from e


def resolve_config(
    config: AppConfig,
    profile_name: str | None = None,
    dsn: str | None = None,
    **cli_overrides: Any,
) -> ResolvedConfig:
    """Resolve configuration using precedence chain.

    CLI > DSN > env > profile > config defaults > built-in defaults.
    """
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = {}

    # Layer 1: Built-in defaults
    resolved.update(_PROFILE_DEFAULTS)
    resolved.update(_SERVER_DEFAULTS)
    resolved["default_timeout"] = 30.0
    for key in resolved:
        sources[key] = "default"

    # Layer 2: Config file global defaults
    if config.default_timeout != 30.0:
        resolved["default_timeout"] = config.default_timeout
        sources["default_timeout"] = "config"
    for key in config.server.model_fields_set:
        field_name = "page_size" if key == "page_size" else f"server_{key}"
        resolved[field_name] = getattr(config.server, key)
        sources[field_name] = "config"

    # Layer 3: Named profile
    effective_profile = profile_name
    if not effective_profile:
        effective_profile = os.environ.get(PROFILE_ENV_VAR)
    if not effective_profile:
        effective_profile = config.default_profile

    if effective_profile:
        if effective_profile not in config.profiles:
            available = (
                ", ".join(sorted(config.profiles.keys())) if config.profiles else "none"
            )
            msg = f"Unknown profile: '{effective_profile}'. Available profiles: {available}"
            raise ConfigError(msg)
        profile = config.profiles[effective_profile]
        for key in profile.model_fields_set | {"driver"}:
            if key == "dsn":
                continue
            if key in resolved:
                resolved[key] = getattr(profile, key)
                sources[key] = f"profile: {effective_profile}"

    # Layer 4: Environment variables
    for env_var, field_name in _PG_ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            if field_name == "port":
                try:
                    resolved[field_name] = int(value)
                except ValueError:
                    msg = f"Invalid {env_var} value: '{value}'. Must be an integer"
                    raise ConfigError(msg) from None
            else:
                resolved[field_name] = value
            sources[field_name] = f"env: {env_var}"

    # Layer 5: DSN flag
    if dsn:
        for key, value in parse_dsn(dsn).items():
            if key in resolved:
                resolved[key] = value
                sources[key] = "dsn"

    # Layer 6: CLI flags (highest priority)
    cli_to_field = {
        "host": "host",
        "port": "port",
        "database": "dbname",
        "user": "user",
        "password": "password",  # pragma: allowlist secret
        "timeout": "default_timeout",
        "listen_host": "server_host",
        "listen_port": "server_port",
        "page_size": "page_size",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name.replace('_', '-')}"

    try:
        _check_page_size(resolved["page_size"])
        _check_port(resolved["server_port"])
    except ValueError as e:
        raise ConfigError(str(e)) from None

    resolved["active_profile"] = effective_profile
    resolved["sources"] = sources
    return ResolvedConfig(**resolved)
