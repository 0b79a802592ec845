"""Shared CLI plumbing for command modules."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sql_notebook.core.config import load_config, resolve_config

if TYPE_CHECKING:
    from pathlib import Path

    import typer

    from sql_notebook.core.config import ResolvedConfig

_CONNECTION_KEYS = ("host", "port", "database", "user", "password", "timeout")


def get_resolved_config(
    ctx: typer.Context, **overrides: Any
) -> tuple[ResolvedConfig, Path | None]:
    """Resolve configuration from the global options plus command overrides."""
    obj = ctx.ensure_object(dict)
    config_path: Path | None = obj.get("config_file")
    app_config = load_config(config_path)

    cli_overrides: dict[str, Any] = {}
    for key in _CONNECTION_KEYS:
        val = obj.get(key)
        if val is not None:
            cli_overrides[key] = val
    for key, val in overrides.items():
        if val is not None:
            cli_overrides[key] = val

    resolved = resolve_config(
        app_config,
        profile_name=obj.get("profile"),
        dsn=obj.get("dsn"),
        **cli_overrides,
    )
    return resolved, config_path
