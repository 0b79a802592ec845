"""Configuration management CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from sql_notebook.cli.commands._shared import get_resolved_config
from sql_notebook.core.config import DEFAULT_CONFIG_PATH, load_config

if TYPE_CHECKING:
    from pathlib import Path

config_app = typer.Typer(help="Configuration management commands")


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    if not ctx.invoked_subcommand:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _mask_password(value: str | None) -> str:
    if value is None:
        return "not set"
    return "***"


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Display resolved configuration with source attribution."""
    resolved, config_path = get_resolved_config(ctx)
    sources = resolved.sources

    typer.echo("Data Source (resolved):")
    fields: list[tuple[str, str, str]] = [("driver", "driver", resolved.driver)]
    if resolved.driver == "sqlite":
        fields.append(("path", "path", resolved.path))
    else:
        fields.extend(
            [
                ("host", "host", resolved.host),
                ("port", "port", str(resolved.port)),
                ("database", "dbname", resolved.dbname),
                ("user", "user", resolved.user or "not set"),
                ("password", "password", _mask_password(resolved.password)),
                ("sslmode", "sslmode", resolved.sslmode),
            ]
        )
    for label, source_key, value in fields:
        typer.echo(f"  {label}: {value} ({sources.get(source_key, 'default')})")

    typer.echo("")
    typer.echo("Server:")
    for label, source_key, value in [
        ("listen", "server_host", resolved.server_host),
        ("port", "server_port", str(resolved.server_port)),
        ("page size", "page_size", str(resolved.page_size)),
    ]:
        typer.echo(f"  {label}: {value} ({sources.get(source_key, 'default')})")

    typer.echo("")
    typer.echo("General:")
    timeout_source = sources.get("default_timeout", "default")
    typer.echo(f"  timeout: {resolved.default_timeout}s ({timeout_source})")

    typer.echo("")
    if resolved.active_profile:
        typer.echo(f"Active Profile: {resolved.active_profile}")
    else:
        typer.echo("Active Profile: none")

    display_path = config_path or DEFAULT_CONFIG_PATH
    typer.echo(f"Config File: {display_path}")


@config_app.command("profiles")
def config_profiles(ctx: typer.Context) -> None:
    """List available data source profiles."""
    config_path: Path | None = ctx.obj.get("config_file")
    app_config = load_config(config_path)
    active_profile = ctx.obj.get("profile") or app_config.default_profile

    if not app_config.profiles:
        typer.echo("No profiles configured.")
        display_path = config_path or DEFAULT_CONFIG_PATH
        typer.echo(f"Add profiles to: {display_path}")
        return

    typer.echo("Available Profiles:")
    typer.echo("")
    for name, profile in sorted(app_config.profiles.items()):
        is_active = name == active_profile
        marker = "* " if is_active else "  "
        label = " (active)" if is_active else ""
        typer.echo(f"{marker}{name}{label}")

        display_fields = [("driver", profile.driver)]
        if profile.driver == "sqlite":
            display_fields.append(("path", profile.path))
        else:
            display_fields.extend(
                [
                    ("host", profile.host),
                    ("port", str(profile.port)),
                    ("database", profile.dbname),
                ]
            )
            if profile.user:
                display_fields.append(("user", profile.user))

        for field_name, value in display_fields:
            typer.echo(f"      {field_name}: {value}")
        typer.echo("")
