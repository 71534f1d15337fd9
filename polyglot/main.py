"""
Polyglot — CLI Entry Point

Usage:
    polyglot libraries
    polyglot create-mirror --alternative ID --source ID --target PATH
    polyglot sync [--mirror ID]
    polyglot cleanup
    polyglot admin [--port 5050]
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import click

from .cli.mirror import (
    add_alternative,
    cleanup_cmd,
    create_mirror_cmd,
    delete_mirror_cmd,
    get_services,
    libraries_cmd,
    mirrors_cmd,
    post_scan_cmd,
    sync_cmd,
    validate_cmd,
)
from .logging_config import setup_logging

# Initialize logging
setup_logging()


def get_project_root() -> Path:
    """Directory that relative state paths are resolved against."""
    return Path.cwd()


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Polyglot — per-language media library mirrors."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("root", get_project_root())


# ─── Mirror Commands ──────────────────────────────────────────────

cli.add_command(libraries_cmd)
cli.add_command(mirrors_cmd)
cli.add_command(add_alternative)
cli.add_command(validate_cmd)
cli.add_command(create_mirror_cmd)
cli.add_command(sync_cmd)
cli.add_command(post_scan_cmd)
cli.add_command(cleanup_cmd)
cli.add_command(delete_mirror_cmd)


# ─── Admin ────────────────────────────────────────────────────────

@cli.command("admin")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=5050, type=int, help="Port (default: 5050)")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def admin(ctx: click.Context, host: str, port: int, debug: bool) -> None:
    """Serve the local admin API."""
    from .admin.server import run_server

    run_server(host=host, port=port, debug=debug, services=get_services(ctx))


if __name__ == "__main__":
    cli()
