"""CLI command handlers for token checks and config scaffolding."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from star_manager.cli.common import (
    cli,
    common_options,
    create_github_client,
    handle_exception,
    resolve_github_token,
)
from star_manager.cli.prompts import Prompter
from star_manager.constants import LIST_SCOPES
from star_manager.core.config import create_default_config, load_config
from star_manager.exceptions import AbortedError
from star_manager.utils.logging import setup_logger

# ---------------------------------------------------------------------------
# check-scopes subcommand
# ---------------------------------------------------------------------------


@cli.command("check-scopes")
@common_options
def check_scopes(config: str, verbose: bool, debug_api: bool) -> None:
    """Check which OAuth scopes the GitHub token carries."""
    setup_logger(verbose, debug_api)
    try:
        cfg = load_config(Path(config))
        client = create_github_client(cfg, resolve_github_token(Prompter()))
        user = client.get_authenticated_user()
        info = client.check_scopes()
    except AbortedError as e:
        click.echo(str(e))
        return
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    click.echo(f"Authenticated as {user.login}")
    click.echo(f"Scopes: {', '.join(info.scopes) or 'none'}")
    if info.can_create_lists:
        click.echo("The token can manage star lists.")
    else:
        click.echo(
            f"The token cannot manage star lists; it needs one of: {', '.join(LIST_SCOPES)}"
        )
        sys.exit(1)


# ---------------------------------------------------------------------------
# init-config subcommand
# ---------------------------------------------------------------------------


@cli.command("init-config")
@click.option(
    "--config",
    default="config.yaml",
    show_default=True,
    help="Where to write the config file",
)
def init_config(config: str) -> None:
    """Write a config file with the default settings."""
    if create_default_config(Path(config)):
        click.echo(f"Created {config}")
    else:
        click.echo(f"Did not create {config}")
        sys.exit(1)
