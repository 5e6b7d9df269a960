"""CLI command handlers for creating, listing and restoring backups."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from star_manager.cli import report
from star_manager.cli.common import (
    cli,
    common_options,
    create_github_client,
    dry_run_option,
    handle_exception,
    resolve_github_token,
)
from star_manager.cli.prompts import Prompter
from star_manager.core.backup import BackupManager
from star_manager.core.config import load_config
from star_manager.exceptions import AbortedError, BackupError
from star_manager.utils.logging import setup_logger

# ---------------------------------------------------------------------------
# backup subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
def backup(config: str, verbose: bool, debug_api: bool) -> None:
    """Save a backup of your stars and lists without changing anything."""
    setup_logger(verbose, debug_api)
    try:
        cfg = load_config(Path(config))
        client = create_github_client(cfg, resolve_github_token(Prompter()))
        manager = BackupManager(
            client,
            cfg.backup_dir,
            concurrency=cfg.concurrency,
            max_errors=cfg.max_error_messages,
        )
        user = client.get_authenticated_user()
        bars = report.ProgressBars(unit="repo")
        stars = client.get_starred_repos(
            on_progress=bars.callback("Fetching stars"), max_count=cfg.max_repos
        )
        bars.close()
        lists = client.get_lists()
        path = manager.create_backup(user.login, stars, lists)
        click.echo(f"Backup saved to {path}")
    except AbortedError as e:
        click.echo(str(e))
    except Exception as e:
        handle_exception(e)
        sys.exit(1)


# ---------------------------------------------------------------------------
# list-backups subcommand
# ---------------------------------------------------------------------------


@cli.command("list-backups")
@common_options
def list_backups(config: str, verbose: bool, debug_api: bool) -> None:
    """Show the saved backups, newest first."""
    setup_logger(verbose, debug_api)
    try:
        cfg = load_config(Path(config))
        manager = BackupManager(None, cfg.backup_dir)
        report.print_backups(manager.list_backups())
    except Exception as e:
        handle_exception(e)
        sys.exit(1)


# ---------------------------------------------------------------------------
# restore subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@dry_run_option
@click.option(
    "--file",
    "backup_file",
    default=None,
    help="Backup file to restore (default: choose interactively)",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
def restore(
    config: str,
    verbose: bool,
    debug_api: bool,
    dry_run: bool,
    backup_file: str | None,
    yes: bool,
) -> None:
    """Re-star repos and recreate lists from a backup.

    Nothing is unstarred or removed from lists; the restore only adds what
    the backup has and GitHub is missing.
    """
    setup_logger(verbose, debug_api)
    prompter = Prompter()
    try:
        cfg = load_config(Path(config))
        manager = BackupManager(
            None,
            cfg.backup_dir,
            concurrency=cfg.concurrency,
            max_errors=cfg.max_error_messages,
        )

        if backup_file is None:
            backups = manager.list_backups()
            if not backups:
                click.echo(f"No backups found in {manager.backup_dir}")
                return
            backup_file = prompter.select(
                "Which backup?",
                [
                    (str(info.path), f"{info.timestamp or '?'}  {info.user}  {info.filename}")
                    for info in backups
                ],
                default=str(backups[0].path),
            )

        data = manager.load_backup(backup_file)
        if data is None:
            raise BackupError(f"Backup {backup_file} is missing or invalid")
        report.print_backup(data)
        if dry_run:
            report.print_dry_run_notice()

        if not yes and not prompter.confirm("Restore this backup?", default=False):
            click.echo("Restore cancelled.")
            return

        manager.client = create_github_client(cfg, resolve_github_token(prompter), dry_run)
        bars = report.ProgressBars()
        try:
            result = manager.restore(data, on_progress=bars)
        finally:
            bars.close()
        report.print_batch_result("Restore", result)
        if result.failed:
            sys.exit(1)
    except AbortedError as e:
        click.echo(str(e))
    except Exception as e:
        handle_exception(e)
        sys.exit(1)
