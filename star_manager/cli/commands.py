#!/usr/bin/env python3
"""
Main execution module for the GitHub stars manager.

Importing the subcommand modules registers them on the click group; this
module re-exports the group and the shared error handler.
"""

from star_manager.cli import backup_cmd, check_cmd, run_cmd  # noqa: F401
from star_manager.cli.common import cli, handle_exception

__all__ = ["cli", "handle_exception", "main"]


def main() -> None:
    """Main entry point for the GitHub stars manager."""
    cli()


if __name__ == "__main__":
    main()
