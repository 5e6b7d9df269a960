"""Command-line interface: the click group, subcommands and the interactive wizard."""
