"""CLI command handler for the interactive ``run`` wizard."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from star_manager.cli.agent import StarManagerAgent
from star_manager.cli.common import (
    cli,
    common_options,
    create_github_client,
    dry_run_option,
    handle_exception,
    resolve_github_token,
    resolve_openrouter_key,
)
from star_manager.cli.prompts import Prompter
from star_manager.cli.report import create_output_directory
from star_manager.core.config import load_config
from star_manager.exceptions import AbortedError
from star_manager.services.analyzer import RepoAnalyzer
from star_manager.services.llm_client import LLMClient
from star_manager.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# run subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@dry_run_option
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Only send the first few batches to the LLM (cheap trial run)",
)
@click.option(
    "--max_repos",
    type=click.IntRange(min=1),
    default=None,
    help="Only fetch this many of the most recent stars",
)
def run(
    config: str,
    verbose: bool,
    debug_api: bool,
    dry_run: bool,
    debug: bool,
    max_repos: int | None,
) -> None:
    """Analyze your stars and organize or clean them up interactively.

    Args:
        config: Path to config YAML.
        verbose: Enable verbose console logging.
        debug_api: Enable detailed API request/response logging.
        dry_run: Read and analyze without changing anything on GitHub.
        debug: Limit the LLM passes to the first few batches.
        max_repos: Cap on the number of stars fetched.
    """
    setup_logger(verbose, debug_api)
    prompter = Prompter()

    try:
        cfg = load_config(Path(config))
        if max_repos:
            cfg.max_repos = max_repos

        # Create output directory early so all operations are logged to file
        output_dir = create_output_directory(cfg.output_dir)
        setup_logger(verbose, debug_api, output_dir)
        log_with_context(logging.INFO, f"Output directory: {output_dir}")

        github_token = resolve_github_token(prompter)
        openrouter_key = resolve_openrouter_key(prompter)

        client = create_github_client(cfg, github_token, dry_run)
        llm = LLMClient(
            openrouter_key,
            base_url=cfg.llm_base_url,
            max_attempts=cfg.llm_max_attempts,
        )
        analyzer = RepoAnalyzer(llm, cfg)
        if debug:
            analyzer.set_debug_mode(True, cfg.debug_batch_limit)

        agent = StarManagerAgent(
            client,
            analyzer,
            cfg,
            output_dir,
            prompter=prompter,
            dry_run=dry_run,
        )
        agent.run()
    except AbortedError as e:
        click.echo(str(e))
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)
