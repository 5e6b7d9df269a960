"""Shared CLI infrastructure: option decorators, client factories, error handlers, and the CLI group."""

from __future__ import annotations

import logging
from typing import Callable, ClassVar

import click
import requests

import star_manager
from star_manager.cli.prompts import Prompter
from star_manager.constants import (
    GITHUB_TOKEN_ENV,
    HTTP_FORBIDDEN,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    HTTP_UNAUTHORIZED,
    OPENROUTER_KEY_ENV,
)
from star_manager.core.config import (
    StarManagerConfig,
    get_github_token,
    get_openrouter_key,
)
from star_manager.exceptions import (
    AbortedError,
    GitHubAPIError,
    LLMError,
    StarManagerError,
)
from star_manager.services.dry_run_client import DryRunGitHubClient
from star_manager.services.github_client import GitHubClient
from star_manager.utils.logging import log_with_context

# Create logger instance
logger = logging.getLogger("star_manager")


# ---------------------------------------------------------------------------
# Custom click.Group that defaults to ``run``. When the first CLI token is a
# flag rather than a subcommand, ``run`` is prepended so that
#   ``star-manager --dry_run``
# starts the interactive wizard.
# ---------------------------------------------------------------------------


class DefaultGroup(click.Group):
    """Click group that defaults to the ``run`` subcommand."""

    # Flags that belong to the group itself and should NOT trigger the
    # ``run`` default.
    _GROUP_FLAGS: ClassVar[set[str]] = {"--help", "--version", "-h"}

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        """Prepend ``run`` when there are no args or the first token is a flag.

        Args:
            ctx: The current Click context.
            args: Raw CLI argument list.

        Returns:
            The (possibly modified) argument list for further parsing.
        """
        if not args or (args[0].startswith("-") and args[0] not in self._GROUP_FLAGS):
            args = ["run", *args]
        return super().parse_args(ctx, args)


# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds options shared across subcommands.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--config",
        default="config.yaml",
        show_default=True,
        help="Path to config YAML",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--debug_api",
        is_flag=True,
        default=False,
        help="Enable detailed API request/response logging (creates very large log files)",
    )(f)
    return f


def dry_run_option(f: Callable[..., None]) -> Callable[..., None]:
    return click.option(
        "--dry_run",
        is_flag=True,
        default=False,
        help="Read from GitHub and call the LLM, but make no changes",
    )(f)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    cls=DefaultGroup,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=star_manager.__version__, prog_name="star-manager")
def cli() -> None:
    """Organize and clean up your GitHub stars with an LLM."""


# ---------------------------------------------------------------------------
# Tokens and clients
# ---------------------------------------------------------------------------


def resolve_token(value: str | None, env_name: str, label: str, prompter: Prompter) -> str:
    """Return ``value`` or prompt for it with hidden input.

    Raises:
        AbortedError: If the user enters nothing.
    """
    if value:
        return value
    entered = prompter.password(f"{label} (or set {env_name})")
    if not entered:
        raise AbortedError(f"A {label} is required")
    return entered


def resolve_github_token(prompter: Prompter) -> str:
    return resolve_token(get_github_token(), GITHUB_TOKEN_ENV, "GitHub token", prompter)


def resolve_openrouter_key(prompter: Prompter) -> str:
    return resolve_token(
        get_openrouter_key(), OPENROUTER_KEY_ENV, "OpenRouter API key", prompter
    )


def create_github_client(
    cfg: StarManagerConfig, token: str, dry_run: bool = False
) -> GitHubClient | DryRunGitHubClient:
    client = GitHubClient(
        token,
        api_url=cfg.github_api_url,
        max_retries=cfg.max_retries,
        retry_delay=cfg.retry_delay,
        page_fetch_concurrency=cfg.page_fetch_concurrency,
    )
    if dry_run:
        return DryRunGitHubClient(client)
    return client


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_github_error(e: GitHubAPIError) -> None:
    """Handle GitHub API errors with specific messages.

    Args:
        e: The GitHub error to handle.
    """
    if e.status == HTTP_UNAUTHORIZED:
        log_with_context(logging.ERROR, f"GitHub rejected the token: {e}")
        log_with_context(
            logging.INFO,
            f"Check that {GITHUB_TOKEN_ENV} holds a valid, unexpired token.",
        )
    elif e.status == HTTP_FORBIDDEN and "rate limit" in str(e).lower():
        log_with_context(logging.ERROR, f"GitHub rate limit exceeded: {e}")
        log_with_context(
            logging.INFO, "Wait for the rate limit window to reset and try again."
        )
    elif e.status == HTTP_FORBIDDEN:
        log_with_context(logging.ERROR, f"Permission denied by GitHub: {e}")
        log_with_context(
            logging.INFO,
            "Managing star lists needs a classic token with the 'user' scope. "
            "Run 'star-manager check-scopes' to see what the token has.",
        )
    elif e.status == HTTP_RATE_LIMIT:
        log_with_context(logging.ERROR, f"Rate limit exceeded: {e}")
        log_with_context(logging.INFO, "Wait a few minutes and run again.")
    elif e.status >= HTTP_SERVER_ERROR_MIN:
        log_with_context(logging.ERROR, f"Server error from GitHub: {e}")
        log_with_context(
            logging.INFO, "This is likely a temporary issue. Please try again later."
        )
    else:
        log_with_context(logging.ERROR, f"GitHub API error: {e}")


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, GitHubAPIError):
        handle_github_error(e)
    elif isinstance(e, LLMError):
        log_with_context(logging.ERROR, f"LLM service error: {e}")
        log_with_context(
            logging.INFO,
            f"Check {OPENROUTER_KEY_ENV} and the configured model names.",
        )
    elif isinstance(e, StarManagerError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, requests.RequestException):
        log_with_context(logging.ERROR, f"Network error: {e}")
        log_with_context(logging.INFO, "Check your connection and try again.")
    elif isinstance(e, (KeyboardInterrupt, click.Abort)):
        log_with_context(logging.WARNING, "Interrupted by user.")
        log_with_context(
            logging.INFO, "A backup of the state before any change is in the backup directory."
        )
    else:
        log_with_context(logging.ERROR, f"Unexpected error: {e}", exc_info=True)
