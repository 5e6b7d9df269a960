"""Custom exception hierarchy for the GitHub stars manager."""

from __future__ import annotations


class StarManagerError(Exception):
    """Base exception for all star-manager errors."""


class ConfigError(StarManagerError):
    """Raised when configuration is invalid or a required token is missing."""


class GitHubAPIError(StarManagerError):
    """Raised when a GitHub REST or GraphQL call fails.

    Attributes:
        status: HTTP status code of the failed response (0 for transport errors).
        retryable: Whether repeating the same call may succeed.
    """

    def __init__(self, message: str, status: int = 0, retryable: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class GraphQLError(GitHubAPIError):
    """Raised when a GraphQL response carries an ``errors`` array."""


class LLMError(StarManagerError):
    """Raised when the LLM service returns an error or an unusable reply."""


class BackupError(StarManagerError):
    """Raised when a backup cannot be written, read or validated."""


class AbortedError(StarManagerError):
    """Raised when the user aborts the interactive workflow."""
