"""Unit tests for the exception hierarchy."""

import pytest

from star_manager.exceptions import (
    AbortedError,
    BackupError,
    ConfigError,
    GitHubAPIError,
    GraphQLError,
    LLMError,
    StarManagerError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_class",
        [ConfigError, GitHubAPIError, GraphQLError, LLMError, BackupError, AbortedError],
    )
    def test_all_derive_from_base(self, exc_class):
        assert issubclass(exc_class, StarManagerError)

    def test_graphql_error_is_github_error(self):
        assert issubclass(GraphQLError, GitHubAPIError)

    def test_catch_by_base_class(self):
        with pytest.raises(StarManagerError):
            raise BackupError("disk full")


class TestGitHubAPIError:
    def test_defaults(self):
        e = GitHubAPIError("boom")
        assert str(e) == "boom"
        assert e.status == 0
        assert e.retryable is False

    def test_carries_status_and_retryable(self):
        e = GraphQLError("Something went wrong", status=502, retryable=True)
        assert e.status == 502
        assert e.retryable is True
