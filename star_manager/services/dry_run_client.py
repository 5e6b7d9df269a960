"""No-op GitHub client for dry-run mode.

Wraps a real :class:`GitHubClient`. Reads go to GitHub so the analysis
works on real data; writes are logged and return placeholder values of
the shapes callers read. Injected in place of the real client when
``--dry_run`` is set, so callers carry no ``if dry_run`` checks.
"""

from __future__ import annotations

import logging
from typing import Iterable

from star_manager.services.github_client import GitHubClient, ProgressCallback
from star_manager.types import GitHubUser, ScopeInfo, StarList, StarredRepo
from star_manager.utils.logging import log_with_context


class DryRunGitHubClient:
    """Drop-in GitHub client that never mutates anything."""

    dry_run = True

    def __init__(self, client: GitHubClient) -> None:
        self._client = client
        self._list_counter = 0

    # -- Reads ---------------------------------------------------------------

    def get_authenticated_user(self) -> GitHubUser:
        return self._client.get_authenticated_user()

    def check_scopes(self) -> ScopeInfo:
        return self._client.check_scopes()

    def get_starred_repos(
        self,
        on_progress: ProgressCallback | None = None,
        max_count: int | None = None,
    ) -> list[StarredRepo]:
        return self._client.get_starred_repos(on_progress=on_progress, max_count=max_count)

    def get_repo_by_name(self, full_name: str) -> StarredRepo | None:
        return self._client.get_repo_by_name(full_name)

    def get_lists(self) -> list[StarList]:
        return self._client.get_lists()

    def get_list_items(self, list_id: str) -> list[StarredRepo]:
        if list_id.startswith("dry-run-"):
            return []
        return self._client.get_list_items(list_id)

    def get_list_contents(
        self, lists: Iterable[StarList]
    ) -> dict[str, list[StarredRepo]]:
        return self._client.get_list_contents(
            [lst for lst in lists if not lst.id.startswith("dry-run-")]
        )

    # -- Writes --------------------------------------------------------------

    def star_repo(self, owner: str, repo: str) -> None:
        log_with_context(logging.DEBUG, f"[DRY RUN] Would star {owner}/{repo}")

    def unstar_repo(self, owner: str, repo: str) -> None:
        log_with_context(logging.DEBUG, f"[DRY RUN] Would unstar {owner}/{repo}")

    def create_list(
        self, name: str, description: str | None = None, is_private: bool = False
    ) -> StarList:
        self._list_counter += 1
        log_with_context(logging.INFO, f"[DRY RUN] Would create list '{name}'")
        return StarList(
            id=f"dry-run-list-{self._list_counter}",
            name=name,
            description=description,
            is_private=is_private,
        )

    def delete_list(self, list_id: str) -> None:
        log_with_context(logging.DEBUG, f"[DRY RUN] Would delete list {list_id}")

    def set_repo_lists(self, repo_id: str, list_ids: Iterable[str]) -> None:
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would set lists of {repo_id} to {list(list_ids)}",
        )

    def add_repo_to_list(
        self, list_id: str, repo_id: str, existing_list_ids: Iterable[str] = ()
    ) -> None:
        log_with_context(
            logging.DEBUG, f"[DRY RUN] Would add {repo_id} to list {list_id}"
        )

    def remove_repo_from_list(
        self, list_id: str, repo_id: str, existing_list_ids: Iterable[str]
    ) -> None:
        log_with_context(
            logging.DEBUG, f"[DRY RUN] Would remove {repo_id} from list {list_id}"
        )
