"""Typed client for the GitHub REST and GraphQL APIs.

Stars are read and written through REST. Star lists only exist in the
GraphQL API, so list reads and membership changes go through GraphQL.
Every call runs through :func:`call_with_retry` except list creation,
which is not idempotent.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable

import requests

from star_manager.constants import (
    GITHUB_ACCEPT_HEADER,
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GRAPHQL_PAGE_SIZE,
    GRAPHQL_RETRYABLE_MARKER,
    HTTP_NOT_FOUND,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    LIST_SCOPES,
    PAGE_FETCH_CONCURRENCY,
    STARRED_PAGE_SIZE,
)
from star_manager.exceptions import GitHubAPIError, GraphQLError
from star_manager.types import GitHubUser, RestRepo, ScopeInfo, StarList, StarredRepo
from star_manager.utils.api import call_with_retry, parse_last_page
from star_manager.utils.logging import (
    log_api_request,
    log_api_response,
    log_with_context,
)

ProgressCallback = Callable[[int, int], None]

_REPO_FIELDS = """
      id
      databaseId
      name
      nameWithOwner
      description
      url
      homepageUrl
      primaryLanguage { name }
      repositoryTopics(first: 10) { nodes { topic { name } } }
      stargazerCount
      forkCount
      updatedAt
      pushedAt
      isArchived
      isDisabled
"""

LISTS_QUERY = """
query($cursor: String) {
  viewer {
    lists(first: %d, after: $cursor) {
      pageInfo { hasNextPage endCursor }
      nodes {
        id
        name
        description
        isPrivate
        items(first: 1) { totalCount }
      }
    }
  }
}
""" % (GRAPHQL_PAGE_SIZE,)

LIST_ITEMS_QUERY = """
query($listId: ID!, $cursor: String) {
  node(id: $listId) {
    ... on UserList {
      items(first: %d, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          ... on Repository {%s
          }
        }
      }
    }
  }
}
""" % (GRAPHQL_PAGE_SIZE, _REPO_FIELDS)

CREATE_LIST_MUTATION = """
mutation($input: CreateUserListInput!) {
  createUserList(input: $input) {
    list { id name description isPrivate }
  }
}
"""

DELETE_LIST_MUTATION = """
mutation($listId: ID!) {
  deleteUserList(input: { listId: $listId }) { clientMutationId }
}
"""

UPDATE_LISTS_FOR_ITEM_MUTATION = """
mutation($itemId: ID!, $listIds: [ID!]!) {
  updateUserListsForItem(input: { itemId: $itemId, listIds: $listIds }) {
    item { ... on Repository { id } }
  }
}
"""


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason or f"HTTP {response.status_code}"


def error_from_response(response: requests.Response) -> GitHubAPIError:
    """Build a GitHubAPIError for a failed REST response."""
    status = response.status_code
    retryable = status == HTTP_RATE_LIMIT or status >= HTTP_SERVER_ERROR_MIN
    return GitHubAPIError(
        f"GitHub API error {status}: {_error_message(response)}",
        status=status,
        retryable=retryable,
    )


class GitHubClient:
    """Client for the authenticated user's stars and star lists."""

    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_API_URL,
        max_retries: int = 3,
        retry_delay: float = 1,
        page_fetch_concurrency: int = PAGE_FETCH_CONCURRENCY,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_fetch_concurrency = page_fetch_concurrency
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": GITHUB_ACCEPT_HEADER,
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": "github-star-manager",
            }
        )

    # -- Transport -----------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self.api_url}{path}"
        log_api_request(method, url, json_body or params)
        response = self.session.request(method, url, params=params, json=json_body)
        log_api_response(response.status_code, url, response.text)
        return response

    def _rest(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Issue a REST call with retries; non-2xx responses raise."""

        def attempt() -> requests.Response:
            response = self._send(method, path, params=params)
            if response.status_code >= 400:
                raise error_from_response(response)
            return response

        return call_with_retry(
            attempt,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            description=f"{method} {path}",
        )

    def graphql(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` block.

        Args:
            query: GraphQL document.
            variables: Query variables.
            retry: Retry retryable failures. Disable for non-idempotent
                mutations.

        Raises:
            GraphQLError: If the response carries an ``errors`` array.
            GitHubAPIError: If the HTTP call itself fails.
        """
        body = {"query": query, "variables": variables or {}}

        def attempt() -> dict[str, Any]:
            response = self._send("POST", "/graphql", json_body=body)
            status = response.status_code
            try:
                payload = response.json()
            except ValueError:
                payload = None

            if isinstance(payload, dict) and payload.get("errors"):
                message = ", ".join(
                    str(e.get("message", e)) for e in payload["errors"]
                )
                raise GraphQLError(
                    message,
                    status=status,
                    retryable=GRAPHQL_RETRYABLE_MARKER in message
                    or status >= HTTP_SERVER_ERROR_MIN,
                )
            if status >= 400:
                raise error_from_response(response)
            if not isinstance(payload, dict):
                raise GraphQLError(
                    "GraphQL response was not a JSON object", status=status
                )
            return payload.get("data") or {}

        if not retry:
            return attempt()
        return call_with_retry(
            attempt,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            description="GraphQL request",
        )

    # -- User ----------------------------------------------------------------

    def get_authenticated_user(self) -> GitHubUser:
        data = self._rest("GET", "/user").json()
        return GitHubUser(login=data["login"], id=data.get("node_id", ""))

    def check_scopes(self) -> ScopeInfo:
        """Read the token's OAuth scopes from the ``X-OAuth-Scopes`` header.

        Fine-grained tokens send no header, which reads as no scopes.
        """
        response = self._rest("GET", "/user")
        header = response.headers.get("X-OAuth-Scopes", "")
        scopes = [s.strip() for s in header.split(",") if s.strip()]
        return ScopeInfo(
            scopes=scopes,
            can_create_lists=any(scope in scopes for scope in LIST_SCOPES),
        )

    # -- Stars ---------------------------------------------------------------

    def _fetch_starred_page(self, page: int) -> requests.Response:
        return self._rest(
            "GET",
            "/user/starred",
            params={
                "per_page": STARRED_PAGE_SIZE,
                "page": page,
                "sort": "created",
                "direction": "desc",
            },
        )

    def _starred_items(self, page: int) -> list[dict[str, Any]]:
        return self._fetch_starred_page(page).json() or []

    def get_starred_repos(
        self,
        on_progress: ProgressCallback | None = None,
        max_count: int | None = None,
    ) -> list[StarredRepo]:
        """Fetch the authenticated user's starred repos, newest star first.

        Args:
            on_progress: Called with ``(fetched, estimated_total)`` after
                each page group.
            max_count: Stop after this many repos.

        Returns:
            Repos in page order, truncated to ``max_count``.
        """
        first = self._fetch_starred_page(1)
        first_items = first.json() or []
        if not first_items:
            return []

        max_pages = None
        if max_count:
            max_pages = -(-max_count // STARRED_PAGE_SIZE)

        pages: list[list[dict[str, Any]]] = [first_items]
        link_header = first.headers.get("Link")
        last_page = parse_last_page(link_header)

        if not link_header:
            total_pages = 1
        elif last_page is None:
            total_pages = 0
        else:
            total_pages = min(last_page, max_pages) if max_pages else last_page

        estimated = (total_pages or 1) * STARRED_PAGE_SIZE
        if max_count:
            estimated = min(estimated, max_count)
        if on_progress:
            on_progress(len(first_items), estimated)

        if total_pages > 1:
            width = self.page_fetch_concurrency
            with ThreadPoolExecutor(max_workers=width) as pool:
                for start in range(2, total_pages + 1, width):
                    group = range(start, min(start + width, total_pages + 1))
                    # map() yields in submission order
                    pages.extend(pool.map(self._starred_items, group))
                    if on_progress:
                        on_progress(sum(len(p) for p in pages), estimated)
        elif total_pages == 0:
            log_with_context(
                logging.DEBUG,
                "Link header without a last page, fetching stars sequentially",
                component="github",
            )
            page = 2
            while max_pages is None or page <= max_pages:
                items = self._starred_items(page)
                if not items:
                    break
                pages.append(items)
                if on_progress:
                    fetched = sum(len(p) for p in pages)
                    on_progress(fetched, max(fetched, estimated))
                page += 1

        repos: list[StarredRepo] = []
        for items in pages:
            for item in items:
                # star+json responses wrap the repo
                data: RestRepo = item["repo"] if "repo" in item else item
                repos.append(StarredRepo.from_rest(data))
                if max_count and len(repos) >= max_count:
                    return repos
        return repos

    def star_repo(self, owner: str, repo: str) -> None:
        self._rest("PUT", f"/user/starred/{owner}/{repo}")

    def unstar_repo(self, owner: str, repo: str) -> None:
        self._rest("DELETE", f"/user/starred/{owner}/{repo}")

    def get_repo_by_name(self, full_name: str) -> StarredRepo | None:
        """Look up a repo by ``owner/name``.

        Returns:
            The repo, or None if the name is malformed or the repo does not
            exist or is not visible to the token.
        """
        owner, _, name = full_name.partition("/")
        if not owner or not name or "/" in name:
            return None
        try:
            data = self._rest("GET", f"/repos/{owner}/{name}").json()
        except GitHubAPIError as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise
        return StarredRepo.from_rest(data)

    # -- Lists ---------------------------------------------------------------

    def get_lists(self) -> list[StarList]:
        lists: list[StarList] = []
        cursor = None
        while True:
            data = self.graphql(LISTS_QUERY, {"cursor": cursor})
            connection = data["viewer"]["lists"]
            for node in connection.get("nodes") or []:
                lists.append(
                    StarList(
                        id=node["id"],
                        name=node["name"],
                        description=node.get("description"),
                        is_private=bool(node.get("isPrivate", False)),
                        item_count=(node.get("items") or {}).get("totalCount", 0),
                    )
                )
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return lists
            cursor = page_info.get("endCursor")

    def get_list_items(self, list_id: str) -> list[StarredRepo]:
        """Fetch every repository in a list, following the items cursor."""
        repos: list[StarredRepo] = []
        cursor = None
        while True:
            data = self.graphql(LIST_ITEMS_QUERY, {"listId": list_id, "cursor": cursor})
            node = data.get("node")
            if not node:
                return repos
            items = node["items"]
            for item in items.get("nodes") or []:
                # Non-repository list items have no nameWithOwner
                if not item or not item.get("nameWithOwner"):
                    continue
                repos.append(StarredRepo.from_graphql(item))
            page_info = items.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return repos
            cursor = page_info.get("endCursor")

    def get_list_contents(
        self, lists: Iterable[StarList]
    ) -> dict[str, list[StarredRepo]]:
        """Fetch the items of several lists in parallel, keyed by list id."""
        lists = list(lists)
        if not lists:
            return {}
        with ThreadPoolExecutor(max_workers=self.page_fetch_concurrency) as pool:
            results = pool.map(self.get_list_items, [lst.id for lst in lists])
            return {lst.id: items for lst, items in zip(lists, results)}

    def create_list(
        self, name: str, description: str | None = None, is_private: bool = False
    ) -> StarList:
        data = self.graphql(
            CREATE_LIST_MUTATION,
            {"input": {"name": name, "description": description, "isPrivate": is_private}},
            retry=False,
        )
        created = data["createUserList"]["list"]
        log_with_context(
            logging.INFO, f"Created list '{created['name']}'", component="github"
        )
        return StarList(
            id=created["id"],
            name=created["name"],
            description=created.get("description"),
            is_private=bool(created.get("isPrivate", False)),
            item_count=0,
        )

    def delete_list(self, list_id: str) -> None:
        self.graphql(DELETE_LIST_MUTATION, {"listId": list_id})

    def set_repo_lists(self, repo_id: str, list_ids: Iterable[str]) -> None:
        """Replace the full set of lists a repo belongs to."""
        self.graphql(
            UPDATE_LISTS_FOR_ITEM_MUTATION,
            {"itemId": repo_id, "listIds": list(list_ids)},
        )

    def add_repo_to_list(
        self, list_id: str, repo_id: str, existing_list_ids: Iterable[str] = ()
    ) -> None:
        """Add a repo to a list, keeping the lists it already belongs to."""
        list_ids = list(dict.fromkeys([*existing_list_ids, list_id]))
        self.set_repo_lists(repo_id, list_ids)

    def remove_repo_from_list(
        self, list_id: str, repo_id: str, existing_list_ids: Iterable[str]
    ) -> None:
        self.set_repo_lists(repo_id, [i for i in existing_list_ids if i != list_id])
