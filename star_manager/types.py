"""Shared type definitions for the GitHub stars manager.

Provides TypedDicts for the raw GitHub payload shapes, dataclasses for the
domain objects that flow through the fetch -> analyze -> plan -> execute
pipeline, and small result types returned at service boundaries.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, TypedDict

# ---------------------------------------------------------------------------
# GitHub payload types
# ---------------------------------------------------------------------------


class RestRepo(TypedDict, total=False):
    """A repository object from the REST API (``/user/starred``, ``/repos``)."""

    id: int
    node_id: str
    name: str
    full_name: str
    description: str | None
    html_url: str
    homepage: str | None
    language: str | None
    topics: list[str]
    stargazers_count: int
    forks_count: int
    updated_at: str | None
    pushed_at: str | None
    archived: bool
    disabled: bool


class GraphQLRepo(TypedDict, total=False):
    """A ``Repository`` node from the GraphQL API."""

    id: str
    databaseId: int
    name: str
    nameWithOwner: str
    description: str | None
    url: str
    homepageUrl: str | None
    primaryLanguage: dict[str, str] | None
    repositoryTopics: dict[str, list[dict[str, Any]]]
    stargazerCount: int
    forkCount: int
    updatedAt: str
    pushedAt: str
    isArchived: bool
    isDisabled: bool


# ---------------------------------------------------------------------------
# Domain objects
# ---------------------------------------------------------------------------


@dataclass
class StarredRepo:
    """A repository starred by the authenticated user."""

    id: int
    node_id: str
    name: str
    full_name: str
    description: str | None = None
    url: str = ""
    homepage: str | None = None
    language: str | None = None
    topics: list[str] = field(default_factory=list)
    stargazers_count: int = 0
    forks_count: int = 0
    updated_at: str = ""
    pushed_at: str = ""
    archived: bool = False
    disabled: bool = False

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        parts = self.full_name.split("/", 1)
        return parts[1] if len(parts) == 2 else ""

    @classmethod
    def from_rest(cls, data: RestRepo) -> StarredRepo:
        """Build a repo from a REST payload (snake_case fields)."""
        return cls(
            id=data.get("id", 0),
            node_id=data.get("node_id", ""),
            name=data.get("name", ""),
            full_name=data.get("full_name", ""),
            description=data.get("description"),
            url=data.get("html_url", ""),
            homepage=data.get("homepage"),
            language=data.get("language"),
            topics=list(data.get("topics") or []),
            stargazers_count=data.get("stargazers_count", 0),
            forks_count=data.get("forks_count", 0),
            updated_at=data.get("updated_at") or "",
            pushed_at=data.get("pushed_at") or "",
            archived=bool(data.get("archived", False)),
            disabled=bool(data.get("disabled", False)),
        )

    @classmethod
    def from_graphql(cls, node: GraphQLRepo) -> StarredRepo:
        """Build a repo from a GraphQL ``Repository`` node."""
        language = node.get("primaryLanguage") or {}
        topic_nodes = (node.get("repositoryTopics") or {}).get("nodes") or []
        return cls(
            id=node.get("databaseId", 0),
            node_id=node.get("id", ""),
            name=node.get("name", ""),
            full_name=node.get("nameWithOwner", ""),
            description=node.get("description"),
            url=node.get("url", ""),
            homepage=node.get("homepageUrl"),
            language=language.get("name"),
            topics=[t["topic"]["name"] for t in topic_nodes if t.get("topic")],
            stargazers_count=node.get("stargazerCount", 0),
            forks_count=node.get("forkCount", 0),
            updated_at=node.get("updatedAt") or "",
            pushed_at=node.get("pushedAt") or "",
            archived=bool(node.get("isArchived", False)),
            disabled=bool(node.get("isDisabled", False)),
        )


@dataclass
class StarList:
    """A GitHub star list (``UserList``)."""

    id: str
    name: str
    description: str | None = None
    is_private: bool = False
    item_count: int = 0


@dataclass
class ListSuggestion:
    """A list proposed by the LLM, with locally matched repos."""

    name: str
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    matching_repos: list[str] = field(default_factory=list)


class SuggestionAction(str, Enum):
    """What to do with a single starred repo."""

    KEEP = "keep"
    UNSTAR = "unstar"
    CATEGORIZE = "categorize"


@dataclass
class RepoSuggestion:
    """Proposed action for one repo."""

    repo: StarredRepo
    action: SuggestionAction
    reason: str = ""
    suggested_list: str | None = None


@dataclass
class AnalysisResult:
    """Output of a categorization or cleanup pass."""

    suggestions: list[RepoSuggestion] = field(default_factory=list)
    unresolved: list[StarredRepo] = field(default_factory=list)

    def by_action(self, action: SuggestionAction) -> list[RepoSuggestion]:
        return [s for s in self.suggestions if s.action == action]


@dataclass
class RepoStats:
    """Locally computed cleanup signals."""

    archived_repos: list[StarredRepo] = field(default_factory=list)
    stale_repos: list[StarredRepo] = field(default_factory=list)


class ActionType(str, Enum):
    """Kinds of GitHub mutations a plan can contain."""

    CREATE_LIST = "create_list"
    ADD_TO_LIST = "add_to_list"
    UNSTAR = "unstar"


@dataclass
class PlanAction:
    """One approved mutation."""

    type: ActionType
    description: str
    params: dict[str, str] = field(default_factory=dict)


@dataclass
class ExecutionPlan:
    """The full set of mutations shown to the user for approval."""

    summary: str
    actions: list[PlanAction] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for action in data["actions"]:
            action["type"] = ActionType(action["type"]).value
        return data


# ---------------------------------------------------------------------------
# Service result types
# ---------------------------------------------------------------------------


@dataclass
class BatchResult:
    """Aggregate outcome of a bulk write.

    ``errors`` holds distinct failure messages in first-seen order, capped
    by the executor.
    """

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed + self.skipped

    def merge(self, other: BatchResult, max_errors: int | None = None) -> BatchResult:
        """Fold another result into this one and return ``self``."""
        self.success += other.success
        self.failed += other.failed
        self.skipped += other.skipped
        for message in other.errors:
            if message in self.errors:
                continue
            if max_errors is not None and len(self.errors) >= max_errors:
                break
            self.errors.append(message)
        return self


@dataclass
class TokenStats:
    """Accumulated LLM token usage."""

    prompt: int = 0
    completion: int = 0
    total: int = 0
    calls: int = 0


@dataclass
class ScopeInfo:
    """OAuth scopes granted to the GitHub token."""

    scopes: list[str] = field(default_factory=list)
    can_create_lists: bool = False


@dataclass
class GitHubUser:
    """The authenticated GitHub user."""

    login: str
    id: str
