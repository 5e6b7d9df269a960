"""
Execution plans: building, editing, saving and running the approved
GitHub mutations.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

import requests

from star_manager.constants import BULK_CONCURRENCY, MAX_ERROR_MESSAGES, PLAN_FILE_NAME
from star_manager.core.executor import SkipOperation, run_bulk
from star_manager.exceptions import GitHubAPIError
from star_manager.types import (
    ActionType,
    BatchResult,
    ExecutionPlan,
    ListSuggestion,
    PlanAction,
    RepoSuggestion,
    StarList,
    StarredRepo,
    SuggestionAction,
)
from star_manager.utils.logging import log_with_context

PhaseProgress = Callable[[str, int, int], None]

PHASE_LABELS = {
    ActionType.CREATE_LIST: "Creating lists",
    ActionType.ADD_TO_LIST: "Categorizing repos",
    ActionType.UNSTAR: "Unstarring repos",
}


@dataclass
class PlanResult:
    """Outcome of each execution phase."""

    lists: BatchResult = field(default_factory=BatchResult)
    categorized: BatchResult = field(default_factory=BatchResult)
    unstarred: BatchResult = field(default_factory=BatchResult)

    @property
    def failed(self) -> int:
        return self.lists.failed + self.categorized.failed + self.unstarred.failed


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def summarize(actions: Sequence[PlanAction]) -> str:
    """One-line summary such as ``Create 2 lists, categorize 10 repos``."""
    counts = Counter(a.type for a in actions)
    parts = []
    if counts[ActionType.CREATE_LIST]:
        parts.append(f"Create {_plural(counts[ActionType.CREATE_LIST], 'list')}")
    if counts[ActionType.ADD_TO_LIST]:
        parts.append(f"categorize {_plural(counts[ActionType.ADD_TO_LIST], 'repo')}")
    if counts[ActionType.UNSTAR]:
        parts.append(f"unstar {_plural(counts[ActionType.UNSTAR], 'repo')}")
    if not parts:
        return "No actions"
    summary = ", ".join(parts)
    return summary[0].upper() + summary[1:]


def generate_plan(
    suggestions: Sequence[RepoSuggestion],
    new_lists: Sequence[ListSuggestion] = (),
    existing_lists: Sequence[StarList] = (),
) -> ExecutionPlan:
    """
    Build the plan for a reviewed analysis.

    Args:
        suggestions: Approved per-repo suggestions
        new_lists: Approved list suggestions; those already present by name
            are not created again
        existing_lists: The user's current lists

    Returns:
        ExecutionPlan with create, add and unstar actions in that order
    """
    existing = {lst.name.lower() for lst in existing_lists}
    actions: list[PlanAction] = []

    for suggestion in new_lists:
        if suggestion.name.lower() in existing:
            continue
        existing.add(suggestion.name.lower())
        actions.append(
            PlanAction(
                type=ActionType.CREATE_LIST,
                description=f"Create list '{suggestion.name}'",
                params={"name": suggestion.name, "description": suggestion.description},
            )
        )

    for s in suggestions:
        if s.action == SuggestionAction.CATEGORIZE and s.suggested_list:
            actions.append(
                PlanAction(
                    type=ActionType.ADD_TO_LIST,
                    description=f"Add {s.repo.full_name} to '{s.suggested_list}'",
                    params={
                        "list_name": s.suggested_list,
                        "repo_full_name": s.repo.full_name,
                    },
                )
            )

    for s in suggestions:
        if s.action == SuggestionAction.UNSTAR:
            actions.append(
                PlanAction(
                    type=ActionType.UNSTAR,
                    description=f"Unstar {s.repo.full_name}"
                    + (f" ({s.reason})" if s.reason else ""),
                    params={"repo_full_name": s.repo.full_name},
                )
            )

    kept = sum(1 for s in suggestions if s.action == SuggestionAction.KEEP)
    reasoning = f"{_plural(kept, 'repo')} left unchanged" if kept else ""
    return ExecutionPlan(summary=summarize(actions), actions=actions, reasoning=reasoning)


def count_by_type(plan: ExecutionPlan) -> dict[ActionType, int]:
    counts = Counter(a.type for a in plan.actions)
    return {t: counts[t] for t in ActionType if counts[t]}


def remove_actions_of_type(plan: ExecutionPlan, action_type: ActionType) -> ExecutionPlan:
    """Return a copy of ``plan`` without the actions of one type."""
    actions = [a for a in plan.actions if a.type != action_type]
    return ExecutionPlan(
        summary=summarize(actions), actions=actions, reasoning=plan.reasoning
    )


def save_plan(plan: ExecutionPlan, output_dir: str) -> str:
    """Write the plan as JSON into ``output_dir`` and return the file path."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, PLAN_FILE_NAME)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(plan.to_dict(), f, indent=2)
    log_with_context(logging.DEBUG, f"Saved plan to {path}")
    return path


def index_memberships(
    contents: Mapping[str, Sequence[StarredRepo]],
) -> dict[str, list[str]]:
    """Invert ``{list_id: repos}`` into ``{repo_full_name: [list_id, ...]}``."""
    memberships: dict[str, list[str]] = {}
    for list_id, repos in contents.items():
        for repo in repos:
            memberships.setdefault(repo.full_name, []).append(list_id)
    return memberships


class PlanExecutor:
    """Runs an approved plan against a GitHub client.

    Args:
        client: A GitHubClient or DryRunGitHubClient
        lists: The user's current lists
        repos: Known repos, used to resolve node ids without extra calls
        memberships: Current list ids per repo full name
    """

    def __init__(
        self,
        client,
        lists: Sequence[StarList],
        repos: Sequence[StarredRepo],
        memberships: Mapping[str, Sequence[str]] | None = None,
        concurrency: int = BULK_CONCURRENCY,
        max_errors: int = MAX_ERROR_MESSAGES,
        on_progress: PhaseProgress | None = None,
    ) -> None:
        self.client = client
        self.lists_by_name = {lst.name.lower(): lst for lst in lists}
        self.repos_by_name = {r.full_name.lower(): r for r in repos}
        self.memberships = {k: list(v) for k, v in (memberships or {}).items()}
        self.concurrency = concurrency
        self.max_errors = max_errors
        self.on_progress = on_progress

    def _progress(self, action_type: ActionType) -> Callable[[int, int], None] | None:
        if not self.on_progress:
            return None
        label = PHASE_LABELS[action_type]
        return lambda done, total: self.on_progress(label, done, total)

    def _resolve_repo(self, full_name: str) -> StarredRepo | None:
        repo = self.repos_by_name.get(full_name.lower())
        if repo is None:
            repo = self.client.get_repo_by_name(full_name)
            if repo is not None:
                self.repos_by_name[full_name.lower()] = repo
        return repo

    def create_lists(self, actions: Sequence[PlanAction]) -> BatchResult:
        """Create lists one at a time; later phases need their ids."""
        result = BatchResult()
        progress = self._progress(ActionType.CREATE_LIST)
        for done, action in enumerate(actions, start=1):
            name = action.params["name"]
            if name.lower() in self.lists_by_name:
                result.skipped += 1
            else:
                try:
                    created = self.client.create_list(
                        name,
                        action.params.get("description") or None,
                        is_private=bool(action.params.get("is_private")),
                    )
                except (GitHubAPIError, requests.RequestException) as e:
                    result.failed += 1
                    message = str(e)
                    if message not in result.errors and len(result.errors) < self.max_errors:
                        result.errors.append(message)
                    log_with_context(
                        logging.ERROR, f"Failed to create list '{name}': {e}"
                    )
                else:
                    self.lists_by_name[created.name.lower()] = created
                    result.success += 1
            if progress:
                progress(done, len(actions))
        return result

    def add_to_lists(self, actions: Sequence[PlanAction]) -> BatchResult:
        """Update memberships with one call per repo.

        All target lists of a repo are combined with its current lists, so
        concurrent calls never overwrite each other's additions.
        """
        targets: dict[str, list[str]] = {}
        for action in actions:
            targets.setdefault(action.params["repo_full_name"], []).append(
                action.params["list_name"]
            )

        def update(full_name: str) -> None:
            list_ids = [
                self.lists_by_name[name.lower()].id
                for name in targets[full_name]
                if name.lower() in self.lists_by_name
            ]
            if not list_ids:
                raise SkipOperation(f"no resolvable list for {full_name}")
            repo = self._resolve_repo(full_name)
            if repo is None or not repo.node_id:
                raise SkipOperation(f"repo {full_name} not found")
            current = self.memberships.get(repo.full_name, [])
            combined = list(dict.fromkeys([*current, *list_ids]))
            self.client.set_repo_lists(repo.node_id, combined)
            self.memberships[repo.full_name] = combined

        return run_bulk(
            list(targets),
            update,
            concurrency=self.concurrency,
            max_errors=self.max_errors,
            on_progress=self._progress(ActionType.ADD_TO_LIST),
            description="list update",
        )

    def unstar(self, actions: Sequence[PlanAction]) -> BatchResult:
        def unstar_one(full_name: str) -> None:
            owner, _, name = full_name.partition("/")
            if not owner or not name:
                raise SkipOperation(f"invalid repo name {full_name}")
            self.client.unstar_repo(owner, name)

        return run_bulk(
            [a.params["repo_full_name"] for a in actions],
            unstar_one,
            concurrency=self.concurrency,
            max_errors=self.max_errors,
            on_progress=self._progress(ActionType.UNSTAR),
            description="unstar",
        )

    def execute(self, plan: ExecutionPlan) -> PlanResult:
        """Run lists, then memberships, then unstars."""
        by_type: dict[ActionType, list[PlanAction]] = {t: [] for t in ActionType}
        for action in plan.actions:
            by_type[action.type].append(action)

        result = PlanResult()
        if by_type[ActionType.CREATE_LIST]:
            result.lists = self.create_lists(by_type[ActionType.CREATE_LIST])
        if by_type[ActionType.ADD_TO_LIST]:
            result.categorized = self.add_to_lists(by_type[ActionType.ADD_TO_LIST])
        if by_type[ActionType.UNSTAR]:
            result.unstarred = self.unstar(by_type[ActionType.UNSTAR])
        return result
