"""
Console rendering for the stars manager: overviews, suggestions, plans,
results and progress bars.
"""

from __future__ import annotations

import datetime
import os
from collections import Counter
from typing import Sequence

import click
from tqdm import tqdm

from star_manager.constants import OUTPUT_DIR_NAME
from star_manager.core.backup import Backup, BackupInfo
from star_manager.core.plan import PlanResult, count_by_type
from star_manager.services.analyzer import count_languages
from star_manager.types import (
    ActionType,
    AnalysisResult,
    BatchResult,
    ExecutionPlan,
    ListSuggestion,
    RepoStats,
    StarList,
    StarredRepo,
    SuggestionAction,
    TokenStats,
)
from star_manager.utils.formatting import format_count, truncate

RULE = "=" * 60


def create_output_directory(base_dir: str = OUTPUT_DIR_NAME) -> str:
    """Create a timestamped directory for this run and return its path."""
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join(base_dir, f"run_{timestamp}")
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


def print_header(title: str) -> None:
    click.echo("")
    click.echo(RULE)
    click.echo(title)
    click.echo(RULE)


def print_dry_run_notice() -> None:
    click.secho(
        "Dry run: GitHub will be read but nothing will be changed.",
        fg="yellow",
    )


def print_overview(
    user: str,
    repos: Sequence[StarredRepo],
    lists: Sequence[StarList],
    stats: RepoStats,
) -> None:
    print_header(f"Stars of {user}")
    click.echo(f"Starred repos: {format_count(len(repos))}")
    click.echo(f"Lists: {len(lists)}")
    for lst in lists:
        click.echo(f"  - {lst.name} ({lst.item_count})")
    click.echo(f"Archived: {len(stats.archived_repos)}")
    click.echo(f"Stale: {len(stats.stale_repos)}")
    languages = ", ".join(f"{lang} ({n})" for lang, n in count_languages(repos)[:5])
    if languages:
        click.echo(f"Top languages: {languages}")


def print_list_suggestions(suggestions: Sequence[ListSuggestion]) -> None:
    print_header("Suggested lists")
    if not suggestions:
        click.echo("No lists suggested.")
        return
    for number, s in enumerate(suggestions, start=1):
        click.echo(f"{number}. {s.name} ({len(s.matching_repos)} matching repos)")
        if s.description:
            click.echo(f"     {s.description}")


def print_list_items(lst: StarList, repos: Sequence[StarredRepo]) -> None:
    print_header(f"{lst.name} ({len(repos)} repos)")
    if lst.description:
        click.echo(lst.description)
    for repo in repos:
        click.echo(f"  - {repo.full_name}: {truncate(repo.description, 60)}")


def format_suggestion(suggestion) -> str:
    line = suggestion.repo.full_name
    if suggestion.suggested_list:
        line += f" -> {suggestion.suggested_list}"
    if suggestion.reason:
        line += f" ({suggestion.reason})"
    return line


def print_analysis(result: AnalysisResult, limit: int = 20) -> None:
    """Summarize an analysis, listing up to ``limit`` repos per action."""
    print_header("Analysis")
    categorize = result.by_action(SuggestionAction.CATEGORIZE)
    unstar = result.by_action(SuggestionAction.UNSTAR)
    keep = result.by_action(SuggestionAction.KEEP)

    if categorize:
        per_list = Counter(s.suggested_list for s in categorize)
        click.echo(f"Categorize: {len(categorize)}")
        for name, count in per_list.most_common():
            click.echo(f"  {name}: {count}")
    if unstar:
        click.echo(f"Unstar: {len(unstar)}")
        for s in unstar[:limit]:
            click.echo(f"  - {format_suggestion(s)}")
        if len(unstar) > limit:
            click.echo(f"  ... and {len(unstar) - limit} more")
    if keep:
        click.echo(f"Keep: {len(keep)}")
    if result.unresolved:
        click.secho(
            f"Unresolved (LLM failed, left unchanged): {len(result.unresolved)}",
            fg="yellow",
        )
    if not (categorize or unstar or keep or result.unresolved):
        click.echo("Nothing to do.")


def print_plan(plan: ExecutionPlan, limit: int = 10) -> None:
    print_header(f"Plan: {plan.summary}")
    if plan.reasoning:
        click.echo(plan.reasoning)
    counts = count_by_type(plan)
    for action_type in ActionType:
        if not counts.get(action_type):
            continue
        actions = [a for a in plan.actions if a.type == action_type]
        click.echo(f"{action_type.value} ({len(actions)}):")
        for action in actions[:limit]:
            click.echo(f"  - {action.description}")
        if len(actions) > limit:
            click.echo(f"  ... and {len(actions) - limit} more")


def print_batch_result(label: str, result: BatchResult) -> None:
    line = f"{label}: {result.success} succeeded"
    if result.failed:
        line += f", {result.failed} failed"
    if result.skipped:
        line += f", {result.skipped} skipped"
    click.echo(line)
    for message in result.errors:
        click.secho(f"  ! {message}", fg="red")


def print_plan_result(result: PlanResult) -> None:
    print_header("Results")
    if result.lists.total:
        print_batch_result("Lists created", result.lists)
    if result.categorized.total:
        print_batch_result("Repos categorized", result.categorized)
    if result.unstarred.total:
        print_batch_result("Repos unstarred", result.unstarred)


def print_token_stats(stats: TokenStats) -> None:
    if not stats.calls:
        return
    click.echo(
        f"LLM usage: {stats.calls} calls, {format_count(stats.total)} tokens "
        f"({format_count(stats.prompt)} prompt, {format_count(stats.completion)} completion)"
    )


def print_backups(backups: Sequence[BackupInfo]) -> None:
    if not backups:
        click.echo("No backups found.")
        return
    for number, info in enumerate(backups, start=1):
        click.echo(f"{number}. {info.timestamp or '?'}  {info.user}  {info.filename}")


def print_backup(backup: Backup) -> None:
    print_header(f"Backup of {backup.user} at {backup.timestamp}")
    click.echo(f"Stars: {format_count(len(backup.stars))}")
    click.echo(f"Lists: {len(backup.lists)}")
    for bl in backup.lists:
        click.echo(f"  - {bl.name} ({len(bl.repos)} repos)")


class ProgressBars:
    """Routes ``(label, done, total)`` progress callbacks to tqdm bars."""

    def __init__(self, unit: str = "op") -> None:
        self.unit = unit
        self._bars: dict[str, tqdm] = {}

    def __call__(self, label: str, done: int, total: int) -> None:
        bar = self._bars.get(label)
        if bar is None:
            bar = tqdm(total=total, desc=label, unit=self.unit)
            self._bars[label] = bar
        if bar.total != total:
            bar.total = total
        bar.update(done - bar.n)
        if done >= total:
            bar.close()
            del self._bars[label]

    def callback(self, label: str):
        """A two-argument ``(done, total)`` callback bound to ``label``."""
        return lambda done, total: self(label, done, total)

    def close(self) -> None:
        for bar in self._bars.values():
            bar.close()
        self._bars.clear()
