"""LLM-backed analysis of starred repositories.

Two stages feed the plan:

* list suggestion, which proposes star lists with keywords that are then
  matched against the repos locally;
* categorization, which assigns each repo to one of a numbered set of
  lists in fixed-size batches.

Cleanup analysis evaluates cheap criteria (archived, stale, low stars)
locally and sends semantic criteria to the LLM in the same batched way.
A batch whose LLM call fails on every attempt is reported as unresolved
and never produces a mutation.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Sequence

from star_manager.constants import (
    DEBUG_BATCH_LIMIT,
    LIST_SAMPLE_SIZE,
    MAX_SUGGESTED_LISTS,
    MIN_SUGGESTED_LISTS,
)
from star_manager.core.config import StarManagerConfig
from star_manager.exceptions import LLMError
from star_manager.services.llm_client import LLMClient
from star_manager.types import (
    AnalysisResult,
    ListSuggestion,
    RepoStats,
    RepoSuggestion,
    StarList,
    StarredRepo,
    SuggestionAction,
    TokenStats,
)
from star_manager.utils.formatting import parse_github_datetime, truncate, years_ago
from star_manager.utils.logging import log_with_context

LOCAL_CRITERIA = ("archived", "stale", "low_stars")

SEMANTIC_CRITERIA = {
    "deprecated": "deprecated, superseded or explicitly unmaintained projects",
    "personal_fork": "personal forks or copies of other projects with no meaningful changes",
    "joke_meme": "joke, meme or novelty repositories with no practical use",
}

ALL_CRITERIA = LOCAL_CRITERIA + tuple(SEMANTIC_CRITERIA)

_INDEX_RE = re.compile(r"^\s*-?\d+\s*$")

BatchProgress = Callable[[int, int], None]


@dataclass
class UnstarCriteria:
    """Options for a cleanup analysis."""

    criteria: list[str] = field(default_factory=list)
    stale_years: int = 2
    low_stars_threshold: int = 100
    custom: str | None = None

    @property
    def local(self) -> list[str]:
        return [c for c in self.criteria if c in LOCAL_CRITERIA]

    @property
    def semantic(self) -> list[str]:
        return [c for c in self.criteria if c in SEMANTIC_CRITERIA]

    @property
    def needs_llm(self) -> bool:
        return bool(self.semantic or (self.custom and self.custom.strip()))


# ---------------------------------------------------------------------------
# Local helpers
# ---------------------------------------------------------------------------


def count_languages(repos: Sequence[StarredRepo]) -> list[tuple[str, int]]:
    """Language counts, most common first. Missing languages count as Unknown."""
    return Counter(r.language or "Unknown" for r in repos).most_common()


def count_topics(repos: Sequence[StarredRepo]) -> list[tuple[str, int]]:
    return Counter(t for r in repos for t in r.topics).most_common()


def get_repo_stats(
    repos: Sequence[StarredRepo], stale_years: int = 2, now: datetime | None = None
) -> RepoStats:
    """Find archived repos and repos with no push in ``stale_years`` years."""
    cutoff = years_ago(stale_years, now)
    stats = RepoStats()
    for repo in repos:
        if repo.archived:
            stats.archived_repos.append(repo)
        pushed = parse_github_datetime(repo.pushed_at)
        if pushed is not None and pushed < cutoff:
            stats.stale_repos.append(repo)
    return stats


def stratified_sample(
    repos: Sequence[StarredRepo], size: int = LIST_SAMPLE_SIZE
) -> list[StarredRepo]:
    """Pick up to ``size`` repos round-robin across languages.

    Languages are visited from most to least common so the sample reflects
    the collection without letting one language crowd out the rest.
    """
    groups: dict[str, list[StarredRepo]] = {}
    for repo in repos:
        groups.setdefault(repo.language or "Unknown", []).append(repo)
    ordered = sorted(groups.values(), key=len, reverse=True)

    sample: list[StarredRepo] = []
    depth = 0
    while len(sample) < size:
        added = False
        for group in ordered:
            if depth < len(group):
                sample.append(group[depth])
                added = True
                if len(sample) >= size:
                    break
        if not added:
            break
        depth += 1
    return sample


def match_repos_to_list(
    repos: Sequence[StarredRepo], keywords: Sequence[str]
) -> list[str]:
    """Full names of repos whose text contains any keyword, case-insensitively."""
    needles = [k.lower() for k in keywords if isinstance(k, str) and k.strip()]
    if not needles:
        return []
    matches = []
    for repo in repos:
        haystack = " ".join(
            [repo.full_name, repo.description or "", " ".join(repo.topics), repo.language or ""]
        ).lower()
        if any(needle in haystack for needle in needles):
            matches.append(repo.full_name)
    return matches


def parse_list_index(value: Any, count: int) -> int | None:
    """Convert a 1-based list number from the LLM to a 0-based index.

    Accepts ints and numeric strings. Returns None when the value is not a
    number or is out of range.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _INDEX_RE.match(value):
        number = int(value)
    else:
        return None
    index = number - 1
    if 0 <= index < count:
        return index
    return None


def unwrap_items(value: Any, keys: Sequence[str]) -> list[Any] | None:
    """Return ``value`` if it is a list, else the first list found under ``keys``."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in keys:
            if isinstance(value.get(key), list):
                return value[key]
    return None


def chunked(items: Sequence[StarredRepo], size: int) -> Iterator[list[StarredRepo]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def describe_repo(repo: StarredRepo, desc_limit: int = 80) -> str:
    """One prompt line per repo."""
    topics = ",".join(repo.topics[:5])
    line = f"- {repo.full_name}: {truncate(repo.description, desc_limit)} [{repo.language or '?'}]"
    if topics:
        line += f" topics:{topics}"
    return line


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class RepoAnalyzer:
    """Runs the LLM stages over a set of starred repos."""

    def __init__(self, llm: LLMClient, config: StarManagerConfig | None = None) -> None:
        self.llm = llm
        self.config = config or StarManagerConfig()
        self.debug = False
        self.batch_limit: int | None = None

    def set_debug_mode(self, enabled: bool, batch_limit: int | None = None) -> None:
        """Limit LLM passes to the first few batches for cheap trial runs."""
        self.debug = enabled
        if enabled:
            self.batch_limit = batch_limit or self.config.debug_batch_limit or DEBUG_BATCH_LIMIT
        else:
            self.batch_limit = None

    def get_token_stats(self) -> TokenStats:
        return self.llm.token_stats

    def _batches(self, repos: Sequence[StarredRepo]) -> list[list[StarredRepo]]:
        batches = list(chunked(repos, self.config.llm_batch_size))
        if self.batch_limit is not None and len(batches) > self.batch_limit:
            log_with_context(
                logging.INFO,
                f"Debug mode: processing {self.batch_limit} of {len(batches)} batches",
                component="analyzer",
            )
            batches = batches[: self.batch_limit]
        return batches

    # -- Stage 1: list suggestions ---------------------------------------------

    def build_list_prompt(
        self, repos: Sequence[StarredRepo], existing_lists: Sequence[StarList]
    ) -> str:
        languages = ", ".join(f"{lang}({n})" for lang, n in count_languages(repos)[:10])
        topics = ", ".join(f"{topic}({n})" for topic, n in count_topics(repos)[:15])
        existing = ", ".join(lst.name for lst in existing_lists) or "None"
        sample = "\n".join(describe_repo(r, 60) for r in stratified_sample(repos))
        return f"""Analyze these GitHub starred repos and suggest good list categories.

Existing lists: {existing}

Stats:
- Total repos: {len(repos)}
- Top languages: {languages or "None"}
- Top topics: {topics or "None"}

Sample repos:
{sample}

Suggest {MIN_SUGGESTED_LISTS}-{MAX_SUGGESTED_LISTS} meaningful list categories. Consider:
- Grouping by purpose (tools, libraries, learning, etc.)
- Grouping by domain (web, AI/ML, devops, etc.)
- Don't just group by language unless it makes sense
- Don't repeat the existing lists

Return JSON only:
{{
  "lists": [
    {{ "name": "List Name", "description": "What goes here", "keywords": ["keyword1", "keyword2"] }}
  ]
}}"""

    def generate_list_suggestions(
        self, repos: Sequence[StarredRepo], existing_lists: Sequence[StarList] = ()
    ) -> list[ListSuggestion]:
        """Ask the LLM for new star lists and match repos to them by keyword.

        Raises:
            LLMError: If every attempt failed.
        """
        reply = self.llm.chat_json(
            self.build_list_prompt(repos, existing_lists),
            model=self.config.models.analysis,
            validate=lambda v: unwrap_items(v, ("lists",)) is not None,
        )
        suggestions = []
        seen: set[str] = set()
        for item in unwrap_items(reply, ("lists",)) or []:
            if not isinstance(item, dict):
                continue
            name = str(item.get("name") or "").strip()
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            keywords = [k for k in item.get("keywords") or [] if isinstance(k, str)]
            suggestions.append(
                ListSuggestion(
                    name=name,
                    description=str(item.get("description") or ""),
                    keywords=keywords,
                    matching_repos=match_repos_to_list(repos, keywords),
                )
            )
        log_with_context(
            logging.INFO,
            f"LLM suggested {len(suggestions)} lists",
            component="analyzer",
        )
        return suggestions

    # -- Stage 2: categorization -----------------------------------------------

    def build_categorize_prompt(
        self, batch: Sequence[StarredRepo], targets: Sequence[ListSuggestion]
    ) -> str:
        numbered = "\n".join(
            f"{i}. {t.name}" + (f" - {t.description}" if t.description else "")
            for i, t in enumerate(targets, start=1)
        )
        repos = "\n".join(describe_repo(r) for r in batch)
        return f"""Categorize each of these GitHub starred repositories into one of the numbered lists.

Lists:
{numbered}

Repositories:
{repos}

For each repository choose one action:
- "categorize": it fits a list; set "list" to the list number
- "unstar": it is clearly deprecated, abandoned or no longer useful
- "keep": it fits no list

Return JSON only, an array with one entry per repository:
[
  {{ "repo": "owner/name", "action": "categorize", "list": 1, "reason": "brief reason" }}
]"""

    def parse_categorization(
        self,
        reply: Any,
        batch: Sequence[StarredRepo],
        targets: Sequence[ListSuggestion],
    ) -> list[RepoSuggestion]:
        """Turn a categorization reply into one suggestion per repo in ``batch``."""
        by_name = {r.full_name.lower(): r for r in batch}
        decided: dict[str, RepoSuggestion] = {}

        for item in unwrap_items(reply, ("repos", "categorization", "results")) or []:
            if not isinstance(item, dict):
                continue
            repo = by_name.get(str(item.get("repo") or "").strip().lower())
            if repo is None or repo.full_name in decided:
                continue
            action = str(item.get("action") or "").lower()
            reason = str(item.get("reason") or "")

            if action == SuggestionAction.CATEGORIZE.value:
                index = parse_list_index(item.get("list"), len(targets))
                if index is None:
                    decided[repo.full_name] = RepoSuggestion(
                        repo, SuggestionAction.KEEP, reason or "No valid list"
                    )
                else:
                    decided[repo.full_name] = RepoSuggestion(
                        repo,
                        SuggestionAction.CATEGORIZE,
                        reason,
                        suggested_list=targets[index].name,
                    )
            elif action == SuggestionAction.UNSTAR.value:
                decided[repo.full_name] = RepoSuggestion(
                    repo, SuggestionAction.UNSTAR, reason
                )
            else:
                decided[repo.full_name] = RepoSuggestion(
                    repo, SuggestionAction.KEEP, reason
                )

        return [
            decided.get(r.full_name)
            or RepoSuggestion(r, SuggestionAction.KEEP, "Not categorized")
            for r in batch
        ]

    def categorize_repos(
        self,
        repos: Sequence[StarredRepo],
        targets: Sequence[ListSuggestion],
        on_progress: BatchProgress | None = None,
    ) -> AnalysisResult:
        """Assign each repo to one of ``targets`` in LLM batches.

        Args:
            repos: Repos to categorize.
            targets: Candidate lists, numbered from 1 in the prompt.
            on_progress: Called with ``(batches_done, batch_count)``.
        """
        result = AnalysisResult()
        if not repos or not targets:
            return result

        batches = self._batches(repos)
        for number, batch in enumerate(batches, start=1):
            try:
                reply = self.llm.chat_json(
                    self.build_categorize_prompt(batch, targets),
                    model=self.config.models.categorization,
                    validate=lambda v: unwrap_items(
                        v, ("repos", "categorization", "results")
                    )
                    is not None,
                )
            except LLMError as e:
                log_with_context(
                    logging.ERROR,
                    f"Categorization batch {number} failed, keeping {len(batch)} repos: {e}",
                    component="analyzer",
                )
                result.unresolved.extend(batch)
            else:
                result.suggestions.extend(self.parse_categorization(reply, batch, targets))
            if on_progress:
                on_progress(number, len(batches))
        return result

    # -- Cleanup ---------------------------------------------------------------

    def local_unstar_reasons(
        self, repo: StarredRepo, options: UnstarCriteria, now: datetime | None = None
    ) -> list[str]:
        reasons = []
        if "archived" in options.criteria and repo.archived:
            reasons.append("Repository is archived")
        if "stale" in options.criteria:
            pushed = parse_github_datetime(repo.pushed_at)
            if pushed is not None and pushed < years_ago(options.stale_years, now):
                reasons.append(
                    f"No pushes in {options.stale_years}+ years (last push {pushed.date()})"
                )
        if "low_stars" in options.criteria and repo.stargazers_count < options.low_stars_threshold:
            reasons.append(
                f"Only {repo.stargazers_count} stars (below {options.low_stars_threshold})"
            )
        return reasons

    def build_unstar_prompt(
        self, batch: Sequence[StarredRepo], options: UnstarCriteria
    ) -> str:
        rules = [f"- {SEMANTIC_CRITERIA[c]}" for c in options.semantic]
        if options.custom and options.custom.strip():
            rules.append(f"- {options.custom.strip()}")
        lines = "\n".join(
            f"{describe_repo(r)} stars:{r.stargazers_count} lastPush:{r.pushed_at.split('T')[0] or '?'}"
            for r in batch
        )
        criteria = "\n".join(rules)
        return f"""Review these GitHub starred repositories for cleanup and decide which ones to unstar.

Unstar a repository only if it matches one of these criteria:
{criteria}

Repositories:
{lines}

Be conservative: when in doubt, leave the repository out.

Return JSON only, listing just the repositories to unstar:
{{
  "unstar": [
    {{ "repo": "owner/name", "reason": "which criterion matched and why" }}
  ]
}}"""

    def analyze_unstar(
        self,
        repos: Sequence[StarredRepo],
        options: UnstarCriteria,
        on_progress: BatchProgress | None = None,
        now: datetime | None = None,
    ) -> AnalysisResult:
        """Find repos to unstar under the selected criteria.

        Local criteria are checked first; repos they flag are not sent to
        the LLM. The result only carries unstar suggestions plus the repos
        of failed batches.
        """
        result = AnalysisResult()
        remaining: list[StarredRepo] = []
        for repo in repos:
            reasons = self.local_unstar_reasons(repo, options, now)
            if reasons:
                result.suggestions.append(
                    RepoSuggestion(repo, SuggestionAction.UNSTAR, "; ".join(reasons))
                )
            else:
                remaining.append(repo)

        if not options.needs_llm or not remaining:
            return result

        batches = self._batches(remaining)
        for number, batch in enumerate(batches, start=1):
            try:
                reply = self.llm.chat_json(
                    self.build_unstar_prompt(batch, options),
                    model=self.config.models.analysis,
                    validate=lambda v: unwrap_items(v, ("unstar",)) is not None,
                )
            except LLMError as e:
                log_with_context(
                    logging.ERROR,
                    f"Cleanup batch {number} failed, keeping {len(batch)} repos: {e}",
                    component="analyzer",
                )
                result.unresolved.extend(batch)
            else:
                by_name = {r.full_name.lower(): r for r in batch}
                flagged: set[str] = set()
                for item in unwrap_items(reply, ("unstar",)) or []:
                    if not isinstance(item, dict):
                        continue
                    repo = by_name.get(str(item.get("repo") or "").strip().lower())
                    if repo is None or repo.full_name in flagged:
                        continue
                    flagged.add(repo.full_name)
                    result.suggestions.append(
                        RepoSuggestion(
                            repo, SuggestionAction.UNSTAR, str(item.get("reason") or "")
                        )
                    )
            if on_progress:
                on_progress(number, len(batches))
        return result
