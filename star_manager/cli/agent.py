"""The interactive wizard behind the ``run`` command."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from star_manager.cli import report
from star_manager.cli.prompts import Prompter
from star_manager.core.backup import BackupManager
from star_manager.core.config import StarManagerConfig
from star_manager.core.plan import (
    PlanExecutor,
    PlanResult,
    count_by_type,
    generate_plan,
    index_memberships,
    remove_actions_of_type,
    save_plan,
)
from star_manager.exceptions import AbortedError, BackupError, GitHubAPIError, LLMError
from star_manager.services.analyzer import (
    ALL_CRITERIA,
    RepoAnalyzer,
    UnstarCriteria,
    get_repo_stats,
    match_repos_to_list,
)
from star_manager.types import (
    ActionType,
    AnalysisResult,
    ExecutionPlan,
    GitHubUser,
    ListSuggestion,
    RepoSuggestion,
    StarList,
    StarredRepo,
    SuggestionAction,
)
from star_manager.utils.logging import log_with_context

CRITERIA_LABELS = {
    "archived": "Archived repositories",
    "stale": "Stale repositories (no pushes for N years)",
    "low_stars": "Repositories with few stars",
    "deprecated": "Deprecated or superseded projects (LLM)",
    "personal_fork": "Personal forks with no changes (LLM)",
    "joke_meme": "Joke and meme repositories (LLM)",
}

ACTION_LABELS = {
    ActionType.CREATE_LIST: "list creations",
    ActionType.ADD_TO_LIST: "list additions",
    ActionType.UNSTAR: "unstars",
}


class StarManagerAgent:
    """Fetches stars, runs the analysis menus and executes approved plans.

    Args:
        client: GitHubClient, or DryRunGitHubClient for dry runs
        analyzer: RepoAnalyzer bound to an LLM client
        config: Loaded configuration
        output_dir: Run directory for the plan file and log
        prompter: Source of user input
        dry_run: Whether writes are simulated
    """

    def __init__(
        self,
        client,
        analyzer: RepoAnalyzer,
        config: StarManagerConfig,
        output_dir: str,
        prompter: Prompter | None = None,
        dry_run: bool = False,
    ) -> None:
        self.client = client
        self.analyzer = analyzer
        self.config = config
        self.output_dir = output_dir
        self.prompter = prompter or Prompter()
        self.dry_run = dry_run
        self.backups = BackupManager(
            client,
            config.backup_dir,
            concurrency=config.concurrency,
            max_errors=config.max_error_messages,
        )

        self.user: GitHubUser | None = None
        self.repos: list[StarredRepo] = []
        self.lists: list[StarList] = []
        self.contents: dict[str, list[StarredRepo]] = {}
        self.memberships: dict[str, list[str]] = {}

    # -- Setup -----------------------------------------------------------------

    def run(self) -> None:
        try:
            if self.dry_run:
                report.print_dry_run_notice()
            self.fetch_data()
            self.create_backup()
            self.main_menu()
        finally:
            report.print_token_stats(self.analyzer.get_token_stats())

    def fetch_data(self, show_overview: bool = True) -> None:
        """Load the user, stars, lists and list memberships from GitHub."""
        self.user = self.client.get_authenticated_user()
        scopes = self.client.check_scopes()
        if not scopes.can_create_lists:
            self.prompter.echo(
                "Warning: the token lacks the 'user' scope, so lists cannot be created "
                f"(scopes: {', '.join(scopes.scopes) or 'none'})."
            )

        bars = report.ProgressBars(unit="repo")
        self.repos = self.client.get_starred_repos(
            on_progress=bars.callback("Fetching stars"),
            max_count=self.config.max_repos,
        )
        bars.close()
        self.lists = self.client.get_lists()
        self.contents = self.client.get_list_contents(self.lists)
        self.memberships = index_memberships(self.contents)
        log_with_context(
            logging.INFO,
            f"Fetched {len(self.repos)} stars and {len(self.lists)} lists for {self.user.login}",
        )

        if show_overview:
            report.print_overview(
                self.user.login,
                self.repos,
                self.lists,
                get_repo_stats(self.repos, self.config.stale_years),
            )

    def create_backup(self) -> None:
        """Back up before any change; on failure the user decides whether to go on."""
        stars = self.repos
        if self.config.max_repos:
            # The backup always covers every star, not just the fetched subset
            stars = self.client.get_starred_repos()
        try:
            path = self.backups.create_backup(
                self.user.login, stars, self.lists, self.contents
            )
        except BackupError as e:
            self.prompter.echo(f"Backup failed: {e}")
            if not self.prompter.confirm("Continue without a backup?", default=False):
                raise AbortedError("Cancelled: no backup could be created") from e
            return
        self.prompter.echo(f"Backup saved to {path}")

    def main_menu(self) -> None:
        while True:
            choice = self.prompter.select(
                "What would you like to do?",
                [
                    ("categorize", "Organize stars into lists"),
                    ("cleanup", "Clean up stars (find repos to unstar)"),
                    ("exit", "Exit"),
                ],
                default="categorize",
            )
            if choice == "exit":
                return
            try:
                if choice == "categorize":
                    self.categorize_flow()
                else:
                    self.cleanup_flow()
            except LLMError as e:
                self.prompter.echo(f"LLM request failed: {e}")

    # -- Categorization --------------------------------------------------------

    def choose_categorize_mode(self) -> str:
        if not self.lists:
            return "suggest"
        while True:
            mode = self.prompter.select(
                f"You have {len(self.lists)} lists. How should repos be categorized?",
                [
                    ("use_existing", "Use my existing lists"),
                    ("keep_suggest", "Keep existing lists and suggest new ones"),
                    ("reorganize", "Reorganize from scratch with new lists"),
                    ("view", "View a list"),
                    ("cancel", "Cancel"),
                ],
                default="use_existing",
            )
            if mode != "view":
                return mode
            self.view_list()

    def view_list(self) -> None:
        list_id = self.prompter.select(
            "Which list?",
            [(lst.id, f"{lst.name} ({lst.item_count})") for lst in self.lists],
        )
        lst = next(lst for lst in self.lists if lst.id == list_id)
        report.print_list_items(lst, self.contents.get(list_id, []))

    def review_lists(self, existing: Sequence[StarList]) -> list[ListSuggestion] | None:
        """Generate list suggestions and let the user edit them.

        Returns:
            The confirmed suggestions, or None if the user cancelled.
        """
        suggestions = self.analyzer.generate_list_suggestions(self.repos, existing)
        while True:
            report.print_list_suggestions(suggestions)
            choice = self.prompter.select(
                "Review suggested lists",
                [
                    ("confirm", "Confirm these lists"),
                    ("add", "Add a list"),
                    ("remove", "Remove lists"),
                    ("rename", "Rename a list"),
                    ("regenerate", "Regenerate suggestions"),
                    ("cancel", "Cancel"),
                ],
                default="confirm",
            )
            if choice == "confirm":
                if suggestions:
                    return suggestions
                self.prompter.echo("There are no lists to confirm.")
            elif choice == "cancel":
                return None
            elif choice == "regenerate":
                suggestions = self.analyzer.generate_list_suggestions(self.repos, existing)
            elif choice == "add":
                name = self.prompter.text("List name")
                if not name:
                    continue
                description = self.prompter.text("Description", default="")
                raw_keywords = self.prompter.text("Keywords (comma separated)", default="")
                keywords = [k.strip() for k in raw_keywords.split(",") if k.strip()]
                suggestions.append(
                    ListSuggestion(
                        name=name,
                        description=description,
                        keywords=keywords,
                        matching_repos=match_repos_to_list(self.repos, keywords),
                    )
                )
            elif choice == "remove" and suggestions:
                doomed = set(
                    self.prompter.multiselect(
                        "Select lists to remove",
                        [(s.name, s.name) for s in suggestions],
                    )
                )
                suggestions = [s for s in suggestions if s.name not in doomed]
            elif choice == "rename" and suggestions:
                old = self.prompter.select(
                    "Which list?", [(s.name, s.name) for s in suggestions]
                )
                new = self.prompter.text("New name", default=old)
                for s in suggestions:
                    if s.name == old and new:
                        s.name = new

    def categorize_flow(self) -> None:
        mode = self.choose_categorize_mode()
        if mode == "cancel":
            return

        new_lists: list[ListSuggestion] = []
        targets: list[ListSuggestion] = []
        if mode in ("use_existing", "keep_suggest"):
            targets = [
                ListSuggestion(name=lst.name, description=lst.description or "")
                for lst in self.lists
            ]
        if mode in ("suggest", "keep_suggest", "reorganize"):
            existing = self.lists if mode == "keep_suggest" else []
            reviewed = self.review_lists(existing)
            if reviewed is None:
                return
            new_lists = reviewed
            targets.extend(reviewed)
        if not targets:
            self.prompter.echo("No lists to categorize into.")
            return

        candidates = self.repos
        categorized = [r for r in self.repos if self.memberships.get(r.full_name)]
        if (
            mode != "reorganize"
            and categorized
            and self.prompter.confirm(
                f"Skip {len(categorized)} repos that are already in a list?", default=True
            )
        ):
            candidates = [r for r in self.repos if not self.memberships.get(r.full_name)]
        if not candidates:
            self.prompter.echo("Every repo is already categorized.")
            return

        def build() -> ExecutionPlan:
            bars = report.ProgressBars(unit="batch")
            result = self.analyzer.categorize_repos(
                candidates, targets, on_progress=bars.callback("Categorizing")
            )
            bars.close()
            approved = self.review_suggestions(result)
            return generate_plan(approved, new_lists, self.lists)

        self.plan_loop(build(), build)

    # -- Cleanup ---------------------------------------------------------------

    def choose_criteria(self) -> UnstarCriteria | None:
        criteria = self.prompter.multiselect(
            "Which repos should be considered for unstarring?",
            [(c, CRITERIA_LABELS[c]) for c in ALL_CRITERIA],
            defaults=("archived",),
        )
        options = UnstarCriteria(
            criteria=criteria,
            stale_years=self.config.stale_years,
            low_stars_threshold=self.config.low_stars_threshold,
        )
        if "stale" in criteria:
            options.stale_years = self.prompter.integer(
                "Stale after how many years without pushes?",
                default=self.config.stale_years,
                minimum=1,
            )
        if "low_stars" in criteria:
            options.low_stars_threshold = self.prompter.integer(
                "Unstar repos with fewer stars than",
                default=self.config.low_stars_threshold,
            )
        if self.prompter.confirm("Add custom criteria for the LLM?", default=False):
            options.custom = self.prompter.text("Describe what to unstar") or None
        if not options.criteria and not options.custom:
            self.prompter.echo("No criteria selected.")
            return None
        return options

    def cleanup_flow(self) -> None:
        options = self.choose_criteria()
        if options is None:
            return

        def build() -> ExecutionPlan:
            bars = report.ProgressBars(unit="batch")
            result = self.analyzer.analyze_unstar(
                self.repos, options, on_progress=bars.callback("Analyzing")
            )
            bars.close()
            approved = self.review_suggestions(result)
            return generate_plan(approved, (), self.lists)

        self.plan_loop(build(), build)

    # -- Review and execution --------------------------------------------------

    def review_suggestions(self, result: AnalysisResult) -> list[RepoSuggestion]:
        """Let the user accept suggestions; rejected ones become keeps."""
        report.print_analysis(result)
        actionable = [
            s
            for s in result.suggestions
            if s.action in (SuggestionAction.CATEGORIZE, SuggestionAction.UNSTAR)
        ]
        kept = [s for s in result.suggestions if s.action == SuggestionAction.KEEP]
        if not actionable:
            return kept

        choice = self.prompter.select(
            f"Review {len(actionable)} suggestions",
            [
                ("accept", "Accept all"),
                ("one_by_one", "Review one by one"),
                ("skip", "Skip all"),
            ],
            default="accept",
        )
        if choice == "accept":
            return actionable + kept
        if choice == "skip":
            return kept + [
                RepoSuggestion(s.repo, SuggestionAction.KEEP, "Rejected") for s in actionable
            ]

        approved = []
        for s in actionable:
            verb = "Unstar" if s.action == SuggestionAction.UNSTAR else "Categorize"
            if self.prompter.confirm(f"{verb} {report.format_suggestion(s)}?", default=True):
                approved.append(s)
            else:
                approved.append(RepoSuggestion(s.repo, SuggestionAction.KEEP, "Rejected"))
        return approved + kept

    def plan_loop(
        self, plan: ExecutionPlan, regenerate: Callable[[], ExecutionPlan]
    ) -> PlanResult | None:
        """Show the plan until the user executes or cancels it."""
        while True:
            report.print_plan(plan)
            path = save_plan(plan, self.output_dir)
            self.prompter.echo(f"Full plan saved to {path}")
            if not plan.actions:
                return None

            choice = self.prompter.select(
                "What next?",
                [
                    ("execute", "Execute the plan"),
                    ("remove", "Remove all actions of one type"),
                    ("regenerate", "Regenerate the plan"),
                    ("cancel", "Cancel"),
                ],
                default="execute",
            )
            if choice == "cancel":
                return None
            if choice == "regenerate":
                plan = regenerate()
            elif choice == "remove":
                counts = count_by_type(plan)
                action_type = ActionType(
                    self.prompter.select(
                        "Remove which actions?",
                        [
                            (t.value, f"All {ACTION_LABELS[t]} ({n})")
                            for t, n in counts.items()
                        ],
                    )
                )
                if self.prompter.confirm(
                    f"Remove {counts[action_type]} {ACTION_LABELS[action_type]}?",
                    default=True,
                ):
                    plan = remove_actions_of_type(plan, action_type)
            else:
                return self.execute_plan(plan)

    def execute_plan(self, plan: ExecutionPlan) -> PlanResult:
        known = {r.full_name: r for r in self.repos}
        for repos in self.contents.values():
            for repo in repos:
                known.setdefault(repo.full_name, repo)

        bars = report.ProgressBars()
        executor = PlanExecutor(
            self.client,
            lists=self.lists,
            repos=list(known.values()),
            memberships=self.memberships,
            concurrency=self.config.concurrency,
            max_errors=self.config.max_error_messages,
            on_progress=bars,
        )
        try:
            result = executor.execute(plan)
        finally:
            bars.close()
        report.print_plan_result(result)

        if self.dry_run:
            self.prompter.echo("Dry run: no changes were made.")
            return result

        try:
            self.fetch_data(show_overview=False)
        except GitHubAPIError as e:
            log_with_context(logging.WARNING, f"Could not refresh data after execution: {e}")
        return result
