"""Tests for console rendering and progress bars."""

import os
from unittest.mock import patch

from star_manager.cli import report
from star_manager.core.plan import PlanResult
from star_manager.types import (
    ActionType,
    AnalysisResult,
    BatchResult,
    ExecutionPlan,
    PlanAction,
    RepoSuggestion,
    SuggestionAction,
    TokenStats,
)


def test_create_output_directory(tmp_path):
    path = report.create_output_directory(str(tmp_path))
    assert os.path.isdir(path)
    assert os.path.basename(path).startswith("run_")


def test_print_analysis(capsys, sample_repos):
    result = AnalysisResult(
        suggestions=[
            RepoSuggestion(sample_repos[0], SuggestionAction.CATEGORIZE, "", "Frontend"),
            RepoSuggestion(sample_repos[1], SuggestionAction.UNSTAR, "deprecated"),
            RepoSuggestion(sample_repos[2], SuggestionAction.KEEP),
        ],
        unresolved=[sample_repos[3]],
    )

    report.print_analysis(result)

    out = capsys.readouterr().out
    assert "Categorize: 1" in out
    assert "Frontend: 1" in out
    assert "pytorch/pytorch (deprecated)" in out
    assert "Keep: 1" in out
    assert "Unresolved (LLM failed, left unchanged): 1" in out


def test_print_plan_truncates(capsys):
    actions = [
        PlanAction(ActionType.UNSTAR, f"Unstar a/{i}", {"repo_full_name": f"a/{i}"})
        for i in range(12)
    ]
    report.print_plan(ExecutionPlan(summary="Unstar 12 repos", actions=actions), limit=10)
    out = capsys.readouterr().out
    assert "Plan: Unstar 12 repos" in out
    assert "unstar (12):" in out
    assert "... and 2 more" in out


def test_print_plan_result_skips_empty_phases(capsys):
    result = PlanResult(unstarred=BatchResult(success=2, failed=1, errors=["boom"]))
    report.print_plan_result(result)
    out = capsys.readouterr().out
    assert "Repos unstarred: 2 succeeded, 1 failed" in out
    assert "! boom" in out
    assert "Lists created" not in out


def test_print_token_stats(capsys):
    report.print_token_stats(TokenStats())
    assert capsys.readouterr().out == ""
    report.print_token_stats(TokenStats(prompt=1000, completion=234, total=1234, calls=3))
    assert "LLM usage: 3 calls" in capsys.readouterr().out


class TestProgressBars:
    @patch("star_manager.cli.report.tqdm")
    def test_one_bar_per_label(self, mock_tqdm):
        bar = mock_tqdm.return_value
        bar.n = 0
        bar.total = 4
        bars = report.ProgressBars(unit="repo")

        bars("Fetching", 1, 4)
        bars("Fetching", 2, 4)

        mock_tqdm.assert_called_once_with(total=4, desc="Fetching", unit="repo")
        assert bar.update.call_count == 2

    @patch("star_manager.cli.report.tqdm")
    def test_bar_closed_when_done(self, mock_tqdm):
        bar = mock_tqdm.return_value
        bar.n = 0
        bar.total = 2
        bars = report.ProgressBars()

        bars.callback("Unstarring")(2, 2)

        bar.close.assert_called_once()
        bars("Unstarring", 1, 2)
        assert mock_tqdm.call_count == 2

    @patch("star_manager.cli.report.tqdm")
    def test_total_is_updated(self, mock_tqdm):
        bar = mock_tqdm.return_value
        bar.n = 0
        bar.total = 100
        bars = report.ProgressBars()

        bars("Fetching", 50, 150)

        assert bar.total == 150
        bars.close()
        bar.close.assert_called_once()
