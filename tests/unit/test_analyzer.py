"""Unit tests for the repo analyzer."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from star_manager.core.config import StarManagerConfig
from star_manager.exceptions import LLMError
from star_manager.services.analyzer import (
    RepoAnalyzer,
    UnstarCriteria,
    count_languages,
    get_repo_stats,
    match_repos_to_list,
    parse_list_index,
    stratified_sample,
    unwrap_items,
)
from star_manager.services.llm_client import LLMClient
from star_manager.types import ListSuggestion, SuggestionAction, TokenStats

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)

TARGETS = [
    ListSuggestion("Frontend", "UI libraries", ["react", "ui"]),
    ListSuggestion("Machine Learning", "ML frameworks", ["learning"]),
]


@pytest.fixture()
def llm():
    client = MagicMock(spec=LLMClient)
    client.token_stats = TokenStats(total=42, calls=2)
    return client


@pytest.fixture()
def analyzer(llm):
    return RepoAnalyzer(llm, StarManagerConfig(llm_batch_size=2))


# --- local helpers ---


def test_count_languages_uses_unknown(sample_repos):
    counts = dict(count_languages(sample_repos))
    assert counts["Unknown"] == 1
    assert counts["Python"] == 1


def test_get_repo_stats(repo_factory):
    repos = [
        repo_factory("a/archived", archived=True, pushed_at="2026-01-01T00:00:00Z"),
        repo_factory("a/stale", pushed_at="2023-01-01T00:00:00Z"),
        repo_factory("a/fresh", pushed_at="2026-05-01T00:00:00Z"),
        repo_factory("a/unknown", pushed_at=""),
    ]
    stats = get_repo_stats(repos, stale_years=2, now=NOW)
    assert [r.full_name for r in stats.archived_repos] == ["a/archived"]
    assert [r.full_name for r in stats.stale_repos] == ["a/stale"]


def test_stratified_sample_round_robin(repo_factory):
    repos = [repo_factory(f"py/{i}", language="Python") for i in range(5)]
    repos += [repo_factory(f"go/{i}", language="Go") for i in range(2)]
    repos += [repo_factory("rs/0", language="Rust")]

    sample = stratified_sample(repos, size=5)

    assert [r.full_name for r in sample] == ["py/0", "go/0", "rs/0", "py/1", "go/1"]


def test_stratified_sample_smaller_than_size(sample_repos):
    assert len(stratified_sample(sample_repos, size=40)) == len(sample_repos)


def test_match_repos_to_list(sample_repos):
    matches = match_repos_to_list(sample_repos, ["REACT", "neural"])
    assert matches == ["facebook/react", "pytorch/pytorch"]
    assert match_repos_to_list(sample_repos, ["", "  "]) == []


@pytest.mark.parametrize(
    "value,expected",
    [(1, 0), ("2", 1), (" 3 ", 2), (0, None), (4, None), ("x", None), (True, None), (None, None), (1.5, None)],
)
def test_parse_list_index(value, expected):
    assert parse_list_index(value, 3) == expected


def test_unwrap_items():
    assert unwrap_items([1], ("repos",)) == [1]
    assert unwrap_items({"results": [2]}, ("repos", "results")) == [2]
    assert unwrap_items({"repos": "nope"}, ("repos",)) is None
    assert unwrap_items("text", ("repos",)) is None


# --- list suggestions ---


def test_generate_list_suggestions(analyzer, llm, sample_repos, sample_lists):
    llm.chat_json.return_value = {
        "lists": [
            {"name": "Frontend Tools", "description": "UI", "keywords": ["react", 3]},
            {"name": "frontend tools", "description": "dup"},
            {"name": "", "keywords": ["x"]},
            "junk",
            {"name": "Containers", "keywords": ["docker"]},
        ]
    }

    suggestions = analyzer.generate_list_suggestions(sample_repos, sample_lists)

    assert [s.name for s in suggestions] == ["Frontend Tools", "Containers"]
    assert suggestions[0].keywords == ["react"]
    assert suggestions[0].matching_repos == ["facebook/react"]
    assert suggestions[1].matching_repos == ["docker/compose"]
    prompt = llm.chat_json.call_args[0][0]
    assert "Existing lists: Frontend, ML" in prompt
    assert "Total repos: 5" in prompt


def test_generate_list_suggestions_propagates_failure(analyzer, llm, sample_repos):
    llm.chat_json.side_effect = LLMError("down")
    with pytest.raises(LLMError):
        analyzer.generate_list_suggestions(sample_repos)


# --- categorization ---


def test_parse_categorization(analyzer, sample_repos):
    batch = sample_repos[:4]
    reply = [
        {"repo": "FACEBOOK/react", "action": "categorize", "list": 1, "reason": "UI"},
        {"repo": "pytorch/pytorch", "action": "categorize", "list": "9"},
        {"repo": "someone/old-tool", "action": "unstar", "reason": "dead"},
        {"repo": "someone/old-tool", "action": "keep"},
        {"repo": "not/in-batch", "action": "unstar"},
    ]

    suggestions = analyzer.parse_categorization(reply, batch, TARGETS)

    by_name = {s.repo.full_name: s for s in suggestions}
    assert [s.repo.full_name for s in suggestions] == [r.full_name for r in batch]
    assert by_name["facebook/react"].suggested_list == "Frontend"
    assert by_name["pytorch/pytorch"].action == SuggestionAction.KEEP
    assert by_name["pytorch/pytorch"].reason == "No valid list"
    assert by_name["someone/old-tool"].action == SuggestionAction.UNSTAR
    assert by_name["docker/compose"].reason == "Not categorized"


def test_parse_categorization_wrapped_reply(analyzer, sample_repos):
    reply = {"categorization": [{"repo": "facebook/react", "action": "categorize", "list": 2}]}
    suggestions = analyzer.parse_categorization(reply, sample_repos[:1], TARGETS)
    assert suggestions[0].suggested_list == "Machine Learning"


def test_categorize_repos_batches_and_unresolved(analyzer, llm, sample_repos):
    llm.chat_json.side_effect = [
        [{"repo": "facebook/react", "action": "categorize", "list": 1}],
        LLMError("failed after 3 attempts"),
        [],
    ]
    progress = []

    result = analyzer.categorize_repos(
        sample_repos, TARGETS, on_progress=lambda d, t: progress.append((d, t))
    )

    assert llm.chat_json.call_count == 3
    assert [r.full_name for r in result.unresolved] == ["docker/compose", "someone/old-tool"]
    assert len(result.suggestions) == 3
    assert result.suggestions[0].action == SuggestionAction.CATEGORIZE
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_categorize_uses_categorization_model(analyzer, llm, sample_repos):
    analyzer.config.models.categorization = "m/cat"
    llm.chat_json.return_value = []
    analyzer.categorize_repos(sample_repos[:1], TARGETS)
    assert llm.chat_json.call_args[1]["model"] == "m/cat"
    assert "1. Frontend - UI libraries" in llm.chat_json.call_args[0][0]


def test_categorize_without_targets(analyzer, llm, sample_repos):
    assert analyzer.categorize_repos(sample_repos, []).suggestions == []
    llm.chat_json.assert_not_called()


def test_debug_mode_limits_batches(analyzer, llm, sample_repos):
    analyzer.set_debug_mode(True, batch_limit=1)
    llm.chat_json.return_value = []
    result = analyzer.categorize_repos(sample_repos, TARGETS)
    assert llm.chat_json.call_count == 1
    assert len(result.suggestions) == 2

    analyzer.set_debug_mode(False)
    assert analyzer.batch_limit is None


def test_token_stats(analyzer):
    assert analyzer.get_token_stats().total == 42


# --- cleanup ---


def test_local_criteria_only(analyzer, llm, repo_factory):
    repos = [
        repo_factory("a/archived", archived=True, stargazers_count=5, pushed_at="2020-01-01T00:00:00Z"),
        repo_factory("a/fine", stargazers_count=5000, pushed_at="2026-05-01T00:00:00Z"),
    ]
    options = UnstarCriteria(criteria=["archived", "stale", "low_stars"], stale_years=2)

    result = analyzer.analyze_unstar(repos, options, now=NOW)

    llm.chat_json.assert_not_called()
    assert len(result.suggestions) == 1
    reason = result.suggestions[0].reason
    assert reason.startswith("Repository is archived; No pushes in 2+ years")
    assert reason.endswith("Only 5 stars (below 100)")


def test_semantic_criteria_use_llm(analyzer, llm, sample_repos):
    options = UnstarCriteria(criteria=["archived", "deprecated"], custom="  forks of forks ")
    llm.chat_json.side_effect = [
        {"unstar": [{"repo": "facebook/react", "reason": "superseded"}, {"repo": "x/y"}]},
        LLMError("down"),
    ]

    result = analyzer.analyze_unstar(sample_repos, options, now=NOW)

    names = [s.repo.full_name for s in result.suggestions]
    assert names == ["someone/old-tool", "facebook/react"]
    assert result.suggestions[1].reason == "superseded"
    assert [r.full_name for r in result.unresolved] == ["docker/compose", "alice/dotfiles"]
    prompt = llm.chat_json.call_args_list[0][0][0]
    assert "deprecated, superseded" in prompt
    assert "- forks of forks" in prompt
    assert "someone/old-tool" not in prompt


def test_unstar_criteria_properties():
    options = UnstarCriteria(criteria=["stale", "joke_meme"])
    assert options.local == ["stale"]
    assert options.semantic == ["joke_meme"]
    assert options.needs_llm
    assert not UnstarCriteria(criteria=["archived"], custom="  ").needs_llm
