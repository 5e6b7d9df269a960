"""Unit tests for the shared domain types."""

from star_manager.types import (
    ActionType,
    AnalysisResult,
    BatchResult,
    ExecutionPlan,
    PlanAction,
    RepoSuggestion,
    StarredRepo,
    SuggestionAction,
)


def test_from_rest_maps_fields():
    repo = StarredRepo.from_rest(
        {
            "id": 10270250,
            "node_id": "MDEwOlJlcG9zaXRvcnkxMDI3MDI1MA==",
            "name": "react",
            "full_name": "facebook/react",
            "description": "UI library",
            "html_url": "https://github.com/facebook/react",
            "language": "JavaScript",
            "topics": ["react"],
            "stargazers_count": 220000,
            "pushed_at": None,
            "archived": True,
        }
    )
    assert repo.full_name == "facebook/react"
    assert repo.owner == "facebook"
    assert repo.repo_name == "react"
    assert repo.url == "https://github.com/facebook/react"
    assert repo.topics == ["react"]
    assert repo.pushed_at == ""
    assert repo.archived is True


def test_from_graphql_maps_nested_fields():
    repo = StarredRepo.from_graphql(
        {
            "id": "R_1",
            "databaseId": 5,
            "name": "compose",
            "nameWithOwner": "docker/compose",
            "primaryLanguage": {"name": "Go"},
            "repositoryTopics": {"nodes": [{"topic": {"name": "docker"}}]},
            "stargazerCount": 33000,
            "isArchived": False,
        }
    )
    assert repo.node_id == "R_1"
    assert repo.id == 5
    assert repo.language == "Go"
    assert repo.topics == ["docker"]
    assert repo.stargazers_count == 33000


def test_from_graphql_without_language():
    repo = StarredRepo.from_graphql({"nameWithOwner": "a/b", "primaryLanguage": None})
    assert repo.language is None
    assert repo.topics == []


def test_batch_result_merge_dedups_and_caps_errors():
    first = BatchResult(success=2, failed=1, errors=["a"])
    second = BatchResult(success=1, failed=3, skipped=1, errors=["a", "b", "c"])

    first.merge(second, max_errors=2)

    assert (first.success, first.failed, first.skipped) == (3, 4, 1)
    assert first.errors == ["a", "b"]
    assert first.total == 8


def test_execution_plan_to_dict_uses_plain_values():
    plan = ExecutionPlan(
        summary="Unstar 1 repo",
        actions=[PlanAction(ActionType.UNSTAR, "Unstar a/b", {"repo": "a/b"})],
    )
    data = plan.to_dict()
    assert data["actions"][0]["type"] == "unstar"
    assert data["actions"][0]["params"] == {"repo": "a/b"}


def test_analysis_result_by_action(repo_factory):
    keep = RepoSuggestion(repo_factory("a/b"), SuggestionAction.KEEP)
    drop = RepoSuggestion(repo_factory("c/d"), SuggestionAction.UNSTAR, "archived")
    result = AnalysisResult(suggestions=[keep, drop])
    assert result.by_action(SuggestionAction.UNSTAR) == [drop]
