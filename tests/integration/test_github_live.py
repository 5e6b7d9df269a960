"""Read-only checks against the live GitHub API."""

import pytest

from star_manager.services.github_client import GitHubClient


@pytest.fixture()
def client(live_token):
    return GitHubClient(live_token, max_retries=1)


def test_authenticated_user(client):
    user = client.get_authenticated_user()
    assert user.login


def test_first_stars(client):
    repos = client.get_starred_repos(max_count=5)
    assert len(repos) <= 5
    assert all("/" in r.full_name for r in repos)


def test_lists_and_contents(client):
    lists = client.get_lists()
    contents = client.get_list_contents(lists[:2])
    assert set(contents) == {lst.id for lst in lists[:2]}
