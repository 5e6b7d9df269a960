"""Shared test fixtures for the star_manager test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from star_manager.types import StarList, StarredRepo


def iso_days_ago(days: int) -> str:
    """GitHub-style timestamp ``days`` days in the past."""
    moment = datetime.now(timezone.utc) - timedelta(days=days)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def make_repo(full_name: str, **kwargs) -> StarredRepo:
    """Build a StarredRepo with sensible defaults."""
    owner, _, name = full_name.partition("/")
    defaults = {
        "id": abs(hash(full_name)) % 10_000_000,
        "node_id": f"R_{owner}_{name}",
        "name": name,
        "full_name": full_name,
        "description": f"{name} description",
        "url": f"https://github.com/{full_name}",
        "language": "Python",
        "topics": [],
        "stargazers_count": 500,
        "pushed_at": iso_days_ago(30),
        "updated_at": iso_days_ago(30),
    }
    defaults.update(kwargs)
    return StarredRepo(**defaults)


@pytest.fixture()
def sample_repos():
    """A small, varied set of starred repos."""
    return [
        make_repo(
            "facebook/react",
            description="A JavaScript library for building user interfaces",
            language="JavaScript",
            topics=["react", "frontend", "ui"],
            stargazers_count=220000,
        ),
        make_repo(
            "pytorch/pytorch",
            description="Tensors and dynamic neural networks in Python",
            language="Python",
            topics=["machine-learning", "deep-learning"],
            stargazers_count=80000,
        ),
        make_repo(
            "docker/compose",
            description="Define and run multi-container applications",
            language="Go",
            topics=["docker", "devops"],
            stargazers_count=33000,
        ),
        make_repo(
            "someone/old-tool",
            description="A tool nobody maintains",
            language="Ruby",
            stargazers_count=12,
            pushed_at=iso_days_ago(365 * 4),
            archived=True,
        ),
        make_repo(
            "alice/dotfiles",
            description=None,
            language=None,
            stargazers_count=3,
            pushed_at=iso_days_ago(365 * 3),
        ),
    ]


@pytest.fixture()
def sample_lists():
    return [
        StarList(id="UL_1", name="Frontend", description="UI things", item_count=1),
        StarList(id="UL_2", name="ML", description=None, item_count=0),
    ]


@pytest.fixture()
def repo_factory():
    """Return the ``make_repo`` builder for tests that need custom repos."""
    return make_repo
