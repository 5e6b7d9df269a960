"""Integration test configuration.

These tests talk to the real GitHub API and are skipped by default. Set the
STAR_MANAGER_LIVE_TOKEN environment variable to a classic token to enable
them. They only read; nothing is starred, unstarred or changed.
"""

import os

import pytest


@pytest.fixture()
def live_token():
    token = os.environ.get("STAR_MANAGER_LIVE_TOKEN")
    if not token:
        pytest.skip("Integration tests require STAR_MANAGER_LIVE_TOKEN env var")
    return token
