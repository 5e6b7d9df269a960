"""Unit test configuration and shared fixtures."""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

import star_manager.utils.logging as log_module
from star_manager.cli.prompts import Prompter

# ---------------------------------------------------------------------------
# HTTP response factory
# ---------------------------------------------------------------------------


def _build_response(
    status: int = 200,
    json_data: Any = None,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> MagicMock:
    """Build a MagicMock shaped like ``requests.Response``.

    ``json()`` returns ``json_data`` or raises ValueError when it is None and
    ``text`` is not valid JSON.
    """
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.ok = status < 400
    response.reason = "OK" if status < 400 else "Error"
    response.headers = CaseInsensitiveDict(headers or {})
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    response.text = text
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON")
    return response


@pytest.fixture()
def make_response():
    """Return the response builder."""
    return _build_response


@pytest.fixture()
def mock_session():
    """A MagicMock standing in for ``requests.Session``."""
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


# ---------------------------------------------------------------------------
# Scripted prompts
# ---------------------------------------------------------------------------


class ScriptedPrompter(Prompter):
    """Prompter that replays queued answers and records every question.

    Answers are consumed in order regardless of the prompt kind. Running out
    of answers fails the test.
    """

    def __init__(self, answers: list[Any] | None = None) -> None:
        self.answers = deque(answers or [])
        self.questions: list[str] = []
        self.output: list[str] = []

    def _next(self, message: str) -> Any:
        self.questions.append(message)
        if not self.answers:
            raise AssertionError(f"No scripted answer for prompt: {message}")
        return self.answers.popleft()

    def echo(self, message: str = "") -> None:
        self.output.append(message)

    def select(self, message, choices, default=None):
        answer = self._next(message)
        values = [value for value, _ in choices]
        assert answer in values, f"{answer!r} is not one of {values}"
        return answer

    def multiselect(self, message, choices, defaults=()):
        return list(self._next(message))

    def confirm(self, message, default=False):
        return bool(self._next(message))

    def text(self, message, default=""):
        return self._next(message)

    def password(self, message):
        return self._next(message)

    def integer(self, message, default, minimum=0):
        return int(self._next(message))


@pytest.fixture()
def scripted_prompter():
    """Return the ScriptedPrompter class."""
    return ScriptedPrompter


@pytest.fixture(autouse=True)
def _reset_debug_api():
    yield
    log_module._DEBUG_API_ENABLED = False
    logging.getLogger("urllib3").handlers.clear()
