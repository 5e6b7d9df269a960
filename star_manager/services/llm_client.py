"""Client for the OpenRouter chat-completions API.

Sends single-message prompts, pulls the first JSON value out of the reply
text and accumulates token usage across calls.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

import requests

from star_manager.constants import (
    APP_REFERER,
    APP_TITLE,
    DEFAULT_MODEL,
    LLM_MAX_ATTEMPTS,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT,
    OPENROUTER_BASE_URL,
)
from star_manager.exceptions import LLMError
from star_manager.types import TokenStats
from star_manager.utils.logging import (
    log_api_request,
    log_api_response,
    log_with_context,
)

_decoder = json.JSONDecoder()


def extract_json(text: str | None) -> Any:
    """Return the first well-formed JSON array or object embedded in ``text``.

    Model replies often wrap the JSON in prose or a code fence. Each ``[``
    or ``{`` is tried in order as the start of a JSON value.

    Returns:
        The decoded value, or None if the text holds no JSON array or object.
    """
    if not text:
        return None
    for index, char in enumerate(text):
        if char not in "[{":
            continue
        try:
            value, _ = _decoder.raw_decode(text, index)
        except ValueError:
            continue
        return value
    return None


class LLMClient:
    """OpenRouter chat client with fixed-count retries and token accounting."""

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENROUTER_BASE_URL,
        max_attempts: int = LLM_MAX_ATTEMPTS,
        timeout: float = LLM_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": APP_REFERER,
                "X-Title": APP_TITLE,
            }
        )
        self.token_stats = TokenStats()
        self._stats_lock = threading.Lock()

    def _record_usage(self, usage: dict[str, Any] | None) -> None:
        usage = usage or {}
        with self._stats_lock:
            self.token_stats.prompt += int(usage.get("prompt_tokens") or 0)
            self.token_stats.completion += int(usage.get("completion_tokens") or 0)
            self.token_stats.total += int(usage.get("total_tokens") or 0)
            self.token_stats.calls += 1

    def chat(self, prompt: str, model: str = DEFAULT_MODEL) -> str:
        """Send one prompt and return the reply text.

        Raises:
            LLMError: On transport failure, non-2xx status or a malformed body.
        """
        url = f"{self.base_url}/chat/completions"
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": LLM_MAX_TOKENS,
        }
        log_api_request("POST", url, body)
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise LLMError(f"LLM request failed: {e}") from e
        log_api_response(response.status_code, url, response.text)

        if not response.ok:
            raise LLMError(
                f"LLM API error {response.status_code}: {response.text[:200]}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError("LLM API returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError("LLM API returned an unexpected body")

        self._record_usage(data.get("usage"))
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    def chat_json(
        self,
        prompt: str,
        model: str = DEFAULT_MODEL,
        validate: Callable[[Any], bool] | None = None,
    ) -> Any:
        """Send a prompt and return the JSON value found in the reply.

        The whole call is repeated up to ``max_attempts`` times, without
        delay, when the request fails or the reply holds no usable JSON.

        Args:
            prompt: Prompt text.
            model: OpenRouter model id.
            validate: Optional shape check; a False result counts as a
                parse failure.

        Raises:
            LLMError: When every attempt failed.
        """
        last_error = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                text = self.chat(prompt, model)
            except LLMError as e:
                last_error = str(e)
            else:
                value = extract_json(text)
                if value is not None and (validate is None or validate(value)):
                    return value
                last_error = "reply contained no usable JSON"
            log_with_context(
                logging.WARNING,
                f"LLM attempt {attempt}/{self.max_attempts} failed: {last_error}",
                component="llm",
                model=model,
            )
        raise LLMError(
            f"LLM call failed after {self.max_attempts} attempts: {last_error}"
        )
