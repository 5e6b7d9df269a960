"""Service integrations for the GitHub and OpenRouter APIs and the LLM analysis."""

__all__ = [
    "analyzer",
    "dry_run_client",
    "github_client",
    "llm_client",
]
