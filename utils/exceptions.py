"""Error taxonomy for the AIBot workflows.

Each error carries a stable ``error_code`` so the HTTP layer and the logs can
branch on the category without string matching on messages.
"""

from __future__ import annotations

from typing import Any


class AIBotError(Exception):
    """Base class for AIBot domain errors."""

    error_code = "aibot_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class ConfigurationError(AIBotError):
    """Required configuration (LLM endpoint, credentials, model) is missing."""

    error_code = "config_error"


class AIBotDisabledError(AIBotError):
    error_code = "aibot_disabled"

    def __init__(self, message: str = "AIBot local mode is not enabled") -> None:
        super().__init__(message)


class GenerationError(AIBotError):
    """Text generation call failed (network, status, timeout or malformed body)."""

    error_code = "generation_failed"


class WebSearchError(AIBotError):
    """A web search provider failed."""

    error_code = "search_failed"


class WebSearchTimeoutError(WebSearchError):
    error_code = "search_timeout"


class WebSearchConfigError(WebSearchError):
    """Provider credential missing; the provider cannot be used at all."""

    error_code = "search_config_error"


class RetrievalError(AIBotError):
    """Book retrieval API call failed."""

    error_code = "retrieval_failed"


class EmptyRetrievalError(RetrievalError):
    """Book retrieval succeeded but produced nothing usable."""

    error_code = "empty_retrieval"


class PromptNotFoundError(AIBotError):
    error_code = "prompt_not_found"


class WorkflowInputError(AIBotError):
    """A workflow was started without the input it requires."""

    error_code = "invalid_input"
