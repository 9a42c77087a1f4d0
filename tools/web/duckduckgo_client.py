"""DuckDuckGo Instant Answer API, used as the fallback web search provider."""

from typing import Any

import httpx

from models.research import WebSearchSnippet
from utils.exceptions import WebSearchError, WebSearchTimeoutError
from utils.logger import get_logger

from .contracts import WebSearchProvider

logger = get_logger(__name__)

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"
DUCKDUCKGO_HOME = "https://duckduckgo.com"
DUCKDUCKGO_TIMEOUT_SECONDS = 30.0
MAX_SNIPPETS = 6
USER_AGENT = "book-echoes-aibot/1.0"
NO_SUMMARY = "暂无摘要"


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def flatten_topics(topics: list[Any]) -> list[WebSearchSnippet]:
    """
    Flatten ``RelatedTopics``; grouped entries carry their members under ``Topics``.
    """
    snippets: list[WebSearchSnippet] = []
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        nested = topic.get("Topics")
        if isinstance(nested, list):
            snippets.extend(flatten_topics(nested))
            continue
        text = _text(topic.get("Text"))
        first_url = _text(topic.get("FirstURL"))
        snippets.append(
            WebSearchSnippet(
                title=text or first_url or "DuckDuckGo",
                url=first_url or DUCKDUCKGO_HOME,
                snippet=_text(topic.get("Result")) or text or NO_SUMMARY,
                source="duckduckgo",
                raw=topic,
            )
        )
    return snippets


def normalize_results(results: list[Any]) -> list[WebSearchSnippet]:
    snippets: list[WebSearchSnippet] = []
    for index, item in enumerate(results):
        if not isinstance(item, dict):
            continue
        snippets.append(
            WebSearchSnippet(
                title=_text(item.get("Text")) or f"DuckDuckGo 结果 {index + 1}",
                url=_text(item.get("FirstURL")) or DUCKDUCKGO_HOME,
                snippet=_text(item.get("Result")) or NO_SUMMARY,
                source="duckduckgo",
                raw=item,
            )
        )
    return snippets


class DuckDuckGoSearchProvider(WebSearchProvider):
    """Keyless public search returning loosely structured topic data."""

    name = "duckduckgo"

    def __init__(
        self,
        *,
        http_client: httpx.Client | None = None,
        timeout_s: float = DUCKDUCKGO_TIMEOUT_SECONDS,
    ):
        self.timeout_s = timeout_s
        self._http = http_client or httpx.Client(timeout=timeout_s)

    def search(self, query: str, top_k: int = MAX_SNIPPETS) -> list[WebSearchSnippet]:
        params = {
            "q": query,
            "format": "json",
            "no_redirect": "1",
            "no_html": "1",
            "skip_disambig": "1",
        }
        logger.info("DuckDuckGo search request", extra={"extra_fields": {"query": query}})

        try:
            response = self._http.get(
                DUCKDUCKGO_API_URL,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout_s,
            )
        except httpx.TimeoutException as e:
            raise WebSearchTimeoutError("DuckDuckGo request timed out") from e
        except httpx.HTTPError as e:
            raise WebSearchError(f"DuckDuckGo request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "DuckDuckGo returned an error status",
                extra={"extra_fields": {"query": query, "status": response.status_code}},
            )
            raise WebSearchError(
                f"DuckDuckGo request failed: {response.status_code}",
                details={"status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise WebSearchError("DuckDuckGo returned a non-JSON body") from e
        if not isinstance(data, dict):
            data = {}

        related = data.get("RelatedTopics")
        results = data.get("Results")
        combined = flatten_topics(related if isinstance(related, list) else [])
        combined.extend(normalize_results(results if isinstance(results, list) else []))

        logger.info(
            "DuckDuckGo search finished",
            extra={"extra_fields": {"query": query, "result_count": len(combined)}},
        )
        return combined[:top_k]
