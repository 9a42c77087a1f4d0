"""Jina Search (hosted) provider with optional Reader full-content enrichment."""

import concurrent.futures
import os
from dataclasses import replace

import httpx

from models.research import WebSearchSnippet
from utils.exceptions import WebSearchConfigError, WebSearchError, WebSearchTimeoutError
from utils.logger import get_logger

from .contracts import WebSearchProvider

logger = get_logger(__name__)

JINA_SEARCH_URL = "https://s.jina.ai/"
JINA_READER_URL = "https://r.jina.ai/"
JINA_API_TIMEOUT_SECONDS = 10.0
JINA_SEARCH_PER_KEYWORD = 5
MAX_ENRICH_WORKERS = 5
SNIPPET_FALLBACK_CHARS = 200
NO_SUMMARY = "暂无摘要"


class JinaSearchProvider(WebSearchProvider):
    """
    Hosted search through the Jina Search API.

    Missing credentials, timeouts and non-success responses all raise so the
    search service can move on to the fallback provider.
    """

    name = "jina"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        fetch_content: bool | None = None,
        http_client: httpx.Client | None = None,
        timeout_s: float = JINA_API_TIMEOUT_SECONDS,
    ):
        """
        Args:
            api_key: Jina API key (defaults to JINA_API_KEY env var)
            fetch_content: Enrich snippets with page text (defaults to JINA_FETCH_CONTENT)
            http_client: Optional shared httpx client
            timeout_s: Per-request timeout
        """
        self.api_key = api_key if api_key is not None else os.getenv("JINA_API_KEY")
        if fetch_content is None:
            fetch_content = os.getenv("JINA_FETCH_CONTENT", "false").strip().lower() == "true"
        self.fetch_content = fetch_content
        self.timeout_s = timeout_s
        self._http = http_client or httpx.Client(timeout=timeout_s)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def search_raw(self, query: str, top_k: int) -> list[WebSearchSnippet]:
        """Run the Search API only, without enrichment."""
        if not self.api_key:
            logger.error("JINA_API_KEY is not configured")
            raise WebSearchConfigError("JINA_API_KEY is not configured")

        logger.info(
            "Jina search request",
            extra={"extra_fields": {"query": query, "top_k": top_k}},
        )

        try:
            response = self._http.post(
                JINA_SEARCH_URL,
                headers=self._headers(),
                json={"q": query, "num": top_k},
                timeout=self.timeout_s,
            )
        except httpx.TimeoutException as e:
            logger.error("Jina search timed out", extra={"extra_fields": {"query": query}})
            raise WebSearchTimeoutError("Jina Search API request timed out") from e
        except httpx.HTTPError as e:
            raise WebSearchError(f"Jina Search API request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Jina search returned an error status",
                extra={
                    "extra_fields": {
                        "query": query,
                        "status": response.status_code,
                        "body": response.text[:500],
                    }
                },
            )
            raise WebSearchError(
                f"Jina Search API request failed: {response.status_code}",
                details={"status": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise WebSearchError("Jina Search API returned a non-JSON body") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            logger.info(
                "Jina search payload has no result list",
                extra={"extra_fields": {"query": query}},
            )
            return []

        snippets = [
            self._to_snippet(item, index) for index, item in enumerate(data) if isinstance(item, dict)
        ]
        logger.info(
            "Jina search succeeded",
            extra={"extra_fields": {"query": query, "result_count": len(snippets)}},
        )
        return snippets

    @staticmethod
    def _to_snippet(item: dict, index: int) -> WebSearchSnippet:
        content = item.get("content") if isinstance(item.get("content"), str) else None
        summary = item.get("description") or (content[:SNIPPET_FALLBACK_CHARS] if content else "")
        return WebSearchSnippet(
            title=item.get("title") or f"搜索结果 {index + 1}",
            url=item.get("url") or "",
            snippet=summary or NO_SUMMARY,
            content=content or None,
            source="jina",
            raw=item,
        )

    def fetch_page_content(self, url: str) -> str | None:
        """
        Fetch full page text through the Reader API.

        Best effort: returns None on any failure or empty content.
        """
        if not self.api_key:
            logger.info("JINA_API_KEY is not configured; skipping page fetch")
            return None

        try:
            response = self._http.post(
                JINA_READER_URL,
                headers=self._headers(),
                json={"url": url},
                timeout=self.timeout_s,
            )
            if response.status_code >= 400:
                logger.info(
                    "Jina reader returned an error status",
                    extra={"extra_fields": {"url": url, "status": response.status_code}},
                )
                return None
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Jina reader request failed",
                extra={"extra_fields": {"url": url, "error": str(e)}},
            )
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        content = data.get("content") if isinstance(data, dict) else None
        if not content:
            logger.info("Jina reader returned empty content", extra={"extra_fields": {"url": url}})
            return None
        return content

    def _enrich_one(self, snippet: WebSearchSnippet) -> WebSearchSnippet:
        if not snippet.url or snippet.content:
            return snippet
        try:
            content = self.fetch_page_content(snippet.url)
        except Exception as e:
            logger.warning(
                "Snippet enrichment failed",
                extra={"extra_fields": {"url": snippet.url, "error": str(e)}},
            )
            return snippet
        return replace(snippet, content=content) if content else snippet

    def enrich(self, snippets: list[WebSearchSnippet]) -> list[WebSearchSnippet]:
        """Fetch page text for every snippet concurrently; order is preserved."""
        if not snippets:
            return snippets
        workers = min(MAX_ENRICH_WORKERS, len(snippets))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            enriched = list(executor.map(self._enrich_one, snippets))

        logger.info(
            "Snippet enrichment finished",
            extra={
                "extra_fields": {
                    "snippet_count": len(enriched),
                    "enriched_count": sum(1 for s in enriched if s.content),
                }
            },
        )
        return enriched

    def search(
        self, query: str, top_k: int = JINA_SEARCH_PER_KEYWORD, with_content: bool | None = None
    ) -> list[WebSearchSnippet]:
        snippets = self.search_raw(query, top_k)
        if not snippets:
            return []

        fetch_content = self.fetch_content if with_content is None else with_content
        if not fetch_content:
            return snippets
        return self.enrich(snippets)
