"""HTTP client for the book retrieval API (text search and multi-query)."""

from typing import Any, Literal

import httpx

from config.config import DEFAULT_BOOK_API_BASE_URL, DEFAULT_PLAIN_TEXT_TEMPLATE, Config
from models.retrieval import RetrievalResult
from utils.exceptions import RetrievalError
from utils.logger import get_logger

logger = get_logger(__name__)

TEXT_SEARCH_PATH = "/api/books/text-search"
MULTI_QUERY_PATH = "/api/books/multi-query"
DEFAULT_TOP_K = 8
DEFAULT_MULTI_QUERY_TOP_K = 12

ResponseFormat = Literal["json", "plain_text"]


class BookRetrievalClient:
    """
    Wraps ``/api/books/text-search`` and ``/api/books/multi-query``.

    An empty ``context_plain_text`` is returned as-is; only transport failures
    and non-success statuses raise.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BOOK_API_BASE_URL,
        *,
        timeout_s: float = 30.0,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._http = http_client or httpx.Client(timeout=timeout_s)

    @staticmethod
    def _with_defaults(payload: dict[str, Any]) -> dict[str, Any]:
        enriched = {key: value for key, value in payload.items() if value is not None}
        enriched.setdefault("response_format", "plain_text")
        enriched.setdefault("plain_text_template", DEFAULT_PLAIN_TEXT_TEMPLATE)
        return enriched

    def _post(self, path: str, payload: dict[str, Any]) -> RetrievalResult:
        endpoint = f"{self.base_url}{path}"
        body = self._with_defaults(payload)
        logger.debug(
            "Book retrieval request",
            extra={"extra_fields": {"endpoint": endpoint, "payload_keys": sorted(body)}},
        )

        try:
            response = self._http.post(endpoint, json=body, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            logger.error(
                "Book retrieval request failed",
                extra={"extra_fields": {"endpoint": endpoint, "error": str(e)}},
            )
            raise RetrievalError(
                f"Book retrieval request failed: {e}", details={"endpoint": endpoint}
            ) from e

        if response.status_code >= 400:
            logger.error(
                "Book retrieval returned an error status",
                extra={"extra_fields": {"endpoint": endpoint, "status": response.status_code}},
            )
            raise RetrievalError(
                f"Book retrieval API returned {response.status_code}",
                details={"endpoint": endpoint, "status": response.status_code},
            )

        content_type = response.headers.get("content-type", "")
        if "text/plain" in content_type:
            return RetrievalResult(context_plain_text=response.text, metadata={})

        try:
            data = response.json()
        except ValueError as e:
            raise RetrievalError(
                "Book retrieval API returned a malformed body", details={"endpoint": endpoint}
            ) from e
        if not isinstance(data, dict):
            raise RetrievalError(
                "Book retrieval API returned a malformed body", details={"endpoint": endpoint}
            )

        context = data.get("context_plain_text")
        if context is None:
            context = data.get("contextPlainText")
        metadata = data.get("metadata")

        result = RetrievalResult(
            context_plain_text=context if isinstance(context, str) else "",
            metadata=metadata if isinstance(metadata, dict) else {},
        )
        if not result.context_plain_text:
            logger.warning(
                "Book retrieval response has no context_plain_text",
                extra={"extra_fields": {"endpoint": endpoint, "book_count": len(result.books)}},
            )
        return result

    def text_search(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        *,
        min_rating: float | None = None,
        response_format: ResponseFormat | None = None,
        plain_text_template: str | None = None,
    ) -> RetrievalResult:
        """Single free-text query."""
        return self._post(
            TEXT_SEARCH_PATH,
            {
                "query": query,
                "top_k": top_k,
                "min_rating": min_rating,
                "response_format": response_format,
                "plain_text_template": plain_text_template,
            },
        )

    def multi_query(
        self,
        markdown_text: str,
        per_query_top_k: int = DEFAULT_MULTI_QUERY_TOP_K,
        final_top_k: int = DEFAULT_TOP_K,
        enable_rerank: bool | None = None,
        *,
        min_rating: float | None = None,
        disable_exact_match: bool | None = None,
        response_format: ResponseFormat | None = None,
        plain_text_template: str | None = None,
    ) -> RetrievalResult:
        """
        Markdown-brief search; the service splits the brief into sub-queries,
        merges and optionally reranks the hits.
        """
        return self._post(
            MULTI_QUERY_PATH,
            {
                "markdown_text": markdown_text,
                "per_query_top_k": per_query_top_k,
                "final_top_k": final_top_k,
                "enable_rerank": enable_rerank,
                "min_rating": min_rating,
                "disable_exact_match": disable_exact_match,
                "response_format": response_format,
                "plain_text_template": plain_text_template,
            },
        )


def create_retrieval_client_from_env(config: Config | None = None) -> BookRetrievalClient:
    config = config or Config()
    return BookRetrievalClient(config.BOOK_API_BASE_URL, timeout_s=config.BOOK_API_TIMEOUT_SECONDS)
