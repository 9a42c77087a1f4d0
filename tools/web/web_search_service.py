"""Unified web search over an ordered provider chain."""

from collections.abc import Callable, Sequence

from models.research import WebSearchSnippet
from utils.logger import get_logger

from .contracts import WebSearchProvider

logger = get_logger(__name__)

UNAVAILABLE_TITLE = "搜索服务暂时不可用"

# Given the configured providers, return the order in which to try them
SelectionPolicy = Callable[[Sequence[WebSearchProvider]], list[WebSearchProvider]]


def primary_first(providers: Sequence[WebSearchProvider]) -> list[WebSearchProvider]:
    return list(providers)


def unavailable_snippet(query: str) -> WebSearchSnippet:
    return WebSearchSnippet(
        title=UNAVAILABLE_TITLE,
        url="",
        snippet=f"无法完成对\"{query}\"的搜索，请稍后重试。",
        source="duckduckgo",
        raw={"error": "All search engines failed"},
    )


class WebSearchService:
    """
    Try providers in policy order.

    A provider that raises or returns zero results hands over to the next one.
    The last provider's answer is returned even when empty. If the last
    provider raises, a single "service unavailable" snippet is returned, so
    this method never raises.
    """

    def __init__(
        self,
        providers: Sequence[WebSearchProvider],
        *,
        default_top_k: int,
        policy: SelectionPolicy = primary_first,
    ):
        if not providers:
            raise ValueError("WebSearchService needs at least one provider")
        self.providers = list(providers)
        self.default_top_k = default_top_k
        self.policy = policy

    def search(self, query: str, top_k: int | None = None) -> list[WebSearchSnippet]:
        effective_top_k = top_k if top_k is not None else self.default_top_k
        chain = self.policy(self.providers)

        logger.info(
            "Web search",
            extra={
                "extra_fields": {
                    "query": query,
                    "top_k": effective_top_k,
                    "chain": [p.name for p in chain],
                }
            },
        )

        for position, provider in enumerate(chain):
            is_last = position == len(chain) - 1
            try:
                results = provider.search(query, effective_top_k)
            except Exception as e:
                if is_last:
                    logger.error(
                        "All web search providers failed",
                        extra={
                            "extra_fields": {
                                "query": query,
                                "provider": provider.name,
                                "error": str(e),
                            }
                        },
                    )
                    return [unavailable_snippet(query)]
                logger.info(
                    "Web search provider failed, falling back",
                    extra={
                        "extra_fields": {
                            "query": query,
                            "provider": provider.name,
                            "error": str(e),
                        }
                    },
                )
                continue

            if results or is_last:
                logger.info(
                    "Web search finished",
                    extra={
                        "extra_fields": {
                            "query": query,
                            "provider": provider.name,
                            "result_count": len(results),
                        }
                    },
                )
                return results

            logger.info(
                "Web search provider returned no results, falling back",
                extra={"extra_fields": {"query": query, "provider": provider.name}},
            )

        # unreachable: the last provider always returns above
        return []
