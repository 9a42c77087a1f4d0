"""Web search tools for the AIBot research workflow."""

from .contracts import WebSearchProvider
from .factory import create_web_search_service_from_env
from .web_search_service import WebSearchService

__all__ = ["WebSearchProvider", "WebSearchService", "create_web_search_service_from_env"]
