"""Factory for the web search service from environment configuration."""

from config.config import Config
from utils.logger import get_logger

from .duckduckgo_client import MAX_SNIPPETS, DuckDuckGoSearchProvider
from .duckduckgo_mcp_client import DuckDuckGoMcpProvider
from .jina_client import JINA_SEARCH_PER_KEYWORD, JinaSearchProvider
from .web_search_service import WebSearchService

logger = get_logger(__name__)


def create_web_search_service_from_env(config: Config | None = None) -> WebSearchService:
    """
    Build the provider chain.

    Environment variables:
        USE_JINA_SEARCH: "false" skips the hosted provider (default: enabled)
        JINA_API_KEY: Jina API key
        JINA_FETCH_CONTENT: "true" enriches snippets with page text
        DDG_MCP_COMMAND / DDG_MCP_ARGS: stdio DuckDuckGo MCP server (comma-separated args)
        DDG_MCP_WS_URL: WebSocket DuckDuckGo MCP server, used when no command is set
        DDG_MCP_TOOL_NAME: MCP tool to call (default: search)

    The HTTP DuckDuckGo provider is always the last link.
    """
    config = config or Config()
    providers = []

    if config.USE_JINA_SEARCH:
        providers.append(
            JinaSearchProvider(api_key=config.JINA_API_KEY, fetch_content=config.JINA_FETCH_CONTENT)
        )
    if config.DDG_MCP_COMMAND or config.DDG_MCP_WS_URL:
        providers.append(
            DuckDuckGoMcpProvider(
                command=config.DDG_MCP_COMMAND,
                args=config.DDG_MCP_ARGS,
                ws_url=config.DDG_MCP_WS_URL,
                tool_name=config.DDG_MCP_TOOL_NAME,
            )
        )
    providers.append(DuckDuckGoSearchProvider())

    logger.info(
        "Web search provider chain ready",
        extra={"extra_fields": {"providers": [p.name for p in providers]}},
    )
    default_top_k = JINA_SEARCH_PER_KEYWORD if config.USE_JINA_SEARCH else MAX_SNIPPETS
    return WebSearchService(providers, default_top_k=default_top_k)
