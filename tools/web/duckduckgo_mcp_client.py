"""
DuckDuckGo through an MCP server (e.g. ``uvx duckduckgo-mcp-server``).

Sits ahead of the HTTP provider in the chain when DDG_MCP_COMMAND or
DDG_MCP_WS_URL is configured; any failure here passes the query on to the
plain Instant Answer API.
"""

import asyncio
import json
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.websocket import websocket_client

from models.research import WebSearchSnippet
from utils.exceptions import WebSearchConfigError, WebSearchError
from utils.logger import get_logger

from .contracts import WebSearchProvider
from .duckduckgo_client import DUCKDUCKGO_HOME, MAX_SNIPPETS, NO_SUMMARY

logger = get_logger(__name__)

DEFAULT_TOOL_NAME = "search"
MAX_MCP_COUNT = 20


def _payload_snippet(payload: Any, index: int) -> WebSearchSnippet:
    if not isinstance(payload, dict):
        payload = {"snippet": str(payload)}
    return WebSearchSnippet(
        title=payload.get("title") or f"DuckDuckGo 结果 {index + 1}",
        url=payload.get("url") or DUCKDUCKGO_HOME,
        snippet=payload.get("snippet") or payload.get("summary") or NO_SUMMARY,
        source="duckduckgo",
        raw=payload,
    )


def parse_tool_content(content: list[Any]) -> list[WebSearchSnippet]:
    """
    Turn the text items of a tool result into snippets.

    A text item holding JSON (an object or a list of objects) is read field by
    field; plain text becomes one snippet titled with its first 40 characters.
    """
    payloads: list[Any] = []
    for item in content or []:
        if getattr(item, "type", None) != "text":
            continue
        text = (getattr(item, "text", "") or "").strip()
        if not text:
            continue
        try:
            parsed = json.loads(text)
        except ValueError:
            payloads.append({"title": text[:40], "snippet": text})
            continue
        if isinstance(parsed, list):
            payloads.extend(parsed)
        else:
            payloads.append(parsed)
    return [_payload_snippet(payload, index) for index, payload in enumerate(payloads)]


class DuckDuckGoMcpProvider(WebSearchProvider):
    """Calls the ``search`` tool of a DuckDuckGo MCP server, one session per query."""

    name = "duckduckgo-mcp"

    def __init__(
        self,
        *,
        command: str | None = None,
        args: list[str] | None = None,
        ws_url: str | None = None,
        tool_name: str = DEFAULT_TOOL_NAME,
    ):
        if not command and not ws_url:
            raise WebSearchConfigError("DuckDuckGo MCP needs DDG_MCP_COMMAND or DDG_MCP_WS_URL")
        self.command = command
        self.args = list(args or [])
        self.ws_url = ws_url
        self.tool_name = tool_name

    @property
    def transport(self) -> str:
        return "stdio" if self.command else "websocket"

    def _connect(self):
        if self.command:
            return stdio_client(StdioServerParameters(command=self.command, args=self.args))
        return websocket_client(self.ws_url)

    async def _call_tool(self, query: str, count: int):
        async with self._connect() as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                return await session.call_tool(
                    self.tool_name, arguments={"query": query, "count": count}
                )

    def search(self, query: str, top_k: int = MAX_SNIPPETS) -> list[WebSearchSnippet]:
        """
        Raises:
            WebSearchError: Connection failure or a tool result flagged as an error
        """
        count = max(1, min(top_k, MAX_MCP_COUNT))
        logger.info(
            "DuckDuckGo MCP search request",
            extra={
                "extra_fields": {"query": query, "transport": self.transport, "tool": self.tool_name}
            },
        )
        try:
            result = asyncio.run(self._call_tool(query, count))
        except Exception as e:
            logger.error(
                "DuckDuckGo MCP call failed",
                extra={"extra_fields": {"query": query, "transport": self.transport, "error": str(e)}},
            )
            raise WebSearchError(
                f"DuckDuckGo MCP call failed: {e}", details={"transport": self.transport}
            ) from e

        if result.isError:
            raise WebSearchError(
                "DuckDuckGo MCP tool reported an error",
                details={"tool": self.tool_name, "content": str(result.content)[:500]},
            )

        snippets = parse_tool_content(result.content)
        logger.info(
            "DuckDuckGo MCP search finished",
            extra={"extra_fields": {"query": query, "result_count": len(snippets)}},
        )
        return snippets[:top_k]
