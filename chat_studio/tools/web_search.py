"""Web search tool backed by Tavily."""

import json
from typing import Any, Protocol

from langchain_core.tools import ToolException
from langchain_tavily import TavilySearch
from pydantic import BaseModel, Field

from chat_studio.errors import ToolExecutionError
from chat_studio.tools.base import ToolDefinition
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

WEB_SEARCH_TOOL_NAME = "web_search"
MAX_RESULTS = 5


class SearchResult(BaseModel):
    """A single web search hit."""

    title: str = ""
    url: str = ""
    content: str = ""
    score: float = 0.0


class SearchBackend(Protocol):
    """Interface for web search backends."""

    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        """Search the web.

        Args:
            query: Free-text search query
            max_results: Upper bound on returned hits

        Returns:
            Hits in relevance order

        Raises:
            ToolExecutionError: If the search cannot be performed
        """
        ...


class TavilySearchBackend:
    """Search backend using the Tavily API through langchain-tavily."""

    def __init__(self, api_key: str | None):
        self.api_key = api_key

    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        if not self.api_key:
            raise ToolExecutionError(
                WEB_SEARCH_TOOL_NAME,
                "TAVILY_API_KEY is not set. Please add it to the server environment.",
            )

        search_tool = TavilySearch(max_results=max_results, include_images=False, tavily_api_key=self.api_key)
        try:
            response: Any = await search_tool.ainvoke({"query": query})
        except ToolException as e:
            # Raised by langchain-tavily when a query has no hits
            logger.info(f"Tavily returned no results for {query!r}: {e}")
            return []

        if isinstance(response, dict) and "error" in response:
            raise ToolExecutionError(WEB_SEARCH_TOOL_NAME, str(response["error"]))

        results = response.get("results", []) if isinstance(response, dict) else []
        return [SearchResult.model_validate(result) for result in results[:max_results]]


class WebSearchInput(BaseModel):
    """Input schema for the web search tool."""

    query: str = Field(
        ...,
        min_length=1,
        description=(
            "The search query to use. Be specific and concise. "
            "Focus on key terms relevant to the user's question."
        ),
    )


def create_web_search_tool(backend: SearchBackend) -> ToolDefinition:
    """Build the web_search tool bound to a search backend."""

    async def web_search_handler(params: WebSearchInput) -> str:
        logger.info(f"Searching the web for {params.query!r}")
        results = await backend.search(params.query, MAX_RESULTS)
        return json.dumps([result.model_dump() for result in results])

    return ToolDefinition(
        name=WEB_SEARCH_TOOL_NAME,
        description=(
            "Search the web for current information. Use this tool when you need up-to-date information "
            "about recent events, current affairs, real-time data (stock prices, weather, sports scores), "
            "or specific facts that may have changed recently. Always provide clear citations when using "
            "search results."
        ),
        input_schema_class=WebSearchInput,
        handler=web_search_handler,
    )
