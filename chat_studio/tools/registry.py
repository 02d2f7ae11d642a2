"""Tools registry for managing model-callable tools."""

from chat_studio.config import Settings, get_settings
from chat_studio.tools.base import ToolDefinition
from chat_studio.tools.web_search import (
    WEB_SEARCH_TOOL_NAME,
    SearchBackend,
    TavilySearchBackend,
    create_web_search_tool,
)


class ToolsRegistry:
    """Registry for managing model-callable tools."""

    def __init__(self, search_backend: SearchBackend):
        """Initialize tools registry with service dependencies."""
        self.search_backend = search_backend
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        """Register the default set of tools."""
        self.register_tool(create_web_search_tool(self.search_backend))

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def available_tools(self, web_search_enabled: bool = False) -> list[ToolDefinition]:
        """Return the tools offered to the model for one request, in registration order."""
        enabled = {WEB_SEARCH_TOOL_NAME: web_search_enabled}
        return [tool for name, tool in self._tools.items() if enabled.get(name, False)]

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


_tools_registry: ToolsRegistry | None = None


def get_tools_registry(settings: Settings | None = None) -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry

    if _tools_registry is None:
        resolved = settings or get_settings()
        _tools_registry = ToolsRegistry(TavilySearchBackend(resolved.tavily_api_key))

    return _tools_registry
