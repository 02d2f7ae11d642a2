"""Tools the model can call during generation."""

from chat_studio.tools.executor import ToolExecutor
from chat_studio.tools.registry import ToolsRegistry, get_tools_registry

__all__ = ["ToolExecutor", "ToolsRegistry", "get_tools_registry"]
