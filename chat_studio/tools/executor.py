"""Tool execution: dispatches a tool call by name and always returns a textual result."""

from pydantic import ValidationError

from chat_studio.errors import ToolExecutionError
from chat_studio.models.llm import ToolCall, ToolResult
from chat_studio.tools.registry import ToolsRegistry
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


class ToolExecutor:
    """Runs tool calls against a registry.

    Failures never propagate: they come back as an error-flagged ``ToolResult`` so
    the model can tell the user what went wrong in-band.
    """

    def __init__(self, registry: ToolsRegistry):
        self.registry = registry

    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute one tool call.

        Args:
            call: Tool call produced by the model

        Returns:
            Tool result correlated to the call's id
        """
        tool = self.registry.get_tool(call.name)
        if tool is None:
            logger.error(f"Unknown tool requested: {call.name}")
            return self._error(call, f"Error: Unknown tool {call.name}")

        try:
            params = tool.parse_input(call.args)
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {call.name}: {call.args}")
            return self._error(call, f"Error: Invalid arguments for {call.name}: {e.errors()[0]['msg']}")

        logger.info(f"Executing tool {call.name} (call id: {call.id})")
        try:
            content = await tool.handler(params)
        except ToolExecutionError as e:
            logger.error(f"Tool {call.name} failed: {e}")
            return self._error(call, f"Error performing {call.name.replace('_', ' ')}: {e}")
        except Exception as e:
            logger.error(f"Tool {call.name} failed unexpectedly: {e}", exc_info=True)
            return self._error(call, f"Error performing {call.name.replace('_', ' ')}: {e}")

        logger.debug(f"Tool {call.name} succeeded: {content[:100]}...")
        return ToolResult(tool_call_id=call.id, name=call.name, content=content)

    def _error(self, call: ToolCall, message: str) -> ToolResult:
        return ToolResult(tool_call_id=call.id, name=call.name, content=message, is_error=True)
