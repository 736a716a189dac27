"""LLM Tool/Function Calling Support.

This module provides the infrastructure for LLM-driven tool calling: the
host-side tool representation, the registry the conversation engine reads
on every model turn, and helpers to move tool calls and results between
the registry and OpenAI-compatible chat messages.

The key principle: The LLM decides WHICH tools to call and WITH WHAT arguments.
We execute the tools and return results to the LLM for further analysis.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


def empty_parameters_schema() -> dict[str, Any]:
    """JSON schema for a tool that takes no arguments."""
    return {"type": "object", "properties": {}, "required": []}


@dataclass
class ToolResult:
    """Result of executing a tool."""

    success: bool
    result: Any = None
    error: str | None = None

    def to_content(self) -> str:
        """Render the result as message content for the model."""
        if not self.success:
            return json.dumps({"error": self.error or "Error"})
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, default=str)


@dataclass(frozen=True)
class FunctionDefinition:
    """The ``function`` part of a tool definition."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=empty_parameters_schema)


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool for LLM function calling.

    This follows the OpenAI function calling schema, which most
    OpenAI-compatible endpoints accept.
    """

    function: FunctionDefinition
    type: str = "function"

    @property
    def name(self) -> str:
        """Tool name, the identity key in the registry."""
        return self.function.name

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": self.type,
            "function": {
                "name": self.function.name,
                "description": self.function.description,
                "parameters": self.function.parameters,
            },
        }


ToolExecutor = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class HostTool:
    """A callable capability, independent of where it originated.

    ``source`` tags the provider that contributed the tool (None for
    built-in tools) so a provider's tools can be retracted as a group.
    """

    definition: ToolDefinition
    executor: ToolExecutor
    source: str | None = None

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass
class ToolCall:
    """A tool call requested by the LLM."""

    id: str  # Unique ID for this tool call
    name: str  # Tool name
    arguments: dict[str, Any]  # Arguments to pass to the tool


class ToolRegistry:
    """Registry for tools that can be called by the LLM.

    This maintains a mapping of tool names to host tools. Entries are
    replaced whole, so a reader never sees a partially registered tool.
    """

    def __init__(self) -> None:
        """Initialize the tool registry."""
        self._tools: dict[str, HostTool] = {}

    def register_tool(self, tool: HostTool) -> None:
        """Register a tool, overwriting any tool with the same name.

        Args:
            tool: The host tool to register.
        """
        self._tools[tool.definition.name] = tool

    def register_tools(self, tools: list[HostTool]) -> None:
        """Register several tools in order."""
        for tool in tools:
            self.register_tool(tool)

    def get_tool(self, name: str) -> HostTool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        """Check whether a tool is registered."""
        return name in self._tools

    def unregister(self, name: str) -> bool:
        """Remove a tool by name.

        Returns:
            True if a tool was removed.
        """
        return self._tools.pop(name, None) is not None

    def unregister_all(self, predicate: Callable[[HostTool], bool] | None = None) -> int:
        """Remove every tool matching a predicate (all tools if None).

        Args:
            predicate: Selects the tools to remove.

        Returns:
            Number of tools removed.
        """
        names = [
            name for name, tool in self._tools.items() if predicate is None or predicate(tool)
        ]
        for name in names:
            del self._tools[name]
        return len(names)

    def list_tools(self) -> list[HostTool]:
        """Snapshot of all registered tools, in registration order."""
        return list(self._tools.values())

    def list_tool_names(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def to_openai_format(self) -> list[dict[str, Any]]:
        """Get all tool definitions in OpenAI format."""
        return [tool.definition.to_openai_format() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Args:
            tool_call: The tool call to execute.

        Returns:
            ToolResult with the execution result.
        """
        tool = self._tools.get(tool_call.name)

        if tool is None:
            return ToolResult(
                success=False,
                error=f"Unknown tool: {tool_call.name}",
            )

        try:
            return await tool.executor(tool_call.arguments)
        except Exception as e:
            logger.warning(f"Tool {tool_call.name} raised: {e}")
            return ToolResult(
                success=False,
                error=f"Tool execution failed: {str(e)}",
            )


def parse_tool_calls_from_openai(message: dict[str, Any]) -> list[ToolCall]:
    """Parse tool calls from an OpenAI chat completion message.

    Args:
        message: The assistant message (``choices[0].message``).

    Returns:
        List of ToolCall objects.
    """
    tool_calls = []

    for raw_call in message.get("tool_calls") or []:
        function = raw_call.get("function", {})
        raw_arguments = function.get("arguments") or "{}"

        if isinstance(raw_arguments, dict):
            arguments = raw_arguments
        else:
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError:
                logger.warning(f"Malformed arguments for tool call {raw_call.get('id')}")
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}

        tool_calls.append(
            ToolCall(
                id=raw_call.get("id", ""),
                name=function.get("name", ""),
                arguments=arguments,
            )
        )

    return tool_calls


def format_tool_result_message(tool_call: ToolCall, result: ToolResult) -> dict[str, Any]:
    """Format a tool result as a ``tool`` message for the model.

    Args:
        tool_call: The call that produced the result.
        result: The execution result.

    Returns:
        Chat message dict.
    """
    return {
        "role": "tool",
        "tool_call_id": tool_call.id,
        "name": tool_call.name,
        "content": result.to_content(),
    }
