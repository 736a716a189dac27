"""Built-in tools available without any MCP server."""

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from airagent.core.llm.tool_calling import (
    FunctionDefinition,
    HostTool,
    ToolDefinition,
    ToolRegistry,
    ToolResult,
)

CALCULATOR_OPERATIONS = ["add", "subtract", "multiply", "divide"]


def create_default_tool_registry() -> ToolRegistry:
    """Create a tool registry with the built-in tools.

    Returns:
        ToolRegistry with built-in tools registered.
    """
    registry = ToolRegistry()
    registry.register_tools(get_default_tools())
    return registry


def get_default_tools() -> list[HostTool]:
    """Get all built-in tools."""
    return [_calculator_tool(), _current_time_tool()]


def get_default_tool_names() -> list[str]:
    """Get the names of all built-in tools."""
    return [tool.name for tool in get_default_tools()]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _calculator_tool() -> HostTool:
    """Performs basic arithmetic."""
    definition = ToolDefinition(
        function=FunctionDefinition(
            name="calculator",
            description="Performs basic arithmetic calculations (add, subtract, multiply, divide)",
            parameters={
                "type": "object",
                "properties": {
                    "operation": {
                        "type": "string",
                        "description": "The operation to perform",
                        "enum": CALCULATOR_OPERATIONS,
                    },
                    "a": {"type": "number", "description": "First number"},
                    "b": {"type": "number", "description": "Second number"},
                },
                "required": ["operation", "a", "b"],
            },
        )
    )

    async def executor(arguments: dict[str, Any]) -> ToolResult:
        operation = arguments.get("operation")
        a = arguments.get("a")
        b = arguments.get("b")

        if not operation or not isinstance(operation, str):
            return ToolResult(
                success=False,
                error="Operation parameter is required and must be a string",
            )

        if not _is_number(a) or not _is_number(b):
            return ToolResult(success=False, error="Both a and b must be numbers")

        if operation not in CALCULATOR_OPERATIONS:
            return ToolResult(
                success=False,
                error=f"Invalid operation: {operation}. Must be one of: {', '.join(CALCULATOR_OPERATIONS)}",
            )

        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        else:
            if b == 0:
                return ToolResult(success=False, error="Cannot divide by zero")
            result = a / b

        return ToolResult(success=True, result=result)

    return HostTool(definition=definition, executor=executor)


def _current_time_tool() -> HostTool:
    """Gets the current date and time."""
    definition = ToolDefinition(
        function=FunctionDefinition(
            name="get_current_time",
            description="Gets the current date and time",
            parameters={
                "type": "object",
                "properties": {
                    "timezone": {
                        "type": "string",
                        "description": "Timezone (optional, defaults to UTC)",
                    },
                },
                "required": [],
            },
        )
    )

    async def executor(arguments: dict[str, Any]) -> ToolResult:
        tz_name = arguments.get("timezone") or "UTC"

        try:
            tz = ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            return ToolResult(success=False, error=f"Unknown timezone: {tz_name}")

        now = datetime.now(timezone.utc)
        return ToolResult(
            success=True,
            result={
                "timestamp": now.isoformat(),
                "formatted": now.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z"),
                "timezone": tz_name,
            },
        )

    return HostTool(definition=definition, executor=executor)
