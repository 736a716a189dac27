"""LLM module for Air Agent."""

from airagent.core.llm.tool_calling import (
    FunctionDefinition,
    HostTool,
    ToolCall,
    ToolDefinition,
    ToolExecutor,
    ToolRegistry,
    ToolResult,
    empty_parameters_schema,
    format_tool_result_message,
    parse_tool_calls_from_openai,
)
from airagent.core.llm.default_tools import (
    create_default_tool_registry,
    get_default_tool_names,
    get_default_tools,
)

__all__ = [
    # Tool Calling
    "FunctionDefinition",
    "HostTool",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    "ToolResult",
    "empty_parameters_schema",
    "format_tool_result_message",
    "parse_tool_calls_from_openai",
    # Built-in Tools
    "create_default_tool_registry",
    "get_default_tool_names",
    "get_default_tools",
]
