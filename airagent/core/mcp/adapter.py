"""Adapt MCP tool descriptors into host tools."""

import logging
from typing import Any

from airagent.core.llm.tool_calling import (
    FunctionDefinition,
    HostTool,
    ToolDefinition,
    ToolResult,
    empty_parameters_schema,
)
from airagent.core.mcp.client import McpSession, RemoteToolDescriptor
from airagent.core.mcp.exceptions import InvalidToolDescriptorError

logger = logging.getLogger(__name__)


def mcp_source_tag(server_id: str) -> str:
    """Source tag carried by every host tool contributed by a server."""
    return f"mcp:{server_id}"


def mcp_tool_to_host_tool(descriptor: RemoteToolDescriptor, session: McpSession) -> HostTool:
    """Convert a remote tool descriptor into a host tool bound to a session.

    The input schema is passed through untouched; a descriptor without one
    gets an empty object schema.

    Args:
        descriptor: Tool as advertised by the server.
        session: Session the executor will call through.

    Returns:
        HostTool whose executor never raises.

    Raises:
        InvalidToolDescriptorError: If the descriptor has no usable name or
            a schema that is not a JSON object.
    """
    name = descriptor.name
    if not name or not name.strip():
        raise InvalidToolDescriptorError("Tool descriptor has an empty name")

    parameters = descriptor.input_schema
    if parameters is None:
        parameters = empty_parameters_schema()
    elif not isinstance(parameters, dict):
        raise InvalidToolDescriptorError(f"Tool {name} has a non-object input schema")

    definition = ToolDefinition(
        function=FunctionDefinition(
            name=name,
            description=descriptor.description or "",
            parameters=parameters,
        )
    )

    async def executor(arguments: dict[str, Any]) -> ToolResult:
        try:
            payload = await session.call_tool(name, arguments or {})
        except Exception as e:
            logger.warning(f"MCP tool {name} failed: {e}")
            return ToolResult(success=False, error=str(e) or f"Tool {name} failed")
        return ToolResult(success=True, result=payload)

    return HostTool(
        definition=definition,
        executor=executor,
        source=mcp_source_tag(session.config.id),
    )
