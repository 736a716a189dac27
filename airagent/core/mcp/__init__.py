"""MCP module - Model Context Protocol client and connection lifecycle."""

from airagent.core.mcp.adapter import mcp_source_tag, mcp_tool_to_host_tool
from airagent.core.mcp.client import (
    HttpMcpSession,
    HttpMcpTransport,
    McpSession,
    McpTransport,
    RemoteToolDescriptor,
)
from airagent.core.mcp.connection import (
    ConnectionSession,
    ConnectionStatus,
    McpConnectionController,
    StatusSnapshot,
)
from airagent.core.mcp.exceptions import (
    InvalidToolDescriptorError,
    McpConnectionError,
    McpError,
    McpSessionClosedError,
    McpToolCallError,
    McpToolListingError,
    McpTransportError,
    ServerConfigNotFoundError,
)
from airagent.core.mcp.registry import (
    McpServerStore,
    ServerConfig,
    ServerConfigSource,
    get_mcp_store,
)
from airagent.core.mcp.settings import McpChatSettings, load_mcp_settings, save_mcp_settings

__all__ = [
    # Adapter
    "mcp_source_tag",
    "mcp_tool_to_host_tool",
    # Client
    "HttpMcpSession",
    "HttpMcpTransport",
    "McpSession",
    "McpTransport",
    "RemoteToolDescriptor",
    # Connection
    "ConnectionSession",
    "ConnectionStatus",
    "McpConnectionController",
    "StatusSnapshot",
    # Exceptions
    "InvalidToolDescriptorError",
    "McpConnectionError",
    "McpError",
    "McpSessionClosedError",
    "McpToolCallError",
    "McpToolListingError",
    "McpTransportError",
    "ServerConfigNotFoundError",
    # Registry
    "McpServerStore",
    "ServerConfig",
    "ServerConfigSource",
    "get_mcp_store",
    # Settings
    "McpChatSettings",
    "load_mcp_settings",
    "save_mcp_settings",
]
