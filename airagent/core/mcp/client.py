"""MCP (Model Context Protocol) client for remote tool servers.

Sessions speak JSON-RPC 2.0 over HTTP POST (the MCP "streamable HTTP"
transport). Servers may answer a request either with a plain JSON body or
with a short ``text/event-stream`` carrying the response.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from airagent.core.config import McpClientConfig
from airagent.core.mcp.exceptions import (
    McpConnectionError,
    McpError,
    McpSessionClosedError,
    McpToolCallError,
    McpToolListingError,
    McpTransportError,
)
from airagent.core.mcp.registry import ServerConfig

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = "Mcp-Session-Id"
PROTOCOL_VERSION_HEADER = "MCP-Protocol-Version"

# Upper bound on tools/list pages, in case a server keeps returning a cursor
MAX_LIST_PAGES = 100


class RemoteToolDescriptor(BaseModel):
    """A tool as advertised by an MCP server."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = Field(default=None, alias="inputSchema")


class McpSession(ABC):
    """An open connection to one MCP server."""

    config: ServerConfig

    @abstractmethod
    async def list_tools(self) -> list[RemoteToolDescriptor]:
        """List the tools the server exposes.

        Raises:
            McpToolListingError: If the listing fails.
        """
        pass

    @abstractmethod
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool on the server.

        Args:
            name: Tool name as advertised by the server.
            arguments: Tool arguments.

        Returns:
            The tool's result payload.

        Raises:
            McpToolCallError: If the call fails or the tool reports an error.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the session. Idempotent and never raises."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether the session has been closed."""
        pass


class McpTransport(ABC):
    """Factory for MCP sessions."""

    @abstractmethod
    async def open(self, config: ServerConfig) -> McpSession:
        """Open a session to a server.

        Raises:
            McpConnectionError: If the server cannot be reached or rejects
                the handshake.
        """
        pass


def _parse_event_stream(text: str) -> list[dict[str, Any]]:
    """Extract JSON messages from a text/event-stream body."""
    messages = []
    data_lines: list[str] = []

    for line in text.splitlines() + [""]:
        if not line:
            if data_lines:
                try:
                    message = json.loads("\n".join(data_lines))
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON SSE event")
                else:
                    if isinstance(message, dict):
                        messages.append(message)
                    elif isinstance(message, list):
                        messages.extend(m for m in message if isinstance(m, dict))
                data_lines = []
        elif line.startswith("data:"):
            data_lines.append(line[5:].lstrip(" "))

    return messages


def _content_text(content: Any) -> str:
    """Join the text items of an MCP content list."""
    if not isinstance(content, list):
        return str(content) if content else ""
    parts = [
        item.get("text", "")
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(p for p in parts if p)


class HttpMcpSession(McpSession):
    """MCP session over streamable HTTP."""

    def __init__(
        self,
        config: ServerConfig,
        client: httpx.AsyncClient,
        protocol_version: str = "2025-03-26",
        client_name: str = "air-agent",
        client_version: str = "0.1.0",
    ) -> None:
        """Initialize the session.

        Args:
            config: Server configuration.
            client: HTTP client owned by this session (closed on close()).
            protocol_version: MCP protocol version to request.
            client_name: Client name sent in the handshake.
            client_version: Client version sent in the handshake.
        """
        self.config = config
        self._client = client
        self.protocol_version = protocol_version
        self.client_info = {"name": client_name, "version": client_version}
        self.server_info: dict[str, Any] = {}
        self.session_id: str | None = None
        self._request_id = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json, text/event-stream"}
        if self.session_id:
            headers[SESSION_ID_HEADER] = self.session_id
            headers[PROTOCOL_VERSION_HEADER] = self.protocol_version
        return headers

    async def _post(self, payload: dict[str, Any], error_cls: type[McpTransportError]) -> httpx.Response:
        if self._closed:
            raise McpSessionClosedError()

        try:
            response = await self._client.post(self.config.url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise error_cls(f"HTTP request to {self.config.url} failed: {e}") from e

        if response.status_code >= 400:
            raise error_cls(
                f"MCP server returned HTTP {response.status_code} for {payload.get('method')}"
            )

        session_id = response.headers.get(SESSION_ID_HEADER)
        if session_id:
            self.session_id = session_id

        return response

    def _extract_message(
        self,
        response: httpx.Response,
        request_id: int,
        error_cls: type[McpTransportError],
    ) -> dict[str, Any]:
        content_type = response.headers.get("content-type", "")

        if "text/event-stream" in content_type:
            messages = _parse_event_stream(response.text)
        else:
            try:
                body = response.json()
            except ValueError as e:
                raise error_cls(f"MCP server returned invalid JSON: {e}") from e
            messages = body if isinstance(body, list) else [body]

        for message in messages:
            if isinstance(message, dict) and message.get("id") == request_id:
                return message

        raise error_cls(f"No JSON-RPC response for request {request_id}")

    async def _request(
        self,
        method: str,
        params: dict[str, Any],
        error_cls: type[McpTransportError],
    ) -> dict[str, Any]:
        request_id = self._next_id()
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}

        logger.debug(f"Sending {method} to {self.config.name}")
        response = await self._post(payload, error_cls)
        message = self._extract_message(response, request_id, error_cls)

        error = message.get("error")
        if error:
            if isinstance(error, dict):
                detail = error.get("message") or json.dumps(error)
            else:
                detail = str(error)
            raise error_cls(detail)

        result = message.get("result")
        return result if isinstance(result, dict) else {}

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            payload["params"] = params
        await self._post(payload, McpConnectionError)

    async def initialize(self) -> None:
        """Perform the MCP initialize handshake.

        Raises:
            McpConnectionError: If the handshake fails.
        """
        result = await self._request(
            "initialize",
            {
                "protocolVersion": self.protocol_version,
                "capabilities": {},
                "clientInfo": self.client_info,
            },
            McpConnectionError,
        )
        self.server_info = result.get("serverInfo") or {}
        negotiated = result.get("protocolVersion")
        if negotiated:
            self.protocol_version = negotiated

        await self._notify("notifications/initialized")
        logger.info(f"Initialized MCP session with {self.config.name}: {self.server_info}")

    async def list_tools(self) -> list[RemoteToolDescriptor]:
        tools: list[RemoteToolDescriptor] = []
        cursor: str | None = None

        for _ in range(MAX_LIST_PAGES):
            params = {"cursor": cursor} if cursor else {}
            result = await self._request("tools/list", params, McpToolListingError)

            raw_tools = result.get("tools") or []
            if not isinstance(raw_tools, list):
                raise McpToolListingError("tools/list result has no tool list")

            for raw in raw_tools:
                try:
                    tools.append(RemoteToolDescriptor.model_validate(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed tool from {self.config.name}: {e}")

            cursor = result.get("nextCursor")
            if not cursor:
                break
        else:
            logger.warning(
                f"tools/list from {self.config.name} still had more pages after "
                f"{MAX_LIST_PAGES} requests; tool list truncated"
            )

        logger.debug(f"tools/list returned {len(tools)} tools from {self.config.name}")
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        try:
            result = await self._request(
                "tools/call",
                {"name": name, "arguments": arguments},
                McpToolCallError,
            )
        except McpToolCallError as e:
            e.tool_name = name
            raise
        except McpTransportError as e:
            raise McpToolCallError(str(e), tool_name=name) from e

        if result.get("isError"):
            message = _content_text(result.get("content")) or f"Tool {name} reported an error"
            raise McpToolCallError(message, tool_name=name)

        if "structuredContent" in result:
            return result["structuredContent"]
        return result.get("content", result)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            if self.session_id:
                await self._client.delete(
                    self.config.url,
                    headers={SESSION_ID_HEADER: self.session_id},
                )
        except Exception as e:
            logger.debug(f"Session termination request to {self.config.name} failed: {e}")

        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning(f"Error closing MCP session for {self.config.name}: {e}")


class HttpMcpTransport(McpTransport):
    """Opens HttpMcpSession instances."""

    def __init__(
        self,
        connect_timeout: float = 30.0,
        request_timeout: float = 60.0,
        protocol_version: str = "2025-03-26",
        client_name: str = "air-agent",
        client_version: str = "0.1.0",
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            connect_timeout: Seconds allowed to establish the TCP connection.
            request_timeout: Seconds allowed per request.
            protocol_version: MCP protocol version to request.
            client_name: Client name sent in the handshake.
            client_version: Client version sent in the handshake.
            http_transport: Optional httpx transport (e.g. a mock in tests).
        """
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self.protocol_version = protocol_version
        self.client_name = client_name
        self.client_version = client_version
        self._http_transport = http_transport

    @classmethod
    def from_config(
        cls,
        config: McpClientConfig,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpMcpTransport":
        """Create a transport from the MCP client configuration."""
        return cls(
            connect_timeout=config.connect_timeout,
            request_timeout=config.request_timeout,
            protocol_version=config.protocol_version,
            client_name=config.client_name,
            client_version=config.client_version,
            http_transport=http_transport,
        )

    async def open(self, config: ServerConfig) -> HttpMcpSession:
        logger.info(f"Connecting to MCP server {config.name} at {config.url}")

        client = httpx.AsyncClient(
            headers=config.headers(),
            timeout=httpx.Timeout(self.request_timeout, connect=self.connect_timeout),
            transport=self._http_transport,
        )
        session = HttpMcpSession(
            config,
            client,
            protocol_version=self.protocol_version,
            client_name=self.client_name,
            client_version=self.client_version,
        )

        try:
            await session.initialize()
        except Exception as e:
            await session.close()
            if isinstance(e, McpError):
                raise
            raise McpConnectionError(f"Failed to connect to {config.name}: {e}") from e

        return session
