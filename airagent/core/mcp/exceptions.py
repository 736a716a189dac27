"""MCP-related exceptions for Air Agent."""


class McpError(Exception):
    """Base exception for MCP-related errors."""

    pass


class ServerConfigNotFoundError(McpError):
    """Raised when a server id does not resolve to a stored configuration."""

    def __init__(self, server_id: str | None = None):
        super().__init__("Server configuration not found")
        self.server_id = server_id


class McpTransportError(McpError):
    """Raised when talking to an MCP server fails."""

    pass


class McpConnectionError(McpTransportError):
    """Raised when a session to an MCP server cannot be opened."""

    pass


class McpToolListingError(McpTransportError):
    """Raised when the server is reachable but listing its tools fails."""

    pass


class McpToolCallError(McpTransportError):
    """Raised when a remote tool call fails or reports an error."""

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message)
        self.tool_name = tool_name


class McpSessionClosedError(McpTransportError):
    """Raised when a closed session is used."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "MCP session is closed")


class InvalidToolDescriptorError(McpError):
    """Raised when a remote tool descriptor cannot be adapted."""

    pass
