"""Test configuration and fixtures for Air Agent."""

import asyncio
from typing import Any, Callable

import pytest

from airagent.core.llm.tool_calling import ToolRegistry
from airagent.core.mcp.client import McpSession, McpTransport, RemoteToolDescriptor
from airagent.core.mcp.connection import McpConnectionController
from airagent.core.mcp.exceptions import McpConnectionError, McpToolCallError
from airagent.core.mcp.registry import McpServerStore, ServerConfig
from airagent.core.storage import MemoryStore


class FakeSession(McpSession):
    """In-memory MCP session with controllable timing."""

    def __init__(
        self,
        config: ServerConfig,
        tools: list[dict[str, Any]],
        list_gate: asyncio.Event | None = None,
        list_error: Exception | None = None,
        handlers: dict[str, Callable[[dict[str, Any]], Any]] | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.config = config
        self.tools = tools
        self.list_gate = list_gate
        self.list_error = list_error
        self.handlers = handlers or {}
        self.close_error = close_error
        self.listing_started = asyncio.Event()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.close_calls = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def list_tools(self) -> list[RemoteToolDescriptor]:
        self.listing_started.set()
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return [RemoteToolDescriptor.model_validate(tool) for tool in self.tools]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((name, arguments))
        handler = self.handlers.get(name)
        if handler is None:
            raise McpToolCallError(f"Unknown tool: {name}", tool_name=name)
        return handler(arguments)

    async def close(self) -> None:
        self.close_calls += 1
        self._closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeTransport(McpTransport):
    """Transport handing out FakeSessions, configured per server id."""

    def __init__(self) -> None:
        self.servers: dict[str, dict[str, Any]] = {}
        self.sessions: list[FakeSession] = []
        self.open_calls: list[str] = []

    def add_server(
        self,
        server_id: str,
        tools: list[dict[str, Any]] | None = None,
        open_gate: asyncio.Event | None = None,
        open_error: Exception | None = None,
        **session_kwargs: Any,
    ) -> None:
        self.servers[server_id] = {
            "tools": tools or [],
            "open_gate": open_gate,
            "open_error": open_error,
            "session_kwargs": session_kwargs,
        }

    async def open(self, config: ServerConfig) -> FakeSession:
        self.open_calls.append(config.id)
        entry = self.servers.get(config.id)
        if entry is None:
            raise McpConnectionError(f"Cannot reach {config.url}")

        if entry["open_gate"] is not None:
            await entry["open_gate"].wait()
        if entry["open_error"] is not None:
            raise entry["open_error"]

        session = FakeSession(config, entry["tools"], **entry["session_kwargs"])
        self.sessions.append(session)
        return session

    def sessions_for(self, server_id: str) -> list[FakeSession]:
        return [s for s in self.sessions if s.config.id == server_id]

    async def wait_for_listing(self, server_id: str) -> FakeSession:
        """Yield to the loop until a session to the server is listing tools."""
        for _ in range(200):
            for session in self.sessions_for(server_id):
                if session.listing_started.is_set():
                    return session
            await asyncio.sleep(0)
        raise AssertionError(f"No session to {server_id} started listing tools")

    async def wait_for_open(self, server_id: str) -> None:
        """Yield to the loop until open() was called for the server."""
        for _ in range(200):
            if server_id in self.open_calls:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"open() was never called for {server_id}")


def tool_schema(name: str, description: str = "", **properties: str) -> dict[str, Any]:
    """Build a remote tool descriptor dict."""
    return {
        "name": name,
        "description": description or f"The {name} tool",
        "inputSchema": {
            "type": "object",
            "properties": {key: {"type": value} for key, value in properties.items()},
            "required": list(properties.keys()),
        },
    }


@pytest.fixture
def kv_store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def server_store(kv_store):
    """MCP server store backed by the in-memory store."""
    return McpServerStore(kv_store)


@pytest.fixture
def server_a(server_store):
    """A stored server."""
    return server_store.add_server(name="Server A", url="https://a.example.com/mcp")


@pytest.fixture
def server_b(server_store):
    """A second stored server."""
    return server_store.add_server(
        name="Server B",
        url="https://b.example.com/mcp",
        api_key="sk-test-b",
    )


@pytest.fixture
def fake_transport():
    """Fake MCP transport."""
    return FakeTransport()


@pytest.fixture
def registry():
    """Empty tool registry."""
    return ToolRegistry()


@pytest.fixture
def controller(registry, server_store, fake_transport, kv_store):
    """Connection controller wired to the fakes."""
    return McpConnectionController(
        registry,
        server_store,
        fake_transport,
        settings_store=kv_store,
    )


@pytest.fixture
def temp_config(tmp_path):
    """Configuration rooted in a temporary directory, installed globally."""
    from airagent.core.config import AirAgentConfig, set_config
    from airagent.core.storage import set_store

    import airagent.core.config as config_module

    previous = config_module._config
    config = AirAgentConfig(data_dir=tmp_path / ".airagent")
    config.ensure_directories()
    set_config(config)
    set_store(None)

    yield config

    config_module._config = previous
    set_store(None)


@pytest.fixture
def make_tool():
    """Factory for remote tool descriptor dicts."""
    return tool_schema


@pytest.fixture
def make_session():
    """Factory for standalone fake sessions."""

    def factory(config: ServerConfig, **kwargs: Any) -> FakeSession:
        kwargs.setdefault("tools", [])
        return FakeSession(config, **kwargs)

    return factory
