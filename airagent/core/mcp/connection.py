"""MCP connection lifecycle.

The controller keeps at most one MCP server connected and its tools in a
shared ToolRegistry, following a desired state (enabled flag + server id)
that may change at any time, including while a previous connection
attempt is still in flight.

Every call to ``set_desired_state`` starts a new generation. Work started
under an older generation is never committed: results that arrive late are
discarded and their sessions closed, so the final status and registry
content always reflect the most recent call.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from airagent.core.llm.tool_calling import HostTool, ToolRegistry
from airagent.core.mcp.adapter import mcp_source_tag, mcp_tool_to_host_tool
from airagent.core.mcp.client import McpSession, McpTransport
from airagent.core.mcp.exceptions import InvalidToolDescriptorError, ServerConfigNotFoundError
from airagent.core.mcp.registry import ServerConfig, ServerConfigSource
from airagent.core.mcp.settings import McpChatSettings, load_mcp_settings, save_mcp_settings
from airagent.core.storage import KeyValueStore

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    """Connection status of the MCP provider."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class StatusSnapshot:
    """Current status plus an error message (only set for ERROR)."""

    status: ConnectionStatus
    error: str | None = None


StatusListener = Callable[[StatusSnapshot], None]


class ConnectionSession:
    """One connection attempt to a server, tagged with its generation."""

    def __init__(
        self,
        config: ServerConfig,
        generation: int,
        session: McpSession | None = None,
    ) -> None:
        self.config = config
        self.generation = generation
        self.session = session
        self.tool_names: list[str] = []
        # Non-MCP tools this session overwrote, put back on retraction.
        self.shadowed: dict[str, HostTool] = {}
        self._disconnected = False

    @property
    def source(self) -> str:
        """Source tag of the tools this session registers."""
        return mcp_source_tag(self.config.id)

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    async def disconnect(self) -> None:
        """Close the underlying session.

        Safe to call repeatedly and before the session was established.
        Failures are logged, never raised.
        """
        if self._disconnected:
            return
        self._disconnected = True

        if self.session is None:
            return

        try:
            await self.session.close()
        except Exception as e:
            logger.warning(f"Error during MCP cleanup for {self.config.name}: {e}")


class McpConnectionController:
    """Owns the active MCP connection and its registered tools."""

    def __init__(
        self,
        registry: ToolRegistry,
        store: ServerConfigSource,
        transport: McpTransport,
        settings_store: KeyValueStore | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            registry: Shared tool registry that receives the server's tools.
            store: Resolves server ids to configurations.
            transport: Opens sessions to servers.
            settings_store: Where toggle() persists the desired state.
        """
        self._registry = registry
        self._store = store
        self._transport = transport
        self._settings_store = settings_store

        self.enabled = False
        self.server_id: str | None = None

        self._generation = 0
        self._settled_generation = 0
        self._status = StatusSnapshot(ConnectionStatus.DISCONNECTED)
        self._listeners: list[StatusListener] = []

        self._active: ConnectionSession | None = None
        self._in_flight: dict[int, ConnectionSession] = {}
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "McpConnectionController":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def status(self) -> StatusSnapshot:
        return self._status

    @property
    def ready(self) -> bool:
        """Whether the most recent desired state has been fully applied."""
        return self._settled_generation >= self._generation

    @property
    def active_session(self) -> ConnectionSession | None:
        return self._active

    def current_status(self) -> StatusSnapshot:
        """Get the current status snapshot."""
        return self._status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status change listener.

        Args:
            listener: Called with each new status snapshot.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_desired_state(self, enabled: bool, server_id: str | None) -> "asyncio.Task[StatusSnapshot]":
        """Apply a new desired state.

        Must be called from the running event loop. Any live or in-flight
        connection is torn down right away (without waiting for it to
        close) and its tools are retracted.

        Args:
            enabled: Whether MCP tools should be available.
            server_id: Id of the server to connect to.

        Returns:
            Task that completes, exactly once, when this transition has
            settled (connected, disconnected, failed or superseded).
        """
        loop = asyncio.get_running_loop()

        self._generation += 1
        generation = self._generation
        self.enabled = enabled
        self.server_id = server_id

        self._retire_sessions()
        self._set_status(ConnectionStatus.CONNECTING)

        task = loop.create_task(self._transition(generation, enabled, server_id))
        self._track(task)
        return task

    def toggle(self, enabled: bool, server_id: str | None = None) -> "asyncio.Task[StatusSnapshot]":
        """Persist a new desired state, then apply it."""
        if self._settings_store is not None:
            save_mcp_settings(
                self._settings_store,
                McpChatSettings(mcp_enabled=enabled, mcp_server_id=server_id),
            )
        return self.set_desired_state(enabled, server_id)

    def restore(self) -> "asyncio.Task[StatusSnapshot]":
        """Apply the persisted desired state (defaults to disabled)."""
        if self._settings_store is None:
            settings = McpChatSettings()
        else:
            settings = load_mcp_settings(self._settings_store)
        return self.set_desired_state(settings.mcp_enabled, settings.mcp_server_id)

    async def wait_until_settled(self) -> StatusSnapshot:
        """Wait for every pending transition and teardown to finish.

        Returns:
            The status once nothing is pending.
        """
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return self._status
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Disconnect and retract all tools, keeping the selected server id."""
        self.set_desired_state(False, self.server_id)
        await self.wait_until_settled()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _set_status(self, status: ConnectionStatus, error: str | None = None) -> None:
        snapshot = StatusSnapshot(status, error if status == ConnectionStatus.ERROR else None)
        if snapshot == self._status:
            return
        self._status = snapshot

        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("MCP status listener failed")

    def _schedule_disconnect(self, connection: ConnectionSession) -> None:
        task = asyncio.get_running_loop().create_task(connection.disconnect())
        self._track(task)

    def _retire_sessions(self) -> None:
        """Retract the active session's tools and close every older session."""
        active = self._active
        self._active = None

        if active is not None:
            removed = self._registry.unregister_all(lambda tool: tool.source == active.source)
            logger.debug(f"Retracted {removed} tools from {active.config.name}")
            for tool in active.shadowed.values():
                self._registry.register_tool(tool)
                logger.debug(f"Restored tool {tool.name} shadowed by {active.config.name}")
            self._schedule_disconnect(active)

        for connection in list(self._in_flight.values()):
            self._schedule_disconnect(connection)

    async def _transition(
        self,
        generation: int,
        enabled: bool,
        server_id: str | None,
    ) -> StatusSnapshot:
        try:
            await self._connect(generation, enabled, server_id)
        finally:
            if generation > self._settled_generation:
                self._settled_generation = generation
        return self._status

    async def _connect(self, generation: int, enabled: bool, server_id: str | None) -> None:
        if not self._is_current(generation):
            logger.debug(f"Generation {generation} superseded before it started")
            return

        if not enabled or not server_id:
            self._set_status(ConnectionStatus.DISCONNECTED)
            return

        try:
            config = self._store.get_server_config(server_id)
        except Exception as e:
            logger.error(f"Failed to read MCP server configuration: {e}")
            self._set_status(ConnectionStatus.ERROR, str(e) or "Failed to read server configuration")
            return

        if config is None:
            self._set_status(ConnectionStatus.ERROR, str(ServerConfigNotFoundError(server_id)))
            return

        try:
            session = await self._transport.open(config)
        except Exception as e:
            if self._is_current(generation):
                logger.error(f"Failed to connect to MCP server {config.name}: {e}")
                self._set_status(ConnectionStatus.ERROR, str(e) or "Connection failed")
            else:
                logger.debug(f"Discarding stale connection failure for {config.name}: {e}")
            return

        connection = ConnectionSession(config, generation, session)
        if not self._is_current(generation):
            logger.debug(f"Discarding stale session to {config.name}")
            await connection.disconnect()
            return

        self._in_flight[generation] = connection
        try:
            try:
                descriptors = await session.list_tools()
            except Exception as e:
                await connection.disconnect()
                if self._is_current(generation):
                    logger.error(f"Connected to {config.name} but listing tools failed: {e}")
                    self._set_status(ConnectionStatus.ERROR, str(e) or "Failed to list tools")
                return
        finally:
            self._in_flight.pop(generation, None)

        if not self._is_current(generation) or connection.disconnected:
            logger.debug(f"Discarding stale tool listing from {config.name}")
            await connection.disconnect()
            return

        # Commit point: nothing below awaits, so no newer generation can interleave.
        for descriptor in descriptors:
            try:
                tool = mcp_tool_to_host_tool(descriptor, session)
            except InvalidToolDescriptorError as e:
                logger.warning(f"Skipping tool from {config.name}: {e}")
                continue
            existing = self._registry.get_tool(tool.name)
            if existing is not None and existing.source != connection.source:
                logger.warning(f"Tool {tool.name} from {config.name} shadows an existing tool")
                connection.shadowed.setdefault(tool.name, existing)
            self._registry.register_tool(tool)
            if tool.name not in connection.tool_names:
                connection.tool_names.append(tool.name)

        self._active = connection
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info(f"Connected to MCP server {config.name} with {len(connection.tool_names)} tools")
