"""MCP server configuration store."""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from airagent.core.mcp.exceptions import ServerConfigNotFoundError
from airagent.core.storage import MCP_SERVERS_KEY, KeyValueStore, StorageFormatError

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ServerConfig(BaseModel):
    """Configuration for a remote MCP server.

    Snapshots are immutable; edits go through McpServerStore.update_server.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    id: str
    name: str
    url: str
    description: str | None = None
    api_key: str | None = None
    enabled: bool = True
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    def headers(self) -> dict[str, str]:
        """HTTP headers to send to the server."""
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def to_storage(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_server_list_adapter = TypeAdapter(list[ServerConfig])


def parse_server_configs(raw: Any) -> list[ServerConfig]:
    """Validate a decoded server list.

    Raises:
        StorageFormatError: If the data is not a list of server configs.
    """
    try:
        return _server_list_adapter.validate_python(raw)
    except ValidationError as e:
        raise StorageFormatError(f"Invalid MCP server config format: {e}") from e


class ServerConfigSource(Protocol):
    """Anything that can resolve a server id to its configuration."""

    def get_server_config(self, server_id: str) -> ServerConfig | None: ...


class McpServerStore:
    """Store for user-defined MCP server configurations."""

    def __init__(self, kv_store: KeyValueStore) -> None:
        """Initialize the store.

        Args:
            kv_store: Key-value store holding the server list.
        """
        self._kv = kv_store

    def _load(self) -> list[ServerConfig]:
        stored = self._kv.get(MCP_SERVERS_KEY)
        if not stored:
            return []
        try:
            raw = json.loads(stored)
        except json.JSONDecodeError as e:
            raise StorageFormatError(f"Invalid MCP server config format: {e}") from e
        return parse_server_configs(raw)

    def _save(self, servers: list[ServerConfig]) -> None:
        self._kv.set(MCP_SERVERS_KEY, json.dumps([s.to_storage() for s in servers]))

    def get_server_config(self, server_id: str) -> ServerConfig | None:
        """Get server configuration by id.

        Args:
            server_id: Server id.

        Returns:
            Server config or None if not found.
        """
        for server in self._load():
            if server.id == server_id:
                return server
        return None

    def list_servers(self) -> list[ServerConfig]:
        """List all stored servers."""
        return self._load()

    def list_enabled_servers(self) -> list[ServerConfig]:
        """List servers that are enabled."""
        return [s for s in self._load() if s.enabled]

    def add_server(
        self,
        name: str,
        url: str,
        description: str | None = None,
        api_key: str | None = None,
        enabled: bool = True,
    ) -> ServerConfig:
        """Add a new server configuration.

        Args:
            name: Display name.
            url: Endpoint URL.
            description: Optional description.
            api_key: Optional API key sent as a bearer token.
            enabled: Whether the server is enabled.

        Returns:
            The stored configuration, with a generated id.
        """
        now = _now_iso()
        config = ServerConfig(
            id=str(uuid.uuid4()),
            name=name,
            url=url,
            description=description or None,
            api_key=api_key or None,
            enabled=enabled,
            created_at=now,
            updated_at=now,
        )
        servers = self._load()
        servers.append(config)
        self._save(servers)
        logger.info(f"Added MCP server {config.name} ({config.id})")
        return config

    def update_server(self, server_id: str, **changes: Any) -> ServerConfig:
        """Update fields of a stored server.

        Args:
            server_id: Server id.
            **changes: Field values to replace (``id`` and ``created_at`` are kept).

        Returns:
            The updated configuration.

        Raises:
            ServerConfigNotFoundError: If the id is unknown.
        """
        changes.pop("id", None)
        changes.pop("created_at", None)

        servers = self._load()
        for index, server in enumerate(servers):
            if server.id == server_id:
                data = server.model_dump()
                data.update(changes)
                data["updated_at"] = _now_iso()
                updated = ServerConfig.model_validate(data)
                servers[index] = updated
                self._save(servers)
                return updated

        raise ServerConfigNotFoundError(server_id)

    def remove_server(self, server_id: str) -> bool:
        """Remove a server.

        Returns:
            True if a server was removed.
        """
        servers = self._load()
        remaining = [s for s in servers if s.id != server_id]
        if len(remaining) == len(servers):
            return False
        self._save(remaining)
        logger.info(f"Removed MCP server {server_id}")
        return True

    def replace_all(self, servers: list[ServerConfig]) -> None:
        """Replace the whole server list (used by workspace import)."""
        self._save(servers)


# Global store instance
_mcp_store: McpServerStore | None = None


def get_mcp_store() -> McpServerStore:
    """Get the global MCP server store.

    Returns:
        McpServerStore instance.
    """
    global _mcp_store
    if _mcp_store is None:
        from airagent.core.storage import get_store

        _mcp_store = McpServerStore(get_store())
    return _mcp_store


def set_mcp_store(store: McpServerStore | None) -> None:
    """Replace (or reset, with None) the global MCP server store."""
    global _mcp_store
    _mcp_store = store
