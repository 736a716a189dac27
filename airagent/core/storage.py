"""Key-value storage for persisted settings.

Values are stored as JSON-encoded strings under well-known keys, so that a
whole record can be read or replaced in one operation.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

# Well-known storage keys
MCP_SERVERS_KEY = "air-agent-mcp-servers"
MCP_SETTINGS_KEY = "air-agent-mcp-settings"


class StorageFormatError(Exception):
    """Raised when a stored record does not have the expected shape."""

    pass


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Get the value stored under a key.

        Args:
            key: Storage key.

        Returns:
            Stored value or None if absent.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        pass

    def keys(self) -> list[str]:
        """List stored keys."""
        return []


class MemoryStore(KeyValueStore):
    """In-memory store, mostly useful for tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """Store backed by a single JSON object on disk.

    The file is re-read on every access so several processes (e.g. two CLI
    invocations) see each other's writes.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Path of the JSON file. Created on first write.
        """
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}

        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageFormatError(f"Storage file {self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StorageFormatError(f"Storage file {self.path} must contain a JSON object")

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        logger.debug(f"Stored key {key} in {self.path}")

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def keys(self) -> list[str]:
        return list(self._read().keys())


# Global store instance
_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """Get the global key-value store, bound to the configured storage path.

    Returns:
        KeyValueStore instance.
    """
    global _store
    if _store is None:
        from airagent.core.config import get_config

        _store = JsonFileStore(get_config().storage_path)
    return _store


def set_store(store: KeyValueStore | None) -> None:
    """Replace (or reset, with None) the global key-value store.

    The global MCP server store is reset too, so it rebinds to the new store.
    """
    from airagent.core.mcp.registry import set_mcp_store

    global _store
    _store = store
    set_mcp_store(None)
