"""Core module for Air Agent."""

from airagent.core.config import AirAgentConfig, get_config, set_config
from airagent.core.storage import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    StorageFormatError,
    get_store,
)

__all__ = [
    "AirAgentConfig",
    "get_config",
    "set_config",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "StorageFormatError",
    "get_store",
]
