"""Persisted MCP chat settings (whether MCP is on, and which server)."""

import logging

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from airagent.core.storage import MCP_SETTINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class McpChatSettings(BaseModel):
    """Desired MCP state as chosen by the user."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    mcp_enabled: bool = False
    mcp_server_id: str | None = None


def load_mcp_settings(kv_store: KeyValueStore) -> McpChatSettings:
    """Load the persisted settings.

    A missing record yields the defaults. A corrupt record is logged and
    also yields the defaults.
    """
    saved = kv_store.get(MCP_SETTINGS_KEY)
    if not saved:
        return McpChatSettings()

    try:
        return McpChatSettings.model_validate_json(saved)
    except ValidationError as e:
        logger.error(f"Failed to load MCP settings: {e}")
        return McpChatSettings()


def save_mcp_settings(kv_store: KeyValueStore, settings: McpChatSettings) -> None:
    """Persist the settings."""
    kv_store.set(
        MCP_SETTINGS_KEY,
        settings.model_dump_json(by_alias=True, exclude_none=True),
    )
