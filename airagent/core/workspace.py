"""Workspace settings import/export.

An export bundles the LLM settings, the MCP server list and the MCP chat
settings into a single JSON document that can be imported elsewhere.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from airagent.core.config import AirAgentConfig
from airagent.core.mcp.registry import McpServerStore, parse_server_configs
from airagent.core.mcp.settings import McpChatSettings, load_mcp_settings, save_mcp_settings
from airagent.core.storage import KeyValueStore, StorageFormatError

logger = logging.getLogger(__name__)

WORKSPACE_EXPORT_VERSION = 1


class WorkspaceImportError(Exception):
    """Raised when an import file cannot be applied."""

    pass


class SettingsData(BaseModel):
    """LLM settings as they appear in an export."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, strict=True)

    openai_api_key: str
    openai_base_url: str
    model: str

    @classmethod
    def from_config(cls, config: AirAgentConfig) -> "SettingsData":
        return cls(
            openai_api_key=config.llm.api_key,
            openai_base_url=config.llm.base_url,
            model=config.llm.model,
        )

    def apply_to(self, config: AirAgentConfig) -> None:
        config.llm.api_key = self.openai_api_key
        config.llm.base_url = self.openai_base_url
        config.llm.model = self.model


def export_workspace(config: AirAgentConfig, kv_store: KeyValueStore) -> dict[str, Any]:
    """Build a workspace export document.

    Raises:
        StorageFormatError: If the stored MCP server list is corrupt.
    """
    servers = McpServerStore(kv_store).list_servers()
    return {
        "version": WORKSPACE_EXPORT_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "settings": SettingsData.from_config(config).model_dump(by_alias=True),
        "mcpServers": [server.to_storage() for server in servers],
        "mcpChatSettings": load_mcp_settings(kv_store).model_dump(by_alias=True, exclude_none=True),
    }


def import_workspace(data: Any, config: AirAgentConfig, kv_store: KeyValueStore) -> int:
    """Apply a workspace export document.

    The document may be a full export or a bare settings object. LLM
    settings are applied to ``config``; the caller is responsible for
    saving it.

    Args:
        data: Decoded JSON document.
        config: Configuration that receives the LLM settings.
        kv_store: Store that receives the MCP data.

    Returns:
        Number of sections imported.

    Raises:
        WorkspaceImportError: If the document is invalid or contains nothing
            importable.
    """
    if not isinstance(data, dict):
        raise WorkspaceImportError("Invalid import file")

    # Validate everything before writing anything
    settings = None
    raw_settings = data.get("settings", data)
    try:
        settings = SettingsData.model_validate(raw_settings)
    except ValidationError:
        logger.debug("Import file has no valid LLM settings")

    servers = None
    if "mcpServers" in data:
        if not isinstance(data["mcpServers"], list):
            raise WorkspaceImportError("Invalid MCP servers format")
        try:
            servers = parse_server_configs(data["mcpServers"])
        except StorageFormatError as e:
            raise WorkspaceImportError("Invalid MCP servers format") from e

    chat_settings = None
    if "mcpChatSettings" in data:
        try:
            chat_settings = McpChatSettings.model_validate(data["mcpChatSettings"], strict=True)
        except ValidationError as e:
            raise WorkspaceImportError("Invalid MCP chat settings format") from e

    imported = 0
    if settings is not None:
        settings.apply_to(config)
        imported += 1
    if servers is not None:
        McpServerStore(kv_store).replace_all(servers)
        imported += 1
    if chat_settings is not None:
        save_mcp_settings(kv_store, chat_settings)
        imported += 1

    if imported == 0:
        raise WorkspaceImportError("No valid settings found in import file")

    logger.info(f"Imported {imported} workspace sections")
    return imported


def dumps_workspace(document: dict[str, Any]) -> str:
    """Serialize an export document."""
    return json.dumps(document, indent=2, ensure_ascii=False)
