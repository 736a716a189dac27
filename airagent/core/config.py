"""Configuration management for Air Agent."""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "gpt-4o-mini"


class LLMConfig(BaseModel):
    """LLM configuration (OpenAI-compatible endpoint)."""

    api_key: str = ""
    base_url: str = ""  # empty = provider default
    model: str = DEFAULT_MODEL


class McpClientConfig(BaseModel):
    """MCP client configuration."""

    connect_timeout: float = 30.0
    request_timeout: float = 60.0
    client_name: str = "air-agent"
    client_version: str = "0.1.0"
    protocol_version: str = "2025-03-26"


class AirAgentConfig(BaseSettings):
    """Main configuration for Air Agent."""

    model_config = SettingsConfigDict(
        env_prefix="AIRAGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Data directories
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".airagent")
    storage_path: Path | None = None

    # LLM configuration
    llm: LLMConfig = Field(default_factory=LLMConfig)

    # MCP client
    mcp: McpClientConfig = Field(default_factory=McpClientConfig)

    # Prompting
    system_prompt: str = ""
    location_timeout: float = 5.0

    # Logging
    log_level: str = "WARNING"

    def __init__(self, **data: Any) -> None:
        """Initialize config with computed paths."""
        super().__init__(**data)
        if self.storage_path is None:
            self.storage_path = self.data_dir / "storage.json"

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file.

        Args:
            path: Path to save to. Defaults to data_dir/config.json.
        """
        save_path = path or (self.data_dir / "config.json")
        save_path.parent.mkdir(parents=True, exist_ok=True)
        with open(save_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    @classmethod
    def load(cls, path: Path | None = None) -> "AirAgentConfig":
        """Load configuration from file.

        Args:
            path: Path to load from. Defaults to ~/.airagent/config.json.

        Returns:
            Loaded configuration or default config if file doesn't exist.
        """
        load_path = path or (Path.home() / ".airagent" / "config.json")
        if load_path.exists():
            with open(load_path) as f:
                data = json.load(f)
            return cls(**data)
        return cls()


# Global config instance
_config: AirAgentConfig | None = None


def get_config() -> AirAgentConfig:
    """Get the global configuration instance.

    Returns:
        AirAgentConfig instance.
    """
    global _config
    if _config is None:
        _config = AirAgentConfig.load()
    return _config


def set_config(config: AirAgentConfig) -> None:
    """Set the global configuration instance.

    Args:
        config: Configuration to set.
    """
    global _config
    _config = config
