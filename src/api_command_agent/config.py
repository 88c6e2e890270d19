"""Application settings using pydantic-settings.

Values come from ``API_AGENT_*`` environment variables or a ``.env`` file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from api_command_agent.llm import DEFAULT_MODEL


class Settings(BaseSettings):
    """Runtime configuration for the CLI and the assistant."""

    model_config = SettingsConfigDict(
        env_prefix="API_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    model: str = Field(default=DEFAULT_MODEL, description="litellm model name")
    default_collection_name: str = Field(
        default="AI Generated Endpoints",
        min_length=1,
        description="Collection that receives endpoints created without a placement",
    )
    endpoint_base_url: str = Field(
        default="https://api.example.com/custom",
        description="Base URL prefixed to relative endpoint paths",
    )
    collections_file: Path = Field(
        default=Path("collections.yaml"),
        description="YAML file holding the saved collection tree",
    )
    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
