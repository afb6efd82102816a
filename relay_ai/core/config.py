"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class AnthropicConfig(BaseModel):
    """Anthropic API configuration."""

    api_key: Optional[str] = Field(
        default=None, alias="ANTHROPIC_API_KEY", description="Anthropic API key for authentication"
    )
    model: str = Field(default="claude-sonnet-4-0", alias="ANTHROPIC_MODEL", description="Default Anthropic model to use")
    base_url: Optional[str] = Field(
        default=None, alias="ANTHROPIC_BASE_URL", description="Custom Anthropic API base URL (optional)"
    )
    max_retries: int = Field(
        default=2, ge=0, alias="ANTHROPIC_MAX_RETRIES", description="Retries performed by the SDK on transient failures"
    )

    model_config = {"populate_by_name": True}


class AgentSettings(BaseModel):
    """Agent loop defaults."""

    max_iterations: int = Field(
        default=20, ge=1, alias="RELAY_AI_MAX_ITERATIONS", description="Maximum generate/tool iterations per execution"
    )
    max_tokens: Optional[int] = Field(
        default=None, ge=1, alias="RELAY_AI_MAX_TOKENS", description="Default max tokens per generation"
    )
    temperature: Optional[float] = Field(
        default=None, ge=0.0, alias="RELAY_AI_TEMPERATURE", description="Default sampling temperature"
    )

    model_config = {"populate_by_name": True}


class AcpSettings(BaseModel):
    """Agent Client Protocol bridge configuration."""

    protocol_version: str = Field(
        default="1.0.0", alias="ACP_PROTOCOL_VERSION", description="Protocol version advertised by the server"
    )
    request_timeout_seconds: float = Field(
        default=30.0, gt=0, alias="ACP_REQUEST_TIMEOUT_SECONDS", description="Per-request timeout used by the client"
    )
    server_name: str = Field(default="relay-ai-acp-server", alias="ACP_SERVER_NAME", description="Server name")
    server_version: str = Field(default="1.0.0", alias="ACP_SERVER_VERSION", description="Server version")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging
    # =====================================================================
    relay_ai_log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="RELAY_AI_LOG_LEVEL",
    )

    # =====================================================================
    # Anthropic
    # =====================================================================
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-0", alias="ANTHROPIC_MODEL")
    anthropic_base_url: Optional[str] = Field(default=None, alias="ANTHROPIC_BASE_URL")
    anthropic_max_retries: int = Field(default=2, ge=0, alias="ANTHROPIC_MAX_RETRIES")

    # =====================================================================
    # Agent loop
    # =====================================================================
    max_iterations: int = Field(default=20, ge=1, alias="RELAY_AI_MAX_ITERATIONS")
    max_tokens: Optional[int] = Field(default=None, ge=1, alias="RELAY_AI_MAX_TOKENS")
    temperature: Optional[float] = Field(default=None, ge=0.0, alias="RELAY_AI_TEMPERATURE")

    # =====================================================================
    # Protocol bridge
    # =====================================================================
    acp_protocol_version: str = Field(default="1.0.0", alias="ACP_PROTOCOL_VERSION")
    acp_request_timeout_seconds: float = Field(default=30.0, gt=0, alias="ACP_REQUEST_TIMEOUT_SECONDS")
    acp_server_name: str = Field(default="relay-ai-acp-server", alias="ACP_SERVER_NAME")
    acp_server_version: str = Field(default="1.0.0", alias="ACP_SERVER_VERSION")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def anthropic(self) -> AnthropicConfig:
        """Get Anthropic configuration from environment variables."""
        return AnthropicConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def agent(self) -> AgentSettings:
        """Get agent loop defaults from environment variables."""
        return AgentSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def acp(self) -> AcpSettings:
        """Get protocol bridge configuration from environment variables."""
        return AcpSettings.model_validate(self.model_dump(by_alias=True))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
