"""ReviewDeck configuration with Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Dashboard API configuration."""

    model_config = SettingsConfigDict(env_prefix="REVIEWDECK_API_")

    base_url: str = Field(
        default="http://localhost:8081/api",
        description="Base URL of the code-review API server",
    )
    token: str | None = Field(default=None, description="Bearer token for the API")
    workspace: str | None = Field(default=None, description="Default workspace slug")
    timeout_seconds: float = Field(default=30.0, gt=0, le=600, description="Request timeout")
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries for idempotent GET requests"
    )
    retry_base_delay: float = Field(
        default=0.5, ge=0, le=30, description="Initial backoff delay in seconds"
    )
    retry_max_delay: float = Field(
        default=8.0, ge=0, le=120, description="Maximum backoff delay in seconds"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("API base URL must start with 'http://' or 'https://'")
        return v.rstrip("/")


class WizardSettings(BaseSettings):
    """Onboarding wizard defaults."""

    model_config = SettingsConfigDict(env_prefix="REVIEWDECK_WIZARD_")

    default_ai_provider: Literal["OPENAI", "ANTHROPIC", "GOOGLE", "OPENROUTER"] = Field(
        default="OPENROUTER", description="Provider preselected when creating an AI connection"
    )
    default_token_limitation: int = Field(
        default=150000, ge=1000, description="Token limitation for new AI connections"
    )
    branch_limit: int = Field(
        default=50, ge=1, le=500, description="Branches fetched for the initial branch list"
    )
    branch_search_limit: int = Field(
        default=100, ge=1, le=500, description="Branches fetched when searching"
    )
    pr_analysis_enabled: bool = Field(default=True, description="Default PR analysis toggle")
    branch_analysis_enabled: bool = Field(
        default=True, description="Default branch analysis toggle"
    )
    installation_method: Literal["WEBHOOK", "PIPELINE"] = Field(
        default="WEBHOOK", description="Default installation method"
    )


class Settings(BaseSettings):
    """Main ReviewDeck settings."""

    model_config = SettingsConfigDict(
        env_prefix="REVIEWDECK_", env_nested_delimiter="__", extra="ignore"
    )

    api: ApiSettings = Field(default_factory=ApiSettings)
    wizard: WizardSettings = Field(default_factory=WizardSettings)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached global settings instance.

    Returns:
        Settings instance (cached).
    """
    return Settings()


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    get_settings.cache_clear()
