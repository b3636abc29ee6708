"""
Models for AI connections.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, SecretStr, field_validator

from .base import WireModel


class AIProviderKey(str, Enum):
    """Supported AI providers."""

    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    GOOGLE = "GOOGLE"
    OPENROUTER = "OPENROUTER"


class AIConnectionDescriptor(WireModel):
    """An AI connection owned by the workspace."""

    id: int
    name: str | None = None
    provider_key: AIProviderKey
    ai_model: str
    created_at: datetime | None = None
    token_limitation: int | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _empty_date(cls, v: Any) -> Any:
        return None if v == "" else v

    @property
    def label(self) -> str:
        return f"{self.name or self.provider_key.value} - {self.ai_model}"


class CreateAIConnectionRequest(WireModel):
    """Credentials submitted to create an AI connection."""

    name: str | None = None
    provider_key: AIProviderKey = AIProviderKey.OPENROUTER
    ai_model: str = ""
    api_key: SecretStr = SecretStr("")
    token_limitation: int = Field(default=150000, ge=1)

    def to_payload(self) -> dict[str, Any]:
        """Wire payload; the server expects the token limitation as a string."""
        payload: dict[str, Any] = {
            "providerKey": self.provider_key.value,
            "aiModel": self.ai_model.strip(),
            "apiKey": self.api_key.get_secret_value().strip(),
            "tokenLimitation": str(self.token_limitation),
        }
        if self.name and self.name.strip():
            payload["name"] = self.name.strip()
        return payload
