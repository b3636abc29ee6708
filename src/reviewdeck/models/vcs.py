"""
Models for VCS connections and repositories.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .base import WireModel


class VcsProvider(str, Enum):
    """Supported VCS providers."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET_CLOUD = "bitbucket-cloud"
    BITBUCKET_SERVER = "bitbucket-server"

    @classmethod
    def normalize(cls, value: Any) -> "VcsProvider":
        """Accept both server (BITBUCKET_CLOUD) and client (bitbucket-cloud) spellings."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("_", "-"))


class ConnectionKind(str, Enum):
    """How a connection authenticates against its provider."""

    APP = "APP"
    OAUTH_MANUAL = "OAUTH_MANUAL"
    ACCESS_TOKEN = "ACCESS_TOKEN"
    REPOSITORY_TOKEN = "REPOSITORY_TOKEN"

    @classmethod
    def normalize(cls, value: Any) -> "ConnectionKind":
        """Fold provider-specific connection type names onto the four kinds."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.OAUTH_MANUAL
        text = str(value).strip().upper()
        return cls(_KIND_ALIASES.get(text, text))

    @property
    def is_managed(self) -> bool:
        """Managed connections list repositories through the unified integration API."""
        return self in (ConnectionKind.APP, ConnectionKind.REPOSITORY_TOKEN)


_KIND_ALIASES = {
    "GITHUB_APP": "APP",
    "CONNECT_APP": "APP",
    "OAUTH_APP": "APP",
    "APPLICATION": "APP",
    "PERSONAL_TOKEN": "ACCESS_TOKEN",
    "WORKSPACE_TOKEN": "ACCESS_TOKEN",
}


class ConnectionStatus(str, Enum):
    """Setup status of a VCS connection."""

    CONNECTED = "CONNECTED"
    ERROR = "ERROR"
    PENDING = "PENDING"

    @classmethod
    def normalize(cls, value: Any) -> "ConnectionStatus":
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.PENDING
        text = str(value).strip().upper()
        if text == "DISABLED":
            return cls.ERROR
        return cls(text)


def _blank_to_none(v: Any) -> Any:
    return None if v == "" else v


class ConnectionDescriptor(WireModel):
    """A VCS connection available to the workspace."""

    id: int
    provider: VcsProvider
    connection_kind: ConnectionKind = Field(
        default=ConnectionKind.OAUTH_MANUAL, alias="connectionType"
    )
    display_name: str = Field(default="", alias="connectionName")
    repository_count: int = Field(default=0, alias="repoCount")
    status: ConnectionStatus = ConnectionStatus.PENDING
    created_at: datetime | None = None
    token_expires_at: datetime | None = None
    external_workspace_slug: str | None = None
    repository_path: str | None = None

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, v: Any) -> VcsProvider:
        return VcsProvider.normalize(v)

    @field_validator("connection_kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> ConnectionKind:
        return ConnectionKind.normalize(v)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> ConnectionStatus:
        return ConnectionStatus.normalize(v)

    @field_validator("repository_count", mode="before")
    @classmethod
    def _count_default(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("created_at", "token_expires_at", mode="before")
    @classmethod
    def _empty_dates(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def key(self) -> tuple[VcsProvider, int]:
        """Identity of a connection across both listing sources."""
        return (self.provider, self.id)

    @property
    def label(self) -> str:
        return self.display_name or f"Connection {self.id}"

    def token_expired(self, now: datetime | None = None) -> bool:
        if self.token_expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires = self.token_expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= now

    def needs_reauthorization(self, now: datetime | None = None) -> bool:
        """True when the connection should offer a reconnect action."""
        return self.status == ConnectionStatus.ERROR or self.token_expired(now)


class RepositoryDescriptor(WireModel):
    """A repository reachable through a connection, in normalized form."""

    id: str
    slug: str
    name: str
    full_name: str = ""
    is_private: bool = True
    default_branch: str | None = None
    clone_url: str | None = None
    namespace: str = ""
    is_onboarded: bool = False
    description: str | None = None
    html_url: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> str:
        return str(v).strip("{}")

    @property
    def display_name(self) -> str:
        return self.full_name or self.name or self.slug


class RepositoryPage(WireModel):
    """One page of repositories."""

    items: list[RepositoryDescriptor] = Field(default_factory=list)
    page: int = 1
    has_next: bool = False


class BranchListing(BaseModel):
    """Branches offered for selection.

    ``degraded`` is True when the list is the heuristic fallback rather
    than data returned by the provider.
    """

    branches: list[str]
    degraded: bool = False

    @property
    def default(self) -> str | None:
        return self.branches[0] if self.branches else None
