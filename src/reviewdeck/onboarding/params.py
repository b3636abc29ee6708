"""
Navigable wizard parameters.

The wizard mirrors its position into query parameters so a link can
reopen it. Parameters carry a version marker ``v``; older shapes are
upgraded through ``MIGRATIONS`` before validation, and versions newer than
this client understands are ignored.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.vcs import ConnectionKind, VcsProvider

logger = logging.getLogger(__name__)

PARAMS_VERSION = 1


def _migrate_unversioned(query: dict[str, Any]) -> dict[str, Any]:
    """Links from before versioning counted steps from 1."""
    migrated = dict(query)
    step = migrated.get("step")
    if step not in (None, ""):
        migrated["step"] = max(int(step) - 1, 0)
    return migrated


# Maps a version to the function that upgrades it to the next version
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_unversioned,
}


class WizardParams(BaseModel):
    """Serializable wizard position."""

    version: int = PARAMS_VERSION
    connection_id: int | None = None
    provider: VcsProvider | None = None
    connection_type: ConnectionKind | None = None
    step: int = Field(default=0, ge=0, le=5)

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, v: Any) -> VcsProvider | None:
        return None if v in (None, "") else VcsProvider.normalize(v)

    @field_validator("connection_type", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> ConnectionKind | None:
        return None if v in (None, "") else ConnectionKind.normalize(v)

    @property
    def is_deep_link(self) -> bool:
        """True when the parameters name a specific connection."""
        return self.connection_id is not None and self.provider is not None

    def to_query(self) -> dict[str, str]:
        query = {"v": str(self.version), "step": str(self.step)}
        if self.connection_id is not None:
            query["connectionId"] = str(self.connection_id)
        if self.provider is not None:
            query["provider"] = self.provider.value
        if self.connection_type is not None:
            query["connectionType"] = self.connection_type.value
        return query

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "WizardParams":
        """Parse query parameters, falling back to a fresh wizard on anything unusable."""
        data: dict[str, Any] = {
            "step": query.get("step"),
            "connection_id": query.get("connectionId"),
            "provider": query.get("provider"),
            "connection_type": query.get("connectionType"),
        }
        raw_version = query.get("v")
        try:
            version = int(raw_version) if raw_version not in (None, "") else 0
        except (TypeError, ValueError):
            logger.warning(f"[WizardParams] Ignoring malformed version {raw_version!r}")
            return cls()

        if version > PARAMS_VERSION:
            logger.warning(f"[WizardParams] Ignoring parameters of unknown version {version}")
            return cls()

        try:
            while version < PARAMS_VERSION:
                data = MIGRATIONS[version](data)
                version += 1
            data = {k: v for k, v in data.items() if v not in (None, "")}
            return cls(version=PARAMS_VERSION, **data)
        except (ValidationError, ValueError) as e:
            logger.warning(f"[WizardParams] Ignoring invalid parameters: {e}")
            return cls()
