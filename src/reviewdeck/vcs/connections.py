"""
Connection Directory.

A workspace's VCS connections live behind two endpoints: the unified
integration API (app installations and repository tokens) and the older
per-provider personal-token API. The directory queries both, merges the
results and keeps the merged list for display and selection.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from ..api.client import ApiClient, path_segment
from ..exceptions import ApiError, WizardValidationError
from ..models.vcs import ConnectionDescriptor, ConnectionKind, VcsProvider
from .catalog import LISTED_PROVIDERS, get_provider

logger = logging.getLogger(__name__)

# Legacy payloads name the external workspace differently per provider
_LEGACY_WORKSPACE_FIELDS = ("workspaceId", "organizationId", "groupId")


def from_legacy_payload(
    provider: VcsProvider, raw: dict[str, Any], kind: ConnectionKind | None = None
) -> ConnectionDescriptor:
    """Build a descriptor from a personal-token endpoint payload.

    These payloads carry no provider field and report the status as
    ``setupStatus``.
    """
    info = get_provider(provider)
    workspace = next((str(raw[f]) for f in _LEGACY_WORKSPACE_FIELDS if raw.get(f)), None)
    return ConnectionDescriptor.model_validate(
        {
            **raw,
            "provider": provider,
            "connectionType": kind or raw.get("connectionType") or info.legacy_kind,
            "status": raw.get("status") or raw.get("setupStatus"),
            "externalWorkspaceSlug": raw.get("externalWorkspaceSlug") or workspace,
        }
    )


class ConnectionDirectory:
    """Merged view of a workspace's VCS connections."""

    def __init__(self, api: ApiClient, workspace: str):
        self.api = api
        self.workspace = workspace
        self.connections: list[ConnectionDescriptor] = []

    def _integration_path(self, provider: VcsProvider, suffix: str = "") -> str:
        return f"/{path_segment(self.workspace)}/integrations/{provider.value}/connections{suffix}"

    def _legacy_path(self, provider: VcsProvider, suffix: str) -> str:
        segment = get_provider(provider).legacy_segment
        return f"/{path_segment(self.workspace)}/vcs/{segment}/{suffix}"

    async def list_connections(self) -> list[ConnectionDescriptor]:
        """Fetch and merge both sources for every listed provider.

        Identity is ``(provider, id)``; the app-installation entry wins a
        collision. A failing source contributes nothing.
        """
        app_sources = [self._fetch_app_connections(p) for p in LISTED_PROVIDERS]
        legacy_sources = [self._fetch_legacy_connections(p) for p in LISTED_PROVIDERS]
        results = await asyncio.gather(*app_sources, *legacy_sources)

        merged: dict[tuple[VcsProvider, int], ConnectionDescriptor] = {}
        for batch in results:
            for connection in batch:
                merged.setdefault(connection.key, connection)

        self.connections = list(merged.values())
        logger.debug(
            f"[ConnectionDirectory] {len(self.connections)} connections in {self.workspace}"
        )
        return self.connections

    async def _fetch_app_connections(self, provider: VcsProvider) -> list[ConnectionDescriptor]:
        try:
            body = await self.api.get(self._integration_path(provider))
            return [ConnectionDescriptor.model_validate(item) for item in body or []]
        except (ApiError, ValidationError) as e:
            logger.warning(
                f"[ConnectionDirectory] App connections for {provider.value} unavailable: {e}"
            )
            return []

    async def _fetch_legacy_connections(self, provider: VcsProvider) -> list[ConnectionDescriptor]:
        try:
            body = await self.api.get(self._legacy_path(provider, "list"))
            return [from_legacy_payload(provider, item) for item in body or []]
        except (ApiError, ValidationError) as e:
            logger.warning(
                f"[ConnectionDirectory] Token connections for {provider.value} unavailable: {e}"
            )
            return []

    def group_by_provider(self) -> dict[VcsProvider, list[ConnectionDescriptor]]:
        """Partition the last listing by provider, in listing order."""
        groups: dict[VcsProvider, list[ConnectionDescriptor]] = {}
        for connection in self.connections:
            groups.setdefault(connection.provider, []).append(connection)
        return groups

    def find(self, provider: VcsProvider | str, connection_id: int) -> ConnectionDescriptor | None:
        key = (VcsProvider.normalize(provider), int(connection_id))
        return next((c for c in self.connections if c.key == key), None)

    async def get_connection(
        self,
        provider: VcsProvider | str,
        connection_id: int,
        kind: ConnectionKind | str | None = None,
    ) -> ConnectionDescriptor:
        """Fetch a single connection from the source its kind belongs to.

        Without a kind the unified endpoint is asked first and the
        personal-token endpoint second.
        """
        provider = VcsProvider.normalize(provider)
        if kind is not None:
            kind = ConnectionKind.normalize(kind)

        if kind is None or kind.is_managed:
            try:
                body = await self.api.get(self._integration_path(provider, f"/{connection_id}"))
                return ConnectionDescriptor.model_validate(body)
            except ApiError:
                if kind is not None:
                    raise
                logger.debug(
                    f"[ConnectionDirectory] {provider.value}/{connection_id} not found "
                    "in integrations, trying token connections"
                )

        body = await self.api.get(self._legacy_path(provider, f"connections/{connection_id}"))
        return from_legacy_payload(provider, body)

    async def sync(self, connection: ConnectionDescriptor) -> ConnectionDescriptor:
        """Refresh status and repository count of ``connection`` in place."""
        body = await self.api.post(
            self._integration_path(connection.provider, f"/{connection.id}/sync")
        )
        if body:
            fresh = ConnectionDescriptor.model_validate(
                {"provider": connection.provider, "id": connection.id, **body}
            )
            connection.repository_count = fresh.repository_count
            connection.status = fresh.status
            if fresh.token_expires_at is not None:
                connection.token_expires_at = fresh.token_expires_at
        logger.info(
            f"[ConnectionDirectory] Synced {connection.provider.value}/{connection.id}: "
            f"{connection.repository_count} repos, {connection.status.value}"
        )
        return connection

    async def delete_connection(self, connection: ConnectionDescriptor) -> None:
        await self.api.delete(self._integration_path(connection.provider, f"/{connection.id}"))
        self.connections = [c for c in self.connections if c.key != connection.key]
        logger.info(f"[ConnectionDirectory] Deleted {connection.provider.value}/{connection.id}")

    async def get_reconnect_url(self, connection: ConnectionDescriptor) -> str:
        """URL that re-authorizes a connection whose token expired."""
        body = await self.api.get(
            self._integration_path(connection.provider, f"/{connection.id}/reconnect-url")
        )
        url = (body or {}).get("installUrl")
        if not url:
            raise ApiError("Reconnect URL missing from response", code="NO_RECONNECT_URL")
        return str(url)

    async def create_repository_token_connection(
        self,
        provider: VcsProvider | str,
        repository_path: str,
        access_token: str,
        *,
        base_url: str | None = None,
        connection_name: str | None = None,
    ) -> ConnectionDescriptor:
        """Create a connection scoped to one repository from an access token.

        Raises:
            WizardValidationError: Path or token is invalid; nothing is sent.
        """
        info = get_provider(provider)
        repository_path = (repository_path or "").strip().strip("/")
        access_token = (access_token or "").strip()

        if ConnectionKind.REPOSITORY_TOKEN not in info.supported_kinds:
            raise WizardValidationError(
                f"{info.name} does not support repository tokens", field="provider"
            )
        if not repository_path or "/" not in repository_path:
            raise WizardValidationError(
                f"Repository path must look like {info.token_path_example}",
                field="repository_path",
            )
        if not access_token:
            raise WizardValidationError(f"{info.token_name} is required", field="access_token")
        if base_url and not info.supports_base_url:
            raise WizardValidationError(
                f"{info.name} does not accept a custom base URL", field="base_url"
            )

        payload: dict[str, Any] = {"accessToken": access_token, "repositoryPath": repository_path}
        if connection_name and connection_name.strip():
            payload["connectionName"] = connection_name.strip()
        if base_url and base_url.strip():
            payload["baseUrl"] = base_url.strip().rstrip("/")

        body = await self.api.post(
            self._legacy_path(info.id, "create-repository-token"), json=payload
        )
        connection = from_legacy_payload(
            info.id,
            {"repositoryPath": repository_path, **(body or {})},
            kind=ConnectionKind.REPOSITORY_TOKEN,
        )
        self.connections = [c for c in self.connections if c.key != connection.key]
        self.connections.append(connection)
        logger.info(
            f"[ConnectionDirectory] Created repository token connection "
            f"{info.id.value}/{connection.id} for {repository_path}"
        )
        return connection
