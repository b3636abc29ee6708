"""
Repository Browser.

Lists the repositories reachable through one connection. Managed
connections (app installations, repository tokens) go through the unified
integration listing, which already returns normalized repositories.
OAuth and personal-token connections go through the provider's own
listing, whose items are normalized by the provider adapter.
"""

import logging

from ..api.client import ApiClient, path_segment
from ..models.vcs import ConnectionDescriptor, RepositoryDescriptor, RepositoryPage
from .adapters import get_adapter
from .catalog import get_provider

logger = logging.getLogger(__name__)


def _clean_search(search: str | None) -> str | None:
    if search is None:
        return None
    return search.strip() or None


class RepositoryBrowser:
    """Paginated, searchable repository list for a single connection.

    ``load()`` starts over from page 1 and replaces ``items``;
    ``load_more()`` appends the next page. Concurrent loads are not
    coordinated: whichever response resolves last determines ``items``.
    """

    def __init__(self, api: ApiClient, workspace: str, connection: ConnectionDescriptor):
        self.api = api
        self.workspace = workspace
        self.connection = connection
        self.items: list[RepositoryDescriptor] = []
        self.page = 0
        self.has_next = False
        self.search: str | None = None

    @property
    def _ws(self) -> str:
        return path_segment(self.workspace)

    @property
    def uses_unified_listing(self) -> bool:
        return self.connection.connection_kind.is_managed

    async def list_repositories(self, page: int = 1, search: str | None = None) -> RepositoryPage:
        """Fetch one page without touching the browser state.

        Raises:
            TokenExpiredError: The connection must be re-authorized.
            ApiError: Any other listing failure.
        """
        search = _clean_search(search)
        connection = self.connection
        if self.uses_unified_listing:
            body = await self.api.get(
                f"/{self._ws}/integrations/{connection.provider.value}/repos",
                params={"vcsConnectionId": connection.id, "page": page, "q": search},
            )
            result = RepositoryPage.model_validate(body or {})
            # Some servers omit the page number
            return result.model_copy(update={"page": page})

        segment = get_provider(connection.provider).legacy_segment
        body = await self.api.get(
            f"/{self._ws}/vcs/{segment}/{connection.id}/repositories",
            params={"page": page, "q": search},
        )
        adapter = get_adapter(connection.provider)
        raw_items, has_next = adapter.unwrap(body)
        return RepositoryPage(items=adapter.normalize_all(raw_items), page=page, has_next=has_next)

    async def load(self, search: str | None = None) -> list[RepositoryDescriptor]:
        """Load page 1 for ``search``, replacing the current list."""
        search = _clean_search(search)
        result = await self.list_repositories(page=1, search=search)
        self.search = search
        self.items = list(result.items)
        self.page = 1
        self.has_next = result.has_next
        logger.debug(
            f"[RepositoryBrowser] Loaded {len(self.items)} repos for connection "
            f"{self.connection.id} (search={search!r}, has_next={self.has_next})"
        )
        return self.items

    async def load_more(self) -> list[RepositoryDescriptor]:
        """Append the next page; a no-op when there is none."""
        if not self.has_next:
            return self.items
        next_page = self.page + 1
        result = await self.list_repositories(page=next_page, search=self.search)
        self.items.extend(result.items)
        self.page = next_page
        self.has_next = result.has_next
        return self.items

    async def get_repository(self, repo_id: str) -> RepositoryDescriptor:
        connection = self.connection
        body = await self.api.get(
            f"/{self._ws}/integrations/{connection.provider.value}/repos/{path_segment(repo_id)}",
            params={"vcsConnectionId": connection.id},
        )
        return RepositoryDescriptor.model_validate(body)

    @staticmethod
    def is_selectable(repository: RepositoryDescriptor) -> bool:
        """Already-onboarded repositories are shown but cannot be picked."""
        return not repository.is_onboarded
