"""Branch Resolver: best-effort branch list for a repository."""

import logging

from ..api.client import ApiClient, path_segment
from ..config import Settings, get_settings
from ..exceptions import ApiError
from ..models.vcs import BranchListing, ConnectionDescriptor, RepositoryDescriptor
from .adapters import FALLBACK_DEFAULT_BRANCH

logger = logging.getLogger(__name__)

# Offered when the provider cannot be asked, after the repository default
COMMON_BRANCHES = ("main", "master", "develop")


def _dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def fallback_branches(default_branch: str | None) -> list[str]:
    """Heuristic list: the repository default, then the usual suspects."""
    return _dedupe([default_branch or FALLBACK_DEFAULT_BRANCH, *COMMON_BRANCHES])


class BranchResolver:
    """Lists branches through the unified integration API.

    The repository default branch always leads the list, searched or not.

    Never raises: any upstream failure yields the heuristic fallback with
    ``degraded=True``. Callers still accept branch names outside the list.
    """

    def __init__(self, api: ApiClient, workspace: str, settings: Settings | None = None):
        self.api = api
        self.workspace = workspace
        self.settings = settings or get_settings()

    async def list_branches(
        self,
        connection: ConnectionDescriptor,
        repository: RepositoryDescriptor,
        search: str | None = None,
        limit: int | None = None,
    ) -> BranchListing:
        settings = self.settings.wizard
        search = (search or "").strip() or None
        if limit is None:
            limit = settings.branch_search_limit if search else settings.branch_limit
        default = repository.default_branch or FALLBACK_DEFAULT_BRANCH

        path = (
            f"/{path_segment(self.workspace)}/integrations/{connection.provider.value}"
            f"/repos/{path_segment(repository.id)}/branches"
        )
        try:
            body = await self.api.get(
                path, params={"vcsConnectionId": connection.id, "search": search, "limit": limit}
            )
        except ApiError as e:
            logger.warning(
                f"[BranchResolver] Falling back to default branches "
                f"for {repository.display_name}: {e}"
            )
            return BranchListing(branches=fallback_branches(default), degraded=True)

        if not isinstance(body, list):
            logger.warning(
                f"[BranchResolver] Unexpected branch payload for {repository.display_name}, "
                "using fallback"
            )
            return BranchListing(branches=fallback_branches(default), degraded=True)

        names = [str(name) for name in body if name]
        return BranchListing(branches=_dedupe([default, *names]))
