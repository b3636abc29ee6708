"""VCS connections, repositories and branches."""

from .adapters import ADAPTERS, RepositoryAdapter, get_adapter
from .branches import BranchResolver, fallback_branches
from .catalog import LISTED_PROVIDERS, PROVIDERS, ProviderInfo, get_provider
from .connections import ConnectionDirectory
from .repositories import RepositoryBrowser

__all__ = [
    "ADAPTERS",
    "LISTED_PROVIDERS",
    "PROVIDERS",
    "BranchResolver",
    "ConnectionDirectory",
    "ProviderInfo",
    "RepositoryAdapter",
    "RepositoryBrowser",
    "fallback_branches",
    "get_adapter",
    "get_provider",
]
