"""
Provider adapters for personal-token repository listings.

Each provider's legacy endpoint returns repositories in the upstream
provider's own shape. One adapter per provider maps that shape onto
``RepositoryDescriptor``; supporting a new provider means adding an
adapter class and registering it in ``ADAPTERS``.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models.vcs import RepositoryDescriptor, VcsProvider

FALLBACK_DEFAULT_BRANCH = "main"


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def first(*values: Any) -> Any:
    """First value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _clean_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value).strip("{}")


def _clone_href(links: Any, preferred: tuple[str, ...] = ("https", "http")) -> str | None:
    """Pick a clone URL from a Bitbucket-style ``[{href, name}]`` list."""
    if not isinstance(links, list) or not links:
        return None
    for name in preferred:
        for link in links:
            if isinstance(link, dict) and link.get("name") == name and link.get("href"):
                return str(link["href"])
    href = dig(links, 0, "href")
    return str(href) if href else None


class RepositoryAdapter(ABC):
    """Maps one provider's repository payload onto ``RepositoryDescriptor``."""

    provider: VcsProvider

    @staticmethod
    def unwrap(body: Any) -> tuple[list[dict[str, Any]], bool]:
        """Split a listing response into (raw items, has_next).

        Legacy endpoints answer with either a bare list or an object
        keyed by ``items``, ``repositories`` or ``repos``.
        """
        if isinstance(body, list):
            return body, False
        if not isinstance(body, dict):
            return [], False
        items = first(body.get("items"), body.get("repositories"), body.get("repos")) or []
        return list(items), bool(body.get("hasNext", body.get("has_next", False)))

    def normalize(self, item: dict[str, Any]) -> RepositoryDescriptor:
        slug = str(first(self.slug(item), item.get("slug"), item.get("name"), "") or "")
        namespace = str(self.namespace(item) or "")
        return RepositoryDescriptor(
            id=first(self.identifier(item), slug),
            slug=slug,
            name=str(first(item.get("name"), slug)),
            full_name=str(
                first(
                    self.full_name(item),
                    item.get("fullName"),
                    f"{namespace}/{slug}".lstrip("/"),
                )
            ),
            is_private=bool(first(self.is_private(item), True)),
            default_branch=first(self.default_branch(item), FALLBACK_DEFAULT_BRANCH),
            clone_url=first(self.clone_url(item), item.get("cloneUrl")),
            namespace=namespace,
            is_onboarded=bool(first(item.get("isOnboarded"), False)),
            description=item.get("description") or None,
            html_url=first(self.html_url(item), item.get("htmlUrl")),
        )

    def normalize_all(self, items: list[dict[str, Any]]) -> list[RepositoryDescriptor]:
        return [self.normalize(item) for item in items]

    @abstractmethod
    def identifier(self, item: dict[str, Any]) -> str | None:
        """Stable upstream identifier, preferred over the slug."""

    @abstractmethod
    def namespace(self, item: dict[str, Any]) -> str | None: ...

    def slug(self, item: dict[str, Any]) -> str | None:
        return item.get("slug")

    def full_name(self, item: dict[str, Any]) -> str | None:
        return item.get("full_name")

    def is_private(self, item: dict[str, Any]) -> bool | None:
        return first(item.get("isPrivate"), item.get("is_private"), item.get("private"))

    def default_branch(self, item: dict[str, Any]) -> str | None:
        return first(item.get("defaultBranch"), item.get("default_branch"))

    def clone_url(self, item: dict[str, Any]) -> str | None:
        return item.get("clone_url")

    def html_url(self, item: dict[str, Any]) -> str | None:
        return item.get("html_url")


class BitbucketCloudAdapter(RepositoryAdapter):
    provider = VcsProvider.BITBUCKET_CLOUD

    def identifier(self, item: dict[str, Any]) -> str | None:
        return _clean_id(first(item.get("uuid"), item.get("id")))

    def namespace(self, item: dict[str, Any]) -> str | None:
        return first(dig(item, "owner", "username"), dig(item, "workspace", "slug"))

    def default_branch(self, item: dict[str, Any]) -> str | None:
        return first(
            dig(item, "mainBranch", "name"),
            dig(item, "mainbranch", "name"),
            super().default_branch(item),
        )

    def clone_url(self, item: dict[str, Any]) -> str | None:
        return _clone_href(dig(item, "links", "clone"))

    def html_url(self, item: dict[str, Any]) -> str | None:
        return dig(item, "links", "html", "href")


class BitbucketServerAdapter(RepositoryAdapter):
    provider = VcsProvider.BITBUCKET_SERVER

    def identifier(self, item: dict[str, Any]) -> str | None:
        return _clean_id(item.get("id"))

    def namespace(self, item: dict[str, Any]) -> str | None:
        return first(dig(item, "project", "key"), item.get("namespace"))

    def is_private(self, item: dict[str, Any]) -> bool | None:
        public = item.get("public")
        if public is not None:
            return not public
        return super().is_private(item)

    def clone_url(self, item: dict[str, Any]) -> str | None:
        return _clone_href(dig(item, "links", "clone"), preferred=("http", "https"))

    def html_url(self, item: dict[str, Any]) -> str | None:
        return dig(item, "links", "self", 0, "href")


class GitHubAdapter(RepositoryAdapter):
    provider = VcsProvider.GITHUB

    def identifier(self, item: dict[str, Any]) -> str | None:
        return _clean_id(first(item.get("id"), item.get("node_id")))

    def slug(self, item: dict[str, Any]) -> str | None:
        # GitHub has no separate slug; the repository name is the path segment
        return first(item.get("slug"), item.get("name"))

    def namespace(self, item: dict[str, Any]) -> str | None:
        return first(dig(item, "owner", "login"), item.get("namespace"))


class GitLabAdapter(RepositoryAdapter):
    provider = VcsProvider.GITLAB

    def identifier(self, item: dict[str, Any]) -> str | None:
        return _clean_id(item.get("id"))

    def slug(self, item: dict[str, Any]) -> str | None:
        return first(item.get("path"), item.get("slug"))

    def namespace(self, item: dict[str, Any]) -> str | None:
        return first(
            dig(item, "namespace", "full_path"),
            dig(item, "namespace", "path"),
            item.get("namespace") if isinstance(item.get("namespace"), str) else None,
        )

    def full_name(self, item: dict[str, Any]) -> str | None:
        return first(item.get("path_with_namespace"), item.get("full_name"))

    def is_private(self, item: dict[str, Any]) -> bool | None:
        visibility = item.get("visibility")
        if visibility:
            return visibility != "public"
        return super().is_private(item)

    def clone_url(self, item: dict[str, Any]) -> str | None:
        return item.get("http_url_to_repo")

    def html_url(self, item: dict[str, Any]) -> str | None:
        return item.get("web_url")


ADAPTERS: dict[VcsProvider, RepositoryAdapter] = {
    adapter.provider: adapter
    for adapter in (
        BitbucketCloudAdapter(),
        BitbucketServerAdapter(),
        GitHubAdapter(),
        GitLabAdapter(),
    )
}


def get_adapter(provider: VcsProvider | str) -> RepositoryAdapter:
    """Adapter registered for a provider."""
    return ADAPTERS[VcsProvider.normalize(provider)]
