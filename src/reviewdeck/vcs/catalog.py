"""Static catalog of supported VCS providers."""

from dataclasses import dataclass

from ..models.vcs import ConnectionKind, VcsProvider


@dataclass(frozen=True)
class ProviderInfo:
    """Display and routing metadata for one VCS provider."""

    id: VcsProvider
    name: str
    description: str
    legacy_segment: str
    """Path segment of the provider's personal-token endpoints (``/vcs/<segment>/...``)."""
    supported_kinds: tuple[ConnectionKind, ...]
    legacy_kind: ConnectionKind
    """Kind assumed for connections returned by the personal-token endpoints."""
    token_name: str
    token_path_example: str
    supports_base_url: bool
    slug_is_unique: bool
    """False when repository slugs collide across namespaces, so the stable id must be used."""


PROVIDERS: dict[VcsProvider, ProviderInfo] = {
    VcsProvider.BITBUCKET_CLOUD: ProviderInfo(
        id=VcsProvider.BITBUCKET_CLOUD,
        name="Bitbucket Cloud",
        description="Connect to repositories on bitbucket.org",
        legacy_segment="bitbucket_cloud",
        supported_kinds=(
            ConnectionKind.APP,
            ConnectionKind.OAUTH_MANUAL,
            ConnectionKind.REPOSITORY_TOKEN,
        ),
        legacy_kind=ConnectionKind.OAUTH_MANUAL,
        token_name="Repository Access Token",
        token_path_example="workspace/repository",
        supports_base_url=False,
        slug_is_unique=True,
    ),
    VcsProvider.GITHUB: ProviderInfo(
        id=VcsProvider.GITHUB,
        name="GitHub",
        description="Connect to repositories on github.com",
        legacy_segment="github",
        supported_kinds=(
            ConnectionKind.APP,
            ConnectionKind.OAUTH_MANUAL,
            ConnectionKind.ACCESS_TOKEN,
            ConnectionKind.REPOSITORY_TOKEN,
        ),
        legacy_kind=ConnectionKind.ACCESS_TOKEN,
        token_name="Fine-grained Personal Access Token",
        token_path_example="owner/repository",
        supports_base_url=True,
        slug_is_unique=False,
    ),
    VcsProvider.GITLAB: ProviderInfo(
        id=VcsProvider.GITLAB,
        name="GitLab",
        description="Connect to repositories on gitlab.com or self-hosted GitLab",
        legacy_segment="gitlab",
        supported_kinds=(
            ConnectionKind.APP,
            ConnectionKind.ACCESS_TOKEN,
            ConnectionKind.REPOSITORY_TOKEN,
        ),
        legacy_kind=ConnectionKind.ACCESS_TOKEN,
        token_name="Project Access Token",
        token_path_example="namespace/project-name",
        supports_base_url=True,
        slug_is_unique=False,
    ),
    VcsProvider.BITBUCKET_SERVER: ProviderInfo(
        id=VcsProvider.BITBUCKET_SERVER,
        name="Bitbucket Server / Data Center",
        description="Connect to self-hosted Bitbucket Server or Data Center",
        legacy_segment="bitbucket_server",
        supported_kinds=(ConnectionKind.ACCESS_TOKEN, ConnectionKind.REPOSITORY_TOKEN),
        legacy_kind=ConnectionKind.ACCESS_TOKEN,
        token_name="Repository Access Token",
        token_path_example="project/repository",
        supports_base_url=True,
        slug_is_unique=True,
    ),
}

# Providers whose connections are listed by the directory
LISTED_PROVIDERS: tuple[VcsProvider, ...] = (
    VcsProvider.BITBUCKET_CLOUD,
    VcsProvider.GITHUB,
    VcsProvider.GITLAB,
)


def get_provider(provider: VcsProvider | str) -> ProviderInfo:
    """Look up catalog metadata, accepting any provider spelling."""
    return PROVIDERS[VcsProvider.normalize(provider)]
