"""
Pytest configuration and shared fixtures for ReviewDeck tests.

HTTP is faked with ``httpx.MockTransport``: tests register canned responses
on ``fake_api`` and inspect ``fake_api.requests`` afterwards.
"""

import json
from dataclasses import dataclass
from typing import Any

import httpx
import pytest
import pytest_asyncio

from reviewdeck.api.client import ApiClient
from reviewdeck.config import reset_settings
from reviewdeck.models.vcs import ConnectionDescriptor, RepositoryDescriptor

API_BASE = "http://reviewdeck.test/api"
API_PREFIX = "/api"


@dataclass
class CannedResponse:
    status: int = 200
    body: Any = None
    error: Exception | None = None
    content: bytes | None = None


class FakeApi:
    """Routes requests to canned responses keyed by (method, path).

    Several responses registered for the same route are served in order;
    the last one keeps being served once the others are used up. A body
    may be a callable taking the request. ``content`` sends raw bytes labelled
    as JSON instead of an encoded body.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[CannedResponse]] = {}
        self.requests: list[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        body: Any = None,
        status: int = 200,
        error: Exception | None = None,
        content: bytes | None = None,
    ) -> "FakeApi":
        key = (method.upper(), path)
        self._routes.setdefault(key, []).append(CannedResponse(status, body, error, content))
        return self

    def clear(self, method: str, path: str) -> "FakeApi":
        """Drop every response registered for a route."""
        self._routes.pop((method.upper(), path), None)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        queue = self._routes.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})

        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        if canned.error is not None:
            raise canned.error
        if canned.status == 204:
            return httpx.Response(204)
        if canned.content is not None:
            return httpx.Response(
                canned.status,
                content=canned.content,
                headers={"content-type": "application/json"},
            )
        body = canned.body(request) if callable(canned.body) else canned.body
        return httpx.Response(canned.status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and r.url.path.removeprefix(API_PREFIX) == path
        ]

    @staticmethod
    def body_of(request: httpx.Request) -> Any:
        return json.loads(request.content)


# =============================================================================
# Settings / API Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Run every test against default settings."""
    for var in ("REVIEWDECK_API_TOKEN", "REVIEWDECK_API_WORKSPACE", "REVIEWDECK_API_BASE_URL"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_api():
    """Fresh fake dashboard API."""
    return FakeApi()


@pytest_asyncio.fixture
async def api(fake_api):
    """ApiClient wired to ``fake_api`` with instant retries."""
    client = ApiClient(
        base_url=API_BASE,
        token="test-token",
        max_retries=2,
        retry_base_delay=0,
        retry_max_delay=0,
        transport=httpx.MockTransport(fake_api.handler),
    )
    yield client
    await client.close()


# =============================================================================
# Sample Payloads
# =============================================================================


@pytest.fixture
def github_app_connection_payload():
    return {
        "id": 7,
        "provider": "GITHUB",
        "connectionType": "APP",
        "connectionName": "acme-org",
        "status": "CONNECTED",
        "externalWorkspaceId": "1234",
        "externalWorkspaceSlug": "acme-org",
        "repoCount": 12,
        "createdAt": "2024-03-01T10:00:00Z",
        "updatedAt": "2024-03-02T10:00:00Z",
    }


@pytest.fixture
def github_app_connection(github_app_connection_payload):
    return ConnectionDescriptor.model_validate(github_app_connection_payload)


@pytest.fixture
def bitbucket_oauth_connection():
    return ConnectionDescriptor(
        id=3,
        provider="bitbucket-cloud",
        connection_kind="OAUTH_MANUAL",
        display_name="Bitbucket team",
        repository_count=4,
        status="CONNECTED",
        external_workspace_slug="acme-team",
    )


def _make_repo(repo_id: str, name: str, **overrides: Any) -> RepositoryDescriptor:
    data = {
        "id": repo_id,
        "slug": name.lower(),
        "name": name,
        "full_name": f"acme/{name.lower()}",
        "default_branch": "main",
        "namespace": "acme",
    }
    data.update(overrides)
    return RepositoryDescriptor(**data)


def _unified_repo_payload(repo_id: str, name: str, **overrides: Any) -> dict[str, Any]:
    """Repository as returned by the unified integration listing."""
    data = {
        "id": repo_id,
        "slug": name.lower(),
        "name": name,
        "fullName": f"acme/{name.lower()}",
        "description": None,
        "isPrivate": True,
        "defaultBranch": "main",
        "cloneUrl": f"https://github.com/acme/{name.lower()}.git",
        "htmlUrl": f"https://github.com/acme/{name.lower()}",
        "namespace": "acme",
        "avatarUrl": None,
        "isOnboarded": False,
    }
    data.update(overrides)
    return data


def _repo_list_payload(items: list[dict[str, Any]], page: int = 1, has_next: bool = False):
    return {
        "items": items,
        "page": page,
        "pageSize": 20,
        "itemCount": len(items),
        "totalCount": None,
        "hasNext": has_next,
        "hasPrevious": page > 1,
    }


@pytest.fixture
def make_repo():
    """Factory for normalized repositories."""
    return _make_repo


@pytest.fixture
def unified_repo():
    """Factory for unified-listing repository payloads."""
    return _unified_repo_payload


@pytest.fixture
def repo_list():
    """Factory for unified-listing page payloads."""
    return _repo_list_payload
