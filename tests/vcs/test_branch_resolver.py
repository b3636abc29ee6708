"""
Tests for the Branch Resolver.

Run with: uv run pytest tests/vcs/test_branch_resolver.py -v
"""

import pytest

from reviewdeck.config import Settings, WizardSettings
from reviewdeck.vcs.branches import BranchResolver, fallback_branches

BRANCHES_PATH = "/acme/integrations/github/repos/5512/branches"


@pytest.fixture
def resolver(api):
    return BranchResolver(api, "acme")


@pytest.fixture
def web_app(make_repo):
    return make_repo("5512", "web-app", default_branch="trunk")


class TestFallback:
    def test_default_first_then_common(self):
        assert fallback_branches("trunk") == ["trunk", "main", "master", "develop"]

    def test_deduplicated(self):
        assert fallback_branches("master") == ["master", "main", "develop"]

    def test_missing_default(self):
        assert fallback_branches(None) == ["main", "master", "develop"]


class TestListBranches:
    @pytest.mark.asyncio
    async def test_default_branch_first(self, resolver, fake_api, github_app_connection, web_app):
        fake_api.route("GET", BRANCHES_PATH, ["feature/x", "trunk", "release/1.0"])

        listing = await resolver.list_branches(github_app_connection, web_app)

        assert listing.branches == ["trunk", "feature/x", "release/1.0"]
        assert listing.default == "trunk"
        assert listing.degraded is False

    @pytest.mark.asyncio
    async def test_initial_request_params(
        self, resolver, fake_api, github_app_connection, web_app
    ):
        fake_api.route("GET", BRANCHES_PATH, ["trunk"])

        await resolver.list_branches(github_app_connection, web_app)

        params = fake_api.requests[0].url.params
        assert params["vcsConnectionId"] == "7"
        assert params["limit"] == "50"
        assert "search" not in params

    @pytest.mark.asyncio
    async def test_search_uses_larger_limit(
        self, resolver, fake_api, github_app_connection, web_app
    ):
        fake_api.route("GET", BRANCHES_PATH, ["release/1.0", "release/2.0"])

        listing = await resolver.list_branches(github_app_connection, web_app, search="release")

        params = fake_api.requests[0].url.params
        assert params["search"] == "release"
        assert params["limit"] == "100"
        # The default leads even when the search did not match it
        assert listing.branches == ["trunk", "release/1.0", "release/2.0"]

    @pytest.mark.asyncio
    async def test_upstream_failure_falls_back(
        self, resolver, fake_api, github_app_connection, web_app, caplog
    ):
        fake_api.route("GET", BRANCHES_PATH, {"message": "GitHub unavailable"}, status=502)

        with caplog.at_level("WARNING", logger="reviewdeck.vcs.branches"):
            listing = await resolver.list_branches(github_app_connection, web_app)

        assert listing.branches == ["trunk", "main", "master", "develop"]
        assert listing.degraded is True
        assert "Falling back" in caplog.text

    @pytest.mark.asyncio
    async def test_token_expiry_also_falls_back(
        self, resolver, fake_api, github_app_connection, make_repo
    ):
        fake_api.route(
            "GET", BRANCHES_PATH, {"message": "x", "code": "TOKEN_EXPIRED"}, status=401
        )

        listing = await resolver.list_branches(
            github_app_connection, make_repo("5512", "web-app", default_branch=None)
        )

        assert listing.branches == ["main", "master", "develop"]
        assert listing.degraded is True

    @pytest.mark.asyncio
    async def test_malformed_payload_falls_back(
        self, resolver, fake_api, github_app_connection, web_app
    ):
        fake_api.route("GET", BRANCHES_PATH, {"branches": "nope"})

        listing = await resolver.list_branches(github_app_connection, web_app)

        assert listing.degraded is True

    @pytest.mark.asyncio
    async def test_search_matching_default_not_duplicated(
        self, resolver, fake_api, github_app_connection, web_app
    ):
        fake_api.route("GET", BRANCHES_PATH, ["trunk-fix", "trunk"])

        listing = await resolver.list_branches(github_app_connection, web_app, search="trunk")

        assert listing.branches == ["trunk", "trunk-fix"]

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(
        self, resolver, fake_api, github_app_connection, web_app
    ):
        fake_api.route("GET", BRANCHES_PATH, content=b"<html>oops")

        listing = await resolver.list_branches(github_app_connection, web_app)

        assert listing.degraded is True
        assert listing.branches == ["trunk", "main", "master", "develop"]

    @pytest.mark.asyncio
    async def test_limits_come_from_given_settings(
        self, api, fake_api, github_app_connection, web_app
    ):
        settings = Settings(wizard=WizardSettings(branch_limit=10, branch_search_limit=20))
        resolver = BranchResolver(api, "acme", settings)
        fake_api.route("GET", BRANCHES_PATH, ["trunk"])

        await resolver.list_branches(github_app_connection, web_app)
        await resolver.list_branches(github_app_connection, web_app, search="tr")

        assert [r.url.params["limit"] for r in fake_api.requests] == ["10", "20"]
