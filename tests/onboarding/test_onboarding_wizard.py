"""
Functional tests for the Onboarding Orchestrator.

Run with: uv run pytest tests/onboarding/test_onboarding_wizard.py -v

These tests drive the wizard end to end against a fake dashboard API:
1. Full GitHub and Bitbucket Cloud flows, including the commit payloads
2. Deep links and the repository-token sub-flow
3. Failure handling: token expiry, onboard failure, branch-config failure
4. Navigation rules and batch onboarding
"""

import pytest

from reviewdeck.config import Settings, WizardSettings
from reviewdeck.exceptions import (
    ErrorSeverity,
    OnboardingError,
    TokenExpiredError,
    WizardStateError,
    WizardValidationError,
)
from reviewdeck.models.ai import CreateAIConnectionRequest
from reviewdeck.models.onboarding import InstallationMethod, PatternKind
from reviewdeck.models.vcs import ConnectionKind, VcsProvider
from reviewdeck.onboarding import (
    NotificationAction,
    OnboardingWizard,
    WizardParams,
    WizardStep,
    repository_identifier,
)

GITHUB_REPOS = "/acme/integrations/github/repos"
GITHUB_BRANCHES = "/acme/integrations/github/repos/5512/branches"
GITHUB_ONBOARD = "/acme/integrations/github/repos/5512/onboard"
BRANCH_CONFIG = "/acme/project/web-app/branch-analysis-config"

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def onboard_result():
    def build(namespace="web-app", webhooks=True, project_id=42):
        return {
            "projectId": project_id,
            "projectName": namespace,
            "projectNamespace": namespace,
            "webhooksConfigured": webhooks,
        }

    return build


@pytest.fixture
def github_api(fake_api, unified_repo, repo_list, onboard_result):
    """Routes for a GitHub app connection with two repositories."""
    fake_api.route(
        "GET",
        GITHUB_REPOS,
        repo_list(
            [
                unified_repo("5512", "web-app", defaultBranch="trunk"),
                unified_repo("5513", "legacy-site", isOnboarded=True),
            ]
        ),
    )
    fake_api.route("GET", "/acme/ai/list", [])
    fake_api.route("GET", GITHUB_BRANCHES, ["feature/x", "trunk", "release/1.0"])
    fake_api.route("POST", GITHUB_ONBOARD, onboard_result())
    fake_api.route("PUT", BRANCH_CONFIG, {})
    return fake_api


@pytest.fixture
def wizard(api):
    return OnboardingWizard(api, "acme")


@pytest.fixture
def at_installation(wizard, github_app_connection, github_api):
    """Wizard walked through every step with defaults, ready to commit."""

    async def walk():
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])
        await wizard.next()  # details
        await wizard.next()  # ai
        await wizard.next()  # analysis
        await wizard.next()  # installation
        return wizard

    return walk


# =============================================================================
# Full Flows
# =============================================================================


@pytest.mark.functional
class TestGitHubFlow:
    @pytest.mark.asyncio
    async def test_walk_and_commit(self, at_installation, github_api):
        wizard = await at_installation()

        assert wizard.step == WizardStep.INSTALLATION
        assert wizard.session.project_name == "web-app"
        assert wizard.branches.branches[0] == "trunk"

        outcome = await wizard.commit()

        request = github_api.calls("POST", GITHUB_ONBOARD)[0]
        assert github_api.body_of(request) == {
            "vcsConnectionId": 7,
            "projectName": "web-app",
            "projectNamespace": "web-app",
            "mainBranch": "trunk",
            "prAnalysisEnabled": True,
            "branchAnalysisEnabled": True,
            "setupWebhooks": True,
        }
        put = github_api.calls("PUT", BRANCH_CONFIG)[0]
        assert github_api.body_of(put) == {
            "prTargetBranches": ["trunk"],
            "branchPushPatterns": ["trunk"],
        }
        assert outcome.result.project_id == 42
        assert outcome.effective_method == InstallationMethod.WEBHOOK
        assert outcome.branch_config_saved is True
        assert wizard.outcome is outcome
        assert wizard.notifier.notifications == []

    @pytest.mark.asyncio
    async def test_edited_scope_and_details_are_sent(self, at_installation, github_api):
        wizard = await at_installation()
        wizard.back()
        wizard.add_pattern(PatternKind.PR_TARGET, "release/*")
        wizard.remove_pattern(PatternKind.BRANCH_PUSH, "trunk")
        wizard.scope.set_pr_analysis(False)
        await wizard.goto(WizardStep.DETAILS)
        wizard.set_project_details("Web App", "Customer portal")
        await wizard.goto(WizardStep.INSTALLATION)
        wizard.set_installation_method("PIPELINE")

        await wizard.commit()

        body = github_api.body_of(github_api.calls("POST", GITHUB_ONBOARD)[0])
        assert body["projectName"] == "Web App"
        assert body["projectDescription"] == "Customer portal"
        assert body["prAnalysisEnabled"] is False
        assert body["setupWebhooks"] is False
        put = github_api.calls("PUT", BRANCH_CONFIG)[0]
        assert github_api.body_of(put)["prTargetBranches"] == ["trunk", "release/*"]
        # main branch stays pinned
        assert github_api.body_of(put)["branchPushPatterns"] == ["trunk"]

    @pytest.mark.asyncio
    async def test_skip_ai_sends_no_ai_connection(self, wizard, github_app_connection, github_api):
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])
        await wizard.goto(WizardStep.AI)

        assert await wizard.skip_ai() == WizardStep.ANALYSIS
        await wizard.next()
        await wizard.commit()

        body = github_api.body_of(github_api.calls("POST", GITHUB_ONBOARD)[0])
        assert "aiConnectionId" not in body

    @pytest.mark.asyncio
    async def test_created_ai_connection_is_bound(
        self, wizard, github_app_connection, github_api
    ):
        github_api.route(
            "POST",
            "/acme/ai/create",
            {"id": 5, "providerKey": "OPENAI", "aiModel": "gpt-4o", "name": "ci"},
        )
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])
        await wizard.goto(WizardStep.AI)

        await wizard.create_ai_connection(
            CreateAIConnectionRequest(provider_key="OPENAI", ai_model="gpt-4o", api_key="sk")
        )
        await wizard.goto(WizardStep.INSTALLATION)
        await wizard.commit()

        body = github_api.body_of(github_api.calls("POST", GITHUB_ONBOARD)[0])
        assert body["aiConnectionId"] == 5

    @pytest.mark.asyncio
    async def test_listing_does_not_preselect_ai(self, wizard, github_app_connection, github_api):
        github_api.clear("GET", "/acme/ai/list").route(
            "GET", "/acme/ai/list", [{"id": 5, "providerKey": "OPENAI", "aiModel": "gpt-4o"}]
        )
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])

        await wizard.goto(WizardStep.AI)

        assert [c.id for c in wizard.ai.connections] == [5]
        assert wizard.session.ai_connection_id is None

    @pytest.mark.asyncio
    async def test_webhook_degraded_to_pipeline(
        self, at_installation, github_api, onboard_result
    ):
        github_api.clear("POST", GITHUB_ONBOARD).route(
            "POST", GITHUB_ONBOARD, onboard_result(webhooks=False)
        )
        wizard = await at_installation()

        outcome = await wizard.commit()

        assert outcome.requested_method == InstallationMethod.WEBHOOK
        assert outcome.effective_method == InstallationMethod.PIPELINE
        assert outcome.webhook_degraded is True
        assert wizard.notifier.latest.severity == ErrorSeverity.WARNING


@pytest.mark.functional
class TestBitbucketFlow:
    @pytest.mark.asyncio
    async def test_onboards_by_slug(self, wizard, fake_api, bitbucket_oauth_connection):
        fake_api.route(
            "GET",
            "/acme/vcs/bitbucket_cloud/3/repositories",
            {
                "items": [
                    {
                        "uuid": "{aaa-111}",
                        "slug": "payments",
                        "name": "Payments",
                        "owner": {"username": "acme-team"},
                        "mainBranch": {"name": "develop"},
                    }
                ]
            },
        )
        fake_api.route(
            "GET", "/acme/integrations/bitbucket-cloud/repos/aaa-111/branches", ["develop"]
        )
        fake_api.route(
            "POST",
            "/acme/integrations/bitbucket-cloud/repos/payments/onboard",
            {"projectId": 9, "projectName": "Payments", "projectNamespace": "payments"},
        )
        fake_api.route("PUT", "/acme/project/payments/branch-analysis-config", {})

        await wizard.select_connection(bitbucket_oauth_connection)
        assert wizard.select_repository(wizard.browser.items[0])
        await wizard.goto(WizardStep.ANALYSIS)
        await wizard.next()
        outcome = await wizard.commit()

        assert wizard.scope.main_branch == "develop"
        assert outcome.result.project_namespace == "payments"
        assert len(fake_api.calls("PUT", "/acme/project/payments/branch-analysis-config")) == 1

    def test_repository_identifier(self, make_repo):
        repo = make_repo("aaa-111", "Payments", slug="payments")

        assert repository_identifier(VcsProvider.BITBUCKET_CLOUD, repo) == "payments"
        assert repository_identifier(VcsProvider.BITBUCKET_SERVER, repo) == "payments"
        assert repository_identifier(VcsProvider.GITHUB, repo) == "aaa-111"
        assert repository_identifier(VcsProvider.GITLAB, repo) == "aaa-111"


# =============================================================================
# Entry Points
# =============================================================================


@pytest.mark.functional
class TestEntry:
    @pytest.mark.asyncio
    async def test_fresh_start_lists_connections(
        self, wizard, fake_api, github_app_connection_payload
    ):
        fake_api.route(
            "GET", "/acme/integrations/github/connections", [github_app_connection_payload]
        )

        step = await wizard.start()

        assert step == WizardStep.CONNECTION
        assert [c.id for c in wizard.directory.connections] == [7]
        with pytest.raises(WizardValidationError):
            await wizard.next()

    @pytest.mark.asyncio
    async def test_deep_link_opens_repository_step(
        self, wizard, github_api, github_app_connection_payload
    ):
        github_api.route(
            "GET", "/acme/integrations/github/connections/7", github_app_connection_payload
        )
        params = WizardParams.from_query(
            {"v": "1", "connectionId": "7", "provider": "github", "connectionType": "APP"}
        )

        step = await wizard.start(params)

        assert step == WizardStep.REPOSITORY
        assert [r.name for r in wizard.browser.items] == ["web-app", "legacy-site"]
        assert wizard.to_params().to_query()["connectionId"] == "7"
        assert wizard.to_params().step == 1

    @pytest.mark.asyncio
    async def test_broken_deep_link_stays_on_first_step(self, wizard, fake_api):
        params = WizardParams(connection_id=99, provider="github", connection_type="APP")

        step = await wizard.start(params)

        assert step == WizardStep.CONNECTION
        assert wizard.notifier.latest.title == "Failed to load connection"
        assert wizard.session.selected_connection is None

    @pytest.mark.asyncio
    async def test_connection_passed_in_skips_first_step(
        self, api, github_app_connection, github_api
    ):
        wizard = OnboardingWizard(api, "acme", connection=github_app_connection)

        assert await wizard.start() == WizardStep.REPOSITORY
        assert github_api.calls("GET", "/acme/integrations/github/connections") == []

    @pytest.mark.asyncio
    async def test_repository_token_sub_flow(self, wizard, fake_api, unified_repo, repo_list):
        fake_api.route(
            "POST",
            "/acme/vcs/gitlab/create-repository-token",
            {"id": 21, "connectionName": "data-pipeline", "setupStatus": "CONNECTED"},
        )
        fake_api.route(
            "GET",
            "/acme/integrations/gitlab/repos",
            repo_list([unified_repo("981", "data-pipeline")]),
        )
        await wizard.start()

        connection = await wizard.submit_repository_token(
            "gitlab", "platform/data-pipeline", "glpat-secret"
        )

        assert connection.connection_kind == ConnectionKind.REPOSITORY_TOKEN
        assert wizard.step == WizardStep.REPOSITORY
        assert [r.id for r in wizard.browser.items] == ["981"]
        assert fake_api.requests[-1].url.params["vcsConnectionId"] == "21"


# =============================================================================
# Failure Handling
# =============================================================================


@pytest.mark.functional
class TestFailures:
    @pytest.mark.asyncio
    async def test_expired_token_offers_reconnect(self, wizard, fake_api, github_app_connection):
        fake_api.route(
            "GET",
            GITHUB_REPOS,
            {"message": "Bad credentials", "code": "TOKEN_EXPIRED"},
            status=401,
        )
        fake_api.route(
            "GET",
            "/acme/integrations/github/connections/7/reconnect-url",
            {"installUrl": "https://github.com/apps/reviewdeck/installations/new"},
        )

        with pytest.raises(TokenExpiredError):
            await wizard.select_connection(github_app_connection)

        notification = wizard.notifier.latest
        assert notification.action == NotificationAction.RECONNECT
        assert notification.action_url == "https://github.com/apps/reviewdeck/installations/new"
        assert wizard.step == WizardStep.REPOSITORY

    @pytest.mark.asyncio
    async def test_onboard_failure_keeps_wizard_open(self, at_installation, github_api):
        github_api.clear("POST", GITHUB_ONBOARD).route(
            "POST", GITHUB_ONBOARD, {"message": "Repository locked"}, status=500
        )
        wizard = await at_installation()

        with pytest.raises(OnboardingError) as exc_info:
            await wizard.commit()

        assert "Repository locked" in exc_info.value.message
        assert wizard.step == WizardStep.INSTALLATION
        assert wizard.outcome is None
        assert wizard.notifier.latest.action == NotificationAction.RETRY
        assert github_api.calls("PUT", BRANCH_CONFIG) == []
        # POST is never retried
        assert len(github_api.calls("POST", GITHUB_ONBOARD)) == 1

    @pytest.mark.asyncio
    async def test_branch_config_failure_is_not_fatal(self, at_installation, github_api):
        github_api.clear("PUT", BRANCH_CONFIG).route(
            "PUT", BRANCH_CONFIG, {"message": "nope"}, status=500
        )
        wizard = await at_installation()

        outcome = await wizard.commit()

        assert outcome.branch_config_saved is False
        assert outcome.result.project_id == 42
        assert wizard.notifier.latest.severity == ErrorSeverity.WARNING

    @pytest.mark.asyncio
    async def test_empty_namespace_rejected_before_network(self, at_installation, github_api):
        wizard = await at_installation()
        wizard.set_project_details("!!!")
        requests_before = len(github_api.requests)

        with pytest.raises(WizardValidationError) as exc_info:
            await wizard.commit()

        assert exc_info.value.field == "project_name"
        assert len(github_api.requests) == requests_before

    @pytest.mark.asyncio
    async def test_commit_only_from_installation_step(
        self, wizard, github_app_connection, github_api
    ):
        await wizard.select_connection(github_app_connection)

        with pytest.raises(WizardStateError):
            await wizard.commit()

    @pytest.mark.asyncio
    async def test_branch_failure_still_allows_commit(
        self, wizard, github_app_connection, github_api
    ):
        github_api.clear("GET", GITHUB_BRANCHES).route(
            "GET", GITHUB_BRANCHES, {"message": "rate limited"}, status=503
        )
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])

        await wizard.goto(WizardStep.ANALYSIS)

        assert wizard.branches.degraded is True
        assert wizard.scope.main_branch == "trunk"
        wizard.set_main_branch("not-in-the-list")
        await wizard.next()
        await wizard.commit()
        body = github_api.body_of(github_api.calls("POST", GITHUB_ONBOARD)[0])
        assert body["mainBranch"] == "not-in-the-list"


# =============================================================================
# Navigation
# =============================================================================


@pytest.mark.functional
class TestNavigation:
    @pytest.mark.asyncio
    async def test_onboarded_repository_cannot_be_selected(
        self, wizard, github_app_connection, github_api
    ):
        await wizard.select_connection(github_app_connection)

        assert wizard.select_repository(wizard.browser.items[1]) is False
        assert wizard.session.selected_repository is None
        with pytest.raises(WizardValidationError):
            await wizard.next()

    @pytest.mark.asyncio
    async def test_back_keeps_entered_data(self, wizard, github_app_connection, github_api):
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])
        await wizard.next()
        wizard.set_project_details("Portal", "Front end")

        assert wizard.back() == WizardStep.REPOSITORY
        assert wizard.back() == WizardStep.CONNECTION
        assert wizard.back() == WizardStep.CONNECTION

        assert wizard.session.selected_repository.id == "5512"
        assert wizard.session.project_name == "Portal"
        assert wizard.session.project_description == "Front end"

    @pytest.mark.asyncio
    async def test_branches_resolved_once_per_repository(
        self, wizard, github_app_connection, github_api
    ):
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])
        await wizard.goto(WizardStep.ANALYSIS)
        wizard.set_main_branch("release/1.0")

        wizard.back()
        await wizard.next()

        assert len(github_api.calls("GET", GITHUB_BRANCHES)) == 1
        assert wizard.scope.main_branch == "release/1.0"

    @pytest.mark.asyncio
    async def test_skip_ai_only_from_ai_step(self, wizard, github_app_connection, github_api):
        await wizard.select_connection(github_app_connection)

        with pytest.raises(WizardStateError):
            await wizard.skip_ai()

    @pytest.mark.asyncio
    async def test_goto_validates_skipped_steps(self, wizard, github_app_connection, github_api):
        await wizard.select_connection(github_app_connection)

        with pytest.raises(WizardValidationError):
            await wizard.goto(WizardStep.INSTALLATION)
        assert wizard.step == WizardStep.REPOSITORY

    @pytest.mark.asyncio
    async def test_no_next_after_last_step(self, at_installation):
        wizard = await at_installation()

        with pytest.raises(WizardStateError):
            await wizard.next()

    @pytest.mark.asyncio
    async def test_goto_past_analysis_resolves_new_repository(
        self, at_installation, github_api, make_repo, onboard_result
    ):
        wizard = await at_installation()
        github_api.route("GET", "/acme/integrations/github/repos/6000/branches", ["main"])
        github_api.route(
            "POST", "/acme/integrations/github/repos/6000/onboard", onboard_result("api-svc")
        )
        github_api.route("PUT", "/acme/project/api-svc/branch-analysis-config", {})

        await wizard.goto(WizardStep.REPOSITORY)
        wizard.select_repository(make_repo("6000", "api-svc", default_branch="main"))
        await wizard.goto(WizardStep.INSTALLATION)
        await wizard.commit()

        assert len(github_api.calls("GET", "/acme/integrations/github/repos/6000/branches")) == 1
        assert wizard.scope.main_branch == "main"
        request = github_api.calls("POST", "/acme/integrations/github/repos/6000/onboard")[0]
        assert github_api.body_of(request)["mainBranch"] == "main"

    @pytest.mark.asyncio
    async def test_commit_only_once(self, at_installation, github_api):
        wizard = await at_installation()
        await wizard.commit()

        with pytest.raises(WizardStateError):
            await wizard.commit()
        assert len(github_api.calls("POST", GITHUB_ONBOARD)) == 1

    @pytest.mark.asyncio
    async def test_branch_limit_from_wizard_settings(
        self, api, github_app_connection, github_api
    ):
        settings = Settings(wizard=WizardSettings(branch_limit=10))
        wizard = OnboardingWizard(api, "acme", settings=settings)
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])

        await wizard.goto(WizardStep.ANALYSIS)

        request = github_api.calls("GET", GITHUB_BRANCHES)[0]
        assert request.url.params["limit"] == "10"


@pytest.mark.functional
class TestProjectName:
    @pytest.mark.asyncio
    async def test_name_follows_repository_until_edited(
        self, wizard, github_app_connection, make_repo
    ):
        wizard.session.selected_connection = github_app_connection

        wizard.select_repository(make_repo("1", "web-app"))
        assert wizard.session.project_name == "web-app"
        wizard.select_repository(make_repo("2", "api"))
        assert wizard.session.project_name == "api"

        wizard.set_project_details("My Project")
        wizard.select_repository(make_repo("3", "docs"))
        assert wizard.session.project_name == "My Project"
        assert wizard.project_namespace == "my-project"

    @pytest.mark.asyncio
    async def test_connection_change_clears_auto_filled_name(
        self, wizard, github_app_connection, bitbucket_oauth_connection, github_api
    ):
        github_api.route("GET", "/acme/vcs/bitbucket_cloud/3/repositories", {"items": []})
        await wizard.select_connection(github_app_connection)
        wizard.select_repository(wizard.browser.items[0])

        await wizard.select_connection(bitbucket_oauth_connection)

        assert wizard.session.selected_repository is None
        assert wizard.session.project_name == ""
        assert wizard.branches is None


# =============================================================================
# Batch Onboarding
# =============================================================================


@pytest.mark.functional
class TestOnboardMany:
    @pytest.mark.asyncio
    async def test_continues_past_failures(
        self, wizard, fake_api, github_app_connection, make_repo, onboard_result
    ):
        fake_api.route(
            "POST", "/acme/integrations/github/repos/1/onboard", {"message": "boom"}, status=500
        )
        fake_api.route(
            "POST", "/acme/integrations/github/repos/2/onboard", onboard_result("api", True, 2)
        )
        wizard.session.selected_connection = github_app_connection
        repos = [
            make_repo("1", "web-app"),
            make_repo("2", "api"),
            make_repo("3", "docs", is_onboarded=True),
            make_repo("4", "!!!"),
        ]

        results = await wizard.onboard_many(repos)

        assert [r.project_id for r in results] == [2]
        assert len(wizard.notifier.notifications) == 1
        assert wizard.notifier.latest.severity == ErrorSeverity.WARNING
        assert fake_api.calls("POST", "/acme/integrations/github/repos/3/onboard") == []
        assert fake_api.calls("POST", "/acme/integrations/github/repos/4/onboard") == []

    @pytest.mark.asyncio
    async def test_requires_connection(self, wizard, make_repo):
        with pytest.raises(WizardValidationError):
            await wizard.onboard_many([make_repo("1", "web-app")])
