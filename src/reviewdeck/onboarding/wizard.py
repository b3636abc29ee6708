"""
Onboarding Orchestrator.

Drives a user from "pick a connection" to "project created" through six
steps:

    0 CONNECTION    choose a VCS connection (or create one from a token)
    1 REPOSITORY    browse and pick a repository
    2 DETAILS       project name and description
    3 AI            bind an AI connection (skippable)
    4 ANALYSIS      main branch and branch patterns
    5 INSTALLATION  webhook or pipeline, then commit()

Backward navigation keeps everything entered. The commit creates the
project in one call and stores branch patterns in a second one; only the
first is fatal.
"""

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from ..ai.connections import AIEngineBinder
from ..api.client import ApiClient, path_segment
from ..config import Settings, get_settings
from ..exceptions import (
    ApiError,
    ErrorSeverity,
    OnboardingError,
    TokenExpiredError,
    WizardStateError,
    WizardValidationError,
)
from ..models.ai import CreateAIConnectionRequest
from ..models.onboarding import (
    AnalysisScopeConfig,
    BranchAnalysisConfigUpdate,
    InstallationMethod,
    OnboardingOutcome,
    OnboardRequest,
    OnboardResult,
    PatternKind,
)
from ..models.vcs import (
    BranchListing,
    ConnectionDescriptor,
    RepositoryDescriptor,
    VcsProvider,
)
from ..vcs.branches import BranchResolver
from ..vcs.catalog import get_provider
from ..vcs.connections import ConnectionDirectory
from ..vcs.repositories import RepositoryBrowser
from .namespace import make_namespace
from .notifications import NotificationAction, Notifier
from .params import WizardParams
from .scope import AnalysisScopeEditor
from .session import WizardSession, WizardStep

logger = logging.getLogger(__name__)


def repository_identifier(provider: VcsProvider, repository: RepositoryDescriptor) -> str:
    """Identifier used in the onboard URL.

    Providers whose slugs are unique only within a namespace are addressed
    by their stable id.
    """
    if get_provider(provider).slug_is_unique:
        return repository.slug
    return repository.id


class OnboardingWizard:
    """Step state machine for importing one repository as a project.

    Example:
        async with ApiClient() as api:
            wizard = OnboardingWizard(api, "acme")
            await wizard.start(WizardParams.from_query(request.query))
            ...
            outcome = await wizard.commit()
    """

    def __init__(
        self,
        api: ApiClient,
        workspace: str,
        *,
        connection: ConnectionDescriptor | None = None,
        settings: Settings | None = None,
    ):
        self.api = api
        self.workspace = workspace
        self.settings = settings or get_settings()

        wizard_settings = self.settings.wizard
        self.session = WizardSession(
            scope=AnalysisScopeConfig(
                pr_analysis_enabled=wizard_settings.pr_analysis_enabled,
                branch_analysis_enabled=wizard_settings.branch_analysis_enabled,
            ),
            installation_method=InstallationMethod(wizard_settings.installation_method),
        )
        self.scope = AnalysisScopeEditor(self.session.scope)
        self.directory = ConnectionDirectory(api, workspace)
        self.ai = AIEngineBinder(api, workspace)
        self.branch_resolver = BranchResolver(api, workspace, self.settings)
        self.notifier = Notifier()

        self.browser: RepositoryBrowser | None = None
        self.branches: BranchListing | None = None
        self.outcome: OnboardingOutcome | None = None
        self._initial_connection = connection
        self._branches_for: str | None = None

    @property
    def step(self) -> WizardStep:
        return self.session.step

    @property
    def project_namespace(self) -> str:
        return make_namespace(self.session.project_name)

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def start(self, params: WizardParams | None = None) -> WizardStep:
        """Open the wizard.

        A connection passed to the constructor, or a deep link naming one,
        skips step 0. Otherwise connections are listed for step 0.
        """
        if self._initial_connection is not None:
            await self.select_connection(self._initial_connection)
            return self.step

        if params is not None and params.is_deep_link:
            try:
                connection = await self.directory.get_connection(
                    params.provider, params.connection_id, params.connection_type
                )
            except ApiError as e:
                self._notify_api_error("Failed to load connection", e)
            else:
                await self.select_connection(connection)
                return self.step

        await self.directory.list_connections()
        self.session.step = WizardStep.CONNECTION
        return self.step

    def to_params(self) -> WizardParams:
        connection = self.session.selected_connection
        return WizardParams(
            connection_id=connection.id if connection else None,
            provider=connection.provider if connection else None,
            connection_type=connection.connection_kind if connection else None,
            step=int(self.step),
        )

    # ------------------------------------------------------------------
    # Step 0: connection
    # ------------------------------------------------------------------

    async def select_connection(self, connection: ConnectionDescriptor) -> None:
        """Use ``connection`` and move to repository selection."""
        previous = self.session.selected_connection
        if previous is None or previous.key != connection.key:
            repository = self.session.selected_repository
            if repository is not None and self.session.project_name.strip() == repository.name:
                self.session.project_name = ""
            self.session.selected_repository = None
            self._branches_for = None
            self.branches = None
        self.session.selected_connection = connection
        self.browser = RepositoryBrowser(self.api, self.workspace, connection)
        self.session.step = WizardStep.REPOSITORY
        logger.info(
            f"[OnboardingWizard] Using connection {connection.provider.value}/{connection.id} "
            f"({connection.connection_kind.value})"
        )
        await self.load_repositories()

    async def submit_repository_token(
        self,
        provider: VcsProvider | str,
        repository_path: str,
        access_token: str,
        *,
        base_url: str | None = None,
        connection_name: str | None = None,
    ) -> ConnectionDescriptor:
        """Create a repository-token connection and jump to step 1."""
        try:
            connection = await self.directory.create_repository_token_connection(
                provider,
                repository_path,
                access_token,
                base_url=base_url,
                connection_name=connection_name,
            )
        except ApiError as e:
            self._notify_api_error("Failed to create connection", e)
            raise
        await self.select_connection(connection)
        return connection

    # ------------------------------------------------------------------
    # Step 1: repository
    # ------------------------------------------------------------------

    def _require_browser(self) -> RepositoryBrowser:
        if self.browser is None:
            raise WizardStateError("Select a connection before browsing repositories")
        return self.browser

    async def load_repositories(self, search: str | None = None) -> list[RepositoryDescriptor]:
        browser = self._require_browser()
        try:
            return await browser.load(search)
        except ApiError as e:
            await self._report_listing_error(e)
            raise

    async def search(self, query: str | None) -> list[RepositoryDescriptor]:
        """Filter repositories; always restarts from page 1."""
        return await self.load_repositories(query)

    async def load_more(self) -> list[RepositoryDescriptor]:
        browser = self._require_browser()
        try:
            return await browser.load_more()
        except ApiError as e:
            await self._report_listing_error(e)
            raise

    async def _report_listing_error(self, error: ApiError) -> None:
        if isinstance(error, TokenExpiredError) and self.session.selected_connection:
            url = await self._reconnect_url(self.session.selected_connection)
            self.notifier.notify(
                "Connection needs to be reconnected",
                error.message,
                action=NotificationAction.RECONNECT,
                action_url=url,
            )
            return
        self._notify_api_error("Failed to load repositories", error)

    async def _reconnect_url(self, connection: ConnectionDescriptor) -> str | None:
        try:
            return await self.directory.get_reconnect_url(connection)
        except ApiError as e:
            logger.warning(f"[OnboardingWizard] No reconnect URL for {connection.id}: {e}")
            return None

    def select_repository(self, repository: RepositoryDescriptor) -> bool:
        """Pick a repository. Onboarded repositories are ignored.

        The project name follows the repository unless the user typed their
        own.
        """
        if not RepositoryBrowser.is_selectable(repository):
            logger.debug(f"[OnboardingWizard] {repository.display_name} is already onboarded")
            return False

        previous = self.session.selected_repository
        name = self.session.project_name.strip()
        if not name or (previous is not None and name == previous.name):
            self.session.project_name = repository.name
        self.session.selected_repository = repository
        return True

    # ------------------------------------------------------------------
    # Step 2: details
    # ------------------------------------------------------------------

    def set_project_details(self, name: str, description: str | None = None) -> None:
        self.session.project_name = name
        if description is not None:
            self.session.project_description = description

    # ------------------------------------------------------------------
    # Step 3: AI
    # ------------------------------------------------------------------

    def select_ai_connection(self, connection_id: int | None) -> None:
        self.ai.select(connection_id)
        self.session.ai_connection_id = self.ai.selected_id

    async def create_ai_connection(self, request: CreateAIConnectionRequest) -> int:
        """Create an AI connection and bind it to the project."""
        try:
            connection = await self.ai.create_ai_connection(request)
        except ApiError as e:
            self._notify_api_error("Failed to create AI connection", e)
            raise
        self.session.ai_connection_id = connection.id
        return connection.id

    async def skip_ai(self) -> WizardStep:
        """Continue without an AI connection."""
        if self.step != WizardStep.AI:
            raise WizardStateError("The AI step can only be skipped from the AI step")
        self.ai.select(None)
        self.session.ai_connection_id = None
        return await self.next()

    # ------------------------------------------------------------------
    # Step 4: analysis scope
    # ------------------------------------------------------------------

    async def _resolve_branches(self) -> None:
        """Fetch branches once per repository and default the main branch."""
        repository = self.session.selected_repository
        connection = self.session.selected_connection
        if repository is None or connection is None or self._branches_for == repository.id:
            return

        self.branches = await self.branch_resolver.list_branches(connection, repository)
        self._branches_for = repository.id
        main = repository.default_branch or self.branches.default
        if main:
            self.scope.set_main_branch(main)

    async def search_branches(self, query: str) -> BranchListing:
        repository = self.session.selected_repository
        connection = self.session.selected_connection
        if repository is None or connection is None:
            raise WizardStateError("Select a repository before searching branches")
        return await self.branch_resolver.list_branches(connection, repository, search=query)

    def set_main_branch(self, name: str) -> None:
        self.scope.set_main_branch(name)

    def add_pattern(self, kind: PatternKind, pattern: str) -> bool:
        return self.scope.add_pattern(kind, pattern)

    def remove_pattern(self, kind: PatternKind, pattern: str) -> bool:
        return self.scope.remove_pattern(kind, pattern)

    # ------------------------------------------------------------------
    # Step 5: installation
    # ------------------------------------------------------------------

    def set_installation_method(self, method: InstallationMethod | str) -> None:
        self.session.installation_method = InstallationMethod(method)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _validate_exit(self, step: WizardStep) -> None:
        """Raise if the user may not leave ``step`` forwards."""
        session = self.session
        if step == WizardStep.CONNECTION and session.selected_connection is None:
            raise WizardValidationError("Please select a connection", field="connection")
        if step == WizardStep.REPOSITORY:
            repository = session.selected_repository
            if repository is None:
                raise WizardValidationError(
                    "Please select a repository to continue", field="repository"
                )
            if repository.is_onboarded:
                raise WizardValidationError(
                    f"{repository.display_name} is already onboarded", field="repository"
                )
        if step == WizardStep.DETAILS and not session.project_name.strip():
            raise WizardValidationError("Please enter a project name", field="project_name")

    async def _enter(self, step: WizardStep) -> None:
        self.session.step = step
        if step == WizardStep.AI:
            await self.ai.list_ai_connections()
        elif step == WizardStep.ANALYSIS:
            await self._resolve_branches()

    async def next(self) -> WizardStep:
        if self.step == WizardStep.INSTALLATION:
            raise WizardStateError("Already at the last step; call commit()")
        self._validate_exit(self.step)
        await self._enter(WizardStep(self.step + 1))
        return self.step

    def back(self) -> WizardStep:
        if self.step > WizardStep.CONNECTION:
            self.session.step = WizardStep(self.step - 1)
        return self.step

    async def goto(self, step: WizardStep | int) -> WizardStep:
        """Jump to ``step``. Moving forward validates every step passed.

        Branches are still resolved when the jump passes over the analysis step.
        """
        target = WizardStep(step)
        if target > self.step:
            for passed in range(self.step, target):
                self._validate_exit(WizardStep(passed))
            if self.step < WizardStep.ANALYSIS < target:
                await self._resolve_branches()
        await self._enter(target)
        return self.step

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def build_request(self) -> tuple[str, OnboardRequest]:
        """Validate the session and build (repository identifier, request).

        Raises:
            WizardValidationError: Something required is missing or empty.
        """
        session = self.session
        connection = session.selected_connection
        repository = session.selected_repository
        if connection is None:
            raise WizardValidationError("Please select a connection", field="connection")
        if repository is None:
            raise WizardValidationError("Please select a repository", field="repository")

        name = session.project_name.strip()
        if not name:
            raise WizardValidationError("Please enter a project name", field="project_name")
        namespace = make_namespace(name)
        if not namespace:
            raise WizardValidationError(
                "Project name must contain at least one letter or digit", field="project_name"
            )

        identifier = repository_identifier(connection.provider, repository)
        if not identifier:
            raise WizardValidationError("Repository has no identifier", field="repository")

        request = OnboardRequest(
            vcs_connection_id=connection.id,
            project_name=name,
            project_namespace=namespace,
            project_description=session.project_description.strip() or None,
            ai_connection_id=session.ai_connection_id,
            main_branch=session.scope.main_branch or repository.default_branch,
            pr_analysis_enabled=session.scope.pr_analysis_enabled,
            branch_analysis_enabled=session.scope.branch_analysis_enabled,
            setup_webhooks=session.installation_method == InstallationMethod.WEBHOOK,
        )
        return identifier, request

    async def _onboard(
        self, provider: VcsProvider, identifier: str, request: OnboardRequest
    ) -> OnboardResult:
        body = await self.api.post(
            f"/{path_segment(self.workspace)}/integrations/{provider.value}"
            f"/repos/{path_segment(identifier)}/onboard",
            json=request.to_payload(),
        )
        return OnboardResult.model_validate(body)

    async def commit(self) -> OnboardingOutcome:
        """Create the project, then store branch patterns.

        Raises:
            WizardStateError: Not on the installation step, or the project was
                already created.
            WizardValidationError: Input is incomplete; nothing was sent.
            OnboardingError: The server did not create the project. The
                wizard stays on the installation step.
        """
        if self.step != WizardStep.INSTALLATION:
            raise WizardStateError("Projects can only be created from the installation step")
        if self.outcome is not None:
            raise WizardStateError(
                f"Project {self.outcome.result.project_namespace} was already created"
            )

        identifier, request = self.build_request()
        connection = self.session.selected_connection
        assert connection is not None
        requested = self.session.installation_method

        logger.info(
            f"[OnboardingWizard] Onboarding {identifier} as {request.project_namespace} "
            f"(webhooks={request.setup_webhooks})"
        )
        try:
            result = await self._onboard(connection.provider, identifier, request)
        except (ApiError, ValidationError) as e:
            message = e.message if isinstance(e, ApiError) else "Unexpected response from server"
            if isinstance(e, TokenExpiredError):
                self.notifier.notify(
                    "Failed to create project",
                    message,
                    action=NotificationAction.RECONNECT,
                    action_url=await self._reconnect_url(connection),
                )
            else:
                self.notifier.notify(
                    "Failed to create project", message, action=NotificationAction.RETRY
                )
            raise OnboardingError(f"Failed to create project: {message}", cause=e) from e

        branch_config_saved = await self._save_branch_config(result)
        outcome = OnboardingOutcome.reconcile(result, requested, branch_config_saved)
        if outcome.webhook_degraded:
            self.notifier.notify(
                "Webhooks were not configured",
                "Analysis must be triggered from your CI pipeline instead.",
                severity=ErrorSeverity.WARNING,
            )
        self.outcome = outcome
        logger.info(
            f"[OnboardingWizard] Created project {result.project_id} ({result.project_namespace}), "
            f"installation {outcome.effective_method.value}"
        )
        return outcome

    async def _save_branch_config(self, result: OnboardResult) -> bool:
        """Store branch patterns; failure is reported but never undoes the project."""
        scope = self.session.scope
        if not scope.has_patterns:
            return True

        namespace = result.project_namespace or self.project_namespace
        update = BranchAnalysisConfigUpdate(
            pr_target_branches=list(scope.pr_target_patterns),
            branch_push_patterns=list(scope.branch_push_patterns),
        )
        try:
            await self.api.put(
                f"/{path_segment(self.workspace)}/project/{path_segment(namespace)}"
                "/branch-analysis-config",
                json=update.model_dump(by_alias=True),
            )
        except ApiError as e:
            self.notifier.notify(
                "Branch patterns were not saved",
                f"The project was created, but its branch patterns "
                f"could not be stored: {e.message}",
                severity=ErrorSeverity.WARNING,
            )
            return False
        return True

    async def onboard_many(
        self, repositories: Iterable[RepositoryDescriptor]
    ) -> list[OnboardResult]:
        """Onboard several repositories with the current connection and settings.

        Each project is named after its repository. Repositories that fail,
        or are already onboarded, are skipped; the rest are still attempted.
        """
        connection = self.session.selected_connection
        if connection is None:
            raise WizardValidationError("Please select a connection", field="connection")

        session = self.session
        results: list[OnboardResult] = []
        for repository in repositories:
            if repository.is_onboarded:
                logger.info(f"[OnboardingWizard] Skipping onboarded {repository.display_name}")
                continue
            namespace = make_namespace(repository.name)
            identifier = repository_identifier(connection.provider, repository)
            if not namespace or not identifier:
                logger.warning(
                    f"[OnboardingWizard] Skipping {repository.display_name}: no usable name"
                )
                continue
            request = OnboardRequest(
                vcs_connection_id=connection.id,
                project_name=repository.name,
                project_namespace=namespace,
                ai_connection_id=session.ai_connection_id,
                main_branch=repository.default_branch,
                pr_analysis_enabled=session.scope.pr_analysis_enabled,
                branch_analysis_enabled=session.scope.branch_analysis_enabled,
                setup_webhooks=session.installation_method == InstallationMethod.WEBHOOK,
            )
            try:
                results.append(await self._onboard(connection.provider, identifier, request))
            except (ApiError, ValidationError) as e:
                logger.error(f"[OnboardingWizard] Failed to onboard {repository.display_name}: {e}")
                self.notifier.notify(
                    f"Failed to onboard {repository.display_name}",
                    str(e),
                    severity=ErrorSeverity.WARNING,
                )
        return results

    # ------------------------------------------------------------------

    def _notify_api_error(self, title: str, error: ApiError) -> None:
        action = (
            NotificationAction.RECONNECT
            if isinstance(error, TokenExpiredError)
            else NotificationAction.NONE
        )
        self.notifier.notify(title, error.message, action=action)
