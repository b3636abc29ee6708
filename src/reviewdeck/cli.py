"""ReviewDeck CLI with Typer."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from .api.client import ApiClient
from .config import get_settings
from .exceptions import ApiError, OnboardingError, ReviewDeckError, WizardValidationError
from .logging_config import configure_logging
from .models.ai import AIProviderKey, CreateAIConnectionRequest
from .models.onboarding import InstallationMethod, PatternKind
from .models.vcs import RepositoryDescriptor
from .onboarding.wizard import OnboardingWizard
from .vcs.branches import BranchResolver
from .vcs.catalog import PROVIDERS
from .vcs.connections import ConnectionDirectory
from .vcs.repositories import RepositoryBrowser

T = TypeVar("T")

app = typer.Typer(
    name="reviewdeck",
    help="ReviewDeck - Repository import and project onboarding",
    add_completion=False,
)
console = Console()

# Sub-commands
connections_app = typer.Typer(help="VCS connections")
repos_app = typer.Typer(help="Repositories reachable through a connection")
ai_app = typer.Typer(help="AI connections")
app.add_typer(connections_app, name="connections")
app.add_typer(repos_app, name="repos")
app.add_typer(ai_app, name="ai")

WorkspaceOption = typer.Option(None, "--workspace", "-w", help="Workspace slug")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    configure_logging("DEBUG" if verbose else None)


def _workspace(value: str | None) -> str:
    workspace = value or get_settings().api.workspace
    if not workspace:
        console.print(
            "[bold red]✗[/] No workspace given (use --workspace or REVIEWDECK_API_WORKSPACE)"
        )
        raise typer.Exit(1)
    return workspace


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except WizardValidationError as e:
        console.print(f"[bold red]✗[/] {e.message}")
        raise typer.Exit(1)
    except ApiError as e:
        console.print(f"[bold red]✗[/] API error: {e.message}")
        raise typer.Exit(1)
    except ReviewDeckError as e:
        console.print(f"[bold red]✗[/] {e}")
        raise typer.Exit(1)


async def _load_connection(
    api: ApiClient, workspace: str, provider: str, connection_id: int, kind: str | None
):
    directory = ConnectionDirectory(api, workspace)
    return await directory.get_connection(provider, connection_id, kind)


# ============================================================================
# Provider Commands
# ============================================================================

@app.command("providers")
def providers():
    """List supported VCS providers."""
    table = Table(title="Providers")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Connection kinds")
    table.add_column("Base URL")

    for info in PROVIDERS.values():
        table.add_row(
            info.id.value,
            info.name,
            ", ".join(kind.value for kind in info.supported_kinds),
            "✓" if info.supports_base_url else "-",
        )
    console.print(table)


# ============================================================================
# Connection Commands
# ============================================================================

@connections_app.command("list")
def connections_list(workspace: str | None = WorkspaceOption):
    """List VCS connections from every source."""
    workspace = _workspace(workspace)

    async def _list():
        async with ApiClient() as api:
            directory = ConnectionDirectory(api, workspace)
            await directory.list_connections()
            return directory.group_by_provider()

    groups = _run(_list())
    if not groups:
        console.print("[yellow]No connections found.[/]")
        return

    table = Table(title=f"Connections in {workspace}")
    table.add_column("Provider")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Repos", justify="right")
    table.add_column("Status")

    for provider, connections in groups.items():
        for connection in connections:
            status_text = connection.status.value
            if connection.needs_reauthorization():
                status_text = f"[red]{status_text} (reconnect)[/]"
            table.add_row(
                provider.value,
                str(connection.id),
                connection.label,
                connection.connection_kind.value,
                str(connection.repository_count),
                status_text,
            )
    console.print(table)


@connections_app.command("sync")
def connections_sync(
    provider: str = typer.Argument(..., help="Provider (github, gitlab, bitbucket-cloud, ...)"),
    connection_id: int = typer.Argument(..., help="Connection ID"),
    workspace: str | None = WorkspaceOption,
):
    """Refresh a connection's status and repository count."""
    workspace = _workspace(workspace)

    async def _sync():
        async with ApiClient() as api:
            directory = ConnectionDirectory(api, workspace)
            connection = await directory.get_connection(provider, connection_id)
            return await directory.sync(connection)

    console.print(f"[bold blue]Syncing[/] {provider}/{connection_id}...")
    connection = _run(_sync())
    console.print(f"[bold green]✓[/] {connection.label}: {connection.repository_count} repos")
    console.print(f"  Status: {connection.status.value}")


# ============================================================================
# Repository Commands
# ============================================================================

@repos_app.command("list")
def repos_list(
    provider: str = typer.Argument(..., help="Provider"),
    connection_id: int = typer.Argument(..., help="Connection ID"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Connection kind"),
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by name"),
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
    workspace: str | None = WorkspaceOption,
):
    """List repositories reachable through a connection."""
    workspace = _workspace(workspace)

    async def _list():
        async with ApiClient() as api:
            connection = await _load_connection(api, workspace, provider, connection_id, kind)
            browser = RepositoryBrowser(api, workspace, connection)
            await browser.load(search)
            for _ in range(pages - 1):
                if not browser.has_next:
                    break
                await browser.load_more()
            return browser

    browser = _run(_list())
    if not browser.items:
        console.print("[yellow]No repositories found.[/]")
        return

    table = Table(title="Repositories")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Default branch")
    table.add_column("Private")
    table.add_column("Onboarded")

    for repo in browser.items:
        table.add_row(
            repo.id,
            repo.display_name,
            repo.default_branch or "-",
            "✓" if repo.is_private else "-",
            "[dim]✓[/]" if repo.is_onboarded else "-",
        )
    console.print(table)
    if browser.has_next:
        console.print("[dim]More repositories available (use --pages).[/]")


@app.command("branches")
def branches(
    provider: str = typer.Argument(..., help="Provider"),
    connection_id: int = typer.Argument(..., help="Connection ID"),
    repo_id: str = typer.Argument(..., help="Repository ID"),
    search: str | None = typer.Option(None, "--search", "-s", help="Filter branches"),
    workspace: str | None = WorkspaceOption,
):
    """List branches of a repository."""
    workspace = _workspace(workspace)

    async def _branches():
        async with ApiClient() as api:
            connection = await _load_connection(api, workspace, provider, connection_id, None)
            browser = RepositoryBrowser(api, workspace, connection)
            repository = await browser.get_repository(repo_id)
            resolver = BranchResolver(api, workspace)
            return await resolver.list_branches(connection, repository, search=search)

    listing = _run(_branches())
    if listing.degraded:
        console.print("[bold yellow]![/] Branches unavailable, showing common defaults")
    for index, name in enumerate(listing.branches):
        marker = " [dim](default)[/]" if index == 0 and not search else ""
        console.print(f"  • {name}{marker}")


# ============================================================================
# AI Commands
# ============================================================================

@ai_app.command("list")
def ai_list(workspace: str | None = WorkspaceOption):
    """List AI connections."""
    from .ai.connections import AIEngineBinder

    workspace = _workspace(workspace)

    async def _list():
        async with ApiClient() as api:
            return await AIEngineBinder(api, workspace).list_ai_connections()

    connections = _run(_list())
    if not connections:
        console.print("[yellow]No AI connections found.[/]")
        return

    table = Table(title="AI connections")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Token limit", justify="right")
    for connection in connections:
        table.add_row(
            str(connection.id),
            connection.name or "-",
            connection.provider_key.value,
            connection.ai_model,
            str(connection.token_limitation or "-"),
        )
    console.print(table)


@ai_app.command("create")
def ai_create(
    model: str = typer.Option(..., "--model", "-m", help="Model identifier"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True, help="API key"),
    provider: AIProviderKey | None = typer.Option(None, "--provider", help="AI provider"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    token_limit: int | None = typer.Option(None, "--token-limit", help="Token limitation"),
    workspace: str | None = WorkspaceOption,
):
    """Create an AI connection."""
    from .ai.connections import AIEngineBinder

    workspace = _workspace(workspace)
    settings = get_settings().wizard
    request = CreateAIConnectionRequest(
        name=name,
        provider_key=provider or AIProviderKey(settings.default_ai_provider),
        ai_model=model,
        api_key=api_key,
        token_limitation=token_limit or settings.default_token_limitation,
    )

    async def _create():
        async with ApiClient() as api:
            return await AIEngineBinder(api, workspace).create_ai_connection(request)

    connection = _run(_create())
    console.print(f"[bold green]✓[/] Created AI connection {connection.id} ({connection.label})")


# ============================================================================
# Onboarding Command
# ============================================================================

def _match_repository(items: list[RepositoryDescriptor], ref: str) -> RepositoryDescriptor | None:
    for repo in items:
        if ref in (repo.id, repo.slug, repo.full_name, repo.name):
            return repo
    return None


@app.command("onboard")
def onboard(
    provider: str = typer.Argument(..., help="Provider"),
    connection_id: int = typer.Argument(..., help="Connection ID"),
    repository: str = typer.Argument(..., help="Repository id, slug or full name"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Connection kind"),
    name: str | None = typer.Option(None, "--name", "-n", help="Project name"),
    description: str | None = typer.Option(None, "--description", "-d", help="Description"),
    ai_connection: int | None = typer.Option(None, "--ai", help="AI connection ID"),
    main_branch: str | None = typer.Option(None, "--main-branch", help="Main branch"),
    pr_patterns: list[str] | None = typer.Option(None, "--pr-pattern", help="PR target pattern"),
    push_patterns: list[str] | None = typer.Option(
        None, "--push-pattern", help="Branch push pattern"
    ),
    method: InstallationMethod | None = typer.Option(None, "--method", help="Installation method"),
    workspace: str | None = WorkspaceOption,
):
    """Import a repository as a new project."""
    workspace = _workspace(workspace)

    async def _onboard():
        async with ApiClient() as api:
            connection = await _load_connection(
                api, workspace, provider, connection_id, kind or None
            )
            wizard = OnboardingWizard(api, workspace, connection=connection)
            await wizard.start()

            # Search narrows the listing; fall back to paging through everything
            await wizard.search(repository.split("/")[-1])
            repo = _match_repository(wizard.browser.items, repository)
            if repo is None:
                await wizard.search(None)
                repo = _match_repository(wizard.browser.items, repository)
                while repo is None and wizard.browser.has_next:
                    repo = _match_repository(await wizard.load_more(), repository)
            if repo is None:
                raise WizardValidationError(f"Repository not found: {repository}")
            if not wizard.select_repository(repo):
                raise WizardValidationError(f"{repo.display_name} is already onboarded")

            await wizard.next()
            wizard.set_project_details(name or repo.name, description)
            await wizard.next()
            if ai_connection is not None:
                await wizard.ai.list_ai_connections()
                wizard.select_ai_connection(ai_connection)
                await wizard.next()
            else:
                await wizard.skip_ai()

            if main_branch:
                wizard.set_main_branch(main_branch)
            for pattern in pr_patterns or []:
                wizard.add_pattern(PatternKind.PR_TARGET, pattern)
            for pattern in push_patterns or []:
                wizard.add_pattern(PatternKind.BRANCH_PUSH, pattern)
            await wizard.next()

            if method is not None:
                wizard.set_installation_method(method)
            try:
                outcome = await wizard.commit()
            except OnboardingError:
                for notification in wizard.notifier.notifications:
                    console.print(f"[bold red]✗[/] {notification.title}: {notification.message}")
                raise typer.Exit(1)
            return wizard, outcome

    wizard, outcome = _run(_onboard())
    result = outcome.result
    console.print(f"[bold green]✓[/] Created project {result.project_name}")
    console.print(f"  ID: {result.project_id}")
    console.print(f"  Namespace: {result.project_namespace}")
    console.print(f"  Installation: {outcome.effective_method.value}")
    for notification in wizard.notifier.notifications:
        console.print(f"[bold yellow]![/] {notification.title}: {notification.message}")


# ============================================================================
# Status Command
# ============================================================================

@app.command("status")
def status():
    """Show ReviewDeck configuration."""
    settings = get_settings()

    console.print("=" * 60)
    console.print("[bold blue]ReviewDeck[/] - Status")
    console.print("=" * 60)

    token_ok = "✓" if settings.api.token else "✗"
    console.print("\n[bold]API:[/]")
    console.print(f"  URL: {settings.api.base_url}")
    console.print(f"  [{token_ok}] Token")
    console.print(f"  Workspace: {settings.api.workspace or '-'}")
    console.print(f"  Timeout: {settings.api.timeout_seconds}s")
    console.print(f"  Retries: {settings.api.max_retries}")

    console.print("\n[bold]Wizard defaults:[/]")
    console.print(f"  AI provider: {settings.wizard.default_ai_provider}")
    console.print(f"  Installation: {settings.wizard.installation_method}")


if __name__ == "__main__":
    app()
