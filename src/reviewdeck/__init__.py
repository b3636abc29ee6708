"""ReviewDeck - Repository import and project onboarding client."""

__version__ = "0.1.0"

# API access
from reviewdeck.api import ApiClient

# Workflow
from reviewdeck.ai import AIEngineBinder
from reviewdeck.onboarding import AnalysisScopeEditor, OnboardingWizard, WizardParams
from reviewdeck.vcs import BranchResolver, ConnectionDirectory, RepositoryBrowser

__all__ = [
    # Version
    "__version__",
    # API
    "ApiClient",
    # Workflow
    "AIEngineBinder",
    "AnalysisScopeEditor",
    "BranchResolver",
    "ConnectionDirectory",
    "OnboardingWizard",
    "RepositoryBrowser",
    "WizardParams",
]
