"""
Models for ReviewDeck.
"""

from .ai import AIConnectionDescriptor, AIProviderKey, CreateAIConnectionRequest
from .onboarding import (
    AnalysisScopeConfig,
    BranchAnalysisConfigUpdate,
    InstallationMethod,
    OnboardingOutcome,
    OnboardRequest,
    OnboardResult,
    PatternKind,
)
from .vcs import (
    BranchListing,
    ConnectionDescriptor,
    ConnectionKind,
    ConnectionStatus,
    RepositoryDescriptor,
    RepositoryPage,
    VcsProvider,
)

__all__ = [
    # VCS
    "VcsProvider",
    "ConnectionKind",
    "ConnectionStatus",
    "ConnectionDescriptor",
    "RepositoryDescriptor",
    "RepositoryPage",
    "BranchListing",
    # AI
    "AIProviderKey",
    "AIConnectionDescriptor",
    "CreateAIConnectionRequest",
    # Onboarding
    "InstallationMethod",
    "PatternKind",
    "AnalysisScopeConfig",
    "OnboardRequest",
    "OnboardResult",
    "BranchAnalysisConfigUpdate",
    "OnboardingOutcome",
]
