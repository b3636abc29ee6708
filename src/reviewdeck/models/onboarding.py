"""
Models for project onboarding: analysis scope, commit payloads and results.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import WireModel


class InstallationMethod(str, Enum):
    """How analysis gets triggered for a new project."""

    WEBHOOK = "WEBHOOK"
    PIPELINE = "PIPELINE"


class PatternKind(str, Enum):
    """Which branch pattern list an edit applies to."""

    PR_TARGET = "pr_target"
    BRANCH_PUSH = "branch_push"


class AnalysisScopeConfig(BaseModel):
    """Branch patterns and toggles that gate automatic analysis."""

    main_branch: str | None = None
    pr_target_patterns: list[str] = Field(default_factory=list)
    branch_push_patterns: list[str] = Field(default_factory=list)
    pr_analysis_enabled: bool = True
    branch_analysis_enabled: bool = True

    def patterns(self, kind: PatternKind) -> list[str]:
        if kind == PatternKind.PR_TARGET:
            return self.pr_target_patterns
        return self.branch_push_patterns

    @property
    def has_patterns(self) -> bool:
        return bool(self.pr_target_patterns or self.branch_push_patterns)


class OnboardRequest(WireModel):
    """Body of the onboard-repository call."""

    vcs_connection_id: int
    project_name: str
    project_namespace: str
    project_description: str | None = None
    ai_connection_id: int | None = None
    main_branch: str | None = None
    pr_analysis_enabled: bool = True
    branch_analysis_enabled: bool = True
    setup_webhooks: bool = True

    def to_payload(self) -> dict[str, Any]:
        """Wire payload; unset optional fields are left out entirely."""
        return self.model_dump(by_alias=True, exclude_none=True)


class OnboardResult(WireModel):
    """Server confirmation of a created project."""

    model_config = ConfigDict(frozen=True)

    project_id: int
    project_name: str
    project_namespace: str
    webhooks_configured: bool = False


class BranchAnalysisConfigUpdate(WireModel):
    """Branch pattern payload persisted after project creation."""

    pr_target_branches: list[str] = Field(default_factory=list)
    branch_push_patterns: list[str] = Field(default_factory=list)


class OnboardingOutcome(BaseModel):
    """What the user sees once the commit step finishes.

    ``effective_method`` is derived from the server result and is the only
    installation method to display after the commit.
    """

    model_config = ConfigDict(frozen=True)

    result: OnboardResult
    requested_method: InstallationMethod
    effective_method: InstallationMethod
    branch_config_saved: bool = True

    @classmethod
    def reconcile(
        cls,
        result: OnboardResult,
        requested: InstallationMethod,
        branch_config_saved: bool = True,
    ) -> "OnboardingOutcome":
        """Derive the displayed installation method from what the server confirmed."""
        if requested == InstallationMethod.WEBHOOK and result.webhooks_configured:
            effective = InstallationMethod.WEBHOOK
        else:
            effective = InstallationMethod.PIPELINE
        return cls(
            result=result,
            requested_method=requested,
            effective_method=effective,
            branch_config_saved=branch_config_saved,
        )

    @property
    def webhook_degraded(self) -> bool:
        return self.requested_method != self.effective_method
