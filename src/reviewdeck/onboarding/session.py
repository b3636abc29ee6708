"""In-memory state of one onboarding run."""

from enum import IntEnum

from pydantic import BaseModel, Field

from ..models.onboarding import AnalysisScopeConfig, InstallationMethod
from ..models.vcs import ConnectionDescriptor, RepositoryDescriptor


class WizardStep(IntEnum):
    CONNECTION = 0
    REPOSITORY = 1
    DETAILS = 2
    AI = 3
    ANALYSIS = 4
    INSTALLATION = 5


class WizardSession(BaseModel):
    """Everything the user has entered so far. Never persisted."""

    step: WizardStep = WizardStep.CONNECTION
    selected_connection: ConnectionDescriptor | None = None
    selected_repository: RepositoryDescriptor | None = None
    project_name: str = ""
    project_description: str = ""
    scope: AnalysisScopeConfig = Field(default_factory=AnalysisScopeConfig)
    ai_connection_id: int | None = None
    installation_method: InstallationMethod = InstallationMethod.WEBHOOK
