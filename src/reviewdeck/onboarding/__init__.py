"""Repository import and project onboarding."""

from .namespace import make_namespace
from .notifications import Notification, NotificationAction, Notifier
from .params import PARAMS_VERSION, WizardParams
from .scope import AnalysisScopeEditor
from .session import WizardSession, WizardStep
from .wizard import OnboardingWizard, repository_identifier

__all__ = [
    "PARAMS_VERSION",
    "AnalysisScopeEditor",
    "Notification",
    "NotificationAction",
    "Notifier",
    "OnboardingWizard",
    "WizardParams",
    "WizardSession",
    "WizardStep",
    "make_namespace",
    "repository_identifier",
]
