"""Analysis Scope Editor: branch pattern lists anchored on the main branch."""

import logging

from ..exceptions import WizardValidationError
from ..models.onboarding import AnalysisScopeConfig, PatternKind

logger = logging.getLogger(__name__)


class AnalysisScopeEditor:
    """Edits an ``AnalysisScopeConfig`` while keeping the main branch pinned.

    Once a main branch is set it sits at index 0 of both pattern lists and
    cannot be removed, only replaced by another main branch.
    """

    def __init__(self, config: AnalysisScopeConfig | None = None):
        self.config = config or AnalysisScopeConfig()

    @property
    def main_branch(self) -> str | None:
        return self.config.main_branch

    def set_main_branch(self, name: str) -> None:
        """Pin ``name`` as the main branch in both lists, replacing the previous one."""
        name = (name or "").strip()
        if not name:
            raise WizardValidationError("Main branch cannot be empty", field="main_branch")

        previous = self.config.main_branch
        for kind in PatternKind:
            patterns = self.config.patterns(kind)
            kept = [p for p in patterns if p not in (previous, name)]
            patterns[:] = [name, *kept]
        self.config.main_branch = name

    def add_pattern(self, kind: PatternKind, pattern: str) -> bool:
        """Append a pattern; blank and duplicate values are ignored."""
        pattern = (pattern or "").strip()
        patterns = self.config.patterns(kind)
        if not pattern or pattern in patterns:
            return False
        patterns.append(pattern)
        return True

    def remove_pattern(self, kind: PatternKind, pattern: str) -> bool:
        """Remove a pattern. The main branch is never removed."""
        patterns = self.config.patterns(kind)
        if pattern == self.config.main_branch:
            logger.debug(f"[AnalysisScopeEditor] Ignoring removal of main branch {pattern!r}")
            return False
        if pattern not in patterns:
            return False
        patterns.remove(pattern)
        return True

    def set_pr_analysis(self, enabled: bool) -> None:
        self.config.pr_analysis_enabled = enabled

    def set_branch_analysis(self, enabled: bool) -> None:
        self.config.branch_analysis_enabled = enabled
