"""Verdict and report models produced by a conformance run."""

from pydantic import BaseModel, Field
from typing import Any, List, Optional, Tuple
from enum import Enum
from datetime import datetime

from browser_conformance.models.browser_models import BrowserType, Viewport


class VerdictKind(str, Enum):
    """Outcome of one scenario cell."""

    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"
    TIMEOUT = "timeout"
    ENVIRONMENT_ERROR = "environment_error"


class ArtifactKind(str, Enum):
    SCREENSHOT = "screenshot"
    DIAGNOSTICS = "diagnostics"


class CellKey(BaseModel):
    """One (browser engine x viewport x network profile) combination."""

    engine: BrowserType
    viewport: Viewport
    network_profile: str = Field(description="Network profile name")

    class Config:
        frozen = True

    @property
    def id(self) -> str:
        return f"{self.engine.value}-{self.viewport.label}-{self.network_profile}"


class RuleOutcome(BaseModel):
    """Result of evaluating one rule."""

    rule_id: str
    kind: str
    passed: bool
    observed: Any = None
    expected: Any = None
    message: str = ""

    class Config:
        frozen = True


class HarnessWarning(BaseModel):
    """Non-fatal harness issue surfaced for operators.

    Warnings never change a verdict.
    """

    code: str = Field(description="Warning code (release_failed, artifact_failed, ...)")
    message: str
    scenario_id: Optional[str] = None
    cell_id: Optional[str] = None

    class Config:
        frozen = True


class ArtifactRef(BaseModel):
    """Reference to a file written for diagnosis."""

    kind: ArtifactKind
    path: str
    scenario_id: str
    cell_id: str

    class Config:
        frozen = True


class Verdict(BaseModel):
    """Outcome of all rules of one scenario on one cell."""

    scenario_id: str
    cell: Optional[CellKey] = None
    kind: VerdictKind
    outcomes: Tuple[RuleOutcome, ...] = ()
    artifacts: Tuple[ArtifactRef, ...] = ()
    warnings: Tuple[HarnessWarning, ...] = ()
    elapsed_ms: float = 0.0
    error: Optional[str] = None
    skip_reason: Optional[str] = None
    attempts: int = 0

    class Config:
        frozen = True

    @property
    def passed(self) -> bool:
        return self.kind == VerdictKind.PASS

    @property
    def failed_outcomes(self) -> List[RuleOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.passed]


class MatrixReport(BaseModel):
    """Ordered verdicts of a matrix run plus roll-up counts."""

    report_id: str
    base_url: str = ""
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    verdicts: List[Verdict] = Field(default_factory=list)
    warnings: List[HarnessWarning] = Field(default_factory=list)

    def _count(self, kind: VerdictKind) -> int:
        return sum(1 for verdict in self.verdicts if verdict.kind == kind)

    @property
    def total(self) -> int:
        return len(self.verdicts)

    @property
    def passed(self) -> int:
        return self._count(VerdictKind.PASS)

    @property
    def skipped(self) -> int:
        return self._count(VerdictKind.SKIPPED)

    @property
    def timeouts(self) -> int:
        return self._count(VerdictKind.TIMEOUT)

    @property
    def environment_errors(self) -> int:
        return self._count(VerdictKind.ENVIRONMENT_ERROR)

    @property
    def failed(self) -> int:
        """Non-skipped verdicts that did not pass."""
        return self.total - self.passed - self.skipped

    @property
    def failing_count(self) -> int:
        return self.failed

    @property
    def succeeded(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def artifacts(self) -> List[ArtifactRef]:
        return [artifact for verdict in self.verdicts for artifact in verdict.artifacts]

    def failing_verdicts(self) -> List[Verdict]:
        return [
            verdict
            for verdict in self.verdicts
            if verdict.kind not in (VerdictKind.PASS, VerdictKind.SKIPPED)
        ]
