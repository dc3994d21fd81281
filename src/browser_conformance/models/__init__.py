"""Models package for the browser conformance harness."""

from .browser_models import (
    BrowserType,
    Viewport,
    NetworkProfile,
    BASELINE_PROFILE,
    DESKTOP_VIEWPORT,
    TABLET_VIEWPORT,
    MOBILE_VIEWPORT,
    SLOW_NETWORK_PROFILE,
    OFFLINE_PROFILE,
)
from .snapshot_models import (
    NetworkEventType,
    InterceptionAction,
    ConsoleEntry,
    NetworkEntry,
    InterceptionRecord,
    ResponseInfo,
    DomQuery,
    DomQueryResult,
    TimingMetrics,
    CookieInfo,
    ObservableSnapshot,
)
from .rule_models import (
    AssertionRule,
    Rule,
    HeaderEquals,
    HeaderContains,
    HeaderPresent,
    HeaderAbsent,
    StatusEquals,
    TitleEquals,
    UrlMatches,
    DomTextContains,
    DomAttributeEquals,
    DomAttributeContains,
    DomCount,
    MetricBelow,
    ConsoleClean,
    ContentExcludes,
    SecureRequests,
    CookiesSecure,
    ProbeEquals,
    NavigationErrorContains,
    CustomPredicate,
)
from .scenario_models import Scenario, ScenarioStep
from .verdict_models import (
    VerdictKind,
    ArtifactKind,
    CellKey,
    RuleOutcome,
    HarnessWarning,
    ArtifactRef,
    Verdict,
    MatrixReport,
)

__all__ = [
    # Matrix dimensions
    "BrowserType",
    "Viewport",
    "NetworkProfile",
    "BASELINE_PROFILE",
    "DESKTOP_VIEWPORT",
    "TABLET_VIEWPORT",
    "MOBILE_VIEWPORT",
    "SLOW_NETWORK_PROFILE",
    "OFFLINE_PROFILE",
    # Evidence
    "NetworkEventType",
    "InterceptionAction",
    "ConsoleEntry",
    "NetworkEntry",
    "InterceptionRecord",
    "ResponseInfo",
    "DomQuery",
    "DomQueryResult",
    "TimingMetrics",
    "CookieInfo",
    "ObservableSnapshot",
    # Rules
    "AssertionRule",
    "Rule",
    "HeaderEquals",
    "HeaderContains",
    "HeaderPresent",
    "HeaderAbsent",
    "StatusEquals",
    "TitleEquals",
    "UrlMatches",
    "DomTextContains",
    "DomAttributeEquals",
    "DomAttributeContains",
    "DomCount",
    "MetricBelow",
    "ConsoleClean",
    "ContentExcludes",
    "SecureRequests",
    "CookiesSecure",
    "ProbeEquals",
    "NavigationErrorContains",
    "CustomPredicate",
    # Scenarios
    "Scenario",
    "ScenarioStep",
    # Verdicts
    "VerdictKind",
    "ArtifactKind",
    "CellKey",
    "RuleOutcome",
    "HarnessWarning",
    "ArtifactRef",
    "Verdict",
    "MatrixReport",
]
