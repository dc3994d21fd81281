"""Browser conformance harness.

Runs declarative scenarios across a matrix of browser engines, viewports and
network profiles, and reports one verdict per (scenario, cell).
"""

from browser_conformance.assertions import AssertionEngine
from browser_conformance.browser import (
    ArtifactCollector,
    BrowserEnvironmentError,
    BrowserSessionManager,
    NetworkConditionSimulator,
    ObservableCollector,
    PlaywrightManager,
)
from browser_conformance.config import HarnessConfig, MatrixDimensions, load_config
from browser_conformance.orchestration import MatrixOrchestrator
from browser_conformance.runner import run, run_conformance

__version__ = "0.1.0"

__all__ = [
    "AssertionEngine",
    "ArtifactCollector",
    "BrowserEnvironmentError",
    "BrowserSessionManager",
    "HarnessConfig",
    "MatrixDimensions",
    "MatrixOrchestrator",
    "NetworkConditionSimulator",
    "ObservableCollector",
    "PlaywrightManager",
    "load_config",
    "run",
    "run_conformance",
]
