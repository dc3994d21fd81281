"""Browser session subsystem for conformance runs.

This package wraps Playwright with the pieces a conformance cell needs:
- Engine pooling and isolated context creation
- Session acquire/release with guaranteed teardown
- Deterministic network condition simulation
- Console, network and page-state collection
- Navigation timing collection
- Screenshot and diagnostic artifact capture
"""

from browser_conformance.browser.base import (
    BrowserEnvironmentError,
    HarnessError,
    SessionAttachment,
    is_environment_failure,
)
from browser_conformance.browser.playwright_integration import PlaywrightManager
from browser_conformance.browser.session_manager import BrowserSessionManager, Session
from browser_conformance.browser.network_simulator import NetworkConditionSimulator
from browser_conformance.browser.observable_collector import ObservableCollector
from browser_conformance.browser.performance_monitor import PerformanceMonitor
from browser_conformance.browser.artifact_collector import ArtifactCollector

__all__ = [
    "BrowserEnvironmentError",
    "HarnessError",
    "SessionAttachment",
    "is_environment_failure",
    "PlaywrightManager",
    "BrowserSessionManager",
    "Session",
    "NetworkConditionSimulator",
    "ObservableCollector",
    "PerformanceMonitor",
    "ArtifactCollector",
]
