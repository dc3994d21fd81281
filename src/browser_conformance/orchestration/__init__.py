"""Matrix orchestration: cell expansion, scenario execution and retries."""

from browser_conformance.orchestration.orchestrator import MatrixOrchestrator
from browser_conformance.orchestration.retry import RetryManager
from browser_conformance.orchestration.scenario_runner import ScenarioRunner

__all__ = ["MatrixOrchestrator", "RetryManager", "ScenarioRunner"]
