"""Entry points for running a conformance matrix.

``run_conformance`` is the async API; ``run`` wraps it for synchronous
callers and CI scripts and returns a process exit code.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from browser_conformance.browser.playwright_integration import PlaywrightManager
from browser_conformance.config.harness_config import HarnessConfig, configure_logging
from browser_conformance.models.scenario_models import Scenario
from browser_conformance.models.verdict_models import MatrixReport
from browser_conformance.orchestration.orchestrator import MatrixOrchestrator
from browser_conformance.reporters.json_reporter import JsonReporter

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "conformance-report.json"


async def run_conformance(
    scenarios: Sequence[Scenario],
    config: Optional[HarnessConfig] = None,
    playwright_manager: Optional[PlaywrightManager] = None,
) -> MatrixReport:
    """
    Run scenarios over the configured matrix.

    CRITICAL: The engine pool is always cleaned up, even when the run fails.

    Args:
        scenarios: Scenarios to verify
        config: Harness configuration (defaults from environment if None)
        playwright_manager: Engine pool to use (one is created if None)

    Returns:
        MatrixReport with one verdict per (scenario, cell)
    """
    config = config or HarnessConfig()
    manager = playwright_manager or PlaywrightManager(headless=config.headless)

    try:
        orchestrator = MatrixOrchestrator(config=config, playwright_manager=manager)
        return await orchestrator.run(scenarios)
    finally:
        await manager.cleanup()


def run(
    scenarios: Sequence[Scenario],
    config: Optional[HarnessConfig] = None,
    report_path: Optional[Union[str, Path]] = None,
) -> int:
    """
    Run scenarios synchronously and write the JSON report.

    Args:
        scenarios: Scenarios to verify
        config: Harness configuration (defaults from environment if None)
        report_path: Report file (defaults to the artifacts directory)

    Returns:
        0 if no non-skipped verdict failed, 1 otherwise
    """
    config = config or HarnessConfig()
    configure_logging(config.log_level)

    report = asyncio.run(run_conformance(scenarios, config))

    path = report_path or Path(config.artifacts_dir) / DEFAULT_REPORT_NAME
    JsonReporter().write_report(report, path)

    if report.succeeded:
        logger.info(f"Conformance passed: {report.passed} verdicts, {report.skipped} skipped")
    else:
        logger.error(f"Conformance failed: {report.failing_count} failing verdicts")
        for verdict in report.failing_verdicts():
            cell_id = verdict.cell.id if verdict.cell else "-"
            detail = verdict.error or ", ".join(o.rule_id for o in verdict.failed_outcomes)
            logger.error(f"  {verdict.scenario_id} [{cell_id}] {verdict.kind.value}: {detail}")

    return report.exit_code
