"""Matrix orchestration for conformance runs.

This module provides the MatrixOrchestrator, which expands every scenario
over the engine x viewport x network profile matrix, runs the in-scope cells
with bounded concurrency and gathers one verdict per cell into a
MatrixReport.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from browser_conformance.assertions.engine import AssertionEngine
from browser_conformance.browser.artifact_collector import ArtifactCollector, CaptureResult
from browser_conformance.browser.base import BrowserEnvironmentError, is_environment_failure
from browser_conformance.browser.playwright_integration import PlaywrightManager
from browser_conformance.browser.session_manager import BrowserSessionManager, Session
from browser_conformance.config.harness_config import HarnessConfig, MatrixDimensions
from browser_conformance.models.browser_models import NetworkProfile
from browser_conformance.models.scenario_models import Scenario
from browser_conformance.models.snapshot_models import ObservableSnapshot
from browser_conformance.models.verdict_models import (
    ArtifactRef,
    CellKey,
    HarnessWarning,
    MatrixReport,
    Verdict,
    VerdictKind,
)
from browser_conformance.orchestration.retry import RetryManager
from browser_conformance.orchestration.scenario_runner import ScenarioRunner

logger = logging.getLogger(__name__)

# (scenario, cell, profile, skip reason)
PlannedCell = Tuple[Scenario, CellKey, NetworkProfile, Optional[str]]


class MatrixOrchestrator:
    """
    Run scenarios across the browser matrix.

    PATTERN: asyncio.gather over semaphore-bounded cells
    CRITICAL: No cell exception escapes run(); every cell yields exactly
    one verdict and every acquired session is released
    GOTCHA: Skipped cells never take a concurrency slot
    """

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        playwright_manager: Optional[PlaywrightManager] = None,
        session_manager: Optional[BrowserSessionManager] = None,
        assertion_engine: Optional[AssertionEngine] = None,
        artifact_collector: Optional[ArtifactCollector] = None,
        retry_manager: Optional[RetryManager] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Harness configuration (defaults from environment if None)
            playwright_manager: Engine pool (created from config if None)
            session_manager: Session manager (created over the pool if None)
            assertion_engine: Rule evaluator
            artifact_collector: Screenshot and diagnostics writer
            retry_manager: Retry policy for environment failures
        """
        self.config = config or HarnessConfig()
        self.playwright_manager = playwright_manager or PlaywrightManager(
            headless=self.config.headless
        )
        self.session_manager = session_manager or BrowserSessionManager(
            self.playwright_manager,
            reuse_engines=self.config.reuse_engines,
            release_timeout_ms=self.config.release_timeout_ms,
        )
        self.assertion_engine = assertion_engine or AssertionEngine()
        self.artifact_collector = artifact_collector or ArtifactCollector(
            self.config.artifacts_dir
        )
        self.retry_manager = retry_manager or RetryManager(
            retries=self.config.environment_retries,
            backoff_s=self.config.retry_backoff_s,
        )
        self.runner = ScenarioRunner(
            base_url=self.config.base_url,
            assertion_engine=self.assertion_engine,
            artifact_collector=self.artifact_collector,
            navigation_timeout_ms=self.config.navigation_timeout_ms,
            wait_until=self.config.wait_until,
            capture_full_page=self.config.capture_full_page,
        )

    def plan(
        self, scenarios: Sequence[Scenario], dimensions: MatrixDimensions
    ) -> Tuple[List[PlannedCell], List[HarnessWarning]]:
        """
        Expand scenarios over the matrix, in scenario then cell order.

        Args:
            scenarios: Scenarios to run
            dimensions: Engines, viewports and network profiles

        Returns:
            Planned cells and warnings for scenarios with no cell in scope
        """
        planned: List[PlannedCell] = []
        warnings: List[HarnessWarning] = []

        for scenario in scenarios:
            in_scope = 0
            for engine in dimensions.engines:
                for viewport in dimensions.viewports:
                    for profile in dimensions.network_profiles:
                        cell = CellKey(
                            engine=engine, viewport=viewport, network_profile=profile.name
                        )
                        reason = scenario.skip_reason(engine, viewport, profile)
                        if reason is None:
                            in_scope += 1
                        planned.append((scenario, cell, profile, reason))

            if in_scope == 0:
                warning = HarnessWarning(
                    code="scenario_out_of_scope",
                    message=f"Scenario '{scenario.id}' matches no cell of the matrix",
                    scenario_id=scenario.id,
                )
                logger.warning(f"Harness warning: {warning.message}")
                warnings.append(warning)

        return planned, warnings

    async def run(
        self,
        scenarios: Sequence[Scenario],
        dimensions: Optional[MatrixDimensions] = None,
    ) -> MatrixReport:
        """
        Run every scenario on every matrix cell.

        Args:
            scenarios: Scenarios to run
            dimensions: Matrix dimensions (from config if None)

        Returns:
            MatrixReport with verdicts ordered by scenario, then cell
        """
        dimensions = dimensions or self.config.dimensions
        report = MatrixReport(
            report_id=f"conformance_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            base_url=self.config.base_url,
        )

        planned, warnings = self.plan(scenarios, dimensions)
        semaphore = asyncio.Semaphore(self.config.concurrency)

        logger.info(
            f"Running {len(scenarios)} scenarios over {dimensions.cell_count} cells "
            f"({len(planned)} planned, concurrency={self.config.concurrency})"
        )

        async def bounded_run(
            scenario: Scenario, cell: CellKey, profile: NetworkProfile
        ) -> Verdict:
            """Run one cell with the semaphore held."""
            async with semaphore:
                return await self.run_cell(scenario, cell, profile)

        async def skipped(scenario: Scenario, cell: CellKey, reason: str) -> Verdict:
            logger.debug(f"[{scenario.id}] {cell.id} skipped: {reason}")
            return Verdict(
                scenario_id=scenario.id,
                cell=cell,
                kind=VerdictKind.SKIPPED,
                skip_reason=reason,
            )

        tasks = [
            skipped(scenario, cell, reason)
            if reason is not None
            else bounded_run(scenario, cell, profile)
            for scenario, cell, profile, reason in planned
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for (scenario, cell, _, _), result in zip(planned, results):
            if isinstance(result, BaseException):
                logger.error(f"[{scenario.id}] {cell.id} escaped containment: {result}")
                result = Verdict(
                    scenario_id=scenario.id,
                    cell=cell,
                    kind=VerdictKind.FAIL,
                    error=f"{type(result).__name__}: {result}",
                )
            report.verdicts.append(result)
            warnings.extend(result.warnings)

        warnings.extend(await self.session_manager.release_all())
        report.warnings = warnings
        report.finished_at = datetime.now()

        logger.info(
            f"Matrix complete: {report.passed} passed, {report.failed} failed, "
            f"{report.skipped} skipped ({report.timeouts} timeouts, "
            f"{report.environment_errors} environment errors)"
        )
        return report

    async def run_cell(
        self, scenario: Scenario, cell: CellKey, profile: NetworkProfile
    ) -> Verdict:
        """
        Run one in-scope cell and always return a verdict.

        One deadline covers every attempt, including retry backoff.
        Environment failures are retried on a freshly launched engine.

        Args:
            scenario: Scenario to run
            cell: Matrix cell
            profile: Network profile of the cell

        Returns:
            Verdict for the cell
        """
        started = time.monotonic()
        sessions: List[Session] = []
        interrupted: List[CaptureResult] = []
        attempts = 0

        async def attempt() -> Verdict:
            nonlocal attempts
            attempts += 1
            return await self._execute(scenario, cell, profile, sessions, interrupted)

        async def evict(error: BaseException) -> None:
            await self.playwright_manager.evict(cell.engine)

        try:
            verdict = await asyncio.wait_for(
                self.retry_manager.execute_with_retry(attempt, on_retry=evict),
                timeout=self.config.cell_timeout_s,
            )
        except asyncio.TimeoutError:
            message = f"Cell exceeded {self.config.cell_timeout_ms}ms"
            logger.warning(f"[{scenario.id}] {cell.id}: {message}")
            verdict = Verdict(
                scenario_id=scenario.id,
                cell=cell,
                kind=VerdictKind.TIMEOUT,
                error=message,
                artifacts=tuple(r for r in interrupted if isinstance(r, ArtifactRef)),
                warnings=tuple(r for r in interrupted if isinstance(r, HarnessWarning)),
            )
        except BrowserEnvironmentError as e:
            logger.error(f"[{scenario.id}] {cell.id}: environment failure: {e}")
            await self.playwright_manager.evict(cell.engine)
            verdict = Verdict(
                scenario_id=scenario.id,
                cell=cell,
                kind=VerdictKind.ENVIRONMENT_ERROR,
                error=str(e),
            )
        except Exception as e:
            logger.error(f"[{scenario.id}] {cell.id}: unexpected error: {e}")
            verdict = Verdict(
                scenario_id=scenario.id,
                cell=cell,
                kind=VerdictKind.FAIL,
                error=f"{type(e).__name__}: {e}",
            )

        release_warnings = [
            warning.model_copy(update={"scenario_id": scenario.id, "cell_id": cell.id})
            for session in sessions
            for warning in session.warnings
        ]
        verdict = verdict.model_copy(
            update={
                "warnings": verdict.warnings + tuple(release_warnings),
                "elapsed_ms": (time.monotonic() - started) * 1000.0,
                "attempts": attempts,
            }
        )

        logger.info(f"[{scenario.id}] {cell.id}: {verdict.kind.value}")
        return verdict

    async def _execute(
        self,
        scenario: Scenario,
        cell: CellKey,
        profile: NetworkProfile,
        sessions: List[Session],
        interrupted: List[CaptureResult],
    ) -> Verdict:
        """One attempt: acquire, run, capture artifacts, release.

        GOTCHA: When the cell deadline cancels the attempt, a bounded
        screenshot is taken into ``interrupted`` before the session is released.
        """
        session = await self.session_manager.acquire(
            cell.engine,
            cell.viewport,
            network_profile=profile,
            javascript_enabled=scenario.javascript_enabled,
        )
        sessions.append(session)

        try:
            snapshot, verdict = await self.runner.run(session, scenario, cell)
            return await self._capture_artifacts(session, scenario, snapshot, verdict)
        except BrowserEnvironmentError:
            raise
        except Exception as e:
            if is_environment_failure(e) or session.crashed:
                raise BrowserEnvironmentError(str(e), engine=cell.engine.value) from e
            raise
        except asyncio.CancelledError:
            interrupted.append(await self._capture_interrupted(session, scenario, cell))
            raise
        finally:
            await self.session_manager.release(session)

    async def _capture_interrupted(
        self, session: Session, scenario: Scenario, cell: CellKey
    ) -> CaptureResult:
        timeout_s = self.config.release_timeout_ms / 1000.0
        try:
            return await asyncio.wait_for(
                self.artifact_collector.capture_screenshot(
                    session.page, scenario.id, cell, suffix="timeout", full_page=False
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{scenario.id}] {cell.id}: timeout screenshot hung")
            return HarnessWarning(
                code="artifact_failed",
                message=f"Screenshot capture exceeded {self.config.release_timeout_ms}ms",
                scenario_id=scenario.id,
                cell_id=cell.id,
            )

    async def _capture_artifacts(
        self,
        session: Session,
        scenario: Scenario,
        snapshot: ObservableSnapshot,
        verdict: Verdict,
    ) -> Verdict:
        if verdict.passed and not self.config.capture_on_success:
            return verdict

        cell = verdict.cell
        full_page = (
            scenario.capture_full_page
            if scenario.capture_full_page is not None
            else self.config.capture_full_page
        )
        results = [
            await self.artifact_collector.capture_screenshot(
                session.page, scenario.id, cell, full_page=full_page
            )
        ]
        if self.config.dump_diagnostics:
            results.append(self.artifact_collector.dump_diagnostics(snapshot, verdict))

        artifacts = tuple(r for r in results if isinstance(r, ArtifactRef))
        warnings = tuple(r for r in results if isinstance(r, HarnessWarning))
        return verdict.model_copy(
            update={
                "artifacts": verdict.artifacts + artifacts,
                "warnings": verdict.warnings + warnings,
            }
        )
