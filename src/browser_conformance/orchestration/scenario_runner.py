"""Scenario execution inside one browser session.

This module provides the ScenarioRunner class which drives one acquired
session through a scenario: the main navigation, the interaction steps, and
the final snapshot that the assertion engine evaluates.
"""

import logging
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from playwright.async_api import Page

from browser_conformance.assertions.engine import AssertionEngine, required_dom_queries
from browser_conformance.browser.artifact_collector import ArtifactCollector
from browser_conformance.browser.base import BrowserEnvironmentError, is_environment_failure
from browser_conformance.browser.session_manager import Session
from browser_conformance.models.scenario_models import Scenario, ScenarioStep
from browser_conformance.models.snapshot_models import ObservableSnapshot, ResponseInfo
from browser_conformance.models.verdict_models import (
    ArtifactRef,
    CellKey,
    HarnessWarning,
    Verdict,
    VerdictKind,
)

logger = logging.getLogger(__name__)


class ScenarioRunner:
    """
    Run a scenario in a session and evaluate its rules.

    PATTERN: Navigation failures are recorded as evidence, not raised
    CRITICAL: A dead browser raises BrowserEnvironmentError so the caller can
    retry the cell on a fresh engine
    """

    def __init__(
        self,
        base_url: str,
        assertion_engine: Optional[AssertionEngine] = None,
        artifact_collector: Optional[ArtifactCollector] = None,
        navigation_timeout_ms: int = 30000,
        wait_until: str = "load",
        capture_full_page: bool = True,
    ):
        """
        Initialize the scenario runner.

        Args:
            base_url: Base URL scenario paths are resolved against
            assertion_engine: Rule evaluator (default instance if None)
            artifact_collector: Collector for screenshot steps
            navigation_timeout_ms: Timeout for navigations
            wait_until: Default navigation wait condition
            capture_full_page: Default for screenshot steps
        """
        self.base_url = base_url
        self.assertion_engine = assertion_engine or AssertionEngine()
        self.artifact_collector = artifact_collector
        self.navigation_timeout_ms = navigation_timeout_ms
        self.wait_until = wait_until
        self.capture_full_page = capture_full_page

    def resolve_url(self, path: str) -> str:
        base = self.base_url if self.base_url.endswith("/") else f"{self.base_url}/"
        return urljoin(base, path.lstrip("/")) if not path.startswith("http") else path

    async def run(
        self, session: Session, scenario: Scenario, cell: CellKey
    ) -> Tuple[ObservableSnapshot, Verdict]:
        """
        Execute the scenario and evaluate its rules.

        Args:
            session: Acquired session for the cell
            scenario: Scenario to run
            cell: Matrix cell of the session

        Returns:
            Snapshot and the verdict computed from it

        Raises:
            BrowserEnvironmentError: If the browser dies during the run
        """
        artifacts: List[ArtifactRef] = []
        warnings: List[HarnessWarning] = []

        navigated = await self._navigate(session, scenario)

        error: Optional[str] = None
        # Recovery scenarios keep stepping after a failed navigation
        if navigated or scenario.steps_after_failed_navigation:
            for index, step in enumerate(scenario.steps):
                try:
                    result = await self._run_step(session, scenario, cell, step, index)
                except Exception as e:
                    if is_environment_failure(e) or session.crashed:
                        raise BrowserEnvironmentError(
                            f"Browser failed during {step.describe()}: {e}",
                            engine=cell.engine.value,
                        ) from e
                    error = f"Step {index + 1} {step.describe()} failed: {e}"
                    logger.info(f"[{scenario.id}] {cell.id}: {error}")
                    break
                if isinstance(result, ArtifactRef):
                    artifacts.append(result)
                elif isinstance(result, HarnessWarning):
                    warnings.append(result)
        elif scenario.steps:
            logger.debug(f"[{scenario.id}] navigation failed; skipping steps")

        if session.crashed:
            raise BrowserEnvironmentError("Page crashed", engine=cell.engine.value)

        dom_queries = required_dom_queries(scenario.rules) + list(scenario.dom_queries)
        snapshot = await session.collector.snapshot(
            dom_queries=dom_queries, probes=scenario.probes
        )

        verdict = self.assertion_engine.evaluate(
            snapshot, scenario.rules, scenario_id=scenario.id, cell=cell
        )
        update = {"artifacts": tuple(artifacts), "warnings": tuple(warnings)}
        if error is not None:
            update.update({"kind": VerdictKind.FAIL, "error": error})

        return snapshot, verdict.model_copy(update=update)

    async def _navigate(self, session: Session, scenario: Scenario) -> bool:
        """Perform the main navigation and record it on the collector."""
        url = self.resolve_url(scenario.path)
        started = session.clock()
        response_info: Optional[ResponseInfo] = None
        error: Optional[str] = None

        try:
            response = await session.page.goto(
                url,
                wait_until=scenario.wait_until or self.wait_until,
                timeout=self.navigation_timeout_ms,
            )
            if response is not None:
                headers = await response.all_headers()
                response_info = ResponseInfo(
                    status=response.status,
                    url=response.url,
                    headers={key.lower(): value for key, value in headers.items()},
                )
        except Exception as e:
            if is_environment_failure(e) or session.crashed:
                raise BrowserEnvironmentError(
                    f"Browser failed during navigation: {e}",
                    engine=session.engine.value,
                ) from e
            error = str(e)
            logger.info(f"[{scenario.id}] Navigation to {url} failed: {e}")

        session.collector.record_navigation(
            url,
            response=response_info,
            error=error,
            navigation_ms=session.clock() - started,
        )
        return error is None

    async def _run_step(
        self,
        session: Session,
        scenario: Scenario,
        cell: CellKey,
        step: ScenarioStep,
        index: int,
    ):
        page: Page = session.page
        timeout = step.timeout_ms
        action = step.action

        if action == "restore_network":
            # Requests after this point reach the server unshaped
            await session.simulator.detach()
        elif action == "navigate":
            await page.goto(
                self.resolve_url(step.target or "/"),
                wait_until=scenario.wait_until or self.wait_until,
                timeout=timeout,
            )
        elif action == "click":
            await page.click(step.target, timeout=timeout)
        elif action == "fill":
            await page.fill(step.target, str(step.value or ""), timeout=timeout)
        elif action == "wait_for_selector":
            await page.wait_for_selector(step.target, timeout=timeout)
        elif action == "wait_for_timeout":
            await page.wait_for_timeout(step.value if step.value is not None else timeout)
        elif action == "wait_for_load_state":
            await page.wait_for_load_state(step.target or "load", timeout=timeout)
        elif action == "set_viewport":
            size = step.value or {}
            await page.set_viewport_size(
                {"width": int(size["width"]), "height": int(size["height"])}
            )
        elif action == "evaluate":
            return await page.evaluate(step.target)
        elif action == "screenshot":
            if self.artifact_collector is None:
                return None
            full_page = (
                scenario.capture_full_page
                if scenario.capture_full_page is not None
                else self.capture_full_page
            )
            return await self.artifact_collector.capture_screenshot(
                page,
                scenario.id,
                cell,
                suffix=step.target or f"step{index + 1}",
                full_page=full_page,
            )
        else:
            raise ValueError(f"Unsupported step action: {action}")
        return None
