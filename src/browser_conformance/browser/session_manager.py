"""Browser session lifecycle management.

This module provides the BrowserSessionManager, which hands out one isolated
Session per matrix cell and guarantees its release. A Session bundles the
browser context and page with the network simulator and the observable
collector wired in before any navigation.
"""

import asyncio
import itertools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page

from browser_conformance.browser.base import BrowserEnvironmentError
from browser_conformance.browser.network_simulator import NetworkConditionSimulator
from browser_conformance.browser.observable_collector import ObservableCollector
from browser_conformance.browser.playwright_integration import PlaywrightManager
from browser_conformance.models.browser_models import (
    BrowserType,
    NetworkProfile,
    Viewport,
)
from browser_conformance.models.verdict_models import HarnessWarning

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class Session:
    """Live browser context bound to one matrix cell.

    Owned by the BrowserSessionManager from acquire() to release().
    """

    def __init__(
        self,
        engine: BrowserType,
        viewport: Viewport,
        network_profile: Optional[NetworkProfile],
        browser: Browser,
        context: BrowserContext,
        page: Page,
        dedicated_browser: bool = False,
    ):
        self.id = f"session_{next(_session_ids)}"
        self.engine = engine
        self.viewport = viewport
        self.network_profile = network_profile
        self.browser = browser
        self.context = context
        self.page = page
        self.dedicated_browser = dedicated_browser
        self.started_at = time.monotonic()
        self.simulator = NetworkConditionSimulator(clock=self.clock)
        self.collector = ObservableCollector(
            clock=self.clock, interceptions=lambda: list(self.simulator.records)
        )
        self.warnings: List[HarnessWarning] = []
        self.released = False

    def clock(self) -> float:
        """Milliseconds since the session was created."""
        return (time.monotonic() - self.started_at) * 1000.0

    @property
    def crashed(self) -> bool:
        return self.collector.crashed

    def __repr__(self) -> str:
        profile = self.network_profile.name if self.network_profile else "none"
        return (
            f"Session({self.id}, {self.engine.value}, {self.viewport.label}, "
            f"profile={profile})"
        )


class BrowserSessionManager:
    """Acquire and release isolated browser sessions.

    PATTERN: Engines come from an injectable PlaywrightManager pool and are
    reused across cells; contexts and pages are never shared.

    CRITICAL: release() must run exactly once per acquired session on every
    exit path. It is idempotent, and teardown failures become harness
    warnings rather than scenario failures.
    """

    def __init__(
        self,
        playwright_manager: PlaywrightManager,
        reuse_engines: bool = True,
        release_timeout_ms: int = 10000,
    ):
        """Initialize the session manager.

        Args:
            playwright_manager: Engine pool used to launch browsers
            reuse_engines: Reuse pooled engines instead of one browser per session
            release_timeout_ms: Bound for each teardown step
        """
        self.playwright_manager = playwright_manager
        self.reuse_engines = reuse_engines
        self.release_timeout_ms = release_timeout_ms
        self.acquired_count = 0
        self.released_count = 0
        self._active: Dict[str, Session] = {}

    @property
    def active_sessions(self) -> List[Session]:
        return list(self._active.values())

    async def acquire(
        self,
        engine: BrowserType,
        viewport: Viewport,
        network_profile: Optional[NetworkProfile] = None,
        javascript_enabled: bool = True,
        **context_options: Any,
    ) -> Session:
        """Open a fresh isolated session for one cell.

        The network simulator and the observable collector are attached before
        the session is returned, so no early event is missed.

        Args:
            engine: Browser engine
            viewport: Viewport for the new context
            network_profile: Simulated network conditions (None = untouched)
            javascript_enabled: Whether the context runs JavaScript
            **context_options: Extra Playwright context options

        Returns:
            Attached Session

        Raises:
            BrowserEnvironmentError: If the engine, context or hooks fail
        """
        if self.reuse_engines:
            browser = await self.playwright_manager.launch_browser(engine)
        else:
            browser = await self.playwright_manager.launch_dedicated(engine)

        context: Optional[BrowserContext] = None
        try:
            context = await self.playwright_manager.create_context(
                browser,
                engine,
                viewport=viewport,
                java_script_enabled=javascript_enabled,
                **context_options,
            )
            page = await self.playwright_manager.create_page(context)

            session = Session(
                engine=engine,
                viewport=viewport,
                network_profile=network_profile,
                browser=browser,
                context=context,
                page=page,
                dedicated_browser=not self.reuse_engines,
            )
            try:
                await session.simulator.attach(context, network_profile)
                session.collector.attach(page, context)
            except Exception as e:
                raise BrowserEnvironmentError(
                    f"Failed to attach session hooks: {e}", engine=engine.value
                ) from e
        except BaseException:
            # Includes cancellation by a cell timeout during acquire
            await self._discard(browser, context)
            raise

        self.acquired_count += 1
        self._active[session.id] = session
        logger.debug(f"Acquired {session!r}")
        return session

    async def _discard(
        self, browser: Browser, context: Optional[BrowserContext]
    ) -> None:
        """Close what a failed acquire opened."""
        if context is not None:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing context after failed acquire: {e}")
        if not self.reuse_engines:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser after failed acquire: {e}")

    async def release(self, session: Session) -> List[HarnessWarning]:
        """Tear a session down. Safe to call more than once.

        Order: detach collector, clear network interception, close context,
        close a dedicated browser. Every step runs even if an earlier one
        failed.

        Args:
            session: Session returned by acquire()

        Returns:
            Warnings for teardown steps that failed (also stored on the session)
        """
        if session.released:
            logger.debug(f"{session!r} already released")
            return []

        session.released = True
        self.released_count += 1
        self._active.pop(session.id, None)

        steps: List[Tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("detach collector", session.collector.detach),
            ("detach network simulator", session.simulator.detach),
            ("close context", session.context.close),
        ]
        if session.dedicated_browser:
            steps.append(("close browser", session.browser.close))

        warnings: List[HarnessWarning] = []
        timeout_s = self.release_timeout_ms / 1000.0
        for label, step in steps:
            try:
                await asyncio.wait_for(step(), timeout=timeout_s)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
                warning = HarnessWarning(
                    code="release_failed",
                    message=f"{session.id}: {label} failed: {reason}",
                )
                logger.warning(f"Harness warning: {warning.message}")
                warnings.append(warning)

        session.warnings.extend(warnings)
        logger.debug(f"Released {session!r}")
        return warnings

    async def release_all(self) -> List[HarnessWarning]:
        """Release every session still active (shutdown path)."""
        warnings: List[HarnessWarning] = []
        for session in self.active_sessions:
            logger.warning(f"Releasing leaked {session!r}")
            warnings.extend(await self.release(session))
        return warnings
