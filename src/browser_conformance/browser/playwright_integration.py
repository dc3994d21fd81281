"""Playwright engine pool.

This module provides the PlaywrightManager class which owns the Playwright
driver and a pool of launched browser engines. Engines are reused across
cells of the same type; every cell still gets its own isolated context.

CRITICAL: Proper cleanup is essential to avoid leaking browser processes.
"""

import asyncio
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)
from typing import Optional, Dict, Any
import logging

from browser_conformance.browser.base import BrowserEnvironmentError
from browser_conformance.models.browser_models import BrowserType, Viewport

logger = logging.getLogger(__name__)


class PlaywrightManager:
    """Manage the Playwright driver and pooled browser engines.

    PATTERN: Reuse browser instances per engine, but create isolated contexts
    for each cell to prevent cookie and storage leakage.

    CRITICAL: Always call cleanup() or use as async context manager to ensure
    launched browsers are closed.
    """

    def __init__(self, headless: bool = True, **launch_options: Any):
        """Initialize the Playwright manager.

        Args:
            headless: Whether browsers run headless
            **launch_options: Extra options passed to every launch
        """
        self.headless = headless
        self.launch_options = launch_options
        self.playwright: Optional[Playwright] = None
        self.browsers: Dict[str, Browser] = {}
        self.launch_count = 0
        self._launch_locks: Dict[str, asyncio.Lock] = {}
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.cleanup()

    async def initialize(self) -> None:
        """Start the Playwright driver.

        Raises:
            BrowserEnvironmentError: If the driver cannot start
        """
        async with self._init_lock:
            if self._initialized:
                return

            try:
                self.playwright = await async_playwright().start()
                self._initialized = True
                logger.info("Playwright initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize Playwright: {e}")
                raise BrowserEnvironmentError(f"Playwright initialization failed: {e}") from e

    async def launch_browser(
        self, browser_type: BrowserType = BrowserType.CHROMIUM
    ) -> Browser:
        """Return the pooled browser for an engine, launching it if needed.

        A pooled browser that is no longer connected is replaced.

        Args:
            browser_type: Engine to launch

        Returns:
            Browser instance

        Raises:
            BrowserEnvironmentError: If the browser fails to launch
        """
        if not self._initialized:
            await self.initialize()

        browser_key = browser_type.value
        lock = self._launch_locks.setdefault(browser_key, asyncio.Lock())

        async with lock:
            browser = self.browsers.get(browser_key)
            if browser is not None:
                if browser.is_connected():
                    logger.debug(f"Reusing existing {browser_key} browser")
                    return browser
                logger.warning(f"Pooled {browser_key} browser disconnected; relaunching")
                del self.browsers[browser_key]

            browser = await self._launch(browser_type)
            self.browsers[browser_key] = browser
            return browser

    async def launch_dedicated(
        self, browser_type: BrowserType = BrowserType.CHROMIUM
    ) -> Browser:
        """Launch a browser that is not pooled; the caller must close it.

        Raises:
            BrowserEnvironmentError: If the browser fails to launch
        """
        if not self._initialized:
            await self.initialize()
        return await self._launch(browser_type)

    async def _launch(self, browser_type: BrowserType) -> Browser:
        try:
            browser_launcher = getattr(self.playwright, browser_type.value)
            browser = await browser_launcher.launch(
                headless=self.headless, **self.launch_options
            )
            self.launch_count += 1
            logger.info(
                f"Launched {browser_type.value} browser (headless={self.headless})"
            )
            return browser
        except Exception as e:
            logger.error(f"Failed to launch {browser_type.value} browser: {e}")
            raise BrowserEnvironmentError(
                f"Browser launch failed: {e}", engine=browser_type.value
            ) from e

    async def evict(self, browser_type: BrowserType) -> None:
        """Drop and close the pooled browser for an engine.

        Used after an environment failure so the next acquire relaunches.
        """
        browser = self.browsers.pop(browser_type.value, None)
        if browser is None:
            return
        try:
            await browser.close()
            logger.info(f"Evicted {browser_type.value} browser from pool")
        except Exception as e:
            logger.warning(f"Error closing evicted {browser_type.value} browser: {e}")

    async def create_context(
        self,
        browser: Browser,
        browser_type: BrowserType,
        viewport: Optional[Viewport] = None,
        **options: Any,
    ) -> BrowserContext:
        """Create an isolated browser context.

        CRITICAL: Each cell uses its own context; contexts provide isolation
        similar to incognito mode.

        Args:
            browser: Browser instance to create context in
            browser_type: Engine of the browser (Firefox has no mobile emulation)
            viewport: Viewport configuration
            **options: Additional context options (e.g. java_script_enabled)

        Returns:
            Browser context

        Raises:
            BrowserEnvironmentError: If context creation fails
        """
        try:
            context_options: Dict[str, Any] = {}

            if viewport:
                context_options["viewport"] = {
                    "width": viewport.width,
                    "height": viewport.height,
                }
                context_options["device_scale_factor"] = viewport.device_scale_factor
                context_options["has_touch"] = viewport.has_touch
                if browser_type != BrowserType.FIREFOX:
                    context_options["is_mobile"] = viewport.is_mobile

            context_options.update(options)

            context = await browser.new_context(**context_options)
            logger.debug(f"Created browser context: context_{id(context)}")
            return context
        except Exception as e:
            logger.error(f"Failed to create browser context: {e}")
            raise BrowserEnvironmentError(
                f"Context creation failed: {e}", engine=browser_type.value
            ) from e

    async def create_page(self, context: BrowserContext) -> Page:
        """Create a new page in the specified context.

        Raises:
            BrowserEnvironmentError: If page creation fails
        """
        try:
            page = await context.new_page()
            logger.debug(f"Created page: page_{id(page)}")
            return page
        except Exception as e:
            logger.error(f"Failed to create page: {e}")
            raise BrowserEnvironmentError(f"Page creation failed: {e}") from e

    async def cleanup(self) -> None:
        """Close pooled browsers and stop Playwright.

        Errors are logged; cleanup always runs to completion.
        """
        errors = []

        for browser_type, browser in list(self.browsers.items()):
            try:
                await browser.close()
                logger.debug(f"Closed browser: {browser_type}")
            except Exception as e:
                errors.append(f"Failed to close browser {browser_type}: {e}")
        self.browsers.clear()

        if self.playwright:
            try:
                await self.playwright.stop()
                logger.info("Playwright stopped successfully")
            except Exception as e:
                errors.append(f"Failed to stop Playwright: {e}")
            self.playwright = None

        self._initialized = False

        if errors:
            logger.warning(f"Cleanup completed with errors: {'; '.join(errors)}")
        else:
            logger.info("Cleanup completed successfully")
