"""Navigation timing collection for browser sessions.

This module provides the PerformanceMonitor class which reads navigation and
paint timing from the page's performance timeline at the moment it is called.
"""

from typing import Any, Dict, Optional
import logging

from playwright.async_api import Page

from browser_conformance.models.snapshot_models import TimingMetrics

logger = logging.getLogger(__name__)

NAVIGATION_TIMING_SCRIPT = """
() => {
    const navigation = performance.getEntriesByType('navigation')[0];
    const paints = performance.getEntriesByType('paint');
    const paint = (name) => {
        const entry = paints.find((e) => e.name === name);
        return entry ? entry.startTime : null;
    };
    if (!navigation) {
        return {
            first_paint: paint('first-paint'),
            first_contentful_paint: paint('first-contentful-paint'),
        };
    }
    return {
        dom_content_loaded:
            navigation.domContentLoadedEventEnd - navigation.domContentLoadedEventStart,
        load_complete: navigation.loadEventEnd - navigation.loadEventStart,
        ttfb: navigation.responseStart - navigation.requestStart,
        first_paint: paint('first-paint'),
        first_contentful_paint: paint('first-contentful-paint'),
    };
}
"""


class PerformanceMonitor:
    """Read navigation timing metrics from a page.

    PATTERN: Use the Navigation Timing and Paint Timing APIs via
    page.evaluate() so the numbers come from the browser itself.
    """

    async def collect_timing(
        self, page: Page, navigation_ms: Optional[float] = None
    ) -> TimingMetrics:
        """Collect timing metrics from the page at call time.

        Missing entries (no navigation yet, engine without paint timing) are
        reported as None rather than raising.

        Args:
            page: Playwright page instance
            navigation_ms: Wall time of the navigation call, if measured

        Returns:
            TimingMetrics for the current document
        """
        raw: Dict[str, Any] = {}
        try:
            raw = await page.evaluate(NAVIGATION_TIMING_SCRIPT) or {}
        except Exception as e:
            logger.debug(f"Navigation timing unavailable: {e}")

        return TimingMetrics(
            dom_content_loaded=self._metric(raw, "dom_content_loaded"),
            load_complete=self._metric(raw, "load_complete"),
            first_paint=self._metric(raw, "first_paint"),
            first_contentful_paint=self._metric(raw, "first_contentful_paint"),
            ttfb=self._metric(raw, "ttfb"),
            navigation_ms=navigation_ms,
        )

    @staticmethod
    def _metric(raw: Dict[str, Any], name: str) -> Optional[float]:
        value = raw.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return None
