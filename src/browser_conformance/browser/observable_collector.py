"""Console, network and page-state collection for browser sessions.

This module provides the ObservableCollector class. It subscribes to a
page's events before the first navigation and keeps append-only, ordered
logs that are copied into a frozen ObservableSnapshot on demand.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from playwright.async_api import BrowserContext, ConsoleMessage, Page, Request, Response

from browser_conformance.browser.base import SessionAttachment, is_environment_failure
from browser_conformance.browser.performance_monitor import PerformanceMonitor
from browser_conformance.models.snapshot_models import (
    ConsoleEntry,
    CookieInfo,
    DomQuery,
    DomQueryResult,
    InterceptionRecord,
    NetworkEntry,
    NetworkEventType,
    ObservableSnapshot,
    ResponseInfo,
)

logger = logging.getLogger(__name__)

ATTRIBUTE_SCRIPT = "(elements, name) => elements.map((e) => e.getAttribute(name))"


def merge_dom_queries(queries: Iterable[DomQuery]) -> List[DomQuery]:
    """Merge queries on the same selector, keeping first-seen order."""
    merged: Dict[str, List[str]] = {}
    for query in queries:
        attributes = merged.setdefault(query.selector, [])
        for attribute in query.attributes:
            if attribute not in attributes:
                attributes.append(attribute)
    return [
        DomQuery(selector=selector, attributes=tuple(attributes))
        for selector, attributes in merged.items()
    ]


class ObservableCollector(SessionAttachment):
    """Collect observable evidence from one page.

    The console and network logs are append-only and preserve emission
    order. snapshot() copies them and reads the current page state; it does
    not stop collection.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        performance_monitor: Optional[PerformanceMonitor] = None,
        interceptions: Optional[Callable[[], List[InterceptionRecord]]] = None,
    ):
        """Initialize the collector.

        Args:
            clock: Millisecond clock shared with the session
            performance_monitor: Timing reader (default instance if None)
            interceptions: Source of network simulator decisions
        """
        self.console: List[ConsoleEntry] = []
        self.network: List[NetworkEntry] = []
        self.crashed = False
        self._clock = clock or (lambda: time.monotonic() * 1000.0)
        self._performance_monitor = performance_monitor or PerformanceMonitor()
        self._interceptions = interceptions or (lambda: [])
        self._page: Optional[Page] = None
        self._context: Optional[BrowserContext] = None
        self._handlers: Dict[str, Callable[..., None]] = {}

        # Navigation evidence recorded by the scenario runner
        self._requested_url = ""
        self._response: Optional[ResponseInfo] = None
        self._navigation_error: Optional[str] = None
        self._navigation_ms: Optional[float] = None

    @property
    def attached(self) -> bool:
        return self._page is not None

    def attach(self, page: Page, context: Optional[BrowserContext] = None) -> None:
        """Subscribe to page events. Must run before the first navigation.

        Raises:
            RuntimeError: If the collector is already attached
        """
        if self.attached:
            raise RuntimeError("Observable collector is already attached to a page")

        self._page = page
        self._context = context
        self._handlers = {
            "console": self._on_console,
            "pageerror": self._on_page_error,
            "request": self._on_request,
            "response": self._on_response,
            "requestfailed": self._on_request_failed,
            "crash": self._on_crash,
        }
        for event, handler in self._handlers.items():
            page.on(event, handler)
        logger.debug(f"Collector attached to page_{id(page)}")

    async def detach(self) -> None:
        """Unsubscribe from page events. Buffers are kept."""
        page = self._page
        if page is None:
            return

        self._page = None
        handlers, self._handlers = self._handlers, {}
        for event, handler in handlers.items():
            page.remove_listener(event, handler)
        logger.debug(
            f"Collector detached ({len(self.console)} console, "
            f"{len(self.network)} network entries)"
        )

    # Event handlers

    def _on_console(self, message: ConsoleMessage) -> None:
        self.console.append(
            ConsoleEntry(level=message.type, text=message.text, timestamp_ms=self._clock())
        )

    def _on_page_error(self, error: Any) -> None:
        self.console.append(
            ConsoleEntry(level="pageerror", text=str(error), timestamp_ms=self._clock())
        )

    def _on_request(self, request: Request) -> None:
        self._append_network(NetworkEventType.REQUEST, request)

    def _on_response(self, response: Response) -> None:
        self._append_network(
            NetworkEventType.RESPONSE, response.request, status=response.status
        )

    def _on_request_failed(self, request: Request) -> None:
        self._append_network(
            NetworkEventType.REQUEST_FAILED, request, failure=request.failure
        )

    def _on_crash(self, page: Page) -> None:
        self.crashed = True
        logger.error(f"Page crashed: page_{id(page)}")

    def _append_network(
        self,
        event: NetworkEventType,
        request: Request,
        status: Optional[int] = None,
        failure: Optional[str] = None,
    ) -> None:
        self.network.append(
            NetworkEntry(
                sequence=len(self.network),
                event=event,
                url=request.url,
                method=request.method,
                resource_type=request.resource_type,
                status=status,
                failure=failure,
                timestamp_ms=self._clock(),
            )
        )

    # Navigation evidence

    def record_navigation(
        self,
        requested_url: str,
        response: Optional[ResponseInfo] = None,
        error: Optional[str] = None,
        navigation_ms: Optional[float] = None,
    ) -> None:
        """Record the outcome of the scenario's main navigation."""
        self._requested_url = requested_url
        self._response = response
        self._navigation_error = error
        self._navigation_ms = navigation_ms

    # Snapshot

    async def snapshot(
        self,
        dom_queries: Iterable[DomQuery] = (),
        probes: Optional[Dict[str, str]] = None,
    ) -> ObservableSnapshot:
        """Build a frozen snapshot of the evidence collected so far.

        Page reads happen at call time. A read that fails for page-level
        reasons leaves its field empty; a dead browser propagates.

        Args:
            dom_queries: Selectors (and attributes) to read
            probes: Runtime probes, name -> JS expression

        Returns:
            Frozen ObservableSnapshot
        """
        console = tuple(self.console)
        network = tuple(self.network)
        interceptions = tuple(self._interceptions())

        page = self._page
        url = ""
        title = content = None
        dom: Dict[str, DomQueryResult] = {}
        probe_results: Dict[str, Any] = {}
        probe_errors: Dict[str, str] = {}
        cookies: Tuple[CookieInfo, ...] = ()
        timing = None

        if page is not None:
            url = page.url
            timing = await self._performance_monitor.collect_timing(
                page, navigation_ms=self._navigation_ms
            )
            title = await self._read(page.title(), "title")
            content = await self._read(page.content(), "content")
            for query in merge_dom_queries(dom_queries):
                dom[query.selector] = await self._query_dom(page, query)
            for name, expression in (probes or {}).items():
                try:
                    probe_results[name] = await page.evaluate(expression)
                except Exception as e:
                    if is_environment_failure(e):
                        raise
                    probe_errors[name] = str(e)
            if self._context is not None:
                cookies = await self._read_cookies(self._context)

        snapshot_fields: Dict[str, Any] = {}
        if timing is not None:
            snapshot_fields["timing"] = timing

        return ObservableSnapshot(
            requested_url=self._requested_url,
            url=url,
            response=self._response,
            navigation_error=self._navigation_error,
            title=title,
            content=content,
            dom=dom,
            console=console,
            network=network,
            interceptions=interceptions,
            probes=probe_results,
            probe_errors=probe_errors,
            cookies=cookies,
            captured_at_ms=self._clock(),
            **snapshot_fields,
        )

    async def _read(self, awaitable: Any, what: str) -> Optional[Any]:
        try:
            return await awaitable
        except Exception as e:
            if is_environment_failure(e):
                raise
            logger.debug(f"Could not read {what}: {e}")
            return None

    async def _query_dom(self, page: Page, query: DomQuery) -> DomQueryResult:
        locator = page.locator(query.selector)
        try:
            count = await locator.count()
            texts = await locator.all_inner_texts()
            attributes = {}
            for attribute in query.attributes:
                values = await locator.evaluate_all(ATTRIBUTE_SCRIPT, attribute)
                attributes[attribute] = tuple(values)
            return DomQueryResult(
                selector=query.selector,
                count=count,
                texts=tuple(texts),
                attributes=attributes,
            )
        except Exception as e:
            if is_environment_failure(e):
                raise
            logger.debug(f"DOM query {query.selector!r} failed: {e}")
            return DomQueryResult(selector=query.selector, error=str(e))

    async def _read_cookies(self, context: BrowserContext) -> Tuple[CookieInfo, ...]:
        raw = await self._read(context.cookies(), "cookies") or []
        return tuple(
            CookieInfo(
                name=cookie.get("name", ""),
                domain=cookie.get("domain", ""),
                secure=bool(cookie.get("secure", False)),
                http_only=bool(cookie.get("httpOnly", False)),
                same_site=cookie.get("sameSite"),
            )
            for cookie in raw
        )
