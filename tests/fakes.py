"""In-process stand-ins for the Playwright objects the harness drives.

A FakeSite maps paths to FakeResources. FakePage.goto() emits request,
response and requestfailed events in the same order Playwright does and
passes every request through the route handler installed on its context,
so the network simulator and the collector run unmodified.
"""

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from browser_conformance.browser.performance_monitor import NAVIGATION_TIMING_SCRIPT
from browser_conformance.browser.playwright_integration import PlaywrightManager

ABORT_ERRORS = {
    "internetdisconnected": "net::ERR_INTERNET_DISCONNECTED",
    "failed": "net::ERR_FAILED",
}


@dataclass
class FakeResource:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    title: str = ""
    content: str = "<html><body></body></html>"
    # selector -> {"texts": [...], "attributes": {name: [...]}, "count": n}
    dom: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    # JS expression -> value (an Exception instance is raised)
    probes: Dict[str, Any] = field(default_factory=dict)
    console: List[Tuple[str, str]] = field(default_factory=list)
    page_errors: List[str] = field(default_factory=list)
    subresources: List[str] = field(default_factory=list)
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    timing: Dict[str, float] = field(default_factory=dict)
    delay_s: float = 0.0
    crash: bool = False


class FakeSite:
    def __init__(
        self,
        resources: Optional[Dict[str, FakeResource]] = None,
        not_found: Optional[FakeResource] = None,
    ):
        self.resources = resources or {}
        self.not_found = not_found or FakeResource(status=404, title="Not Found")

    def resolve(self, url: str) -> FakeResource:
        path = urlparse(url).path or "/"
        return self.resources.get(path, self.not_found)


class FakeRequest:
    def __init__(self, url: str, resource_type: str = "document", method: str = "GET"):
        self.url = url
        self.method = method
        self.resource_type = resource_type
        self.failure: Optional[str] = None


class FakeResponse:
    def __init__(self, request: FakeRequest, status: int, headers: Dict[str, str]):
        self.request = request
        self.url = request.url
        self.status = status
        self.headers = headers

    async def all_headers(self) -> Dict[str, str]:
        return dict(self.headers)


class FakeRoute:
    def __init__(self, request: FakeRequest):
        self.request = request
        self.action: Optional[str] = None
        self.error_code: Optional[str] = None

    async def continue_(self) -> None:
        self.action = "continue"

    async def abort(self, error_code: str = "failed") -> None:
        self.action = "abort"
        self.error_code = error_code


class FakeConsoleMessage:
    def __init__(self, type: str, text: str):
        self.type = type
        self.text = text


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    def _entry(self) -> Dict[str, Any]:
        if self.page.current is None:
            return {}
        return self.page.current.dom.get(self.selector, {})

    async def count(self) -> int:
        entry = self._entry()
        return entry.get("count", len(entry.get("texts", [])))

    async def all_inner_texts(self) -> List[str]:
        return list(self._entry().get("texts", []))

    async def evaluate_all(self, script: str, attribute: str) -> List[Optional[str]]:
        entry = self._entry()
        count = entry.get("count", len(entry.get("texts", [])))
        return list(entry.get("attributes", {}).get(attribute, [None] * count))


class FakePage:
    def __init__(self, context: "FakeContext"):
        self.context = context
        self.site = context.site
        self.url = "about:blank"
        self.current: Optional[FakeResource] = None
        self.listeners: Dict[str, List[Callable[..., None]]] = {}
        self.goto_calls: List[Tuple[str, Optional[str], Optional[float]]] = []
        self.actions: List[Tuple[str, Any]] = []
        self.screenshots: List[str] = []
        self.screenshot_error: Optional[Exception] = None
        self.viewport_size: Optional[Dict[str, int]] = None
        self.closed = False

    # Events

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable[..., None]) -> None:
        self.listeners.get(event, []).remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self.listeners.get(event, [])):
            handler(payload)

    def crash(self) -> None:
        self.emit("crash", self)

    # Navigation

    def _check_open(self) -> None:
        if self.closed or self.context.closed:
            raise Exception("Target page, context or browser has been closed")

    async def _fetch(self, request: FakeRequest) -> Optional[str]:
        self.emit("request", request)
        handler = self.context.route_handler
        if handler is not None:
            route = FakeRoute(request)
            await handler(route, request)
            if route.action == "abort":
                request.failure = ABORT_ERRORS.get(route.error_code, "net::ERR_FAILED")
                self.emit("requestfailed", request)
                return request.failure

        resource = self.site.resolve(request.url)
        status = resource.status if request.resource_type == "document" else 200
        self.emit("response", FakeResponse(request, status, resource.headers))
        return None

    async def goto(
        self,
        url: str,
        wait_until: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Optional[FakeResponse]:
        self._check_open()
        self.goto_calls.append((url, wait_until, timeout))
        resource = self.site.resolve(url)

        if resource.delay_s:
            await asyncio.sleep(resource.delay_s)
        if resource.crash:
            self.crash()
            raise Exception("Page crashed")

        request = FakeRequest(url)
        failure = await self._fetch(request)
        if failure is not None:
            raise Exception(f"{failure} at {url}")

        self.url = url
        self.current = resource
        for level, text in resource.console:
            self.emit("console", FakeConsoleMessage(level, text))
        for error in resource.page_errors:
            self.emit("pageerror", Exception(error))
        for sub_url in resource.subresources:
            await self._fetch(FakeRequest(sub_url, resource_type="script"))

        return FakeResponse(request, resource.status, resource.headers)

    # Page state

    async def title(self) -> str:
        self._check_open()
        return self.current.title if self.current else ""

    async def content(self) -> str:
        self._check_open()
        return self.current.content if self.current else "<html></html>"

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def evaluate(self, expression: str, *args: Any) -> Any:
        self._check_open()
        resource = self.current or FakeResource()
        if expression == NAVIGATION_TIMING_SCRIPT:
            return dict(resource.timing)
        if expression not in resource.probes:
            raise Exception(f"ReferenceError: {expression} is not defined")
        value = resource.probes[expression]
        if isinstance(value, Exception):
            raise value
        return value

    # Interaction

    async def click(self, selector: str, timeout: Optional[float] = None) -> None:
        await self.wait_for_selector(selector, timeout=timeout)
        self.actions.append(("click", selector))

    async def fill(self, selector: str, value: str, timeout: Optional[float] = None) -> None:
        await self.wait_for_selector(selector, timeout=timeout)
        self.actions.append(("fill", (selector, value)))

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None) -> None:
        self._check_open()
        if self.current is None or selector not in self.current.dom:
            raise Exception(f"Timeout {timeout}ms exceeded waiting for {selector!r}")

    async def wait_for_timeout(self, timeout: float) -> None:
        self.actions.append(("wait_for_timeout", timeout))

    async def wait_for_load_state(
        self, state: str = "load", timeout: Optional[float] = None
    ) -> None:
        self.actions.append(("wait_for_load_state", state))

    async def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport_size = size
        self.actions.append(("set_viewport", size))

    async def screenshot(self, path: str, full_page: bool = False) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)
        return b"\x89PNG"


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: Dict[str, Any]):
        self.browser = browser
        self.site = browser.site
        self.options = options
        self.pages: List[FakePage] = []
        self.route_handler: Optional[Callable[..., Any]] = None
        self.route_pattern: Optional[str] = None
        self.close_error: Optional[Exception] = browser.context_close_error
        self.closed = False

    async def route(self, pattern: str, handler: Callable[..., Any]) -> None:
        self.route_pattern = pattern
        self.route_handler = handler

    async def unroute(self, pattern: str, handler: Optional[Callable[..., Any]] = None) -> None:
        if pattern == self.route_pattern:
            self.route_handler = None
            self.route_pattern = None

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def cookies(self) -> List[Dict[str, Any]]:
        cookies: List[Dict[str, Any]] = []
        for page in self.pages:
            if page.current is not None:
                cookies.extend(page.current.cookies)
        return cookies

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeBrowser:
    def __init__(self, engine: str, site: FakeSite):
        self.engine = engine
        self.site = site
        self.contexts: List[FakeContext] = []
        self.context_close_error: Optional[Exception] = None
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self, **options: Any) -> FakeContext:
        if not self.connected:
            raise Exception("Browser has been closed")
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.connected = False


class FakeBrowserType:
    def __init__(self, name: str, site: FakeSite):
        self.name = name
        self.site = site
        self.launched: List[FakeBrowser] = []
        self.fail_launches = 0

    async def launch(self, headless: bool = True, **options: Any) -> FakeBrowser:
        if self.fail_launches > 0:
            self.fail_launches -= 1
            raise Exception(f"{self.name} executable crashed on startup")
        browser = FakeBrowser(self.name, self.site)
        self.launched.append(browser)
        return browser


class FakePlaywright:
    def __init__(self, site: FakeSite):
        self.chromium = FakeBrowserType("chromium", site)
        self.firefox = FakeBrowserType("firefox", site)
        self.webkit = FakeBrowserType("webkit", site)
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


def make_manager(site: Optional[FakeSite] = None) -> PlaywrightManager:
    """PlaywrightManager driving fake engines instead of a real driver."""
    manager = PlaywrightManager(headless=True)
    manager.playwright = FakePlaywright(site or FakeSite())
    manager._initialized = True
    return manager


class FakeClock:
    """Millisecond clock advanced only by sleep()."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds * 1000.0
