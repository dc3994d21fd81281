"""Observable evidence models collected from a browser session.

The ObservableSnapshot is the only input of rule evaluation. All snapshot
models are frozen and the logs are tuples, so a snapshot handed to the
assertion engine cannot change underneath it.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Tuple
from enum import Enum


class NetworkEventType(str, Enum):
    """Kinds of network events recorded by the collector."""

    REQUEST = "request"
    RESPONSE = "response"
    REQUEST_FAILED = "requestfailed"


class InterceptionAction(str, Enum):
    """Routing decision taken by the network simulator."""

    CONTINUED = "continued"
    ABORTED = "aborted"


class ConsoleEntry(BaseModel):
    """Single console message in emission order."""

    level: str = Field(description="Console message type (log, error, ...)")
    text: str = Field(description="Message text")
    timestamp_ms: float = Field(description="Milliseconds since session start")

    class Config:
        frozen = True


class NetworkEntry(BaseModel):
    """Single network event in emission order."""

    sequence: int = Field(description="Position in the session network log")
    event: NetworkEventType = Field(description="Event type")
    url: str = Field(description="Request URL")
    method: str = Field(default="GET", description="HTTP method")
    resource_type: str = Field(default="other", description="Resource type")
    status: Optional[int] = Field(default=None, description="Response status")
    failure: Optional[str] = Field(default=None, description="Failure text")
    timestamp_ms: float = Field(description="Milliseconds since session start")

    class Config:
        frozen = True


class InterceptionRecord(BaseModel):
    """Decision taken for one intercepted request."""

    sequence: int = Field(description="Request sequence number within the session")
    url: str = Field(description="Request URL")
    method: str = Field(default="GET", description="HTTP method")
    action: InterceptionAction = Field(description="Routing decision")
    error_code: Optional[str] = Field(default=None, description="Abort error code")
    intercepted_at_ms: float = Field(description="Time the request was intercepted")
    released_at_ms: float = Field(description="Time the request was continued/aborted")

    class Config:
        frozen = True

    @property
    def delay_ms(self) -> float:
        return self.released_at_ms - self.intercepted_at_ms


class ResponseInfo(BaseModel):
    """Main document response."""

    status: int = Field(description="HTTP status code")
    url: str = Field(description="Response URL")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Response headers with lower-cased names"
    )

    class Config:
        frozen = True

    def header(self, key: str) -> Optional[str]:
        return self.headers.get(key.lower())


class DomQuery(BaseModel):
    """Selector (and attributes) to read from the page at snapshot time."""

    selector: str
    attributes: Tuple[str, ...] = ()

    class Config:
        frozen = True


class DomQueryResult(BaseModel):
    """Elements matched by a selector at snapshot time."""

    selector: str = Field(description="CSS selector")
    count: int = Field(default=0, description="Number of matching elements")
    texts: Tuple[str, ...] = Field(default=(), description="Inner text per element")
    attributes: Dict[str, Tuple[Optional[str], ...]] = Field(
        default_factory=dict, description="Attribute values per element"
    )
    error: Optional[str] = Field(default=None, description="Query error, if any")

    class Config:
        frozen = True

    def first_attribute(self, name: str) -> Optional[str]:
        values = self.attributes.get(name, ())
        return values[0] if values else None


class TimingMetrics(BaseModel):
    """Navigation timing read from the page performance timeline."""

    dom_content_loaded: Optional[float] = Field(
        default=None, description="DOMContentLoaded event duration (ms)"
    )
    load_complete: Optional[float] = Field(
        default=None, description="Load event duration (ms)"
    )
    first_paint: Optional[float] = Field(default=None, description="First paint (ms)")
    first_contentful_paint: Optional[float] = Field(
        default=None, description="First contentful paint (ms)"
    )
    ttfb: Optional[float] = Field(default=None, description="Time to first byte (ms)")
    navigation_ms: Optional[float] = Field(
        default=None, description="Wall time of the navigation call (ms)"
    )

    class Config:
        frozen = True

    def get(self, metric: str) -> Optional[float]:
        if metric not in type(self).model_fields:
            return None
        return getattr(self, metric)


class CookieInfo(BaseModel):
    """Cookie security attributes."""

    name: str
    domain: str = ""
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None

    class Config:
        frozen = True


class ObservableSnapshot(BaseModel):
    """Frozen evidence for one session at assertion time."""

    requested_url: str = Field(default="", description="URL the scenario navigated to")
    url: str = Field(default="", description="Page URL at snapshot time")
    response: Optional[ResponseInfo] = Field(
        default=None, description="Main document response"
    )
    navigation_error: Optional[str] = Field(
        default=None, description="Navigation error text, if navigation failed"
    )
    title: Optional[str] = Field(default=None, description="Document title")
    content: Optional[str] = Field(default=None, description="Serialized page HTML")
    dom: Dict[str, DomQueryResult] = Field(
        default_factory=dict, description="DOM query results by selector"
    )
    console: Tuple[ConsoleEntry, ...] = Field(default=(), description="Console log")
    network: Tuple[NetworkEntry, ...] = Field(default=(), description="Network log")
    interceptions: Tuple[InterceptionRecord, ...] = Field(
        default=(), description="Network simulator decisions"
    )
    timing: TimingMetrics = Field(default_factory=TimingMetrics)
    probes: Dict[str, Any] = Field(
        default_factory=dict, description="Runtime probe results by name"
    )
    probe_errors: Dict[str, str] = Field(
        default_factory=dict, description="Runtime probe failures by name"
    )
    cookies: Tuple[CookieInfo, ...] = Field(default=(), description="Context cookies")
    captured_at_ms: float = Field(
        default=0.0, description="Milliseconds since session start"
    )

    class Config:
        frozen = True

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response else None

    def header(self, key: str) -> Optional[str]:
        return self.response.header(key) if self.response else None

    def successful_responses(self) -> Tuple[NetworkEntry, ...]:
        return tuple(
            entry
            for entry in self.network
            if entry.event == NetworkEventType.RESPONSE
            and entry.status is not None
            and entry.status < 400
        )
