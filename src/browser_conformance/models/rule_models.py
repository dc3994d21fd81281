"""Declarative assertion rules evaluated against an ObservableSnapshot.

Each rule is an immutable Pydantic model tagged by ``kind``. Rules carry no
evaluation logic of their own; the AssertionEngine maps each kind to a pure
evaluator. DOM-based rules declare the queries the collector must run before
the snapshot is taken.
"""

from pydantic import BaseModel, Field
from typing import Annotated, Any, Callable, List, Literal, Optional, Tuple, Union

from browser_conformance.models.snapshot_models import DomQuery, ObservableSnapshot


class AssertionRule(BaseModel):
    """Common fields of every assertion rule."""

    id: Optional[str] = Field(default=None, description="Rule identifier")
    description: Optional[str] = Field(default=None, description="What is checked")

    class Config:
        """Pydantic configuration."""

        frozen = True

    def dom_queries(self) -> List[DomQuery]:
        """DOM queries this rule needs in the snapshot."""
        return []


class HeaderEquals(AssertionRule):
    kind: Literal["header_equals"] = "header_equals"
    key: str
    expected: str


class HeaderContains(AssertionRule):
    kind: Literal["header_contains"] = "header_contains"
    key: str
    substring: str


class HeaderPresent(AssertionRule):
    kind: Literal["header_present"] = "header_present"
    key: str


class HeaderAbsent(AssertionRule):
    kind: Literal["header_absent"] = "header_absent"
    key: str


class StatusEquals(AssertionRule):
    kind: Literal["status_equals"] = "status_equals"
    code: int


class TitleEquals(AssertionRule):
    kind: Literal["title_equals"] = "title_equals"
    expected: str


class UrlMatches(AssertionRule):
    """Page URL at snapshot time matches a regular expression."""

    kind: Literal["url_matches"] = "url_matches"
    pattern: str


class DomTextContains(AssertionRule):
    """Any element matched by ``selector`` contains ``substring``."""

    kind: Literal["dom_text_contains"] = "dom_text_contains"
    selector: str
    substring: str

    def dom_queries(self) -> List[DomQuery]:
        return [DomQuery(selector=self.selector)]


class DomAttributeEquals(AssertionRule):
    """First element matched by ``selector`` has ``attribute == expected``."""

    kind: Literal["dom_attribute_equals"] = "dom_attribute_equals"
    selector: str
    attribute: str
    expected: str

    def dom_queries(self) -> List[DomQuery]:
        return [DomQuery(selector=self.selector, attributes=(self.attribute,))]


class DomAttributeContains(AssertionRule):
    kind: Literal["dom_attribute_contains"] = "dom_attribute_contains"
    selector: str
    attribute: str
    substring: str

    def dom_queries(self) -> List[DomQuery]:
        return [DomQuery(selector=self.selector, attributes=(self.attribute,))]


class DomCount(AssertionRule):
    """Number of elements matched by ``selector`` lies in [minimum, maximum]."""

    kind: Literal["dom_count"] = "dom_count"
    selector: str
    minimum: int = Field(default=1, ge=0)
    maximum: Optional[int] = Field(default=None, ge=0)

    def dom_queries(self) -> List[DomQuery]:
        return [DomQuery(selector=self.selector)]


class MetricBelow(AssertionRule):
    """A timing metric is strictly below ``threshold_ms``."""

    kind: Literal["metric_below"] = "metric_below"
    metric: str
    threshold_ms: float


class ConsoleClean(AssertionRule):
    """No console entries at ``levels`` other than ignored ones."""

    kind: Literal["console_clean"] = "console_clean"
    levels: Tuple[str, ...] = ("error", "pageerror")
    ignore: Tuple[str, ...] = ()


class ContentExcludes(AssertionRule):
    """Page HTML matches none of the case-insensitive ``patterns``."""

    kind: Literal["content_excludes"] = "content_excludes"
    patterns: Tuple[str, ...]


class SecureRequests(AssertionRule):
    """No request used plain http or a javascript: URL.

    Requests to ``allowed_origins`` are exempt.
    """

    kind: Literal["secure_requests"] = "secure_requests"
    allowed_origins: Tuple[str, ...] = ()


class CookiesSecure(AssertionRule):
    """Cookies are Secure on https pages; sensitive ones are HttpOnly."""

    kind: Literal["cookies_secure"] = "cookies_secure"
    sensitive_markers: Tuple[str, ...] = ("session", "auth")


class ProbeEquals(AssertionRule):
    """A runtime probe result (dotted path into it) equals ``expected``."""

    kind: Literal["probe_equals"] = "probe_equals"
    probe: str
    expected: Any


class NavigationErrorContains(AssertionRule):
    """Navigation failed with an error mentioning ``substring``."""

    kind: Literal["navigation_error_contains"] = "navigation_error_contains"
    substring: str


class CustomPredicate(AssertionRule):
    """Pure function of the snapshot; must not navigate or do I/O."""

    kind: Literal["custom_predicate"] = "custom_predicate"
    name: str
    fn: Callable[[ObservableSnapshot], bool] = Field(exclude=True)


Rule = Annotated[
    Union[
        HeaderEquals,
        HeaderContains,
        HeaderPresent,
        HeaderAbsent,
        StatusEquals,
        TitleEquals,
        UrlMatches,
        DomTextContains,
        DomAttributeEquals,
        DomAttributeContains,
        DomCount,
        MetricBelow,
        ConsoleClean,
        ContentExcludes,
        SecureRequests,
        CookiesSecure,
        ProbeEquals,
        NavigationErrorContains,
        CustomPredicate,
    ],
    Field(discriminator="kind"),
]
