"""Homepage load, metadata, performance and accessibility scenarios."""

from typing import List

from browser_conformance.models.browser_models import (
    DESKTOP_VIEWPORT,
    MOBILE_VIEWPORT,
    TABLET_VIEWPORT,
)
from browser_conformance.models.rule_models import (
    ConsoleClean,
    CustomPredicate,
    DomAttributeContains,
    DomAttributeEquals,
    DomCount,
    HeaderContains,
    HeaderEquals,
    HeaderPresent,
    MetricBelow,
    TitleEquals,
)
from browser_conformance.models.scenario_models import Scenario, ScenarioStep
from browser_conformance.models.snapshot_models import DomQuery

DEFAULT_TITLE = "Yalla Admin Web"
DEFAULT_DESCRIPTION = "Book appointments with qualified doctors easily"

HEADINGS_SELECTOR = "h1, h2, h3, h4, h5, h6"


def _h1_when_headings(snapshot) -> bool:
    headings = snapshot.dom.get(HEADINGS_SELECTOR)
    h1 = snapshot.dom.get("h1")
    if headings is None or headings.count == 0:
        return True
    return h1 is not None and h1.count >= 1


def _responsive_steps() -> List[ScenarioStep]:
    steps = []
    for viewport in (DESKTOP_VIEWPORT, TABLET_VIEWPORT, MOBILE_VIEWPORT):
        steps.extend(
            [
                ScenarioStep(
                    action="set_viewport",
                    value={"width": viewport.width, "height": viewport.height},
                ),
                ScenarioStep(action="wait_for_load_state", target="networkidle"),
                ScenarioStep(action="screenshot", target=f"{viewport.name}-{viewport.label}"),
            ]
        )
    return steps


def homepage_scenarios(
    path: str = "/",
    title: str = DEFAULT_TITLE,
    description: str = DEFAULT_DESCRIPTION,
) -> List[Scenario]:
    """
    Build the homepage scenarios.

    Args:
        path: Homepage path
        title: Expected document title
        description: Expected meta description

    Returns:
        Scenarios in a stable order
    """
    return [
        Scenario(
            id="homepage-load",
            name="Homepage loads successfully",
            path=path,
            wait_until="networkidle",
            steps=[ScenarioStep(action="wait_for_timeout", value=2000)],
            rules=[
                TitleEquals(expected=title),
                ConsoleClean(levels=("error",), ignore=("favicon", "404")),
            ],
            tags=["homepage"],
        ),
        Scenario(
            id="homepage-meta",
            name="Meta information",
            path=path,
            rules=[
                DomAttributeEquals(
                    selector='meta[name="description"]',
                    attribute="content",
                    expected=description,
                ),
                DomAttributeContains(
                    selector='meta[name="viewport"]',
                    attribute="content",
                    substring="width=device-width",
                ),
                DomAttributeEquals(
                    selector="meta[charset]", attribute="charset", expected="utf-8"
                ),
            ],
            tags=["homepage", "seo"],
        ),
        Scenario(
            id="homepage-security-headers",
            name="Security headers present",
            path=path,
            rules=[
                HeaderEquals(key="x-frame-options", expected="DENY"),
                HeaderEquals(key="x-content-type-options", expected="nosniff"),
                HeaderContains(
                    key="strict-transport-security", substring="max-age=63072000"
                ),
                HeaderPresent(key="content-security-policy"),
                HeaderEquals(
                    key="referrer-policy", expected="strict-origin-when-cross-origin"
                ),
            ],
            tags=["homepage", "security"],
        ),
        Scenario(
            id="homepage-responsive",
            name="Page is responsive",
            path=path,
            steps=_responsive_steps(),
            rules=[TitleEquals(expected=title)],
            tags=["homepage", "responsive"],
        ),
        Scenario(
            id="homepage-performance",
            name="Performance metrics",
            path=path,
            wait_until="networkidle",
            rules=[
                MetricBelow(metric="dom_content_loaded", threshold_ms=3000),
                MetricBelow(metric="load_complete", threshold_ms=5000),
            ],
            tags=["homepage", "performance"],
        ),
        Scenario(
            id="homepage-accessibility",
            name="Accessibility basics",
            path=path,
            dom_queries=[DomQuery(selector=HEADINGS_SELECTOR), DomQuery(selector="h1")],
            rules=[
                DomAttributeEquals(selector="html", attribute="lang", expected="en"),
                DomCount(selector='[role="region"][aria-label*="Notifications"]'),
                CustomPredicate(name="h1_when_headings", fn=_h1_when_headings),
            ],
            tags=["homepage", "accessibility"],
        ),
    ]
