"""Error page, network failure and degraded-environment scenarios.

The offline and slow-network scenarios are scoped to their network profile;
they only run when the matrix includes a profile of the same name.
"""

from typing import List, Sequence

from browser_conformance.models.browser_models import (
    NetworkProfile,
    OFFLINE_PROFILE,
    SLOW_NETWORK_PROFILE,
)
from browser_conformance.models.rule_models import (
    DomAttributeContains,
    DomAttributeEquals,
    DomCount,
    DomTextContains,
    MetricBelow,
    NavigationErrorContains,
    StatusEquals,
    TitleEquals,
)
from browser_conformance.models.scenario_models import Scenario, ScenarioStep
from browser_conformance.models.snapshot_models import DomQuery

NOT_FOUND_HEADING = "404 - Page Not Found"
NOT_FOUND_MESSAGE = "Sorry we couldn't find that page."

DEFAULT_MISSING_PATH = "/nonexistent-page"
DEFAULT_INVALID_ROUTES = (
    "/admin/invalid",
    "/api/nonexistent",
    "/dashboard/fake",
    "/users/999999",
    "/settings/invalid",
)


def _route_id(route: str) -> str:
    return route.strip("/").replace("/", "-") or "root"


def error_handling_scenarios(
    title: str = "Yalla Admin Web",
    missing_path: str = DEFAULT_MISSING_PATH,
    invalid_routes: Sequence[str] = DEFAULT_INVALID_ROUTES,
    offline_profile: NetworkProfile = OFFLINE_PROFILE,
    slow_profile: NetworkProfile = SLOW_NETWORK_PROFILE,
    offline_error: str = "ERR_INTERNET_DISCONNECTED",
    slow_load_limit_ms: float = 30000,
) -> List[Scenario]:
    """
    Build the error handling scenarios.

    Args:
        title: Expected document title of the homepage
        missing_path: Path that must render the 404 page
        invalid_routes: Additional paths that must return 404
        offline_profile: Profile the offline scenario is scoped to
        slow_profile: Profile the slow-network scenario is scoped to
        offline_error: Text expected in the offline navigation error
        slow_load_limit_ms: Upper bound for navigation under the slow profile

    Returns:
        Scenarios in a stable order
    """
    scenarios = [
        Scenario(
            id="error-404-page",
            name="404 page displays correctly",
            path=missing_path,
            steps=[ScenarioStep(action="screenshot", target="404")],
            rules=[
                StatusEquals(code=404),
                DomTextContains(selector="h1", substring=NOT_FOUND_HEADING),
                DomTextContains(selector="p", substring=NOT_FOUND_MESSAGE),
                DomAttributeContains(selector="h1", attribute="class", substring="text-4xl"),
                DomAttributeContains(
                    selector="h1", attribute="class", substring="font-bold"
                ),
                DomAttributeEquals(
                    selector='meta[name="robots"]', attribute="content", expected="noindex"
                ),
            ],
            tags=["errors", "404"],
        ),
        Scenario(
            id="error-404-accessibility",
            name="404 page is accessible",
            path=missing_path,
            rules=[
                DomAttributeEquals(selector="html", attribute="lang", expected="en"),
                DomCount(selector="h1", minimum=1, maximum=1),
            ],
            tags=["errors", "404", "accessibility"],
        ),
    ]

    for route in invalid_routes:
        scenarios.append(
            Scenario(
                id=f"error-404-{_route_id(route)}",
                name=f"Invalid route {route} returns 404",
                path=route,
                rules=[
                    StatusEquals(code=404),
                    DomTextContains(selector="h1", substring=NOT_FOUND_HEADING),
                ],
                tags=["errors", "404"],
            )
        )

    scenarios.extend(
        [
            Scenario(
                id="error-offline",
                name="Network error handling",
                path="/",
                network_profile=offline_profile,
                steps=[
                    ScenarioStep(action="restore_network"),
                    ScenarioStep(action="navigate", target="/"),
                ],
                steps_after_failed_navigation=True,
                rules=[
                    NavigationErrorContains(substring=offline_error),
                    TitleEquals(expected=title),
                ],
                tags=["errors", "network"],
            ),
            Scenario(
                id="error-slow-network",
                name="Slow network conditions",
                path="/",
                network_profile=slow_profile,
                wait_until="networkidle",
                rules=[
                    TitleEquals(expected=title),
                    MetricBelow(metric="navigation_ms", threshold_ms=slow_load_limit_ms),
                ],
                tags=["errors", "network", "performance"],
            ),
            Scenario(
                id="error-javascript-disabled",
                name="JavaScript disabled fallback",
                path="/",
                javascript_enabled=False,
                dom_queries=[DomQuery(selector="noscript")],
                rules=[DomCount(selector="html"), DomCount(selector="body")],
                tags=["errors", "progressive-enhancement"],
            ),
        ]
    )
    return scenarios
