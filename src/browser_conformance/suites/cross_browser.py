"""Cross-browser rendering, scripting and feature-support scenarios."""

from typing import List

from browser_conformance.models.rule_models import (
    CustomPredicate,
    DomAttributeContains,
    DomCount,
    ProbeEquals,
    TitleEquals,
)
from browser_conformance.models.scenario_models import Scenario, ScenarioStep
from browser_conformance.models.snapshot_models import DomQuery

TOUCH_TARGETS_SELECTOR = 'button, a, [role="button"]'

BODY_STYLES_PROBE = """() => {
  const styles = window.getComputedStyle(document.body);
  return {
    fontFamily: styles.fontFamily,
    backgroundColor: styles.backgroundColor,
    color: styles.color
  };
}"""

JS_SUPPORT_PROBE = """() => {
  try {
    const doubled = [1, 2, 3].map(x => x * 2);
    return {
      arrayMethods: doubled.length === 3,
      promises: typeof Promise !== 'undefined',
      arrowFunctions: (() => true)(),
      es6Support: true
    };
  } catch (error) {
    return { error: error.message, es6Support: false };
  }
}"""

FEATURES_PROBE = """() => ({
  fetch: typeof fetch !== 'undefined',
  intersectionObserver: typeof IntersectionObserver !== 'undefined',
  customElements: typeof customElements !== 'undefined',
  webComponents: typeof HTMLElement.prototype.attachShadow !== 'undefined',
  serviceWorker: 'serviceWorker' in navigator,
  webGL: (() => {
    try {
      const canvas = document.createElement('canvas');
      return !!(canvas.getContext('webgl') || canvas.getContext('experimental-webgl'));
    } catch (e) {
      return false;
    }
  })()
})"""

TOUCH_TARGETS_PROBE = """() => Array.from(
  document.querySelectorAll('button, a, [role="button"]')
).map((el) => {
  const rect = el.getBoundingClientRect();
  return {
    width: rect.width,
    height: rect.height,
    touchFriendly: rect.width >= 44 && rect.height >= 44
  };
})"""


def _custom_font_applied(snapshot) -> bool:
    styles = snapshot.probes.get("body_styles") or {}
    return styles.get("fontFamily") not in (None, "", "Times")


def cross_browser_scenarios(path: str = "/", title: str = "Yalla Admin Web") -> List[Scenario]:
    """
    Build the cross-browser scenarios.

    Args:
        path: Page to check
        title: Expected document title

    Returns:
        Scenarios in a stable order
    """
    return [
        Scenario(
            id="cross-browser-consistent-load",
            name="Homepage loads consistently across browsers",
            path=path,
            wait_until="networkidle",
            steps=[
                ScenarioStep(action="screenshot", target="homepage"),
                ScenarioStep(action="wait_for_timeout", value=2000),
            ],
            rules=[TitleEquals(expected=title)],
            tags=["cross-browser"],
        ),
        Scenario(
            id="cross-browser-css",
            name="CSS rendering consistency",
            path=path,
            wait_until="networkidle",
            probes={"body_styles": BODY_STYLES_PROBE},
            rules=[
                DomCount(selector='link[rel="stylesheet"]'),
                DomCount(selector='link[rel="preload"][as="font"]'),
                CustomPredicate(name="custom_font_applied", fn=_custom_font_applied),
            ],
            tags=["cross-browser", "css"],
        ),
        Scenario(
            id="cross-browser-javascript",
            name="JavaScript functionality across browsers",
            path=path,
            probes={"js_support": JS_SUPPORT_PROBE},
            rules=[
                ProbeEquals(probe="js_support.es6Support", expected=True),
                ProbeEquals(probe="js_support.arrayMethods", expected=True),
                ProbeEquals(probe="js_support.promises", expected=True),
            ],
            tags=["cross-browser", "javascript"],
        ),
        Scenario(
            id="cross-browser-mobile",
            name="Mobile browser compatibility",
            path=path,
            mobile_only=True,
            probes={"touch_targets": TOUCH_TARGETS_PROBE},
            dom_queries=[DomQuery(selector=TOUCH_TARGETS_SELECTOR)],
            steps=[ScenarioStep(action="screenshot", target="mobile")],
            rules=[
                DomAttributeContains(
                    selector='meta[name="viewport"]',
                    attribute="content",
                    substring="width=device-width",
                )
            ],
            tags=["cross-browser", "mobile"],
        ),
        Scenario(
            id="cross-browser-features",
            name="Feature detection and polyfills",
            path=path,
            probes={"features": FEATURES_PROBE},
            rules=[ProbeEquals(probe="features.fetch", expected=True)],
            tags=["cross-browser", "features"],
        ),
    ]
