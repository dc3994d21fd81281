"""Built-in conformance suites.

Each factory returns a list of Scenarios; ``all_scenarios`` concatenates
them in a fixed order.
"""

from typing import List

from browser_conformance.models.scenario_models import Scenario
from .cross_browser import cross_browser_scenarios
from .error_handling import error_handling_scenarios
from .homepage import homepage_scenarios
from .security import security_scenarios


def all_scenarios(title: str = "Yalla Admin Web") -> List[Scenario]:
    """Every built-in scenario, grouped by suite."""
    return (
        homepage_scenarios(title=title)
        + security_scenarios()
        + error_handling_scenarios(title=title)
        + cross_browser_scenarios(title=title)
    )


__all__ = [
    "all_scenarios",
    "cross_browser_scenarios",
    "error_handling_scenarios",
    "homepage_scenarios",
    "security_scenarios",
]
