"""Scenario definitions for conformance runs.

A Scenario names a target path, the interaction steps to perform after
navigation, and the rules its evidence must satisfy. Scenarios are frozen and
can be built in Python or loaded from YAML through ``Scenario.model_validate``.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from browser_conformance.models.browser_models import (
    BrowserType,
    NetworkProfile,
    Viewport,
)
from browser_conformance.models.rule_models import Rule
from browser_conformance.models.snapshot_models import DomQuery

WaitCondition = Literal["load", "domcontentloaded", "networkidle", "commit"]


class ScenarioStep(BaseModel):
    """Interaction performed after the initial navigation."""

    action: Literal[
        "navigate",
        "click",
        "fill",
        "wait_for_selector",
        "wait_for_timeout",
        "wait_for_load_state",
        "set_viewport",
        "evaluate",
        "screenshot",
        "restore_network",
    ] = Field(description="Action type")
    target: Optional[str] = Field(
        default=None, description="Selector, path, load state or script"
    )
    value: Optional[Any] = Field(default=None, description="Input value if applicable")
    timeout_ms: int = Field(default=5000, description="Step timeout")

    class Config:
        """Pydantic configuration."""

        frozen = True

    def describe(self) -> str:
        return f"{self.action}({self.target!r})" if self.target else self.action


class Scenario(BaseModel):
    """Named unit of verification."""

    id: str = Field(description="Scenario identifier")
    name: str = Field(default="", description="Scenario name")
    description: str = Field(default="", description="Scenario description")
    path: str = Field(default="/", description="Target path relative to base URL")

    rules: List[Rule] = Field(default_factory=list, description="Assertion rules")
    steps: List[ScenarioStep] = Field(
        default_factory=list, description="Steps run after navigation"
    )
    steps_after_failed_navigation: bool = Field(
        default=False,
        description="Run steps even when the main navigation failed (recovery checks)",
    )
    probes: Dict[str, str] = Field(
        default_factory=dict, description="Runtime probes: name -> JS expression"
    )
    dom_queries: List[DomQuery] = Field(
        default_factory=list, description="Extra DOM queries to capture"
    )

    # Scope: cells not matching these are skipped
    network_profile: Optional[NetworkProfile] = Field(
        default=None, description="Only run under this network profile"
    )
    viewport: Optional[Viewport] = Field(
        default=None, description="Only run at this viewport"
    )
    engines: Optional[List[BrowserType]] = Field(
        default=None, description="Only run on these engines"
    )
    mobile_only: bool = Field(default=False, description="Only run on mobile viewports")

    # Navigation
    wait_until: Optional[WaitCondition] = Field(
        default=None, description="Navigation wait condition override"
    )
    javascript_enabled: bool = Field(default=True, description="Enable JavaScript")
    capture_full_page: Optional[bool] = Field(
        default=None, description="Full-page screenshot override"
    )

    tags: List[str] = Field(default_factory=list, description="Free-form tags")

    class Config:
        """Pydantic configuration."""

        frozen = True

    def skip_reason(
        self, engine: BrowserType, viewport: Viewport, profile: NetworkProfile
    ) -> Optional[str]:
        """Return why a matrix cell is out of scope, or None if it applies."""
        if self.engines is not None and engine not in self.engines:
            return f"engine {engine.value} not in scenario engines"
        if self.viewport is not None and not self.viewport.matches(viewport):
            return f"viewport {viewport.label} does not match {self.viewport.label}"
        if self.mobile_only and not viewport.is_mobile:
            return f"viewport {viewport.label} is not mobile"
        if (
            self.network_profile is not None
            and self.network_profile.name != profile.name
        ):
            return f"network profile {profile.name} is not {self.network_profile.name}"
        return None
