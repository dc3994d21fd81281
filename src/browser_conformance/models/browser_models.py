"""Browser matrix data models for conformance runs.

This module defines the Pydantic models describing the dimensions of a
conformance matrix: browser engines, viewports and simulated network
profiles.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class BrowserType(str, Enum):
    """Supported browser engines."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class Viewport(BaseModel):
    """Browser viewport configuration."""

    width: int = Field(default=1280, gt=0, description="Viewport width")
    height: int = Field(default=720, gt=0, description="Viewport height")
    device_scale_factor: float = Field(default=1.0, description="Device pixel ratio")
    is_mobile: bool = Field(default=False, description="Mobile viewport")
    has_touch: bool = Field(default=False, description="Touch support")
    name: Optional[str] = Field(default=None, description="Human readable name")

    class Config:
        """Pydantic configuration."""

        frozen = True

    @property
    def label(self) -> str:
        """Short label used in cell identifiers and artifact names.

        Mobile viewports carry a suffix so they never share a label with a
        desktop viewport of the same size.
        """
        size = f"{self.width}x{self.height}"
        return f"{size}-mobile" if self.is_mobile else size

    def matches(self, other: "Viewport") -> bool:
        """Check whether two viewports describe the same matrix column."""
        return (
            self.width == other.width
            and self.height == other.height
            and self.is_mobile == other.is_mobile
        )


class NetworkProfile(BaseModel):
    """Simulated network conditions applied to one session.

    A profile with default values leaves traffic untouched.
    """

    name: str = Field(default="baseline", description="Profile name")
    latency_ms: int = Field(default=0, ge=0, description="Delay added per request")
    offline: bool = Field(default=False, description="Abort every request")
    failure_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Fraction of requests to abort"
    )
    seed: int = Field(default=0, description="Seed for failure and jitter draws")
    jitter_ms: int = Field(
        default=0, ge=0, description="Upper bound of seeded extra delay per request"
    )

    class Config:
        """Pydantic configuration."""

        frozen = True

    @property
    def is_noop(self) -> bool:
        """Whether this profile leaves requests untouched."""
        return (
            self.latency_ms == 0
            and self.jitter_ms == 0
            and not self.offline
            and self.failure_rate == 0.0
        )


BASELINE_PROFILE = NetworkProfile()

DESKTOP_VIEWPORT = Viewport(width=1920, height=1080, name="desktop")
TABLET_VIEWPORT = Viewport(width=768, height=1024, has_touch=True, name="tablet")
MOBILE_VIEWPORT = Viewport(
    width=375,
    height=667,
    device_scale_factor=2.0,
    is_mobile=True,
    has_touch=True,
    name="mobile",
)

SLOW_NETWORK_PROFILE = NetworkProfile(name="slow", latency_ms=1000)
OFFLINE_PROFILE = NetworkProfile(name="offline", offline=True)
