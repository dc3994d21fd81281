"""Harness configuration with environment variable and YAML loading."""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv

from browser_conformance.models.browser_models import (
    BASELINE_PROFILE,
    BrowserType,
    NetworkProfile,
    Viewport,
)

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONFORMANCE_"


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class MatrixDimensions(BaseModel):
    """Axes of the conformance matrix."""

    engines: List[BrowserType] = Field(
        default_factory=lambda: [BrowserType.CHROMIUM],
        description="Browser engines to run",
    )
    viewports: List[Viewport] = Field(
        default_factory=lambda: [Viewport()], description="Viewports to run"
    )
    network_profiles: List[NetworkProfile] = Field(
        default_factory=lambda: [BASELINE_PROFILE],
        description="Network profiles to run",
    )

    @field_validator("network_profiles")
    @classmethod
    def _default_profile(cls, profiles: List[NetworkProfile]) -> List[NetworkProfile]:
        # No profile means one untouched network column
        return profiles or [BASELINE_PROFILE]

    @model_validator(mode="after")
    def _unique_cells(self) -> "MatrixDimensions":
        """Reject axes whose values would produce the same cell id."""
        axes = [
            ("engines", [engine.value for engine in self.engines]),
            ("viewports", [viewport.label for viewport in self.viewports]),
            ("network_profiles", [profile.name for profile in self.network_profiles]),
        ]
        for axis, keys in axes:
            duplicates = sorted({key for key in keys if keys.count(key) > 1})
            if duplicates:
                raise ValueError(f"Duplicate {axis} in matrix: {', '.join(duplicates)}")
        return self

    @property
    def cell_count(self) -> int:
        return len(self.engines) * len(self.viewports) * len(self.network_profiles)


class HarnessConfig(BaseModel):
    """Configuration for a conformance matrix run."""

    # Target
    base_url: str = Field(
        default_factory=lambda: os.getenv(f"{ENV_PREFIX}BASE_URL", "http://localhost:3000"),
        description="Base URL of the application under test",
    )

    # Matrix
    engines: List[BrowserType] = Field(
        default_factory=lambda: [
            BrowserType(name) for name in _env_list(f"{ENV_PREFIX}ENGINES", "chromium")
        ],
        description="Browser engines",
    )
    viewports: List[Viewport] = Field(
        default_factory=lambda: [Viewport()], description="Ordered viewports"
    )
    network_profiles: List[NetworkProfile] = Field(
        default_factory=list, description="Network profiles (empty = baseline only)"
    )

    # Execution
    concurrency: int = Field(
        default_factory=lambda: int(os.getenv(f"{ENV_PREFIX}CONCURRENCY", "4")),
        ge=1,
        description="Maximum simultaneous sessions",
    )
    cell_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv(f"{ENV_PREFIX}CELL_TIMEOUT_MS", "60000")),
        gt=0,
        description="Per-cell timeout in milliseconds",
    )
    navigation_timeout_ms: int = Field(
        default_factory=lambda: int(
            os.getenv(f"{ENV_PREFIX}NAVIGATION_TIMEOUT_MS", "30000")
        ),
        gt=0,
        description="Navigation timeout in milliseconds",
    )
    wait_until: str = Field(
        default_factory=lambda: os.getenv(f"{ENV_PREFIX}WAIT_UNTIL", "load"),
        description="Default navigation wait condition",
    )
    headless: bool = Field(
        default_factory=lambda: os.getenv(f"{ENV_PREFIX}HEADLESS", "true").lower()
        == "true",
        description="Run browsers headless",
    )
    reuse_engines: bool = Field(
        default=True, description="Pool launched browsers per engine across cells"
    )
    environment_retries: int = Field(
        default=1, ge=0, description="Retries after a browser environment failure"
    )
    retry_backoff_s: float = Field(
        default=0.5, ge=0.0, description="Delay before retrying a cell"
    )
    release_timeout_ms: int = Field(
        default=10000, gt=0, description="Bound for each session teardown step"
    )

    # Artifacts
    artifacts_dir: str = Field(
        default_factory=lambda: os.getenv(f"{ENV_PREFIX}ARTIFACTS_DIR", "test-results"),
        description="Directory for screenshots and diagnostic dumps",
    )
    capture_on_success: bool = Field(
        default=False, description="Also capture artifacts for passing cells"
    )
    capture_full_page: bool = Field(default=True, description="Full-page screenshots")
    dump_diagnostics: bool = Field(
        default=True, description="Write snapshot JSON for failing cells"
    )

    # Logging
    log_level: str = Field(
        default_factory=lambda: os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
        description="Root log level",
    )

    class Config:
        """Pydantic config."""

        env_file = ".env"
        env_file_encoding = "utf-8"

    @model_validator(mode="after")
    def _check_matrix(self) -> "HarnessConfig":
        self.dimensions
        return self

    @property
    def dimensions(self) -> MatrixDimensions:
        return MatrixDimensions(
            engines=self.engines,
            viewports=self.viewports,
            network_profiles=self.network_profiles,
        )

    @property
    def cell_timeout_s(self) -> float:
        return self.cell_timeout_ms / 1000.0


def load_config(config_path: Optional[Union[str, Path]] = None) -> HarnessConfig:
    """
    Load harness configuration.

    Configuration is merged in this order (later overrides earlier):
    1. Default values (including CONFORMANCE_* variables read by field defaults)
    2. YAML file at config_path, either its 'conformance' section or the whole file
    3. Scalar CONFORMANCE_* environment overrides

    Args:
        config_path: Optional YAML file path

    Returns:
        Merged HarnessConfig instance
    """
    merged: Dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
            if "conformance" in file_config:
                merged.update(file_config["conformance"])
            else:
                merged.update(file_config)
            logger.debug(f"Loaded config from {path}")
        else:
            logger.warning(f"Config file not found: {path}")

    merged.update(_get_env_overrides())

    return HarnessConfig(**merged)


def _get_env_overrides() -> Dict[str, Any]:
    """
    Get scalar overrides from CONFORMANCE_* environment variables.

    Boolean values: "true", "1", "yes" are True; "false", "0", "no" are False.
    Numeric values are converted automatically. List-valued fields are only
    read through field defaults.
    """
    overrides: Dict[str, Any] = {}
    scalar_fields = {
        name
        for name, field in HarnessConfig.model_fields.items()
        if name not in ("engines", "viewports", "network_profiles")
    }

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        config_key = key[len(ENV_PREFIX) :].lower()
        if config_key not in scalar_fields:
            continue

        if value.lower() in ("true", "yes"):
            overrides[config_key] = True
        elif value.lower() in ("false", "no"):
            overrides[config_key] = False
        else:
            try:
                overrides[config_key] = int(value)
            except ValueError:
                try:
                    overrides[config_key] = float(value)
                except ValueError:
                    overrides[config_key] = value

    return overrides


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for a harness run."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    # Playwright's asyncio transport is chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
