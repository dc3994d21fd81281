"""Harness configuration module."""

from .harness_config import (
    HarnessConfig,
    MatrixDimensions,
    load_config,
    configure_logging,
)

__all__ = [
    "HarnessConfig",
    "MatrixDimensions",
    "load_config",
    "configure_logging",
]
