"""Diagnostic artifact capture for conformance cells.

This module provides the ArtifactCollector class which saves screenshots and
serialized snapshots for a cell. Capture problems are returned as
HarnessWarnings; they never change a verdict.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional, Union

from playwright.async_api import Page

from browser_conformance.models.snapshot_models import ObservableSnapshot
from browser_conformance.models.verdict_models import (
    ArtifactKind,
    ArtifactRef,
    CellKey,
    HarnessWarning,
    Verdict,
)

logger = logging.getLogger(__name__)

CaptureResult = Union[ArtifactRef, HarnessWarning]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def artifact_stem(scenario_id: str, cell: CellKey, suffix: Optional[str] = None) -> str:
    """File name stem for a cell artifact: ``{scenario}-{cell}[-suffix]``."""
    parts = [scenario_id, cell.id]
    if suffix:
        parts.append(suffix)
    return _UNSAFE_CHARS.sub("_", "-".join(parts))


class ArtifactCollector:
    """Capture screenshots and diagnostic dumps for cells.

    Attributes:
        artifacts_dir: Directory where artifact files are written
    """

    def __init__(self, artifacts_dir: Union[str, Path] = "test-results"):
        """Initialize the artifact collector.

        Args:
            artifacts_dir: Directory to save artifacts (created on first capture)
        """
        self.artifacts_dir = Path(artifacts_dir)

    def _prepare(self) -> None:
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)

    async def capture_screenshot(
        self,
        page: Page,
        scenario_id: str,
        cell: CellKey,
        suffix: Optional[str] = None,
        full_page: bool = True,
    ) -> CaptureResult:
        """Capture a screenshot of the current page.

        Args:
            page: Playwright page instance
            scenario_id: Scenario the cell belongs to
            cell: Matrix cell
            suffix: Optional name suffix (e.g. a step label)
            full_page: Whether to capture the full scrollable page

        Returns:
            ArtifactRef on success, HarnessWarning on failure
        """
        path = self.artifacts_dir / f"{artifact_stem(scenario_id, cell, suffix)}.png"
        try:
            self._prepare()
            await page.screenshot(path=str(path), full_page=full_page)
            logger.info(f"Screenshot saved: {path}")
            return ArtifactRef(
                kind=ArtifactKind.SCREENSHOT,
                path=str(path.absolute()),
                scenario_id=scenario_id,
                cell_id=cell.id,
            )
        except Exception as e:
            logger.warning(f"Failed to capture screenshot '{path.name}': {e}")
            return HarnessWarning(
                code="artifact_failed",
                message=f"Screenshot capture failed: {e}",
                scenario_id=scenario_id,
                cell_id=cell.id,
            )

    def dump_diagnostics(
        self,
        snapshot: ObservableSnapshot,
        verdict: Verdict,
    ) -> CaptureResult:
        """Write the snapshot and rule outcomes of a cell as JSON.

        Args:
            snapshot: Frozen snapshot the verdict was computed from
            verdict: Verdict for the cell

        Returns:
            ArtifactRef on success, HarnessWarning on failure
        """
        cell = verdict.cell
        cell_id = cell.id if cell else "unknown"
        stem = (
            artifact_stem(verdict.scenario_id, cell)
            if cell
            else _UNSAFE_CHARS.sub("_", verdict.scenario_id)
        )
        path = self.artifacts_dir / f"{stem}.json"
        try:
            self._prepare()
            payload = {
                "verdict": verdict.model_dump(mode="json"),
                "snapshot": snapshot.model_dump(mode="json", exclude={"content"}),
            }
            path.write_text(json.dumps(payload, indent=2, default=str))
            logger.info(f"Diagnostics saved: {path}")
            return ArtifactRef(
                kind=ArtifactKind.DIAGNOSTICS,
                path=str(path.absolute()),
                scenario_id=verdict.scenario_id,
                cell_id=cell_id,
            )
        except Exception as e:
            logger.warning(f"Failed to write diagnostics '{path.name}': {e}")
            return HarnessWarning(
                code="artifact_failed",
                message=f"Diagnostic dump failed: {e}",
                scenario_id=verdict.scenario_id,
                cell_id=cell_id,
            )
