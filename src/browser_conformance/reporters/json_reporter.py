"""JSON report generator for conformance runs.

This module generates structured JSON reports of a MatrixReport for CI
consumption. Verdicts keep their matrix order.
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Union
from datetime import datetime

from browser_conformance.models.verdict_models import (
    MatrixReport,
    Verdict,
    VerdictKind,
)

logger = logging.getLogger(__name__)


class JsonReporter:
    """
    Generate JSON reports for matrix runs.

    PATTERN: Structured JSON output for programmatic access
    GOTCHA: Handles datetime and enum serialization
    """

    def __init__(self, pretty: bool = True):
        """
        Initialize JSON reporter.

        Args:
            pretty: Whether to pretty-print JSON output
        """
        self.pretty = pretty

    def _dumps(self, data: Dict[str, Any]) -> str:
        if self.pretty:
            return json.dumps(data, indent=2, default=str)
        return json.dumps(data, default=str)

    def generate_report(self, report: MatrixReport) -> str:
        """
        Generate JSON report from a matrix run.

        Args:
            report: Matrix report to serialize

        Returns:
            JSON string
        """
        logger.info(f"Generating JSON report: {report.report_id}")
        json_str = self._dumps(self._report_to_dict(report))
        logger.info(f"JSON report generated ({len(json_str)} bytes)")
        return json_str

    def write_report(self, report: MatrixReport, path: Union[str, Path]) -> Path:
        """
        Write the JSON report to a file, creating parent directories.

        Args:
            report: Matrix report
            path: Destination file

        Returns:
            Path written
        """
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(self.generate_report(report))
        logger.info(f"Report written: {output}")
        return output

    def _report_to_dict(self, report: MatrixReport) -> Dict[str, Any]:
        return {
            "report_id": report.report_id,
            "base_url": report.base_url,
            "started_at": report.started_at.isoformat(),
            "finished_at": (
                report.finished_at.isoformat() if report.finished_at else None
            ),
            "status": {
                "succeeded": report.succeeded,
                "exit_code": report.exit_code,
            },
            "summary": self._serialize_summary(report),
            "verdicts": [self._serialize_verdict(v) for v in report.verdicts],
            "warnings": [w.model_dump(mode="json") for w in report.warnings],
            "artifacts": [a.model_dump(mode="json") for a in report.artifacts],
            "metadata": {
                "generation_timestamp": datetime.now().isoformat(),
            },
        }

    def _serialize_summary(self, report: MatrixReport) -> Dict[str, Any]:
        """Serialize roll-up counts."""
        return {
            "total": report.total,
            "passed": report.passed,
            "failed": report.failed,
            "skipped": report.skipped,
            "timeouts": report.timeouts,
            "environment_errors": report.environment_errors,
        }

    def _serialize_verdict(self, verdict: Verdict) -> Dict[str, Any]:
        """Serialize one verdict with its rule outcomes."""
        data: Dict[str, Any] = {
            "scenario_id": verdict.scenario_id,
            "cell": verdict.cell.id if verdict.cell else None,
            "kind": verdict.kind.value,
            "elapsed_ms": round(verdict.elapsed_ms, 1),
            "attempts": verdict.attempts,
        }
        if verdict.kind == VerdictKind.SKIPPED:
            data["skip_reason"] = verdict.skip_reason
            return data

        data["error"] = verdict.error
        data["outcomes"] = [o.model_dump(mode="json") for o in verdict.outcomes]
        data["artifacts"] = [a.path for a in verdict.artifacts]
        data["warnings"] = [w.message for w in verdict.warnings]
        return data

    def generate_summary(self, report: MatrixReport) -> str:
        """
        Generate simplified JSON with counts and failing cells only.

        Args:
            report: Matrix report

        Returns:
            JSON string
        """
        failing: List[Dict[str, Any]] = [
            {
                "scenario_id": verdict.scenario_id,
                "cell": verdict.cell.id if verdict.cell else None,
                "kind": verdict.kind.value,
                "failed_rules": [o.rule_id for o in verdict.failed_outcomes],
                "error": verdict.error,
            }
            for verdict in report.failing_verdicts()
        ]
        return self._dumps(
            {
                "report_id": report.report_id,
                "succeeded": report.succeeded,
                "summary": self._serialize_summary(report),
                "failing": failing,
            }
        )
