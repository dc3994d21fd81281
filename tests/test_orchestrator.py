"""Integration tests for the matrix orchestrator over fake engines."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import asyncio

import pytest

from browser_conformance.config import HarnessConfig, MatrixDimensions
from browser_conformance.models import (
    ArtifactKind,
    BASELINE_PROFILE,
    BrowserType,
    DESKTOP_VIEWPORT,
    HeaderEquals,
    MOBILE_VIEWPORT,
    OFFLINE_PROFILE,
    NavigationErrorContains,
    Scenario,
    ScenarioStep,
    StatusEquals,
    TitleEquals,
    VerdictKind,
    Viewport,
)
from browser_conformance.orchestration import MatrixOrchestrator
from browser_conformance.suites import error_handling_scenarios

from fakes import FakeResource, FakeSite, make_manager

HOME = FakeResource(
    title="Yalla Admin Web",
    headers={"x-frame-options": "DENY"},
    dom={"h1": {"texts": ["Welcome"]}},
)


def make_orchestrator(tmp_path, site=None, **overrides):
    settings = {
        "base_url": "https://app.example.com",
        "engines": [BrowserType.CHROMIUM],
        "artifacts_dir": str(tmp_path / "artifacts"),
        "retry_backoff_s": 0.0,
        "concurrency": 4,
    }
    settings.update(overrides)
    manager = make_manager(site or FakeSite({"/": HOME}))
    return MatrixOrchestrator(config=HarnessConfig(**settings), playwright_manager=manager)


def assert_release_parity(orchestrator):
    sessions = orchestrator.session_manager
    assert sessions.acquired_count == sessions.released_count
    assert sessions.active_sessions == []


class TestMatrixExpansion:
    """Test cell expansion and scoping."""

    @pytest.mark.asyncio
    async def test_not_found_route_passes_status_rule(self, tmp_path):
        """Example: /nonexistent-page with StatusEquals 404 passes."""
        orchestrator = make_orchestrator(tmp_path)
        scenario = Scenario(id="missing", path="/nonexistent-page", rules=[StatusEquals(code=404)])

        report = await orchestrator.run([scenario])

        assert report.total == 1
        assert report.verdicts[0].kind == VerdictKind.PASS
        assert report.exit_code == 0

    @pytest.mark.asyncio
    async def test_scoped_viewport_yields_two_skipped(self, tmp_path):
        """Example: 2 engines x 2 viewports x 1 profile, one-viewport scope."""
        orchestrator = make_orchestrator(tmp_path)
        dimensions = MatrixDimensions(
            engines=[BrowserType.CHROMIUM, BrowserType.FIREFOX],
            viewports=[DESKTOP_VIEWPORT, MOBILE_VIEWPORT],
        )
        scenario = Scenario(
            id="mobile-home",
            viewport=MOBILE_VIEWPORT,
            rules=[TitleEquals(expected="Yalla Admin Web")],
        )

        report = await orchestrator.run([scenario], dimensions)

        kinds = [v.kind for v in report.verdicts]
        assert len(kinds) == 4
        assert kinds.count(VerdictKind.SKIPPED) == 2
        assert kinds.count(VerdictKind.PASS) == 2
        assert [v.cell.id for v in report.verdicts] == [
            "chromium-1920x1080-baseline",
            "chromium-375x667-mobile-baseline",
            "firefox-1920x1080-baseline",
            "firefox-375x667-mobile-baseline",
        ]
        # Skipped cells never acquire a session
        assert orchestrator.session_manager.acquired_count == 2
        assert report.exit_code == 0

    def test_mobile_and_desktop_of_same_size_get_distinct_ids(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        dimensions = MatrixDimensions(
            viewports=[
                Viewport(width=375, height=667),
                Viewport(width=375, height=667, is_mobile=True),
            ],
        )

        planned, _ = orchestrator.plan([Scenario(id="home")], dimensions)

        ids = [cell.id for _, cell, _, _ in planned]
        assert ids == ["chromium-375x667-baseline", "chromium-375x667-mobile-baseline"]

    @pytest.mark.asyncio
    async def test_one_verdict_per_scenario_and_cell(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        dimensions = MatrixDimensions(
            engines=[BrowserType.CHROMIUM, BrowserType.WEBKIT],
            viewports=[DESKTOP_VIEWPORT],
        )
        scenarios = [Scenario(id="a"), Scenario(id="b", mobile_only=True)]

        report = await orchestrator.run(scenarios, dimensions)

        keys = [(v.scenario_id, v.cell.id) for v in report.verdicts]
        assert len(keys) == len(set(keys)) == 4
        assert [v.scenario_id for v in report.verdicts] == ["a", "a", "b", "b"]

    @pytest.mark.asyncio
    async def test_out_of_scope_scenario_warns(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        scenario = Scenario(id="offline-only", network_profile=OFFLINE_PROFILE)

        report = await orchestrator.run([scenario])

        assert report.verdicts[0].kind == VerdictKind.SKIPPED
        assert [w.code for w in report.warnings] == ["scenario_out_of_scope"]
        assert report.succeeded is True

    @pytest.mark.asyncio
    async def test_offline_profile_records_navigation_error(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        dimensions = MatrixDimensions(network_profiles=[OFFLINE_PROFILE])
        scenario = Scenario(
            id="offline",
            network_profile=OFFLINE_PROFILE,
            rules=[NavigationErrorContains(substring="ERR_INTERNET_DISCONNECTED")],
        )

        report = await orchestrator.run([scenario], dimensions)

        assert report.verdicts[0].kind == VerdictKind.PASS
        assert report.verdicts[0].cell.network_profile == "offline"

    @pytest.mark.asyncio
    async def test_builtin_offline_scenario_recovers(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        dimensions = MatrixDimensions(network_profiles=[BASELINE_PROFILE, OFFLINE_PROFILE])
        offline = next(s for s in error_handling_scenarios() if s.id == "error-offline")

        report = await orchestrator.run([offline], dimensions)

        skipped, ran = report.verdicts
        assert skipped.kind == VerdictKind.SKIPPED
        assert ran.kind == VerdictKind.PASS
        assert [o.passed for o in ran.outcomes] == [True, True]
        assert_release_parity(orchestrator)


class TestFailureContainment:
    """Test failures stay inside their cell."""

    @pytest.mark.asyncio
    async def test_failing_rule_captures_artifacts(self, tmp_path):
        site = FakeSite({"/": FakeResource(headers={"x-frame-options": "SAMEORIGIN"})})
        orchestrator = make_orchestrator(tmp_path, site)
        scenario = Scenario(id="frames", rules=[HeaderEquals(key="x-frame-options", expected="DENY")])

        report = await orchestrator.run([scenario])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.FAIL
        assert verdict.outcomes[0].observed == "SAMEORIGIN"
        assert {a.kind for a in verdict.artifacts} == {
            ArtifactKind.SCREENSHOT,
            ArtifactKind.DIAGNOSTICS,
        }
        for artifact in verdict.artifacts:
            assert Path(artifact.path).exists()
        assert report.exit_code == 1
        assert report.failing_count == 1

    @pytest.mark.asyncio
    async def test_passing_cell_has_no_artifacts_by_default(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=200)])])
        assert report.verdicts[0].artifacts == ()

    @pytest.mark.asyncio
    async def test_capture_on_success(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path, capture_on_success=True)
        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=200)])])
        assert len(report.verdicts[0].artifacts) == 2

    @pytest.mark.asyncio
    async def test_failing_cell_does_not_affect_others(self, tmp_path):
        """Test isolation: a step failure in one cell leaves others passing."""
        orchestrator = make_orchestrator(tmp_path)
        broken = Scenario(
            id="broken",
            steps=[ScenarioStep(action="click", target="#does-not-exist")],
            rules=[TitleEquals(expected="Yalla Admin Web")],
        )
        healthy = Scenario(id="healthy", rules=[TitleEquals(expected="Yalla Admin Web")])

        report = await orchestrator.run([broken, healthy, healthy.model_copy(update={"id": "healthy-2"})])

        assert [v.kind for v in report.verdicts] == [
            VerdictKind.FAIL,
            VerdictKind.PASS,
            VerdictKind.PASS,
        ]
        assert "#does-not-exist" in report.verdicts[0].error
        assert report.verdicts[0].outcomes[0].passed is True
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_timeout_releases_session(self, tmp_path):
        site = FakeSite({"/": HOME, "/slow": FakeResource(delay_s=2.0)})
        orchestrator = make_orchestrator(tmp_path, site, cell_timeout_ms=50)

        report = await orchestrator.run([Scenario(id="slow", path="/slow"), Scenario(id="fast")])

        assert report.verdicts[0].kind == VerdictKind.TIMEOUT
        assert report.verdicts[0].attempts == 1
        assert report.verdicts[1].kind == VerdictKind.PASS
        assert report.timeouts == 1
        assert report.exit_code == 1
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_timeout_verdict_carries_screenshot(self, tmp_path):
        """Test the interrupted page is captured before its session is released."""
        site = FakeSite({"/": HOME, "/slow": FakeResource(delay_s=2.0)})
        orchestrator = make_orchestrator(tmp_path, site, cell_timeout_ms=50)

        report = await orchestrator.run([Scenario(id="slow", path="/slow")])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.TIMEOUT
        assert len(verdict.artifacts) == 1
        artifact = verdict.artifacts[0]
        assert artifact.kind == ArtifactKind.SCREENSHOT
        assert Path(artifact.path).name == "slow-chromium-1280x720-baseline-timeout.png"
        assert Path(artifact.path).exists()
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_hung_timeout_screenshot_is_warning(self, tmp_path, mocker):
        site = FakeSite({"/": HOME, "/slow": FakeResource(delay_s=2.0)})
        orchestrator = make_orchestrator(
            tmp_path, site, cell_timeout_ms=50, release_timeout_ms=50
        )

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        mocker.patch.object(orchestrator.artifact_collector, "capture_screenshot", side_effect=hang)

        report = await orchestrator.run([Scenario(id="slow", path="/slow")])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.TIMEOUT
        assert verdict.artifacts == ()
        assert [w.code for w in verdict.warnings] == ["artifact_failed"]
        assert verdict.warnings[0].cell_id == "chromium-1280x720-baseline"
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_one_deadline_covers_retries(self, tmp_path):
        """Test retry backoff counts against the cell timeout."""
        orchestrator = make_orchestrator(
            tmp_path, cell_timeout_ms=200, retry_backoff_s=1.0
        )
        orchestrator.playwright_manager.playwright.chromium.fail_launches = 1

        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=200)])])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.TIMEOUT
        assert verdict.attempts == 1
        assert verdict.elapsed_ms < 1000
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_fail(self, tmp_path, mocker):
        orchestrator = make_orchestrator(tmp_path)
        mocker.patch.object(orchestrator.runner, "run", side_effect=ValueError("runner bug"))

        report = await orchestrator.run([Scenario(id="home")])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.FAIL
        assert "ValueError" in verdict.error
        assert_release_parity(orchestrator)


class TestEnvironmentRetry:
    """Test environment failure retry."""

    @pytest.mark.asyncio
    async def test_launch_failure_retried_once(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        orchestrator.playwright_manager.playwright.chromium.fail_launches = 1

        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=200)])])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.PASS
        assert verdict.attempts == 2

    @pytest.mark.asyncio
    async def test_persistent_crash_is_environment_error(self, tmp_path):
        site = FakeSite({"/": HOME, "/crash": FakeResource(crash=True)})
        orchestrator = make_orchestrator(tmp_path, site, concurrency=1)
        chromium = orchestrator.playwright_manager.playwright.chromium

        report = await orchestrator.run([Scenario(id="crash", path="/crash"), Scenario(id="home")])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.ENVIRONMENT_ERROR
        assert verdict.attempts == 2
        assert report.environment_errors == 1
        assert report.verdicts[1].kind == VerdictKind.PASS
        # The crashed engine was evicted and relaunched
        assert len(chromium.launched) == 3
        assert orchestrator.session_manager.acquired_count == 3
        assert_release_parity(orchestrator)

    @pytest.mark.asyncio
    async def test_assertion_failures_not_retried(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=500)])])

        assert report.verdicts[0].kind == VerdictKind.FAIL
        assert report.verdicts[0].attempts == 1


class TestConcurrencyAndWarnings:
    """Test bounded concurrency and harness warnings."""

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path, concurrency=2)
        original = orchestrator.runner.run
        active = 0
        peak = 0

        async def tracking_run(session, scenario, cell):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            try:
                return await original(session, scenario, cell)
            finally:
                active -= 1

        orchestrator.runner.run = tracking_run
        scenarios = [Scenario(id=f"s{n}") for n in range(6)]

        report = await orchestrator.run(scenarios)

        assert report.passed == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_release_warning_surfaced_without_flipping_verdict(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path)
        browser = await orchestrator.playwright_manager.launch_browser(BrowserType.CHROMIUM)
        browser.context_close_error = Exception("close failed")

        report = await orchestrator.run([Scenario(id="home", rules=[StatusEquals(code=200)])])

        verdict = report.verdicts[0]
        assert verdict.kind == VerdictKind.PASS
        assert [w.code for w in verdict.warnings] == ["release_failed"]
        assert verdict.warnings[0].scenario_id == "home"
        assert [w.code for w in report.warnings] == ["release_failed"]
