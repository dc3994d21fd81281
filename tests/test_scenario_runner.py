"""Unit tests for scenario execution inside a session."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from browser_conformance.browser import (
    ArtifactCollector,
    BrowserEnvironmentError,
    BrowserSessionManager,
)
from browser_conformance.models import (
    ArtifactKind,
    BrowserType,
    CellKey,
    DomTextContains,
    NavigationErrorContains,
    NetworkProfile,
    ProbeEquals,
    Scenario,
    ScenarioStep,
    StatusEquals,
    TitleEquals,
    VerdictKind,
    Viewport,
)
from browser_conformance.orchestration import ScenarioRunner

from fakes import FakeResource, FakeSite, make_manager

SITE = FakeSite(
    {
        "/": FakeResource(
            title="Home",
            headers={"X-Frame-Options": "DENY"},
            dom={"#login": {"texts": ["Log in"]}, "h1": {"texts": ["Welcome"]}},
            probes={"() => window.appReady": True},
        ),
        "/crash": FakeResource(crash=True),
    }
)

CELL = CellKey(engine=BrowserType.CHROMIUM, viewport=Viewport(), network_profile="baseline")


async def acquire(profile=None):
    sessions = BrowserSessionManager(make_manager(SITE))
    session = await sessions.acquire(BrowserType.CHROMIUM, Viewport(), profile)
    return sessions, session


class TestUrlResolution:
    """Test URL building."""

    @pytest.mark.parametrize(
        "base_url,path,expected",
        [
            ("https://app.example.com", "/", "https://app.example.com/"),
            ("https://app.example.com/", "/admin/invalid", "https://app.example.com/admin/invalid"),
            ("https://app.example.com/base", "users/1", "https://app.example.com/base/users/1"),
            ("https://app.example.com", "https://other.example.com/x", "https://other.example.com/x"),
        ],
    )
    def test_resolve_url(self, base_url, path, expected):
        assert ScenarioRunner(base_url).resolve_url(path) == expected


class TestRun:
    """Test navigation, steps and evaluation."""

    @pytest.mark.asyncio
    async def test_navigation_recorded_with_lowercase_headers(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com", wait_until="domcontentloaded")
        scenario = Scenario(id="home", rules=[StatusEquals(code=200)])

        snapshot, verdict = await runner.run(session, scenario, CELL)

        assert verdict.kind == VerdictKind.PASS
        assert snapshot.response.headers == {"x-frame-options": "DENY"}
        assert snapshot.requested_url == "https://app.example.com/"
        assert snapshot.timing.navigation_ms is not None
        assert session.page.goto_calls[0][1] == "domcontentloaded"

    @pytest.mark.asyncio
    async def test_scenario_wait_condition_overrides_default(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(id="home", wait_until="networkidle")

        await runner.run(session, scenario, CELL)

        assert session.page.goto_calls[0][1] == "networkidle"

    @pytest.mark.asyncio
    async def test_navigation_error_is_evidence(self):
        _, session = await acquire(NetworkProfile(name="offline", offline=True))
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(
            id="offline",
            steps=[ScenarioStep(action="click", target="#login")],
            rules=[StatusEquals(code=200)],
        )

        snapshot, verdict = await runner.run(session, scenario, CELL)

        assert "ERR_INTERNET_DISCONNECTED" in snapshot.navigation_error
        assert snapshot.response is None
        assert verdict.kind == VerdictKind.FAIL
        assert verdict.error is None
        assert session.page.actions == []

    @pytest.mark.asyncio
    async def test_page_loads_after_network_restored(self):
        """Test the offline error is kept while a reload after reconnecting succeeds."""
        _, session = await acquire(NetworkProfile(name="offline", offline=True))
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(
            id="offline-recovery",
            steps=[
                ScenarioStep(action="restore_network"),
                ScenarioStep(action="navigate", target="/"),
            ],
            steps_after_failed_navigation=True,
            rules=[
                NavigationErrorContains(substring="ERR_INTERNET_DISCONNECTED"),
                TitleEquals(expected="Home"),
            ],
        )

        snapshot, verdict = await runner.run(session, scenario, CELL)

        assert verdict.kind == VerdictKind.PASS
        assert verdict.error is None
        assert snapshot.title == "Home"
        assert "ERR_INTERNET_DISCONNECTED" in snapshot.navigation_error
        assert not session.simulator.attached
        assert session.context.route_handler is None

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(
            id="login",
            steps=[
                ScenarioStep(action="fill", target="#login", value="admin"),
                ScenarioStep(action="click", target="#login"),
                ScenarioStep(action="set_viewport", value={"width": 375, "height": 667}),
                ScenarioStep(action="wait_for_load_state", target="networkidle"),
            ],
        )

        _, verdict = await runner.run(session, scenario, CELL)

        assert verdict.kind == VerdictKind.PASS
        assert session.page.actions == [
            ("fill", ("#login", "admin")),
            ("click", "#login"),
            ("set_viewport", {"width": 375, "height": 667}),
            ("wait_for_load_state", "networkidle"),
        ]

    @pytest.mark.asyncio
    async def test_failed_step_fails_verdict_but_rules_evaluated(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(
            id="broken",
            steps=[
                ScenarioStep(action="wait_for_selector", target="#missing", timeout_ms=100),
                ScenarioStep(action="click", target="#login"),
            ],
            rules=[DomTextContains(selector="h1", substring="Welcome")],
        )

        _, verdict = await runner.run(session, scenario, CELL)

        assert verdict.kind == VerdictKind.FAIL
        assert verdict.error.startswith("Step 1 wait_for_selector('#missing') failed")
        assert verdict.outcomes[0].passed is True
        # Later steps are not run
        assert session.page.actions == []

    @pytest.mark.asyncio
    async def test_probes_collected(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com")
        scenario = Scenario(
            id="ready",
            probes={"ready": "() => window.appReady"},
            rules=[ProbeEquals(probe="ready", expected=True)],
        )

        snapshot, verdict = await runner.run(session, scenario, CELL)

        assert snapshot.probes == {"ready": True}
        assert verdict.kind == VerdictKind.PASS

    @pytest.mark.asyncio
    async def test_screenshot_step_adds_artifact(self, tmp_path):
        _, session = await acquire()
        runner = ScenarioRunner(
            "https://app.example.com", artifact_collector=ArtifactCollector(tmp_path)
        )
        scenario = Scenario(id="shot", steps=[ScenarioStep(action="screenshot", target="desktop")])

        _, verdict = await runner.run(session, scenario, CELL)

        assert len(verdict.artifacts) == 1
        artifact = verdict.artifacts[0]
        assert artifact.kind == ArtifactKind.SCREENSHOT
        assert artifact.path.endswith("shot-chromium-1280x720-baseline-desktop.png")

    @pytest.mark.asyncio
    async def test_crash_raises_environment_error(self):
        _, session = await acquire()
        runner = ScenarioRunner("https://app.example.com")

        with pytest.raises(BrowserEnvironmentError):
            await runner.run(session, Scenario(id="crash", path="/crash"), CELL)

        assert session.crashed is True
