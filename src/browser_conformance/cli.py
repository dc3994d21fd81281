"""Command-line entry point for conformance runs."""

import logging
import sys
from typing import Optional, Tuple

import click

from browser_conformance.config.harness_config import load_config
from browser_conformance.models.browser_models import (
    BASELINE_PROFILE,
    BrowserType,
    OFFLINE_PROFILE,
    SLOW_NETWORK_PROFILE,
)
from browser_conformance.runner import run
from browser_conformance.suites import (
    cross_browser_scenarios,
    error_handling_scenarios,
    homepage_scenarios,
    security_scenarios,
)

logger = logging.getLogger(__name__)

SUITES = {
    "homepage": homepage_scenarios,
    "security": security_scenarios,
    "error-handling": error_handling_scenarios,
    "cross-browser": cross_browser_scenarios,
}

NETWORK_PROFILES = {
    profile.name: profile
    for profile in (BASELINE_PROFILE, SLOW_NETWORK_PROFILE, OFFLINE_PROFILE)
}


@click.command()
@click.option(
    "--config", "config_path",
    type=click.Path(),
    help="Config file path",
)
@click.option(
    "--base-url",
    help="Override the application base URL",
)
@click.option(
    "--engine", "engines",
    multiple=True,
    type=click.Choice([engine.value for engine in BrowserType]),
    help="Browser engine (repeatable)",
)
@click.option(
    "--network-profile", "network_profiles",
    multiple=True,
    type=click.Choice(sorted(NETWORK_PROFILES)),
    help="Network profile preset (repeatable, default: baseline only)",
)
@click.option(
    "--suite", "suites",
    multiple=True,
    type=click.Choice(sorted(SUITES)),
    help="Built-in suite to run (repeatable, default: all)",
)
@click.option(
    "--report", "report_path",
    type=click.Path(),
    help="JSON report path",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def main(
    config_path: Optional[str],
    base_url: Optional[str],
    engines: Tuple[str, ...],
    network_profiles: Tuple[str, ...],
    suites: Tuple[str, ...],
    report_path: Optional[str],
    verbose: bool,
) -> None:
    """
    Run browser conformance suites against an application.

    Run everything with the configured matrix:
        browser-conformance

    Security suite on two engines:
        browser-conformance --suite security --engine chromium --engine firefox

    Error handling under the baseline and offline presets:
        browser-conformance --suite error-handling --network-profile baseline --network-profile offline
    """
    config = load_config(config_path)

    updates = {}
    if base_url:
        updates["base_url"] = base_url
    if engines:
        updates["engines"] = [BrowserType(engine) for engine in dict.fromkeys(engines)]
    if network_profiles:
        updates["network_profiles"] = [
            NETWORK_PROFILES[name] for name in dict.fromkeys(network_profiles)
        ]
    if verbose:
        updates["log_level"] = "DEBUG"
    if updates:
        config = config.model_copy(update=updates)

    scenarios = []
    for name in suites or SUITES:
        scenarios.extend(SUITES[name]())

    try:
        exit_code = run(scenarios, config, report_path=report_path)
    except KeyboardInterrupt:
        exit_code = 130
    except Exception as e:
        if verbose:
            logger.exception("Conformance run error")
        else:
            click.echo(f"Error: {e}", err=True)
        exit_code = 2

    sys.exit(exit_code)
