"""Deterministic network condition simulation for browser sessions.

This module provides the NetworkConditionSimulator class which routes every
request of a browser context through Playwright's route API and applies the
latency, offline and failure-rate settings of a NetworkProfile.

Failure and jitter draws are seeded by the profile seed and the request
sequence number, never by wall-clock randomness, so repeated runs of the same
scenario make the same routing decisions.
"""

import asyncio
import logging
import random
import time
from typing import Callable, List, Optional

from playwright.async_api import BrowserContext, Request, Route

from browser_conformance.browser.base import SessionAttachment
from browser_conformance.models.browser_models import NetworkProfile
from browser_conformance.models.snapshot_models import (
    InterceptionAction,
    InterceptionRecord,
)

logger = logging.getLogger(__name__)

ROUTE_PATTERN = "**/*"
OFFLINE_ERROR_CODE = "internetdisconnected"
FAILURE_ERROR_CODE = "failed"


def _draw(seed: int, sequence: int, stream: int) -> float:
    """Seeded uniform draw in [0, 1) for one request."""
    return random.Random((seed << 40) ^ (stream << 32) ^ sequence).random()


class NetworkConditionSimulator(SessionAttachment):
    """Apply a NetworkProfile to all requests of one browser context.

    Once attached, the simulator owns every routing decision for the
    context. It must be detached before the context is released.

    Example:
        simulator = NetworkConditionSimulator(clock=session.clock)
        await simulator.attach(context, NetworkProfile(latency_ms=200))
        ...
        await simulator.detach()
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """Initialize the simulator.

        Args:
            clock: Millisecond clock shared with the session collector
        """
        self.profile: Optional[NetworkProfile] = None
        self.records: List[InterceptionRecord] = []
        self._context: Optional[BrowserContext] = None
        self._clock = clock or (lambda: time.monotonic() * 1000.0)
        self._sequence = 0
        self._routed = False

    @property
    def attached(self) -> bool:
        return self._context is not None

    async def attach(
        self, context: BrowserContext, profile: Optional[NetworkProfile]
    ) -> None:
        """Start routing requests of ``context`` through ``profile``.

        A missing or no-op profile attaches without installing a route, so
        requests go straight to the network.

        Raises:
            RuntimeError: If the simulator is already attached
        """
        if self.attached:
            raise RuntimeError("Network simulator is already attached to a context")

        self.profile = profile
        self._context = context

        if profile is None or profile.is_noop:
            logger.debug("No-op network profile; requests are not intercepted")
            return

        await context.route(ROUTE_PATTERN, self._handle)
        self._routed = True
        logger.info(
            f"Network simulation attached (profile={profile.name}, "
            f"latency={profile.latency_ms}ms, offline={profile.offline}, "
            f"failure_rate={profile.failure_rate})"
        )

    async def detach(self) -> None:
        """Remove the route installed by attach()."""
        context = self._context
        if context is None:
            return

        self._context = None
        if not self._routed:
            return

        self._routed = False
        await context.unroute(ROUTE_PATTERN, self._handle)
        logger.debug(f"Network simulation detached ({len(self.records)} requests routed)")

    def should_fail(self, sequence: int) -> bool:
        """Seeded failure decision for the request with this sequence number."""
        if self.profile is None or self.profile.failure_rate <= 0.0:
            return False
        return _draw(self.profile.seed, sequence, 0) < self.profile.failure_rate

    def delay_ms(self, sequence: int) -> float:
        """Delay applied before continuing the request with this sequence number."""
        if self.profile is None:
            return 0.0
        delay = float(self.profile.latency_ms)
        if self.profile.jitter_ms:
            delay += round(_draw(self.profile.seed, sequence, 1) * self.profile.jitter_ms)
        return delay

    async def _handle(self, route: Route, request: Request) -> None:
        """Route handler installed on the context."""
        sequence = self._sequence
        self._sequence += 1
        intercepted_at = self._clock()
        profile = self.profile

        if profile is not None and profile.offline:
            await self._abort(route, request, sequence, intercepted_at, OFFLINE_ERROR_CODE)
            return

        if self.should_fail(sequence):
            await self._abort(route, request, sequence, intercepted_at, FAILURE_ERROR_CODE)
            return

        delay = self.delay_ms(sequence)
        if delay > 0:
            logger.debug(f"Delaying request #{sequence} {request.url} by {delay:.0f}ms")
            await asyncio.sleep(delay / 1000.0)

        released_at = self._clock()
        self.records.append(
            InterceptionRecord(
                sequence=sequence,
                url=request.url,
                method=request.method,
                action=InterceptionAction.CONTINUED,
                intercepted_at_ms=intercepted_at,
                released_at_ms=released_at,
            )
        )
        await route.continue_()

    async def _abort(
        self,
        route: Route,
        request: Request,
        sequence: int,
        intercepted_at: float,
        error_code: str,
    ) -> None:
        logger.debug(f"Aborting request #{sequence} {request.url} ({error_code})")
        self.records.append(
            InterceptionRecord(
                sequence=sequence,
                url=request.url,
                method=request.method,
                action=InterceptionAction.ABORTED,
                error_code=error_code,
                intercepted_at_ms=intercepted_at,
                released_at_ms=self._clock(),
            )
        )
        await route.abort(error_code)
