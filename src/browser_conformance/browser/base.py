"""Base classes and errors for browser session components.

This module defines the interface shared by everything that hooks into a
live browser session, and the error raised when the browser environment
itself (not the application under test) misbehaves.
"""

from abc import ABC, abstractmethod
from typing import Optional


class HarnessError(Exception):
    """Base class for harness-level errors."""


class BrowserEnvironmentError(HarnessError):
    """Browser engine failed to launch, crashed, or closed mid-session.

    Contained at the cell boundary and retried with a fresh launch; never
    reported as a scenario failure.
    """

    def __init__(self, message: str, engine: Optional[str] = None):
        self.engine = engine
        super().__init__(message)


# Driver error texts that mean the browser itself went away
_ENVIRONMENT_MARKERS = (
    "target closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "browser closed",
    "page crashed",
    "crashed",
    "connection closed",
)


def is_environment_failure(error: BaseException) -> bool:
    """Check whether a driver error signals a dead browser environment."""
    if isinstance(error, BrowserEnvironmentError):
        return True
    text = str(error).lower()
    return any(marker in text for marker in _ENVIRONMENT_MARKERS)


class SessionAttachment(ABC):
    """Component wired into a session before navigation and removed on release.

    Implementations must make detach() safe to call when attach() never ran
    or already detached.
    """

    @property
    @abstractmethod
    def attached(self) -> bool:
        """Whether the component is currently attached."""
        pass

    @abstractmethod
    async def detach(self) -> None:
        """Remove every hook installed by attach().

        Raises:
            Exception: Driver errors are propagated so release can report them
        """
        pass
