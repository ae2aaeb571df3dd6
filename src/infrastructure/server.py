"""HTTP server lifecycle: startup banner and graceful shutdown.

``ManagedServer`` is a uvicorn ``Server`` that reports its progress to a
``ShutdownCoordinator``. The coordinator owns the process state machine::

    STARTING -> LISTENING -> DRAINING -> STOPPED

SIGINT and SIGTERM move the server to DRAINING. uvicorn then stops
accepting connections, lets in-flight requests finish and returns from
``serve``; the caller marks STOPPED. A second SIGINT while draining forces
an immediate exit, as plain uvicorn does.
"""

import signal
from enum import IntEnum
from types import FrameType

import uvicorn

from src.api.constants import HEALTH_CHECK_PATH
from src.core.config import Settings
from src.core.logging import AppLogger


class ServerState(IntEnum):
    """Process lifecycle states, ordered by progress."""

    STARTING = 1
    LISTENING = 2
    DRAINING = 3
    STOPPED = 4


class LifecycleTransitionError(RuntimeError):
    """Raised when the server is asked to move to an unreachable state."""

    def __init__(self, current: ServerState, target: ServerState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move server from {current.name} to {target.name}")


class ShutdownCoordinator:
    """Track the server state and log each transition.

    Args:
        logger: Logger receiving lifecycle records.
    """

    def __init__(self, logger: AppLogger) -> None:
        self.logger = logger
        self._state = ServerState.STARTING

    @property
    def state(self) -> ServerState:
        """Current lifecycle state."""
        return self._state

    def mark_listening(self) -> None:
        """Record that the listener is bound and accepting connections."""
        if self._state is not ServerState.STARTING:
            raise LifecycleTransitionError(self._state, ServerState.LISTENING)
        self._state = ServerState.LISTENING

    def begin_draining(self, signal_name: str) -> bool:
        """Start a graceful shutdown in response to ``signal_name``.

        Args:
            signal_name: Name of the signal that triggered the shutdown.

        Returns:
            bool: True if this call started the shutdown, False if one was
                already in progress.
        """
        if self._state >= ServerState.DRAINING:
            return False
        self._state = ServerState.DRAINING
        self.logger.info("Starting graceful shutdown...", {"signal": signal_name})
        return True

    def mark_stopped(self) -> None:
        """Record that the server has closed and the process may exit."""
        if self._state is ServerState.STOPPED:
            raise LifecycleTransitionError(self._state, ServerState.STOPPED)
        self._state = ServerState.STOPPED
        self.logger.info("HTTP server closed")


def log_startup_banner(logger: AppLogger, settings: Settings) -> None:
    """Log where the server can be reached."""
    base_url = settings.public_base_url
    logger.info(f"Server running on port {settings.port}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"API URL: {base_url}/")
    logger.info(f"Health Check: {base_url}{HEALTH_CHECK_PATH}")


class ManagedServer(uvicorn.Server):
    """uvicorn server wired to a ``ShutdownCoordinator``.

    Args:
        config: uvicorn configuration.
        coordinator: Lifecycle state machine to report to.
        settings: Application settings, used for the startup banner.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        *,
        coordinator: ShutdownCoordinator,
        settings: Settings,
    ) -> None:
        super().__init__(config)
        self.coordinator = coordinator
        self.settings = settings

    async def startup(self, sockets: list | None = None) -> None:  # type: ignore[type-arg]
        """Bind the listener, then mark the server as listening."""
        await super().startup(sockets=sockets)
        if self.should_exit:
            return
        self.coordinator.mark_listening()
        log_startup_banner(self.coordinator.logger, self.settings)

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        """Begin draining on the first signal, force exit on a repeated SIGINT.

        The signal is not recorded for re-raising, so a graceful shutdown
        ends with exit code 0.
        """
        _ = frame
        if not self.coordinator.begin_draining(signal.Signals(sig).name):
            if sig == signal.SIGINT:
                self.force_exit = True
            return
        self.should_exit = True
