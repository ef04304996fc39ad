"""Serving the application with graceful shutdown.

**Shutdown Philosophy:**

Shutdown must be controlled, but it must also finish in bounded time. A slow
client must not keep the process alive forever, even if that means a request
that was still running is cut off.

**Shutdown Phases:**

1. **Request**: SIGINT, SIGTERM or :meth:`GracefulServer.request_shutdown`
   set the ``should_exit`` flag watched by the server's main loop
2. **Stop Accepting**: the listening sockets are closed
3. **Drain**: in-flight requests get up to ``shutdown_grace_period`` seconds
   to complete, after which their tasks are cancelled
4. **Release**: the application lifespan exits, closing the store
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

import uvicorn

from .app import configure_fastapi_app

if TYPE_CHECKING:
    from collections.abc import Generator
    from types import FrameType

    from fastapi import FastAPI

    from .config import AppConfig

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

EXIT_SUCCESS = 0
STARTUP_FAILURE = 3

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class GracefulServer(uvicorn.Server):
    """A uvicorn server whose termination signals only request a shutdown.

    Plain uvicorn re-raises captured signals once it has stopped, which ends
    the process with the signal's default status. Here a signal is turned
    into a shutdown request and :meth:`run` reports success afterwards.
    """

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        app: FastAPI | None = None,
    ) -> GracefulServer:
        """Build a server for ``app``, or for a new app built from ``config``.

        :param config: Application configuration
        :param app: Optional prebuilt application
        :return: The server, not yet started
        """
        return cls(
            uvicorn.Config(
                app if app is not None else configure_fastapi_app(config),
                host=config.host,
                port=config.port,
                lifespan="on",
                timeout_graceful_shutdown=config.shutdown_grace_period,
            ),
        )

    def request_shutdown(self, sig: int | None = None) -> None:
        """Ask the server to stop accepting requests and drain.

        A second SIGINT while already draining forces an immediate exit.

        :param sig: The signal that caused the request, if any
        """
        if self.should_exit and sig == signal.SIGINT:
            LOGGER.warning("Second interrupt received, forcing exit")
            self.force_exit = True
            return

        if sig is None:
            LOGGER.info("Shutdown requested, closing server gracefully")
        else:
            LOGGER.info(
                "Received %s, closing server gracefully",
                signal.Signals(sig).name,
            )
        self.should_exit = True

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:  # noqa: ARG002
        """Signal handler installed for every handled signal."""
        self.request_shutdown(sig)

    @contextmanager
    def capture_signals(self) -> Generator[None]:
        """Route termination signals to :meth:`request_shutdown` while serving."""
        # Signals can only be listened to from the main thread.
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        original_handlers = {
            sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS
        }
        try:
            yield
        finally:
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)

    async def run_until_shutdown(self) -> int:
        """Serve until a shutdown is requested.

        :return: ``EXIT_SUCCESS`` after a graceful shutdown, or
            ``STARTUP_FAILURE`` if the application never started
        """
        try:
            await self.serve()
        except SystemExit as e:
            # newer uvicorn exits by itself when the lifespan fails to start
            if e.code != STARTUP_FAILURE:
                raise
            self.started = False

        if not self.started:
            LOGGER.critical("Startup failed, no requests were served")
            return STARTUP_FAILURE

        LOGGER.info("Shutdown complete")
        return EXIT_SUCCESS


async def serve(config: AppConfig) -> int:
    """Run the service described by ``config`` until it is shut down.

    :param config: Application configuration
    :return: Process exit status
    """
    server = GracefulServer.from_config(config)
    LOGGER.info("Server running at http://%s:%d", config.host, config.port)
    LOGGER.info("Available routes:")
    LOGGER.info("GET / : Shows list of all users")
    LOGGER.info("GET /users/:username : Shows details for a specific user")
    return await server.run_until_shutdown()
