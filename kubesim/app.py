"""Application bootstrap for ``kubesim serve``.

Startup order: config → logging → session → REST.
Shutdown stops the REST server, then drops the session.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Mapping
from typing import TYPE_CHECKING

from kubesim.config import load_config
from kubesim.goals import Goal
from kubesim.models.config import KubeSimConfig
from kubesim.observability.logging import get_logger, setup_logging
from kubesim.session import SimulationSession

if TYPE_CHECKING:
    import structlog
    import uvicorn

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeSimApp:
    """Application root. Owns the session and the REST server."""

    def __init__(
        self,
        port: int | None = None,
        failure_rules: Mapping[str, str] | None = None,
        goals: list[Goal] | None = None,
    ) -> None:
        self.config: KubeSimConfig | None = None
        self.session: SimulationSession | None = None
        self._port_override = port
        self._failure_rules = dict(failure_rules or {})
        self._goals = list(goals or [])
        self._rest_server: uvicorn.Server | None = None
        self._rest_task: asyncio.Task[None] | None = None
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        try:
            self.config = load_config()
        except ValueError as exc:
            raise _ComponentError("config", exc) from exc
        if self._port_override is not None:
            self.config.api.port = self._port_override

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubesim starting", version=_kubesim_version())

        # --- 3. Simulation session ----------------------------------------
        try:
            self.session = SimulationSession(self.config, self._failure_rules, self._goals)
        except ValueError as exc:
            raise _ComponentError("session", exc) from exc

        # --- 4. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kubesim started", port=self.config.api.port)

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self.session is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubesim.api import build_app

            fastapi_app = build_app(session=self.session, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            self._rest_task = asyncio.create_task(server.serve(), name="rest-server")
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    @property
    def rest_finished(self) -> bool:
        return self._rest_task is not None and self._rest_task.done()

    async def stop(self) -> None:
        """Stop the REST server and release the session. Safe to call twice."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubesim shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._rest_task is not None and not self._rest_task.done():
            try:
                await asyncio.wait_for(self._rest_task, timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("component stop timed out", component="rest", timeout=_SHUTDOWN_GRACE_SECONDS)
                self._rest_task.cancel()
        self._rest_server = None
        self._rest_task = None

        if self.session is not None:
            log.info("session closed", tick=self.session.state.tick, events=len(self.session.state.events))
        self.session = None
        log.info("kubesim stopped")


def _kubesim_version() -> str:
    from kubesim import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(
    port: int | None = None,
    failure_rules: Mapping[str, str] | None = None,
    goals: list[Goal] | None = None,
) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeSimApp(port=port, failure_rules=failure_rules, goals=goals)
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # uvicorn may take over SIGINT itself; a finished server task ends the run too
        while app._running and not app.rest_finished:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
