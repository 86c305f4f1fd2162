"""HTTP surface for scanner health, status, alerts and metrics.

Endpoints:
    /health   overall health (200 when healthy, 503 otherwise)
    /status   scheduler state and cycle counters
    /alerts   retained alerts, optionally filtered by ``level`` and ``limit``
    /metrics  Prometheus exposition
    /live     liveness check
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from aiohttp import web
from prometheus_client import generate_latest

from polymarket_insider_scanner.detector.models import SuspicionLevel
from polymarket_insider_scanner.scanner.scheduler import ScanScheduler, ScanState

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_HTTP_PORT = 8080
DEFAULT_STALE_THRESHOLD_SECONDS = 60  # No completed cycle for 60s = stale


class HealthStatus(Enum):
    """Overall health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthServer:
    """Serves scanner health and alert data over HTTP.

    Example:
        ```python
        server = HealthServer(scheduler)
        await server.start(port=8080)
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        scheduler: ScanScheduler,
        *,
        stale_threshold_seconds: float = DEFAULT_STALE_THRESHOLD_SECONDS,
    ) -> None:
        """Initialize the server.

        Args:
            scheduler: Scheduler whose state is reported.
            stale_threshold_seconds: A scanning scheduler with no completed
                cycle for this long is reported unhealthy.
        """
        self._scheduler = scheduler
        self._stale_threshold = stale_threshold_seconds
        self._started_at = time.time()
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Check if the HTTP server is running."""
        return self._runner is not None

    def health_status(self) -> HealthStatus:
        """Derive overall health from the scheduler."""
        scheduler = self._scheduler
        if scheduler.state != ScanState.SCANNING:
            return HealthStatus.DEGRADED

        stats = scheduler.cycle_stats
        if stats.last_cycle_time is None:
            return HealthStatus.DEGRADED if stats.last_error is None else HealthStatus.UNHEALTHY

        age = (datetime.now(UTC) - stats.last_cycle_time).total_seconds()
        if age > self._stale_threshold:
            return HealthStatus.UNHEALTHY
        if stats.last_error is not None:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        status = self.health_status()
        status_code = 200 if status == HealthStatus.HEALTHY else 503

        body: dict[str, Any] = {
            "status": status.value,
            "state": self._scheduler.state.value,
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "last_error": self._scheduler.cycle_stats.last_error,
        }
        return web.json_response(body, status=status_code)

    async def _handle_status(self, _request: web.Request) -> web.Response:
        """Handle /status endpoint."""
        return web.json_response(self._scheduler.status_summary())

    async def _handle_alerts(self, request: web.Request) -> web.Response:
        """Handle /alerts endpoint."""
        alerts = self._scheduler.alerts

        level_param = request.query.get("level")
        if level_param:
            try:
                minimum = SuspicionLevel(level_param.upper())
            except ValueError:
                return web.json_response(
                    {"error": f"Unknown level: {level_param}"},
                    status=400,
                )
            alerts = [a for a in alerts if a.level.at_least(minimum)]

        limit_param = request.query.get("limit")
        if limit_param:
            try:
                limit = int(limit_param)
            except ValueError:
                return web.json_response({"error": "limit must be an integer"}, status=400)
            alerts = alerts[: max(limit, 0)]

        return web.json_response(
            {"count": len(alerts), "alerts": [a.to_dict() for a in alerts]}
        )

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        metrics = generate_latest()
        return web.Response(
            body=metrics,
            content_type="text/plain",
            charset="utf-8",
        )

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle /live endpoint for k8s liveness checks."""
        return web.json_response({"live": True}, status=200)

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/status", self._handle_status)
        app.router.add_get("/alerts", self._handle_alerts)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/live", self._handle_live)
        return app

    async def start(self, port: int = DEFAULT_HTTP_PORT, host: str = "0.0.0.0") -> None:
        """Start the HTTP server.

        Args:
            port: Port to listen on.
            host: Interface to bind.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("Health HTTP server started on port %d", port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health HTTP server stopped")
