"""
Health check endpoints for load balancers and Kubernetes probes.

Served by the same aiohttp application as the speech endpoint.
Reports service health, in-flight requests, speech engine status.

Usage in Kubernetes:
  livenessProbe:
    httpGet:
      path: /healthz
      port: 8080
  readinessProbe:
    httpGet:
      path: /readyz
      port: 8080
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from aiohttp import web

from ..tts.base import SpeechEngine

logger = logging.getLogger(__name__)


class HealthState:
    """Process-wide request counters for one application."""

    def __init__(self, max_concurrent: int = 16, engine: Optional[SpeechEngine] = None) -> None:
        self.max_concurrent = max_concurrent
        self.engine = engine
        self.active_requests = 0
        self.total_requests = 0
        self.failed_requests = 0
        self.bytes_sent = 0
        self.start_time = time.monotonic()

    @property
    def uptime_s(self) -> float:
        return time.monotonic() - self.start_time

    def request_started(self) -> None:
        self.active_requests += 1
        self.total_requests += 1

    def request_ended(self, *, ok: bool, bytes_sent: int = 0) -> None:
        self.active_requests = max(0, self.active_requests - 1)
        if ok:
            self.bytes_sent += bytes_sent
        else:
            self.failed_requests += 1

    async def is_ready(self) -> tuple[bool, bool]:
        """Return (ready, engine_healthy)."""
        engine_ok = True
        if self.engine is not None:
            try:
                engine_ok = await asyncio.wait_for(self.engine.health_check(), timeout=3.0)
            except asyncio.TimeoutError:
                logger.warning("Speech engine health check timed out")
                engine_ok = False
        capacity_ok = self.active_requests < self.max_concurrent
        return capacity_ok and engine_ok, engine_ok

    def snapshot(self) -> dict:
        return {
            "active_requests": self.active_requests,
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "bytes_sent": self.bytes_sent,
            "uptime_s": round(self.uptime_s, 1),
            "max_concurrent_requests": self.max_concurrent,
        }


HEALTH_KEY = web.AppKey("health", HealthState)


async def handle_healthz(request: web.Request) -> web.Response:
    state = request.app[HEALTH_KEY]
    return web.json_response({"status": "ok", "uptime_s": state.uptime_s})


async def handle_readyz(request: web.Request) -> web.Response:
    state = request.app[HEALTH_KEY]
    ready, engine_ok = await state.is_ready()
    return web.json_response(
        {
            "ready": ready,
            "active_requests": state.active_requests,
            "max_requests": state.max_concurrent,
            "engine_healthy": engine_ok,
        },
        status=200 if ready else 503,
    )


async def handle_metrics(request: web.Request) -> web.Response:
    return web.json_response(request.app[HEALTH_KEY].snapshot())


def add_health_routes(app: web.Application, state: HealthState) -> None:
    app[HEALTH_KEY] = state
    app.router.add_get("/healthz", handle_healthz)
    app.router.add_get("/readyz", handle_readyz)
    app.router.add_get("/metrics", handle_metrics)
