"""Health check endpoint for liveness and readiness probes."""

from __future__ import annotations

import enum
import logging
import threading
from http import HTTPStatus
from typing import Callable, Iterable
from urllib.parse import parse_qsl

logger = logging.getLogger(__name__)

HEALTH_CHECK_ENDPOINT = "/healthz"


class HealthState(enum.IntEnum):
    """Health as seen by the most recent readiness probe."""

    FIRST_PROBE = 0
    HEALTHY = 1
    UNHEALTHY = 2


class HealthCheck:
    """Stateful health check; readiness probes run only when a query is given.

    Each probe is a callable taking no arguments that raises when unhealthy.
    The object is also a WSGI application.
    """

    def __init__(self, probes: Iterable[Callable[[], object]]) -> None:
        self._probes = tuple(probes)
        self._state = HealthState.FIRST_PROBE
        self._lock = threading.Lock()

    @property
    def state(self) -> HealthState:
        return self._state

    def _swap(self, new: HealthState) -> HealthState:
        with self._lock:
            old, self._state = self._state, new
        return old

    def check(self, query: str) -> tuple[HTTPStatus, str]:
        """Answer a probe with the given raw query string; return status and body."""
        if parse_qsl(query, keep_blank_values=True):
            for probe in self._probes:
                try:
                    probe()
                except Exception as err:  # noqa: BLE001 - any failure means unhealthy
                    old = self._swap(HealthState.UNHEALTHY)
                    if old == HealthState.UNHEALTHY:
                        logger.warning(
                            "%s health check continues to fail. The server is at risk of termination: %s",
                            HEALTH_CHECK_ENDPOINT,
                            err,
                        )
                    else:
                        logger.warning(
                            "%s health check failed. The server will terminate if this continues to happen: %s",
                            HEALTH_CHECK_ENDPOINT,
                            err,
                        )
                    return HTTPStatus.SERVICE_UNAVAILABLE, f"{err}\n"
            old = self._swap(HealthState.HEALTHY)
            if old == HealthState.UNHEALTHY:
                logger.info("%s is healthy again.", HEALTH_CHECK_ENDPOINT)
            elif old == HealthState.FIRST_PROBE:
                logger.info("%s is reporting healthy.", HEALTH_CHECK_ENDPOINT)
        return HTTPStatus.OK, "ok"

    def __call__(self, environ, start_response):
        status, body = self.check(environ.get("QUERY_STRING", ""))
        payload = body.encode("utf-8")
        headers = [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("Content-Length", str(len(payload))),
        ]
        if status != HTTPStatus.OK:
            headers.append(("X-Content-Type-Options", "nosniff"))
        start_response(f"{status.value} {status.phrase}", headers)
        return [payload]


def new_health_check(probes: Iterable[Callable[[], object]]) -> HealthCheck:
    """Create a health check that runs the given probes on readiness requests."""
    return HealthCheck(probes)


def new_always_ready_health_check() -> HealthCheck:
    """Create a health check that always reports healthy."""
    return HealthCheck([])