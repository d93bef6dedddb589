"""Counter metrics with a Prometheus text endpoint, and telemetry setup."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

CONFIG_NAME_ENABLE_METRICS = "telemetry.prometheus.enable"
DEFAULT_REPORTING_PERIOD = timedelta(minutes=1)

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "300ms", "1.5h" or "1h30m"; raise ValueError if invalid."""
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        if rest[0] == "-":
            sign = -1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"time: invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None:
            raise ValueError(f"time: invalid duration {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=sign * total)


@dataclass(frozen=True)
class Measure:
    """An integer measure identified by its name."""

    name: str
    description: str
    unit: str = "1"


def _metric_name(name: str) -> str:
    sanitized = _INVALID_METRIC_CHARS.sub("_", name)
    if sanitized[:1].isdigit():
        sanitized = "key_" + sanitized
    return sanitized


class MetricsRegistry:
    """Holds counter measures and the number of recordings made against each."""

    def __init__(self) -> None:
        self._measures: dict[str, Measure] = {}
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()
        self.reporting_period: timedelta = DEFAULT_REPORTING_PERIOD

    def counter(self, name: str, description: str) -> Measure:
        """Create a counter, or return the one already registered under this name."""
        with self._lock:
            existing = self._measures.get(name)
            if existing is not None:
                return existing
            measure = Measure(name, f"Count of {description}.", "1")
            self._measures[name] = measure
            self._counts[name] = 0
            return measure

    def record(self, measure: Measure, n: int = 1) -> None:
        """Record a value of n against the measure; the counter counts recordings."""
        with self._lock:
            if measure.name in self._counts:
                self._counts[measure.name] += 1

    def value(self, name: str) -> int:
        """The current count of a registered counter; KeyError if unknown."""
        with self._lock:
            return self._counts[name]

    def render(self) -> str:
        """Render every counter in the Prometheus text exposition format."""
        with self._lock:
            items = sorted((m, self._counts[n]) for n, m in self._measures.items())
        lines = []
        for measure, count in ((m, c) for m, c in items):
            metric = _metric_name(measure.name)
            lines.append(f"# HELP {metric} {measure.description}")
            lines.append(f"# TYPE {metric} counter")
            lines.append(f"{metric} {count}")
        return "".join(line + "\n" for line in lines)

    def __call__(self, environ, start_response):
        payload = self.render().encode("utf-8")
        start_response(
            "200 OK",
            [
                ("Content-Type", "text/plain; version=0.0.4; charset=utf-8"),
                ("Content-Length", str(len(payload))),
            ],
        )
        return [payload]


_default_registry = MetricsRegistry()


def counter(name: str, description: str) -> Measure:
    """Create a counter in the default registry."""
    return _default_registry.counter(name, description)


def increment_counter(measure: Measure) -> None:
    """Add one to the counter."""
    increment_counter_n(measure, 1)


def increment_counter_n(measure: Measure, n: int) -> None:
    """Record n against the counter."""
    _default_registry.record(measure, n)


def _get_bool(config: Mapping[str, Any], key: str) -> bool:
    value = config.get(key, False)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "t", "true", "yes", "on")
    return bool(value)


def _get_string(config: Mapping[str, Any], key: str) -> str:
    value = config.get(key)
    return "" if value is None else str(value)


def _bind_prometheus(
    routes: dict[str, Callable[..., Any]], config: Mapping[str, Any]
) -> None:
    if not _get_bool(config, CONFIG_NAME_ENABLE_METRICS):
        logger.info("Prometheus Metrics: Disabled")
        return
    endpoint = _get_string(config, "telemetry.prometheus.endpoint")
    routes[endpoint] = _default_registry
    logger.info("Prometheus Metrics: ENABLED (endpoint=%s)", endpoint)


def setup(config: Mapping[str, Any]) -> dict[str, Callable[..., Any]]:
    """Configure telemetry from dotted config keys; return WSGI apps keyed by path."""
    period_string = _get_string(config, "telemetry.reportingPeriod")
    try:
        reporting_period = parse_duration(period_string)
    except ValueError as err:
        logger.info(
            "Failed to parse telemetry.reportingPeriod %r, defaulting to 1m: %s",
            period_string,
            err,
        )
        reporting_period = DEFAULT_REPORTING_PERIOD

    routes: dict[str, Callable[..., Any]] = {}
    _bind_prometheus(routes, config)
    _default_registry.reporting_period = reporting_period
    logger.info("Telemetry has been configured (reportingPeriod=%s).", reporting_period)
    return routes