from datetime import timedelta

import pytest

from matchcore import telemetry
from matchcore.telemetry import MetricsRegistry, parse_duration


def test_increment_counter():
    c = telemetry.counter("telemetry/fake_metric", "fake")
    before = telemetry._default_registry.value("telemetry/fake_metric")
    telemetry.increment_counter(c)
    telemetry.increment_counter(c)
    assert telemetry._default_registry.value("telemetry/fake_metric") == before + 2


def test_double_metric():
    c = telemetry.counter("telemetry/fake_metric", "fake")
    c2 = telemetry.counter("telemetry/fake_metric", "fake")
    assert c == c2


def test_double_register_in_registry_keeps_first():
    registry = MetricsRegistry()
    first = registry.counter("telemetry/fake_metric", "Fake")
    second = registry.counter("telemetry/fake_metric", "Other")
    assert first is second
    assert second.description == "Count of Fake."


def test_record_counts_recordings():
    registry = MetricsRegistry()
    m = registry.counter("requests", "requests")
    registry.record(m, 5)
    registry.record(m, 1)
    assert registry.value("requests") == 2


def test_unknown_value_raises():
    with pytest.raises(KeyError):
        MetricsRegistry().value("missing")


def test_render_exposition():
    registry = MetricsRegistry()
    m = registry.counter("telemetry/fake_metric", "fake")
    registry.record(m, 1)
    text = registry.render()
    assert "# HELP telemetry_fake_metric Count of fake.\n" in text
    assert "# TYPE telemetry_fake_metric counter\n" in text
    assert "telemetry_fake_metric 1\n" in text


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1m", timedelta(minutes=1)),
        ("0", timedelta(0)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("300ms", timedelta(milliseconds=300)),
        ("-1.5h", -timedelta(hours=1, minutes=30)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "abc", "1x", "m"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_setup_prometheus_enabled_serves_metrics():
    routes = telemetry.setup(
        {
            "telemetry.prometheus.enable": True,
            "telemetry.prometheus.endpoint": "/metrics",
            "telemetry.reportingPeriod": "30s",
        }
    )
    assert list(routes) == ["/metrics"]
    assert telemetry._default_registry.reporting_period == timedelta(seconds=30)
    statuses = []
    body = b"".join(routes["/metrics"]({}, lambda s, h: statuses.append(s)))
    assert statuses == ["200 OK"]
    assert body.decode() == telemetry._default_registry.render()


def test_setup_disabled_and_bad_period_defaults():
    routes = telemetry.setup({"telemetry.reportingPeriod": "soon"})
    assert routes == {}
    assert telemetry._default_registry.reporting_period == timedelta(minutes=1)