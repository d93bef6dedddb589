import logging
from http import HTTPStatus
from wsgiref.util import setup_testing_defaults

import pytest

from matchcore.probe import (
    HealthState,
    new_always_ready_health_check,
    new_health_check,
)


def angry_health_check():
    raise RuntimeError("I'm angry")


def happy_health_check():
    return None


def assert_health_check(hc, error_string):
    assert hc.state == HealthState.FIRST_PROBE

    status, body = hc.check("")
    assert status == HTTPStatus.OK
    assert "ok" in body
    # No readiness probe yet, so still in the first state.
    assert hc.state == HealthState.FIRST_PROBE

    status, body = hc.check("readiness=true")
    if error_string == "":
        assert status == HTTPStatus.OK
        assert "ok" in body
        assert hc.state == HealthState.HEALTHY
    else:
        assert status >= 400
        assert error_string in body
        assert hc.state == HealthState.UNHEALTHY


def test_always_ready_health_check():
    assert_health_check(new_always_ready_health_check(), "")


@pytest.mark.parametrize(
    "probes, error_string",
    [
        ([], ""),
        ([happy_health_check], ""),
        ([angry_health_check], "I'm angry"),
    ],
    ids=["Empty", "happyHealthCheck", "angryHealthCheck"],
)
def test_health_check(probes, error_string):
    assert_health_check(new_health_check(probes), error_string)


def test_failure_status_is_service_unavailable():
    status, body = new_health_check([angry_health_check]).check("readiness=true")
    assert status == HTTPStatus.SERVICE_UNAVAILABLE
    assert body == "I'm angry\n"


def test_later_probes_not_run_after_failure():
    calls = []
    hc = new_health_check([angry_health_check, lambda: calls.append(1)])
    hc.check("readiness=true")
    assert calls == []


def test_repeated_failure_and_recovery_are_logged(caplog):
    healthy = {"ok": False}

    def toggling():
        if not healthy["ok"]:
            raise RuntimeError("down")

    hc = new_health_check([toggling])
    with caplog.at_level(logging.INFO, logger="matchcore.probe"):
        hc.check("readiness")
        assert "health check failed" in caplog.text
        hc.check("readiness")
        assert "continues to fail" in caplog.text
        healthy["ok"] = True
        hc.check("readiness")
        assert "is healthy again" in caplog.text
    assert hc.state == HealthState.HEALTHY


def test_first_healthy_probe_is_logged(caplog):
    hc = new_health_check([happy_health_check])
    with caplog.at_level(logging.INFO, logger="matchcore.probe"):
        hc.check("readiness=true")
    assert "is reporting healthy" in caplog.text


def _call_wsgi(app, query):
    environ = {}
    setup_testing_defaults(environ)
    environ["PATH_INFO"] = "/healthz"
    environ["QUERY_STRING"] = query
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], body


def test_wsgi_success():
    status, headers, body = _call_wsgi(new_always_ready_health_check(), "readiness=true")
    assert status == "200 OK"
    assert body == b"ok"
    assert headers["Content-Length"] == str(len(body))


def test_wsgi_failure():
    hc = new_health_check([angry_health_check])
    status, headers, body = _call_wsgi(hc, "readiness=true")
    assert status.startswith("503")
    assert b"I'm angry" in body
    assert hc.state == HealthState.UNHEALTHY


def test_wsgi_liveness_skips_probes():
    hc = new_health_check([angry_health_check])
    status, _, body = _call_wsgi(hc, "")
    assert status == "200 OK"
    assert body == b"ok"
    assert hc.state == HealthState.FIRST_PROBE