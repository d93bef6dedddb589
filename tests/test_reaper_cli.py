import socket
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from matchcore.reaper_cli import main, parse_args


def test_parse_args_defaults():
    args = parse_args([])
    assert args.project == "open-match-build"
    assert args.label == "open-match-ci"
    assert args.location == "us-west1-a"
    assert args.port == 0
    assert args.age == timedelta(hours=1)


def test_parse_args_overrides():
    args = parse_args(["-project", "proj", "-age", "30m", "-label", "lbl",
                       "-location", "loc", "-port", "8080"])
    assert (args.project, args.label, args.location, args.port) == ("proj", "lbl", "loc", 8080)
    assert args.age == timedelta(minutes=30)


def test_parse_args_bad_age():
    with pytest.raises(SystemExit):
        parse_args(["-age", "soon"])


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _get(port, path):
    with urllib.request.urlopen(f"http://127.0.0.1:{port}{path}", timeout=5) as resp:
        return resp.read().decode()


def test_main_serves_on_port_env(monkeypatch):
    port = _free_port()
    monkeypatch.setenv("PORT", str(port))

    def run_main():
        return main([])

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(run_main)

        body = None
        for _ in range(50):
            try:
                body = _get(port, "/livenessz")
                break
            except (urllib.error.URLError, ConnectionError):
                time.sleep(0.1)
        assert body == "OK"
        assert _get(port, "/close") == "OK"
        exit_code = future.result(timeout=5)
    assert exit_code == 0