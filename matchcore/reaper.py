"""Find and delete orphaned GKE clusters left behind by continuous integration."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Protocol
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

GKE_API_BASE = "https://container.googleapis.com/v1"
_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


@dataclass
class Params:
    """Parameters for deleting clusters."""

    age: timedelta
    label: str = ""
    project_id: str = ""
    location: str = ""


@dataclass
class Cluster:
    """The parts of a GKE cluster the reaper looks at."""

    name: str
    create_time: str = ""
    resource_labels: dict[str, str] = field(default_factory=dict)
    self_link: str = ""


class _ClusterManager(Protocol):
    def list_clusters(self, parent: str) -> list[Cluster]: ...

    def delete_cluster(self, name: str) -> Any: ...


def _cluster_from_json(data: dict[str, Any]) -> Cluster:
    return Cluster(
        name=data.get("name", ""),
        create_time=data.get("createTime", ""),
        resource_labels=dict(data.get("resourceLabels") or {}),
        self_link=data.get("selfLink", ""),
    )


class GkeClient:
    """Minimal client for the GKE cluster manager REST API."""

    def __init__(
        self,
        access_token: str | None = None,
        *,
        session: requests.Session | None = None,
        base_url: str = GKE_API_BASE,
        timeout: float = 60.0,
    ) -> None:
        self._session = session or requests.Session()
        if access_token:
            self._session.headers["Authorization"] = f"Bearer {access_token}"
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def list_clusters(self, parent: str) -> list[Cluster]:
        """List clusters under "projects/<id>/locations/<location>"."""
        resp = self._session.get(f"{self._base_url}/{parent}/clusters", timeout=self._timeout)
        resp.raise_for_status()
        return [_cluster_from_json(c) for c in resp.json().get("clusters", [])]

    def delete_cluster(self, name: str) -> Any:
        """Delete a cluster by its qualified name; return the operation."""
        resp = self._session.delete(f"{self._base_url}/{name}", timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"not an RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction, zone = match.group(7), match.group(8)
    micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)


def is_orphaned(cluster: Cluster, params: Params, now: datetime | None = None) -> bool:
    """True if the cluster is older than params.age and carries params.label."""
    now = now or datetime.now(timezone.utc)
    deadline = now - params.age
    try:
        creation_time = _parse_rfc3339(cluster.create_time)
    except ValueError as err:
        logger.info(
            "cannot parse time '%s' because '%s', ignoring for orphan detection.",
            cluster.create_time,
            err,
        )
        return False
    if creation_time > deadline:
        return False
    return params.label in cluster.resource_labels


def self_link_to_qualified_name(self_link: str) -> str:
    """Strip the API prefix up to "v1/" from a self link."""
    parts = self_link.split("v1/")
    if len(parts) != 2:
        raise ValueError(f"SelfLink: {self_link} is not a valid selflink it should contain 'v1/'")
    return parts[1]


def reap_clusters(params: Params, client: _ClusterManager | None = None) -> str:
    """Delete orphaned clusters and describe what was done."""
    logger.info(
        "Scanning for orphaned clusters in projects/%s/locations/%s that are older than %s with label %s.",
        params.project_id,
        params.location,
        params.age,
        params.label,
    )
    client = client if client is not None else GkeClient()
    parent = f"projects/{params.project_id}/locations/{params.location}"
    orphaned = []
    for cluster in client.list_clusters(parent):
        if is_orphaned(cluster, params):
            logger.info("Cluster '/%s' was orphaned.\nDetails: %r", cluster.name, cluster)
            orphaned.append(cluster)

    for cluster in orphaned:
        name = self_link_to_qualified_name(cluster.self_link)
        logger.info("Deleting Orphaned GKE Cluster %s", name)
        resp = client.delete_cluster(name)
        logger.info("Delete GKE Cluster: %s => %r", name, resp)

    if orphaned:
        return f"Deleted {len(orphaned)} GKE clusters"
    return "There were no orphaned clusters. :)"


def make_server(
    sock, params: Params, client: _ClusterManager | None = None
) -> ThreadingHTTPServer:
    """Build an HTTP server on a listening socket serving /livenessz, /reap and /close."""
    port = sock.getsockname()[1]

    class Handler(BaseHTTPRequestHandler):
        def _send(self, status: int, body: str) -> None:
            payload = body.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def _route(self) -> None:
            path = urlsplit(self.path).path
            if path == "/livenessz":
                self._send(200, "OK")
            elif path == "/close":
                self._send(200, "OK")
                threading.Thread(target=server.shutdown, daemon=True).start()
            elif path == "/reap":
                try:
                    resp = reap_clusters(params, client)
                except Exception as err:  # noqa: BLE001 - reported to the caller
                    self._send(500, f"ERROR: {err}")
                else:
                    self._send(200, f"OK: {resp}")
            else:
                self._send(404, "404 page not found\n")

        do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = _route

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug(format, *args)

    server = ThreadingHTTPServer(("", port), Handler, bind_and_activate=False)
    server.socket.close()
    server.socket = sock
    server.server_address = sock.getsockname()[:2]
    server.server_name = "localhost"
    server.server_port = port
    server.daemon_threads = True
    return server


def serve(sock, params: Params, client: _ClusterManager | None = None) -> None:
    """Serve on the socket until a request to /close arrives."""
    server = make_server(sock, params, client)
    logger.info("Serving on :%d", server.server_port)
    try:
        server.serve_forever()
    finally:
        server.server_close()