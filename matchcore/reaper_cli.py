"""Command that deletes leaked CI clusters, once or on request over HTTP."""

from __future__ import annotations

import argparse
import logging
import os

from matchcore.listener import new_from_port_number
from matchcore.reaper import GkeClient, Params, reap_clusters, serve
from matchcore.telemetry import parse_duration

logger = logging.getLogger(__name__)


def _duration(text: str):
    try:
        return parse_duration(text)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err)) from err


def parse_args(argv=None) -> argparse.Namespace:
    """Parse the command-line flags."""
    parser = argparse.ArgumentParser(description="Clean up leaked CI clusters.")
    parser.add_argument("-project", "--project", default="open-match-build",
                        help="Target Project ID to scan for leaked clusters.")
    parser.add_argument("-age", "--age", type=_duration, default=parse_duration("1h"),
                        help="Age of a cluster before it's a candidate for deletion.")
    parser.add_argument("-label", "--label", default="open-match-ci",
                        help="Required label that must be on the cluster for it to be considered for reaping.")
    parser.add_argument("-location", "--location", default="us-west1-a",
                        help="Location of the cluster")
    parser.add_argument("-port", "--port", type=int, default=0, help="HTTP Port to serve from.")
    return parser.parse_args(argv)


def _params(args: argparse.Namespace) -> Params:
    return Params(age=args.age, label=args.label, project_id=args.project, location=args.location)


def main(argv=None) -> int:
    """Reap once, or serve HTTP when a port is given by $PORT or -port."""
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    port = 0
    port_str = os.environ.get("PORT", "")
    if port_str:
        try:
            port = int(port_str)
        except ValueError as err:
            logger.warning("Not serving via $PORT variable, %s, because it's not an integer, %s.",
                           port_str, err)
    else:
        port = args.port

    client = GkeClient(os.environ.get("GOOGLE_OAUTH_ACCESS_TOKEN"))
    if port > 0:
        try:
            holder = new_from_port_number(port)
        except OSError as err:
            logger.error("cannot serve on %d, %s", port, err)
            return 1
        try:
            serve(holder.obtain(), _params(args), client)
        except Exception as err:  # noqa: BLE001 - reported as a failed run
            logger.error("%s", err)
            return 1
        return 0

    try:
        resp = reap_clusters(_params(args), client)
    except Exception as err:  # noqa: BLE001 - reported as a failed run
        logger.error("%s", err)
        return 1
    logger.info("%s", resp)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())