"""Harness that runs a user-written match making function.

The harness reads the pools of a match profile and queries the matchmaking
logic service for the tickets in each one. It then hands the rosters, the
profile's properties and the tickets grouped by pool to the match function,
which returns the proposed matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from google.protobuf import struct_pb2

logger = logging.LoggerAdapter(
    logging.getLogger(__name__),
    {"app": "openmatch", "component": "matchfunction.harness"},
)


class HarnessAbortedError(RuntimeError):
    """Raised when the harness aborts a call before or after the user function runs."""


@dataclass
class Filter:
    """Range filter over one numeric ticket attribute."""

    attribute: str
    min: float = 0.0
    max: float = 0.0


@dataclass
class Pool:
    """A named set of filters that selects tickets."""

    name: str = ""
    filters: list[Filter] = field(default_factory=list)


@dataclass
class Assignment:
    """Where a ticket was sent to play."""

    connection: str = ""
    properties: struct_pb2.Struct | None = None
    error: str | None = None


@dataclass
class Ticket:
    """A matchmaking request from a player or group."""

    id: str = ""
    properties: struct_pb2.Struct | None = None
    assignment: Assignment | None = None


@dataclass
class Roster:
    """A named list of ticket ids within a match."""

    name: str = ""
    ticket_ids: list[str] = field(default_factory=list)


@dataclass
class MatchProfile:
    """What a match should look like: pools to draw from and rosters to fill."""

    name: str = ""
    pools: list[Pool] = field(default_factory=list)
    rosters: list[Roster] = field(default_factory=list)
    properties: struct_pb2.Struct | None = None


@dataclass
class Match:
    """A proposed or accepted match."""

    match_id: str = ""
    match_profile: str = ""
    match_function: str = ""
    tickets: list[Ticket] = field(default_factory=list)
    rosters: list[Roster] = field(default_factory=list)
    properties: struct_pb2.Struct | None = None


@dataclass
class MatchFunctionParams:
    """The view of the world handed to a match function."""

    logger: logging.LoggerAdapter
    profile_name: str
    properties: struct_pb2.Struct | None
    rosters: list[Roster]
    pool_name_to_tickets: dict[str, list[Ticket]]


MatchFunction = Callable[[MatchFunctionParams], "list[Match]"]


@dataclass
class FunctionSettings:
    """Settings for the match function harness."""

    func: MatchFunction


class TicketQuerier(Protocol):
    """Client of the matchmaking logic service.

    ``query_tickets`` yields pages, each an iterable of tickets matching the pool.
    """

    def query_tickets(self, pool: Pool) -> Iterable[Iterable[Ticket]]: ...


def _implementation_logger() -> logging.LoggerAdapter:
    return logging.LoggerAdapter(
        logging.getLogger(__name__ + ".implementation"),
        {"app": "openmatch", "component": "matchfunction.implementation"},
    )


class MatchFunctionService:
    """Runs the configured match function against tickets fetched per pool."""

    def __init__(
        self,
        settings: FunctionSettings,
        mmlogic_client: TicketQuerier,
        config: Any = None,
    ) -> None:
        self._function = settings.func
        self._mmlogic = mmlogic_client
        self._config = config

    def run(self, profile: MatchProfile) -> list[Match]:
        """Fetch the profile's tickets, run the match function and return its proposals.

        Failing to fetch tickets raises HarnessAbortedError; errors raised by the
        match function itself propagate unchanged.
        """
        try:
            pool_name_to_tickets = self.get_match_manifest(profile)
        except Exception as err:
            raise HarnessAbortedError(str(err)) from err

        params = MatchFunctionParams(
            logger=_implementation_logger(),
            profile_name=profile.name,
            properties=profile.properties,
            rosters=profile.rosters,
            pool_name_to_tickets=pool_name_to_tickets,
        )
        proposals = list(self._function(params))
        logger.debug("proposals returned by match function: %r", proposals)
        return proposals

    def get_match_manifest(self, profile: MatchProfile) -> dict[str, list[Ticket]]:
        """Query the tickets of every pool in the profile, keyed by pool name."""
        pool_name_to_tickets: dict[str, list[Ticket]] = {}
        for pool in profile.pools:
            try:
                pages = self._mmlogic.query_tickets(pool)
                pool_tickets = [ticket for page in pages for ticket in page]
            except Exception as err:
                logger.error("Failed to query tickets from mmlogic: %s", err)
                raise
            logger.debug("Received all results for pool %s.", pool.name)
            pool_name_to_tickets[pool.name] = pool_tickets
        return pool_name_to_tickets