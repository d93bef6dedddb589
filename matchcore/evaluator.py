"""Harness that runs a user-written evaluator over proposed matches.

The evaluator receives the proposals and returns the matches it accepts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from matchcore.matchfunction import HarnessAbortedError, Match

logger = logging.LoggerAdapter(
    logging.getLogger(__name__),
    {"app": "openmatch", "component": "evaluator.harness"},
)


@dataclass
class EvaluatorParams:
    """What the harness hands to an evaluator."""

    logger: logging.LoggerAdapter
    matches: list[Match]


Evaluator = Callable[[EvaluatorParams], "list[Match]"]


class EvaluatorService:
    """Runs the configured evaluator; its failures abort the call."""

    def __init__(self, evaluate: Evaluator, config: Any = None) -> None:
        self._evaluate = evaluate
        self._config = config

    def evaluate(self, matches: list[Match]) -> list[Match]:
        """Return the matches accepted by the evaluator.

        Any exception from the evaluator is raised as HarnessAbortedError.
        """
        logger.debug("matches sent to the evaluator: %r", matches)
        params = EvaluatorParams(
            logger=logging.LoggerAdapter(
                logging.getLogger(__name__ + ".implementation"),
                {"app": "openmatch", "component": "evaluator.implementation"},
            ),
            matches=list(matches),
        )
        try:
            results = list(self._evaluate(params))
        except Exception as err:
            raise HarnessAbortedError(str(err)) from err
        logger.debug("matches accepted by the evaluator: %r", results)
        return results