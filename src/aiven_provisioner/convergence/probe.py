"""Probe construction and the benign not-found predicate."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from aiven_provisioner.convergence.states import (
    ActiveState,
    BenignPending,
    FatalError,
    ProbeResult,
)

logger = structlog.get_logger()

ErrorPredicate = Callable[[BaseException], bool]
Probe = Callable[[], ProbeResult]


def topic_not_found_message(topic: str) -> str:
    return f"Topic '{topic}' does not exist"


def topic_not_found_matcher(topic: str) -> ErrorPredicate:
    """Match the API error returned while a freshly created topic is not queryable.

    Only the exact message for *topic* matches.  A not-found error for any
    other topic, or a reworded message, is not benign.
    """
    expected = topic_not_found_message(topic)

    def _matches(exc: BaseException) -> bool:
        return str(exc) == expected

    return _matches


def never_benign(exc: BaseException) -> bool:
    return False


def build_probe(
    fetch: Callable[[], Any],
    *,
    state_of: Callable[[Any], str],
    is_benign: ErrorPredicate = never_benign,
) -> Probe:
    """Wrap a fetch call so it reports a ``ProbeResult`` instead of raising.

    *fetch* performs the network call, *state_of* extracts the state label
    from whatever *fetch* returned, and *is_benign* decides whether an error
    means "not there yet".
    """

    def _probe() -> ProbeResult:
        try:
            payload = fetch()
        except Exception as exc:
            if is_benign(exc):
                logger.debug("waiter.probe_not_found_yet", error=str(exc))
                return BenignPending(cause=exc)
            logger.debug("waiter.probe_failed", error=str(exc))
            return FatalError(cause=exc)
        state = state_of(payload)
        logger.debug("waiter.probe_state", state=state)
        return ActiveState(payload=payload, state=state)

    return _probe
