"""Blocking state-convergence waiter.

Polls a probe until the remote resource reports a target state, the
configured timeout runs out, the probe fails, or the caller cancels.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

import structlog

from aiven_provisioner.convergence.errors import (
    FatalProbeError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from aiven_provisioner.convergence.probe import Probe
from aiven_provisioner.convergence.states import (
    BenignPending,
    FatalError,
    ProbeResult,
    WaitConfiguration,
    WaitResult,
)

logger = structlog.get_logger()


class ConvergenceWaiter:
    """Drives one probe against one ``WaitConfiguration``.

    Instances hold no shared state; build one per create/update call.
    *sleep* and *clock* exist so tests can run without real delays.  When
    *sleep* is omitted the waiter sleeps on the cancel event, so setting it
    wakes the waiter immediately.
    """

    def __init__(
        self,
        probe: Probe,
        config: WaitConfiguration,
        *,
        description: str = "resource",
        sleep: Callable[[float], Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self._config = config
        self._description = description
        self._sleep = sleep
        self._clock = clock

    @property
    def config(self) -> WaitConfiguration:
        return self._config

    def wait(self, cancel: threading.Event | None = None) -> WaitResult:
        """Block until the resource converges.

        Raises:
            FatalProbeError: the probe failed with a non-benign error.
            UnexpectedStateError: the probe reported an unknown state.
            WaitTimeoutError: still pending when the timeout ran out.
            WaitCancelledError: *cancel* was set.
        """
        cancel = cancel if cancel is not None else threading.Event()
        config = self._config
        start = self._clock()
        attempts = 0
        state: str | None = None
        payload: Any = None

        logger.info(
            "waiter.started",
            resource=self._description,
            pending=list(config.pending_states),
            target=list(config.target_states),
            timeout=config.timeout,
        )
        self._pause(config.initial_delay, cancel, state, payload, attempts)

        interval = config.poll_interval
        while True:
            if cancel.is_set():
                raise self._cancelled(state, payload, attempts)

            result = self._run_probe()
            attempts += 1

            if isinstance(result, FatalError):
                logger.error(
                    "waiter.probe_error",
                    resource=self._description,
                    attempts=attempts,
                    error=str(result.cause),
                )
                msg = f"Probe for {self._description} failed: {result.cause}"
                raise FatalProbeError(
                    msg, state=state, payload=payload, attempts=attempts
                ) from result.cause

            if isinstance(result, BenignPending):
                state = result.state or config.first_pending_state
                payload = None
            else:
                state, payload = result.state, result.payload

            if state in config.target_states:
                elapsed = self._clock() - start
                logger.info(
                    "waiter.converged",
                    resource=self._description,
                    state=state,
                    attempts=attempts,
                    elapsed=round(elapsed, 3),
                )
                return WaitResult(
                    payload=payload, state=state, attempts=attempts, elapsed=elapsed
                )

            if state not in config.pending_states:
                logger.error(
                    "waiter.unexpected_state",
                    resource=self._description,
                    state=state,
                    attempts=attempts,
                )
                msg = (
                    f"{self._description} reported unexpected state {state!r} "
                    f"(pending: {list(config.pending_states)}, "
                    f"target: {list(config.target_states)})"
                )
                raise UnexpectedStateError(
                    msg, state=state, payload=payload, attempts=attempts
                )

            remaining = config.timeout - (self._clock() - start)
            if remaining <= 0:
                logger.error(
                    "waiter.timeout",
                    resource=self._description,
                    state=state,
                    attempts=attempts,
                    timeout=config.timeout,
                )
                msg = (
                    f"Timeout after {config.timeout}s waiting for "
                    f"{self._description} to reach {list(config.target_states)} "
                    f"(last state: {state})"
                )
                raise WaitTimeoutError(
                    msg, state=state, payload=payload, attempts=attempts
                )

            logger.debug(
                "waiter.pending",
                resource=self._description,
                state=state,
                attempts=attempts,
                next_poll_in=min(interval, remaining),
            )
            self._pause(min(interval, remaining), cancel, state, payload, attempts)
            interval = config.next_interval(interval)

    def _run_probe(self) -> ProbeResult:
        try:
            return self._probe()
        except Exception as exc:
            return FatalError(cause=exc)

    def _pause(
        self,
        seconds: float,
        cancel: threading.Event,
        state: str | None,
        payload: Any,
        attempts: int,
    ) -> None:
        if seconds > 0:
            sleep = self._sleep if self._sleep is not None else cancel.wait
            sleep(seconds)
        if cancel.is_set():
            raise self._cancelled(state, payload, attempts)

    def _cancelled(
        self, state: str | None, payload: Any, attempts: int
    ) -> WaitCancelledError:
        logger.warning(
            "waiter.cancelled",
            resource=self._description,
            state=state,
            attempts=attempts,
        )
        return WaitCancelledError(
            f"Wait for {self._description} was cancelled",
            state=state,
            payload=payload,
            attempts=attempts,
        )


def wait_for_state(
    probe: Probe,
    config: WaitConfiguration | None = None,
    *,
    cancel: threading.Event | None = None,
    description: str = "resource",
    sleep: Callable[[float], Any] | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> WaitResult:
    """Poll *probe* until it reports a target state; see ``ConvergenceWaiter``."""
    waiter = ConvergenceWaiter(
        probe,
        config or WaitConfiguration.topic_defaults(),
        description=description,
        sleep=sleep,
        clock=clock,
    )
    return waiter.wait(cancel)
