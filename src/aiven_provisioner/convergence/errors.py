"""Errors raised when a wait does not converge."""

from __future__ import annotations

from typing import Any


class WaitError(Exception):
    """Base class for every way a wait can end without reaching a target state.

    Carries the last observed state label and payload for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        state: str | None = None,
        payload: Any = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.state = state
        self.payload = payload
        self.attempts = attempts


class FatalProbeError(WaitError):
    """The probe failed with an error that is not the benign not-found case."""


class WaitTimeoutError(WaitError):
    """The resource stayed pending past the configured timeout."""


class UnexpectedStateError(WaitError):
    """The probe reported a state that is neither pending nor a target."""


class WaitCancelledError(WaitError):
    """The caller cancelled the wait before it converged."""
