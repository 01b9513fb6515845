"""Value types for the convergence waiter.

A probe reports one of three results:

- ``ActiveState``   the resource answered with a snapshot and a state label
- ``BenignPending`` the resource is not queryable yet (recognized not-found)
- ``FatalError``    anything else went wrong; the wait must stop
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PENDING_STATES = ("CONFIGURING",)
DEFAULT_TARGET_STATES = ("ACTIVE",)
DEFAULT_INITIAL_DELAY_SECONDS = 10.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_TIMEOUT_SECONDS = 600.0


@dataclass(frozen=True, slots=True)
class ActiveState:
    payload: Any
    state: str


@dataclass(frozen=True, slots=True)
class BenignPending:
    """The probe hit the recognized not-found condition.

    ``state`` is filled in by the waiter with the first pending state.
    """

    cause: BaseException | None = field(default=None, repr=False)
    state: str | None = None


@dataclass(frozen=True, slots=True)
class FatalError:
    cause: BaseException


ProbeResult = ActiveState | BenignPending | FatalError


def _labels(states: Iterable[str]) -> tuple[str, ...]:
    """Deduplicate labels, keeping the order they were configured in.

    Order matters: the first pending state labels benign not-found probes,
    so unordered collections are refused.
    """
    if isinstance(states, str):
        return (states,)
    if isinstance(states, (set, frozenset)):
        msg = "state labels must be an ordered sequence (list or tuple), not a set"
        raise TypeError(msg)
    return tuple(dict.fromkeys(states))


@dataclass(frozen=True)
class WaitConfiguration:
    """Immutable tuning for one wait.

    Durations are seconds.  ``backoff_factor`` of 1.0 keeps a fixed poll
    interval; larger values grow it after every pending probe, capped at
    ``max_poll_interval`` when that is set.
    """

    pending_states: tuple[str, ...] = DEFAULT_PENDING_STATES
    target_states: tuple[str, ...] = DEFAULT_TARGET_STATES
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    backoff_factor: float = 1.0
    max_poll_interval: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pending_states", _labels(self.pending_states))
        object.__setattr__(self, "target_states", _labels(self.target_states))

        if not self.target_states:
            msg = "target_states must contain at least one state"
            raise ValueError(msg)
        if not self.pending_states:
            msg = "pending_states must contain at least one state"
            raise ValueError(msg)
        overlap = set(self.pending_states) & set(self.target_states)
        if overlap:
            msg = f"pending_states and target_states overlap: {sorted(overlap)}"
            raise ValueError(msg)
        for name in ("initial_delay", "poll_interval", "timeout"):
            if getattr(self, name) < 0:
                msg = f"{name} must be >= 0, got {getattr(self, name)}"
                raise ValueError(msg)
        if self.timeout <= self.initial_delay:
            msg = (
                f"timeout ({self.timeout}s) must be greater than "
                f"initial_delay ({self.initial_delay}s)"
            )
            raise ValueError(msg)
        if self.backoff_factor < 1.0:
            msg = f"backoff_factor must be >= 1.0, got {self.backoff_factor}"
            raise ValueError(msg)
        if self.max_poll_interval is not None and (
            self.max_poll_interval < self.poll_interval
        ):
            msg = "max_poll_interval must be >= poll_interval"
            raise ValueError(msg)

    @property
    def first_pending_state(self) -> str:
        """Synthetic label recorded for a benign not-found probe."""
        return self.pending_states[0]

    def next_interval(self, current: float) -> float:
        grown = current * self.backoff_factor
        if self.max_poll_interval is not None:
            return min(grown, self.max_poll_interval)
        return grown

    @classmethod
    def topic_defaults(cls) -> WaitConfiguration:
        """CONFIGURING -> ACTIVE, 10s delay, 2s interval, 10 minute budget."""
        return cls()


@dataclass(frozen=True, slots=True)
class WaitResult:
    payload: Any
    state: str
    attempts: int
    elapsed: float
