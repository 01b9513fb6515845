"""Shared fixtures for unit tests: a fake clock and scripted probes."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from aiven_provisioner.convergence.states import ProbeResult


class FakeClock:
    """Monotonic clock that only advances when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedProbe:
    """Returns the given results in order, repeating the last one forever."""

    def __init__(self, *results: ProbeResult) -> None:
        self._results = list(results)
        self.calls = 0

    def __call__(self) -> ProbeResult:
        self.calls += 1
        index = min(self.calls, len(self._results)) - 1
        return self._results[index]


class ScriptedFetch:
    """Fetch callable yielding payloads or raising exceptions in order."""

    def __init__(self, *steps: Any) -> None:
        self._steps = list(steps)
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        step = self._steps[min(self.calls, len(self._steps)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_probe() -> Callable[..., ScriptedProbe]:
    return ScriptedProbe


@pytest.fixture
def scripted_fetch() -> Callable[..., ScriptedFetch]:
    return ScriptedFetch
