"""Tests for the bounded polling primitive."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

import pytest

from promoter.pipeline.stage_runner import (
    Continue,
    StagePolicy,
    StageRunner,
    Terminal,
    TimedOut,
)
from promoter.services.base import ServiceError, ServiceUnavailableError

if TYPE_CHECKING:
    from tests.fixtures.fakes import FakeClock


def _scripted_probe(verdicts: list[Any]) -> tuple[Any, list[int]]:
    calls: list[int] = []

    def probe() -> Any:
        calls.append(1)
        item = verdicts[min(len(calls) - 1, len(verdicts) - 1)]
        if isinstance(item, Exception):
            raise item
        return item

    return probe, calls


def _runner(clock: FakeClock, progress: list[tuple[str, Any]] | None = None) -> StageRunner:
    def on_progress(stage: str, state: Any) -> None:
        if progress is not None:
            progress.append((stage, state))

    return StageRunner(clock=clock, sleep=clock.sleep, on_progress=on_progress)


# --- StagePolicy ---


def test_policy_defaults_to_unbounded_wait() -> None:
    policy = StagePolicy(poll_interval=10)
    assert math.isinf(policy.max_wait)
    assert policy.transient_retries == 0


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"poll_interval": 0}, "poll_interval"),
        ({"poll_interval": -1}, "poll_interval"),
        ({"poll_interval": 10, "max_wait": -5}, "max_wait"),
        ({"poll_interval": 10, "transient_retries": -1}, "transient_retries"),
    ],
)
def test_policy_rejects_invalid_values(kwargs: dict[str, Any], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        StagePolicy(**kwargs)


# --- wait ---


def test_returns_terminal_value_immediately(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([Terminal("done")])

    result = _runner(clock).wait("build", probe, StagePolicy(poll_interval=10, max_wait=60))

    assert result == "done"
    assert len(calls) == 1
    assert clock.sleeps == []


def test_polls_at_fixed_interval_until_terminal(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([Continue("a"), Continue("b"), Terminal("c")])

    result = _runner(clock).wait("build", probe, StagePolicy(poll_interval=10))

    assert result == "c"
    assert len(calls) == 3
    assert clock.sleeps == [10, 10]


def test_progress_emitted_on_every_tick(clock: FakeClock) -> None:
    progress: list[tuple[str, Any]] = []
    probe, _ = _scripted_probe([Continue("IN_PROGRESS"), Continue("IN_PROGRESS"), Terminal("OK")])

    _runner(clock, progress).wait("deploy", probe, StagePolicy(poll_interval=5))

    assert progress == [("deploy", "IN_PROGRESS"), ("deploy", "IN_PROGRESS"), ("deploy", "OK")]


def test_times_out_instead_of_looping_forever(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([Continue("IN_PROGRESS")])

    result = _runner(clock).wait("deploy", probe, StagePolicy(poll_interval=10, max_wait=600))

    assert isinstance(result, TimedOut)
    assert result.last_state == "IN_PROGRESS"
    assert len(calls) == 60
    # Wall-clock bound holds within one poll interval of max_wait
    assert 600 <= clock.now < 600 + 10


def test_timeout_respects_bound_with_uneven_interval(clock: FakeClock) -> None:
    probe, _ = _scripted_probe([Continue("x")])

    result = _runner(clock).wait("deploy", probe, StagePolicy(poll_interval=7, max_wait=30))

    assert isinstance(result, TimedOut)
    assert 30 <= result.elapsed < 30 + 7


def test_timed_out_is_distinct_from_terminal_failure(clock: FakeClock) -> None:
    probe, _ = _scripted_probe([Continue("x"), Terminal("FAILED")])

    result = _runner(clock).wait("build", probe, StagePolicy(poll_interval=10, max_wait=600))

    assert result == "FAILED"
    assert not isinstance(result, TimedOut)


def test_slow_probe_stretches_cadence_without_queueing(clock: FakeClock) -> None:
    """Time spent inside the probe counts toward max_wait; ticks are not made up."""
    calls: list[float] = []

    def slow_probe() -> Continue[str]:
        calls.append(clock.now)
        clock.now += 25
        return Continue("IN_PROGRESS")

    result = _runner(clock).wait("deploy", slow_probe, StagePolicy(poll_interval=10, max_wait=100))

    assert isinstance(result, TimedOut)
    assert calls == [0, 35, 70]
    assert clock.sleeps == [10, 10, 10]


def test_probe_error_propagates_by_default(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([Continue("x"), ServiceUnavailableError("build", "boom")])

    with pytest.raises(ServiceError, match="boom"):
        _runner(clock).wait("build", probe, StagePolicy(poll_interval=10))

    assert len(calls) == 2


def test_transient_retry_recovers_within_tick(clock: FakeClock) -> None:
    probe, calls = _scripted_probe(
        [ServiceUnavailableError("ecs", "throttled"), Terminal("converged")]
    )
    policy = StagePolicy(poll_interval=10, transient_retries=1)

    result = _runner(clock).wait("deploy", probe, policy)

    assert result == "converged"
    assert len(calls) == 2
    assert clock.sleeps == [10]


def test_transient_retries_exhausted_propagates(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([ServiceUnavailableError("ecs", "down")])
    policy = StagePolicy(poll_interval=10, transient_retries=2)

    with pytest.raises(ServiceUnavailableError):
        _runner(clock).wait("deploy", probe, policy)

    assert len(calls) == 3


def test_non_service_errors_are_never_retried(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([RuntimeError("bug")])
    policy = StagePolicy(poll_interval=10, transient_retries=3)

    with pytest.raises(RuntimeError):
        _runner(clock).wait("deploy", probe, policy)

    assert len(calls) == 1


def test_transient_retries_stop_when_budget_is_spent(clock: FakeClock) -> None:
    probe, calls = _scripted_probe([ServiceUnavailableError("ecs", "throttled")])
    policy = StagePolicy(poll_interval=10, max_wait=25, transient_retries=5)

    with pytest.raises(ServiceUnavailableError):
        _runner(clock).wait("deploy", probe, policy)

    assert len(calls) == 4
    assert clock.sleeps == [10, 10, 10]
    assert clock.now <= policy.max_wait + policy.poll_interval
