"""Bounded fixed-interval polling shared by the build and deploy waits."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from promoter.observability.logging import get_logger
from promoter.services.base import ServiceError

log = get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S")

# (stage_name, observed_state) -> None
ProgressFn = Callable[[str, Any], None]


@dataclass(frozen=True)
class Continue(Generic[S]):
    """Probe verdict: not done yet. ``state`` is what was observed."""

    state: S


@dataclass(frozen=True)
class Terminal(Generic[T]):
    """Probe verdict: stop polling and return ``value``."""

    value: T


Verdict = Continue[Any] | Terminal[Any]


@dataclass(frozen=True)
class TimedOut:
    """Returned instead of a terminal value when ``max_wait`` ran out."""

    last_state: Any
    elapsed: float


@dataclass(frozen=True)
class StagePolicy:
    """Poll cadence and wait budget for one stage.

    Attributes:
        poll_interval: Seconds to sleep after each probe.
        max_wait: Wall-clock budget in seconds; ``math.inf`` waits forever.
        transient_retries: How many times a single tick may re-run a probe
            that raised ServiceError before the error propagates. Zero means
            fail fast. Retries stop once max_wait is used up, so retries
            never stretch a stage past its budget by more than one interval.
    """

    poll_interval: float
    max_wait: float = math.inf
    transient_retries: int = 0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.max_wait < 0:
            raise ValueError(f"max_wait must not be negative, got {self.max_wait}")
        if self.transient_retries < 0:
            raise ValueError(
                f"transient_retries must not be negative, got {self.transient_retries}"
            )


class StageRunner:
    """Call a probe at a fixed cadence until it is terminal or time runs out.

    Each probe call finishes before the interval sleep starts, so a slow probe
    stretches the cadence rather than queueing ticks. Clock and sleep are
    injectable so tests can run on simulated time.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: ProgressFn | None = None,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._on_progress = on_progress

    def wait(
        self,
        stage: str,
        probe: Callable[[], Verdict],
        policy: StagePolicy,
    ) -> Any:
        """Poll ``probe`` under ``policy``.

        Args:
            stage: Stage name, used for progress notifications and logs.
            probe: Zero-argument callable returning Continue or Terminal.
            policy: Cadence and wait budget.

        Returns:
            The value of the first Terminal verdict, or a TimedOut.

        Raises:
            ServiceError: If the probe fails and no transient retries remain.
        """
        start = self._clock()
        last_state: Any = None
        ticks = 0

        while True:
            verdict = self._probe_once(stage, probe, policy, start)
            ticks += 1

            if isinstance(verdict, Terminal):
                self._notify(stage, verdict.value)
                log.debug("stage_terminal", stage=stage, ticks=ticks)
                return verdict.value

            last_state = verdict.state
            self._notify(stage, last_state)

            self._sleep(policy.poll_interval)
            elapsed = self._clock() - start
            if elapsed >= policy.max_wait:
                log.info("stage_timed_out", stage=stage, ticks=ticks, elapsed=round(elapsed, 1))
                return TimedOut(last_state=last_state, elapsed=elapsed)

    def _probe_once(
        self, stage: str, probe: Callable[[], Verdict], policy: StagePolicy, start: float
    ) -> Verdict:
        attempts_left = policy.transient_retries
        while True:
            try:
                return probe()
            except ServiceError as e:
                # Retries share the stage budget
                if attempts_left <= 0 or self._clock() - start >= policy.max_wait:
                    raise
                attempts_left -= 1
                log.warning(
                    "probe_failed_retrying",
                    stage=stage,
                    error=str(e),
                    retries_left=attempts_left,
                )
                self._sleep(policy.poll_interval)

    def _notify(self, stage: str, state: Any) -> None:
        if self._on_progress is not None:
            self._on_progress(stage, state)
