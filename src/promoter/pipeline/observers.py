"""Observer hooks the orchestrator reports progress through."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol


class PipelineState(str, Enum):
    """States of a pipeline run, in order."""

    INIT = "INIT"
    PACKAGING = "PACKAGING"
    BUILD_SUBMITTED = "BUILD_SUBMITTED"
    BUILD_POLLING = "BUILD_POLLING"
    BUILD_FAILED = "BUILD_FAILED"
    DEPLOY_TRIGGERED = "DEPLOY_TRIGGERED"
    DEPLOY_POLLING = "DEPLOY_POLLING"
    DEPLOY_FAILED = "DEPLOY_FAILED"
    HEALTH_CHECK = "HEALTH_CHECK"
    DONE = "DONE"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.BUILD_FAILED, PipelineState.DEPLOY_FAILED, PipelineState.DONE)


class PipelineObserver(Protocol):
    """Protocol for receiving pipeline progress.

    The CLI renders these to a terminal; tests record them.
    """

    def on_state_change(self, state: PipelineState, detail: str | None) -> None:
        """Called on every state transition.

        Args:
            state: The state just entered.
            detail: Optional human-readable context (build ID, URL, ...).
        """
        ...

    def on_stage_progress(self, stage: str, observed: Any) -> None:
        """Called on every polling tick with the latest observed state.

        Args:
            stage: "build" or "deploy".
            observed: A BuildStatus or DeploymentStatus.
        """
        ...

    def on_warning(self, stage: str, message: str) -> None:
        """Called for soft degradations that do not fail the run."""
        ...


class NullObserver:
    """Observer that ignores everything.

    Default when the orchestrator is driven programmatically.
    """

    def on_state_change(self, _state: PipelineState, _detail: str | None) -> None:
        return None

    def on_stage_progress(self, _stage: str, _observed: Any) -> None:
        return None

    def on_warning(self, _stage: str, _message: str) -> None:
        return None
