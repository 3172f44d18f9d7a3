"""Value types passed between pipeline stages.

Build and deployment state come back from remote services, so they are
pydantic models that validate on the way in. Pipeline results are plain
dataclasses: they are produced locally and only ever read.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

BuildId = str


@dataclass(frozen=True)
class ServiceRef:
    """A service within a cluster."""

    cluster: str
    service: str

    def __str__(self) -> str:
        return f"{self.cluster}/{self.service}"


class BuildRequest(BaseModel):
    """What to build: an uploaded source archive and the project to build it with."""

    model_config = ConfigDict(frozen=True)

    source_ref: str = Field(min_length=1)
    project_id: str = Field(min_length=1)


class BuildStatus(str, Enum):
    """Build states reported by the build service."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    FAULT = "FAULT"
    TIMED_OUT = "TIMED_OUT"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self is BuildStatus.SUCCEEDED or self.is_failure

    @property
    def is_failure(self) -> bool:
        return self in _BUILD_FAILURES


_BUILD_FAILURES = frozenset(
    {BuildStatus.FAILED, BuildStatus.FAULT, BuildStatus.TIMED_OUT, BuildStatus.STOPPED}
)


class RolloutState(str, Enum):
    """Rollout state of the primary deployment of a service."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DeploymentStatus(BaseModel):
    """Snapshot of a service rollout.

    Accepts the orchestration service's camelCase field names as well as the
    Python ones. A missing rollout state reads as IN_PROGRESS and missing
    counts read as zero, which can never satisfy the convergence check.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    running_count: int = Field(default=0, ge=0, alias="runningCount")
    desired_count: int = Field(default=0, ge=0, alias="desiredCount")
    rollout_state: RolloutState = Field(default=RolloutState.IN_PROGRESS, alias="rolloutState")

    @field_validator("running_count", "desired_count", mode="before")
    @classmethod
    def _none_count_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("rollout_state", mode="before")
    @classmethod
    def _none_state_is_in_progress(cls, value: Any) -> Any:
        return RolloutState.IN_PROGRESS if value is None else value

    @property
    def is_converged(self) -> bool:
        """Rollout completed with every desired task running.

        A desired count of zero never counts: a service scaled to nothing
        trivially has "all" of its tasks running.
        """
        return (
            self.rollout_state is RolloutState.COMPLETED
            and self.running_count == self.desired_count
            and self.desired_count > 0
        )

    @property
    def has_failed(self) -> bool:
        return self.rollout_state is RolloutState.FAILED

    def describe(self) -> str:
        return (
            f"Running={self.running_count} Desired={self.desired_count} "
            f"State={self.rollout_state.value}"
        )


@dataclass(frozen=True)
class HealthStatus:
    """Outcome of a health probe.

    ``status`` is the value of the endpoint's ``status`` field, or None when
    the endpoint could not be read (UNKNOWN). ``detail`` says why.
    """

    status: str | None
    detail: str = ""

    HEALTHY: ClassVar[str] = "healthy"

    @classmethod
    def unknown(cls, detail: str) -> HealthStatus:
        return cls(status=None, detail=detail)

    @property
    def is_known(self) -> bool:
        return self.status is not None

    @property
    def is_healthy(self) -> bool:
        return self.status == self.HEALTHY

    def describe(self) -> str:
        if self.status is None:
            return f"unknown ({self.detail})" if self.detail else "unknown"
        return self.status


# --- Pipeline results ---


@dataclass(frozen=True)
class PipelineResult:
    """Base for the outcome of a pipeline run.

    Exactly one subclass is returned per run. ``fatal`` variants map to exit
    code 1; everything else exits 0, with ``caveat`` describing any soft
    degradation the operator should look at.
    """

    build_id: BuildId | None
    health: HealthStatus | None

    fatal: ClassVar[bool] = False

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal else 0

    @property
    def caveat(self) -> str | None:
        return None


@dataclass(frozen=True)
class Success(PipelineResult):
    """Build succeeded, rollout converged, service reports healthy."""


@dataclass(frozen=True)
class BuildFailed(PipelineResult):
    """Build ended in a failure status (or ran past its configured limit)."""

    status: BuildStatus | None = None
    timed_out: bool = False

    fatal: ClassVar[bool] = True


@dataclass(frozen=True)
class DeploymentFailed(PipelineResult):
    """The orchestration service reported the rollout as FAILED."""

    last_status: DeploymentStatus | None = None

    fatal: ClassVar[bool] = True


@dataclass(frozen=True)
class DeploymentTimedOut(PipelineResult):
    """Rollout did not converge within its wait budget. Advisory."""

    last_status: DeploymentStatus | None = None

    @property
    def caveat(self) -> str | None:
        return "Deployment is taking longer than expected. Check the orchestration console."


@dataclass(frozen=True)
class HealthCheckDegraded(PipelineResult):
    """Rollout converged but the health endpoint did not report healthy. Advisory."""

    @property
    def caveat(self) -> str | None:
        reported = self.health.describe() if self.health else "unknown"
        return f"Health check returned: {reported}. The service may still be starting up."
