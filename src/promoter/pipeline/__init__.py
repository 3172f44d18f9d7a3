"""Pipeline orchestration and stage execution."""

from promoter.pipeline.config import ConfigError, PipelineConfig, load_config
from promoter.pipeline.models import (
    BuildFailed,
    BuildRequest,
    BuildStatus,
    DeploymentFailed,
    DeploymentStatus,
    DeploymentTimedOut,
    HealthCheckDegraded,
    HealthStatus,
    PipelineResult,
    RolloutState,
    ServiceRef,
    Success,
)
from promoter.pipeline.observers import NullObserver, PipelineObserver, PipelineState
from promoter.pipeline.orchestrator import PipelineOrchestrator
from promoter.pipeline.stage_runner import Continue, StagePolicy, StageRunner, Terminal, TimedOut

__all__ = [
    "BuildFailed",
    "BuildRequest",
    "BuildStatus",
    "ConfigError",
    "Continue",
    "DeploymentFailed",
    "DeploymentStatus",
    "DeploymentTimedOut",
    "HealthCheckDegraded",
    "HealthStatus",
    "NullObserver",
    "PipelineConfig",
    "PipelineObserver",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineState",
    "RolloutState",
    "ServiceRef",
    "StagePolicy",
    "StageRunner",
    "Success",
    "Terminal",
    "TimedOut",
    "load_config",
]
