"""Pipeline orchestrator: package, build, deploy, health-check."""

from __future__ import annotations

import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from promoter.bundle import package_source
from promoter.observability.logging import (
    bind_run_context,
    clear_run_context,
    generate_run_id,
    get_logger,
)
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
    Success,
)
from promoter.pipeline.observers import NullObserver, PipelineObserver, PipelineState
from promoter.pipeline.stage_runner import StageRunner, TimedOut

if TYPE_CHECKING:
    from promoter.clients.build import BuildClient
    from promoter.clients.deployment import DeploymentClient
    from promoter.clients.health import HealthProbe
    from promoter.pipeline.config import PipelineConfig
    from promoter.services.base import SourceStore

log = get_logger(__name__)

ARCHIVE_NAME = "source.zip"


class PipelineOrchestrator:
    """Run one promotion from source directory to health-checked service.

    Stages run strictly in order and each hands a read-only result to the
    next. Build failures and an explicit rollout failure are fatal; a slow
    rollout and an unhealthy probe are reported as warnings and the run
    still finishes.

    Service errors raised by any collaborator are not caught here: they
    abort the run and propagate to the caller, with ``state`` left at the
    stage that failed.

    Attributes:
        config: Resolved pipeline configuration.
        state: Current PipelineState.
        run_id: ID of the current (or last) run, bound to every log event.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        source_store: SourceStore,
        build_client: BuildClient,
        deployment_client: DeploymentClient,
        health_probe: HealthProbe,
        observer: PipelineObserver | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._source_store = source_store
        self._build = build_client
        self._deploy = deployment_client
        self._health = health_probe
        self._observer: PipelineObserver = observer or NullObserver()
        self._sleep = sleep
        self._runner = StageRunner(clock=clock, sleep=sleep, on_progress=self._on_progress)

        self.state = PipelineState.INIT
        self.run_id: str | None = None

    def run(self) -> PipelineResult:
        """Execute the pipeline once.

        Returns:
            The PipelineResult variant describing how the run ended.

        Raises:
            ServiceError: A remote call failed; the run was aborted.
            BundleError: The source directory could not be packaged.
        """
        self.run_id = generate_run_id()
        bind_run_context(run_id=self.run_id)
        self.state = PipelineState.INIT
        start = time.perf_counter()
        log.info(
            "pipeline_start",
            project=self.config.build_project,
            service=str(self.config.service_ref),
        )

        try:
            result = self._run_stages()
        except Exception as e:
            log.error("pipeline_aborted", state=self.state.value, error=str(e))
            raise
        finally:
            clear_run_context()

        log.info(
            "pipeline_complete",
            run_id=self.run_id,
            result=type(result).__name__,
            exit_code=result.exit_code,
            duration=round(time.perf_counter() - start, 1),
        )
        return result

    def _run_stages(self) -> PipelineResult:
        request = self._package_and_upload()

        build_id = self._build.submit(request)
        bind_run_context(build_id=build_id)
        self._transition(PipelineState.BUILD_SUBMITTED, build_id)

        build_outcome = self._wait_for_build(build_id)
        if isinstance(build_outcome, TimedOut) or build_outcome.is_failure:
            timed_out = isinstance(build_outcome, TimedOut)
            status = build_outcome.last_state if timed_out else build_outcome
            self._transition(
                PipelineState.BUILD_FAILED,
                self._build.diagnostics_url(request.project_id, build_id),
            )
            return BuildFailed(build_id=build_id, health=None, status=status, timed_out=timed_out)

        ref = self.config.service_ref
        ack = self._deploy.force_redeploy(ref)
        self._transition(PipelineState.DEPLOY_TRIGGERED, ack.deployment_id or str(ref))

        deploy_outcome = self._wait_for_rollout()
        if isinstance(deploy_outcome, DeploymentStatus) and deploy_outcome.has_failed:
            self._transition(PipelineState.DEPLOY_FAILED, deploy_outcome.describe())
            return DeploymentFailed(build_id=build_id, health=None, last_status=deploy_outcome)

        health = self._check_health()
        self._transition(PipelineState.DONE, None)

        if isinstance(deploy_outcome, TimedOut):
            return DeploymentTimedOut(
                build_id=build_id, health=health, last_status=deploy_outcome.last_state
            )
        if not health.is_healthy:
            return HealthCheckDegraded(build_id=build_id, health=health)
        return Success(build_id=build_id, health=health)

    def _package_and_upload(self) -> BuildRequest:
        self._transition(PipelineState.PACKAGING, self.config.source_dir)
        with tempfile.TemporaryDirectory(prefix="promote-") as tmp:
            archive = package_source(Path(self.config.source_dir), Path(tmp) / ARCHIVE_NAME)
            source_ref = self._source_store.upload(
                archive, self.config.source_bucket, self.config.source_key
            )
        return BuildRequest(source_ref=source_ref, project_id=self.config.build_project)

    def _wait_for_build(self, build_id: str) -> BuildStatus | TimedOut:
        """Poll the build. TimedOut only happens with a finite build budget."""
        self._transition(PipelineState.BUILD_POLLING, build_id)
        outcome = self._runner.wait(
            "build", lambda: self._build.poll(build_id), self.config.build_policy
        )
        if isinstance(outcome, TimedOut):
            log.warning("build_wait_exceeded", build_id=build_id, elapsed=round(outcome.elapsed, 1))
        else:
            log.info("build_finished", build_id=build_id, status=outcome.value)
        return outcome

    def _wait_for_rollout(self) -> DeploymentStatus | TimedOut:
        ref = self.config.service_ref
        self._transition(PipelineState.DEPLOY_POLLING, str(ref))
        outcome = self._runner.wait(
            "deploy", lambda: self._deploy.poll(ref), self.config.deploy_policy
        )
        if isinstance(outcome, TimedOut):
            self._warn(
                "deploy",
                f"Rollout did not converge within {self.config.deploy_max_wait:.0f}s; "
                "continuing to health check",
            )
        else:
            log.info("rollout_finished", service=str(ref), status=outcome.describe())
        return outcome

    def _check_health(self) -> HealthStatus:
        endpoint = self.config.health_endpoint
        self._transition(PipelineState.HEALTH_CHECK, endpoint)
        if self.config.health_settle > 0:
            log.debug("health_settle", seconds=self.config.health_settle)
            self._sleep(self.config.health_settle)
        health = self._health.check(endpoint)
        if not health.is_healthy:
            self._warn("health", f"Health check returned: {health.describe()}")
        return health

    def _transition(self, state: PipelineState, detail: str | None) -> None:
        log.debug("state_change", previous=self.state.value, state=state.value, detail=detail)
        self.state = state
        self._observer.on_state_change(state, detail)

    def _warn(self, stage: str, message: str) -> None:
        log.warning("stage_degraded", stage=stage, message=message)
        self._observer.on_warning(stage, message)

    def _on_progress(self, stage: str, observed: Any) -> None:
        self._observer.on_stage_progress(stage, observed)
