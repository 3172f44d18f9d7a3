"""Forced redeploys and rollout convergence checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from promoter.observability.logging import get_logger
from promoter.pipeline.models import DeploymentStatus, ServiceRef
from promoter.pipeline.stage_runner import Continue, Terminal, Verdict
from promoter.services.base import ServiceResponseError

if TYPE_CHECKING:
    from promoter.services.base import OrchestrationService

log = get_logger(__name__)


@dataclass(frozen=True)
class Ack:
    """Acknowledgement of a forced redeploy."""

    service_ref: ServiceRef
    deployment_id: str | None = None


class DeploymentClient:
    """Adapter over an OrchestrationService.

    Each ``force_redeploy`` call restarts the rollout, so the orchestrator
    issues exactly one per successful build.
    """

    def __init__(self, service: OrchestrationService) -> None:
        self._service = service

    def force_redeploy(self, ref: ServiceRef) -> Ack:
        response = self._service.force_new_deployment(ref.cluster, ref.service)
        ack = Ack(service_ref=ref, deployment_id=(response or {}).get("deploymentId"))
        log.info("redeploy_triggered", service=str(ref), deployment_id=ack.deployment_id)
        return ack

    def rollout_status(self, ref: ServiceRef) -> DeploymentStatus:
        description = self._service.describe_service(ref.cluster, ref.service)
        return parse_deployment_status(description)

    def poll(self, ref: ServiceRef) -> Verdict:
        """One polling tick.

        An explicit FAILED rollout is terminal regardless of task counts;
        otherwise only convergence ends polling.
        """
        status = self.rollout_status(ref)
        if status.has_failed or status.is_converged:
            return Terminal(status)
        return Continue(status)


def parse_deployment_status(description: dict[str, Any]) -> DeploymentStatus:
    """Validate a ``describe_service`` payload into a DeploymentStatus.

    Raises:
        ServiceResponseError: If counts are negative or the rollout state is
            not one the pipeline understands.
    """
    try:
        return DeploymentStatus.model_validate(description)
    except ValidationError as e:
        raise ServiceResponseError("orchestration", f"unreadable rollout status: {e}") from e
