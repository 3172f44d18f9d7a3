"""Clients the orchestrator drives: build, deployment, health."""

from promoter.clients.build import BuildClient
from promoter.clients.deployment import Ack, DeploymentClient, parse_deployment_status
from promoter.clients.health import HealthProbe

__all__ = [
    "Ack",
    "BuildClient",
    "DeploymentClient",
    "HealthProbe",
    "parse_deployment_status",
]
