"""Protocols for the remote services the pipeline drives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from pathlib import Path


class ServiceError(Exception):
    """Base exception for remote service failures."""

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(f"[{service}] {message}")


class ServiceUnavailableError(ServiceError):
    """Raised when the service (or the tool used to reach it) cannot be reached."""

    pass


class ServiceResponseError(ServiceError):
    """Raised when the service answers with something that cannot be interpreted."""

    pass


class SourceStore(Protocol):
    """Object storage that holds the source archive the build reads."""

    def upload(self, archive: Path, bucket: str, key: str) -> str:
        """Upload ``archive`` and return the source reference (``bucket/key``)."""
        ...


class BuildService(Protocol):
    """Remote build-trigger API."""

    def create_or_update_build_source(self, project_id: str, source_ref: str) -> None:
        """Point the build project at the given source archive."""
        ...

    def start_build(self, project_id: str) -> str:
        """Start one build and return its ID."""
        ...

    def get_build_status(self, build_id: str) -> str:
        """Return the raw status string of a build."""
        ...


class OrchestrationService(Protocol):
    """Remote container orchestration API."""

    def force_new_deployment(self, cluster: str, service: str) -> dict[str, Any]:
        """Replace running tasks with the latest published image."""
        ...

    def describe_service(self, cluster: str, service: str) -> dict[str, Any]:
        """Return ``{runningCount, desiredCount, rolloutState}`` of the primary deployment."""
        ...
