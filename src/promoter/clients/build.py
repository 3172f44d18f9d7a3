"""Build submission and status polling."""

from __future__ import annotations

from typing import TYPE_CHECKING

from promoter.observability.logging import get_logger
from promoter.pipeline.models import BuildId, BuildRequest, BuildStatus
from promoter.pipeline.stage_runner import Continue, Terminal, Verdict
from promoter.services.base import ServiceResponseError

if TYPE_CHECKING:
    from promoter.services.base import BuildService

log = get_logger(__name__)

CONSOLE_BUILD_URL = (
    "https://console.aws.amazon.com/codesuite/codebuild/projects/{project}/build/{build}"
)


class BuildClient:
    """Adapter over a BuildService.

    ``submit`` starts a remote build every time it is called; the
    orchestrator calls it once per run.
    """

    def __init__(self, service: BuildService, region: str | None = None) -> None:
        self._service = service
        self._region = region

    def submit(self, request: BuildRequest) -> BuildId:
        """Point the project at the uploaded source and start one build."""
        self._service.create_or_update_build_source(request.project_id, request.source_ref)
        log.debug("build_source_updated", project=request.project_id, source=request.source_ref)

        build_id = self._service.start_build(request.project_id)
        log.info("build_submitted", project=request.project_id, build_id=build_id)
        return build_id

    def status(self, build_id: BuildId) -> BuildStatus:
        raw = self._service.get_build_status(build_id)
        try:
            return BuildStatus(raw)
        except ValueError as e:
            raise ServiceResponseError("build", f"unrecognized build status {raw!r}") from e

    def poll(self, build_id: BuildId) -> Verdict:
        """One polling tick: Terminal on success or failure, else Continue."""
        status = self.status(build_id)
        if status.is_terminal:
            return Terminal(status)
        return Continue(status)

    def diagnostics_url(self, project_id: str, build_id: BuildId) -> str:
        """Console link to the logs of a build."""
        url = CONSOLE_BUILD_URL.format(project=project_id, build=build_id.rsplit("/", 1)[-1])
        if self._region:
            url += f"?region={self._region}"
        return url
