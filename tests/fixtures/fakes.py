"""In-memory stand-ins for the remote services and the wall clock."""

from __future__ import annotations

import zipfile
from typing import TYPE_CHECKING, Any

from promoter.pipeline.models import HealthStatus

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from promoter.pipeline.observers import PipelineState


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _Sequence:
    """Replays a list of values, repeating the last one forever.

    An Exception instance in the list is raised instead of returned.
    """

    def __init__(self, values: Iterable[Any]) -> None:
        self._values = list(values)
        self._index = 0

    def next(self) -> Any:
        value = self._values[min(self._index, len(self._values) - 1)]
        self._index += 1
        if isinstance(value, Exception):
            raise value
        return value


class FakeSourceStore:
    def __init__(self) -> None:
        self.uploads: list[tuple[str, str, list[str]]] = []

    def upload(self, archive: Path, bucket: str, key: str) -> str:
        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
        self.uploads.append((bucket, key, names))
        return f"{bucket}/{key}"


class FakeBuildService:
    def __init__(self, statuses: Iterable[Any], build_id: str = "ocr-build:1234") -> None:
        self._statuses = _Sequence(statuses)
        self.build_id = build_id
        self.source_updates: list[tuple[str, str]] = []
        self.started: list[str] = []
        self.status_calls = 0

    def create_or_update_build_source(self, project_id: str, source_ref: str) -> None:
        self.source_updates.append((project_id, source_ref))

    def start_build(self, project_id: str) -> str:
        self.started.append(project_id)
        return self.build_id

    def get_build_status(self, build_id: str) -> str:
        assert build_id == self.build_id
        self.status_calls += 1
        return self._statuses.next()


class FakeOrchestrationService:
    def __init__(self, descriptions: Iterable[Any]) -> None:
        self._descriptions = _Sequence(descriptions)
        self.redeploys: list[tuple[str, str]] = []
        self.describe_calls = 0

    def force_new_deployment(self, cluster: str, service: str) -> dict[str, Any]:
        self.redeploys.append((cluster, service))
        return {"serviceName": service, "deploymentId": "ecs-svc/42"}

    def describe_service(self, cluster: str, service: str) -> dict[str, Any]:
        self.describe_calls += 1
        return self._descriptions.next()


class FakeHealthProbe:
    def __init__(self, result: HealthStatus | None = None) -> None:
        self.result = result or HealthStatus(status="healthy")
        self.endpoints: list[str] = []

    def check(self, endpoint: str) -> HealthStatus:
        self.endpoints.append(endpoint)
        return self.result


class RecordingObserver:
    """Collects observer callbacks as (kind, name, value) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    def on_state_change(self, state: PipelineState, detail: str | None) -> None:
        self.events.append(("state", state.value, detail))

    def on_stage_progress(self, stage: str, observed: Any) -> None:
        self.events.append(("progress", stage, observed))

    def on_warning(self, stage: str, message: str) -> None:
        self.events.append(("warning", stage, message))

    @property
    def states(self) -> list[str]:
        return [name for kind, name, _ in self.events if kind == "state"]

    def progress(self, stage: str) -> list[Any]:
        return [value for kind, name, value in self.events if kind == "progress" and name == stage]

    def warnings(self, stage: str | None = None) -> list[str]:
        return [
            value
            for kind, name, value in self.events
            if kind == "warning" and (stage is None or name == stage)
        ]


def rollout(running: int, desired: int, state: str | None = "IN_PROGRESS") -> dict[str, Any]:
    """A describe_service payload."""
    return {"runningCount": running, "desiredCount": desired, "rolloutState": state}
