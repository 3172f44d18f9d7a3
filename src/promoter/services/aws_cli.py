"""Service backends that drive the ``aws`` command-line tool.

Each call runs ``aws <service> <command> ... --output json`` through
subprocess and parses stdout. Credentials come from whatever the CLI
resolves for the configured profile.
"""

from __future__ import annotations

import json
import subprocess
from typing import TYPE_CHECKING, Any

from promoter.observability.logging import get_logger
from promoter.services.base import ServiceResponseError, ServiceUnavailableError

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

DEFAULT_CALL_TIMEOUT = 120.0
UPLOAD_TIMEOUT = 900.0


class AwsCli:
    """Runs ``aws`` subcommands with shared region/profile flags."""

    def __init__(
        self,
        region: str,
        profile: str | None = None,
        *,
        executable: str = "aws",
        timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self.region = region
        self.profile = profile
        self.executable = executable
        self.timeout = timeout

    def command(self, *args: str) -> list[str]:
        """Build the full argument vector for an ``aws`` call."""
        argv = [self.executable, *args, "--region", self.region]
        if self.profile:
            argv += ["--profile", self.profile]
        return argv

    def run(self, *args: str, timeout: float | None = None, parse_json: bool = True) -> Any:
        """Run an ``aws`` subcommand.

        Args:
            *args: Service, command and options, e.g. ``"ecs", "describe-services", ...``.
            timeout: Seconds before the call is abandoned (default: instance timeout).
            parse_json: Append ``--output json`` and decode stdout.

        Returns:
            Decoded JSON (None for empty output), or raw stdout if parse_json is False.

        Raises:
            ServiceUnavailableError: The CLI is missing, timed out, or exited non-zero.
            ServiceResponseError: stdout was not valid JSON.
        """
        service = args[0] if args else "aws"
        argv = self.command(*args)
        if parse_json:
            argv += ["--output", "json"]

        log.debug("aws_call", argv=argv)
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError as e:
            raise ServiceUnavailableError(
                service, f"'{self.executable}' not found on PATH; install the AWS CLI"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ServiceUnavailableError(
                service, f"'{' '.join(args[:2])}' timed out after {e.timeout:.0f}s"
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.strip() or f"exit code {result.returncode}"
            raise ServiceUnavailableError(service, f"'{' '.join(args[:2])}' failed: {stderr}")

        if not parse_json:
            return result.stdout
        if not result.stdout.strip():
            return None
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ServiceResponseError(
                service, f"'{' '.join(args[:2])}' returned invalid JSON: {e}"
            ) from e


class S3SourceStore:
    """SourceStore backed by ``aws s3 cp``."""

    def __init__(self, cli: AwsCli) -> None:
        self._cli = cli

    def upload(self, archive: Path, bucket: str, key: str) -> str:
        log.info("source_upload", bucket=bucket, key=key, size=archive.stat().st_size)
        self._cli.run(
            "s3", "cp", str(archive), f"s3://{bucket}/{key}",
            "--only-show-errors",
            timeout=UPLOAD_TIMEOUT,
            parse_json=False,
        )
        return f"{bucket}/{key}"


class CodeBuildService:
    """BuildService backed by AWS CodeBuild."""

    def __init__(self, cli: AwsCli) -> None:
        self._cli = cli

    def create_or_update_build_source(self, project_id: str, source_ref: str) -> None:
        self._cli.run(
            "codebuild", "update-project",
            "--name", project_id,
            "--source", f"type=S3,location={source_ref}",
        )

    def start_build(self, project_id: str) -> str:
        data = self._cli.run("codebuild", "start-build", "--project-name", project_id)
        try:
            return str(data["build"]["id"])
        except (KeyError, TypeError) as e:
            raise ServiceResponseError("codebuild", "start-build response has no build.id") from e

    def get_build_status(self, build_id: str) -> str:
        data = self._cli.run("codebuild", "batch-get-builds", "--ids", build_id)
        builds = (data or {}).get("builds") or []
        if not builds:
            raise ServiceResponseError("codebuild", f"build {build_id} not found")
        status = builds[0].get("buildStatus")
        if not status:
            raise ServiceResponseError("codebuild", f"build {build_id} has no buildStatus")
        return str(status)


class EcsService:
    """OrchestrationService backed by Amazon ECS."""

    def __init__(self, cli: AwsCli) -> None:
        self._cli = cli

    def force_new_deployment(self, cluster: str, service: str) -> dict[str, Any]:
        data = self._cli.run(
            "ecs", "update-service",
            "--cluster", cluster,
            "--service", service,
            "--force-new-deployment",
        )
        described = (data or {}).get("service") or {}
        deployments = described.get("deployments") or [{}]
        return {
            "serviceName": described.get("serviceName", service),
            "deploymentId": deployments[0].get("id"),
        }

    def describe_service(self, cluster: str, service: str) -> dict[str, Any]:
        data = self._cli.run(
            "ecs", "describe-services",
            "--cluster", cluster,
            "--services", service,
        )
        services = (data or {}).get("services") or []
        if not services:
            failures = (data or {}).get("failures") or []
            reason = failures[0].get("reason", "unknown") if failures else "not returned"
            raise ServiceResponseError("ecs", f"service {service} in {cluster}: {reason}")

        deployments = services[0].get("deployments") or []
        if not deployments:
            raise ServiceResponseError("ecs", f"service {service} has no deployments")

        primary = deployments[0]
        return {
            "runningCount": primary.get("runningCount"),
            "desiredCount": primary.get("desiredCount"),
            "rolloutState": primary.get("rolloutState"),
        }
