"""Pipeline configuration loading.

Configuration is resolved once at startup into a frozen PipelineConfig and
passed to every component. Resolution order for each key (highest first):

1. Command-line override
2. Environment variable (see ENV_VARS)
3. Config file (YAML, optional)
4. Built-in default

Values without a default must come from one of the first three.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

import httpx
from ruamel.yaml import YAML

from promoter.pipeline.models import ServiceRef
from promoter.pipeline.stage_runner import StagePolicy

DEFAULT_REGION = "us-east-1"
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_DEPLOY_MAX_WAIT = 600.0
DEFAULT_HEALTH_SETTLE = 30.0
DEFAULT_HEALTH_TIMEOUT = 10.0

# key -> environment variable
ENV_VARS: dict[str, str] = {
    "region": "AWS_REGION",
    "account_id": "AWS_ACCOUNT_ID",
    "profile": "AWS_PROFILE",
    "build_project": "PROMOTE_BUILD_PROJECT",
    "source_bucket": "PROMOTE_SOURCE_BUCKET",
    "source_key": "PROMOTE_SOURCE_KEY",
    "source_dir": "PROMOTE_SOURCE_DIR",
    "cluster": "PROMOTE_ECS_CLUSTER",
    "service": "PROMOTE_ECS_SERVICE",
    "health_url": "PROMOTE_HEALTH_URL",
    "health_path": "PROMOTE_HEALTH_PATH",
    "log_group": "PROMOTE_LOG_GROUP",
    "poll_interval": "PROMOTE_POLL_INTERVAL",
    "build_max_wait": "PROMOTE_BUILD_MAX_WAIT",
    "deploy_max_wait": "PROMOTE_DEPLOY_MAX_WAIT",
    "health_settle": "PROMOTE_HEALTH_SETTLE",
    "health_timeout": "PROMOTE_HEALTH_TIMEOUT",
    "transient_retries": "PROMOTE_TRANSIENT_RETRIES",
}

OPTIONAL_KEYS = frozenset({"account_id", "profile"})
DURATION_KEYS = frozenset(
    {"poll_interval", "build_max_wait", "deploy_max_wait", "health_settle", "health_timeout"}
)


class ConfigError(Exception):
    """Raised when pipeline configuration is missing or invalid."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        env = ENV_VARS.get(key)
        where = f"{key} ({env})" if env else key
        super().__init__(f"Invalid configuration for {where}: {reason}")


@dataclass(frozen=True)
class PipelineConfig:
    """Everything one promotion run needs to know.

    Attributes:
        region: Cloud region for every service call.
        account_id: Account that owns the image registry (display only).
        profile: Named credentials profile, or None for the default chain.
        build_project: Build project that turns the source archive into an image.
        source_bucket: Bucket the source archive is uploaded to.
        source_key: Object key of the source archive.
        source_dir: Directory packaged into the source archive.
        cluster: Cluster running the inference service.
        service: Service to redeploy.
        health_url: Base URL of the published service (load balancer).
        health_path: Path appended to health_url for the probe.
        log_group: Log group of the service tasks (shown in next steps).
        poll_interval: Seconds between status polls.
        build_max_wait: Seconds to wait for a build; ``inf`` waits forever.
        deploy_max_wait: Seconds to wait for rollout convergence.
        health_settle: Seconds to let the service settle before probing.
        health_timeout: Seconds before the health request is abandoned.
        transient_retries: Probe retries per polling tick on service errors.
    """

    health_url: str
    region: str = DEFAULT_REGION
    account_id: str | None = None
    profile: str | None = None
    build_project: str = "deepseek-ocr-docker-build"
    source_bucket: str = "dev-deepseek-ocr-files-bucket"
    source_key: str = "codebuild-source/docker-source.zip"
    source_dir: str = "docker"
    cluster: str = "dev-deepseek-ocr-gpu-cluster"
    service: str = "dev-deepseek-ocr-gpu-service"
    health_path: str = "/health"
    log_group: str = "/aws/ecs/deepseek-ocr-gpu"
    poll_interval: float = DEFAULT_POLL_INTERVAL
    build_max_wait: float = math.inf
    deploy_max_wait: float = DEFAULT_DEPLOY_MAX_WAIT
    health_settle: float = DEFAULT_HEALTH_SETTLE
    health_timeout: float = DEFAULT_HEALTH_TIMEOUT
    transient_retries: int = 0

    @property
    def build_policy(self) -> StagePolicy:
        return StagePolicy(self.poll_interval, self.build_max_wait, self.transient_retries)

    @property
    def deploy_policy(self) -> StagePolicy:
        return StagePolicy(self.poll_interval, self.deploy_max_wait, self.transient_retries)

    @property
    def service_ref(self) -> ServiceRef:
        return ServiceRef(cluster=self.cluster, service=self.service)

    @property
    def health_endpoint(self) -> str:
        return self.health_url.rstrip("/") + "/" + self.health_path.lstrip("/")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_sources(
        cls,
        file_data: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> PipelineConfig:
        """Resolve a config from overrides, environment, file data and defaults.

        Args:
            file_data: Parsed config file contents (flat mapping of keys).
            environ: Environment to read (default: ``os.environ``).
            overrides: Values that beat everything else (CLI flags). None
                values are ignored.

        Returns:
            Validated PipelineConfig.

        Raises:
            ConfigError: If a required key is missing or a value is invalid.
        """
        environ = os.environ if environ is None else environ
        file_data = file_data or {}
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

        unknown = set(file_data) - set(ENV_VARS)
        if unknown:
            raise ConfigError(sorted(unknown)[0], "unknown key in config file")

        values: dict[str, Any] = {}
        for f in fields(cls):
            key = f.name
            if key in overrides:
                raw = overrides[key]
            elif environ.get(ENV_VARS[key]) is not None:
                raw = environ[ENV_VARS[key]]
            elif key in file_data:
                raw = file_data[key]
            else:
                continue
            values[key] = _coerce(key, raw)

        if "health_url" not in values:
            raise ConfigError("health_url", "required value is not set")

        return cls(**values)


def _coerce(key: str, raw: Any) -> Any:
    if key in DURATION_KEYS:
        return _parse_duration(key, raw)
    if key == "transient_retries":
        try:
            count = int(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(key, f"expected an integer, got {raw!r}") from e
        if count < 0:
            raise ConfigError(key, "must not be negative")
        return count

    text = "" if raw is None else str(raw).strip()
    if not text:
        if key in OPTIONAL_KEYS:
            return None
        raise ConfigError(key, "must not be empty")
    if key == "health_url":
        _check_url(key, text)
    return text


def _parse_duration(key: str, raw: Any) -> float:
    """Parse seconds; ``inf``/``none``/``unlimited`` mean no limit (wait keys only)."""
    text = str(raw).strip().lower()
    if text in ("inf", "infinity", "none", "unlimited"):
        if not key.endswith("max_wait"):
            raise ConfigError(key, "only wait budgets may be unlimited")
        return math.inf
    try:
        seconds = float(text)
    except ValueError as e:
        raise ConfigError(key, f"expected seconds, got {raw!r}") from e
    if math.isnan(seconds) or seconds < 0:
        raise ConfigError(key, "must be a non-negative number of seconds")
    if key == "poll_interval" and seconds == 0:
        raise ConfigError(key, "must be positive")
    return seconds


def _check_url(key: str, text: str) -> None:
    try:
        url = httpx.URL(text)
    except httpx.InvalidURL as e:
        raise ConfigError(key, f"not a valid URL: {e}") from e
    if url.scheme not in ("http", "https"):
        raise ConfigError(key, f"expected an http or https URL, got {text!r}")
    if not url.host:
        raise ConfigError(key, f"URL has no host: {text!r}")
    # httpx percent-encodes characters that are not allowed in a host name
    if "%" in url.host:
        raise ConfigError(key, f"URL host is not a valid host name: {text!r}")


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a flat mapping.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a mapping.
    """
    if not path.exists():
        raise ConfigError("config", f"file not found: {path}")

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except Exception as e:
        raise ConfigError("config", f"cannot parse {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config", f"{path} must contain a mapping of settings")
    return dict(data)


def load_config(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PipelineConfig:
    """Load the pipeline configuration.

    Args:
        config_file: Optional YAML file with settings.
        environ: Environment to read (default: ``os.environ``).
        overrides: Highest-priority values (e.g. CLI flags).

    Returns:
        PipelineConfig instance.

    Raises:
        ConfigError: If configuration cannot be resolved.
    """
    file_data = load_config_file(config_file) if config_file is not None else None
    return PipelineConfig.from_sources(file_data, environ=environ, overrides=overrides)
