"""Remote service protocols and their AWS CLI implementations."""

from promoter.services.aws_cli import AwsCli, CodeBuildService, EcsService, S3SourceStore
from promoter.services.base import (
    BuildService,
    OrchestrationService,
    ServiceError,
    ServiceResponseError,
    ServiceUnavailableError,
    SourceStore,
)

__all__ = [
    "AwsCli",
    "BuildService",
    "CodeBuildService",
    "EcsService",
    "OrchestrationService",
    "S3SourceStore",
    "ServiceError",
    "ServiceResponseError",
    "ServiceUnavailableError",
    "SourceStore",
]
