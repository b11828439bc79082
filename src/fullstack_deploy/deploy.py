"""
fullstack_deploy.deploy — Client deployment pipeline.

    build_resources()  merge + compose, before the stack is applied
    deploy_client()    after the stack exists: empty, upload, invalidate
    remove_client()    empty the client bucket ahead of stack removal

Prompts, build commands and summary output belong to the host tool; this
module only sequences the engines.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import boto3
from aws_lambda_powertools import Logger

from fullstack_deploy import cloudfront, storage
from fullstack_deploy.config import DeploymentConfig
from fullstack_deploy.exceptions import BucketNotFoundError
from fullstack_deploy.models import Invalidation
from fullstack_deploy.resources import base_template
from fullstack_deploy.template import (
    compose,
    discover_rest_api_id,
    get_bucket_name,
    merge_templates,
    resolve_rest_api_id,
)

logger = Logger(service="fullstack-deploy")


@dataclass(frozen=True)
class DeployResult:
    bucket_name: str
    uploaded_keys: list[str] = field(default_factory=list)
    deleted_count: int = 0
    invalidation: Invalidation | None = None


def build_resources(
    config: DeploymentConfig,
    *,
    service: str,
    stage: str,
    generated: dict[str, Any] | None = None,
    supplied: dict[str, Any] | None = None,
    service_template: dict[str, Any] | None = None,
    provider_rest_api_id: str | None = None,
    region: str | None = None,
) -> dict[str, Any]:
    """Return the composed client resources for the service stack.

    The REST API id comes from the configuration, else the provider's
    apiGateway.restApiId, else a Ref to a REST API defined in the service
    template. With none of them the API origin is removed.
    """
    merged = merge_templates(generated or base_template(), supplied)
    discovered = provider_rest_api_id or discover_rest_api_id(service_template)
    return compose(
        merged,
        config,
        service=service,
        stage=stage,
        rest_api_id=resolve_rest_api_id(config, discovered),
        region=region,
    )


def deploy_client(
    config: DeploymentConfig,
    *,
    service: str,
    stage: str,
    stack_name: str,
    service_path: str | Path = ".",
    region: str | None = None,
    s3_client: Any = None,
    cloudformation_client: Any = None,
    cloudfront_client: Any = None,
    delete_contents: bool = True,
    invalidate_distribution: bool = True,
    max_workers: int = storage.DEFAULT_MAX_WORKERS,
    fail_fast: bool = True,
    cancel_event: threading.Event | None = None,
    poll_interval: float = cloudfront.DEFAULT_POLL_INTERVAL_SECONDS,
) -> DeployResult:
    """Sync the built client into its bucket and invalidate the distribution."""
    s3 = s3_client or boto3.client("s3", region_name=region)
    bucket_name = get_bucket_name(service, stage, config.bucket_name)

    if not storage.bucket_exists(s3, bucket_name):
        raise BucketNotFoundError(bucket_name)

    deleted = 0
    if delete_contents and not config.no_delete_contents:
        logger.info("Deleting current bucket contents", bucket=bucket_name)
        deleted = storage.empty_bucket(s3, bucket_name)
    else:
        logger.info("Keeping current bucket contents", bucket=bucket_name)

    client_root = Path(service_path) / config.distribution_folder
    uploaded = storage.upload_directory(
        s3,
        bucket_name,
        client_root,
        config.header_rules(),
        max_workers=max_workers,
        fail_fast=fail_fast,
    )

    invalidation = None
    if invalidate_distribution:
        invalidation = cloudfront.invalidate(
            cloudformation_client or boto3.client("cloudformation", region_name=region),
            cloudfront_client or boto3.client("cloudfront", region_name=region),
            stack_name,
            config.invalidation_paths,
            cancel_event=cancel_event,
            poll_interval=poll_interval,
        )
    else:
        logger.info("Skipping CloudFront invalidation", stack_name=stack_name)

    logger.info("Client deployed", bucket=bucket_name, uploaded=len(uploaded))
    return DeployResult(
        bucket_name=bucket_name,
        uploaded_keys=uploaded,
        deleted_count=deleted,
        invalidation=invalidation,
    )


def remove_client(
    config: DeploymentConfig,
    *,
    service: str,
    stage: str,
    region: str | None = None,
    s3_client: Any = None,
) -> bool:
    """Empty the client bucket. Returns False when the bucket does not exist."""
    s3 = s3_client or boto3.client("s3", region_name=region)
    bucket_name = get_bucket_name(service, stage, config.bucket_name)
    if not storage.bucket_exists(s3, bucket_name):
        logger.info("Bucket does not exist", bucket=bucket_name)
        return False
    storage.empty_bucket(s3, bucket_name)
    logger.info("Client files removed", bucket=bucket_name)
    return True
