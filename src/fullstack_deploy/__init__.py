"""
fullstack_deploy — Deploy a static web client to S3 and CloudFront.

Composes the client's CloudFormation resources, syncs the built client into
its bucket and invalidates the CloudFront distribution in front of it.
"""

from fullstack_deploy.cloudfront import invalidate
from fullstack_deploy.config import DeploymentConfig, validate_config
from fullstack_deploy.deploy import build_resources, deploy_client, remove_client
from fullstack_deploy.exceptions import (
    BucketNotFoundError,
    ConfigurationError,
    DeployError,
    TemplatePreconditionError,
    UploadError,
)
from fullstack_deploy.headers import resolve_headers
from fullstack_deploy.storage import empty_bucket, upload_directory
from fullstack_deploy.template import compose, merge_templates

__all__ = [
    "BucketNotFoundError",
    "ConfigurationError",
    "DeployError",
    "DeploymentConfig",
    "TemplatePreconditionError",
    "UploadError",
    "build_resources",
    "compose",
    "deploy_client",
    "empty_bucket",
    "invalidate",
    "merge_templates",
    "remove_client",
    "resolve_headers",
    "upload_directory",
    "validate_config",
]
