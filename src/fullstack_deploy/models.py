"""
fullstack_deploy.models — Value types passed between the sync and invalidation engines.

Resource logical ids used across the composed template and the deployed
stack are defined here so the composer and the coordinator agree on them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Logical resource ids in the base template
# ---------------------------------------------------------------------------
DISTRIBUTION_RESOURCE = "ApiDistribution"
BUCKET_RESOURCE = "WebAppS3Bucket"
BUCKET_POLICY_RESOURCE = "WebAppS3BucketPolicy"
ORIGIN_ACCESS_IDENTITY_RESOURCE = "S3OriginAccessIdentity"
REST_API_RESOURCE = "ApiGatewayRestApi"

API_ORIGIN_ID = "ApiGateway"
WEB_APP_ORIGIN_ID = "WebApp"
OAI_STATEMENT_SID = "OAIGetObject"

# Rule-table key applying to every uploaded object
ALL_OBJECTS = "ALL_OBJECTS"


class InvalidationStatus(StrEnum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class UploadUnit:
    """One file ready to be written to the bucket.

    key is always the forward-slash path relative to the upload root,
    regardless of the host path separator.
    """

    source: Path
    key: str
    body: bytes
    content_type: str
    headers: dict[str, Any] = field(default_factory=dict)

    def put_object_kwargs(self, bucket_name: str) -> dict[str, Any]:
        return {
            "Bucket": bucket_name,
            "Key": self.key,
            "Body": self.body,
            "ContentType": self.content_type,
            **self.headers,
        }


@dataclass(frozen=True)
class UploadFailure:
    key: str
    source: Path
    error: BaseException


@dataclass
class Invalidation:
    """A CloudFront invalidation tracked from creation until it completes."""

    distribution_id: str
    caller_reference: str
    paths: list[str]
    invalidation_id: str | None = None
    status: InvalidationStatus = InvalidationStatus.IN_PROGRESS

    @property
    def is_complete(self) -> bool:
        return self.status == InvalidationStatus.COMPLETED

    def batch(self) -> dict[str, Any]:
        return {
            "CallerReference": self.caller_reference,
            "Paths": {"Quantity": len(self.paths), "Items": list(self.paths)},
        }
