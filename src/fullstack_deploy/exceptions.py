"""
fullstack_deploy.exceptions — Deployment error taxonomy.

Configuration and precondition defects are raised before any network call.
Remote failures (botocore ClientError) are never wrapped; they propagate to
the caller unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fullstack_deploy.models import UploadFailure


class DeployError(RuntimeError):
    """Base class for client deployment errors."""


class ConfigurationError(DeployError):
    """
    Raised when the deployment configuration is invalid.

    Carries every problem found in one pass so operators can fix them all
    at once instead of re-running after each message.

    Attributes:
        messages: One human-readable line per validation problem.
    """

    def __init__(self, messages: Sequence[str]) -> None:
        self.messages = list(messages)
        super().__init__("Invalid client configuration:\n  - " + "\n  - ".join(self.messages))


class TemplatePreconditionError(DeployError):
    """Raised when a required base resource is missing from the template."""


class BucketNotFoundError(DeployError):
    """Raised when the target bucket does not exist at deploy time."""

    def __init__(self, bucket_name: str) -> None:
        self.bucket_name = bucket_name
        super().__init__(
            f"Bucket {bucket_name!r} does not exist. Deploy the service stack before the client."
        )


class PathTraversalError(DeployError):
    """Raised when a directory entry resolves outside the upload root."""

    def __init__(self, *, root: str, entry: str) -> None:
        self.root = root
        self.entry = entry
        super().__init__(f"Path traversal detected: {entry!r} escapes {root!r}")


class UploadError(DeployError):
    """
    Raised by best-effort uploads when one or more files failed.

    Attributes:
        failures: One UploadFailure per file that could not be uploaded.
    """

    def __init__(self, failures: Sequence[UploadFailure]) -> None:
        self.failures = list(failures)
        keys = ", ".join(failure.key for failure in self.failures)
        super().__init__(f"{len(self.failures)} upload(s) failed: {keys}")


class InvalidationTimeoutError(DeployError):
    """Raised when an invalidation is still in progress after the last poll."""

    def __init__(self, *, invalidation_id: str, attempts: int) -> None:
        self.invalidation_id = invalidation_id
        self.attempts = attempts
        super().__init__(
            f"Invalidation {invalidation_id} did not complete after {attempts} status checks"
        )


class InvalidationCancelledError(DeployError):
    """Raised when polling is cancelled before the invalidation completes."""
