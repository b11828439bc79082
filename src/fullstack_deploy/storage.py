"""
fullstack_deploy.storage — Client bucket synchronization.

Empties the client bucket and uploads the built client directory with
per-object headers. Uploads run on a bounded thread pool sharing one boto3
S3 client (boto3 clients are thread-safe).

Remote errors are not retried here; botocore ClientError propagates to the
caller, which decides whether to abort the deployment.
"""

from __future__ import annotations

from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger

from fullstack_deploy.content_types import content_type_for
from fullstack_deploy.exceptions import UploadError
from fullstack_deploy.files import list_files, object_key
from fullstack_deploy.headers import HeaderRules, resolve_headers
from fullstack_deploy.models import UploadFailure, UploadUnit

logger = Logger(service="fullstack-deploy")

DEFAULT_MAX_WORKERS = 16
# DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


# ---------------------------------------------------------------------------
# Bucket inspection
# ---------------------------------------------------------------------------


def bucket_exists(s3_client: Any, bucket_name: str) -> bool:
    response = s3_client.list_buckets()
    return any(bucket.get("Name") == bucket_name for bucket in response.get("Buckets", []))


def list_object_keys(s3_client: Any, bucket_name: str) -> Iterator[str]:
    """Yield every object key in the bucket, following continuation tokens."""
    kwargs: dict[str, Any] = {"Bucket": bucket_name}
    while True:
        response = s3_client.list_objects_v2(**kwargs)
        for item in response.get("Contents", []):
            yield item["Key"]
        if not response.get("IsTruncated"):
            return
        kwargs["ContinuationToken"] = response["NextContinuationToken"]


# ---------------------------------------------------------------------------
# Empty bucket
# ---------------------------------------------------------------------------


def empty_bucket(s3_client: Any, bucket_name: str) -> int:
    """Delete every object in the bucket.

    An empty bucket costs exactly one listing request. Keys are deleted in
    batches of DELETE_BATCH_SIZE. Per-key errors reported by DeleteObjects
    are logged, not raised.

    Returns the number of keys submitted for deletion.
    """
    keys = list(list_object_keys(s3_client, bucket_name))
    if not keys:
        logger.info("Bucket already empty", bucket=bucket_name)
        return 0

    for start in range(0, len(keys), DELETE_BATCH_SIZE):
        batch = keys[start : start + DELETE_BATCH_SIZE]
        response = s3_client.delete_objects(
            Bucket=bucket_name,
            Delete={"Objects": [{"Key": key} for key in batch]},
        )
        for error in response.get("Errors", []):
            logger.error(
                "Failed to delete object",
                bucket=bucket_name,
                key=error.get("Key"),
                code=error.get("Code"),
                error_message=error.get("Message"),
            )

    logger.info("Emptied bucket", bucket=bucket_name, deleted=len(keys))
    return len(keys)


# ---------------------------------------------------------------------------
# Upload directory
# ---------------------------------------------------------------------------


def build_upload_unit(root: str | Path, path: Path, header_rules: HeaderRules | None) -> UploadUnit:
    key = object_key(root, path)
    return UploadUnit(
        source=path,
        key=key,
        body=path.read_bytes(),
        content_type=content_type_for(path),
        headers=resolve_headers(key, header_rules),
    )


def _upload_file(
    s3_client: Any,
    bucket_name: str,
    root: str | Path,
    path: Path,
    header_rules: HeaderRules | None,
) -> str:
    unit = build_upload_unit(root, path, header_rules)
    s3_client.put_object(**unit.put_object_kwargs(bucket_name))
    logger.debug("Uploaded object", bucket=bucket_name, key=unit.key)
    return unit.key


def upload_directory(
    s3_client: Any,
    bucket_name: str,
    root: str | Path,
    header_rules: HeaderRules | None = None,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    fail_fast: bool = True,
) -> list[str]:
    """Upload every file under root to the bucket, one PutObject per file.

    fail_fast=True re-raises the first upload error and cancels uploads that
    have not started yet. fail_fast=False attempts every file and raises
    UploadError listing each failed file.

    Returns the uploaded keys in enumeration order.
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    files = list_files(root)
    if not files:
        logger.info("No files to upload", root=str(root))
        return []

    logger.info("Uploading client files", bucket=bucket_name, files=len(files))
    uploaded: dict[Path, str] = {}
    failures: list[UploadFailure] = []

    with ThreadPoolExecutor(max_workers=min(max_workers, len(files))) as executor:
        futures: dict[Future[str], Path] = {
            executor.submit(_upload_file, s3_client, bucket_name, root, path, header_rules): path
            for path in files
        }
        for future in as_completed(futures):
            path = futures[future]
            error = future.exception()
            if error is None:
                uploaded[path] = future.result()
                continue
            key = object_key(root, path)
            logger.error("Upload failed", bucket=bucket_name, key=key, error=str(error))
            if fail_fast:
                for pending in futures:
                    pending.cancel()
                raise error
            failures.append(UploadFailure(key=key, source=path, error=error))

    if failures:
        raise UploadError(failures)
    return [uploaded[path] for path in files]
