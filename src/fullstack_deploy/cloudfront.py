"""
fullstack_deploy.cloudfront — CloudFront invalidation for the client distribution.

Locates the distribution in the deployed stack, creates an invalidation and
polls it until CloudFront reports it Completed.

    Locating -> NotFound            (logged, returns None)
    Locating -> Creating -> Polling -> Completed
    any request error               (propagates)

Polling backs off exponentially up to max_poll_interval, gives up after
max_attempts status checks, and stops early when cancel_event is set.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from typing import Any
from uuid import uuid4

from aws_lambda_powertools import Logger

from fullstack_deploy.exceptions import InvalidationCancelledError, InvalidationTimeoutError
from fullstack_deploy.models import DISTRIBUTION_RESOURCE, Invalidation, InvalidationStatus

logger = Logger(service="fullstack-deploy")

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_POLL_INTERVAL_SECONDS = 60.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_MAX_ATTEMPTS = 120


def normalize_invalidation_paths(paths: str | Sequence[str] | None) -> list[str]:
    """Accept a single path or a list; every path gets a leading slash."""
    if paths is None:
        return ["/*"]
    if isinstance(paths, str):
        paths = [paths]
    return [path if path.startswith("/") else f"/{path}" for path in paths]


def find_distribution_id(cloudformation_client: Any, stack_name: str) -> str | None:
    """Return the physical id of the client distribution in the stack, if any."""
    kwargs: dict[str, Any] = {"StackName": stack_name}
    while True:
        response = cloudformation_client.list_stack_resources(**kwargs)
        for summary in response.get("StackResourceSummaries", []):
            if summary.get("LogicalResourceId") == DISTRIBUTION_RESOURCE:
                return summary.get("PhysicalResourceId")
        next_token = response.get("NextToken")
        if not next_token:
            return None
        kwargs["NextToken"] = next_token


def make_caller_reference(clock: Callable[[], float] = time.time) -> str:
    """Millisecond timestamp plus a random suffix; unique per invalidation request."""
    return f"{int(clock() * 1000)}-{uuid4().hex}"


def _status(response: dict[str, Any]) -> InvalidationStatus:
    raw = response.get("Invalidation", {}).get("Status")
    if raw == InvalidationStatus.COMPLETED:
        return InvalidationStatus.COMPLETED
    return InvalidationStatus.IN_PROGRESS


def create_invalidation(
    cloudfront_client: Any,
    distribution_id: str,
    paths: Sequence[str],
    *,
    clock: Callable[[], float] = time.time,
) -> Invalidation:
    invalidation = Invalidation(
        distribution_id=distribution_id,
        caller_reference=make_caller_reference(clock),
        paths=list(paths),
    )
    response = cloudfront_client.create_invalidation(
        DistributionId=distribution_id,
        InvalidationBatch=invalidation.batch(),
    )
    invalidation.invalidation_id = response["Invalidation"]["Id"]
    invalidation.status = _status(response)
    logger.info(
        "CloudFront invalidation started",
        distribution_id=distribution_id,
        invalidation_id=invalidation.invalidation_id,
        paths=invalidation.paths,
    )
    return invalidation


def wait_for_invalidation(
    cloudfront_client: Any,
    invalidation: Invalidation,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL_SECONDS,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cancel_event: threading.Event | None = None,
) -> Invalidation:
    """Poll GetInvalidation until Completed; one status query per attempt."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    cancel = cancel_event or threading.Event()
    delay = poll_interval

    for attempt in range(1, max_attempts + 1):
        response = cloudfront_client.get_invalidation(
            DistributionId=invalidation.distribution_id,
            Id=invalidation.invalidation_id,
        )
        invalidation.status = _status(response)
        if invalidation.is_complete:
            logger.info(
                "CloudFront invalidation completed",
                invalidation_id=invalidation.invalidation_id,
                attempts=attempt,
            )
            return invalidation
        if attempt == max_attempts:
            break
        if cancel.wait(delay):
            raise InvalidationCancelledError(
                f"Stopped waiting for invalidation {invalidation.invalidation_id}"
            )
        delay = min(delay * backoff_factor, max_poll_interval)

    raise InvalidationTimeoutError(
        invalidation_id=str(invalidation.invalidation_id), attempts=max_attempts
    )


def invalidate(
    cloudformation_client: Any,
    cloudfront_client: Any,
    stack_name: str,
    paths: str | Sequence[str] | None,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL_SECONDS,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cancel_event: threading.Event | None = None,
    clock: Callable[[], float] = time.time,
) -> Invalidation | None:
    """Invalidate paths on the stack's client distribution and wait for completion.

    Returns None without error when the stack has no client distribution.
    """
    distribution_id = find_distribution_id(cloudformation_client, stack_name)
    if not distribution_id:
        logger.warning(
            "CloudFront distribution id was not found; skipping invalidation",
            stack_name=stack_name,
        )
        return None

    invalidation = create_invalidation(
        cloudfront_client,
        distribution_id,
        normalize_invalidation_paths(paths),
        clock=clock,
    )
    return wait_for_invalidation(
        cloudfront_client,
        invalidation,
        poll_interval=poll_interval,
        max_poll_interval=max_poll_interval,
        backoff_factor=backoff_factor,
        max_attempts=max_attempts,
        cancel_event=cancel_event,
    )
