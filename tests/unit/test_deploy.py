"""Unit tests for fullstack_deploy.deploy."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

from fullstack_deploy.config import validate_config
from fullstack_deploy.deploy import build_resources, deploy_client, remove_client
from fullstack_deploy.exceptions import BucketNotFoundError
from fullstack_deploy.models import (
    API_ORIGIN_ID,
    BUCKET_RESOURCE,
    DISTRIBUTION_RESOURCE,
    ORIGIN_ACCESS_IDENTITY_RESOURCE,
)
from fullstack_deploy.resources import base_template
from fullstack_deploy.template import distribution_config

_REGION = "us-east-1"
_BUCKET = "svc-dev-webapp"


def _config(**raw: Any) -> Any:
    return validate_config({"bucketName": "webapp", **raw})


def _s3_with_bucket(*existing_keys: str) -> Any:
    s3 = boto3.client("s3", region_name=_REGION)
    s3.create_bucket(Bucket=_BUCKET)
    for key in existing_keys:
        s3.put_object(Bucket=_BUCKET, Key=key, Body=b"old")
    return s3


def _cdn_clients() -> tuple[MagicMock, MagicMock]:
    cloudformation = MagicMock()
    cloudformation.list_stack_resources.return_value = {
        "StackResourceSummaries": [
            {"LogicalResourceId": DISTRIBUTION_RESOURCE, "PhysicalResourceId": "E2EXAMPLE"}
        ]
    }
    cloudfront = MagicMock()
    cloudfront.create_invalidation.return_value = {"Invalidation": {"Id": "I1", "Status": "InProgress"}}
    cloudfront.get_invalidation.return_value = {"Invalidation": {"Id": "I1", "Status": "Completed"}}
    return cloudformation, cloudfront


def _deploy(config: Any, service_path: Path, s3: Any, **kwargs: Any) -> Any:
    cloudformation, cloudfront = kwargs.pop("cdn_clients", None) or _cdn_clients()
    return deploy_client(
        config,
        service="svc",
        stage="dev",
        stack_name="svc-dev",
        service_path=service_path,
        s3_client=s3,
        cloudformation_client=cloudformation,
        cloudfront_client=cloudfront,
        poll_interval=0,
        **kwargs,
    )


def _keys(s3: Any) -> list[str]:
    return sorted(item["Key"] for item in s3.list_objects_v2(Bucket=_BUCKET).get("Contents", []))


# ---------------------------------------------------------------------------
# deploy_client
# ---------------------------------------------------------------------------


@mock_aws
def test_deploy_replaces_bucket_contents_and_invalidates(client_dist: Path) -> None:
    s3 = _s3_with_bucket("stale.js")
    cloudformation, cloudfront = _cdn_clients()
    service_path = client_dist.parents[1]

    result = _deploy(_config(), service_path, s3, cdn_clients=(cloudformation, cloudfront))

    assert result.bucket_name == _BUCKET
    assert result.deleted_count == 1
    assert sorted(result.uploaded_keys) == ["css/style.css", "index.html", "js/app.js", "static/special.js"]
    assert _keys(s3) == ["css/style.css", "index.html", "js/app.js", "static/special.js"]
    assert result.invalidation is not None and result.invalidation.is_complete
    batch = cloudfront.create_invalidation.call_args.kwargs["InvalidationBatch"]
    assert batch["Paths"] == {"Quantity": 1, "Items": ["/*"]}


@mock_aws
def test_deploy_applies_header_rules(client_dist: Path) -> None:
    s3 = _s3_with_bucket()
    config = _config(
        objectHeaders={"static/": [{"name": "Cache-Control", "value": "max-age=86400"}]}
    )

    _deploy(config, client_dist.parents[1], s3)

    head = s3.head_object(Bucket=_BUCKET, Key="static/special.js")
    assert head["CacheControl"] == "max-age=86400"


@mock_aws
def test_deploy_uses_configured_invalidation_paths(client_dist: Path) -> None:
    s3 = _s3_with_bucket()
    cloudformation, cloudfront = _cdn_clients()

    _deploy(
        _config(invalidationPaths=["/index.html", "js/*"]),
        client_dist.parents[1],
        s3,
        cdn_clients=(cloudformation, cloudfront),
    )

    batch = cloudfront.create_invalidation.call_args.kwargs["InvalidationBatch"]
    assert batch["Paths"]["Items"] == ["/index.html", "/js/*"]


@mock_aws
def test_deploy_keeps_contents_when_asked(client_dist: Path) -> None:
    s3 = _s3_with_bucket("keep.txt")

    result = _deploy(_config(), client_dist.parents[1], s3, delete_contents=False)

    assert result.deleted_count == 0
    assert "keep.txt" in _keys(s3)


@mock_aws
def test_deploy_keeps_contents_when_configured(client_dist: Path) -> None:
    s3 = _s3_with_bucket("keep.txt")

    _deploy(_config(noDeleteContents=True), client_dist.parents[1], s3)

    assert "keep.txt" in _keys(s3)


@mock_aws
def test_deploy_can_skip_invalidation(client_dist: Path) -> None:
    s3 = _s3_with_bucket()
    cloudformation, cloudfront = _cdn_clients()

    result = _deploy(
        _config(),
        client_dist.parents[1],
        s3,
        cdn_clients=(cloudformation, cloudfront),
        invalidate_distribution=False,
    )

    assert result.invalidation is None
    assert cloudformation.method_calls == []
    assert cloudfront.method_calls == []


@mock_aws
def test_deploy_without_bucket_fails_before_any_upload(client_dist: Path) -> None:
    s3 = boto3.client("s3", region_name=_REGION)
    cloudformation, cloudfront = _cdn_clients()

    with pytest.raises(BucketNotFoundError) as exc_info:
        _deploy(_config(), client_dist.parents[1], s3, cdn_clients=(cloudformation, cloudfront))

    assert exc_info.value.bucket_name == _BUCKET
    assert cloudfront.method_calls == []


# ---------------------------------------------------------------------------
# remove_client
# ---------------------------------------------------------------------------


@mock_aws
def test_remove_client_empties_bucket() -> None:
    s3 = _s3_with_bucket("index.html", "js/app.js")
    assert remove_client(_config(), service="svc", stage="dev", s3_client=s3) is True
    assert _keys(s3) == []


@mock_aws
def test_remove_client_without_bucket() -> None:
    s3 = boto3.client("s3", region_name=_REGION)
    assert remove_client(_config(), service="svc", stage="dev", s3_client=s3) is False


# ---------------------------------------------------------------------------
# build_resources
# ---------------------------------------------------------------------------


def test_build_resources_without_rest_api_removes_api_origin() -> None:
    resources = build_resources(_config(), service="svc", stage="dev")
    dist = distribution_config(resources)
    assert all(origin["Id"] != API_ORIGIN_ID for origin in dist["Origins"])
    assert resources["Resources"][BUCKET_RESOURCE]["Properties"]["BucketName"] == _BUCKET


def test_build_resources_discovers_rest_api_in_service_template() -> None:
    resources = build_resources(
        _config(),
        service="svc",
        stage="prod",
        service_template={"Resources": {"ApiGatewayRestApi": {"Type": "AWS::ApiGateway::RestApi"}}},
    )
    origin = next(o for o in distribution_config(resources)["Origins"] if o["Id"] == API_ORIGIN_ID)
    assert origin["OriginPath"] == "/prod"


def test_build_resources_prefers_configured_rest_api_id() -> None:
    resources = build_resources(
        _config(apiGatewayRestApiId="configured"),
        service="svc",
        stage="dev",
        provider_rest_api_id="provider",
        region="eu-west-1",
    )
    origin = next(o for o in distribution_config(resources)["Origins"] if o["Id"] == API_ORIGIN_ID)
    assert origin["DomainName"] == "configured.execute-api.eu-west-1.amazonaws.com"


def test_build_resources_merges_supplied_resources() -> None:
    supplied = {"Resources": {BUCKET_RESOURCE: {"Properties": {"VersioningConfiguration": {"Status": "Enabled"}}}}}
    generated = base_template()

    resources = build_resources(
        _config(singlePageApp=True),
        service="svc",
        stage="dev",
        generated=generated,
        supplied=supplied,
    )

    bucket = resources["Resources"][BUCKET_RESOURCE]["Properties"]
    assert bucket["VersioningConfiguration"] == {"Status": "Enabled"}
    assert ORIGIN_ACCESS_IDENTITY_RESOURCE in resources["Resources"]
    assert generated == base_template()


def test_build_resources_removes_supplied_api_behaviors_without_rest_api() -> None:
    supplied = {
        "Resources": {
            DISTRIBUTION_RESOURCE: {
                "Properties": {
                    "DistributionConfig": {
                        "CacheBehaviors": [
                            {"TargetOriginId": API_ORIGIN_ID, "PathPattern": "graphql/*"},
                            {"TargetOriginId": API_ORIGIN_ID, "PathPattern": "api/*"},
                        ]
                    }
                }
            }
        }
    }

    resources = build_resources(_config(), service="svc", stage="dev", supplied=supplied)

    dist = distribution_config(resources)
    assert all(origin["Id"] != API_ORIGIN_ID for origin in dist["Origins"])
    assert all(b["TargetOriginId"] != API_ORIGIN_ID for b in dist.get("CacheBehaviors", []))
    assert dist["DefaultCacheBehavior"]["TargetOriginId"] != API_ORIGIN_ID
