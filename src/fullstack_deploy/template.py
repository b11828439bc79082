"""
fullstack_deploy.template — Compose the client's CloudFormation resource graph.

The generated base resources and any user-supplied resources are merged into
a single graph first; compose() then applies one rule per concern to a copy
of that graph. Inputs are never mutated, and every rule is idempotent, so
composing an already composed graph yields the same graph.

Absent optional settings remove their block entirely: CloudFront rejects
present-but-empty ViewerCertificate, Logging, WebACLId and Aliases values.
A missing base resource is a defect in the inputs and raises
TemplatePreconditionError.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from aws_lambda_powertools import Logger

from fullstack_deploy.config import DeploymentConfig
from fullstack_deploy.exceptions import ConfigurationError, TemplatePreconditionError
from fullstack_deploy.models import (
    API_ORIGIN_ID,
    BUCKET_POLICY_RESOURCE,
    BUCKET_RESOURCE,
    DISTRIBUTION_RESOURCE,
    OAI_STATEMENT_SID,
    ORIGIN_ACCESS_IDENTITY_RESOURCE,
    REST_API_RESOURCE,
)

logger = Logger(service="fullstack-deploy")

RestApiId = str | Mapping[str, Any]

_SPA_ERROR_CODES = (403, 404)


# ---------------------------------------------------------------------------
# Merging and lookup
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def merge_templates(
    generated: Mapping[str, Any],
    supplied: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Merge user-supplied resources over the generated ones.

    Mappings merge recursively; lists and scalars from the supplied template
    replace the generated value. Neither input is modified.
    """
    merged = copy.deepcopy(dict(generated))
    if supplied:
        _deep_merge(merged, supplied)
    return merged


def _resources(template: Mapping[str, Any]) -> dict[str, Any]:
    resources = template.get("Resources")
    if not isinstance(resources, dict):
        raise TemplatePreconditionError("Template has no Resources section")
    return resources


def _properties(resources: Mapping[str, Any], logical_id: str) -> dict[str, Any]:
    resource = resources.get(logical_id)
    if not isinstance(resource, dict) or not isinstance(resource.get("Properties"), dict):
        raise TemplatePreconditionError(f"Template is missing the {logical_id} resource")
    return resource["Properties"]


def distribution_config(template: Mapping[str, Any]) -> dict[str, Any]:
    """Return the DistributionConfig of the client distribution."""
    properties = _properties(_resources(template), DISTRIBUTION_RESOURCE)
    config = properties.get("DistributionConfig")
    if not isinstance(config, dict):
        raise TemplatePreconditionError(
            f"{DISTRIBUTION_RESOURCE} has no DistributionConfig"
        )
    return config


def get_bucket_name(service: str, stage: str, bucket_name: str) -> str:
    return f"{service}-{stage}-{bucket_name}"


# ---------------------------------------------------------------------------
# REST API id resolution
# ---------------------------------------------------------------------------


def discover_rest_api_id(template: Mapping[str, Any] | None) -> RestApiId | None:
    """Return a Ref to the REST API when the service template defines one."""
    if not template:
        return None
    resources = template.get("Resources") or {}
    if REST_API_RESOURCE in resources:
        return {"Ref": REST_API_RESOURCE}
    return None


def resolve_rest_api_id(
    config: DeploymentConfig,
    discovered: RestApiId | None = None,
) -> RestApiId | None:
    """Explicit configuration wins over the value found in the deployment context."""
    if config.api_gateway_rest_api_id:
        return config.api_gateway_rest_api_id
    return discovered or None


def _api_domain_name(rest_api_id: RestApiId, region: str | None) -> Any:
    parts: list[Any] = [
        copy.deepcopy(rest_api_id),
        ".execute-api.",
        region or {"Ref": "AWS::Region"},
        ".amazonaws.com",
    ]
    if all(isinstance(part, str) for part in parts):
        return "".join(parts)
    return {"Fn::Join": ["", parts]}


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def remove_api_origin(dist_config: dict[str, Any]) -> None:
    """Drop the API origin together with every cache behavior targeting it."""
    dist_config["Origins"] = [
        origin for origin in dist_config.get("Origins", []) if origin.get("Id") != API_ORIGIN_ID
    ]
    dist_config["CacheBehaviors"] = [
        behavior
        for behavior in dist_config.get("CacheBehaviors", [])
        if behavior.get("TargetOriginId") != API_ORIGIN_ID
    ]


def _apply_api_origin(
    dist_config: dict[str, Any],
    *,
    stage: str,
    api_path: str,
    rest_api_id: RestApiId | None,
    region: str | None,
) -> None:
    if rest_api_id is None:
        logger.info("No REST API id resolved; removing API origin", origin_id=API_ORIGIN_ID)
        remove_api_origin(dist_config)
        return

    origin = next(
        (o for o in dist_config.get("Origins", []) if o.get("Id") == API_ORIGIN_ID), None
    )
    if origin is None:
        raise TemplatePreconditionError(
            f"{DISTRIBUTION_RESOURCE} has no {API_ORIGIN_ID} origin to point at the REST API"
        )
    origin["OriginPath"] = f"/{stage}"
    if isinstance(rest_api_id, str):
        origin["DomainName"] = _api_domain_name(rest_api_id, region)

    path_pattern = f"{api_path.rstrip('/')}/*"
    for behavior in dist_config.get("CacheBehaviors", []):
        if behavior.get("TargetOriginId") == API_ORIGIN_ID:
            behavior["PathPattern"] = path_pattern


def _append_custom_entries(
    entries: list[dict[str, Any]],
    additions: list[dict[str, Any]],
    *,
    identity: Any,
    kind: str,
) -> None:
    for addition in additions:
        if addition in entries:
            continue
        key = identity(addition)
        if any(identity(entry) == key for entry in entries):
            logger.warning(f"Custom {kind} duplicates an existing {kind}", identifier=key)
        entries.append(copy.deepcopy(addition))


def _apply_custom_resources(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    if config.origins:
        _append_custom_entries(
            dist_config.setdefault("Origins", []),
            config.origins,
            identity=lambda origin: origin.get("Id"),
            kind="origin",
        )
    if config.cache_behaviors:
        _append_custom_entries(
            dist_config.setdefault("CacheBehaviors", []),
            config.cache_behaviors,
            identity=lambda behavior: (behavior.get("TargetOriginId"), behavior.get("PathPattern")),
            kind="cache behavior",
        )


def _apply_aliases(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    if config.domains:
        dist_config["Aliases"] = config.domains
    else:
        dist_config.pop("Aliases", None)


def _apply_certificate(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    if not config.certificate:
        dist_config.pop("ViewerCertificate", None)
        return
    certificate = dist_config.get("ViewerCertificate")
    if not isinstance(certificate, dict):
        certificate = {}
    certificate.pop("CloudFrontDefaultCertificate", None)
    certificate["AcmCertificateArn"] = config.certificate
    certificate.setdefault("SslSupportMethod", "sni-only")
    certificate["MinimumProtocolVersion"] = config.minimum_protocol_version
    dist_config["ViewerCertificate"] = certificate


def _apply_waf(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    if config.waf:
        dist_config["WebACLId"] = config.waf
    else:
        dist_config.pop("WebACLId", None)


def _apply_logging(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    if config.logging is None:
        dist_config.pop("Logging", None)
        return
    logging_config = dist_config.get("Logging")
    if not isinstance(logging_config, dict):
        logging_config = {}
    logging_config["Bucket"] = config.logging.bucket
    if config.logging.prefix:
        logging_config["Prefix"] = config.logging.prefix
    else:
        logging_config.pop("Prefix", None)
    dist_config["Logging"] = logging_config


def _error_code(response: Mapping[str, Any]) -> int | None:
    try:
        return int(response.get("ErrorCode"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _apply_single_page_app(
    resources: dict[str, Any],
    dist_config: dict[str, Any],
    config: DeploymentConfig,
) -> None:
    if config.single_page_app:
        if ORIGIN_ACCESS_IDENTITY_RESOURCE not in resources:
            raise TemplatePreconditionError(
                f"Single page app mode requires the {ORIGIN_ACCESS_IDENTITY_RESOURCE} resource"
            )
        policy = _properties(resources, BUCKET_POLICY_RESOURCE).get("PolicyDocument", {})
        if not any(s.get("Sid") == OAI_STATEMENT_SID for s in policy.get("Statement", [])):
            raise TemplatePreconditionError(
                f"Single page app mode requires the {OAI_STATEMENT_SID} statement "
                f"in {BUCKET_POLICY_RESOURCE}"
            )
        dist_config["DefaultRootObject"] = config.index_document
        responses = dist_config.get("CustomErrorResponses")
        if not isinstance(responses, list):
            responses = []
        for code in _SPA_ERROR_CODES:
            response = next((r for r in responses if _error_code(r) == code), None)
            if response is None:
                response = {"ErrorCode": code}
                responses.append(response)
            response["ResponseCode"] = 200
            response["ResponsePagePath"] = f"/{config.index_document}"
        dist_config["CustomErrorResponses"] = responses
        return

    dist_config.pop("CustomErrorResponses", None)
    dist_config.pop("DefaultRootObject", None)
    resources.pop(ORIGIN_ACCESS_IDENTITY_RESOURCE, None)

    # Origins must not reference the identity that no longer exists.
    for origin in dist_config.get("Origins", []):
        s3_origin = origin.get("S3OriginConfig")
        if isinstance(s3_origin, dict) and "OriginAccessIdentity" in s3_origin:
            s3_origin["OriginAccessIdentity"] = ""

    policy = _properties(resources, BUCKET_POLICY_RESOURCE).get("PolicyDocument", {})
    policy["Statement"] = [
        statement
        for statement in policy.get("Statement", [])
        if statement.get("Sid") != OAI_STATEMENT_SID
    ]


def _apply_default_cache_behavior(dist_config: dict[str, Any], config: DeploymentConfig) -> None:
    behavior = dist_config.get("DefaultCacheBehavior")
    if not isinstance(behavior, dict):
        behavior = {}
    behavior.update(copy.deepcopy(config.default_cache_behavior))
    behavior["Compress"] = config.compress_web_content
    dist_config["DefaultCacheBehavior"] = behavior


def _routing_rule(rule: Any) -> dict[str, Any]:
    redirect = rule.redirect
    redirect_rule = {
        "HostName": redirect.host_name,
        "HttpRedirectCode": (
            str(redirect.http_redirect_code) if redirect.http_redirect_code is not None else None
        ),
        "Protocol": redirect.protocol,
        "ReplaceKeyPrefixWith": redirect.replace_key_prefix_with,
        "ReplaceKeyWith": redirect.replace_key_with,
    }
    translated: dict[str, Any] = {
        "RedirectRule": {k: v for k, v in redirect_rule.items() if v is not None}
    }
    if rule.condition is not None:
        condition = rule.condition
        code = condition.http_error_code_returned_equals
        routing_condition = {
            "HttpErrorCodeReturnedEquals": str(code) if code is not None else None,
            "KeyPrefixEquals": condition.key_prefix_equals,
        }
        translated["RoutingRuleCondition"] = {
            k: v for k, v in routing_condition.items() if v is not None
        }
    return translated


def _apply_website_configuration(
    bucket_properties: dict[str, Any], config: DeploymentConfig
) -> None:
    redirect = config.redirect_all_requests_to
    if redirect is not None:
        target = {"HostName": redirect.host_name}
        if redirect.protocol:
            target["Protocol"] = redirect.protocol
        bucket_properties["WebsiteConfiguration"] = {"RedirectAllRequestsTo": target}
        return

    website: dict[str, Any] = {
        "IndexDocument": config.index_document,
        "ErrorDocument": config.error_document,
    }
    if config.routing_rules:
        website["RoutingRules"] = [_routing_rule(rule) for rule in config.routing_rules]
    bucket_properties["WebsiteConfiguration"] = website


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _check_origin_targets(dist_config: Mapping[str, Any]) -> None:
    origin_ids = {origin.get("Id") for origin in dist_config.get("Origins", [])}
    behaviors = [*dist_config.get("CacheBehaviors", [])]
    default_behavior = dist_config.get("DefaultCacheBehavior")
    if isinstance(default_behavior, dict) and "TargetOriginId" in default_behavior:
        behaviors.append(default_behavior)
    dangling = [
        f"Cache behavior {behavior.get('PathPattern', '(default)')!r} targets unknown origin "
        f"{behavior.get('TargetOriginId')!r}"
        for behavior in behaviors
        if behavior.get("TargetOriginId") not in origin_ids
    ]
    if dangling:
        raise ConfigurationError(dangling)


def compose(
    template: Mapping[str, Any],
    config: DeploymentConfig,
    *,
    service: str,
    stage: str,
    rest_api_id: RestApiId | None,
    region: str | None = None,
) -> dict[str, Any]:
    """Return a copy of template rewritten for config.

    rest_api_id may be an API id string or a CloudFormation intrinsic (for
    example {"Ref": "ApiGatewayRestApi"}); None removes the API origin.
    """
    composed = copy.deepcopy(dict(template))
    resources = _resources(composed)
    dist_config = distribution_config(composed)
    bucket_properties = _properties(resources, BUCKET_RESOURCE)
    _properties(resources, BUCKET_POLICY_RESOURCE)

    _apply_api_origin(
        dist_config,
        stage=stage,
        api_path=config.api_path,
        rest_api_id=rest_api_id,
        region=region,
    )
    _apply_custom_resources(dist_config, config)
    _apply_aliases(dist_config, config)
    _apply_certificate(dist_config, config)
    _apply_waf(dist_config, config)
    _apply_logging(dist_config, config)
    dist_config["PriceClass"] = config.price_class
    _apply_single_page_app(resources, dist_config, config)
    _apply_default_cache_behavior(dist_config, config)
    bucket_properties["BucketName"] = get_bucket_name(service, stage, config.bucket_name)
    _apply_website_configuration(bucket_properties, config)
    _check_origin_targets(dist_config)

    logger.debug(
        "Composed client resources",
        service=service,
        stage=stage,
        origins=[origin.get("Id") for origin in dist_config.get("Origins", [])],
    )
    return composed
