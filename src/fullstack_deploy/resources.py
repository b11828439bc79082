"""
fullstack_deploy.resources — Generated base CloudFormation resources for the client.

The graph contains every optional block fully populated (API origin, OAI,
certificate, logging, WAF, aliases, SPA error responses). The composer then
rewrites or removes each block according to configuration, so the base graph
is never applied as-is.
"""

from __future__ import annotations

from typing import Any

from fullstack_deploy.models import (
    API_ORIGIN_ID,
    BUCKET_POLICY_RESOURCE,
    BUCKET_RESOURCE,
    DISTRIBUTION_RESOURCE,
    OAI_STATEMENT_SID,
    ORIGIN_ACCESS_IDENTITY_RESOURCE,
    REST_API_RESOURCE,
    WEB_APP_ORIGIN_ID,
)

_ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]


def _api_origin() -> dict[str, Any]:
    return {
        "Id": API_ORIGIN_ID,
        "DomainName": {
            "Fn::Join": [
                "",
                [{"Ref": REST_API_RESOURCE}, ".execute-api.", {"Ref": "AWS::Region"}, ".amazonaws.com"],
            ]
        },
        "OriginPath": "/dev",
        "CustomOriginConfig": {
            "HTTPPort": 80,
            "HTTPSPort": 443,
            "OriginProtocolPolicy": "https-only",
        },
    }


def _web_app_origin() -> dict[str, Any]:
    return {
        "Id": WEB_APP_ORIGIN_ID,
        "DomainName": {"Fn::GetAtt": [BUCKET_RESOURCE, "RegionalDomainName"]},
        "S3OriginConfig": {
            "OriginAccessIdentity": {
                "Fn::Join": [
                    "",
                    ["origin-access-identity/cloudfront/", {"Ref": ORIGIN_ACCESS_IDENTITY_RESOURCE}],
                ]
            }
        },
    }


def _distribution() -> dict[str, Any]:
    return {
        "Type": "AWS::CloudFront::Distribution",
        "Properties": {
            "DistributionConfig": {
                "Origins": [_api_origin(), _web_app_origin()],
                "Enabled": True,
                "HttpVersion": "http2",
                "Comment": "Client and API distribution",
                "Aliases": [],
                "PriceClass": "PriceClass_All",
                "DefaultRootObject": "index.html",
                "CustomErrorResponses": [
                    {"ErrorCode": 403, "ErrorCachingMinTTL": 1},
                    {"ErrorCode": 404, "ErrorCachingMinTTL": 1},
                ],
                "DefaultCacheBehavior": {
                    "AllowedMethods": ["GET", "HEAD", "OPTIONS"],
                    "CachedMethods": ["GET", "HEAD", "OPTIONS"],
                    "TargetOriginId": WEB_APP_ORIGIN_ID,
                    "ForwardedValues": {"QueryString": False, "Cookies": {"Forward": "none"}},
                    "ViewerProtocolPolicy": "redirect-to-https",
                    "Compress": True,
                },
                "CacheBehaviors": [
                    {
                        "AllowedMethods": _ALL_METHODS,
                        "TargetOriginId": API_ORIGIN_ID,
                        "PathPattern": "api/*",
                        "ForwardedValues": {
                            "QueryString": True,
                            "Headers": ["Accept", "Authorization", "Content-Type", "Referer"],
                            "Cookies": {"Forward": "all"},
                        },
                        "ViewerProtocolPolicy": "https-only",
                        "MinTTL": 0,
                        "DefaultTTL": 0,
                        "MaxTTL": 0,
                    }
                ],
                "ViewerCertificate": {
                    "AcmCertificateArn": "",
                    "SslSupportMethod": "sni-only",
                    "MinimumProtocolVersion": "TLSv1.2_2021",
                },
                "Logging": {"IncludeCookies": False, "Bucket": "", "Prefix": ""},
                "WebACLId": "",
            }
        },
    }


def _bucket() -> dict[str, Any]:
    return {
        "Type": "AWS::S3::Bucket",
        "Properties": {
            "BucketName": "",
            "WebsiteConfiguration": {
                "IndexDocument": "index.html",
                "ErrorDocument": "error.html",
            },
        },
    }


def _bucket_policy() -> dict[str, Any]:
    return {
        "Type": "AWS::S3::BucketPolicy",
        "Properties": {
            "Bucket": {"Ref": BUCKET_RESOURCE},
            "PolicyDocument": {
                "Statement": [
                    {
                        "Sid": "AllowPublicRead",
                        "Effect": "Allow",
                        "Principal": "*",
                        "Action": "s3:GetObject",
                        "Resource": {
                            "Fn::Join": ["", ["arn:aws:s3:::", {"Ref": BUCKET_RESOURCE}, "/*"]]
                        },
                    },
                    {
                        "Sid": OAI_STATEMENT_SID,
                        "Effect": "Allow",
                        "Principal": {
                            "CanonicalUser": {
                                "Fn::GetAtt": [ORIGIN_ACCESS_IDENTITY_RESOURCE, "S3CanonicalUserId"]
                            }
                        },
                        "Action": "s3:GetObject",
                        "Resource": {
                            "Fn::Join": ["", ["arn:aws:s3:::", {"Ref": BUCKET_RESOURCE}, "/*"]]
                        },
                    }
                ]
            },
        },
    }


def base_template() -> dict[str, Any]:
    """Return a fresh copy of the base client resource graph."""
    return {
        "Resources": {
            DISTRIBUTION_RESOURCE: _distribution(),
            BUCKET_RESOURCE: _bucket(),
            BUCKET_POLICY_RESOURCE: _bucket_policy(),
            ORIGIN_ACCESS_IDENTITY_RESOURCE: {
                "Type": "AWS::CloudFront::CloudFrontOriginAccessIdentity",
                "Properties": {
                    "CloudFrontOriginAccessIdentityConfig": {"Comment": "Client bucket access"}
                },
            },
        },
        "Outputs": {
            DISTRIBUTION_RESOURCE: {
                "Description": "Client distribution domain name",
                "Value": {"Fn::GetAtt": [DISTRIBUTION_RESOURCE, "DomainName"]},
            }
        },
    }
