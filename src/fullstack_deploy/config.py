"""
fullstack_deploy.config — Client deployment configuration.

The host tool hands over the raw `custom.fullstack` mapping (camelCase keys).
validate_config() turns it into an immutable DeploymentConfig or raises a
single ConfigurationError listing every problem found.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from fullstack_deploy.exceptions import ConfigurationError

DEFAULT_DISTRIBUTION_FOLDER = "client/dist"
DEFAULT_INDEX_DOCUMENT = "index.html"
DEFAULT_ERROR_DOCUMENT = "error.html"
DEFAULT_PRICE_CLASS = "PriceClass_All"
DEFAULT_API_PATH = "api"
DEFAULT_MINIMUM_PROTOCOL_VERSION = "TLSv1.2_2021"
DEFAULT_INVALIDATION_PATHS: tuple[str, ...] = ("/*",)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Object headers
# ---------------------------------------------------------------------------


class ObjectHeader(_ConfigModel):
    name: str = Field(default=None, validate_default=True)  # type: ignore[assignment]
    value: str = Field(default=None, validate_default=True)  # type: ignore[assignment]

    @field_validator("name", mode="before")
    @classmethod
    def _name_is_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Each object header must have a (string) 'name' attribute")
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _value_is_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Each object header must have a (string) 'value' attribute")
        return value


# ---------------------------------------------------------------------------
# Website redirects and routing rules
# ---------------------------------------------------------------------------


class RedirectAllRequestsTo(_ConfigModel):
    host_name: str = Field(default=None, validate_default=True)  # type: ignore[assignment]
    protocol: str | None = None

    @field_validator("host_name", mode="before")
    @classmethod
    def _host_name_required(cls, value: Any) -> str:
        if value is None:
            raise ValueError("redirectAllRequestsTo.hostName is required")
        if not isinstance(value, str):
            raise ValueError("redirectAllRequestsTo.hostName must be a string")
        return value

    @field_validator("protocol", mode="before")
    @classmethod
    def _protocol_is_http(cls, value: Any) -> str | None:
        if value is None:
            return None
        if value not in ("http", "https"):
            raise ValueError("redirectAllRequestsTo.protocol must be either http or https")
        return value


class RoutingRuleRedirect(_ConfigModel):
    host_name: StrictStr | None = None
    http_redirect_code: StrictInt | None = None
    protocol: Literal["http", "https"] | None = None
    replace_key_prefix_with: StrictStr | None = None
    replace_key_with: StrictStr | None = None

    @field_validator("http_redirect_code", mode="before")
    @classmethod
    def _code_is_int(cls, value: Any) -> Any:
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise ValueError("redirect.httpRedirectCode must be an integer")
        return value

    @field_validator("host_name", "replace_key_prefix_with", "replace_key_with", mode="before")
    @classmethod
    def _strings(cls, value: Any, info: ValidationInfo) -> Any:
        if value is not None and not isinstance(value, str):
            raise ValueError(f"redirect.{to_camel(info.field_name)} must be a string")
        return value

    @model_validator(mode="after")
    def _single_key_replacement(self) -> RoutingRuleRedirect:
        if self.replace_key_prefix_with is not None and self.replace_key_with is not None:
            raise ValueError("replaceKeyPrefixWith and replaceKeyWith cannot both be specified")
        return self


class RoutingRuleCondition(_ConfigModel):
    http_error_code_returned_equals: int | None = None
    key_prefix_equals: str | None = None

    @field_validator("http_error_code_returned_equals", mode="before")
    @classmethod
    def _code_is_int(cls, value: Any) -> Any:
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise ValueError("condition.httpErrorCodeReturnedEquals must be an integer")
        return value

    @field_validator("key_prefix_equals", mode="before")
    @classmethod
    def _prefix_is_string(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            raise ValueError("condition.keyPrefixEquals must be a string")
        return value

    @model_validator(mode="after")
    def _has_condition(self) -> RoutingRuleCondition:
        if self.http_error_code_returned_equals is None and self.key_prefix_equals is None:
            raise ValueError(
                "condition.httpErrorCodeReturnedEquals or condition.keyPrefixEquals must be defined"
            )
        return self


class RoutingRule(_ConfigModel):
    redirect: RoutingRuleRedirect
    condition: RoutingRuleCondition | None = None


class LoggingTarget(_ConfigModel):
    bucket: StrictStr
    prefix: StrictStr | None = None


# ---------------------------------------------------------------------------
# DeploymentConfig
# ---------------------------------------------------------------------------


class DeploymentConfig(_ConfigModel):
    """Validated client deployment settings. Immutable once built."""

    bucket_name: str = Field(default=None, validate_default=True)  # type: ignore[assignment]
    distribution_folder: StrictStr = DEFAULT_DISTRIBUTION_FOLDER
    index_document: StrictStr = DEFAULT_INDEX_DOCUMENT
    error_document: StrictStr = DEFAULT_ERROR_DOCUMENT
    redirect_all_requests_to: RedirectAllRequestsTo | None = None
    routing_rules: list[RoutingRule] | None = None
    domain: StrictStr | list[StrictStr] | None = None
    certificate: StrictStr | None = None
    waf: StrictStr | None = None
    price_class: StrictStr = DEFAULT_PRICE_CLASS
    api_path: StrictStr = DEFAULT_API_PATH
    api_gateway_rest_api_id: StrictStr | None = None
    single_page_app: bool = False
    minimum_protocol_version: StrictStr = DEFAULT_MINIMUM_PROTOCOL_VERSION
    compress_web_content: bool = True
    origins: list[dict[str, Any]] = Field(default_factory=list)
    cache_behaviors: list[dict[str, Any]] = Field(default_factory=list)
    default_cache_behavior: dict[str, Any] = Field(default_factory=dict)
    logging: LoggingTarget | None = None
    invalidation_paths: StrictStr | list[StrictStr] = Field(
        default_factory=lambda: list(DEFAULT_INVALIDATION_PATHS)
    )
    object_headers: dict[str, list[ObjectHeader]] | None = None
    no_delete_contents: bool = False

    @field_validator("bucket_name", mode="before")
    @classmethod
    def _bucket_name_required(cls, value: Any) -> str:
        if not isinstance(value, str) or not value:
            raise ValueError(
                "Please specify a bucket name for the client in the fullstack configuration"
            )
        return value

    @model_validator(mode="after")
    def _redirect_excludes_website_documents(self) -> DeploymentConfig:
        if self.redirect_all_requests_to is None:
            return self
        problems = [
            f"{to_camel(name)} cannot be specified with redirectAllRequestsTo"
            for name in ("index_document", "error_document", "routing_rules")
            if name in self.model_fields_set
        ]
        if problems:
            raise ValueError("\n".join(problems))
        return self

    @property
    def domains(self) -> list[str]:
        if self.domain is None:
            return []
        if isinstance(self.domain, str):
            return [self.domain]
        return list(self.domain)

    def header_rules(self) -> dict[str, list[dict[str, str]]]:
        """Return the object header table as plain name/value mappings."""
        if not self.object_headers:
            return {}
        return {
            rule_key: [{"name": header.name, "value": header.value} for header in headers]
            for rule_key, headers in self.object_headers.items()
        }


# ---------------------------------------------------------------------------
# Validation entry point
# ---------------------------------------------------------------------------


def _format_error(error: Mapping[str, Any]) -> list[str]:
    if error.get("type") == "value_error":
        message = str(error["ctx"]["error"]) if "ctx" in error else error["msg"]
        return message.splitlines()
    location = ".".join(str(part) for part in error.get("loc", ()))
    return [f"{location}: {error['msg']}" if location else error["msg"]]


def validate_config(
    raw: Mapping[str, Any] | None,
    *,
    service_path: str | Path | None = None,
) -> DeploymentConfig:
    """Validate the raw configuration mapping.

    When service_path is given, the distribution folder must exist under it.
    Every problem is collected before raising ConfigurationError.
    """
    raw = raw if raw is not None else {}
    messages: list[str] = []
    config: DeploymentConfig | None = None

    if service_path is not None:
        folder = DEFAULT_DISTRIBUTION_FOLDER
        if isinstance(raw, Mapping):
            candidate = raw.get("distributionFolder", raw.get("distribution_folder"))
            if isinstance(candidate, str):
                folder = candidate
        if not (Path(service_path) / folder).is_dir():
            messages.append(f"Could not find '{folder}' folder in your project root")

    if not isinstance(raw, Mapping):
        messages.append("The fullstack configuration must be a mapping")
    else:
        try:
            config = DeploymentConfig.model_validate(raw)
        except ValidationError as exc:
            for error in exc.errors():
                messages.extend(_format_error(error))

    if messages or config is None:
        raise ConfigurationError(messages)
    return config
