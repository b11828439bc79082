"""
fullstack_deploy.headers — Per-object header policy resolution.

A rule table maps one of three kinds of key to an ordered list of
{"name": ..., "value": ...} entries:

    ALL_OBJECTS        applies to every object
    "static/"          directory prefix (key ends with "/")
    "static/app.js"    exact object key

Only the most specific matching tier applies: exact key, then directory
prefix (longest wins), then ALL_OBJECTS. Tiers are never merged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fullstack_deploy.models import ALL_OBJECTS

HeaderEntry = Mapping[str, str]
HeaderRules = Mapping[str, Sequence[HeaderEntry]]

# Header names with a dedicated PutObject parameter (lower-cased for lookup)
_PUT_OBJECT_FIELDS: dict[str, str] = {
    "cache-control": "CacheControl",
    "content-encoding": "ContentEncoding",
    "content-language": "ContentLanguage",
    "content-disposition": "ContentDisposition",
    "expires": "Expires",
    "website-redirect-location": "WebsiteRedirectLocation",
}


def _normalize_rule_key(key: str) -> str:
    return key.replace("\\", "/")


def select_rule(key: str, rules: HeaderRules | None) -> Sequence[HeaderEntry]:
    """Return the entries of the most specific rule matching key, or ()."""
    if not rules:
        return ()

    normalized = {_normalize_rule_key(rule_key): entries for rule_key, entries in rules.items()}

    if key in normalized and not key.endswith("/"):
        return normalized[key]

    prefixes = [
        rule_key
        for rule_key in normalized
        if rule_key.endswith("/") and key.startswith(rule_key)
    ]
    if prefixes:
        return normalized[max(prefixes, key=len)]

    return normalized.get(ALL_OBJECTS, ())


def to_put_object_headers(entries: Sequence[HeaderEntry]) -> dict[str, Any]:
    """Map header entries onto PutObject parameters.

    Later entries with the same name override earlier ones. Unrecognised
    names are sent as user metadata.
    """
    headers: dict[str, Any] = {}
    metadata: dict[str, str] = {}
    for entry in entries:
        name = entry["name"]
        value = entry["value"]
        field = _PUT_OBJECT_FIELDS.get(name.lower())
        if field is not None:
            headers[field] = value
        else:
            metadata[name] = value
    if metadata:
        headers["Metadata"] = metadata
    return headers


def resolve_headers(key: str, rules: HeaderRules | None) -> dict[str, Any]:
    """Return the PutObject header overlay for an object key."""
    return to_put_object_headers(select_rule(key, rules))
