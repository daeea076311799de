"""Normalise raw call arguments into validated mutation requests.

Every check in this module is pure: no external command is issued and no
state is touched, so a rejected request is guaranteed to have caused zero
calls against the cluster.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

from pydantic import ValidationError

from .errors import RequestValidationError
from .models import (
    AppOptions,
    ApplyOptions,
    ExecutionFlags,
    MutationKind,
    MutationRequest,
    RouteOptions,
    RouteTermination,
)

TIMEOUT_PATTERN = re.compile(r"\d+[smh]")
_DNS_LABEL_PATTERN = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?")
_RESOURCE_TYPE_PATTERN = re.compile(r"[A-Za-z0-9]([A-Za-z0-9.-]*[A-Za-z0-9])?")
_APP_NAME_INVALID = re.compile(r"[^a-z0-9-]+")
_DNS_LABEL_MAX_LENGTH = 63
DEFAULT_APP_NAME = "my-app"

EXPOSABLE_RESOURCE_TYPES = frozenset(
    {"service", "svc", "deployment", "deploy", "deploymentconfig", "dc"},
)

SOURCE_FIELDS = ("manifest", "filename", "url")

_TARGET_FIELDS = frozenset(
    {
        "resource_type",
        "name",
        "namespace",
        "label_selector",
        "field_selector",
        "manifest",
        "filename",
        "url",
        "all",
        "all_namespaces",
        "context",
    },
)
_FLAG_FIELDS = frozenset(ExecutionFlags.model_fields)
_APPLY_FIELDS = frozenset(ApplyOptions.model_fields)
_ROUTE_FIELDS = frozenset(RouteOptions.model_fields)
_APP_FIELDS = frozenset(AppOptions.model_fields)

_OPERATION_FIELDS: dict[MutationKind, frozenset[str]] = {
    MutationKind.DELETE: _TARGET_FIELDS | _FLAG_FIELDS,
    MutationKind.APPLY: (
        frozenset({"namespace", "label_selector", "manifest", "filename", "url", "all", "context"})
        | _FLAG_FIELDS
        | _APPLY_FIELDS
    ),
    MutationKind.EXPOSE: (
        frozenset({"resource_type", "name", "namespace", "context"}) | _FLAG_FIELDS | _ROUTE_FIELDS
    ),
    MutationKind.NEW_APP: frozenset({"namespace", "context"}) | _FLAG_FIELDS | _APP_FIELDS,
}

_ALIASES = {
    "resourceType": "resource_type",
    "labelSelector": "label_selector",
    "fieldSelector": "field_selector",
    "allNamespaces": "all_namespaces",
    "dryRun": "dry_run",
    "gracePeriodSeconds": "grace_period_seconds",
    "gracePeriod": "grace_period_seconds",
    "ignoreNotFound": "ignore_not_found",
    "ignore404": "ignore_not_found",
    "validate": "validate_manifest",
    "pruneAllowlist": "prune_allowlist",
    "pruneWhitelist": "prune_allowlist",
    "serverSide": "server_side",
    "fieldManager": "field_manager",
    "routeName": "route_name",
    "routeType": "termination",
    "tlsTermination": "termination",
    "wildcardPolicy": "wildcard_policy",
    "insecurePolicy": "insecure_policy",
    "caCertificate": "ca_certificate",
    "destinationCaCertificate": "destination_ca_certificate",
    "gitRepo": "git_repo",
    "appName": "app_name",
    "builderImage": "builder_image",
    "sourceSecret": "source_secret",
    "contextDir": "context_dir",
}


def validate_request(
    arguments: Mapping[str, Any],
    *,
    operation: MutationKind | str = MutationKind.DELETE,
) -> MutationRequest:
    """Return a :class:`MutationRequest` for *arguments* or raise a rejection."""
    kind = MutationKind(operation)
    values = _normalise_keys(arguments)
    _reject_unknown_fields(values, kind)
    _reject_multiple_sources(values)

    if kind is MutationKind.EXPOSE:
        values.setdefault("resource_type", "service")
        name = _require_string(values, "name")
        values.setdefault("route_name", f"{name}-route")
        port = values.get("port")
        if isinstance(port, int) and not isinstance(port, bool):
            values["port"] = str(port)
    if kind is MutationKind.NEW_APP:
        git_repo = _require_string(values, "git_repo")
        values.setdefault("app_name", derive_app_name(git_repo))

    request = _build_model(values, kind)
    return check_request(request)


def check_request(request: MutationRequest) -> MutationRequest:
    """Apply the semantic rules to an already constructed *request*."""
    _check_common(request)
    _OPERATION_CHECKS[request.operation](request)
    return request


def derive_app_name(git_repo: str) -> str:
    """Derive a DNS-1123 application name from the last path segment of *git_repo*."""
    path = urlsplit(git_repo).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1]
    if segment.endswith(".git"):
        segment = segment[: -len(".git")]
    slug = _APP_NAME_INVALID.sub("-", segment.lower()).strip("-")
    slug = slug[:_DNS_LABEL_MAX_LENGTH].strip("-")
    return slug or DEFAULT_APP_NAME


def is_valid_timeout(value: str) -> bool:
    """Return ``True`` when *value* looks like ``<integer><s|m|h>``."""
    return TIMEOUT_PATTERN.fullmatch(value) is not None


def timeout_to_seconds(value: str) -> int:
    """Convert a validated timeout string into seconds."""
    if not is_valid_timeout(value):
        error_message = f"Invalid timeout: {value!r}"
        raise ValueError(error_message)
    multiplier = {"s": 1, "m": 60, "h": 3600}[value[-1]]
    return int(value[:-1]) * multiplier


def is_dns_label(value: str) -> bool:
    return len(value) <= _DNS_LABEL_MAX_LENGTH and _DNS_LABEL_PATTERN.fullmatch(value) is not None


def _normalise_keys(arguments: Mapping[str, Any]) -> dict[str, Any]:
    normalised: dict[str, Any] = {}
    for raw_key, value in arguments.items():
        key = _ALIASES.get(raw_key, raw_key)
        if value is None or value == "":
            continue
        if key in normalised:
            error_message = f"Argument {key!r} was supplied more than once"
            raise RequestValidationError(error_message, field=key)
        normalised[key] = value
    return normalised


def _require_string(values: Mapping[str, Any], field: str) -> str:
    value = values.get(field)
    if value is None:
        error_message = f"Missing required argument: {field}"
        raise RequestValidationError(error_message, field=field)
    if not isinstance(value, str):
        error_message = f"Invalid value for {field}: expected a string"
        raise RequestValidationError(error_message, field=field)
    return value


def _reject_unknown_fields(values: Mapping[str, Any], kind: MutationKind) -> None:
    unknown = sorted(set(values) - _OPERATION_FIELDS[kind])
    if unknown:
        error_message = f"Unsupported arguments for {kind.value}: {', '.join(unknown)}"
        raise RequestValidationError(error_message, field=unknown[0])


def _reject_multiple_sources(values: Mapping[str, Any]) -> None:
    provided = [field for field in SOURCE_FIELDS if field in values]
    if len(provided) > 1:
        error_message = "Cannot specify multiple sources (manifest, filename, url) - choose one"
        raise RequestValidationError(error_message, field=provided[1])


def _build_model(values: Mapping[str, Any], kind: MutationKind) -> MutationRequest:
    payload: dict[str, Any] = {"operation": kind}
    flags: dict[str, Any] = {}
    extras: dict[str, Any] = {}
    for key, value in values.items():
        if key in _TARGET_FIELDS:
            payload[key] = value
        elif key in _FLAG_FIELDS:
            flags[key] = value
        else:
            extras[key] = value
    payload["flags"] = flags
    if kind is MutationKind.APPLY:
        payload["apply"] = extras
    elif kind is MutationKind.EXPOSE:
        payload["route"] = extras
    elif kind is MutationKind.NEW_APP:
        payload["app"] = extras

    try:
        return MutationRequest.model_validate(payload)
    except ValidationError as error:
        first = error.errors()[0]
        location = [str(part) for part in first["loc"] if str(part) not in {"flags", "apply", "route", "app"}]
        field = location[0] if location else None
        if first["type"] == "missing" and field is not None:
            error_message = f"Missing required argument: {field}"
        else:
            error_message = f"Invalid value for {field or 'request'}: {first['msg']}"
        raise RequestValidationError(error_message, field=field) from error


def _check_common(request: MutationRequest) -> None:
    timeout = request.flags.timeout
    if timeout is not None and not is_valid_timeout(timeout):
        error_message = 'Timeout must be in format: <number><unit> (e.g., "60s", "5m", "1h")'
        raise RequestValidationError(error_message, field="timeout")

    grace = request.flags.grace_period_seconds
    if grace is not None and grace < 0:
        error_message = "Grace period must be >= 0 seconds"
        raise RequestValidationError(error_message, field="grace_period_seconds")

    if request.namespace is not None and not is_dns_label(request.namespace):
        error_message = (
            f"Invalid namespace {request.namespace!r}: must consist of lower case alphanumeric "
            "characters or '-', and start and end with an alphanumeric character"
        )
        raise RequestValidationError(error_message, field="namespace")

    if request.resource_type is not None and not _RESOURCE_TYPE_PATTERN.fullmatch(request.resource_type):
        error_message = f"Invalid resource type format: {request.resource_type!r}"
        raise RequestValidationError(error_message, field="resource_type")


def _check_delete(request: MutationRequest) -> None:
    has_source = any(getattr(request, field) is not None for field in SOURCE_FIELDS)
    if request.resource_type is None and not has_source:
        error_message = "Must specify resourceType, manifest, filename, or url"
        raise RequestValidationError(error_message, field="resource_type")
    if request.resource_type is not None and has_source:
        error_message = (
            "Cannot combine resourceType with manifest, filename, or url - choose one addressing mode"
        )
        raise RequestValidationError(error_message, field="resource_type")
    if request.resource_type is not None and not (
        request.name or request.label_selector or request.field_selector or request.all
    ):
        error_message = (
            "When using resourceType, must specify name, labelSelector, fieldSelector, or all=true"
        )
        raise RequestValidationError(error_message, field="name")


def _check_apply(request: MutationRequest) -> None:
    options = request.apply or ApplyOptions()
    if not any(getattr(request, field) is not None for field in SOURCE_FIELDS):
        error_message = "Must specify manifest, filename, or url"
        raise RequestValidationError(error_message, field="manifest")
    if options.server_side and not options.field_manager:
        error_message = "Server-side apply requires fieldManager"
        raise RequestValidationError(error_message, field="field_manager")
    if options.prune and not (request.label_selector or request.all):
        error_message = "Prune requires labelSelector or all=true to limit its scope"
        raise RequestValidationError(error_message, field="prune")
    if options.kustomize and request.filename is None:
        error_message = "Kustomize mode requires filename pointing to a kustomization directory"
        raise RequestValidationError(error_message, field="kustomize")


def _check_expose(request: MutationRequest) -> None:
    if request.resource_type is None or request.resource_type.lower() not in EXPOSABLE_RESOURCE_TYPES:
        allowed = ", ".join(sorted(EXPOSABLE_RESOURCE_TYPES))
        error_message = f"resourceType must be one of: {allowed}"
        raise RequestValidationError(error_message, field="resource_type")
    if request.namespace is None:
        error_message = "Missing required argument: namespace"
        raise RequestValidationError(error_message, field="namespace")

    route = request.route or RouteOptions(route_name=f"{request.name}-route")
    if not is_dns_label(route.route_name):
        error_message = f"Invalid route name {route.route_name!r}: must be a DNS-1123 label"
        raise RequestValidationError(error_message, field="route_name")
    if route.port is not None:
        _check_port(route.port)

    if route.termination is RouteTermination.PASSTHROUGH:
        if route.certificate or route.key or route.ca_certificate or route.destination_ca_certificate:
            error_message = "Passthrough routes cannot carry certificates; TLS terminates at the pod"
            raise RequestValidationError(error_message, field="termination")
    elif bool(route.certificate) != bool(route.key):
        error_message = (
            f"Both certificate and private key are required for {route.termination.value} termination"
        )
        raise RequestValidationError(error_message, field="certificate")
    if route.destination_ca_certificate and route.termination is not RouteTermination.REENCRYPT:
        error_message = "destinationCaCertificate is only valid for reencrypt termination"
        raise RequestValidationError(error_message, field="destination_ca_certificate")


def _check_new_app(request: MutationRequest) -> None:
    if request.namespace is None:
        error_message = "Missing required argument: namespace"
        raise RequestValidationError(error_message, field="namespace")
    app = request.app
    if app is None:
        error_message = "Missing required argument: git_repo"
        raise RequestValidationError(error_message, field="git_repo")
    parsed = urlsplit(app.git_repo)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        error_message = "Git repository must be an HTTP or HTTPS URL"
        raise RequestValidationError(error_message, field="git_repo")
    if not is_dns_label(app.app_name):
        error_message = f"Invalid application name {app.app_name!r}: must be a DNS-1123 label"
        raise RequestValidationError(error_message, field="app_name")
    for field, pairs in (("env", app.env), ("labels", app.labels)):
        for pair in pairs:
            key, separator, _ = pair.partition("=")
            if not separator or not key.strip():
                error_message = f"Each {field} entry must be in KEY=VALUE format: {pair!r}"
                raise RequestValidationError(error_message, field=field)


def _check_port(port: str) -> None:
    if port.isdigit():
        if not 1 <= int(port) <= 65535:
            error_message = "Port number must be between 1 and 65535"
            raise RequestValidationError(error_message, field="port")
        return
    if not is_dns_label(port):
        error_message = "Port name must consist of lowercase alphanumeric characters and hyphens"
        raise RequestValidationError(error_message, field="port")


_OPERATION_CHECKS = {
    MutationKind.DELETE: _check_delete,
    MutationKind.APPLY: _check_apply,
    MutationKind.EXPOSE: _check_expose,
    MutationKind.NEW_APP: _check_new_app,
}


__all__ = [
    "DEFAULT_APP_NAME",
    "EXPOSABLE_RESOURCE_TYPES",
    "SOURCE_FIELDS",
    "TIMEOUT_PATTERN",
    "check_request",
    "derive_app_name",
    "is_dns_label",
    "is_valid_timeout",
    "timeout_to_seconds",
    "validate_request",
]
