"""Deterministic mapping from mutation requests to executor argument vectors.

Building a command never executes it. Manifest URLs pass the remote source
gate here, so an unsafe URL is rejected before any network access happens.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

from ocguard.core.errors import UnsafeManifestURLError
from ocguard.core.models import (
    AddressingMode,
    AppOptions,
    ApplyOptions,
    BuildStrategy,
    InsecurePolicy,
    MutationKind,
    MutationRequest,
    RouteOptions,
    RouteTermination,
    WildcardPolicy,
)

URL_REJECTION_PREFIX = "Invalid URL format. Only HTTPS URLs from trusted domains are allowed."

BLOCKED_HOSTNAMES = frozenset(
    {
        "localhost",
        "metadata",
        "metadata.google.internal",
        "metadata.azure.internal",
        "instance-data",
        "169.254.169.254",
        "fd00:ec2::254",
    },
)

DRY_RUN_FLAG = "--dry-run=client"


@dataclass(frozen=True)
class CommandSpec:
    """A built command: arguments for the executor plus optional stdin."""

    args: tuple[str, ...]
    stdin: str | None = None


def ensure_safe_manifest_url(url: str) -> str:
    """Return *url* unchanged when it passes the remote source gate."""
    reason = _url_violation(url.strip())
    if reason is not None:
        error_message = f"{URL_REJECTION_PREFIX} ({reason})"
        raise UnsafeManifestURLError(error_message)
    return url


def _url_violation(url: str) -> str | None:
    if not url:
        return "URL is empty"
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname
    except ValueError:
        return "URL could not be parsed"
    if parsed.scheme.lower() != "https":
        return "protocol must be https"
    if not hostname:
        return "hostname is missing"

    host = hostname.rstrip(".").lower()
    if host in BLOCKED_HOSTNAMES or any(host.endswith(f".{blocked}") for blocked in BLOCKED_HOSTNAMES):
        return f"host {host!r} is a loopback or metadata address"

    address = _parse_address(host)
    if address is not None:
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            address = address.ipv4_mapped
        if (
            address.is_loopback
            or address.is_link_local
            or address.is_private
            or address.is_unspecified
            or address.is_reserved
            or address.is_multicast
        ):
            return f"host {host!r} is in a private, loopback or link-local range"
    elif host.isdigit() or host.startswith("0x"):
        return f"host {host!r} uses a numeric address encoding"

    if parsed.path in {"", "/"}:
        return "path must point to a manifest"
    return None


def _parse_address(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def build_command(request: MutationRequest, *, port_hint: str | None = None) -> CommandSpec:
    """Return the :class:`CommandSpec` for *request*."""
    builder = _BUILDERS[request.operation]
    spec = builder(request, port_hint)
    if request.context:
        return CommandSpec(args=("--context", request.context, *spec.args), stdin=spec.stdin)
    return spec


def _source_args(request: MutationRequest, *, flag: str = "-f") -> tuple[list[str], str | None]:
    mode = request.addressing
    if mode is AddressingMode.MANIFEST:
        return [flag, "-"], request.manifest
    if mode is AddressingMode.FILENAME and request.filename is not None:
        return [flag, request.filename], None
    if mode is AddressingMode.URL and request.url is not None:
        return [flag, ensure_safe_manifest_url(request.url)], None
    return [], None


def _scope_args(request: MutationRequest) -> list[str]:
    if request.all_namespaces:
        return ["--all-namespaces"]
    if request.namespace:
        return ["-n", request.namespace]
    return []


def _build_delete(request: MutationRequest, _port_hint: str | None) -> CommandSpec:
    flags = request.flags
    args = ["delete"]
    stdin: str | None = None
    if request.is_selector_based and request.resource_type is not None:
        args.append(request.resource_type)
        if request.name:
            args.append(request.name)
    else:
        source, stdin = _source_args(request)
        args.extend(source)

    args.extend(_scope_args(request))
    if request.label_selector:
        args.extend(["-l", request.label_selector])
    if request.field_selector:
        args.extend(["--field-selector", request.field_selector])
    if request.all:
        args.append("--all")
    if flags.force:
        args.append("--force")
    if flags.grace_period_seconds is not None:
        args.extend(["--grace-period", str(flags.grace_period_seconds)])
    if flags.timeout:
        args.extend(["--timeout", flags.timeout])
    if flags.wait:
        args.append("--wait")
    if flags.cascade is not None:
        args.extend(["--cascade", flags.cascade.value])
    if flags.dry_run:
        args.append(DRY_RUN_FLAG)
    if flags.recursive:
        args.append("-R")
    if flags.ignore_not_found:
        args.append("--ignore-not-found")
    return CommandSpec(args=tuple(args), stdin=stdin)


def _build_apply(request: MutationRequest, _port_hint: str | None) -> CommandSpec:
    flags = request.flags
    options = request.apply or ApplyOptions()
    args = ["apply"]
    if request.namespace:
        args.extend(["-n", request.namespace])
    source, stdin = _source_args(request, flag="-k" if options.kustomize else "-f")
    args.extend(source)

    if flags.dry_run:
        args.append(DRY_RUN_FLAG)
    if flags.force:
        args.append("--force")
    if not options.validate_manifest:
        args.append("--validate=false")
    if flags.wait:
        args.append("--wait")
    if flags.timeout:
        args.extend(["--timeout", flags.timeout])
    if options.prune:
        args.append("--prune")
        if request.label_selector:
            args.extend(["-l", request.label_selector])
        elif request.all:
            args.append("--all")
        for entry in options.prune_allowlist:
            args.append(f"--prune-allowlist={entry}")
    if flags.recursive:
        args.append("-R")
    if options.server_side:
        args.append("--server-side")
        if options.field_manager:
            args.append(f"--field-manager={options.field_manager}")
    if options.overwrite:
        args.append("--overwrite")
    if flags.cascade is not None:
        args.extend(["--cascade", flags.cascade.value])
    if flags.grace_period_seconds is not None:
        args.extend(["--grace-period", str(flags.grace_period_seconds)])
    return CommandSpec(args=tuple(args), stdin=stdin)


def _build_expose(request: MutationRequest, port_hint: str | None) -> CommandSpec:
    route = request.route or RouteOptions(route_name=f"{request.name}-route")
    args = ["create", "route", route.termination.value, route.route_name]
    if request.namespace:
        args.extend(["-n", request.namespace])
    args.extend(["--service", request.name or ""])

    port = route.port or port_hint
    if port:
        args.extend(["--port", port])
    if route.hostname:
        args.extend(["--hostname", route.hostname])
    if route.path:
        args.extend(["--path", route.path])
    if route.wildcard_policy is not WildcardPolicy.NONE:
        args.extend(["--wildcard-policy", route.wildcard_policy.value])
    if (
        route.insecure_policy is not InsecurePolicy.REDIRECT
        and route.termination is not RouteTermination.PASSTHROUGH
    ):
        args.extend(["--insecure-policy", route.insecure_policy.value])
    if route.certificate:
        args.extend(["--cert", route.certificate])
    if route.key:
        args.extend(["--key", route.key])
    if route.ca_certificate:
        args.extend(["--ca-cert", route.ca_certificate])
    if route.destination_ca_certificate:
        args.extend(["--dest-ca-cert", route.destination_ca_certificate])
    if route.labels:
        args.extend(["-l", ",".join(route.labels)])
    if route.weight is not None:
        args.extend(["--weight", str(route.weight)])
    if request.flags.dry_run:
        args.extend([DRY_RUN_FLAG, "-o", "yaml"])
    return CommandSpec(args=tuple(args))


def _build_new_app(request: MutationRequest, _port_hint: str | None) -> CommandSpec:
    app = request.app
    if app is None:
        error_message = "new-app requests require application options"
        raise ValueError(error_message)
    args = ["new-app"]
    if request.namespace:
        args.extend(["-n", request.namespace])
    args.extend(["--name", app.app_name])
    args.append(f"--strategy={app.strategy.value}")
    args.append(_app_source(app))
    if app.source_secret:
        args.append(f"--source-secret={app.source_secret}")
    if app.context_dir:
        args.append(f"--context-dir={app.context_dir}")
    for variable in app.env:
        args.extend(["-e", variable])
    for label in app.labels:
        args.extend(["-l", label])
    if request.flags.dry_run:
        args.extend(["--dry-run", "-o", "yaml"])
    return CommandSpec(args=tuple(args))


def _app_source(app: AppOptions) -> str:
    if app.builder_image and app.strategy is BuildStrategy.SOURCE:
        return f"{app.builder_image}~{app.git_repo}"
    return app.git_repo


_BUILDERS: dict[MutationKind, Callable[[MutationRequest, str | None], CommandSpec]] = {
    MutationKind.DELETE: _build_delete,
    MutationKind.APPLY: _build_apply,
    MutationKind.EXPOSE: _build_expose,
    MutationKind.NEW_APP: _build_new_app,
}


__all__ = [
    "BLOCKED_HOSTNAMES",
    "DRY_RUN_FLAG",
    "URL_REJECTION_PREFIX",
    "CommandSpec",
    "build_command",
    "ensure_safe_manifest_url",
]
