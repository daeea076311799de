"""Tests for request validation."""

from __future__ import annotations

import pytest

from ocguard.core.errors import RequestValidationError
from ocguard.core.models import (
    AddressingMode,
    ExecutionFlags,
    MutationKind,
    MutationRequest,
    RouteTermination,
)
from ocguard.core.validation import (
    check_request,
    derive_app_name,
    is_valid_timeout,
    timeout_to_seconds,
    validate_request,
)


def test_request_without_addressing_mode_is_rejected() -> None:
    """A delete must name a resource type or a manifest source."""
    with pytest.raises(RequestValidationError, match="Must specify resourceType, manifest, filename, or url"):
        validate_request({"namespace": "test"}, operation=MutationKind.DELETE)


@pytest.mark.parametrize(
    "arguments",
    [
        {"manifest": "kind: Pod", "filename": "pod.yaml"},
        {"filename": "pod.yaml", "url": "https://example.com/pod.yaml"},
        {"manifest": "kind: Pod", "url": "https://example.com/pod.yaml", "resourceType": "pod", "name": "x"},
    ],
)
def test_multiple_sources_are_rejected(arguments: dict[str, object]) -> None:
    """More than one manifest source is rejected regardless of other fields."""
    with pytest.raises(RequestValidationError, match="Cannot specify multiple sources"):
        validate_request(arguments, operation="delete")


def test_resource_type_with_manifest_source_is_rejected() -> None:
    """A resource type combined with a manifest is also two addressing modes."""
    with pytest.raises(RequestValidationError, match="Cannot combine resourceType"):
        validate_request({"resourceType": "pod", "filename": "pod.yaml"}, operation="delete")


def test_selector_mode_requires_a_narrowing_argument() -> None:
    """A bare resource type would address nothing in particular."""
    with pytest.raises(RequestValidationError) as error_info:
        validate_request({"resourceType": "pod", "namespace": "test"}, operation="delete")

    assert "must specify name, labelSelector, fieldSelector, or all=true" in str(error_info.value)
    assert error_info.value.field == "name"


def test_camel_case_arguments_are_normalised() -> None:
    """MCP-style camelCase keys map onto the request fields."""
    request = validate_request(
        {
            "resourceType": "pod",
            "labelSelector": "app=web",
            "namespace": "test",
            "dryRun": True,
            "gracePeriodSeconds": 0,
        },
        operation="delete",
    )

    assert request.label_selector == "app=web"
    assert request.flags == ExecutionFlags(dry_run=True, grace_period_seconds=0)
    assert request.addressing is AddressingMode.SELECTOR


def test_duplicate_spellings_are_rejected() -> None:
    """Supplying both spellings of one argument is ambiguous."""
    with pytest.raises(RequestValidationError, match="supplied more than once"):
        validate_request(
            {"resourceType": "pod", "resource_type": "pod", "name": "x"},
            operation="delete",
        )


def test_unknown_arguments_are_rejected() -> None:
    """Arguments outside the operation's vocabulary are refused."""
    with pytest.raises(RequestValidationError, match="Unsupported arguments for delete: bogus"):
        validate_request({"resourceType": "pod", "name": "x", "bogus": 1}, operation="delete")


def test_route_options_are_not_accepted_for_delete() -> None:
    """Options of another operation are unknown arguments."""
    with pytest.raises(RequestValidationError, match="hostname"):
        validate_request({"resourceType": "pod", "name": "x", "hostname": "a.example.com"}, operation="delete")


@pytest.mark.parametrize("value", ["60s", "5m", "1h"])
def test_valid_timeouts(value: str) -> None:
    """Integer durations with an s, m or h unit are accepted."""
    assert is_valid_timeout(value)
    request = validate_request({"resourceType": "pod", "name": "x", "timeout": value}, operation="delete")
    assert request.flags.timeout == value


@pytest.mark.parametrize("value", ["5", "60x", "-5s"])
def test_invalid_timeouts(value: str) -> None:
    """Missing units, unknown units and negative values are rejected."""
    assert not is_valid_timeout(value)
    with pytest.raises(RequestValidationError, match="Timeout must be in format"):
        validate_request({"resourceType": "pod", "name": "x", "timeout": value}, operation="delete")


def test_timeout_to_seconds() -> None:
    """Timeout strings convert into seconds."""
    assert timeout_to_seconds("45s") == 45
    assert timeout_to_seconds("5m") == 300
    assert timeout_to_seconds("2h") == 7200


def test_negative_grace_period_is_rejected() -> None:
    """Grace periods cannot be negative."""
    with pytest.raises(RequestValidationError, match="Grace period must be >= 0 seconds"):
        validate_request({"resourceType": "pod", "name": "x", "gracePeriodSeconds": -1}, operation="delete")


def test_invalid_namespace_is_rejected() -> None:
    """Namespaces must be DNS-1123 labels."""
    with pytest.raises(RequestValidationError, match="Invalid namespace"):
        validate_request({"resourceType": "pod", "name": "x", "namespace": "Test_NS"}, operation="delete")


def test_wrong_value_type_is_reported() -> None:
    """Pydantic type errors surface as request validation errors."""
    with pytest.raises(RequestValidationError, match="Invalid value for all"):
        validate_request({"resourceType": "pod", "all": "sometimes"}, operation="delete")


def test_apply_requires_a_source() -> None:
    """Apply needs exactly one manifest source."""
    with pytest.raises(RequestValidationError, match="Must specify manifest, filename, or url"):
        validate_request({"namespace": "demo"}, operation="apply")


def test_apply_server_side_requires_field_manager() -> None:
    """Server-side apply must name its field manager."""
    with pytest.raises(RequestValidationError, match="requires fieldManager"):
        validate_request({"filename": "app.yaml", "serverSide": True}, operation="apply")


def test_apply_prune_requires_scope() -> None:
    """Pruning without a selector or all=true is refused."""
    with pytest.raises(RequestValidationError, match="Prune requires"):
        validate_request({"filename": "app.yaml", "prune": True}, operation="apply")


def test_apply_options_are_collected() -> None:
    """Apply-specific keys land in the ApplyOptions block."""
    request = validate_request(
        {
            "filename": "app.yaml",
            "namespace": "demo",
            "validate": False,
            "prune": True,
            "labelSelector": "app=web",
            "pruneAllowlist": ["core/v1/ConfigMap"],
        },
        operation="apply",
    )

    assert request.apply is not None
    assert request.apply.validate_manifest is False
    assert request.apply.prune_allowlist == ("core/v1/ConfigMap",)
    assert request.creates_resources


def test_expose_defaults_route_name_and_coerces_port() -> None:
    """The route name derives from the service and integer ports become strings."""
    request = validate_request({"name": "web", "namespace": "demo", "port": 8080}, operation="expose")

    assert request.resource_type == "service"
    assert request.route is not None
    assert request.route.route_name == "web-route"
    assert request.route.port == "8080"
    assert request.route.termination is RouteTermination.EDGE


def test_expose_requires_name() -> None:
    """A route needs a source service name."""
    with pytest.raises(RequestValidationError, match="Missing required argument: name"):
        validate_request({"namespace": "demo"}, operation="expose")


def test_expose_rejects_unsupported_resource_type() -> None:
    """Only services and deployments can be exposed."""
    with pytest.raises(RequestValidationError, match="resourceType must be one of"):
        validate_request({"name": "web", "namespace": "demo", "resourceType": "pod"}, operation="expose")


def test_expose_passthrough_rejects_certificates() -> None:
    """Passthrough routes terminate TLS at the pod."""
    with pytest.raises(RequestValidationError, match="Passthrough routes cannot carry certificates"):
        validate_request(
            {"name": "web", "namespace": "demo", "termination": "passthrough", "certificate": "CERT"},
            operation="expose",
        )


def test_expose_requires_certificate_and_key_together() -> None:
    """Edge termination with a certificate also needs its key."""
    with pytest.raises(RequestValidationError, match="Both certificate and private key"):
        validate_request(
            {"name": "web", "namespace": "demo", "certificate": "CERT"},
            operation="expose",
        )


def test_expose_destination_ca_requires_reencrypt() -> None:
    """A destination CA only makes sense for re-encrypting routes."""
    with pytest.raises(RequestValidationError, match="only valid for reencrypt"):
        validate_request(
            {"name": "web", "namespace": "demo", "destinationCaCertificate": "CA"},
            operation="expose",
        )


@pytest.mark.parametrize("port", ["0", "70000", "Web_Port"])
def test_expose_rejects_invalid_ports(port: str) -> None:
    """Ports are numbers within range or DNS-style names."""
    with pytest.raises(RequestValidationError, match="Port"):
        validate_request({"name": "web", "namespace": "demo", "port": port}, operation="expose")


def test_new_app_derives_app_name() -> None:
    """The application name defaults to the repository name."""
    request = validate_request(
        {"gitRepo": "https://github.com/sclorg/django-ex.git", "namespace": "demo"},
        operation="new-app",
    )

    assert request.app is not None
    assert request.app.app_name == "django-ex"


@pytest.mark.parametrize(
    ("git_repo", "expected"),
    [
        ("https://github.com/org/My_Repo.git", "my-repo"),
        ("https://github.com/org/app/", "app"),
        ("https://github.com/", "my-app"),
    ],
)
def test_derive_app_name(git_repo: str, expected: str) -> None:
    """Repository names are slugged into DNS-1123 labels."""
    assert derive_app_name(git_repo) == expected


def test_new_app_requires_http_repository() -> None:
    """Only http and https repositories are accepted."""
    with pytest.raises(RequestValidationError, match="HTTP or HTTPS URL"):
        validate_request({"gitRepo": "ftp://example.com/repo.git", "namespace": "demo"}, operation="new-app")


def test_new_app_requires_git_repo() -> None:
    """The repository is mandatory."""
    with pytest.raises(RequestValidationError, match="Missing required argument: git_repo"):
        validate_request({"namespace": "demo"}, operation="new-app")


def test_new_app_rejects_malformed_environment() -> None:
    """Environment entries must be KEY=VALUE pairs."""
    with pytest.raises(RequestValidationError, match="KEY=VALUE"):
        validate_request(
            {"gitRepo": "https://github.com/org/app", "namespace": "demo", "env": ["NOVALUE"]},
            operation="new-app",
        )


def test_check_request_applies_rules_to_constructed_models() -> None:
    """A request built directly still goes through the semantic rules."""
    request = MutationRequest(
        operation=MutationKind.DELETE,
        resource_type="pod",
        name="x",
        flags=ExecutionFlags(timeout="10x"),
    )

    with pytest.raises(RequestValidationError, match="Timeout must be in format"):
        check_request(request)
