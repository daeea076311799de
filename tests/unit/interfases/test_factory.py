"""Tests for the exposure factory."""

from __future__ import annotations

import pytest

from ocguard.__main__ import main as entry_point
from ocguard.core.errors import ExposureConfigurationError
from ocguard.interfases.cli.app import CLIExposure
from ocguard.interfases.factory import (
    make_exposure,
    parse_exposure_kind,
    resolve_exposure_from_environment,
)
from ocguard.interfases.mcp.server_fastmcp import MCPExposure
from ocguard.interfases.types import ExposureKind


@pytest.mark.parametrize(
    "kind", ["cli", "mcp"],
)
def test_make_exposure_known_kinds(kind: str) -> None:
    """Known exposure kinds return the expected instance type."""
    exposure = make_exposure(kind)

    expected_type = CLIExposure if kind == "cli" else MCPExposure
    assert isinstance(exposure, expected_type)


def test_make_exposure_unknown_kind() -> None:
    """Unknown exposure kinds raise a ValueError."""
    with pytest.raises(ValueError, match="unknown exposure kind: unknown"):
        make_exposure("unknown")


def test_resolve_exposure_defaults_to_cli(monkeypatch: pytest.MonkeyPatch) -> None:
    """The environment resolver falls back to the CLI exposure."""
    monkeypatch.delenv("OCGUARD_EXPOSE", raising=False)

    exposure = resolve_exposure_from_environment()

    assert isinstance(exposure, CLIExposure)


def test_resolve_exposure_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """The resolver honours the environment variable override."""
    monkeypatch.setenv("OCGUARD_EXPOSE", "mcp")

    exposure = resolve_exposure_from_environment()

    assert isinstance(exposure, MCPExposure)


def test_resolve_exposure_invalid_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Invalid environment values propagate as ValueError."""
    monkeypatch.setenv("OCGUARD_EXPOSE", "invalid")

    with pytest.raises(ValueError, match="unknown exposure kind: invalid"):
        resolve_exposure_from_environment()


def test_make_exposure_accepts_enum_and_mixed_case() -> None:
    """Kinds may be given as enum members or in any case."""
    assert isinstance(make_exposure(ExposureKind.MCP), MCPExposure)
    assert isinstance(make_exposure(" CLI "), CLIExposure)


def test_parse_exposure_kind_is_a_value_error() -> None:
    """Configuration errors stay catchable as ValueError."""
    with pytest.raises(ExposureConfigurationError):
        parse_exposure_kind("grpc")


def test_resolve_exposure_uses_explicit_mapping() -> None:
    """An explicit environment mapping replaces os.environ; blank values use the default."""
    assert isinstance(resolve_exposure_from_environment({"OCGUARD_EXPOSE": "mcp"}), MCPExposure)
    assert isinstance(resolve_exposure_from_environment({"OCGUARD_EXPOSE": "  "}), CLIExposure)


def test_module_entry_point_reports_bad_exposure(monkeypatch: pytest.MonkeyPatch) -> None:
    """python -m ocguard exits with a message for unknown exposures."""
    monkeypatch.setenv("OCGUARD_EXPOSE", "invalid")

    with pytest.raises(SystemExit) as exit_info:
        entry_point(["schema", "export"])

    assert "unknown exposure kind: invalid" in str(exit_info.value.code)


def test_module_entry_point_runs_cli(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    """The CLI exposure exits with the command's status."""
    monkeypatch.delenv("OCGUARD_EXPOSE", raising=False)

    with pytest.raises(SystemExit) as exit_info:
        entry_point(["schema", "export", "--target", "request"])

    assert exit_info.value.code == 0
    assert '"OcguardMutationRequest"' in capsys.readouterr().out
