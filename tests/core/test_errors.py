"""Tests for the ocguard error hierarchy and integration points."""

from __future__ import annotations

import asyncio

import pytest

from ocguard.core.errors import (
    CommandExecutionError,
    ExposureConfigurationError,
    ExposureError,
    ExposureStateError,
    OcguardError,
    OcguardValidationError,
    ReportValidationError,
    RequestValidationError,
    UnsafeManifestURLError,
)
from ocguard.core.models import MutationKind, MutationReport, ReportOutcome
from ocguard.interfases.cli.app import CliError
from ocguard.interfases.factory import make_exposure
from ocguard.interfases.mcp.server_fastmcp import MCPExposure
from ocguard.pipelines import MutationOrchestrator, MutationPipeline
from ocguard.tools.executor import FixtureCommandExecutor


def test_error_hierarchy() -> None:
    """Specialised errors should remain anchored to the OcguardError base."""
    assert issubclass(RequestValidationError, OcguardValidationError)
    assert issubclass(UnsafeManifestURLError, OcguardValidationError)
    assert issubclass(ReportValidationError, OcguardValidationError)
    assert issubclass(OcguardValidationError, OcguardError)
    assert issubclass(OcguardValidationError, ValueError)
    assert issubclass(ExposureConfigurationError, ExposureError)
    assert issubclass(ExposureConfigurationError, OcguardValidationError)
    assert issubclass(CommandExecutionError, OcguardError)


def test_pipeline_raises_report_validation_error_for_failure_without_error() -> None:
    """A failure report lacking its classification is rejected."""

    class DummyOrchestrator:
        async def run(self, *_: object, **__: object) -> MutationReport:
            return MutationReport(
                operation=MutationKind.DELETE,
                outcome=ReportOutcome.FAILURE,
                message="delete failed",
            )

    pipeline = MutationPipeline(orchestrator=DummyOrchestrator())  # type: ignore[arg-type]

    with pytest.raises(ReportValidationError):
        asyncio.run(pipeline.run({"resourceType": "pod", "name": "x"}, operation=MutationKind.DELETE))


def test_pipeline_accepts_reports_from_real_orchestrator() -> None:
    """Reports produced by the orchestrator pass schema validation."""
    orchestrator = MutationOrchestrator(executor=FixtureCommandExecutor([]))
    pipeline = MutationPipeline(orchestrator=orchestrator)

    report = asyncio.run(pipeline.run({"namespace": "demo"}, operation=MutationKind.DELETE))

    assert report.outcome is ReportOutcome.FAILURE
    assert report.error is not None


def test_cli_error_inherits_exposure_error() -> None:
    """The CLI should surface anticipated failures via ExposureError subclasses."""
    error = CliError("boom", exit_code=2)
    assert isinstance(error, ExposureError)
    assert error.exit_code == 2


def test_make_exposure_unknown_kind() -> None:
    """Unknown exposure kinds should surface a configuration error."""
    with pytest.raises(ExposureConfigurationError):
        make_exposure("unknown-kind")


def test_mcp_exposure_requires_runtime_before_serving() -> None:
    """Accessing the MCP runtime before serve() should raise ExposureStateError."""
    exposure = MCPExposure()
    require_runtime = object.__getattribute__(exposure, "_require_runtime")

    with pytest.raises(ExposureStateError):
        require_runtime()
