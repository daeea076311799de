"""Tests for report validation and persistence."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest
from jsonschema import ValidationError

from ocguard.core.models import (
    ExecutionRecord,
    MutationKind,
    MutationReport,
    ProgressEntry,
    ProgressSeverity,
    RecordAction,
    ReportOutcome,
)
from ocguard.pipelines import MutationOrchestrator, MutationPipeline, ReportOutput, ReportOutputFormat
from ocguard.pipelines.report_output import iter_ndjson_entries, write_report
from ocguard.tools.executor import CommandResult, FixtureCommandExecutor, FixtureResponse

if TYPE_CHECKING:
    from pathlib import Path


def _report() -> MutationReport:
    return MutationReport(
        operation=MutationKind.DELETE,
        outcome=ReportOutcome.SUCCESS,
        message="delete succeeded for 1 resource(s)",
        progress=[
            ProgressEntry(elapsed_seconds=0.0, severity=ProgressSeverity.INFO, message="Validated delete request"),
            ProgressEntry(elapsed_seconds=0.4, severity=ProgressSeverity.SUCCESS, message="delete completed"),
        ],
        records=[ExecutionRecord(kind="Pod", name="web", action=RecordAction.DELETED)],
    )


def test_pipeline_writes_json_and_ndjson(tmp_path: Path) -> None:
    """The pipeline persists every requested output format."""
    executor = FixtureCommandExecutor(
        [
            FixtureResponse(args=("get", "pod"), result=CommandResult(success=True, stdout='{"kind": "List", "items": []}')),
        ],
    )
    pipeline = MutationPipeline(orchestrator=MutationOrchestrator(executor=executor))
    json_path = tmp_path / "out" / "report.json"
    ndjson_path = tmp_path / "out" / "report.ndjson"

    report = asyncio.run(
        pipeline.run(
            {"resourceType": "pod", "labelSelector": "app=web", "namespace": "test"},
            operation=MutationKind.DELETE,
            outputs=[
                ReportOutput(ReportOutputFormat.JSON, json_path),
                ReportOutput(ReportOutputFormat.NDJSON, ndjson_path),
            ],
        ),
    )

    assert report.outcome is ReportOutcome.NO_RESOURCES
    assert json.loads(json_path.read_text(encoding="utf-8"))["outcome"] == "no-resources"
    first_line = ndjson_path.read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(first_line)["record_type"] == "report"


def test_ndjson_entries_follow_report_summary() -> None:
    """The NDJSON stream starts with a summary, then progress, then records."""
    entries = list(iter_ndjson_entries(_report()))

    assert [entry["record_type"] for entry in entries] == ["report", "progress", "progress", "record"]
    assert entries[0]["report"] == {
        "schema_version": "0.1.0",
        "operation": "delete",
        "outcome": "success",
        "message": "delete succeeded for 1 resource(s)",
        "resource_count": 0,
        "record_count": 1,
    }
    assert entries[-1]["record"] == {"kind": "Pod", "name": "web", "action": "deleted"}


def test_write_report_json(tmp_path: Path) -> None:
    """JSON output is the full report model."""
    target = ReportOutput(ReportOutputFormat.JSON, tmp_path / "report.json")

    write_report(_report(), target)

    assert MutationReport.model_validate_json(target.path.read_text(encoding="utf-8")) == _report()


def test_report_output_coerces_path(tmp_path: Path) -> None:
    """String paths are stored as Path objects."""
    output = ReportOutput(ReportOutputFormat.NDJSON, str(tmp_path / "x.ndjson"))  # type: ignore[arg-type]

    assert output.path == tmp_path / "x.ndjson"


def test_validate_rejects_schema_violations() -> None:
    """Reports that do not match the exported schema are rejected."""
    pipeline = MutationPipeline(orchestrator=MutationOrchestrator(executor=FixtureCommandExecutor([])))
    report = _report().model_copy(update={"schema_version": "9.9.9"})

    with pytest.raises(ValidationError):
        pipeline.validate(report)
