"""Run the orchestrator and persist schema-validated mutation reports."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from jsonschema import Draft202012Validator

from ocguard.core.errors import ReportValidationError
from ocguard.core.models import MutationKind, MutationReport, ReportOutcome
from ocguard.core.schema import build_report_json_schema

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .orchestrator import MutationOrchestrator, RequestInput


class ReportOutputFormat(StrEnum):
    """Supported serialization formats for mutation reports."""

    JSON = "json"
    NDJSON = "ndjson"


@dataclass(frozen=True)
class ReportOutput:
    """Configuration for writing a report to disk."""

    format: ReportOutputFormat
    path: Path

    def __post_init__(self) -> None:
        """Ensure *path* is stored as a :class:`Path` instance."""
        object.__setattr__(self, "path", Path(self.path))


@dataclass
class MutationPipeline:
    """Execute one mutation and emit the validated report."""

    orchestrator: MutationOrchestrator
    validator: Draft202012Validator = field(
        default_factory=lambda: Draft202012Validator(build_report_json_schema()),
    )

    async def run(
        self,
        arguments: RequestInput,
        *,
        operation: MutationKind | str = MutationKind.DELETE,
        outputs: Sequence[ReportOutput] | None = None,
    ) -> MutationReport:
        """Run the orchestrator, validate the report, and persist optional outputs."""
        report = await self.orchestrator.run(arguments, operation=operation)
        self.validate(report)
        for target in outputs or ():
            write_report(report, target)
        return report

    def validate(self, report: MutationReport) -> None:
        payload: dict[str, Any] = report.model_dump(mode="json")
        validator = cast("Any", self.validator)
        validator.validate(payload)

        if report.outcome is ReportOutcome.FAILURE and report.error is None:
            message = "Failure reports must carry an error classification"
            raise ReportValidationError(message)


def write_report(report: MutationReport, target: ReportOutput) -> None:
    """Serialise *report* to *target* in the requested format."""
    if target.format is ReportOutputFormat.JSON:
        _write_json(report, target.path)
    elif target.format is ReportOutputFormat.NDJSON:
        _write_ndjson(report, target.path)
    else:  # pragma: no cover - exhaustive over the enum
        message = f"Unsupported output format: {target.format}"
        raise ReportValidationError(message)


def _write_json(report: MutationReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = report.model_dump(mode="json")
    serialized = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)
    path.write_text(serialized + "\n", encoding="utf-8")


def _write_ndjson(report: MutationReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(entry, ensure_ascii=False, sort_keys=True) for entry in iter_ndjson_entries(report)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def iter_ndjson_entries(report: MutationReport) -> Iterator[dict[str, object]]:
    """Yield a summary line followed by one line per progress entry and record."""
    yield {
        "record_type": "report",
        "report": {
            "schema_version": report.schema_version,
            "operation": report.operation.value,
            "outcome": report.outcome.value,
            "message": report.message,
            "resource_count": len(report.resources),
            "record_count": len(report.records),
        },
    }
    for entry in report.progress:
        yield {
            "record_type": "progress",
            "progress": entry.model_dump(mode="json"),
        }
    for record in report.records:
        yield {
            "record_type": "record",
            "record": record.model_dump(mode="json"),
        }


__all__ = [
    "MutationPipeline",
    "ReportOutput",
    "ReportOutputFormat",
    "iter_ndjson_entries",
    "write_report",
]
