"""End-to-end example that exercises the ocguard Python API against a recorded cluster."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ocguard.core.models import MutationKind, MutationReport
from ocguard.pipelines import (
    MutationOrchestrator,
    MutationPipeline,
    ReportOutput,
    ReportOutputFormat,
)
from ocguard.tools.executor import FixtureCommandExecutor


def _load_pipeline(fixture_path: Path) -> MutationPipeline:
    payload = json.loads(fixture_path.read_text(encoding="utf-8"))
    executor = FixtureCommandExecutor.from_payload(payload)
    return MutationPipeline(orchestrator=MutationOrchestrator(executor=executor))


def _summarise(console: Console, reports: list[MutationReport]) -> None:
    table = Table(title="ocguard sample run")
    table.add_column("Operation")
    table.add_column("Outcome")
    table.add_column("Message")
    for report in reports:
        table.add_row(report.operation.value, report.outcome.value, report.message)
    console.print(table)


async def _run(pipeline: MutationPipeline, manifest: str, output_path: Path) -> list[MutationReport]:
    preview = await pipeline.run(
        {"manifest": manifest, "namespace": "demo", "dryRun": True},
        operation=MutationKind.APPLY,
    )
    applied = await pipeline.run(
        {"manifest": manifest, "namespace": "demo"},
        operation=MutationKind.APPLY,
        outputs=[ReportOutput(format=ReportOutputFormat.JSON, path=output_path)],
    )
    blocked = await pipeline.run(
        {"resourceType": "pod", "name": "coredns", "namespace": "kube-system"},
        operation=MutationKind.DELETE,
    )
    deleted = await pipeline.run(
        {"resourceType": "pod", "name": "web-1", "namespace": "demo"},
        operation=MutationKind.DELETE,
    )
    return [preview, applied, blocked, deleted]


def main() -> None:
    """Preview, apply and delete resources using the bundled fixtures."""
    console = Console()
    base_dir = Path(__file__).resolve().parent
    pipeline = _load_pipeline(base_dir / "cluster_fixture.json")
    manifest = (base_dir / "settings_configmap.yaml").read_text(encoding="utf-8")
    output_path = Path("apply_report.json")

    reports = asyncio.run(_run(pipeline, manifest, output_path))

    _summarise(console, reports)
    console.print(f"Apply report written to [path]{output_path.resolve()}[/path]")
    console.print_json(reports[1].model_dump_json(indent=2))


if __name__ == "__main__":
    main()
