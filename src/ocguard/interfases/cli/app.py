"""Command-line interface for the ocguard project."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, cast
from collections.abc import Mapping, Sequence

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ocguard.core.config import Settings
from ocguard.core.errors import (
    CommandExecutionError,
    ExposureConfigurationError,
    ExposureError,
    ReportValidationError,
)
from ocguard.core.models import (
    BuildStrategy,
    CascadeStrategy,
    InsecurePolicy,
    MutationKind,
    MutationReport,
    ProgressSeverity,
    ReportOutcome,
    RouteTermination,
    WildcardPolicy,
)
from ocguard.core.safety import mask_secrets, scrub_for_logging
from ocguard.core.schema import SchemaTarget, build_json_schema
from ocguard.pipelines import MutationOrchestrator, MutationPipeline, ReportOutput, ReportOutputFormat
from ocguard.tools.executor import CommandExecutor, FixtureCommandExecutor, OcCommandExecutor

EXIT_CODES = {
    ReportOutcome.SUCCESS: 0,
    ReportOutcome.DRY_RUN: 0,
    ReportOutcome.NO_RESOURCES: 0,
    ReportOutcome.SAFETY_BLOCK: 2,
    ReportOutcome.CONFIRMATION_REQUIRED: 2,
    ReportOutcome.FAILURE: 1,
}

_SEVERITY_STYLES = {
    ProgressSeverity.INFO: "cyan",
    ProgressSeverity.SUCCESS: "green",
    ProgressSeverity.WARNING: "yellow",
    ProgressSeverity.ERROR: "bold red",
}

# Maps argparse destinations onto request argument names; values that are
# None or False are omitted so the validator only sees what the user typed.
_DELETE_ARGUMENTS = (
    "resource_type",
    "name",
    "namespace",
    "label_selector",
    "field_selector",
    "filename",
    "url",
    "all",
    "all_namespaces",
    "cascade",
    "grace_period_seconds",
    "ignore_not_found",
    "recursive",
)
_APPLY_ARGUMENTS = (
    "namespace",
    "filename",
    "url",
    "label_selector",
    "all",
    "prune",
    "prune_allowlist",
    "kustomize",
    "server_side",
    "field_manager",
    "overwrite",
    "recursive",
)
_EXPOSE_ARGUMENTS = (
    "resource_type",
    "name",
    "namespace",
    "route_name",
    "termination",
    "port",
    "hostname",
    "path",
    "wildcard_policy",
    "insecure_policy",
    "certificate",
    "key",
    "ca_certificate",
    "destination_ca_certificate",
    "labels",
    "weight",
)
_NEW_APP_ARGUMENTS = (
    "namespace",
    "git_repo",
    "app_name",
    "builder_image",
    "strategy",
    "source_secret",
    "context_dir",
    "env",
    "labels",
)
_FLAG_ARGUMENTS = ("dry_run", "force", "wait", "timeout", "confirm")

_OPERATION_ARGUMENTS = {
    MutationKind.DELETE: _DELETE_ARGUMENTS,
    MutationKind.APPLY: _APPLY_ARGUMENTS,
    MutationKind.EXPOSE: _EXPOSE_ARGUMENTS,
    MutationKind.NEW_APP: _NEW_APP_ARGUMENTS,
}


class CliError(ExposureError):
    """Exception raised for anticipated CLI failures."""

    def __init__(self, message: str, *, exit_code: int = 1, details: Any | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.details = details


def main(argv: Sequence[str] | None = None) -> int:
    """Parse *argv*, execute the requested command and return the exit code."""
    parser = _build_parser()
    args_namespace = parser.parse_args(argv)
    command = getattr(args_namespace, "command", None)
    if command is None:
        parser.print_help()
        return 1
    _configure_logging(verbose=bool(getattr(args_namespace, "verbose", False)))
    try:
        exit_code = command(args_namespace)
    except CliError as error:
        _emit_error(error)
        exit_code = error.exit_code
    except KeyboardInterrupt as error:  # pragma: no cover - manual interruption
        cli_error = CliError("Aborted by user", exit_code=130, details=str(error))
        _emit_error(cli_error)
        exit_code = cli_error.exit_code
    except ValidationError as error:
        cli_error = CliError("Invalid payload", exit_code=1, details=error.errors())
        _emit_error(cli_error)
        exit_code = cli_error.exit_code
    except (CommandExecutionError, ExposureConfigurationError, ReportValidationError) as error:
        cli_error = CliError(str(error), exit_code=1)
        _emit_error(cli_error)
        exit_code = cli_error.exit_code
    return exit_code


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocguard",
        description="Run guarded delete, apply, expose and new-app operations against a cluster.",
    )
    parser.add_argument("--version", action="version", version="ocguard 0.1.0")
    subparsers = parser.add_subparsers(dest="command_name")

    _configure_delete(subparsers)
    _configure_apply(subparsers)
    _configure_expose(subparsers)
    _configure_new_app(subparsers)
    _configure_schema(subparsers)

    return parser


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-n", "--namespace", dest="namespace", help="Target namespace.")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Preview without changing anything.")
    parser.add_argument("--force", action="store_true", help="Bypass confirmation and graceful handling.")
    parser.add_argument("--wait", action="store_true", help="Wait for resources to converge.")
    parser.add_argument("--timeout", help="Timeout such as 60s, 5m or 1h.")
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm an operation that the safety checks flagged.",
    )
    parser.add_argument("--context", dest="kube_context", help="Kubeconfig context to use.")
    parser.add_argument("--oc-binary", dest="oc_binary", help="Cluster CLI binary (must be allowlisted).")
    parser.add_argument(
        "--cluster-fixture",
        dest="cluster_fixture",
        help="JSON fixture of recorded command responses used instead of a live cluster.",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("json", "text"),
        default="json",
        help="Report format written to stdout (default: json).",
    )
    parser.add_argument(
        "--output",
        "--out",
        dest="output_path",
        help="Optional path to write the report as JSON.",
    )
    parser.add_argument(
        "--ndjson-out",
        dest="ndjson_output_path",
        help="Optional path to write progress entries and records as NDJSON.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--manifest",
        dest="manifest_path",
        help="Read an inline manifest from this file ('-' for stdin).",
    )
    parser.add_argument("-f", "--filename", dest="filename", help="Manifest file or directory passed to the CLI.")
    parser.add_argument("--url", dest="url", help="HTTPS URL of a manifest.")
    parser.add_argument("-R", "--recursive", action="store_true", help="Process directories recursively.")


def _configure_delete(subparsers: Any) -> None:
    parser = subparsers.add_parser("delete", help="Delete resources after safety checks.")
    parser.set_defaults(command=_command_mutate, operation=MutationKind.DELETE)
    parser.add_argument("resource_type", nargs="?", help="Resource type such as pod or deployment.")
    parser.add_argument("name", nargs="?", help="Resource name.")
    parser.add_argument("-l", "--selector", dest="label_selector", help="Label selector.")
    parser.add_argument("--field-selector", dest="field_selector", help="Field selector.")
    parser.add_argument("--all", dest="all", action="store_true", help="Delete all resources of the type.")
    parser.add_argument(
        "-A",
        "--all-namespaces",
        dest="all_namespaces",
        action="store_true",
        help="Operate across all namespaces.",
    )
    parser.add_argument("--cascade", choices=[item.value for item in CascadeStrategy])
    parser.add_argument("--grace-period", dest="grace_period_seconds", type=int)
    parser.add_argument("--ignore-not-found", dest="ignore_not_found", action="store_true")
    _add_source_options(parser)
    _add_common_options(parser)


def _configure_apply(subparsers: Any) -> None:
    parser = subparsers.add_parser("apply", help="Apply a manifest after safety checks.")
    parser.set_defaults(command=_command_mutate, operation=MutationKind.APPLY)
    parser.add_argument("-l", "--selector", dest="label_selector", help="Label selector used with --prune.")
    parser.add_argument("--all", dest="all", action="store_true", help="Prune across all resources.")
    parser.add_argument(
        "--no-validate",
        dest="validate_manifest",
        action="store_false",
        default=None,
        help="Skip client-side schema validation.",
    )
    parser.add_argument("--prune", action="store_true")
    parser.add_argument("--prune-allowlist", dest="prune_allowlist", action="append")
    parser.add_argument("-k", "--kustomize", action="store_true", help="Treat --filename as a kustomization.")
    parser.add_argument("--server-side", dest="server_side", action="store_true")
    parser.add_argument("--field-manager", dest="field_manager")
    parser.add_argument("--overwrite", action="store_true")
    _add_source_options(parser)
    _add_common_options(parser)


def _configure_expose(subparsers: Any) -> None:
    parser = subparsers.add_parser("expose", help="Expose a service through a route.")
    parser.set_defaults(command=_command_mutate, operation=MutationKind.EXPOSE)
    parser.add_argument("name", help="Name of the service to expose.")
    parser.add_argument("--resource-type", dest="resource_type", default="service")
    parser.add_argument("--route-name", dest="route_name")
    parser.add_argument("--termination", choices=[item.value for item in RouteTermination])
    parser.add_argument("--port")
    parser.add_argument("--hostname")
    parser.add_argument("--path")
    parser.add_argument("--wildcard-policy", dest="wildcard_policy", choices=[item.value for item in WildcardPolicy])
    parser.add_argument("--insecure-policy", dest="insecure_policy", choices=[item.value for item in InsecurePolicy])
    parser.add_argument("--cert", dest="certificate")
    parser.add_argument("--key", dest="key")
    parser.add_argument("--ca-cert", dest="ca_certificate")
    parser.add_argument("--dest-ca-cert", dest="destination_ca_certificate")
    parser.add_argument("--label", dest="labels", action="append", help="Route label in KEY=VALUE form.")
    parser.add_argument("--weight", type=int)
    _add_common_options(parser)


def _configure_new_app(subparsers: Any) -> None:
    parser = subparsers.add_parser("new-app", help="Build and deploy an application from source.")
    parser.set_defaults(command=_command_mutate, operation=MutationKind.NEW_APP)
    parser.add_argument("git_repo", help="HTTP(S) URL of the Git repository.")
    parser.add_argument("--name", dest="app_name")
    parser.add_argument("--builder-image", dest="builder_image")
    parser.add_argument("--strategy", choices=[item.value for item in BuildStrategy])
    parser.add_argument("--source-secret", dest="source_secret")
    parser.add_argument("--context-dir", dest="context_dir")
    parser.add_argument("-e", "--env", dest="env", action="append", help="Environment variable KEY=VALUE.")
    parser.add_argument("-l", "--label", dest="labels", action="append", help="Label KEY=VALUE.")
    _add_common_options(parser)


def _configure_schema(subparsers: Any) -> None:
    schema_parser = subparsers.add_parser(
        "schema",
        help="Interact with the request and report JSON Schema utilities.",
    )
    schema_subparsers = schema_parser.add_subparsers(dest="schema_command")

    export_parser = schema_subparsers.add_parser(
        "export",
        help="Export a JSON Schema to a file (default: stdout).",
    )
    export_parser.set_defaults(command=_command_schema_export)
    export_parser.add_argument(
        "--target",
        choices=[item.value for item in SchemaTarget],
        default=SchemaTarget.REPORT.value,
        help="Which schema to export (default: report).",
    )
    export_parser.add_argument(
        "--output",
        "--out",
        dest="output_path",
        default="-",
        help="Destination file for the JSON Schema or '-' for stdout.",
    )


def _command_schema_export(args: argparse.Namespace) -> int:
    schema = build_json_schema(args.target)
    _write_json_output(schema, args.output_path)
    return 0


def _command_mutate(args: argparse.Namespace) -> int:
    operation = cast("MutationKind", args.operation)
    arguments = _collect_arguments(args, operation)

    settings = Settings.from_env().with_overrides(context=args.kube_context, oc_binary=args.oc_binary)
    executor = _build_executor(args, settings)
    pipeline = MutationPipeline(orchestrator=MutationOrchestrator(executor=executor, settings=settings))

    outputs: list[ReportOutput] = []
    if args.output_path:
        outputs.append(ReportOutput(ReportOutputFormat.JSON, Path(args.output_path)))
    if args.ndjson_output_path:
        outputs.append(ReportOutput(ReportOutputFormat.NDJSON, Path(args.ndjson_output_path)))

    report = asyncio.run(pipeline.run(arguments, operation=operation, outputs=outputs))

    if args.output_format == "text":
        _render_text(report)
    else:
        _write_json_output(report.model_dump(mode="json"), None)
    return EXIT_CODES[report.outcome]


def _collect_arguments(args: argparse.Namespace, operation: MutationKind) -> dict[str, Any]:
    arguments: dict[str, Any] = {}
    for name in (*_OPERATION_ARGUMENTS[operation], *_FLAG_ARGUMENTS):
        value = getattr(args, name, None)
        if value is None or value is False:
            continue
        arguments[name] = value

    if getattr(args, "validate_manifest", None) is False:
        arguments["validate_manifest"] = False
    manifest_path = getattr(args, "manifest_path", None)
    if manifest_path:
        arguments["manifest"] = _read_text(Path(manifest_path))
    return arguments


def _build_executor(args: argparse.Namespace, settings: Settings) -> CommandExecutor:
    if args.cluster_fixture:
        return FixtureCommandExecutor.from_payload(_read_json(Path(args.cluster_fixture)))
    return OcCommandExecutor.from_settings(settings)


def _render_text(report: MutationReport, *, console: Console | None = None) -> None:
    output = console or Console()
    style = "green" if report.outcome is ReportOutcome.SUCCESS else "yellow"
    if report.outcome is ReportOutcome.FAILURE:
        style = "bold red"
    output.print(f"[{style}]{report.operation.value}: {report.outcome.value}[/]")
    output.print(report.message, markup=False)

    if report.records:
        table = Table(title="Records")
        table.add_column("Kind")
        table.add_column("Name")
        table.add_column("Action")
        for record in report.records:
            table.add_row(record.kind, record.name, record.action.value)
        output.print(table)
    elif report.resources:
        table = Table(title="Resources")
        table.add_column("Kind")
        table.add_column("Name")
        table.add_column("Namespace")
        for ref in report.resources:
            table.add_row(ref.kind, ref.name, ref.namespace or "")
        output.print(table)

    for entry in report.progress:
        output.print(entry.formatted, style=_SEVERITY_STYLES[entry.severity], markup=False)

    if report.error is not None:
        output.print(f"[bold red]{report.error.category}[/]")
        for step in report.error.remediation_steps:
            output.print(f"  - {step}", markup=False)


def _read_text(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as error:
        message = f"File not found: {path}"
        raise CliError(message) from error
    except OSError as error:
        message = f"Unable to read {path}: {error}"  # pragma: no cover - defensive guard
        raise CliError(message) from error


def _read_json(path: Path) -> object:
    text = _read_text(path)
    try:
        return cast("object", json.loads(text))
    except json.JSONDecodeError as error:
        message = f"Failed to parse JSON from {path}: {error}"
        raise CliError(message) from error


def _write_json_output(payload: Any, output_path: str | None) -> None:
    serialized = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)
    if output_path in {None, "", "-"}:
        sys.stdout.write(serialized + "\n")
        sys.stdout.flush()
        return
    path = Path(cast("str", output_path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialized + "\n", encoding="utf-8")


def _emit_error(error: CliError) -> None:
    payload = {
        "status": "error",
        "message": mask_secrets(str(error)),
        "type": type(error).__name__,
    }
    if error.details is not None:
        payload["details"] = scrub_for_logging(error.details)
    safe_payload = scrub_for_logging(payload)
    serialized = json.dumps(safe_payload, ensure_ascii=False, sort_keys=True)
    sys.stderr.write(serialized + "\n")
    sys.stderr.flush()


class CLIExposure:
    """Exposure adapter that delegates to the CLI entry point."""

    def serve(self, *, config: Mapping[str, Any] | None = None) -> None:
        """Execute the CLI using the provided configuration."""
        argv: Sequence[str] | None = None
        if config is not None and "argv" in config:
            raw_argv = config["argv"]
            if raw_argv is not None:
                if not isinstance(raw_argv, Sequence) or isinstance(raw_argv, (str, bytes)):
                    message = "config['argv'] must be a sequence of strings"
                    raise TypeError(message)
                sequence_candidate = cast("Sequence[Any]", raw_argv)
                validated_arguments: list[str] = []
                for argument in sequence_candidate:
                    if not isinstance(argument, str):
                        message = "config['argv'] must contain only strings"
                        raise TypeError(message)
                    validated_arguments.append(argument)
                argv = list(validated_arguments)
        exit_code = main(argv)
        raise SystemExit(exit_code)


__all__ = ["EXIT_CODES", "CLIExposure", "CliError", "main"]
