"""State machine that drives one mutation request from validation to report."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ocguard.core.config import Settings
from ocguard.core.diagnostics import VALIDATION_CATEGORY, classification_for, classify_error
from ocguard.core.errors import CommandExecutionError, OcguardValidationError, UnsafeManifestURLError
from ocguard.core.models import (
    ErrorClassification,
    ExecutionRecord,
    MutationKind,
    MutationReport,
    MutationRequest,
    PipelineState,
    ReportOutcome,
    ResourceRef,
    RiskAssessment,
)
from ocguard.core.progress import Clock, ProgressLog
from ocguard.core.risk import RiskClassifier
from ocguard.core.safety import mask_secrets, redact_command
from ocguard.core.validation import check_request, timeout_to_seconds, validate_request
from ocguard.tools.commands import CommandSpec, build_command
from ocguard.tools.executor import CommandExecutor
from ocguard.tools.queries import ClusterQueries
from ocguard.tools.results import parse_records

from .convergence import ConvergenceWaiter, PostExecutionVerifier
from .discovery import Discovery, ResourceDiscoverer

type RequestInput = MutationRequest | Mapping[str, Any]

_LISTED_REFS_LIMIT = 20

_STOPPED_REASONS = {
    ReportOutcome.SAFETY_BLOCK: "stopped by safety checks",
    ReportOutcome.CONFIRMATION_REQUIRED: "awaiting confirmation",
}


class _Run:
    """Mutable bookkeeping for a single invocation."""

    def __init__(
        self,
        operation: MutationKind,
        *,
        clock: Clock | None,
        logger: logging.Logger,
    ) -> None:
        self.operation = operation
        self.logger = logger
        self.progress = ProgressLog(clock=clock, logger=logger)
        self.states: list[PipelineState] = []
        self.risk: RiskAssessment | None = None
        self.refs: list[ResourceRef] = []
        self.command: list[str] = []

    def enter(self, state: PipelineState) -> None:
        self.states.append(state)

    def finish(
        self,
        outcome: ReportOutcome,
        message: str,
        *,
        records: Sequence[ExecutionRecord] = (),
        unverified: Sequence[ExecutionRecord] = (),
        error: ErrorClassification | None = None,
        error_detail: str | None = None,
    ) -> MutationReport:
        self.enter(PipelineState.REPORTING)
        self.progress.add_completion(
            self.operation.value,
            success=outcome is not ReportOutcome.FAILURE,
            stopped_reason=_STOPPED_REASONS.get(outcome),
        )
        summary = self.progress.summary()
        self.logger.info(
            "%s finished with outcome %s",
            self.operation.value,
            outcome.value,
            extra={
                "outcome": outcome.value,
                "total_seconds": round(summary.total_seconds, 3),
                "warnings": summary.warnings,
                "errors": summary.errors,
            },
        )
        return MutationReport(
            operation=self.operation,
            outcome=outcome,
            message=message,
            states=list(self.states),
            progress=self.progress.entries(),
            resources=list(self.refs),
            records=list(records),
            unverified=list(unverified),
            risk=self.risk,
            command=list(self.command),
            error=error,
            error_detail=error_detail,
        )


def _list_refs(refs: Sequence[ResourceRef]) -> str:
    shown = [ref.display for ref in refs[:_LISTED_REFS_LIMIT]]
    if len(refs) > _LISTED_REFS_LIMIT:
        shown.append(f"... and {len(refs) - _LISTED_REFS_LIMIT} more")
    return "; ".join(shown)


@dataclass
class MutationOrchestrator:
    """Validate, gate, discover, execute and verify one mutation request.

    The executor is always injected. Discovery, waiting and verification
    collaborators default to implementations built on the same executor, so
    a scripted executor is enough to drive the whole pipeline in tests.
    Every terminal state is returned as a :class:`MutationReport`; failures
    of the control plane never escape as exceptions.
    """

    executor: CommandExecutor
    settings: Settings = field(default_factory=Settings)
    classifier: RiskClassifier | None = None
    discoverer: ResourceDiscoverer | None = None
    waiter: ConvergenceWaiter | None = None
    verifier: PostExecutionVerifier | None = None
    clock: Clock | None = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def __post_init__(self) -> None:
        queries = ClusterQueries(
            executor=self.executor,
            timeout=self.settings.command_timeout_seconds,
            attempts=self.settings.query_attempts,
        )
        if self.classifier is None:
            self.classifier = RiskClassifier(confirmation_threshold=self.settings.confirmation_threshold)
        if self.discoverer is None:
            self.discoverer = ResourceDiscoverer(queries)
        if self.waiter is None:
            self.waiter = ConvergenceWaiter(
                queries,
                default_timeout_seconds=self.settings.wait_timeout_seconds,
            )
        if self.verifier is None:
            self.verifier = PostExecutionVerifier(queries, limit=self.settings.verify_limit)

    async def delete(self, arguments: RequestInput) -> MutationReport:
        return await self.run(arguments, operation=MutationKind.DELETE)

    async def apply(self, arguments: RequestInput) -> MutationReport:
        return await self.run(arguments, operation=MutationKind.APPLY)

    async def expose(self, arguments: RequestInput) -> MutationReport:
        return await self.run(arguments, operation=MutationKind.EXPOSE)

    async def new_app(self, arguments: RequestInput) -> MutationReport:
        return await self.run(arguments, operation=MutationKind.NEW_APP)

    async def run(
        self,
        arguments: RequestInput,
        *,
        operation: MutationKind | str = MutationKind.DELETE,
    ) -> MutationReport:
        """Drive *arguments* through every pipeline state and return the report."""
        kind = arguments.operation if isinstance(arguments, MutationRequest) else MutationKind(operation)
        run = _Run(kind, clock=self.clock, logger=self.logger)

        run.enter(PipelineState.VALIDATING)
        try:
            request = (
                check_request(arguments)
                if isinstance(arguments, MutationRequest)
                else validate_request(arguments, operation=kind)
            )
        except OcguardValidationError as error:
            run.progress.error(f"Validation failed: {error}")
            return run.finish(
                ReportOutcome.FAILURE,
                str(error),
                error=classification_for(VALIDATION_CATEGORY),
                error_detail=str(error),
            )
        run.progress.info(f"Validated {kind.value} request")

        blocked = self._safety_check(run, request)
        if blocked is not None:
            return blocked

        discovery = await self._discover(run, request)
        if not run.refs and request.is_selector_based and not discovery.failed:
            run.enter(PipelineState.NO_RESOURCES_FOUND)
            run.progress.info("No resources matched the request")
            return run.finish(ReportOutcome.NO_RESOURCES, "No resources found matching the request")

        if request.flags.dry_run:
            return self._dry_run(run, request, discovery)

        pending = self._check_resources(run, request)
        if pending is not None:
            return pending

        try:
            spec = build_command(request, port_hint=discovery.port_hint)
        except UnsafeManifestURLError as error:
            run.progress.error(str(error))
            return run.finish(
                ReportOutcome.FAILURE,
                str(error),
                error=classification_for(VALIDATION_CATEGORY, request=request),
                error_detail=str(error),
            )
        return await self._execute(run, request, spec)

    def _safety_check(self, run: _Run, request: MutationRequest) -> MutationReport | None:
        run.enter(PipelineState.SAFETY_CHECKING)
        classifier = self.classifier or RiskClassifier()
        assessment = classifier.assess_request(request)
        run.risk = assessment
        for warning in assessment.warnings:
            run.progress.warning(warning)

        overridden = request.flags.confirm or request.flags.force
        if assessment.is_safe:
            run.progress.success("Safety check passed")
            return None
        if overridden:
            run.progress.warning(f"Proceeding with {assessment.risk_level.value} operation as confirmed")
            return None
        if not assessment.blocks_before_discovery:
            run.progress.warning("Bulk operation detected; resolving targets before asking for confirmation")
            return None

        for reason in assessment.reasons:
            run.progress.error(reason)
        message = (
            "Operation blocked by safety checks: "
            + "; ".join(assessment.reasons)
            + ". Resubmit with confirm=true to proceed."
        )
        return run.finish(ReportOutcome.SAFETY_BLOCK, message)

    async def _discover(self, run: _Run, request: MutationRequest) -> Discovery:
        run.enter(PipelineState.DISCOVERING)
        discoverer = self.discoverer
        if discoverer is None:
            return Discovery()
        discovery = await discoverer.discover(request)
        run.refs = list(discovery.refs)

        for warning in discovery.warnings:
            run.progress.warning(warning)
        if discovery.failed:
            run.progress.warning(f"Resource discovery failed, proceeding without it: {discovery.error}")
        elif discovery.placeholder:
            run.progress.info(f"Target resolved at execution time: {_list_refs(discovery.refs)}")
        elif discovery.refs:
            run.progress.info(f"Found {len(discovery.refs)} resource(s): {_list_refs(discovery.refs)}")
        return discovery

    def _dry_run(self, run: _Run, request: MutationRequest, discovery: Discovery) -> MutationReport:
        run.enter(PipelineState.DRY_RUN_REPORTING)
        try:
            spec = build_command(request, port_hint=discovery.port_hint)
        except UnsafeManifestURLError as error:
            run.progress.error(str(error))
            return run.finish(
                ReportOutcome.FAILURE,
                str(error),
                error=classification_for(VALIDATION_CATEGORY, request=request),
                error_detail=str(error),
            )
        run.command = redact_command(spec.args)
        run.progress.info(f"Dry run: would run {' '.join(run.command)}")
        count = len(run.refs)
        message = f"Dry run: {count} resource(s) would be affected; no changes were made"
        return run.finish(ReportOutcome.DRY_RUN, message)

    def _check_resources(self, run: _Run, request: MutationRequest) -> MutationReport | None:
        classifier = self.classifier or RiskClassifier()
        if run.refs:
            run.risk = classifier.assess_resources(request, run.refs, baseline=run.risk)
        assessment = run.risk
        if assessment is None or assessment.is_safe:
            return None
        if request.flags.confirm or request.flags.force:
            return None

        run.enter(PipelineState.CONFIRMATION_PENDING)
        for reason in assessment.reasons:
            run.progress.warning(reason)
        listed = _list_refs(run.refs) if run.refs else "none resolved"
        message = (
            f"Confirmation required before modifying {len(run.refs)} resource(s): {listed}. "
            "Resubmit with confirm=true to proceed."
        )
        return run.finish(ReportOutcome.CONFIRMATION_REQUIRED, message)

    async def _execute(self, run: _Run, request: MutationRequest, spec: CommandSpec) -> MutationReport:
        run.enter(PipelineState.EXECUTING)
        run.command = redact_command(spec.args)
        timeout = self._command_timeout(request)
        run.progress.info(f"Executing: {' '.join(run.command)}")
        try:
            result = await self.executor.execute(spec.args, timeout=timeout, stdin=spec.stdin)
        except CommandExecutionError as error:
            run.progress.error(f"Command could not be executed: {error}")
            return run.finish(
                ReportOutcome.FAILURE,
                f"{request.operation.value} could not be executed",
                error=classify_error(str(error), request=request),
                error_detail=mask_secrets(str(error)),
            )

        run.enter(PipelineState.PARSING_RESULTS)
        records = parse_records(result.stdout)
        if not result.success:
            detail = mask_secrets(result.error)
            classification = classify_error(result.error, request=request)
            run.progress.error(f"{classification.category}: {detail}")
            return run.finish(
                ReportOutcome.FAILURE,
                f"{request.operation.value} failed: {classification.category}",
                records=records,
                error=classification,
                error_detail=detail,
            )
        run.progress.success(f"Command succeeded with {len(records)} resource record(s)")

        if request.flags.wait and self.waiter is not None:
            run.enter(PipelineState.WAITING)
            await self.waiter.wait_for(request, records, run.progress, refs=run.refs)

        unverified: list[ExecutionRecord] = []
        if self.verifier is not None:
            run.enter(PipelineState.POST_VERIFYING)
            unverified = await self.verifier.verify(request, records, run.progress, refs=run.refs)

        message = f"{request.operation.value} succeeded for {len(records)} resource(s)"
        return run.finish(
            ReportOutcome.SUCCESS,
            message,
            records=records,
            unverified=unverified,
        )

    def _command_timeout(self, request: MutationRequest) -> float:
        timeout = self.settings.command_timeout_seconds
        if request.flags.timeout:
            return timeout + timeout_to_seconds(request.flags.timeout)
        if request.flags.wait:
            return timeout + self.settings.wait_timeout_seconds
        return timeout


__all__ = ["MutationOrchestrator", "RequestInput"]
