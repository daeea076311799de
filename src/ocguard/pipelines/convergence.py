"""Post-mutation convergence waits and bounded spot-check verification."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ocguard.core.config import DEFAULT_VERIFY_LIMIT, DEFAULT_WAIT_TIMEOUT_SECONDS
from ocguard.core.errors import CommandExecutionError
from ocguard.core.models import (
    ExecutionRecord,
    MutationRequest,
    ProgressSeverity,
    RecordAction,
    ResourceRef,
)
from ocguard.core.progress import ProgressLog
from ocguard.core.risk import normalise_kind
from ocguard.tools.queries import ClusterQueries, QueryResult, WaitCondition
from ocguard.tools.results import mutated_records

VERIFY_LIMIT = DEFAULT_VERIFY_LIMIT
READINESS_KINDS = frozenset({"deployment", "statefulset", "daemonset"})


@dataclass(frozen=True)
class ConvergenceNote:
    """A progress line produced while waiting for one record."""

    severity: ProgressSeverity
    message: str


def _qualified(record: ExecutionRecord) -> str:
    return f"{record.kind}/{record.name}"


def _namespace_for(
    record: ExecutionRecord,
    request: MutationRequest,
    refs: Sequence[ResourceRef],
) -> str | None:
    kind = normalise_kind(record.kind)
    for ref in refs:
        if ref.name == record.name and normalise_kind(ref.kind) == kind and ref.namespace:
            return ref.namespace
    return request.namespace


class ConvergenceWaiter:
    """Wait for each mutated resource to reach its expected terminal state."""

    def __init__(
        self,
        queries: ClusterQueries,
        *,
        default_timeout_seconds: float = DEFAULT_WAIT_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._queries = queries
        self._default_timeout_seconds = default_timeout_seconds
        self._logger = logger or logging.getLogger(__name__)

    async def wait_for(
        self,
        request: MutationRequest,
        records: Sequence[ExecutionRecord],
        progress: ProgressLog,
        *,
        refs: Sequence[ResourceRef] = (),
    ) -> None:
        """Run one wait per mutated record; failures only produce warnings."""
        targets = mutated_records(list(records))
        if not targets:
            progress.info("No mutated resources to wait for")
            return

        progress.info(f"Waiting for {len(targets)} resource(s) to converge")
        notes = await asyncio.gather(
            *(self._wait_one(request, record, refs) for record in targets),
        )
        for note in notes:
            progress.add(note.message, note.severity)

    async def _wait_one(
        self,
        request: MutationRequest,
        record: ExecutionRecord,
        refs: Sequence[ResourceRef],
    ) -> ConvergenceNote:
        if record.action is RecordAction.DELETED:
            condition = WaitCondition.DELETE
        elif normalise_kind(record.kind) in READINESS_KINDS:
            condition = WaitCondition.AVAILABLE
        else:
            return ConvergenceNote(
                ProgressSeverity.INFO,
                f"{_qualified(record)}: no readiness check available",
            )

        target = f"{record.kind.lower()}/{record.name}"
        try:
            result = await self._queries.wait(
                target,
                condition=condition,
                namespace=_namespace_for(record, request, refs),
                timeout=request.flags.timeout,
                default_timeout_seconds=self._default_timeout_seconds,
                context=request.context,
            )
        except CommandExecutionError as error:
            self._logger.warning("Wait could not run", exc_info=error)
            return ConvergenceNote(
                ProgressSeverity.WARNING,
                f"Wait for {_qualified(record)} could not run: {error}",
            )

        if result.success:
            outcome = "is deleted" if condition is WaitCondition.DELETE else "is available"
            return ConvergenceNote(ProgressSeverity.SUCCESS, f"{_qualified(record)} {outcome}")
        return ConvergenceNote(
            ProgressSeverity.WARNING,
            f"Wait for {_qualified(record)} did not complete: {result.error}",
        )


class PostExecutionVerifier:
    """Re-query at most ``limit`` mutated resources to confirm their state."""

    def __init__(
        self,
        queries: ClusterQueries,
        *,
        limit: int = VERIFY_LIMIT,
        logger: logging.Logger | None = None,
    ) -> None:
        self._queries = queries
        self._limit = limit
        self._logger = logger or logging.getLogger(__name__)

    @property
    def limit(self) -> int:
        return self._limit

    async def verify(
        self,
        request: MutationRequest,
        records: Sequence[ExecutionRecord],
        progress: ProgressLog,
        *,
        refs: Sequence[ResourceRef] = (),
    ) -> list[ExecutionRecord]:
        """Verify the first records and return those left unverified."""
        targets = mutated_records(list(records))
        checked = targets[: self._limit]
        unverified = targets[self._limit :]

        for record in checked:
            try:
                query = await self._queries.get(
                    record.kind.lower(),
                    name=record.name,
                    namespace=_namespace_for(record, request, refs),
                    context=request.context,
                )
            except CommandExecutionError as error:
                self._logger.warning("Verification could not run", exc_info=error)
                progress.warning(f"Could not verify {_qualified(record)}: {error}")
                continue
            self._report(record, query, progress)

        if unverified:
            progress.info(f"{len(unverified)} additional resources not individually verified")
        return unverified

    @staticmethod
    def _report(record: ExecutionRecord, query: QueryResult, progress: ProgressLog) -> None:
        name = _qualified(record)
        if record.action is RecordAction.DELETED:
            if query.not_found:
                progress.success(f"Verified {name} is deleted")
            elif query.success:
                progress.warning(f"{name} still exists (likely terminating)")
            else:
                progress.warning(f"Could not verify {name}: {query.error}")
            return

        if query.success:
            progress.success(f"Verified {name} exists")
        else:
            progress.warning(f"{name} could not be verified: {query.error}")


__all__ = [
    "READINESS_KINDS",
    "VERIFY_LIMIT",
    "ConvergenceNote",
    "ConvergenceWaiter",
    "PostExecutionVerifier",
]
