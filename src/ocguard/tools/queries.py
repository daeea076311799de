"""Read-only control-plane queries used by discovery, waiting and verification."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, cast

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from ocguard.core.diagnostics import classify_error
from ocguard.core.models import ResourceRef
from ocguard.core.validation import timeout_to_seconds

from .executor import CommandExecutor, CommandResult

CONNECTIVITY_CATEGORY = "Connectivity Error"
WAIT_SLACK_SECONDS = 10.0


class WaitCondition(StrEnum):
    """Conditions accepted by ``oc wait --for``."""

    DELETE = "delete"
    AVAILABLE = "condition=Available"


class ClusterObject:
    """An unstructured control-plane document with explicit optional accessors.

    Accessors never raise on missing or mistyped fields; they return ``None``
    (or an empty list) so callers must handle absence deliberately.
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self._document = dict(document)

    @classmethod
    def from_payload(cls, payload: object) -> ClusterObject | None:
        """Wrap *payload* when it is a JSON object, otherwise return ``None``."""
        if isinstance(payload, Mapping):
            return cls(cast("Mapping[str, Any]", payload))
        return None

    @property
    def document(self) -> dict[str, Any]:
        return dict(self._document)

    def lookup(self, *path: str | int) -> Any | None:
        """Return the value at *path* or ``None`` when any segment is absent."""
        current: Any = self._document
        for segment in path:
            if isinstance(segment, int):
                if not isinstance(current, list):
                    return None
                items = cast("list[Any]", current)
                if not -len(items) <= segment < len(items):
                    return None
                current = items[segment]
                continue
            if not isinstance(current, Mapping):
                return None
            current = cast("Mapping[str, Any]", current).get(segment)
            if current is None:
                return None
        return current

    def _string(self, *path: str | int) -> str | None:
        value = self.lookup(*path)
        return value if isinstance(value, str) and value else None

    @property
    def kind(self) -> str | None:
        return self._string("kind")

    @property
    def name(self) -> str | None:
        return self._string("metadata", "name")

    @property
    def namespace(self) -> str | None:
        return self._string("metadata", "namespace")

    @property
    def is_list(self) -> bool:
        return isinstance(self._document.get("items"), list)

    def items(self) -> list[ClusterObject]:
        """Return the wrapped ``items`` entries of a collection document."""
        raw_items = self._document.get("items")
        if not isinstance(raw_items, list):
            return []
        wrapped: list[ClusterObject] = []
        for item in cast("list[Any]", raw_items):
            candidate = ClusterObject.from_payload(item)
            if candidate is not None:
                wrapped.append(candidate)
        return wrapped

    def to_ref(self, default_kind: str | None = None) -> ResourceRef | None:
        """Return a :class:`ResourceRef` or ``None`` when the name is missing."""
        name = self.name
        kind = self.kind or default_kind
        if name is None or kind is None:
            return None
        return ResourceRef(kind=kind, name=name, namespace=self.namespace)

    def refs(self, default_kind: str | None = None) -> list[ResourceRef]:
        """Flatten a single object or a collection into resource references."""
        objects = self.items() if self.is_list else [self]
        refs: list[ResourceRef] = []
        for obj in objects:
            ref = obj.to_ref(default_kind)
            if ref is not None:
                refs.append(ref)
        return refs

    def first_port(self) -> str | None:
        """Return the first service or container port, preferring its name."""
        service_port = self.lookup("spec", "ports", 0)
        if isinstance(service_port, Mapping):
            return _port_label(cast("Mapping[str, Any]", service_port), "port")

        for containers_path in (("spec", "template", "spec", "containers"), ("spec", "containers")):
            container_port = self.lookup(*containers_path, 0, "ports", 0)
            if isinstance(container_port, Mapping):
                return _port_label(cast("Mapping[str, Any]", container_port), "containerPort")
        return None


def _port_label(port: Mapping[str, Any], number_key: str) -> str | None:
    name = port.get("name")
    if isinstance(name, str) and name:
        return name
    number = port.get(number_key)
    if isinstance(number, int) and not isinstance(number, bool):
        return str(number)
    return None


@dataclass(frozen=True)
class QueryResult:
    """Result of a ``get`` query together with its parsed document."""

    result: CommandResult
    document: ClusterObject | None = None

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def error(self) -> str:
        return self.result.error

    @property
    def not_found(self) -> bool:
        """Return ``True`` when the control plane reported the object as absent."""
        return not self.result.success and "not found" in self.result.error.lower()


class TransientQueryError(Exception):
    """Raised internally so tenacity can retry a connectivity failure."""

    def __init__(self, result: CommandResult) -> None:
        super().__init__(result.error)
        self.result = result


def is_transient_failure(result: CommandResult) -> bool:
    """Return ``True`` when *result* failed for a connectivity reason."""
    if result.success or result.timed_out:
        return False
    return classify_error(result.error).category == CONNECTIVITY_CATEGORY


def _context_args(context: str | None) -> list[str]:
    return ["--context", context] if context else []


@dataclass
class ClusterQueries:
    """Issue ``get`` and ``wait`` queries with retries for connectivity failures."""

    executor: CommandExecutor
    timeout: float = 30.0
    attempts: int = 3
    retry_wait: float = 0.5
    retry_wait_max: float = 4.0
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    async def get(
        self,
        resource_type: str,
        *,
        name: str | None = None,
        namespace: str | None = None,
        all_namespaces: bool = False,
        label_selector: str | None = None,
        field_selector: str | None = None,
        context: str | None = None,
    ) -> QueryResult:
        """Run ``get`` mirroring the selector semantics of a mutation."""
        args = _context_args(context) + ["get", resource_type]
        if name:
            args.append(name)
        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args.extend(["-n", namespace])
        if label_selector:
            args.extend(["-l", label_selector])
        if field_selector:
            args.extend(["--field-selector", field_selector])
        args.extend(["-o", "json"])

        result = await self._run_with_retry(args, self.timeout)
        document = ClusterObject.from_payload(result.json()) if result.success else None
        return QueryResult(result=result, document=document)

    async def wait(
        self,
        target: str,
        *,
        condition: WaitCondition,
        namespace: str | None = None,
        timeout: str | None = None,
        default_timeout_seconds: float = 60.0,
        context: str | None = None,
    ) -> CommandResult:
        """Block until *target* satisfies *condition* or the timeout elapses."""
        args = _context_args(context) + ["wait", target, f"--for={condition.value}"]
        if namespace:
            args.extend(["-n", namespace])
        wait_seconds = float(timeout_to_seconds(timeout)) if timeout else default_timeout_seconds
        args.append(f"--timeout={timeout or f'{int(wait_seconds)}s'}")
        return await self._run_with_retry(args, wait_seconds + WAIT_SLACK_SECONDS)

    async def _run_with_retry(self, args: list[str], timeout: float) -> CommandResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(
                initial=self.retry_wait,
                max=self.retry_wait_max,
                jitter=self.retry_wait,
            ),
            retry=retry_if_exception_type(TransientQueryError),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self.executor.execute(args, timeout=timeout)
                    if is_transient_failure(result):
                        self.logger.info(
                            "Transient query failure",
                            extra={
                                "query": args[:2],
                                "attempt": attempt.retry_state.attempt_number,
                            },
                        )
                        raise TransientQueryError(result)
                    return result
        except TransientQueryError as error:
            return error.result
        error_message = "Retry loop ended without a result"  # pragma: no cover
        raise RuntimeError(error_message)  # pragma: no cover


__all__ = [
    "ClusterObject",
    "ClusterQueries",
    "QueryResult",
    "TransientQueryError",
    "WaitCondition",
    "is_transient_failure",
]
