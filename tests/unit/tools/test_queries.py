"""Tests for read-only cluster queries."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence

from ocguard.tools.executor import CommandResult
from ocguard.tools.queries import ClusterObject, ClusterQueries, WaitCondition, is_transient_failure


class ScriptedExecutor:
    """Return queued results in order and remember every call."""

    def __init__(self, *results: CommandResult) -> None:
        self._results = list(results)
        self.calls: list[tuple[list[str], float]] = []

    async def execute(self, args: Sequence[str], *, timeout: float, stdin: str | None = None) -> CommandResult:
        del stdin
        self.calls.append((list(args), timeout))
        return self._results.pop(0)


def _ok(payload: object) -> CommandResult:
    return CommandResult(success=True, stdout=json.dumps(payload))


def test_cluster_object_accessors_tolerate_missing_fields() -> None:
    """Absent or mistyped fields come back as None."""
    obj = ClusterObject({"kind": "Service", "metadata": {"name": "web", "labels": "oops"}, "spec": {"ports": []}})

    assert obj.kind == "Service"
    assert obj.name == "web"
    assert obj.namespace is None
    assert obj.lookup("metadata", "labels", "app") is None
    assert obj.lookup("spec", "ports", 0) is None
    assert obj.first_port() is None
    assert ClusterObject.from_payload(["not", "a", "mapping"]) is None


def test_cluster_object_list_refs() -> None:
    """Collections flatten into references and skip unnamed items."""
    obj = ClusterObject(
        {
            "kind": "List",
            "items": [
                {"kind": "Pod", "metadata": {"name": "a", "namespace": "demo"}},
                {"metadata": {"name": "b", "namespace": "demo"}},
                {"kind": "Pod", "metadata": {}},
                "garbage",
            ],
        },
    )

    refs = obj.refs(default_kind="Pod")

    assert [(ref.kind, ref.name, ref.namespace) for ref in refs] == [("Pod", "a", "demo"), ("Pod", "b", "demo")]


def test_first_port_prefers_names() -> None:
    """Service ports use their name, container ports fall back to the number."""
    service = ClusterObject({"spec": {"ports": [{"name": "8080-tcp", "port": 8080}]}})
    deployment = ClusterObject(
        {"spec": {"template": {"spec": {"containers": [{"ports": [{"containerPort": 3000}]}]}}}},
    )

    assert service.first_port() == "8080-tcp"
    assert deployment.first_port() == "3000"


def test_get_builds_selector_arguments() -> None:
    """get mirrors the selector semantics of the mutation."""
    executor = ScriptedExecutor(_ok({"kind": "List", "items": []}))
    queries = ClusterQueries(executor=executor, timeout=7.0)

    result = asyncio.run(
        queries.get("pod", namespace="demo", label_selector="app=web", field_selector="status.phase=Running"),
    )

    assert result.success
    assert result.document is not None
    assert result.document.is_list
    assert executor.calls == [
        (["get", "pod", "-n", "demo", "-l", "app=web", "--field-selector", "status.phase=Running", "-o", "json"], 7.0),
    ]


def test_get_with_context_and_all_namespaces() -> None:
    """The context is passed through and all namespaces overrides -n."""
    executor = ScriptedExecutor(_ok({"items": []}))
    queries = ClusterQueries(executor=executor)

    asyncio.run(queries.get("pod", namespace="demo", all_namespaces=True, context="prod"))

    assert executor.calls[0][0] == ["--context", "prod", "get", "pod", "--all-namespaces", "-o", "json"]


def test_not_found_is_detected() -> None:
    """A NotFound error is distinguishable from other failures."""
    executor = ScriptedExecutor(
        CommandResult(success=False, stderr='Error from server (NotFound): pods "x" not found', exit_code=1),
    )

    result = asyncio.run(ClusterQueries(executor=executor).get("pod", name="x"))

    assert result.not_found
    assert result.document is None


def test_connectivity_failures_are_retried() -> None:
    """Transient connectivity errors are retried up to the attempt limit."""
    refused = CommandResult(success=False, stderr="dial tcp 10.0.0.1:6443: connect: connection refused", exit_code=1)
    executor = ScriptedExecutor(refused, _ok({"kind": "Pod", "metadata": {"name": "x"}}))
    queries = ClusterQueries(executor=executor, retry_wait=0.0, retry_wait_max=0.0)

    result = asyncio.run(queries.get("pod", name="x"))

    assert result.success
    assert len(executor.calls) == 2


def test_retries_stop_after_attempts() -> None:
    """The last transient failure is returned once attempts are exhausted."""
    refused = CommandResult(success=False, stderr="Unable to connect to the server", exit_code=1)
    executor = ScriptedExecutor(refused, refused)
    queries = ClusterQueries(executor=executor, attempts=2, retry_wait=0.0, retry_wait_max=0.0)

    result = asyncio.run(queries.get("pod", name="x"))

    assert not result.success
    assert result.error == "Unable to connect to the server"
    assert len(executor.calls) == 2


def test_permission_errors_are_not_retried() -> None:
    """Only connectivity failures are transient."""
    forbidden = CommandResult(success=False, stderr="Error from server (Forbidden): forbidden", exit_code=1)

    assert not is_transient_failure(forbidden)
    assert not is_transient_failure(CommandResult(success=False, timed_out=True, failure="Command timed out"))


def test_wait_uses_request_timeout() -> None:
    """The wait timeout is passed to the CLI and bounds the executor call."""
    executor = ScriptedExecutor(CommandResult(success=True))
    queries = ClusterQueries(executor=executor)

    asyncio.run(queries.wait("deployment/web", condition=WaitCondition.AVAILABLE, namespace="demo", timeout="2m"))

    args, timeout = executor.calls[0]
    assert args == ["wait", "deployment/web", "--for=condition=Available", "-n", "demo", "--timeout=2m"]
    assert timeout == 130.0


def test_wait_defaults_timeout() -> None:
    """Without a request timeout the default is rendered in seconds."""
    executor = ScriptedExecutor(CommandResult(success=True))
    queries = ClusterQueries(executor=executor)

    asyncio.run(queries.wait("pod/web", condition=WaitCondition.DELETE, default_timeout_seconds=45.0))

    assert executor.calls[0][0] == ["wait", "pod/web", "--for=delete", "--timeout=45s"]
