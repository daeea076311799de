"""Command executor contract and the ``oc`` subprocess implementation."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import subprocess
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, cast, runtime_checkable

from ocguard.core.config import Settings
from ocguard.core.errors import CommandExecutionError
from ocguard.core.safety import mask_secrets, redact_command

if TYPE_CHECKING:
    from subprocess import CompletedProcess

Runner = Callable[..., "CompletedProcess[str]"]

MAX_OUTPUT_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one executor call, captured as data rather than raised."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = 0
    timed_out: bool = False
    failure: str | None = None

    @property
    def output(self) -> str:
        return self.stdout.strip()

    @property
    def error(self) -> str:
        """Return the human-readable failure text (empty for successful calls)."""
        if self.success:
            return ""
        if self.failure:
            return self.failure
        if self.stderr.strip():
            return self.stderr.strip()
        return f"Command failed with exit code {self.exit_code}"

    def json(self) -> Any | None:
        """Return stdout parsed as JSON, or ``None`` when it is not JSON."""
        text = self.stdout.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None


@runtime_checkable
class CommandExecutor(Protocol):
    """Run one control-plane command with a bounded execution time."""

    async def execute(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        stdin: str | None = None,
    ) -> CommandResult:
        """Execute *args* and return the captured result."""
        ...


class OcCommandExecutor:
    """Executor that shells out to an allowlisted cluster CLI binary."""

    def __init__(
        self,
        binary: str = "oc",
        *,
        allowed_binaries: Collection[str] = ("oc", "kubectl"),
        runner: Runner | None = None,
        context: str | None = None,
        env: Mapping[str, str] | None = None,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
        logger: logging.Logger | None = None,
    ) -> None:
        """Validate *binary* against the allowlist and capture the runtime options."""
        if not binary:
            error_message = "OcCommandExecutor requires a binary name"
            raise CommandExecutionError(error_message)
        if not allowed_binaries:
            error_message = "OcCommandExecutor requires at least one allowed binary"
            raise CommandExecutionError(error_message)
        if binary not in allowed_binaries and Path(binary).name not in allowed_binaries:
            error_message = f"Executable is not present in the allowlist: {binary}"
            raise CommandExecutionError(error_message)

        self._binary = binary
        self._runner: Runner = runner or subprocess.run
        self._context = context
        self._env = os.environ.copy()
        if env:
            self._env.update(env)
        self._max_output_bytes = max_output_bytes
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        runner: Runner | None = None,
        logger: logging.Logger | None = None,
    ) -> OcCommandExecutor:
        """Create an executor configured from :class:`Settings`."""
        return cls(
            settings.oc_binary,
            allowed_binaries=settings.allowed_binaries,
            runner=runner,
            context=settings.context,
            logger=logger,
        )

    def build_argv(self, args: Sequence[str]) -> list[str]:
        """Return the full argument vector including binary and context flag."""
        if not args:
            error_message = "Cannot execute an empty command"
            raise CommandExecutionError(error_message)
        argv = [self._binary]
        if self._context and "--context" not in args:
            argv.extend(["--context", self._context])
        argv.extend(args)
        return argv

    async def execute(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        stdin: str | None = None,
    ) -> CommandResult:
        """Run *args* in a worker thread and return its :class:`CommandResult`."""
        argv = self.build_argv(args)
        self._logger.debug(
            "Executing cluster command",
            extra={"argv": redact_command(argv), "timeout_seconds": timeout},
        )
        return await asyncio.to_thread(self._run, argv, timeout, stdin)

    def _run(self, argv: list[str], timeout: float, stdin: str | None) -> CommandResult:
        try:
            completed = self._runner(
                argv,
                capture_output=True,
                check=False,
                env=self._env,
                input=stdin,
                text=True,
                timeout=timeout,
                shell=False,
            )
        except subprocess.TimeoutExpired:
            self._logger.warning(
                "Cluster command timed out",
                extra={"argv": redact_command(argv), "timeout_seconds": timeout},
            )
            return CommandResult(
                success=False,
                exit_code=None,
                timed_out=True,
                failure=f"Command timed out after {timeout:g}s",
            )
        except OSError as error:
            self._logger.warning("Cluster command could not be started", exc_info=error)
            return CommandResult(
                success=False,
                exit_code=None,
                failure=f"Failed to execute command: {error}",
            )

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        if len(stdout.encode("utf-8", errors="ignore")) > self._max_output_bytes:
            return CommandResult(
                success=False,
                stderr=stderr,
                exit_code=completed.returncode,
                failure="Output buffer exceeded maximum size",
            )

        success = completed.returncode == 0
        if not success:
            self._logger.info(
                "Cluster command failed",
                extra={
                    "argv": redact_command(argv),
                    "exit_code": completed.returncode,
                    "stderr": mask_secrets(stderr),
                },
            )
        return CommandResult(
            success=success,
            stdout=stdout,
            stderr=stderr,
            exit_code=completed.returncode,
        )


@dataclass(frozen=True)
class FixtureResponse:
    """A scripted reply for every command starting with ``args``."""

    args: tuple[str, ...]
    result: CommandResult


class FixtureCommandExecutor:
    """Executor that replays recorded responses instead of running a binary.

    Responses are matched by argument prefix, ignoring a leading
    ``--context`` pair, and the first match wins. Unmatched commands fail
    with a ``not found`` error so read-only probes behave like an empty
    cluster.
    """

    def __init__(self, responses: Sequence[FixtureResponse]) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, ...]] = []

    @classmethod
    def from_payload(cls, payload: object) -> FixtureCommandExecutor:
        """Build an executor from ``{"responses": [{"args": [...], ...}]}``."""
        if not isinstance(payload, Mapping):
            error_message = "Cluster fixture must be a JSON object"
            raise CommandExecutionError(error_message)
        raw_responses = cast("Mapping[str, Any]", payload).get("responses", [])
        if not isinstance(raw_responses, list):
            error_message = "Cluster fixture 'responses' must be a list"
            raise CommandExecutionError(error_message)

        responses: list[FixtureResponse] = []
        for entry in cast("list[Any]", raw_responses):
            if not isinstance(entry, Mapping):
                error_message = "Each cluster fixture response must be an object"
                raise CommandExecutionError(error_message)
            item = cast("Mapping[str, Any]", entry)
            args = item.get("args")
            if not isinstance(args, list) or not all(isinstance(arg, str) for arg in cast("list[Any]", args)):
                error_message = "Cluster fixture 'args' must be a list of strings"
                raise CommandExecutionError(error_message)
            exit_code = int(item.get("exit_code", 0))
            result = CommandResult(
                success=exit_code == 0,
                stdout=str(item.get("stdout", "")),
                stderr=str(item.get("stderr", "")),
                exit_code=exit_code,
            )
            responses.append(FixtureResponse(args=tuple(cast("list[str]", args)), result=result))
        return cls(responses)

    async def execute(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        stdin: str | None = None,
    ) -> CommandResult:
        """Return the first recorded response whose ``args`` prefix *args*."""
        del timeout, stdin
        command = tuple(args)
        self.calls.append(command)
        if command[:1] == ("--context",):
            command = command[2:]
        for response in self._responses:
            if command[: len(response.args)] == response.args:
                return response.result
        return CommandResult(
            success=False,
            stderr=f"Error from server (NotFound): no fixture recorded for '{' '.join(command)}': not found",
            exit_code=1,
        )


__all__ = [
    "MAX_OUTPUT_BYTES",
    "CommandExecutor",
    "CommandResult",
    "FixtureCommandExecutor",
    "FixtureResponse",
    "OcCommandExecutor",
    "Runner",
]
