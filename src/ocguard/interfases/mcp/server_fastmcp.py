"""FastMCP(stdio) exposure implementation for ocguard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Mapping

from fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ocguard.core.config import Settings
from ocguard.core.errors import ExposureConfigurationError, ExposureStateError
from ocguard.core.models import (
    BuildStrategy,
    CascadeStrategy,
    InsecurePolicy,
    MutationKind,
    MutationReport,
    RouteTermination,
    WildcardPolicy,
)
from ocguard.pipelines import MutationOrchestrator, MutationPipeline
from ocguard.tools.executor import OcCommandExecutor


class _ToolPayload(BaseModel):
    """Shared configuration for tool payloads: strict fields, camelCase aliases."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    namespace: str | None = None
    context: str | None = None
    dry_run: bool | None = None
    force: bool | None = None
    wait: bool | None = None
    timeout: str | None = None
    confirm: bool | None = None

    def to_arguments(self) -> dict[str, Any]:
        """Return the flat argument mapping understood by the validator."""
        return self.model_dump(exclude_none=True)


class DeletePayload(_ToolPayload):
    """Arguments for deleting resources by selector or manifest."""

    resource_type: str | None = None
    name: str | None = None
    label_selector: str | None = None
    field_selector: str | None = None
    manifest: str | None = None
    filename: str | None = None
    url: str | None = None
    all: bool | None = None
    all_namespaces: bool | None = None
    cascade: CascadeStrategy | None = None
    grace_period_seconds: int | None = None
    ignore_not_found: bool | None = None
    recursive: bool | None = None


class ApplyPayload(_ToolPayload):
    """Arguments for applying a manifest."""

    manifest: str | None = None
    filename: str | None = None
    url: str | None = None
    label_selector: str | None = None
    all: bool | None = None
    validate_manifest: bool | None = None
    prune: bool | None = None
    prune_allowlist: list[str] | None = None
    kustomize: bool | None = None
    server_side: bool | None = None
    field_manager: str | None = None
    overwrite: bool | None = None
    recursive: bool | None = None
    cascade: CascadeStrategy | None = None
    grace_period_seconds: int | None = None


class ExposePayload(_ToolPayload):
    """Arguments for exposing a service through a route."""

    name: str
    resource_type: str = "service"
    route_name: str | None = None
    termination: RouteTermination | None = None
    port: str | int | None = None
    hostname: str | None = None
    path: str | None = None
    wildcard_policy: WildcardPolicy | None = None
    insecure_policy: InsecurePolicy | None = None
    certificate: str | None = None
    key: str | None = None
    ca_certificate: str | None = None
    destination_ca_certificate: str | None = None
    labels: list[str] | None = None
    weight: int | None = None


class NewAppPayload(_ToolPayload):
    """Arguments for building and deploying an application from source."""

    git_repo: str
    app_name: str | None = None
    builder_image: str | None = None
    strategy: BuildStrategy | None = None
    source_secret: str | None = None
    context_dir: str | None = None
    env: list[str] | None = None
    labels: list[str] | None = None


@dataclass
class MCPRuntime:
    """Stateful helpers shared between FastMCP tool invocations."""

    pipeline: MutationPipeline

    @classmethod
    def from_settings(cls, settings: Settings) -> MCPRuntime:
        executor = OcCommandExecutor.from_settings(settings)
        orchestrator = MutationOrchestrator(executor=executor, settings=settings)
        return cls(pipeline=MutationPipeline(orchestrator=orchestrator))

    async def mutate(self, payload: _ToolPayload, operation: MutationKind) -> MutationReport:
        return await self.pipeline.run(payload.to_arguments(), operation=operation)


class MCPExposure:
    """FastMCP(stdio) exposure that publishes the guarded mutation tools."""

    def __init__(self) -> None:
        """Initialise the FastMCP server and register all tools."""
        self._mcp = FastMCP("ocguard")
        self._runtime: MCPRuntime | None = None

        @self._mcp.tool()
        async def oc_delete(request: DeletePayload) -> MutationReport:
            """Delete resources after safety checks and discovery."""
            runtime = self._require_runtime()
            return await runtime.mutate(request, MutationKind.DELETE)

        @self._mcp.tool()
        async def oc_apply(request: ApplyPayload) -> MutationReport:
            """Apply a manifest from inline YAML, a file, or a trusted HTTPS URL."""
            runtime = self._require_runtime()
            return await runtime.mutate(request, MutationKind.APPLY)

        @self._mcp.tool()
        async def oc_expose(request: ExposePayload) -> MutationReport:
            """Create a route exposing a service."""
            runtime = self._require_runtime()
            return await runtime.mutate(request, MutationKind.EXPOSE)

        @self._mcp.tool()
        async def oc_new_app(request: NewAppPayload) -> MutationReport:
            """Build and deploy an application from a Git repository."""
            runtime = self._require_runtime()
            return await runtime.mutate(request, MutationKind.NEW_APP)

        self._delete_tool = oc_delete
        self._apply_tool = oc_apply
        self._expose_tool = oc_expose
        self._new_app_tool = oc_new_app

    def attach(self, runtime: MCPRuntime | None) -> None:
        """Bind *runtime* for tool calls made outside :meth:`serve`."""
        self._runtime = runtime

    def serve(self, *, config: Mapping[str, Any] | None = None) -> None:
        """Start the FastMCP server and publish the ocguard tools."""
        settings = Settings.from_env()
        if config is not None:
            raw_settings = config.get("settings")
            if raw_settings is not None:
                if not isinstance(raw_settings, Mapping):
                    message = "settings must be a mapping of setting names to values"
                    raise ExposureConfigurationError(message)
                overrides = {str(key): value for key, value in cast("Mapping[Any, Any]", raw_settings).items()}
                settings = Settings.from_mapping({**settings.model_dump(), **overrides})

        self._runtime = MCPRuntime.from_settings(settings)
        try:
            strict_validation = True
            show_banner = True
            transport: Any | None = None
            transport_kwargs: dict[str, Any] = {}

            if config is not None:
                strict_validation = bool(config.get("strict_input_validation", True))
                show_banner = bool(config.get("show_banner", True))
                if "transport" in config:
                    transport = config.get("transport")
                raw_transport_kwargs = config.get("transport_kwargs")
                if isinstance(raw_transport_kwargs, Mapping):
                    transport_kwargs = dict(cast("Mapping[str, Any]", raw_transport_kwargs))

            self._mcp.strict_input_validation = strict_validation
            self._mcp.run(transport=transport, show_banner=show_banner, **transport_kwargs)
        finally:
            self._runtime = None

    def _require_runtime(self) -> MCPRuntime:
        runtime = self._runtime
        if runtime is None:
            message = "FastMCP runtime has not been initialised"
            raise ExposureStateError(message)
        return runtime


__all__ = [
    "ApplyPayload",
    "DeletePayload",
    "ExposePayload",
    "MCPExposure",
    "MCPRuntime",
    "NewAppPayload",
]
