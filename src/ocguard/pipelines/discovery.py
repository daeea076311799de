"""Resolve a mutation request into the concrete resources it will touch."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ocguard.core.errors import CommandExecutionError
from ocguard.core.models import AddressingMode, MutationKind, MutationRequest, ResourceRef
from ocguard.tools.queries import ClusterObject, ClusterQueries
from ocguard.tools.results import display_kind

MANIFEST_PLACEHOLDER_KIND = "Manifest"
APPLICATION_PLACEHOLDER_KIND = "Application"


@dataclass(frozen=True)
class Discovery:
    """Outcome of a discovery pass.

    ``placeholder`` marks refs that stand in for targets the control plane
    only resolves at execution time. ``error`` is set when the read-only
    query itself failed; it is advisory and never aborts the pipeline.
    """

    refs: tuple[ResourceRef, ...] = ()
    objects: tuple[ClusterObject, ...] = ()
    placeholder: bool = False
    error: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def port_hint(self) -> str | None:
        """Return the first port advertised by the discovered objects."""
        for obj in self.objects:
            port = obj.first_port()
            if port is not None:
                return port
        return None


class ResourceDiscoverer:
    """Issue read-only queries mirroring the selector semantics of a mutation."""

    def __init__(self, queries: ClusterQueries, *, logger: logging.Logger | None = None) -> None:
        self._queries = queries
        self._logger = logger or logging.getLogger(__name__)

    async def discover(self, request: MutationRequest) -> Discovery:
        """Return the :class:`Discovery` for *request*."""
        try:
            if request.operation is MutationKind.DELETE:
                if request.is_selector_based:
                    return await self._list_targets(request)
                return self._manifest_placeholder(request)
            if request.operation is MutationKind.EXPOSE:
                return await self._expose_source(request)
            if request.operation is MutationKind.APPLY:
                placeholder = self._manifest_placeholder(request)
            else:
                placeholder = self._application_placeholder(request)
            warnings = await self._probe_namespace(request)
            return Discovery(refs=placeholder.refs, placeholder=True, warnings=warnings)
        except CommandExecutionError as error:
            self._logger.warning("Discovery could not run", exc_info=error)
            return Discovery(error=str(error))

    async def _list_targets(self, request: MutationRequest) -> Discovery:
        resource_type = request.resource_type or ""
        query = await self._queries.get(
            resource_type,
            name=request.name,
            namespace=request.namespace,
            all_namespaces=request.all_namespaces,
            label_selector=request.label_selector,
            field_selector=request.field_selector,
            context=request.context,
        )
        if query.not_found:
            return Discovery()
        if not query.success:
            self._logger.info("Discovery query failed", extra={"resource_type": resource_type})
            return Discovery(error=query.error)
        document = query.document
        if document is None:
            return Discovery(error="Discovery returned output that is not a JSON object")

        default_kind = display_kind(resource_type)
        objects = tuple(document.items()) if document.is_list else (document,)
        refs = tuple(document.refs(default_kind))
        return Discovery(refs=refs, objects=objects)

    async def _expose_source(self, request: MutationRequest) -> Discovery:
        resource_type = request.resource_type or "service"
        query = await self._queries.get(
            resource_type,
            name=request.name,
            namespace=request.namespace,
            context=request.context,
        )
        if query.not_found:
            return Discovery()
        if not query.success:
            return Discovery(error=query.error)
        document = query.document
        if document is None:
            return Discovery(error="Discovery returned output that is not a JSON object")
        return Discovery(refs=tuple(document.refs(display_kind(resource_type))), objects=(document,))

    @staticmethod
    def _manifest_placeholder(request: MutationRequest) -> Discovery:
        mode = request.addressing
        if mode is AddressingMode.FILENAME and request.filename is not None:
            name = request.filename
        elif mode is AddressingMode.URL and request.url is not None:
            name = request.url
        else:
            name = "inline"
        ref = ResourceRef(kind=MANIFEST_PLACEHOLDER_KIND, name=name, namespace=request.namespace)
        return Discovery(refs=(ref,), placeholder=True)

    @staticmethod
    def _application_placeholder(request: MutationRequest) -> Discovery:
        app_name = request.app.app_name if request.app is not None else "application"
        ref = ResourceRef(kind=APPLICATION_PLACEHOLDER_KIND, name=app_name, namespace=request.namespace)
        return Discovery(refs=(ref,), placeholder=True)

    async def _probe_namespace(self, request: MutationRequest) -> tuple[str, ...]:
        namespace = request.namespace
        if namespace is None:
            return ()
        query = await self._queries.get("namespace", name=namespace, context=request.context)
        if query.success:
            return ()
        if query.not_found:
            return (f"Namespace '{namespace}' does not exist; the command is likely to fail",)
        return (f"Could not check namespace '{namespace}': {query.error}",)


__all__ = [
    "APPLICATION_PLACEHOLDER_KIND",
    "MANIFEST_PLACEHOLDER_KIND",
    "Discovery",
    "ResourceDiscoverer",
]
