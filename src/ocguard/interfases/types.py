"""Shared interface definitions for ocguard exposures."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping


class ExposureKind(StrEnum):
    """Entry points able to publish the guarded mutation pipeline."""

    CLI = "cli"
    MCP = "mcp"


class Exposure(Protocol):
    """An entry point that accepts mutation requests from its callers."""

    def serve(self, *, config: Mapping[str, Any] | None = None) -> None:
        """Run until the caller is done; ``config`` is exposure specific."""
        ...


__all__ = ["Exposure", "ExposureKind"]
