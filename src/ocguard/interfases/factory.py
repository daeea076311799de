"""Factories for creating exposure entry points."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from ocguard.core.errors import ExposureConfigurationError
from ocguard.interfases.cli.app import CLIExposure
from ocguard.interfases.mcp.server_fastmcp import MCPExposure
from ocguard.interfases.types import ExposureKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ocguard.interfases.types import Exposure

EXPOSE_ENVIRONMENT_VARIABLE = "OCGUARD_EXPOSE"


def parse_exposure_kind(value: ExposureKind | str) -> ExposureKind:
    """Return the :class:`ExposureKind` named by *value* (case-insensitive)."""
    try:
        return ExposureKind(str(value).strip().lower())
    except ValueError:
        message = f"unknown exposure kind: {value}"
        raise ExposureConfigurationError(message) from None


def make_exposure(kind: ExposureKind | str) -> Exposure:
    """Create an exposure implementation for *kind*."""
    if parse_exposure_kind(kind) is ExposureKind.MCP:
        return MCPExposure()
    return CLIExposure()


def resolve_exposure_from_environment(
    env: Mapping[str, str] | None = None,
    *,
    default: ExposureKind = ExposureKind.CLI,
) -> Exposure:
    """Resolve the exposure named by ``OCGUARD_EXPOSE``; unset or blank means *default*."""
    environment = os.environ if env is None else env
    requested = environment.get(EXPOSE_ENVIRONMENT_VARIABLE, "").strip()
    return make_exposure(requested or default)


__all__ = [
    "EXPOSE_ENVIRONMENT_VARIABLE",
    "make_exposure",
    "parse_exposure_kind",
    "resolve_exposure_from_environment",
]
