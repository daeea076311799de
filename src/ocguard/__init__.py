"""Core package for the ocguard project."""

from .core.models import (
    DEFAULT_SCHEMA_VERSION,
    MutationKind,
    MutationReport,
    MutationRequest,
    ReportOutcome,
    ResourceRef,
    RiskLevel,
)
from .pipelines.orchestrator import MutationOrchestrator

__all__ = [
    "DEFAULT_SCHEMA_VERSION",
    "MutationKind",
    "MutationOrchestrator",
    "MutationReport",
    "MutationRequest",
    "ReportOutcome",
    "ResourceRef",
    "RiskLevel",
]
