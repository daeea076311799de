"""Pipeline implementations for ocguard mutations."""

from .convergence import ConvergenceWaiter, PostExecutionVerifier
from .discovery import Discovery, ResourceDiscoverer
from .orchestrator import MutationOrchestrator
from .report_output import MutationPipeline, ReportOutput, ReportOutputFormat

__all__ = [
    "ConvergenceWaiter",
    "Discovery",
    "MutationOrchestrator",
    "MutationPipeline",
    "PostExecutionVerifier",
    "ReportOutput",
    "ReportOutputFormat",
    "ResourceDiscoverer",
]
