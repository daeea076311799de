"""Core domain modules for ocguard."""

from .config import Settings
from .diagnostics import CLASSIFICATION_RULES, classification_for, classify_error
from .errors import (
    CommandExecutionError,
    ExposureConfigurationError,
    ExposureError,
    ExposureStateError,
    OcguardError,
    OcguardValidationError,
    ReportValidationError,
    RequestValidationError,
    UnsafeManifestURLError,
)
from .models import (
    DEFAULT_SCHEMA_VERSION,
    ErrorClassification,
    ExecutionFlags,
    ExecutionRecord,
    MutationKind,
    MutationReport,
    MutationRequest,
    PipelineState,
    ProgressEntry,
    ProgressSeverity,
    RecordAction,
    ReportOutcome,
    ResourceRef,
    RiskAssessment,
    RiskLevel,
)
from .progress import ProgressLog, ProgressSummary
from .risk import RiskClassifier
from .schema import SchemaTarget, build_json_schema, build_report_json_schema, export_schema
from .validation import validate_request

__all__ = [
    "CLASSIFICATION_RULES",
    "DEFAULT_SCHEMA_VERSION",
    "CommandExecutionError",
    "ErrorClassification",
    "ExecutionFlags",
    "ExecutionRecord",
    "ExposureConfigurationError",
    "ExposureError",
    "ExposureStateError",
    "MutationKind",
    "MutationReport",
    "MutationRequest",
    "OcguardError",
    "OcguardValidationError",
    "PipelineState",
    "ProgressEntry",
    "ProgressLog",
    "ProgressSeverity",
    "ProgressSummary",
    "RecordAction",
    "ReportOutcome",
    "ReportValidationError",
    "RequestValidationError",
    "ResourceRef",
    "RiskAssessment",
    "RiskClassifier",
    "RiskLevel",
    "SchemaTarget",
    "Settings",
    "UnsafeManifestURLError",
    "build_json_schema",
    "build_report_json_schema",
    "classification_for",
    "classify_error",
    "export_schema",
    "validate_request",
]
