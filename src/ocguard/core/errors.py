"""Domain-specific exception hierarchy for ocguard."""

from __future__ import annotations


class OcguardError(Exception):
    """Base class for all domain-specific errors raised by ocguard."""


class OcguardValidationError(OcguardError, ValueError):
    """Raised when inputs, configuration, or payloads fail validation rules."""


class RequestValidationError(OcguardValidationError):
    """Raised when raw call arguments cannot be normalised into a mutation request."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class UnsafeManifestURLError(OcguardValidationError):
    """Raised when a manifest URL fails the remote source security gate."""


class ReportValidationError(OcguardValidationError):
    """Raised when a mutation report cannot be serialised or fails its schema."""


class CommandExecutionError(OcguardError):
    """Raised when the command executor is misconfigured or given an unusable command."""


class ExposureError(OcguardError):
    """Base class for errors surfaced through CLI or MCP exposures."""


class ExposureConfigurationError(ExposureError, OcguardValidationError):
    """Raised when an exposure receives invalid configuration or options."""


class ExposureStateError(ExposureError):
    """Raised when an exposure is invoked while it is in an invalid state."""


__all__ = [
    "CommandExecutionError",
    "ExposureConfigurationError",
    "ExposureError",
    "ExposureStateError",
    "OcguardError",
    "OcguardValidationError",
    "ReportValidationError",
    "RequestValidationError",
    "UnsafeManifestURLError",
]
