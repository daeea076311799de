"""Runtime settings for the mutation pipeline."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ExposureConfigurationError

DEFAULT_COMMAND_TIMEOUT_SECONDS = 30.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 60.0
DEFAULT_CONFIRMATION_THRESHOLD = 10
DEFAULT_VERIFY_LIMIT = 5

_ENVIRONMENT_FIELDS = {
    "OCGUARD_OC_BINARY": "oc_binary",
    "OCGUARD_ALLOWED_BINARIES": "allowed_binaries",
    "OCGUARD_CONTEXT": "context",
    "OCGUARD_COMMAND_TIMEOUT": "command_timeout_seconds",
    "OCGUARD_WAIT_TIMEOUT": "wait_timeout_seconds",
    "OCGUARD_QUERY_ATTEMPTS": "query_attempts",
}


class Settings(BaseModel):
    """Executor and pipeline configuration resolved from the environment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    oc_binary: str = "oc"
    allowed_binaries: frozenset[str] = frozenset({"oc", "kubectl"})
    context: str | None = None
    command_timeout_seconds: float = Field(default=DEFAULT_COMMAND_TIMEOUT_SECONDS, gt=0)
    wait_timeout_seconds: float = Field(default=DEFAULT_WAIT_TIMEOUT_SECONDS, gt=0)
    query_attempts: int = Field(default=3, ge=1, le=10)
    confirmation_threshold: int = Field(default=DEFAULT_CONFIRMATION_THRESHOLD, ge=1)
    verify_limit: int = Field(default=DEFAULT_VERIFY_LIMIT, ge=0)

    @field_validator("allowed_binaries", mode="before")
    @classmethod
    def _split_allowed_binaries(cls, value: object) -> object:
        if isinstance(value, str):
            return frozenset(item.strip() for item in value.split(",") if item.strip())
        return value

    @field_validator("allowed_binaries")
    @classmethod
    def _require_allowed_binaries(cls, value: frozenset[str]) -> frozenset[str]:
        if not value:
            error_message = "At least one allowed binary must be specified"
            raise ValueError(error_message)
        return value

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build settings from *env* (defaults to :data:`os.environ`)."""
        environment = os.environ if env is None else env
        values: dict[str, object] = {}
        for variable, field_name in _ENVIRONMENT_FIELDS.items():
            raw = environment.get(variable)
            if raw is None or not raw.strip():
                continue
            values[field_name] = raw.strip()
        return cls.from_mapping(values)

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> Settings:
        """Validate *values* and wrap pydantic errors in the exposure error type."""
        try:
            return cls.model_validate(dict(values))
        except ValidationError as error:
            fields = ", ".join(str(item["loc"][0]) for item in error.errors() if item["loc"])
            error_message = f"Invalid ocguard settings: {fields or error}"
            raise ExposureConfigurationError(error_message) from error

    def with_overrides(self, **overrides: object) -> Settings:
        """Return a copy with the non-``None`` *overrides* applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        merged = self.model_dump()
        merged.update(changes)
        return self.from_mapping(merged)


__all__ = [
    "DEFAULT_COMMAND_TIMEOUT_SECONDS",
    "DEFAULT_CONFIRMATION_THRESHOLD",
    "DEFAULT_VERIFY_LIMIT",
    "DEFAULT_WAIT_TIMEOUT_SECONDS",
    "Settings",
]
