"""Pydantic domain models for the ocguard mutation pipeline."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCHEMA_VERSION = "0.1.0"


class MutationKind(StrEnum):
    """State-changing operations routed through the pipeline."""

    DELETE = "delete"
    APPLY = "apply"
    EXPOSE = "expose"
    NEW_APP = "new-app"


class AddressingMode(StrEnum):
    """How a request identifies its targets."""

    SELECTOR = "selector"
    MANIFEST = "manifest"
    FILENAME = "filename"
    URL = "url"


class CascadeStrategy(StrEnum):
    """Ordering policy for removing dependent objects."""

    BACKGROUND = "background"
    FOREGROUND = "foreground"
    ORPHAN = "orphan"


class RouteTermination(StrEnum):
    """TLS termination types supported for routes."""

    EDGE = "edge"
    PASSTHROUGH = "passthrough"
    REENCRYPT = "reencrypt"


class WildcardPolicy(StrEnum):
    NONE = "None"
    SUBDOMAIN = "Subdomain"


class InsecurePolicy(StrEnum):
    NONE = "None"
    ALLOW = "Allow"
    REDIRECT = "Redirect"


class BuildStrategy(StrEnum):
    SOURCE = "source"
    DOCKER = "docker"


class RiskLevel(StrEnum):
    """Outcome of the safety rules, ordered from least to most severe."""

    SAFE = "safe"
    REQUIRES_CONFIRMATION = "requires-confirmation"
    UNSAFE = "unsafe"

    @property
    def rank(self) -> int:
        """Return the severity rank used when combining findings."""
        return _RISK_RANKS[self]


_RISK_RANKS = {
    RiskLevel.SAFE: 0,
    RiskLevel.REQUIRES_CONFIRMATION: 1,
    RiskLevel.UNSAFE: 2,
}


class RiskRule(StrEnum):
    """Identifiers for the individual safety rules."""

    BLANKET_OPERATION = "blanket-operation"
    CROSS_NAMESPACE_BULK = "cross-namespace-bulk"
    SYSTEM_NAMESPACE = "system-namespace"
    CRITICAL_KIND = "critical-kind"
    FORCE = "force"
    RESOURCE_COUNT = "resource-count"
    CRITICAL_RESOURCE = "critical-resource"


class RecordAction(StrEnum):
    """Actions reported by the control plane for an individual resource."""

    DELETED = "deleted"
    APPLIED = "applied"
    CREATED = "created"
    CONFIGURED = "configured"
    PATCHED = "patched"
    NOT_FOUND = "not-found"
    UNCHANGED = "unchanged"


class ProgressSeverity(StrEnum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class PipelineState(StrEnum):
    """States visited by the mutation orchestrator."""

    VALIDATING = "validating"
    SAFETY_CHECKING = "safety-checking"
    DISCOVERING = "discovering"
    DRY_RUN_REPORTING = "dry-run-reporting"
    CONFIRMATION_PENDING = "confirmation-pending"
    NO_RESOURCES_FOUND = "no-resources-found"
    EXECUTING = "executing"
    PARSING_RESULTS = "parsing-results"
    WAITING = "waiting"
    POST_VERIFYING = "post-verifying"
    REPORTING = "reporting"


class ReportOutcome(StrEnum):
    """Terminal outcome tags returned to callers."""

    SUCCESS = "success"
    FAILURE = "failure"
    SAFETY_BLOCK = "safety-block"
    CONFIRMATION_REQUIRED = "confirmation-required"
    DRY_RUN = "dry-run"
    NO_RESOURCES = "no-resources"


class ExecutionFlags(BaseModel):
    """Execution switches shared by every mutating operation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    force: bool = False
    dry_run: bool = False
    wait: bool = False
    cascade: CascadeStrategy | None = None
    grace_period_seconds: int | None = None
    timeout: str | None = None
    confirm: bool = False
    ignore_not_found: bool = False
    recursive: bool = False


class ApplyOptions(BaseModel):
    """Options that only apply to ``oc apply``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    validate_manifest: bool = True
    prune: bool = False
    prune_allowlist: tuple[str, ...] = ()
    kustomize: bool = False
    server_side: bool = False
    field_manager: str | None = None
    overwrite: bool = False


class RouteOptions(BaseModel):
    """Route parameters for exposing a service."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    route_name: str
    termination: RouteTermination = RouteTermination.EDGE
    port: str | None = None
    hostname: str | None = None
    path: str | None = None
    wildcard_policy: WildcardPolicy = WildcardPolicy.NONE
    insecure_policy: InsecurePolicy = InsecurePolicy.REDIRECT
    certificate: str | None = None
    key: str | None = None
    ca_certificate: str | None = None
    destination_ca_certificate: str | None = None
    labels: tuple[str, ...] = ()
    weight: int | None = Field(default=None, ge=0, le=256)


class AppOptions(BaseModel):
    """Source-to-image parameters for ``oc new-app``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    git_repo: str
    app_name: str
    builder_image: str | None = None
    strategy: BuildStrategy = BuildStrategy.SOURCE
    source_secret: str | None = None
    context_dir: str | None = None
    env: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()


class MutationRequest(BaseModel):
    """A validated, immutable description of one state-changing call."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    operation: MutationKind = MutationKind.DELETE
    resource_type: str | None = None
    name: str | None = None
    namespace: str | None = None
    label_selector: str | None = None
    field_selector: str | None = None
    manifest: str | None = None
    filename: str | None = None
    url: str | None = None
    all: bool = False
    all_namespaces: bool = False
    context: str | None = None
    flags: ExecutionFlags = Field(default_factory=ExecutionFlags)
    apply: ApplyOptions | None = None
    route: RouteOptions | None = None
    app: AppOptions | None = None

    @property
    def addressing(self) -> AddressingMode:
        """Return the addressing mode selected by the request."""
        if self.manifest is not None:
            return AddressingMode.MANIFEST
        if self.filename is not None:
            return AddressingMode.FILENAME
        if self.url is not None:
            return AddressingMode.URL
        return AddressingMode.SELECTOR

    @property
    def is_selector_based(self) -> bool:
        return self.addressing is AddressingMode.SELECTOR

    @property
    def has_selector(self) -> bool:
        """Return ``True`` when a label or field selector narrows the targets."""
        return bool(self.label_selector or self.field_selector)

    @property
    def creates_resources(self) -> bool:
        """Return ``True`` for operations that create rather than remove objects."""
        return self.operation is not MutationKind.DELETE


class ResourceRef(BaseModel):
    """A concrete resource resolved during discovery."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    namespace: str | None = None

    @property
    def display(self) -> str:
        qualified = f"{self.kind}/{self.name}"
        if self.namespace:
            return f"{qualified} (namespace: {self.namespace})"
        return qualified


class RiskFinding(BaseModel):
    """A single safety rule that fired for a request."""

    model_config = ConfigDict(frozen=True)

    rule: RiskRule
    level: RiskLevel
    message: str
    deferrable: bool = False


def _empty_findings() -> tuple[RiskFinding, ...]:
    return ()


class RiskAssessment(BaseModel):
    """Aggregated outcome of the safety rules."""

    model_config = ConfigDict(frozen=True)

    risk_level: RiskLevel = RiskLevel.SAFE
    reasons: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    findings: tuple[RiskFinding, ...] = Field(default_factory=_empty_findings)

    @classmethod
    def from_findings(cls, findings: tuple[RiskFinding, ...] | list[RiskFinding]) -> RiskAssessment:
        """Combine *findings* into an assessment using the most severe level."""
        ordered = tuple(findings)
        level = RiskLevel.SAFE
        for finding in ordered:
            if finding.level.rank > level.rank:
                level = finding.level
        reasons = tuple(f.message for f in ordered if f.level is not RiskLevel.SAFE)
        warnings = tuple(f.message for f in ordered if f.level is RiskLevel.SAFE)
        return cls(risk_level=level, reasons=reasons, warnings=warnings, findings=ordered)

    @property
    def is_safe(self) -> bool:
        return self.risk_level is RiskLevel.SAFE

    @property
    def blocks_before_discovery(self) -> bool:
        """Return ``True`` when an unsafe finding cannot wait for discovery."""
        return any(
            finding.level is RiskLevel.UNSAFE and not finding.deferrable
            for finding in self.findings
        )


class ExecutionRecord(BaseModel):
    """A per-resource action parsed from executor output."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    action: RecordAction


class ProgressEntry(BaseModel):
    """One timestamped line in the progress log."""

    model_config = ConfigDict(frozen=True)

    elapsed_seconds: float = Field(ge=0)
    severity: ProgressSeverity
    message: str

    @property
    def formatted(self) -> str:
        return f"[{self.elapsed_seconds:.1f}s] {self.severity.value}: {self.message}"


class ErrorClassification(BaseModel):
    """Category and remediation advice derived from failure text."""

    model_config = ConfigDict(frozen=True)

    category: str
    remediation_steps: tuple[str, ...] = ()


def _empty_states() -> list[PipelineState]:
    return []


def _empty_progress() -> list[ProgressEntry]:
    return []


def _empty_refs() -> list[ResourceRef]:
    return []


def _empty_records() -> list[ExecutionRecord]:
    return []


def _empty_command() -> list[str]:
    return []


class MutationReport(BaseModel):
    """Structured report produced by every terminal pipeline state."""

    schema_version: str = Field(default=DEFAULT_SCHEMA_VERSION)
    operation: MutationKind
    outcome: ReportOutcome
    message: str
    states: list[PipelineState] = Field(default_factory=_empty_states)
    progress: list[ProgressEntry] = Field(default_factory=_empty_progress)
    resources: list[ResourceRef] = Field(default_factory=_empty_refs)
    records: list[ExecutionRecord] = Field(default_factory=_empty_records)
    unverified: list[ExecutionRecord] = Field(default_factory=_empty_records)
    risk: RiskAssessment | None = None
    command: list[str] = Field(default_factory=_empty_command)
    error: ErrorClassification | None = None
    error_detail: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return ``False`` only when the invocation failed."""
        return self.outcome is not ReportOutcome.FAILURE


__all__ = [
    "DEFAULT_SCHEMA_VERSION",
    "AddressingMode",
    "AppOptions",
    "ApplyOptions",
    "BuildStrategy",
    "CascadeStrategy",
    "ErrorClassification",
    "ExecutionFlags",
    "ExecutionRecord",
    "InsecurePolicy",
    "MutationKind",
    "MutationReport",
    "MutationRequest",
    "PipelineState",
    "ProgressEntry",
    "ProgressSeverity",
    "RecordAction",
    "ReportOutcome",
    "ResourceRef",
    "RiskAssessment",
    "RiskFinding",
    "RiskLevel",
    "RiskRule",
    "RouteOptions",
    "RouteTermination",
    "WildcardPolicy",
]
