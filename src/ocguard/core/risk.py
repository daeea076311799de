"""Fixed safety rules evaluated before and after resource discovery."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass

from .config import DEFAULT_CONFIRMATION_THRESHOLD
from .models import (
    MutationKind,
    MutationRequest,
    ResourceRef,
    RiskAssessment,
    RiskFinding,
    RiskLevel,
    RiskRule,
)

CONFIRMATION_THRESHOLD = DEFAULT_CONFIRMATION_THRESHOLD

SYSTEM_NAMESPACES = frozenset(
    {
        "kube-system",
        "kube-public",
        "kube-node-lease",
        "openshift",
        "openshift-monitoring",
        "openshift-operators",
        "openshift-etcd",
        "openshift-apiserver",
    },
)

CRITICAL_KINDS = frozenset(
    {
        "namespace",
        "ns",
        "node",
        "no",
        "clusterrole",
        "clusterrolebinding",
        "customresourcedefinition",
        "crd",
        "persistentvolume",
        "pv",
    },
)


def normalise_kind(kind: str) -> str:
    """Return the lower-case kind without its API group suffix."""
    return kind.strip().lower().split(".", 1)[0]


@dataclass(frozen=True)
class RiskClassifier:
    """Evaluate the fixed safety rules for a mutation request."""

    confirmation_threshold: int = CONFIRMATION_THRESHOLD
    system_namespaces: Collection[str] = SYSTEM_NAMESPACES
    critical_kinds: Collection[str] = CRITICAL_KINDS

    def is_critical_kind(self, kind: str) -> bool:
        base = normalise_kind(kind)
        if base in self.critical_kinds:
            return True
        return base.endswith("s") and base[:-1] in self.critical_kinds

    def assess_request(self, request: MutationRequest) -> RiskAssessment:
        """Return the pre-discovery assessment derived from *request* alone."""
        findings: list[RiskFinding] = []
        if request.operation is MutationKind.DELETE:
            findings.extend(self._delete_findings(request))
        elif request.operation is MutationKind.APPLY:
            findings.extend(self._apply_findings(request))

        namespace = request.namespace
        if namespace is not None and namespace in self.system_namespaces:
            findings.append(
                RiskFinding(
                    rule=RiskRule.SYSTEM_NAMESPACE,
                    level=RiskLevel.UNSAFE,
                    message=(
                        f"Operating on system namespace '{namespace}' can break cluster functionality"
                    ),
                ),
            )
        return RiskAssessment.from_findings(findings)

    def assess_resources(
        self,
        request: MutationRequest,
        refs: Sequence[ResourceRef],
        *,
        baseline: RiskAssessment | None = None,
    ) -> RiskAssessment:
        """Re-derive the assessment once the concrete targets are known.

        Findings from *baseline* (or a fresh pre-discovery pass) are carried
        forward, so the result is never less severe than the request-only
        assessment. An empty *refs* sequence adds nothing.
        """
        prior = baseline if baseline is not None else self.assess_request(request)
        findings = list(prior.findings)

        if len(refs) > self.confirmation_threshold:
            findings.append(
                RiskFinding(
                    rule=RiskRule.RESOURCE_COUNT,
                    level=RiskLevel.REQUIRES_CONFIRMATION,
                    message=(
                        f"Operation affects {len(refs)} resources, more than the "
                        f"confirmation threshold of {self.confirmation_threshold}"
                    ),
                ),
            )

        critical = [ref for ref in refs if self.is_critical_kind(ref.kind)]
        if critical:
            listed = ", ".join(f"{ref.kind}/{ref.name}" for ref in critical)
            findings.append(
                RiskFinding(
                    rule=RiskRule.CRITICAL_RESOURCE,
                    level=RiskLevel.REQUIRES_CONFIRMATION,
                    message=f"Critical resources are affected: {listed}",
                ),
            )
        return RiskAssessment.from_findings(findings)

    def _delete_findings(self, request: MutationRequest) -> list[RiskFinding]:
        findings: list[RiskFinding] = []
        target = request.resource_type or "resources"

        if request.all and not request.has_selector:
            findings.append(
                RiskFinding(
                    rule=RiskRule.BLANKET_OPERATION,
                    level=RiskLevel.UNSAFE,
                    message=(
                        f"Blanket operation without selector: all {target} would be deleted. "
                        "Consider using labelSelector or fieldSelector to limit scope"
                    ),
                    deferrable=True,
                ),
            )

        if request.all_namespaces and (request.all or request.label_selector):
            findings.append(
                RiskFinding(
                    rule=RiskRule.CROSS_NAMESPACE_BULK,
                    level=RiskLevel.UNSAFE,
                    message=f"Cross-namespace bulk operation on {target} across all namespaces",
                ),
            )

        if request.resource_type is not None and self.is_critical_kind(request.resource_type):
            findings.append(
                RiskFinding(
                    rule=RiskRule.CRITICAL_KIND,
                    level=RiskLevel.UNSAFE,
                    message=(
                        f"Deleting critical resource type '{request.resource_type}' "
                        "can impact cluster functionality"
                    ),
                ),
            )

        if request.flags.force:
            findings.append(
                RiskFinding(
                    rule=RiskRule.FORCE,
                    level=RiskLevel.SAFE,
                    message="Force deletion bypasses finalizers and may cause data loss",
                ),
            )
        return findings

    def _apply_findings(self, request: MutationRequest) -> list[RiskFinding]:
        findings: list[RiskFinding] = []
        options = request.apply
        if options is not None and options.prune and request.all and not request.has_selector:
            findings.append(
                RiskFinding(
                    rule=RiskRule.BLANKET_OPERATION,
                    level=RiskLevel.UNSAFE,
                    message=(
                        "Blanket prune without selector: every resource in the namespace that is missing "
                        "from the manifest would be deleted. Consider using labelSelector to limit scope"
                    ),
                ),
            )
        if request.flags.force:
            findings.append(
                RiskFinding(
                    rule=RiskRule.FORCE,
                    level=RiskLevel.SAFE,
                    message="Force apply deletes and re-creates resources that cannot be updated in place",
                ),
            )
        return findings


__all__ = [
    "CONFIRMATION_THRESHOLD",
    "CRITICAL_KINDS",
    "SYSTEM_NAMESPACES",
    "RiskClassifier",
    "normalise_kind",
]
