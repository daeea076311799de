"""Map raw control-plane failure text onto a fixed error taxonomy.

Rules are evaluated strictly in the order of :data:`CLASSIFICATION_RULES`;
the first rule with a matching keyword wins. Text such as
``forbidden: pods "x" not found`` is therefore a permission problem, not a
missing resource. Classification is advisory and never changes what the
pipeline does next.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .models import ErrorClassification, MutationKind, MutationRequest

type Predicate = Callable[[str], bool]

GENERAL_CATEGORY = "General Error"
VALIDATION_CATEGORY = "Validation Error"

_VERBS = {
    MutationKind.DELETE: "delete",
    MutationKind.APPLY: "create",
    MutationKind.EXPOSE: "create",
    MutationKind.NEW_APP: "create",
}


def _contains_any(*keywords: str) -> Predicate:
    lowered = tuple(keyword.lower() for keyword in keywords)

    def _predicate(text: str) -> bool:
        return any(keyword in text for keyword in lowered)

    return _predicate


@dataclass(frozen=True)
class ClassificationRule:
    """One entry of the ordered classification table."""

    category: str
    predicate: Predicate
    remediation: tuple[str, ...]


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        category="Permission Error",
        predicate=_contains_any(
            "forbidden",
            "unauthorized",
            "permission denied",
            "cannot delete",
            "cannot create",
            "cannot patch",
        ),
        remediation=(
            "Check RBAC permissions for {verb} operations",
            "Run: oc auth can-i {verb} {resource} -n {namespace}",
            "Confirm you are logged in to the expected cluster: oc whoami",
            "Ask a cluster administrator for the required role binding",
        ),
    ),
    ClassificationRule(
        category="Resource Not Found",
        predicate=_contains_any("not found", "notfound", "doesn't have a resource type"),
        remediation=(
            "Verify the resource name and type: oc get {resource} -n {namespace}",
            "Check that you are targeting the correct namespace",
            "The resource may already have been deleted",
        ),
    ),
    ClassificationRule(
        category="Connectivity Error",
        predicate=_contains_any(
            "connection refused",
            "unable to connect",
            "no such host",
            "network",
            "dial tcp",
            "tls handshake",
            "i/o timeout",
        ),
        remediation=(
            "Check cluster connectivity: oc cluster-info",
            "Verify the API server URL and your kubeconfig context",
            "Retry once the network or API server is reachable",
        ),
    ),
    ClassificationRule(
        category=VALIDATION_CATEGORY,
        predicate=_contains_any(
            "invalid",
            "validation",
            "schema",
            "unable to recognize",
            "unknown field",
            "error parsing",
        ),
        remediation=(
            "Validate the manifest: oc apply --dry-run=client -f <manifest>",
            "Check field names and value types against the resource schema: oc explain {resource}",
            "Ensure the apiVersion and kind are available on this cluster",
        ),
    ),
    ClassificationRule(
        category="Resource Quota/Limit Error",
        predicate=_contains_any("exceeded quota", "quota", "limitrange", "limit range"),
        remediation=(
            "Inspect namespace quotas: oc describe quota -n {namespace}",
            "Inspect limit ranges: oc describe limitrange -n {namespace}",
            "Reduce requested resources or ask for a quota increase",
        ),
    ),
    ClassificationRule(
        category="Resource Conflict",
        predicate=_contains_any("conflict", "already exists", "alreadyexists", "the object has been modified"),
        remediation=(
            "Fetch the latest version of the resource and retry",
            "Use a different name or delete the existing resource first",
            "Check whether another client is modifying the same resource",
        ),
    ),
    ClassificationRule(
        category="Finalizer Blocking Deletion",
        predicate=_contains_any("finalizer"),
        remediation=(
            "Inspect finalizers: oc get {resource} -n {namespace} -o jsonpath='{{.metadata.finalizers}}'",
            "Wait for the owning controller to clear the finalizers",
            "As a last resort, remove finalizers with oc patch after confirming it is safe",
        ),
    ),
    ClassificationRule(
        category="Timeout Error",
        predicate=_contains_any("timed out", "timeout", "deadline exceeded"),
        remediation=(
            "Increase the timeout and retry",
            "Check whether the operation completed: oc get {resource} -n {namespace}",
            "Review recent events: oc get events -n {namespace} --sort-by=.lastTimestamp",
        ),
    ),
    ClassificationRule(
        category="Dependency Error",
        predicate=_contains_any("dependency", "dependent", "owned by"),
        remediation=(
            "Identify dependent resources and remove or update them first",
            "Use cascade=foreground to delete dependents before the owner",
        ),
    ),
)

_GENERAL_REMEDIATION = (
    "Review the command output for details",
    "Check recent events: oc get events -n {namespace}",
    "Retry with dryRun=true to preview the operation",
)


def classify_error(text: str, *, request: MutationRequest | None = None) -> ErrorClassification:
    """Return the :class:`ErrorClassification` for raw failure *text*."""
    lowered = text.lower()
    placeholders = _placeholders(request)
    for rule in CLASSIFICATION_RULES:
        if rule.predicate(lowered):
            return ErrorClassification(
                category=rule.category,
                remediation_steps=tuple(step.format(**placeholders) for step in rule.remediation),
            )
    return ErrorClassification(
        category=GENERAL_CATEGORY,
        remediation_steps=tuple(step.format(**placeholders) for step in _GENERAL_REMEDIATION),
    )


def classification_for(category: str, *, request: MutationRequest | None = None) -> ErrorClassification:
    """Return the classification for a known *category* without keyword matching."""
    placeholders = _placeholders(request)
    remediation = _GENERAL_REMEDIATION
    for rule in CLASSIFICATION_RULES:
        if rule.category == category:
            remediation = rule.remediation
            break
    else:
        category = GENERAL_CATEGORY
    return ErrorClassification(
        category=category,
        remediation_steps=tuple(step.format(**placeholders) for step in remediation),
    )


def _placeholders(request: MutationRequest | None) -> dict[str, str]:
    if request is None:
        return {"verb": "the requested", "resource": "<resource>", "namespace": "<namespace>"}
    resource = request.resource_type or "<resource>"
    return {
        "verb": _VERBS[request.operation],
        "resource": resource,
        "namespace": request.namespace or "<namespace>",
    }


__all__ = [
    "CLASSIFICATION_RULES",
    "GENERAL_CATEGORY",
    "VALIDATION_CATEGORY",
    "ClassificationRule",
    "classification_for",
    "classify_error",
]
