from typing import Any, Literal

from kubectl_sre.model import (
    DEFAULT_SEVERITY,
    Issue,
    IssueCategory,
    Severity,
    issue_id,
)

ResourceKind = Literal["pod", "deployment", "node", "description"]


class IssueRule:
    """
    Base class for all detection rules.

    A rule looks at one normalized status record (PodStatus, DeploymentStatus,
    NodeStatus or ResourceDescription, selected by `resource_kind`) and turns
    it into zero or more issues. Rules are independent of each other: the
    detector runs every rule of a kind and concatenates what they return.
    """

    # ---- Metadata (mandatory) ----
    name: str = "BaseRule"
    category: IssueCategory = IssueCategory.PENDING
    severity: Severity | None = None  # None -> DEFAULT_SEVERITY[category]
    resource_kind: ResourceKind = "pod"
    priority: int = 100

    def matches(self, status: Any) -> bool:
        raise NotImplementedError

    def explain(self, status: Any) -> list[Issue]:
        """
        Must return a list of Issue values. Only called when matches() is True.
        """
        raise NotImplementedError

    # ----------------------------
    # Helpers for subclasses
    # ----------------------------

    def default_severity(self, category: IssueCategory | None = None) -> Severity:
        if category is None or category is self.category:
            if self.severity is not None:
                return self.severity
            category = self.category
        return DEFAULT_SEVERITY[category]

    def issue(
        self,
        id_parts: tuple[str, ...],
        resource_type: str,
        resource_name: str,
        message: str,
        namespace: str = "",
        category: IssueCategory | None = None,
        severity: Severity | None = None,
        details: str = "",
        suggestions: list[str] | None = None,
    ) -> Issue:
        category = category or self.category
        return Issue(
            id=issue_id(*id_parts),
            severity=severity or self.default_severity(category),
            category=category,
            resource_type=getattr(resource_type, "value", resource_type),
            resource_name=resource_name,
            namespace=namespace,
            message=message,
            details=details,
            suggestions=list(suggestions or []),
        )
