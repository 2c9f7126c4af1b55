from kubectl_sre.model import (
    Condition,
    DeploymentStatus,
    IssueCategory,
    ResourceType,
    Severity,
)
from kubectl_sre.rules.base_rule import IssueRule


def _condition(status: DeploymentStatus, cond_type: str) -> Condition | None:
    for c in status.conditions:
        if c.type == cond_type:
            return c
    return None


class UnavailableReplicasRule(IssueRule):
    name = "UnavailableReplicas"
    category = IssueCategory.PENDING
    severity = Severity.WARNING
    resource_kind = "deployment"
    priority = 10

    def matches(self, status: DeploymentStatus) -> bool:
        return status.unavailable_replicas > 0

    def explain(self, status: DeploymentStatus):
        return [
            self.issue(
                ("deployment-unavailable", status.name),
                ResourceType.DEPLOYMENT,
                status.name,
                f"Deployment {status.name} has "
                f"{status.unavailable_replicas} unavailable replicas",
                namespace=status.namespace,
                suggestions=["Check pod status", "Review recent events"],
            )
        ]


class NoReadyReplicasRule(IssueRule):
    """
    Desired replicas > 0 but none ready. A deployment scaled to zero is not
    an issue.
    """

    name = "NoReadyReplicas"
    category = IssueCategory.CRASH
    severity = Severity.CRITICAL
    resource_kind = "deployment"
    priority = 20

    def matches(self, status: DeploymentStatus) -> bool:
        return status.replicas > 0 and status.ready_replicas == 0

    def explain(self, status: DeploymentStatus):
        return [
            self.issue(
                ("deployment-no-ready", status.name),
                ResourceType.DEPLOYMENT,
                status.name,
                f"Deployment {status.name} has no ready replicas",
                namespace=status.namespace,
                suggestions=[
                    "Check pod status for errors",
                    "Review deployment events",
                ],
            )
        ]


class DeploymentNotAvailableRule(IssueRule):
    name = "DeploymentNotAvailable"
    category = IssueCategory.PENDING
    severity = Severity.CRITICAL
    resource_kind = "deployment"
    priority = 30

    def matches(self, status: DeploymentStatus) -> bool:
        cond = _condition(status, "Available")
        return cond is not None and cond.status == "False"

    def explain(self, status: DeploymentStatus):
        cond = _condition(status, "Available")
        return [
            self.issue(
                ("deployment-not-available", status.name),
                ResourceType.DEPLOYMENT,
                status.name,
                f"Deployment {status.name} is not available: {cond.message}",
                namespace=status.namespace,
                details=cond.reason,
            )
        ]


class DeploymentNotProgressingRule(IssueRule):
    name = "DeploymentNotProgressing"
    category = IssueCategory.PENDING
    severity = Severity.WARNING
    resource_kind = "deployment"
    priority = 40

    def matches(self, status: DeploymentStatus) -> bool:
        cond = _condition(status, "Progressing")
        return cond is not None and cond.status == "False"

    def explain(self, status: DeploymentStatus):
        cond = _condition(status, "Progressing")
        return [
            self.issue(
                ("deployment-not-progressing", status.name),
                ResourceType.DEPLOYMENT,
                status.name,
                f"Deployment {status.name} is not progressing: {cond.message}",
                namespace=status.namespace,
                details=cond.reason,
            )
        ]
