from kubectl_sre.model import (
    IssueCategory,
    PodStatus,
    ResourceType,
    Severity,
)
from kubectl_sre.rules.base_rule import IssueRule

RESTART_THRESHOLD = 5

# Waiting-state reason -> (category, severity). Anything else is Pending/warning.
WAITING_REASONS = {
    "ImagePullBackOff": (IssueCategory.IMAGE_PULL, Severity.CRITICAL),
    "ErrImagePull": (IssueCategory.IMAGE_PULL, Severity.CRITICAL),
    "ImagePullError": (IssueCategory.IMAGE_PULL, Severity.CRITICAL),
    "CrashLoopBackOff": (IssueCategory.CRASH, Severity.CRITICAL),
    "CreateContainerError": (IssueCategory.CONFIGURATION, Severity.CRITICAL),
    "CreateContainerConfigError": (IssueCategory.CONFIGURATION, Severity.CRITICAL),
}


class PodFailedRule(IssueRule):
    """
    Pod.status.phase == "Failed": every container has terminated and at least
    one of them did not succeed.
    """

    name = "PodFailed"
    category = IssueCategory.CRASH
    severity = Severity.CRITICAL
    resource_kind = "pod"
    priority = 10

    def matches(self, status: PodStatus) -> bool:
        return status.phase == "Failed"

    def explain(self, status: PodStatus):
        return [
            self.issue(
                ("pod-failed", status.name),
                ResourceType.POD,
                status.name,
                f"Pod {status.name} is in Failed state",
                namespace=status.namespace,
                suggestions=[
                    "Check pod events for failure reason",
                    "Review container logs",
                ],
            )
        ]


class PodPendingRule(IssueRule):
    name = "PodPending"
    category = IssueCategory.PENDING
    severity = Severity.WARNING
    resource_kind = "pod"
    priority = 10

    def matches(self, status: PodStatus) -> bool:
        return status.phase == "Pending"

    def explain(self, status: PodStatus):
        return [
            self.issue(
                ("pod-pending", status.name),
                ResourceType.POD,
                status.name,
                f"Pod {status.name} is stuck in Pending state",
                namespace=status.namespace,
                suggestions=["Check node resources", "Verify scheduling constraints"],
            )
        ]


class ContainerWaitingRule(IssueRule):
    """
    One issue per container in the waiting state, classified by reason.

    Signals:
      - containerStatuses[].state.waiting.reason

    Unknown reasons (ContainerCreating, PodInitializing, ...) are reported as
    Pending warnings.
    """

    name = "ContainerWaiting"
    category = IssueCategory.PENDING
    resource_kind = "pod"
    priority = 20

    def matches(self, status: PodStatus) -> bool:
        return any(cs.state == "waiting" for cs in status.container_states)

    def explain(self, status: PodStatus):
        issues = []
        for cs in status.container_states:
            if cs.state != "waiting":
                continue
            category, severity = WAITING_REASONS.get(
                cs.reason, (IssueCategory.PENDING, Severity.WARNING)
            )
            issues.append(
                self.issue(
                    ("container-waiting", status.name, cs.name),
                    ResourceType.POD,
                    status.name,
                    f"Container {cs.name} is waiting: {cs.reason}",
                    namespace=status.namespace,
                    category=category,
                    severity=severity,
                    details=cs.message,
                )
            )
        return issues


class HighRestartCountRule(IssueRule):
    """
    Independent of the waiting-state rule: a crash-looping container that has
    also restarted often contributes both issues.
    """

    name = "HighRestartCount"
    category = IssueCategory.CRASH
    severity = Severity.WARNING
    resource_kind = "pod"
    priority = 30

    def matches(self, status: PodStatus) -> bool:
        return any(
            cs.restart_count >= RESTART_THRESHOLD for cs in status.container_states
        )

    def explain(self, status: PodStatus):
        return [
            self.issue(
                ("container-restarts", status.name, cs.name),
                ResourceType.POD,
                status.name,
                f"Container {cs.name} has restarted {cs.restart_count} times",
                namespace=status.namespace,
                suggestions=[
                    "Check container logs for crash reason",
                    "Review resource limits",
                ],
            )
            for cs in status.container_states
            if cs.restart_count >= RESTART_THRESHOLD
        ]


class OOMKilledRule(IssueRule):
    name = "OOMKilled"
    category = IssueCategory.RESOURCE_LIMIT
    severity = Severity.CRITICAL
    resource_kind = "pod"
    priority = 40

    @staticmethod
    def _oom_killed(status: PodStatus):
        return [
            cs
            for cs in status.container_states
            if cs.state == "terminated" and cs.reason == "OOMKilled"
        ]

    def matches(self, status: PodStatus) -> bool:
        return bool(self._oom_killed(status))

    def explain(self, status: PodStatus):
        return [
            self.issue(
                ("container-oom", status.name, cs.name),
                ResourceType.POD,
                status.name,
                f"Container {cs.name} was OOM killed",
                namespace=status.namespace,
                details=f"exit code {cs.exit_code}" if cs.exit_code else "",
                suggestions=["Increase memory limits", "Investigate memory usage"],
            )
            for cs in self._oom_killed(status)
        ]


class ProbeFailureRule(IssueRule):
    name = "ProbeFailure"
    category = IssueCategory.PROBE
    severity = Severity.WARNING
    resource_kind = "pod"
    priority = 50

    @staticmethod
    def _failing(status: PodStatus):
        return [
            c
            for c in status.conditions
            if c.type == "Ready" and c.status == "False" and "probe" in c.reason
        ]

    def matches(self, status: PodStatus) -> bool:
        return bool(self._failing(status))

    def explain(self, status: PodStatus):
        cond = self._failing(status)[0]
        return [
            self.issue(
                ("pod-probe-failed", status.name),
                ResourceType.POD,
                status.name,
                f"Pod {status.name} is failing probes: {cond.message}",
                namespace=status.namespace,
                suggestions=[
                    "Check probe configuration",
                    "Verify application is responding",
                ],
            )
        ]
