from kubectl_sre.model import IssueCategory, NodeStatus, ResourceType, Severity
from kubectl_sre.rules.base_rule import IssueRule


class NodeNotReadyRule(IssueRule):
    name = "NodeNotReady"
    category = IssueCategory.NODE_UNREACHABLE
    severity = Severity.CRITICAL
    resource_kind = "node"
    priority = 10

    def matches(self, status: NodeStatus) -> bool:
        return not status.ready

    def explain(self, status: NodeStatus):
        return [
            self.issue(
                ("node-not-ready", status.name),
                ResourceType.NODE,
                status.name,
                f"Node {status.name} is not ready",
                suggestions=["Check node connectivity", "Review kubelet logs"],
            )
        ]


class NodePressureRule(IssueRule):
    """
    One warning per active pressure condition (memory, disk, PID).
    """

    name = "NodePressure"
    category = IssueCategory.NODE_PRESSURE
    severity = Severity.WARNING
    resource_kind = "node"
    priority = 20

    # (flag attribute, id prefix, message fragment, suggestions)
    PRESSURES = (
        (
            "memory_pressure",
            "node-memory-pressure",
            "memory pressure",
            ["Evict non-critical pods", "Add more nodes"],
        ),
        (
            "disk_pressure",
            "node-disk-pressure",
            "disk pressure",
            ["Clean up unused images", "Increase disk space"],
        ),
        (
            "pid_pressure",
            "node-pid-pressure",
            "PID pressure",
            ["Check for runaway processes", "Restart problematic pods"],
        ),
    )

    def matches(self, status: NodeStatus) -> bool:
        return status.memory_pressure or status.disk_pressure or status.pid_pressure

    def explain(self, status: NodeStatus):
        return [
            self.issue(
                (prefix, status.name),
                ResourceType.NODE,
                status.name,
                f"Node {status.name} is under {label}",
                suggestions=suggestions,
            )
            for flag, prefix, label, suggestions in self.PRESSURES
            if getattr(status, flag)
        ]


class NodeNetworkUnavailableRule(IssueRule):
    name = "NodeNetworkUnavailable"
    category = IssueCategory.NETWORK
    severity = Severity.CRITICAL
    resource_kind = "node"
    priority = 30

    def matches(self, status: NodeStatus) -> bool:
        return not status.network_available

    def explain(self, status: NodeStatus):
        return [
            self.issue(
                ("node-network-unavailable", status.name),
                ResourceType.NODE,
                status.name,
                f"Node {status.name} has network unavailable",
                suggestions=[
                    "Check CNI plugin status",
                    "Review node network configuration",
                ],
            )
        ]
