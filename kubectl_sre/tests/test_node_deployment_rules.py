from kubectl_sre.extractor import parse_deployment, parse_node
from kubectl_sre.model import IssueCategory, Severity
from kubectl_sre.tests import k8s_factories as k8s

# ----------------------------
# Nodes
# ----------------------------


def test_healthy_node(detector):
    assert detector.detect_node_issues(parse_node(k8s.node())) == []


def test_broken_node_has_four_issues(detector):
    raw = k8s.node(
        name="worker-3",
        ready=False,
        memory_pressure=True,
        disk_pressure=True,
        network_unavailable=True,
    )
    issues = detector.detect_node_issues(parse_node(raw))

    assert len(issues) == 4
    assert [i.id for i in issues] == [
        "node-not-ready-worker-3",
        "node-memory-pressure-worker-3",
        "node-disk-pressure-worker-3",
        "node-network-unavailable-worker-3",
    ]
    by_category = {}
    for issue in issues:
        by_category.setdefault(issue.category, []).append(issue.severity)
    assert by_category == {
        IssueCategory.NODE_UNREACHABLE: [Severity.CRITICAL],
        IssueCategory.NODE_PRESSURE: [Severity.WARNING, Severity.WARNING],
        IssueCategory.NETWORK: [Severity.CRITICAL],
    }
    assert all(i.namespace == "" and i.resource_type == "node" for i in issues)


def test_pid_pressure(detector):
    (issue,) = detector.detect_node_issues(parse_node(k8s.node(pid_pressure=True)))
    assert issue.message == "Node node-1 is under PID pressure"


def test_unknown_ready_status_is_not_ready(detector, fixture):
    nodes = fixture("nodes_aks.json")["items"]
    issues = detector.detect_node_issues(parse_node(nodes[2]))
    assert [i.category for i in issues] == [IssueCategory.NODE_UNREACHABLE]


# ----------------------------
# Deployments
# ----------------------------


def test_healthy_deployment(detector, fixture):
    d = parse_deployment(fixture("deployment_healthy.json"))
    assert detector.detect_deployment_issues(d) == []


def test_scaled_to_zero_is_not_an_issue(detector):
    d = parse_deployment(k8s.deployment(replicas=0, ready=0))
    assert detector.detect_deployment_issues(d) == []


def test_unavailable_replicas(detector):
    d = parse_deployment(k8s.deployment(ready=2, unavailable=1))
    (issue,) = detector.detect_deployment_issues(d)
    assert issue.category is IssueCategory.PENDING
    assert issue.severity is Severity.WARNING
    assert issue.message == "Deployment web has 1 unavailable replicas"


def test_deployment_down(detector):
    d = parse_deployment(
        k8s.deployment(
            ready=0,
            unavailable=3,
            conditions=[
                {
                    "type": "Available",
                    "status": "False",
                    "reason": "MinimumReplicasUnavailable",
                    "message": "Deployment does not have minimum availability.",
                },
                {
                    "type": "Progressing",
                    "status": "False",
                    "reason": "ProgressDeadlineExceeded",
                    "message": 'ReplicaSet "web-5d9" has timed out progressing.',
                },
            ],
        )
    )
    issues = detector.detect_deployment_issues(d)

    assert [(i.category, i.severity) for i in issues] == [
        (IssueCategory.PENDING, Severity.WARNING),
        (IssueCategory.CRASH, Severity.CRITICAL),
        (IssueCategory.PENDING, Severity.CRITICAL),
        (IssueCategory.PENDING, Severity.WARNING),
    ]
    assert issues[2].details == "MinimumReplicasUnavailable"
    assert issues[3].details == "ProgressDeadlineExceeded"
    assert issues[1].id == "deployment-no-ready-web"
