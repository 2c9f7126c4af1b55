import pytest

from kubectl_sre.diagnostics import DiagnosticsManager, analyze_logs, summarize
from kubectl_sre.errors import CollaboratorError, ParseError
from kubectl_sre.model import IssueCategory, Scope
from kubectl_sre.tests import k8s_factories as k8s

EVENTS_ARGS = ("get", "events", "--sort-by=.lastTimestamp")

CRASH_LOGS = """\
2024-05-01T10:20:00.123456Z starting checkout service
2024-05-01T10:20:00.500000Z INFO connected to redis
2024-05-01T10:20:01.000000Z WARN slow response from payments
2024-05-01T10:20:01.100000Z panic: runtime error: invalid memory address

Traceback follows
"""


def resource_events(client, namespace, name, events=()):
    selector = ("--field-selector", f"involvedObject.name={name}")
    scope = ("-n", namespace) if namespace else ("-A",)
    client.add_json(*EVENTS_ARGS, *scope, *selector, output=k8s.items(*events))


# ----------------------------
# Resource scope
# ----------------------------


def test_healthy_deployment_end_to_end(client, ctx, detector, fixture):
    client.add_json(
        "get", "deployment", "checkout", "-n", "shop", output=fixture("deployment_healthy.json")
    )
    resource_events(client, "shop", "checkout")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(
        ctx, "deployment", "checkout", "shop"
    )

    assert report.scope is Scope.RESOURCE
    assert report.issues == []
    assert report.summary == "Deployment shop/checkout is healthy (3/3 replicas ready)"
    assert report.logs == []
    assert not any(call[:2] == ("get", "pods") for call in client.calls)


def test_degraded_deployment_includes_pod_issues(client, ctx, detector, fixture):
    client.add_json(
        "get",
        "deployment",
        "checkout",
        "-n",
        "shop",
        output=k8s.deployment("checkout", "shop", ready=2, unavailable=1),
    )
    client.add_json(
        "get", "pods", "-n", "shop", "-l", "app=checkout",
        output=k8s.items(fixture("pod_crashloop.json")),
    )
    resource_events(client, "shop", "checkout", [k8s.event(name="checkout", kind="Deployment")])

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(
        ctx, "deploy", "checkout", "shop"
    )

    assert len(report.issues) == 3
    assert report.issues[0].resource_type == "deployment"
    assert report.summary == "Deployment shop/checkout has 1 issues (2/3 replicas ready)"
    assert len(report.events) == 1


def test_crashing_pod_gets_classified_logs(client, ctx, detector, fixture):
    name = "checkout-6d4cf56db6-x2x9k"
    client.add_json("get", "pod", name, "-n", "shop", output=fixture("pod_crashloop.json"))
    resource_events(client, "shop", name, [k8s.event(name=name)])
    client.add("logs", name, "-n", "shop", "--tail", "50", output=CRASH_LOGS)

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", name, "shop")

    assert report.summary == f"Pod shop/{name} has 2 issues (phase: Running)"
    assert len(report.logs) == 5
    assert [e.level for e in report.logs] == ["", "info", "warn", "error", ""]
    assert [e.is_error for e in report.logs].count(True) == 1
    assert report.logs[0].timestamp.minute == 20
    assert report.logs[0].container == name


def test_healthy_pod_does_not_fetch_logs(client, ctx, detector):
    client.add_json("get", "pod", "web-1", "-n", "default", output=k8s.pod())
    resource_events(client, "default", "web-1")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", "web-1")

    assert report.namespace == "default"
    assert report.logs == []
    assert not any(call[0] == "logs" for call in client.calls)


def test_log_failure_does_not_fail_the_report(client, ctx, detector, fixture):
    name = "checkout-6d4cf56db6-x2x9k"
    client.add_json("get", "pod", name, "-n", "shop", output=fixture("pod_crashloop.json"))
    resource_events(client, "shop", name)
    client.fail("logs", name, "-n", "shop", "--tail", "50")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", name, "shop")
    assert len(report.issues) == 2
    assert report.logs == []


def test_missing_events_do_not_fail_the_report(client, ctx, detector):
    client.add_json("get", "pod", "web-1", "-n", "default", output=k8s.pod())

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", "web-1")
    assert report.events == []


def test_single_resource_fetch_failure_propagates(client, ctx, detector):
    client.fail_json("get", "pod", "gone", "-n", "default", stderr='pods "gone" not found')

    with pytest.raises(CollaboratorError, match="failed to get pod") as exc:
        DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", "gone")
    assert 'pods "gone" not found' in exc.value.stderr


def test_single_resource_parse_failure_propagates(client, ctx, detector):
    client.add_json("get", "pod", "web-1", "-n", "default", output="{truncated")

    with pytest.raises(ParseError, match="failed to parse pod status"):
        DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", "web-1")


def test_node_report(client, ctx, detector):
    client.add_json("get", "node", "n1", output=k8s.node("n1", disk_pressure=True))
    resource_events(client, "", "n1")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(
        ctx, "node", "n1", "ignored"
    )

    assert report.namespace == ""
    assert report.summary == "Node n1 has 1 issues"
    assert report.issues[0].category is IssueCategory.NODE_PRESSURE


def test_generic_resource_uses_describe(client, ctx, detector):
    client.add(
        "describe", "statefulset", "db", "-n", "data",
        output="Events:\n  Warning  FailedMount  kubelet  MountVolume.SetUp failed\n",
    )
    resource_events(client, "data", "db")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(
        ctx, "statefulset", "db", "data"
    )

    assert [i.category for i in report.issues] == [IssueCategory.STORAGE]
    assert report.summary == "statefulset db has 1 issues"


def test_scalar_conditions_do_not_break_a_node_report(client, ctx, detector):
    client.add_json(
        "get", "node", "n1", output={"metadata": {"name": "n1"}, "status": {"conditions": True}}
    )
    resource_events(client, "", "n1")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "node", "n1")

    assert report.resource_type == "node"
    assert report.summary.startswith("Node n1")


def test_kind_aliases_are_normalized(client, ctx, detector):
    client.add(
        "describe", "statefulset", "db", "-n", "data",
        output="Events:\n  Warning  BackOff  kubelet  CrashLoopBackOff\n",
    )
    resource_events(client, "data", "db")

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(
        ctx, "sts", "db", "data"
    )

    assert report.resource_type == "statefulset"
    assert [(i.category, i.resource_type) for i in report.issues] == [
        (IssueCategory.CRASH, "statefulset")
    ]


def test_undecodable_events_are_counted(client, ctx, detector):
    client.add_json("get", "pod", "web-1", "-n", "default", output=k8s.pod())
    resource_events(client, "default", "web-1", [k8s.event(), "garbage", 7])

    report = DiagnosticsManager(client, detector=detector).diagnose_resource(ctx, "pod", "web-1")

    assert len(report.events) == 1
    assert report.skipped_items == 2


# ----------------------------
# Cluster and namespace scope
# ----------------------------


def test_cluster_report(client, ctx, detector, fixture):
    client.add_json("get", "nodes", output=k8s.items(k8s.node("n1")))
    client.add_json("get", "pods", "-A", output=k8s.items(fixture("pod_crashloop.json"), 7))
    client.add_json(
        *EVENTS_ARGS,
        "-A",
        output=k8s.items(k8s.event(), k8s.event(reason="Pulled", type="Normal")),
    )

    report = DiagnosticsManager(client, detector=detector).diagnose_cluster(ctx)

    assert report.scope is Scope.CLUSTER
    assert report.summary == "Cluster has 1 critical issues and 1 warnings"
    assert [e.reason for e in report.events] == ["BackOff"]
    assert report.skipped_items == 1


def test_cluster_scan_is_best_effort(client, ctx, detector):
    client.fail_json("get", "nodes")
    client.add_json("get", "pods", "-A", output=k8s.items(k8s.pod()))
    client.fail_json(*EVENTS_ARGS, "-A")

    report = DiagnosticsManager(client, detector=detector).diagnose_cluster(ctx)

    assert report.issues == []
    assert report.events == []
    assert report.summary == "Cluster appears healthy"


def test_namespace_report(client, ctx, detector):
    client.add_json(
        "get", "pods", "-n", "shop",
        output=k8s.items(k8s.pod(namespace="shop", phase="Pending", ready=False, containers=[])),
    )
    client.add_json("get", "deployments", "-n", "shop", output=k8s.items())
    client.add_json(*EVENTS_ARGS, "-n", "shop", output=k8s.items())

    report = DiagnosticsManager(client, detector=detector).diagnose_namespace(ctx, "shop")

    assert report.scope is Scope.NAMESPACE
    assert report.namespace == "shop"
    assert report.summary == "Namespace shop has 1 warnings"


# ----------------------------
# Events and logs
# ----------------------------


def test_get_events_arguments(client, ctx, detector):
    client.add_json(*EVENTS_ARGS, "-A", output=k8s.items(k8s.event()))
    manager = DiagnosticsManager(client, detector=detector)

    assert len(manager.get_events(ctx)) == 1
    assert client.calls[-1] == (*EVENTS_ARGS, "-A", "-o", "json")


def test_get_logs_with_since(client, ctx, detector):
    client.add("logs", "web-1", "-n", "default", "--tail", "10", "--since", "1h", output="ok\n")
    manager = DiagnosticsManager(client, detector=detector)

    (entry,) = manager.get_logs_with_analysis(ctx, "web-1", "default", 10, "1h")
    assert entry.message == "ok"
    assert entry.is_error is False


def test_analyze_logs_keywords():
    entries = analyze_logs(
        "Fatal: cannot bind\nunhandled Exception in worker\nwarning: retrying\nall good\n",
        "web-1",
    )
    assert [(e.level, e.is_error) for e in entries] == [
        ("error", True),
        ("error", True),
        ("warn", False),
        ("", False),
    ]


def test_summarize():
    assert summarize("Cluster", [], "appears healthy") == "Cluster appears healthy"
