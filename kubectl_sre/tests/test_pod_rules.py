import pytest

from kubectl_sre.extractor import parse_pod
from kubectl_sre.model import IssueCategory, Severity
from kubectl_sre.tests import k8s_factories as k8s


def detect(detector, raw):
    return detector.detect_pod_issues(parse_pod(raw))


def test_healthy_running_pod_has_no_issues(detector):
    raw = k8s.pod(containers=[k8s.container(restarts=4)])
    assert detect(detector, raw) == []


def test_failed_pod_is_one_critical_crash(detector):
    raw = k8s.pod(
        phase="Failed",
        ready=False,
        containers=[k8s.container(state="terminated", reason="Error", exit_code=1)],
    )
    issues = detect(detector, raw)

    assert len(issues) == 1
    assert issues[0].id == "pod-failed-web-1"
    assert issues[0].category is IssueCategory.CRASH
    assert issues[0].severity is Severity.CRITICAL
    assert issues[0].namespace == "default"
    assert issues[0].resource_type == "pod"


def test_pending_pod(detector):
    raw = k8s.pod(phase="Pending", ready=False, containers=[])
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.PENDING
    assert issue.severity is Severity.WARNING
    assert issue.message == "Pod web-1 is stuck in Pending state"


@pytest.mark.parametrize("reason", ["ImagePullBackOff", "ErrImagePull", "ImagePullError"])
def test_image_pull_is_critical(detector, reason):
    raw = k8s.pod(
        ready=False,
        containers=[
            k8s.container(state="waiting", reason=reason, message='Back-off pulling image "nginx:nope"')
        ],
    )
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.IMAGE_PULL
    assert issue.severity is Severity.CRITICAL
    assert issue.id == "container-waiting-web-1-app"
    assert issue.details == 'Back-off pulling image "nginx:nope"'


@pytest.mark.parametrize("reason", ["CreateContainerError", "CreateContainerConfigError"])
def test_create_container_errors_are_configuration(detector, reason):
    raw = k8s.pod(ready=False, containers=[k8s.container(state="waiting", reason=reason)])
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.CONFIGURATION
    assert issue.severity is Severity.CRITICAL


def test_unknown_waiting_reason_is_pending_warning(detector):
    raw = k8s.pod(ready=False, containers=[k8s.container(state="waiting", reason="ContainerCreating")])
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.PENDING
    assert issue.severity is Severity.WARNING
    assert issue.message == "Container app is waiting: ContainerCreating"


def test_crashloop_with_restarts_contributes_two_issues(detector, fixture):
    issues = detect(detector, fixture("pod_crashloop.json"))

    assert len(issues) == 2
    assert all(i.category is IssueCategory.CRASH for i in issues)
    waiting, restarts = issues
    assert waiting.severity is Severity.CRITICAL
    assert waiting.message == "Container checkout is waiting: CrashLoopBackOff"
    assert restarts.severity is Severity.WARNING
    assert restarts.message == "Container checkout has restarted 10 times"


def test_restart_threshold(detector):
    four = k8s.pod(containers=[k8s.container(restarts=4)])
    five = k8s.pod(containers=[k8s.container(restarts=5)])
    assert detect(detector, four) == []
    (issue,) = detect(detector, five)
    assert issue.id == "container-restarts-web-1-app"


def test_oom_killed(detector):
    raw = k8s.pod(
        ready=False,
        containers=[k8s.container(state="terminated", reason="OOMKilled", exit_code=137)],
    )
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.RESOURCE_LIMIT
    assert issue.severity is Severity.CRITICAL
    assert issue.id == "container-oom-web-1-app"
    assert issue.details == "exit code 137"


def test_probe_failure(detector):
    raw = k8s.pod(
        conditions=[
            {
                "type": "Ready",
                "status": "False",
                "reason": "readiness probe failed",
                "message": "HTTP probe failed with statuscode: 503",
            }
        ]
    )
    (issue,) = detect(detector, raw)
    assert issue.category is IssueCategory.PROBE
    assert issue.severity is Severity.WARNING
    assert "statuscode: 503" in issue.message


def test_not_ready_without_probe_reason_is_not_a_probe_issue(detector):
    raw = k8s.pod(
        conditions=[{"type": "Ready", "status": "False", "reason": "ContainersNotReady"}]
    )
    assert detect(detector, raw) == []


def test_issue_ids_are_stable(detector, fixture):
    first = [i.id for i in detect(detector, fixture("pod_crashloop.json"))]
    second = [i.id for i in detect(detector, fixture("pod_crashloop.json"))]
    assert first == second


def test_empty_pod_record_produces_no_issues(detector):
    assert detector.detect_pod_issues(parse_pod({})) == []
