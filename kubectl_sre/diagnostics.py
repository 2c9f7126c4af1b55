import logging

from kubectl_sre.client import K8sClient, RunContext
from kubectl_sre.detector import IssueDetector
from kubectl_sre.errors import SREError, rewrap
from kubectl_sre.extractor import (
    ExtractResult,
    parse_deployment,
    parse_event,
    parse_list,
    parse_node,
    parse_pod,
    parse_time,
)
from kubectl_sre.model import (
    DiagnosticReport,
    EventInfo,
    Issue,
    IssueCategory,
    LogEntry,
    ResourceType,
    Scope,
    count_by_severity,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
DEFAULT_LOG_TAIL = 50

ERROR_MARKERS = ("error", "fatal", "panic", "exception")

KIND_ALIASES = {
    "po": ResourceType.POD,
    "pods": ResourceType.POD,
    "deploy": ResourceType.DEPLOYMENT,
    "deployments": ResourceType.DEPLOYMENT,
    "sts": ResourceType.STATEFULSET,
    "statefulsets": ResourceType.STATEFULSET,
    "ds": ResourceType.DAEMONSET,
    "daemonsets": ResourceType.DAEMONSET,
    "no": ResourceType.NODE,
    "nodes": ResourceType.NODE,
    "svc": ResourceType.SERVICE,
    "services": ResourceType.SERVICE,
    "pvcs": ResourceType.PVC,
    "persistentvolumeclaim": ResourceType.PVC,
    "persistentvolumeclaims": ResourceType.PVC,
}


def normalize_kind(resource_type: str) -> str:
    """Map kubectl short names and plurals to the canonical resource type."""
    kind = resource_type.strip().lower()
    alias = KIND_ALIASES.get(kind)
    return alias.value if alias else kind


# ----------------------------
# Log classification
# ----------------------------


def analyze_logs(output: str, pod_name: str) -> list[LogEntry]:
    """
    Classify raw log lines by keyword, case-insensitively.

    error/fatal/panic/exception -> error, warn -> warn, info -> info,
    anything else stays unclassified. Blank lines are dropped. A leading
    RFC 3339 timestamp (`kubectl logs --timestamps`) becomes the entry time.
    """
    entries = []
    for line in output.split("\n"):
        if not line:
            continue

        lowered = line.lower()
        level, is_error = "", False
        if any(marker in lowered for marker in ERROR_MARKERS):
            level, is_error = "error", True
        elif "warn" in lowered:
            level = "warn"
        elif "info" in lowered:
            level = "info"

        first = line.split(" ", 1)[0]
        timestamp = (parse_time(first) if "T" in first else None) or utcnow()
        entries.append(
            LogEntry(
                container=pod_name,
                message=line,
                level=level,
                is_error=is_error,
                timestamp=timestamp,
            )
        )
    return entries


def summarize(subject: str, issues: list[Issue], healthy: str) -> str:
    critical, warning = count_by_severity(issues)
    if critical > 0:
        return f"{subject} has {critical} critical issues and {warning} warnings"
    if warning > 0:
        return f"{subject} has {warning} warnings"
    return f"{subject} {healthy}"


# ----------------------------
# Diagnostics orchestrator
# ----------------------------


class DiagnosticsManager:
    """
    Scopes a request (cluster, namespace or one resource), fetches the raw
    JSON through the client, runs the detector and assembles a report.

    Multi-resource scans are best effort: a failing call is logged and
    contributes nothing. Fetching the single resource a report is about is
    not: that failure propagates.
    """

    def __init__(
        self,
        client: K8sClient,
        detector: IssueDetector | None = None,
        debug: bool = False,
        log_tail_lines: int = DEFAULT_LOG_TAIL,
    ):
        self.client = client
        self.detector = detector or IssueDetector()
        self.debug = debug
        self.log_tail_lines = log_tail_lines

    # ----------------------------
    # Scopes
    # ----------------------------

    def diagnose_cluster(self, ctx: RunContext) -> DiagnosticReport:
        report = DiagnosticReport(scope=Scope.CLUSTER)
        report.issues, report.skipped_items = self._cluster_issues(ctx)
        self._collect_events(ctx, report, warnings_only=True)
        report.summary = summarize("Cluster", report.issues, "appears healthy")
        self._warn_skipped(report)
        return report

    def diagnose_namespace(self, ctx: RunContext, namespace: str) -> DiagnosticReport:
        report = DiagnosticReport(scope=Scope.NAMESPACE, namespace=namespace)
        report.issues, report.skipped_items = self._namespace_issues(ctx, namespace)
        self._collect_events(ctx, report, namespace)
        report.summary = summarize(
            f"Namespace {namespace}", report.issues, "appears healthy"
        )
        self._warn_skipped(report)
        return report

    def diagnose_resource(
        self, ctx: RunContext, resource_type: str, name: str, namespace: str = ""
    ) -> DiagnosticReport:
        namespace = namespace or DEFAULT_NAMESPACE
        kind = normalize_kind(resource_type)
        report = DiagnosticReport(
            scope=Scope.RESOURCE,
            resource_type=kind,
            resource_name=name,
            namespace=namespace,
        )

        if kind == ResourceType.POD.value:
            self._diagnose_pod(ctx, name, namespace, report)
        elif kind == ResourceType.DEPLOYMENT.value:
            self._diagnose_deployment(ctx, name, namespace, report)
        elif kind == ResourceType.NODE.value:
            report.namespace = ""
            self._diagnose_node(ctx, name, report)
        else:
            self._diagnose_generic(ctx, kind, name, namespace, report)

        self._warn_skipped(report)
        return report

    # ----------------------------
    # Single resources
    # ----------------------------

    def _fetch(self, ctx: RunContext, kind: str, *args: str) -> bytes:
        try:
            return self.client.run_json(ctx, *args)
        except SREError as e:
            raise rewrap(e, f"failed to get {kind}") from e

    def _diagnose_pod(
        self, ctx: RunContext, name: str, namespace: str, report: DiagnosticReport
    ) -> None:
        data = self._fetch(ctx, "pod", "get", "pod", name, "-n", namespace)
        try:
            pod = parse_pod(data)
        except SREError as e:
            raise rewrap(e, "failed to parse pod status") from e

        report.issues = self.detector.detect_pod_issues(pod)
        self._collect_events(ctx, report, namespace, name)

        if any(i.category is IssueCategory.CRASH for i in report.issues):
            try:
                report.logs = self.get_logs_with_analysis(
                    ctx, name, namespace, self.log_tail_lines
                )
            except SREError as e:
                logger.warning("could not fetch logs for %s/%s: %s", namespace, name, e)

        if not report.issues:
            report.summary = (
                f"Pod {namespace}/{name} appears healthy (phase: {pod.phase})"
            )
        else:
            report.summary = (
                f"Pod {namespace}/{name} has {len(report.issues)} issues "
                f"(phase: {pod.phase})"
            )

    def _diagnose_deployment(
        self, ctx: RunContext, name: str, namespace: str, report: DiagnosticReport
    ) -> None:
        data = self._fetch(ctx, "deployment", "get", "deployment", name, "-n", namespace)
        try:
            deployment = parse_deployment(data)
        except SREError as e:
            raise rewrap(e, "failed to parse deployment status") from e

        own_issues = self.detector.detect_deployment_issues(deployment)
        report.issues = list(own_issues)
        self._collect_events(ctx, report, namespace, name)

        if deployment.unavailable_replicas > 0:
            selector = ",".join(
                f"{k}={v}" for k, v in sorted(deployment.selector.items())
            ) or f"app={name}"
            try:
                pods = self.client.run_json(
                    ctx, "get", "pods", "-n", namespace, "-l", selector
                )
                pod_issues, skipped = self._pod_issues_from_list(pods)
                report.issues.extend(pod_issues)
                report.skipped_items += skipped
            except SREError as e:
                logger.warning("could not list pods for deployment %s: %s", name, e)

        ready = f"{deployment.ready_replicas}/{deployment.replicas} replicas ready"
        if not own_issues:
            report.summary = f"Deployment {namespace}/{name} is healthy ({ready})"
        else:
            report.summary = (
                f"Deployment {namespace}/{name} has {len(own_issues)} issues ({ready})"
            )

    def _diagnose_node(self, ctx: RunContext, name: str, report: DiagnosticReport) -> None:
        data = self._fetch(ctx, "node", "get", "node", name)
        try:
            node = parse_node(data)
        except SREError as e:
            raise rewrap(e, "failed to parse node status") from e

        report.issues = self.detector.detect_node_issues(node)
        self._collect_events(ctx, report, "", name)

        if not report.issues:
            report.summary = f"Node {name} is healthy"
        else:
            report.summary = f"Node {name} has {len(report.issues)} issues"

    def _diagnose_generic(
        self,
        ctx: RunContext,
        resource_type: str,
        name: str,
        namespace: str,
        report: DiagnosticReport,
    ) -> None:
        try:
            text = self.client.run_with_namespace(
                ctx, namespace, "describe", resource_type, name
            )
        except SREError as e:
            raise rewrap(e, f"failed to describe {resource_type} {name}") from e

        report.issues = self.detector.detect_from_description(
            resource_type, name, namespace, text
        )
        self._collect_events(ctx, report, namespace, name)

        if not report.issues:
            report.summary = f"{resource_type} {name} appears healthy"
        else:
            report.summary = f"{resource_type} {name} has {len(report.issues)} issues"

    # ----------------------------
    # Issue collection
    # ----------------------------

    def detect_cluster_issues(self, ctx: RunContext) -> list[Issue]:
        return self._cluster_issues(ctx)[0]

    def detect_issues_in_namespace(self, ctx: RunContext, namespace: str) -> list[Issue]:
        return self._namespace_issues(ctx, namespace)[0]

    def _cluster_issues(self, ctx: RunContext) -> tuple[list[Issue], int]:
        issues: list[Issue] = []
        skipped = 0

        try:
            nodes = parse_list(self.client.run_json(ctx, "get", "nodes"), parse_node)
            for node in nodes.items:
                issues.extend(self.detector.detect_node_issues(node))
            skipped += nodes.skipped
        except SREError as e:
            logger.warning("node scan failed: %s", e)

        try:
            pod_issues, pod_skipped = self._pod_issues_from_list(
                self.client.run_json(ctx, "get", "pods", "-A")
            )
            issues.extend(pod_issues)
            skipped += pod_skipped
        except SREError as e:
            logger.warning("pod scan failed: %s", e)

        return issues, skipped

    def _namespace_issues(
        self, ctx: RunContext, namespace: str
    ) -> tuple[list[Issue], int]:
        try:
            pods = self.client.run_json(ctx, "get", "pods", "-n", namespace)
            issues, skipped = self._pod_issues_from_list(pods)
        except SREError as e:
            raise rewrap(e, "failed to get pods") from e

        try:
            deployments = parse_list(
                self.client.run_json(ctx, "get", "deployments", "-n", namespace),
                parse_deployment,
            )
            for deployment in deployments.items:
                issues.extend(self.detector.detect_deployment_issues(deployment))
            skipped += deployments.skipped
        except SREError as e:
            logger.warning("deployment scan in %s failed: %s", namespace, e)

        return issues, skipped

    def _pod_issues_from_list(self, data: bytes) -> tuple[list[Issue], int]:
        pods = parse_list(data, parse_pod)
        issues: list[Issue] = []
        for pod in pods.items:
            issues.extend(self.detector.detect_pod_issues(pod))
        return issues, pods.skipped

    # ----------------------------
    # Events and logs
    # ----------------------------

    def get_events(
        self, ctx: RunContext, namespace: str = "", resource_name: str = ""
    ) -> list[EventInfo]:
        result = self._fetch_events(ctx, namespace, resource_name)
        if result.skipped:
            logger.warning("%d events could not be decoded", result.skipped)
        return result.items

    def _fetch_events(
        self, ctx: RunContext, namespace: str, resource_name: str
    ) -> ExtractResult[EventInfo]:
        args = ["get", "events", "--sort-by=.lastTimestamp"]
        if namespace:
            args += ["-n", namespace]
        else:
            args.append("-A")
        if resource_name:
            args += ["--field-selector", f"involvedObject.name={resource_name}"]

        return parse_list(self.client.run_json(ctx, *args), parse_event)

    def _collect_events(
        self,
        ctx: RunContext,
        report: DiagnosticReport,
        namespace: str = "",
        resource_name: str = "",
        warnings_only: bool = False,
    ) -> None:
        try:
            result = self._fetch_events(ctx, namespace, resource_name)
        except SREError as e:
            logger.warning("could not fetch events: %s", e)
            return
        report.skipped_items += result.skipped
        report.events = [
            e for e in result.items if not warnings_only or e.type == "Warning"
        ]

    def get_logs_with_analysis(
        self,
        ctx: RunContext,
        pod_name: str,
        namespace: str,
        tail_lines: int = DEFAULT_LOG_TAIL,
        since: str = "",
    ) -> list[LogEntry]:
        args = ["logs", pod_name, "-n", namespace]
        if tail_lines > 0:
            args += ["--tail", str(tail_lines)]
        if since:
            args += ["--since", since]

        output = self.client.run(ctx, *args)
        return analyze_logs(output, pod_name)

    def analyze_logs(self, output: str, pod_name: str) -> list[LogEntry]:
        return analyze_logs(output, pod_name)

    def _warn_skipped(self, report: DiagnosticReport) -> None:
        if report.skipped_items:
            logger.warning(
                "%d list items could not be decoded and were skipped",
                report.skipped_items,
            )
