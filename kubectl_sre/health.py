import logging
from dataclasses import dataclass, fields
from typing import Any

from kubectl_sre.client import K8sClient, RunContext
from kubectl_sre.detector import IssueDetector
from kubectl_sre.diagnostics import DiagnosticsManager
from kubectl_sre.errors import ConfigError, SREError
from kubectl_sre.extractor import (
    parse_list,
    parse_node,
    parse_pod,
    parse_pvc,
    parse_service,
)
from kubectl_sre.model import (
    ClusterHealthSummary,
    ComponentHealth,
    HealthCheckResult,
    HealthStatus,
    Issue,
    IssueCategory,
    Severity,
    count_by_severity,
)

logger = logging.getLogger(__name__)

# ----------------------------
# Scoring constants
# ----------------------------


@dataclass(frozen=True)
class ScoringConfig:
    """
    Weights and penalties of the health score. All are tuning constants
    without a derivation; keep them overridable from the settings file.
    """

    node_weight: float = 0.30
    workload_weight: float = 0.40
    storage_weight: float = 0.15
    network_weight: float = 0.15

    node_critical_penalty: int = 20
    node_warning_penalty: int = 5
    workload_critical_penalty: int = 10
    workload_warning_penalty: int = 3
    storage_pending_penalty: int = 10
    network_pending_lb_penalty: int = 5
    overall_critical_penalty: float = 5
    overall_warning_penalty: float = 1

    critical_threshold: int = 50
    degraded_threshold: int = 80
    workload_critical_issue_limit: int = 5

    namespace_critical_penalty: int = 25
    namespace_warning_penalty: int = 10
    namespace_info_penalty: int = 2
    resource_critical_penalty: int = 30
    resource_warning_penalty: int = 15
    resource_info_penalty: int = 5

    # score used for storage/network when their data cannot be collected
    unavailable_score: int = 50

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ScoringConfig":
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("scoring must be a mapping")

        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigError(f"scoring has unknown keys: {sorted(unknown)}")

        values = {}
        for key, value in data.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"scoring.{key} must be a number")
            values[key] = float(value) if known[key].type in (float, "float") else int(value)
        return cls(**values)


DEFAULT_SCORING = ScoringConfig()

# ----------------------------
# Pure scoring functions
# ----------------------------


def clamp_score(score: float) -> int:
    # absorb float noise from the weighted sum before truncating
    return max(0, min(100, int(round(score, 9))))


def component_status(score: int, config: ScoringConfig = DEFAULT_SCORING) -> HealthStatus:
    if score < config.critical_threshold:
        return HealthStatus.CRITICAL
    if score < config.degraded_threshold:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def score_nodes(
    ready: int,
    total: int,
    critical: int,
    warning: int,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    score = (ready * 100) // total if total > 0 else 100
    score -= critical * config.node_critical_penalty
    score -= warning * config.node_warning_penalty
    return clamp_score(score)


def score_workloads(
    running: int,
    total: int,
    critical: int,
    warning: int,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    score = int(running / total * 100) if total > 0 else 100
    score -= critical * config.workload_critical_penalty
    score -= warning * config.workload_warning_penalty
    return clamp_score(score)


def workload_status(
    score: int, critical: int, config: ScoringConfig = DEFAULT_SCORING
) -> HealthStatus:
    if score < config.critical_threshold or critical > config.workload_critical_issue_limit:
        return HealthStatus.CRITICAL
    if score < config.degraded_threshold or critical > 0:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def pending_status(
    score: int, pending: int, config: ScoringConfig = DEFAULT_SCORING
) -> HealthStatus:
    """
    Storage and network are at least degraded while anything is pending.
    """
    status = component_status(score, config)
    if pending > 0 and status is HealthStatus.HEALTHY:
        return HealthStatus.DEGRADED
    return status


def score_storage(
    bound: int, total: int, pending: int, config: ScoringConfig = DEFAULT_SCORING
) -> int:
    score = (bound * 100) // total if total > 0 else 100
    score -= pending * config.storage_pending_penalty
    return clamp_score(score)


def score_network(
    healthy: int, total: int, pending_lbs: int, config: ScoringConfig = DEFAULT_SCORING
) -> int:
    score = (healthy * 100) // total if total > 0 else 100
    score -= pending_lbs * config.network_pending_lb_penalty
    return clamp_score(score)


def overall_score(
    node: int,
    workload: int,
    storage: int,
    network: int,
    critical: int,
    warning: int,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    score = (
        node * config.node_weight
        + workload * config.workload_weight
        + storage * config.storage_weight
        + network * config.network_weight
    )
    score -= critical * config.overall_critical_penalty
    score -= warning * config.overall_warning_penalty
    return clamp_score(score)


def overall_status(
    score: int, critical: int, warning: int, config: ScoringConfig = DEFAULT_SCORING
) -> HealthStatus:
    if critical > 0:
        return HealthStatus.CRITICAL
    if warning > 0 or score < config.degraded_threshold:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def penalized_score(issues: list[Issue], critical: int, warning: int, info: int) -> int:
    score = 100
    for issue in issues:
        if issue.severity is Severity.CRITICAL:
            score -= critical
        elif issue.severity is Severity.WARNING:
            score -= warning
        elif issue.severity is Severity.INFO:
            score -= info
    return clamp_score(score)


CATEGORY_SUGGESTIONS: dict[IssueCategory, tuple[str, ...]] = {
    IssueCategory.CRASH: (
        "Review pod logs for crash details",
        "Check resource limits and requests",
    ),
    IssueCategory.IMAGE_PULL: (
        "Verify image name and tag are correct",
        "Check image pull secrets",
    ),
    IssueCategory.RESOURCE_LIMIT: (
        "Consider increasing resource limits",
        "Review application memory usage",
    ),
    IssueCategory.PENDING: (
        "Check cluster capacity",
        "Review pod scheduling constraints",
    ),
    IssueCategory.NODE_PRESSURE: (
        "Consider adding more nodes",
        "Review workload distribution",
    ),
    IssueCategory.STORAGE: (
        "Check PVC status and storage class",
        "Verify storage provisioner is working",
    ),
}


def suggestions_from_issues(issues: list[Issue]) -> list[str]:
    """
    Issue suggestions plus category-level advice, deduplicated, first-seen order.
    """
    seen: dict[str, None] = {}
    for issue in issues:
        for s in issue.suggestions:
            seen.setdefault(s, None)
        for s in CATEGORY_SUGGESTIONS.get(issue.category, ()):
            seen.setdefault(s, None)
    return list(seen)


# ----------------------------
# Health checker
# ----------------------------


class HealthChecker:
    def __init__(
        self,
        client: K8sClient,
        detector: IssueDetector | None = None,
        diagnostics: DiagnosticsManager | None = None,
        config: ScoringConfig | None = None,
        debug: bool = False,
    ):
        self.client = client
        self.detector = detector or IssueDetector()
        self.diagnostics = diagnostics or DiagnosticsManager(
            client, detector=self.detector, debug=debug
        )
        self.config = config or DEFAULT_SCORING
        self.debug = debug

    def check_cluster(self, ctx: RunContext) -> ClusterHealthSummary:
        """
        Score nodes, workloads, storage and network and combine them.

        Node and workload data are required; storage and network fall back
        to a neutral score when they cannot be collected.
        """
        cfg = self.config
        summary = ClusterHealthSummary()

        try:
            summary.node_health, node_issues, skipped_nodes = self._check_nodes(ctx)
        except SREError as e:
            raise SREError(f"failed to check nodes: {e}") from e

        try:
            summary.workload_health, workload_issues, counts, skipped_pods = (
                self._check_workloads(ctx)
            )
        except SREError as e:
            raise SREError(f"failed to check workloads: {e}") from e
        (
            summary.total_pods,
            summary.running_pods,
            summary.pending_pods,
            summary.failed_pods,
        ) = counts

        summary.storage_health, skipped_pvcs = self._optional_component(
            ctx, "storage", self._check_storage
        )
        summary.network_health, skipped_services = self._optional_component(
            ctx, "network", self._check_network
        )

        summary.issues = node_issues + workload_issues
        summary.skipped_items = (
            skipped_nodes + skipped_pods + skipped_pvcs + skipped_services
        )
        summary.critical_issues, summary.warning_issues = count_by_severity(summary.issues)

        summary.score = overall_score(
            summary.node_health.score,
            summary.workload_health.score,
            summary.storage_health.score,
            summary.network_health.score,
            summary.critical_issues,
            summary.warning_issues,
            cfg,
        )
        summary.overall_health = overall_status(
            summary.score, summary.critical_issues, summary.warning_issues, cfg
        )

        if summary.skipped_items:
            logger.warning("%d cluster items could not be decoded", summary.skipped_items)
        return summary

    def check_namespace(self, ctx: RunContext, namespace: str) -> HealthCheckResult:
        cfg = self.config
        issues = self.diagnostics.detect_issues_in_namespace(ctx, namespace)
        critical, warning = count_by_severity(issues)

        result = HealthCheckResult(
            healthy=critical == 0,
            score=penalized_score(
                issues,
                cfg.namespace_critical_penalty,
                cfg.namespace_warning_penalty,
                cfg.namespace_info_penalty,
            ),
            issues=issues,
            suggestions=suggestions_from_issues(issues),
        )
        if not issues:
            result.summary = f"Namespace {namespace} is healthy"
        else:
            result.summary = (
                f"Namespace {namespace} has {len(issues)} issues "
                f"({critical} critical, {warning} warnings)"
            )
        return result

    def check_resource(
        self, ctx: RunContext, resource_type: str, name: str, namespace: str = ""
    ) -> HealthCheckResult:
        cfg = self.config
        report = self.diagnostics.diagnose_resource(ctx, resource_type, name, namespace)
        critical, _ = count_by_severity(report.issues)
        return HealthCheckResult(
            healthy=critical == 0,
            score=penalized_score(
                report.issues,
                cfg.resource_critical_penalty,
                cfg.resource_warning_penalty,
                cfg.resource_info_penalty,
            ),
            summary=report.summary,
            issues=report.issues,
            suggestions=suggestions_from_issues(report.issues),
        )

    def suggestions_from_issues(self, issues: list[Issue]) -> list[str]:
        return suggestions_from_issues(issues)

    # ----------------------------
    # Components
    # ----------------------------

    def _optional_component(self, ctx: RunContext, name: str, check):
        try:
            return check(ctx)
        except SREError as e:
            logger.warning("%s check failed: %s", name, e)
            score = self.config.unavailable_score
            return (
                ComponentHealth(
                    status=component_status(score, self.config),
                    score=score,
                    details=f"{name} status unavailable: {e}",
                ),
                0,
            )

    def _check_nodes(self, ctx: RunContext):
        cfg = self.config
        result = parse_list(self.client.run_json(ctx, "get", "nodes"), parse_node)

        issues: list[Issue] = []
        ready = 0
        for node in result.items:
            if node.ready:
                ready += 1
            issues.extend(self.detector.detect_node_issues(node))

        total = len(result.items)
        critical, warning = count_by_severity(issues)
        score = score_nodes(ready, total, critical, warning, cfg)
        health = ComponentHealth(
            status=component_status(score, cfg),
            score=score,
            details=f"{ready}/{total} nodes ready",
        )
        return health, issues, result.skipped

    def _check_workloads(self, ctx: RunContext):
        cfg = self.config
        result = parse_list(self.client.run_json(ctx, "get", "pods", "-A"), parse_pod)

        issues: list[Issue] = []
        running = pending = failed = 0
        for pod in result.items:
            if pod.phase == "Running" and pod.ready:
                running += 1
            elif pod.phase == "Pending":
                pending += 1
            elif pod.phase == "Failed":
                failed += 1
            issues.extend(self.detector.detect_pod_issues(pod))

        total = len(result.items)
        critical, warning = count_by_severity(issues)
        score = score_workloads(running, total, critical, warning, cfg)
        health = ComponentHealth(
            status=workload_status(score, critical, cfg),
            score=score,
            details=f"{running} running, {pending} pending, {failed} failed pods",
        )
        return health, issues, (total, running, pending, failed), result.skipped

    def _check_storage(self, ctx: RunContext):
        cfg = self.config
        result = parse_list(self.client.run_json(ctx, "get", "pvc", "-A"), parse_pvc)
        pvcs = result.items

        bound = sum(1 for p in pvcs if p.phase == "Bound")
        pending = sum(1 for p in pvcs if p.phase == "Pending")
        score = score_storage(bound, len(pvcs), pending, cfg)
        return (
            ComponentHealth(
                status=pending_status(score, pending, cfg),
                score=score,
                details=f"{bound}/{len(pvcs)} PVCs bound, {pending} pending",
            ),
            result.skipped,
        )

    def _check_network(self, ctx: RunContext):
        cfg = self.config
        result = parse_list(
            self.client.run_json(ctx, "get", "services", "-A"), parse_service
        )
        services = result.items

        healthy = pending_lbs = 0
        for svc in services:
            # ClusterIP, NodePort and headless services need nothing assigned
            if svc.type == "LoadBalancer" and not svc.ingress:
                pending_lbs += 1
            else:
                healthy += 1

        score = score_network(healthy, len(services), pending_lbs, cfg)
        return (
            ComponentHealth(
                status=pending_status(score, pending_lbs, cfg),
                score=score,
                details=f"{len(services)} services, {pending_lbs} pending LoadBalancers",
            ),
            result.skipped,
        )
