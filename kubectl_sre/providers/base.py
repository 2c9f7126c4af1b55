import logging
from collections import defaultdict
from dataclasses import dataclass, field

from kubectl_sre.client import K8sClient, RunContext
from kubectl_sre.errors import SREError
from kubectl_sre.extractor import (
    parse_event,
    parse_list,
    parse_node,
    parse_service_account,
)
from kubectl_sre.model import (
    EventInfo,
    Issue,
    IssueCategory,
    NodeStatus,
    ResourceType,
    ServiceAccountInfo,
    Severity,
    issue_id,
)

logger = logging.getLogger(__name__)

NO_GUIDANCE = "No specific guidance available for this issue category."


@dataclass
class NodePoolStatus:
    name: str
    status: str = "healthy"  # healthy | degraded | critical
    node_count: int = 0
    ready_count: int = 0
    mode: str = ""
    vm_size: str = ""
    spot: bool = False
    preemptible: bool = False


@dataclass
class ProviderClusterHealth:
    provider: str
    control_plane_healthy: bool = True
    node_pools_healthy: bool = True
    identity_ok: bool = True
    node_pool_statuses: list[NodePoolStatus] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    skipped_items: int = 0


class ProviderOverlay:
    """
    Managed-Kubernetes rules layered over the generic node and event data.

    Subclasses fill in the label names, event reasons, identity annotation
    and text tables; the detection logic itself is shared:

      - nodes grouped by pool label, readiness < 100% -> warning pool issue,
        zero ready -> critical
      - eviction/preemption events > 0 -> one info issue
      - identity annotations failing the format check -> one warning issue

    The overlay holds only the client handle and the debug flag.
    """

    name: str = ""
    display_name: str = ""
    cloud_api: str = ""

    categories: frozenset[IssueCategory] = frozenset()
    pool_category: IssueCategory
    eviction_category: IssueCategory
    identity_category: IssueCategory

    pool_labels: tuple[str, ...] = ()
    default_pool: str = ""
    eviction_reasons: frozenset[str] = frozenset()
    identity_annotation: str = ""

    pool_suggestions: tuple[str, ...] = ()
    eviction_message: str = "Found {count} eviction events"
    eviction_id: str = ""
    eviction_suggestions: tuple[str, ...] = ()
    identity_id: str = ""
    identity_suggestions: tuple[str, ...] = ()
    spot_recommendation: str = ""

    GUIDANCE: dict[IssueCategory, str] = {}
    DIAGNOSTIC_CHECKS: tuple[str, ...] = ()
    HEALTH_NOTES: tuple[str, ...] = ()

    def __init__(self, client: K8sClient, debug: bool = False):
        self.client = client
        self.debug = debug

    # ----------------------------
    # Category tables
    # ----------------------------

    def is_provider_category(self, category: IssueCategory) -> bool:
        return category in self.categories

    def guidance(self, category: IssueCategory) -> str:
        return self.GUIDANCE.get(category, NO_GUIDANCE)

    def diagnostic_checks(self) -> list[str]:
        return list(self.DIAGNOSTIC_CHECKS)

    def health_notes(self) -> list[str]:
        return list(self.HEALTH_NOTES)

    # ----------------------------
    # Node pools
    # ----------------------------

    def pool_name(self, node: NodeStatus) -> str:
        for label in self.pool_labels:
            value = node.labels.get(label)
            if value:
                return value
        return self.default_pool

    def describe_pool(self, pool: NodePoolStatus, node: NodeStatus) -> None:
        """
        Copy provider-specific node labels onto the pool status.
        """

    def group_node_pools(self, nodes: list[NodeStatus]) -> dict[str, list[NodeStatus]]:
        pools: dict[str, list[NodeStatus]] = defaultdict(list)
        for node in nodes:
            pools[self.pool_name(node)].append(node)
        return dict(sorted(pools.items()))

    def node_pool_issues(
        self, nodes: list[NodeStatus]
    ) -> tuple[list[NodePoolStatus], list[Issue]]:
        statuses: list[NodePoolStatus] = []
        issues: list[Issue] = []

        for pool_name, members in self.group_node_pools(nodes).items():
            pool = NodePoolStatus(name=pool_name, node_count=len(members))
            for node in members:
                if node.ready:
                    pool.ready_count += 1
                self.describe_pool(pool, node)

            if pool.ready_count < pool.node_count:
                not_ready = pool.node_count - pool.ready_count
                severity = Severity.WARNING
                pool.status = "degraded"
                if pool.ready_count == 0:
                    severity = Severity.CRITICAL
                    pool.status = "critical"
                issues.append(
                    Issue(
                        id=issue_id(f"{self.name}-nodepool", pool_name, "notready"),
                        severity=severity,
                        category=self.pool_category,
                        resource_type=ResourceType.NODE.value,
                        resource_name=pool_name,
                        message=(
                            f"Node pool {pool_name} has "
                            f"{not_ready}/{pool.node_count} nodes not ready"
                        ),
                        suggestions=list(self.pool_suggestions),
                    )
                )
            statuses.append(pool)

        return statuses, issues

    # ----------------------------
    # Evictions / preemptions
    # ----------------------------

    def eviction_issues(self, events: list[EventInfo]) -> list[Issue]:
        count = sum(1 for e in events if e.reason in self.eviction_reasons)
        if count == 0:
            return []
        return [
            Issue(
                id=self.eviction_id,
                severity=Severity.INFO,
                category=self.eviction_category,
                resource_type=ResourceType.NODE.value,
                resource_name="",
                message=self.eviction_message.format(count=count),
                suggestions=list(self.eviction_suggestions),
            )
        ]

    # ----------------------------
    # Workload identity
    # ----------------------------

    def identity_format_ok(self, value: str) -> bool:
        raise NotImplementedError

    def identity_issues(self, accounts: list[ServiceAccountInfo]) -> list[Issue]:
        misconfigured = [
            f"{sa.namespace}/{sa.name}"
            for sa in accounts
            if sa.annotations.get(self.identity_annotation)
            and not self.identity_format_ok(sa.annotations[self.identity_annotation])
        ]
        if not misconfigured:
            return []
        return [
            Issue(
                id=self.identity_id,
                severity=Severity.WARNING,
                category=self.identity_category,
                resource_type="serviceaccount",
                resource_name="",
                message=(
                    f"Found {len(misconfigured)} service accounts with "
                    "potentially misconfigured Workload Identity"
                ),
                details=", ".join(misconfigured),
                suggestions=list(self.identity_suggestions),
            )
        ]

    def extra_issues(self, nodes: list[NodeStatus]) -> list[Issue]:
        return []

    # ----------------------------
    # Collection
    # ----------------------------

    def _collect(self, ctx: RunContext, parser, *args: str):
        """
        Best-effort list fetch: a failing call or malformed envelope yields
        an empty result and a warning.
        """
        try:
            result = parse_list(self.client.run_json(ctx, *args), parser)
        except SREError as e:
            logger.warning("%s: %s failed: %s", self.name, " ".join(args), e)
            return [], 0
        return result.items, result.skipped

    def check_cluster_health(self, ctx: RunContext) -> ProviderClusterHealth:
        health = ProviderClusterHealth(provider=self.name)

        nodes, skipped_nodes = self._collect(ctx, parse_node, "get", "nodes")
        events, skipped_events = self._collect(
            ctx, parse_event, "get", "events", "--all-namespaces"
        )
        accounts, skipped_accounts = self._collect(
            ctx, parse_service_account, "get", "serviceaccounts", "--all-namespaces"
        )
        health.skipped_items = skipped_nodes + skipped_events + skipped_accounts

        health.node_pool_statuses, pool_issues = self.node_pool_issues(nodes)
        health.issues.extend(pool_issues)
        health.issues.extend(self.eviction_issues(events))

        identity = self.identity_issues(accounts)
        if identity:
            health.identity_ok = False
            health.issues.extend(identity)

        health.issues.extend(self.extra_issues(nodes))

        health.node_pools_healthy = not any(
            i.severity is Severity.CRITICAL and i.category is self.pool_category
            for i in health.issues
        )
        health.recommendations = self.recommendations(health)

        if self.debug:
            logger.debug(
                "%s: %d pools, %d issues", self.name,
                len(health.node_pool_statuses), len(health.issues),
            )
        return health

    def recommendations(self, health: ProviderClusterHealth) -> list[str]:
        result = []
        if any(p.spot or p.preemptible for p in health.node_pool_statuses):
            result.append(self.spot_recommendation)
        if not health.identity_ok:
            result.append(
                "Review Workload Identity configuration for proper "
                f"{self.cloud_api} API access"
            )
        if not result:
            result.append(f"{self.display_name} cluster appears healthy")
        return result
