import enum
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any

# ----------------------------
# Closed tag sets
# ----------------------------


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, enum.Enum):
    # core
    CRASH = "crash"
    PENDING = "pending"
    RESOURCE_LIMIT = "resource_limit"
    IMAGE_PULL = "image_pull"
    PROBE = "probe"
    SCHEDULING = "scheduling"
    NETWORK = "network"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    NODE_PRESSURE = "node_pressure"
    NODE_UNREACHABLE = "node_unreachable"

    # AKS overlay
    AKS_NODE_POOL = "aks_node_pool"
    AKS_MANAGED_IDENTITY = "aks_managed_identity"
    AKS_SPOT_EVICTION = "aks_spot_eviction"
    AKS_QUOTA_EXCEEDED = "aks_quota_exceeded"
    AKS_NETWORK_POLICY = "aks_network_policy"
    AKS_VIRTUAL_NODE = "aks_virtual_node"
    AKS_AUTOSCALING = "aks_autoscaling"

    # GKE overlay
    GKE_NODE_POOL = "gke_node_pool"
    GKE_WORKLOAD_IDENTITY = "gke_workload_identity"
    GKE_AUTOSCALING = "gke_autoscaling"
    GKE_NETWORK_POLICY = "gke_network_policy"
    GKE_PREEMPTION = "gke_preemption"
    GKE_QUOTA_EXCEEDED = "gke_quota_exceeded"
    GKE_AUTOPILOT = "gke_autopilot"


CORE_CATEGORIES = frozenset(
    c for c in IssueCategory if not c.value.startswith(("aks_", "gke_"))
)

# Severity class each category carries unless a rule says otherwise.
DEFAULT_SEVERITY: dict[IssueCategory, Severity] = {
    IssueCategory.CRASH: Severity.CRITICAL,
    IssueCategory.PENDING: Severity.WARNING,
    IssueCategory.RESOURCE_LIMIT: Severity.CRITICAL,
    IssueCategory.IMAGE_PULL: Severity.CRITICAL,
    IssueCategory.PROBE: Severity.WARNING,
    IssueCategory.SCHEDULING: Severity.WARNING,
    IssueCategory.NETWORK: Severity.CRITICAL,
    IssueCategory.STORAGE: Severity.WARNING,
    IssueCategory.CONFIGURATION: Severity.CRITICAL,
    IssueCategory.NODE_PRESSURE: Severity.WARNING,
    IssueCategory.NODE_UNREACHABLE: Severity.CRITICAL,
    IssueCategory.AKS_NODE_POOL: Severity.WARNING,
    IssueCategory.AKS_MANAGED_IDENTITY: Severity.WARNING,
    IssueCategory.AKS_SPOT_EVICTION: Severity.INFO,
    IssueCategory.AKS_QUOTA_EXCEEDED: Severity.WARNING,
    IssueCategory.AKS_NETWORK_POLICY: Severity.WARNING,
    IssueCategory.AKS_VIRTUAL_NODE: Severity.WARNING,
    IssueCategory.AKS_AUTOSCALING: Severity.WARNING,
    IssueCategory.GKE_NODE_POOL: Severity.WARNING,
    IssueCategory.GKE_WORKLOAD_IDENTITY: Severity.WARNING,
    IssueCategory.GKE_AUTOSCALING: Severity.WARNING,
    IssueCategory.GKE_NETWORK_POLICY: Severity.WARNING,
    IssueCategory.GKE_PREEMPTION: Severity.INFO,
    IssueCategory.GKE_QUOTA_EXCEEDED: Severity.WARNING,
    IssueCategory.GKE_AUTOPILOT: Severity.WARNING,
}


class ResourceType(str, enum.Enum):
    POD = "pod"
    DEPLOYMENT = "deployment"
    STATEFULSET = "statefulset"
    DAEMONSET = "daemonset"
    NODE = "node"
    SERVICE = "service"
    PVC = "pvc"
    EVENT = "event"


class HealthStatus(str, enum.Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class Risk(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Scope(str, enum.Enum):
    CLUSTER = "cluster"
    NAMESPACE = "namespace"
    RESOURCE = "resource"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_id(prefix: str, *parts: str) -> str:
    """
    Stable identifier for an issue. The same resource, category and name
    always produce the same id, so repeated passes can be correlated.
    """
    return "-".join([prefix, *(p for p in parts if p)])


# ----------------------------
# Resource status records
# ----------------------------


@dataclass(frozen=True)
class Condition:
    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class ContainerState:
    name: str
    ready: bool = False
    restart_count: int = 0
    state: str = ""  # running | waiting | terminated
    reason: str = ""
    message: str = ""
    exit_code: int = 0


@dataclass(frozen=True)
class ResourceList:
    cpu: str = ""
    memory: str = ""
    pods: str = ""


@dataclass(frozen=True)
class PodStatus:
    name: str
    namespace: str = ""
    phase: str = ""
    ready: bool = False
    restart_count: int = 0
    container_states: tuple[ContainerState, ...] = ()
    conditions: tuple[Condition, ...] = ()
    node_name: str = ""
    start_time: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeploymentStatus:
    name: str
    namespace: str = ""
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    unavailable_replicas: int = 0
    updated_replicas: int = 0
    conditions: tuple[Condition, ...] = ()
    selector: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NodeStatus:
    name: str
    ready: bool = False
    conditions: tuple[Condition, ...] = ()
    allocatable: ResourceList = ResourceList()
    capacity: ResourceList = ResourceList()
    memory_pressure: bool = False
    disk_pressure: bool = False
    pid_pressure: bool = False
    network_available: bool = True
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PVCStatus:
    name: str
    namespace: str = ""
    phase: str = ""
    storage_class: str = ""


@dataclass(frozen=True)
class ServiceStatus:
    name: str
    namespace: str = ""
    type: str = "ClusterIP"
    cluster_ip: str = ""
    ingress: tuple[str, ...] = ()


@dataclass(frozen=True)
class ServiceAccountInfo:
    name: str
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EventInfo:
    type: str = ""
    reason: str = ""
    message: str = ""
    count: int = 0
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    object_kind: str = ""
    object_name: str = ""
    object_namespace: str = ""


@dataclass(frozen=True)
class LogEntry:
    container: str
    message: str
    level: str = ""  # error | warn | info
    is_error: bool = False
    timestamp: datetime = field(default_factory=utcnow)


# ----------------------------
# Detection and reporting
# ----------------------------


@dataclass
class Issue:
    id: str
    severity: Severity
    category: IssueCategory
    resource_type: str
    resource_name: str
    message: str
    namespace: str = ""
    details: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class ComponentHealth:
    status: HealthStatus = HealthStatus.HEALTHY
    score: int = 100
    details: str = ""


@dataclass
class ClusterHealthSummary:
    overall_health: HealthStatus = HealthStatus.HEALTHY
    score: int = 100
    node_health: ComponentHealth = field(default_factory=ComponentHealth)
    workload_health: ComponentHealth = field(default_factory=ComponentHealth)
    storage_health: ComponentHealth = field(default_factory=ComponentHealth)
    network_health: ComponentHealth = field(default_factory=ComponentHealth)
    critical_issues: int = 0
    warning_issues: int = 0
    total_pods: int = 0
    running_pods: int = 0
    pending_pods: int = 0
    failed_pods: int = 0
    issues: list[Issue] = field(default_factory=list)
    skipped_items: int = 0


@dataclass
class HealthCheckResult:
    healthy: bool = True
    score: int = 100
    summary: str = ""
    checked_at: datetime = field(default_factory=utcnow)
    issues: list[Issue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class RemediationStep:
    order: int
    action: str
    description: str
    command: str = ""
    args: list[str] = field(default_factory=list)
    risk: Risk = Risk.LOW
    automated: bool = False


@dataclass
class SREPlan:
    summary: str
    version: int = 1
    steps: list[RemediationStep] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass
class DiagnosticReport:
    scope: Scope
    summary: str = ""
    resource_type: str = ""
    resource_name: str = ""
    namespace: str = ""
    generated_at: datetime = field(default_factory=utcnow)
    issues: list[Issue] = field(default_factory=list)
    events: list[EventInfo] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    remediation: list[RemediationStep] = field(default_factory=list)
    skipped_items: int = 0


def count_by_severity(issues: list[Issue]) -> tuple[int, int]:
    """
    Return (critical, warning) counts. Info issues are not counted.
    """
    critical = sum(1 for i in issues if i.severity is Severity.CRITICAL)
    warning = sum(1 for i in issues if i.severity is Severity.WARNING)
    return critical, warning


# ----------------------------
# Wire form
# ----------------------------


def to_dict(obj: Any) -> Any:
    """
    Convert records into plain JSON/YAML-safe structures.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_dict(v) for v in obj]
    return obj


@dataclass(frozen=True)
class ResourceDescription:
    """
    Free-form `kubectl describe` output for kinds without a typed record.
    """

    resource_type: str
    name: str
    namespace: str = ""
    text: str = ""
