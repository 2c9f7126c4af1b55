import re

from kubectl_sre.model import IssueCategory, NodeStatus
from kubectl_sre.providers.base import NodePoolStatus, ProviderOverlay

GKE_CATEGORIES = frozenset(
    {
        IssueCategory.GKE_NODE_POOL,
        IssueCategory.GKE_WORKLOAD_IDENTITY,
        IssueCategory.GKE_AUTOSCALING,
        IssueCategory.GKE_NETWORK_POLICY,
        IssueCategory.GKE_PREEMPTION,
        IssueCategory.GKE_QUOTA_EXCEEDED,
        IssueCategory.GKE_AUTOPILOT,
    }
)

GCP_SA_RE = re.compile(r"^[^@\s]+@[^@\s]+\.iam\.gserviceaccount\.com$")

PREEMPTIBLE_LABEL = "cloud.google.com/gke-preemptible"
SPOT_LABEL = "cloud.google.com/gke-spot"
MACHINE_TYPE_LABEL = "node.kubernetes.io/instance-type"


def is_gke_category(category: IssueCategory) -> bool:
    return category in GKE_CATEGORIES


class GKEOverlay(ProviderOverlay):
    name = "gke"
    display_name = "GKE"
    cloud_api = "GCP"

    categories = GKE_CATEGORIES
    pool_category = IssueCategory.GKE_NODE_POOL
    eviction_category = IssueCategory.GKE_PREEMPTION
    identity_category = IssueCategory.GKE_WORKLOAD_IDENTITY

    pool_labels = ("cloud.google.com/gke-nodepool",)
    default_pool = "default-pool"
    eviction_reasons = frozenset({"PreemptScheduled", "Preempted"})
    identity_annotation = "iam.gke.io/gcp-service-account"

    pool_suggestions = (
        "Check node conditions for specific issues",
        "Review node events for errors",
        "Consider node pool repair or recreation",
    )
    eviction_id = "gke-preemption-events"
    eviction_message = "Found {count} preemption events for preemptible/spot nodes"
    eviction_suggestions = (
        "Preemption is expected for preemptible/spot VMs",
        "Ensure workloads are fault-tolerant",
        "Consider PodDisruptionBudgets for availability",
    )
    identity_id = "gke-workload-identity-misconfigured"
    identity_suggestions = (
        "Verify GCP service account email format",
        "Ensure IAM binding exists between K8s SA and GCP SA",
        "Check nodepool has Workload Identity enabled",
    )
    spot_recommendation = (
        "Using preemptible/spot nodes: ensure workloads have "
        "PodDisruptionBudgets configured"
    )

    GUIDANCE = {
        IssueCategory.GKE_NODE_POOL: (
            "Node pool issues often require intervention via gcloud or GCP "
            "Console. Check node pool status and consider repair or recreation "
            "if needed."
        ),
        IssueCategory.GKE_WORKLOAD_IDENTITY: (
            "Workload Identity issues usually stem from IAM misconfiguration. "
            "Verify the binding between Kubernetes SA and GCP SA."
        ),
        IssueCategory.GKE_AUTOSCALING: (
            "Autoscaling issues may be due to quota limits, node pool "
            "constraints, or pod scheduling requirements."
        ),
        IssueCategory.GKE_NETWORK_POLICY: (
            "Network policy issues require checking the network policy "
            "controller and policy definitions."
        ),
        IssueCategory.GKE_PREEMPTION: (
            "Preemption is expected for preemptible/spot nodes. Ensure "
            "workloads are fault-tolerant with proper PDBs."
        ),
        IssueCategory.GKE_QUOTA_EXCEEDED: (
            "Quota issues require requesting increased quotas via GCP Console "
            "or reducing resource usage."
        ),
        IssueCategory.GKE_AUTOPILOT: (
            "Autopilot mode has specific constraints. Review workload "
            "configuration for compatibility."
        ),
    }

    DIAGNOSTIC_CHECKS = (
        "Check node pool status via gcloud container node-pools list",
        "Verify Workload Identity configuration on service accounts",
        "Check for preemption events on preemptible/spot nodes",
        "Review cluster autoscaler status and events",
        "Verify network policy enforcement if enabled",
        "Check for GKE-specific annotations on services and ingresses",
        "Review Cloud Operations (Monitoring/Logging) integration",
    )

    HEALTH_NOTES = (
        "GKE control plane is managed by Google and automatically monitored",
        "Use gcloud container clusters describe for detailed cluster status",
        "Node pool health can be checked via GCP Console or gcloud",
        "Workload Identity replaces service account key management",
        "Preemptible/Spot node preemption is expected behavior",
        "Enable GKE usage metering for detailed resource tracking",
        "Consider enabling GKE Enterprise for advanced monitoring",
    )

    def describe_pool(self, pool: NodePoolStatus, node: NodeStatus) -> None:
        if node.labels.get(PREEMPTIBLE_LABEL) == "true":
            pool.preemptible = True
        if node.labels.get(SPOT_LABEL) == "true":
            pool.spot = True
        if not pool.vm_size:
            pool.vm_size = node.labels.get(MACHINE_TYPE_LABEL, "")

    def identity_format_ok(self, value: str) -> bool:
        return bool(GCP_SA_RE.match(value))
