import re

from kubectl_sre.model import Issue, IssueCategory, NodeStatus, ResourceType, Severity
from kubectl_sre.providers.base import NodePoolStatus, ProviderOverlay

AKS_CATEGORIES = frozenset(
    {
        IssueCategory.AKS_NODE_POOL,
        IssueCategory.AKS_MANAGED_IDENTITY,
        IssueCategory.AKS_SPOT_EVICTION,
        IssueCategory.AKS_QUOTA_EXCEEDED,
        IssueCategory.AKS_NETWORK_POLICY,
        IssueCategory.AKS_VIRTUAL_NODE,
        IssueCategory.AKS_AUTOSCALING,
    }
)

GUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

SPOT_LABEL = "kubernetes.azure.com/scalesetpriority"
MODE_LABEL = "kubernetes.azure.com/mode"
INSTANCE_TYPE_LABEL = "node.kubernetes.io/instance-type"
VIRTUAL_NODE_LABEL = ("type", "virtual-kubelet")

MANAGED_IDENTITY_CHECKS = (
    "Verify azure.workload.identity/client-id annotation on service account",
    "Check federated identity credential exists on managed identity",
    "Verify OIDC issuer URL matches cluster configuration",
    "Confirm Azure RBAC role assignments for managed identity",
    "Ensure azure.workload.identity/use: true label is set on pods",
    "Check managed identity has necessary API permissions",
)

# Equivalent mechanisms across managed offerings.
PROVIDER_COMPARISON = {
    "aks_identity": "Workload Identity (federated credentials)",
    "gke_identity": "Workload Identity (IAM binding)",
    "eks_identity": "IRSA (IAM Roles for Service Accounts)",
    "aks_node_pool_check": "az aks nodepool show",
    "gke_node_pool_check": "gcloud container node-pools describe",
    "eks_node_pool_check": "aws eks describe-nodegroup",
    "aks_spot_eviction": "Azure Spot VM eviction",
    "gke_preemption": "GKE preemptible/spot preemption",
    "eks_spot_eviction": "EC2 Spot interruption",
    "aks_diagnostics": "AKS Diagnostics (Azure Portal)",
    "gke_diagnostics": "GKE Dashboard",
    "eks_diagnostics": "CloudWatch Container Insights",
}


def is_aks_category(category: IssueCategory) -> bool:
    return category in AKS_CATEGORIES


class AKSOverlay(ProviderOverlay):
    name = "aks"
    display_name = "AKS"
    cloud_api = "Azure"

    categories = AKS_CATEGORIES
    pool_category = IssueCategory.AKS_NODE_POOL
    eviction_category = IssueCategory.AKS_SPOT_EVICTION
    identity_category = IssueCategory.AKS_MANAGED_IDENTITY

    pool_labels = ("kubernetes.azure.com/agentpool", "agentpool")
    default_pool = "nodepool1"
    eviction_reasons = frozenset({"Evicted", "Preempted"})
    identity_annotation = "azure.workload.identity/client-id"

    pool_suggestions = (
        "Check node conditions for specific issues",
        "Review node events for errors",
        "Use az aks nodepool show to check pool status",
        "Consider node pool scale-up or repair",
    )
    eviction_id = "aks-spot-eviction-events"
    eviction_message = "Found {count} eviction events (may include Spot VM evictions)"
    eviction_suggestions = (
        "Spot VM eviction is expected when Azure needs capacity",
        "Ensure workloads are fault-tolerant",
        "Consider PodDisruptionBudgets for availability",
        "Use multiple node pools for redundancy",
    )
    identity_id = "aks-managed-identity-misconfigured"
    identity_suggestions = (
        "Verify client ID is a valid Azure AD application ID",
        "Ensure federated identity credential is configured",
        "Check Azure RBAC assignments for the managed identity",
    )
    spot_recommendation = (
        "Using Spot VMs: ensure workloads have PodDisruptionBudgets configured"
    )

    GUIDANCE = {
        IssueCategory.AKS_NODE_POOL: (
            "Node pool issues often require intervention via az CLI or Azure "
            "Portal. Check node pool status and consider scale or repair if needed."
        ),
        IssueCategory.AKS_MANAGED_IDENTITY: (
            "Managed Identity issues usually stem from federated credential "
            "misconfiguration. Verify the binding between K8s SA and Azure AD "
            "application."
        ),
        IssueCategory.AKS_SPOT_EVICTION: (
            "Spot eviction is expected when Azure needs capacity. Ensure "
            "workloads are fault-tolerant with proper PDBs."
        ),
        IssueCategory.AKS_QUOTA_EXCEEDED: (
            "Quota issues require requesting increased quotas via Azure Portal "
            "or reducing resource usage."
        ),
        IssueCategory.AKS_NETWORK_POLICY: (
            "Network policy issues require checking the network policy provider "
            "(Azure NPM or Calico) and policy definitions."
        ),
        IssueCategory.AKS_VIRTUAL_NODE: (
            "Virtual Node issues may indicate ACI connector problems. Check "
            "connector pod status and ACI regional availability."
        ),
        IssueCategory.AKS_AUTOSCALING: (
            "Autoscaling issues may be due to quota limits, node pool "
            "constraints, or pod scheduling requirements."
        ),
    }

    DIAGNOSTIC_CHECKS = (
        "Check node pool status via az aks nodepool list",
        "Verify Workload Identity configuration on service accounts",
        "Check for Spot VM eviction events",
        "Review cluster autoscaler status and events",
        "Verify network policy enforcement if enabled",
        "Check for AKS-specific annotations on services and ingresses",
        "Review Azure Monitor and Container Insights integration",
        "Check Virtual Nodes (ACI) connector status if enabled",
    )

    HEALTH_NOTES = (
        "AKS control plane is managed by Azure and automatically monitored",
        "Use az aks show for detailed cluster status",
        "Node pool health can be checked via Azure Portal or az CLI",
        "Workload Identity replaces pod identity for Azure API access",
        "Spot VM eviction is expected behavior when Azure needs capacity",
        "Enable Azure Monitor for Containers for detailed metrics",
        "Consider enabling Azure Policy for AKS for compliance",
        "Use AKS Diagnostics in Azure Portal for troubleshooting",
    )

    def describe_pool(self, pool: NodePoolStatus, node: NodeStatus) -> None:
        if node.labels.get(SPOT_LABEL) == "spot":
            pool.spot = True
        if not pool.mode:
            pool.mode = node.labels.get(MODE_LABEL, "")
        if not pool.vm_size:
            pool.vm_size = node.labels.get(INSTANCE_TYPE_LABEL, "")

    def identity_format_ok(self, value: str) -> bool:
        # client-id must be an Azure AD application (GUID)
        return bool(GUID_RE.match(value))

    def extra_issues(self, nodes: list[NodeStatus]) -> list[Issue]:
        label, value = VIRTUAL_NODE_LABEL
        not_ready = [
            n.name for n in nodes if n.labels.get(label) == value and not n.ready
        ]
        if not not_ready:
            return []
        return [
            Issue(
                id="aks-virtual-nodes-notready",
                severity=Severity.WARNING,
                category=IssueCategory.AKS_VIRTUAL_NODE,
                resource_type=ResourceType.NODE.value,
                resource_name="",
                message=f"Found {len(not_ready)} Virtual Nodes not ready",
                details=", ".join(not_ready),
                suggestions=[
                    "Check ACI connector pod in kube-system namespace",
                    "Verify Virtual Nodes addon is enabled",
                    "Check ACI quota in the Azure region",
                    "Review ACI connector logs for errors",
                ],
            )
        ]

    def managed_identity_checks(self) -> list[str]:
        return list(MANAGED_IDENTITY_CHECKS)
