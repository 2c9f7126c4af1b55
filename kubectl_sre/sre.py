import logging

from kubectl_sre.client import K8sClient, KubectlClient, RunContext
from kubectl_sre.config import Settings
from kubectl_sre.detector import IssueDetector
from kubectl_sre.diagnostics import DEFAULT_NAMESPACE, DiagnosticsManager
from kubectl_sre.errors import ConfigError, SREError, rewrap
from kubectl_sre.health import HealthChecker
from kubectl_sre.model import SREPlan
from kubectl_sre.providers.base import ProviderClusterHealth, ProviderOverlay
from kubectl_sre.providers.registry import get_provider
from kubectl_sre.remediation import (
    RemediationRegistry,
    default_registry,
    generate_remediation_plan,
)

logger = logging.getLogger(__name__)


class SREAgent:
    """
    Wires diagnostics, health scoring, remediation planning and the optional
    provider overlay around one client.

    Everything here is read-only except restart_pod(), which has to be
    called explicitly.
    """

    def __init__(
        self,
        client: K8sClient | None = None,
        settings: Settings | None = None,
        detector: IssueDetector | None = None,
        registry: RemediationRegistry | None = None,
    ):
        self.settings = settings or Settings()
        self.client = client or KubectlClient(
            kubectl=self.settings.kubectl,
            context=self.settings.context,
            kubeconfig=self.settings.kubeconfig,
        )
        debug = self.settings.debug

        self.detector = detector or IssueDetector()
        self.diagnostics = DiagnosticsManager(
            self.client,
            detector=self.detector,
            debug=debug,
            log_tail_lines=self.settings.log_tail_lines,
        )
        self.health = HealthChecker(
            self.client,
            detector=self.detector,
            diagnostics=self.diagnostics,
            config=self.settings.scoring,
            debug=debug,
        )
        self.registry = registry or default_registry(self.settings.playbook_folders)
        self.provider: ProviderOverlay | None = None
        if self.settings.provider:
            self.provider = get_provider(self.settings.provider, self.client, debug)

    def context(self) -> RunContext:
        return RunContext(timeout=self.settings.timeout)

    def plan_remediation(
        self, ctx: RunContext, resource_type: str, name: str, namespace: str = ""
    ) -> SREPlan:
        report = self.diagnostics.diagnose_resource(ctx, resource_type, name, namespace)
        return generate_remediation_plan(report, self.registry)

    def provider_health(
        self, ctx: RunContext, provider: str | None = None
    ) -> ProviderClusterHealth:
        overlay = self.provider
        if provider:
            overlay = get_provider(provider, self.client, self.settings.debug)
        if overlay is None:
            raise ConfigError("no provider configured (use aks or gke)")
        return overlay.check_cluster_health(ctx)

    def restart_pod(self, ctx: RunContext, name: str, namespace: str = "") -> str:
        """
        Delete one pod so its controller recreates it. The only mutating
        action the agent performs.
        """
        namespace = namespace or DEFAULT_NAMESPACE
        logger.warning("restarting pod %s/%s", namespace, name)
        try:
            return self.client.run_with_namespace(ctx, namespace, "delete", "pod", name)
        except SREError as e:
            raise rewrap(e, f"failed to restart pod {namespace}/{name}") from e
