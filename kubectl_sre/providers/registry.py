from kubectl_sre.client import K8sClient
from kubectl_sre.errors import ConfigError
from kubectl_sre.providers.aks import AKSOverlay
from kubectl_sre.providers.base import ProviderOverlay
from kubectl_sre.providers.gke import GKEOverlay

PROVIDERS: dict[str, type[ProviderOverlay]] = {
    "aks": AKSOverlay,
    "gke": GKEOverlay,
}


def get_provider(name: str, client: K8sClient, debug: bool = False) -> ProviderOverlay:
    try:
        cls = PROVIDERS[name.lower()]
    except KeyError:
        raise ConfigError(
            f"unknown provider {name!r} (expected one of {sorted(PROVIDERS)})"
        ) from None
    return cls(client, debug=debug)
