import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from kubectl_sre.client import DEFAULT_TIMEOUT
from kubectl_sre.errors import ConfigError
from kubectl_sre.health import ScoringConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "KUBECTL_SRE_"
PROVIDER_NAMES = ("aks", "gke")


@dataclass
class Settings:
    kubectl: str = "kubectl"
    context: str | None = None
    kubeconfig: str | None = None
    timeout: float | None = DEFAULT_TIMEOUT
    provider: str | None = None
    log_tail_lines: int = 50
    debug: bool = False
    playbook_folders: list[str] = field(default_factory=list)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_timeout(value: Any) -> float | None:
    if value is None or str(value).strip().lower() in ("", "none", "0"):
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be a number of seconds, got {value!r}") from None
    if timeout < 0:
        raise ConfigError("timeout must not be negative")
    return timeout


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None


def _read_file(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def load_settings(
    path: str | None = None, env: Mapping[str, str] | None = None
) -> Settings:
    """
    Settings from an optional YAML file, overlaid by KUBECTL_SRE_* variables.

        kubectl: /usr/local/bin/kubectl
        context: prod
        timeout: 60
        provider: aks
        log_tail_lines: 100
        playbook_folders: [./playbooks]
        scoring:
          node_weight: 0.3
    """
    env = os.environ if env is None else env
    data = _read_file(path) if path else {}

    known = {
        "kubectl",
        "context",
        "kubeconfig",
        "timeout",
        "provider",
        "log_tail_lines",
        "debug",
        "playbook_folders",
        "scoring",
    }
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"unknown config keys: {sorted(unknown)}")

    settings = Settings()
    if "kubectl" in data:
        settings.kubectl = str(data["kubectl"])
    if "context" in data:
        settings.context = data["context"] or None
    if "kubeconfig" in data:
        settings.kubeconfig = data["kubeconfig"] or None
    if "timeout" in data:
        settings.timeout = _as_timeout(data["timeout"])
    if "provider" in data:
        settings.provider = data["provider"] or None
    if "log_tail_lines" in data:
        settings.log_tail_lines = _as_int("log_tail_lines", data["log_tail_lines"])
    if "debug" in data:
        settings.debug = _as_bool(data["debug"])
    if "playbook_folders" in data:
        folders = data["playbook_folders"] or []
        if not isinstance(folders, list):
            raise ConfigError("playbook_folders must be a list")
        base = os.path.dirname(os.path.abspath(path)) if path else os.getcwd()
        settings.playbook_folders = [os.path.join(base, str(f)) for f in folders]
    settings.scoring = ScoringConfig.from_dict(data.get("scoring"))

    # ---- environment overrides ----
    if env.get(ENV_PREFIX + "KUBECTL"):
        settings.kubectl = env[ENV_PREFIX + "KUBECTL"]
    if env.get(ENV_PREFIX + "CONTEXT"):
        settings.context = env[ENV_PREFIX + "CONTEXT"]
    if ENV_PREFIX + "TIMEOUT" in env:
        settings.timeout = _as_timeout(env[ENV_PREFIX + "TIMEOUT"])
    if env.get(ENV_PREFIX + "PROVIDER"):
        settings.provider = env[ENV_PREFIX + "PROVIDER"]
    if env.get(ENV_PREFIX + "DEBUG"):
        settings.debug = _as_bool(env[ENV_PREFIX + "DEBUG"])
    if env.get(ENV_PREFIX + "LOG_TAIL"):
        settings.log_tail_lines = _as_int("LOG_TAIL", env[ENV_PREFIX + "LOG_TAIL"])

    if settings.provider is not None:
        settings.provider = str(settings.provider).lower()
        if settings.provider not in PROVIDER_NAMES:
            raise ConfigError(
                f"provider must be one of {list(PROVIDER_NAMES)}, got {settings.provider!r}"
            )
    if settings.log_tail_lines < 0:
        raise ConfigError("log_tail_lines must not be negative")

    logger.debug("settings: %s", settings)
    return settings
