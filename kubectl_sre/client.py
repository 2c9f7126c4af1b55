import json
import logging
import subprocess
import time
from dataclasses import dataclass, field
from typing import Protocol

from kubectl_sre.errors import CollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class RunContext:
    """
    Per-request context threaded through every collaborator call.

    The engine never retries or waits on its own; the caller decides how long
    a whole diagnostic pass may take by setting `timeout`.
    """

    timeout: float | None = DEFAULT_TIMEOUT
    started_at: float = field(default_factory=time.monotonic)

    def remaining(self) -> float | None:
        if self.timeout is None:
            return None
        return max(0.0, self.timeout - (time.monotonic() - self.started_at))

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0


class K8sClient(Protocol):
    """
    The only capability the engine needs from the outside world.
    Test doubles substitute canned output without touching the engine.
    """

    def run(self, ctx: RunContext, *args: str) -> str: ...

    def run_with_namespace(self, ctx: RunContext, namespace: str, *args: str) -> str: ...

    def run_json(self, ctx: RunContext, *args: str) -> bytes: ...


class KubectlClient:
    """
    K8sClient backed by the kubectl binary (shell=False, captured output).
    """

    def __init__(
        self,
        kubectl: str = "kubectl",
        context: str | None = None,
        kubeconfig: str | None = None,
    ):
        self.kubectl = kubectl
        self.context = context
        self.kubeconfig = kubeconfig

    def _command(self, args: tuple[str, ...]) -> list[str]:
        cmd = [self.kubectl, *args]
        if self.context:
            cmd += ["--context", self.context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def run(self, ctx: RunContext, *args: str) -> str:
        if ctx.expired():
            raise CollaboratorError("Request deadline exceeded", args)

        cmd = self._command(args)
        logger.debug("exec: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                shell=False,
                capture_output=True,
                text=True,
                check=True,
                timeout=ctx.remaining(),
            )
        except subprocess.TimeoutExpired as e:
            raise CollaboratorError(
                f"kubectl {' '.join(args)} timed out", args
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise CollaboratorError(
                f"kubectl {' '.join(args)} failed: {stderr or 'command failed'}",
                args,
                stderr,
            ) from e
        except FileNotFoundError as e:
            raise CollaboratorError(f"{self.kubectl} not found in PATH", args) from e

        return result.stdout

    def run_with_namespace(self, ctx: RunContext, namespace: str, *args: str) -> str:
        if namespace:
            args = (*args, "-n", namespace)
        return self.run(ctx, *args)

    def run_json(self, ctx: RunContext, *args: str) -> bytes:
        output = self.run(ctx, *args, "-o", "json")
        try:
            json.loads(output)
        except json.JSONDecodeError as e:
            raise CollaboratorError(
                f"kubectl {' '.join(args)} returned non-JSON output", args
            ) from e
        return output.encode("utf-8")
