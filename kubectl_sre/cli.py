import argparse
import logging
import sys

from kubectl_sre.config import PROVIDER_NAMES, load_settings
from kubectl_sre.errors import SREError
from kubectl_sre.output import output_result
from kubectl_sre.providers.aks import PROVIDER_COMPARISON, AKSOverlay
from kubectl_sre.providers.registry import get_provider
from kubectl_sre.sre import SREAgent

logger = logging.getLogger("kubectl_sre")


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(format="[%(levelname)s] %(name)s: %(message)s")
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubectl-sre",
        description="Diagnose Kubernetes cluster health and plan remediation",
    )

    parser.add_argument(
        "--format",
        choices=["text", "json", "yaml"],
        default="text",
        help="Output format (text, json, yaml)",
    )
    parser.add_argument("--config", help="Path to a YAML settings file")
    parser.add_argument("--debug", action="store_true", default=None)
    parser.add_argument("--kubectl", help="kubectl binary to run")
    parser.add_argument("--context", help="kube context to use")
    parser.add_argument("--timeout", type=float, help="Seconds allowed per request")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("health", help="Health score of the cluster, a namespace or a resource")
    p.add_argument("resource_type", nargs="?")
    p.add_argument("name", nargs="?")
    p.add_argument("-n", "--namespace", default="")

    p = sub.add_parser("diagnose", help="Diagnostic report for the cluster, a namespace or a resource")
    p.add_argument("resource_type", nargs="?")
    p.add_argument("name", nargs="?")
    p.add_argument("-n", "--namespace", default="")

    p = sub.add_parser("issues", help="List detected issues")
    p.add_argument("-n", "--namespace", default="")

    p = sub.add_parser("plan", help="Remediation plan for one resource")
    p.add_argument("resource_type")
    p.add_argument("name")
    p.add_argument("-n", "--namespace", default="")

    p = sub.add_parser("events", help="Recent events")
    p.add_argument("-n", "--namespace", default="")
    p.add_argument("--resource", default="", help="Only events of this object name")

    p = sub.add_parser("logs", help="Pod logs with error classification")
    p.add_argument("pod")
    p.add_argument("-n", "--namespace", default="")
    p.add_argument("--tail", type=int, default=None)
    p.add_argument("--since", default="")

    p = sub.add_parser("provider", help="Managed-Kubernetes specific checks")
    p.add_argument("name", choices=PROVIDER_NAMES)
    p.add_argument("--checks", action="store_true", help="List diagnostic checks")
    p.add_argument("--notes", action="store_true", help="List health monitoring notes")
    p.add_argument("--compare", action="store_true", help="Show the AKS/GKE/EKS comparison")

    p = sub.add_parser("restart-pod", help="Delete a pod so its controller recreates it")
    p.add_argument("name")
    p.add_argument("-n", "--namespace", default="")

    return parser


def run(args: argparse.Namespace, client=None) -> None:
    settings = load_settings(args.config)
    if args.debug is not None:
        settings.debug = args.debug
    if args.kubectl:
        settings.kubectl = args.kubectl
    if args.context:
        settings.context = args.context
    if args.timeout is not None:
        settings.timeout = args.timeout or None

    configure_logging(settings.debug)

    agent = SREAgent(client=client, settings=settings)
    ctx = agent.context()

    if args.command == "health":
        if args.resource_type and args.name:
            result = agent.health.check_resource(
                ctx, args.resource_type, args.name, args.namespace
            )
        elif args.namespace:
            result = agent.health.check_namespace(ctx, args.namespace)
        else:
            result = agent.health.check_cluster(ctx)

    elif args.command == "diagnose":
        if args.resource_type and args.name:
            result = agent.diagnostics.diagnose_resource(
                ctx, args.resource_type, args.name, args.namespace
            )
        elif args.namespace:
            result = agent.diagnostics.diagnose_namespace(ctx, args.namespace)
        else:
            result = agent.diagnostics.diagnose_cluster(ctx)

    elif args.command == "issues":
        if args.namespace:
            result = agent.diagnostics.detect_issues_in_namespace(ctx, args.namespace)
        else:
            result = agent.diagnostics.detect_cluster_issues(ctx)

    elif args.command == "plan":
        result = agent.plan_remediation(ctx, args.resource_type, args.name, args.namespace)

    elif args.command == "events":
        result = agent.diagnostics.get_events(ctx, args.namespace, args.resource)

    elif args.command == "logs":
        tail = settings.log_tail_lines if args.tail is None else args.tail
        result = agent.diagnostics.get_logs_with_analysis(
            ctx, args.pod, args.namespace or "default", tail, args.since
        )

    elif args.command == "provider":
        overlay = agent.provider
        if overlay is None or overlay.name != args.name:
            overlay = get_provider(args.name, agent.client, settings.debug)
        if args.checks:
            checks = overlay.diagnostic_checks()
            if isinstance(overlay, AKSOverlay):
                checks += overlay.managed_identity_checks()
            result = checks
        elif args.notes:
            result = overlay.health_notes()
        elif args.compare:
            result = [f"{k}: {v}" for k, v in PROVIDER_COMPARISON.items()]
        else:
            result = overlay.check_cluster_health(ctx)

    elif args.command == "restart-pod":
        output = agent.restart_pod(ctx, args.name, args.namespace)
        result = output.strip() or f"pod {args.name} deleted"

    else:  # pragma: no cover - argparse rejects unknown commands
        raise SREError(f"unknown command {args.command}")

    output_result(result, args.format)


def main(argv=None, client=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        run(args, client=client)
    except SREError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
