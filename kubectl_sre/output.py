import json
from typing import Any

import yaml

from kubectl_sre.model import (
    ClusterHealthSummary,
    DiagnosticReport,
    EventInfo,
    HealthCheckResult,
    Issue,
    LogEntry,
    SREPlan,
    to_dict,
)
from kubectl_sre.providers.base import ProviderClusterHealth

# ----------------------------
# Output formatting
# ----------------------------


def output_result(result: Any, fmt: str = "text") -> None:
    """
    Print a report, health summary, plan, provider health or a list of
    events / log entries / issues.
    - json and yaml emit the full record
    - text is a short human-readable rendering
    """
    if fmt == "json":
        print(json.dumps(to_dict(result), indent=2))
        return

    if fmt == "yaml":
        print(yaml.safe_dump(to_dict(result), sort_keys=False))
        return

    if isinstance(result, DiagnosticReport):
        _print_report(result)
    elif isinstance(result, ClusterHealthSummary):
        _print_cluster_health(result)
    elif isinstance(result, HealthCheckResult):
        _print_check(result)
    elif isinstance(result, SREPlan):
        _print_plan(result)
    elif isinstance(result, ProviderClusterHealth):
        _print_provider(result)
    elif isinstance(result, list):
        _print_list(result)
    else:
        print(result)


def _print_issues(issues: list[Issue]) -> None:
    if not issues:
        return
    print("\nIssues:")
    for issue in issues:
        where = f"{issue.namespace}/" if issue.namespace else ""
        print(
            f"  - [{issue.severity.value}] {issue.category.value}: {issue.message}"
            f" ({issue.resource_type}/{where}{issue.resource_name})"
        )
        if issue.details:
            print(f"      {issue.details}")


def _print_suggestions(suggestions: list[str]) -> None:
    if suggestions:
        print("\nSuggestions:")
        for s in suggestions:
            print(f"  - {s}")


def _print_report(report: DiagnosticReport) -> None:
    print(f"Scope: {report.scope.value}")
    print(f"Summary: {report.summary}")
    _print_issues(report.issues)

    if report.events:
        print("\nEvents:")
        for e in report.events:
            print(f"  {e.type:<8} {e.reason:<20} {e.object_kind}/{e.object_name}: {e.message}")

    errors = [entry for entry in report.logs if entry.is_error]
    if report.logs:
        print(f"\nLogs: {len(report.logs)} lines, {len(errors)} errors")
        for entry in errors:
            print(f"  {entry.message}")

    if report.skipped_items:
        print(f"\nWarning: {report.skipped_items} items could not be decoded")


def _print_cluster_health(summary: ClusterHealthSummary) -> None:
    print(f"Cluster health: {summary.overall_health.value} (score: {summary.score}/100)")
    for label, component in (
        ("Nodes", summary.node_health),
        ("Workloads", summary.workload_health),
        ("Storage", summary.storage_health),
        ("Network", summary.network_health),
    ):
        print(f"  {label:<10} {component.status.value:<9} {component.score:>3}  {component.details}")
    print(
        f"\nPods: {summary.total_pods} total, {summary.running_pods} running, "
        f"{summary.pending_pods} pending, {summary.failed_pods} failed"
    )
    print(f"Issues: {summary.critical_issues} critical, {summary.warning_issues} warnings")
    _print_issues(summary.issues)


def _print_check(result: HealthCheckResult) -> None:
    print(f"{result.summary}")
    print(f"Score: {result.score}/100 ({'healthy' if result.healthy else 'unhealthy'})")
    _print_issues(result.issues)
    _print_suggestions(result.suggestions)


def _print_plan(plan: SREPlan) -> None:
    print(plan.summary)
    for step in plan.steps:
        flags = f"risk={step.risk.value}"
        if step.automated:
            flags += ", automated"
        print(f"\n{step.order}. {step.action} ({flags})")
        print(f"   {step.description}")
        if step.command:
            print(f"   $ {' '.join([step.command, *step.args])}")
    if plan.notes:
        print("\nNotes:")
        for note in plan.notes:
            print(f"  - {note}")


def _print_provider(health: ProviderClusterHealth) -> None:
    print(f"Provider: {health.provider}")
    print(f"Node pools healthy: {health.node_pools_healthy}")
    print(f"Workload identity OK: {health.identity_ok}")
    if health.node_pool_statuses:
        print("\nNode pools:")
        for pool in health.node_pool_statuses:
            extra = ", spot" if pool.spot else ""
            extra += ", preemptible" if pool.preemptible else ""
            print(
                f"  {pool.name:<20} {pool.status:<9} "
                f"{pool.ready_count}/{pool.node_count} ready{extra}"
            )
    _print_issues(health.issues)
    if health.recommendations:
        print("\nRecommendations:")
        for r in health.recommendations:
            print(f"  - {r}")


def _print_list(items: list[Any]) -> None:
    if not items:
        print("Nothing found")
        return
    if all(isinstance(item, Issue) for item in items):
        _print_issues(items)
        return
    for item in items:
        if isinstance(item, EventInfo):
            print(f"{item.type:<8} {item.reason:<20} {item.object_kind}/{item.object_name}: {item.message}")
        elif isinstance(item, LogEntry):
            level = item.level.upper() or "-"
            print(f"[{level:<5}] {item.message}")
        else:
            print(f"  - {item}")
