import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from kubectl_sre.loader import load_playbooks
from kubectl_sre.model import (
    DiagnosticReport,
    Issue,
    IssueCategory,
    RemediationStep,
    Risk,
    SREPlan,
)
from kubectl_sre.providers.registry import PROVIDERS

logger = logging.getLogger(__name__)

NO_ISSUES_SUMMARY = "No issues found, no remediation needed"
NO_STEPS_NOTES = (
    "No automated remediation available for detected issues",
    "Manual investigation recommended",
)

# ----------------------------
# Handler records
# ----------------------------


@dataclass(frozen=True)
class StepTemplate:
    action: str
    description: str
    command: str = ""
    args: tuple[str, ...] = ()
    risk: Risk = Risk.LOW
    automated: bool = False
    # empty -> applies to every resource type
    resource_types: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepTemplate":
        return cls(
            action=data["action"],
            description=data["description"],
            command=data.get("command", ""),
            args=tuple(data.get("args", [])),
            risk=Risk(data.get("risk", "low")),
            automated=bool(data.get("automated", False)),
            resource_types=frozenset(t.lower() for t in data.get("resource_types", [])),
        )

    def applies_to(self, resource_type: str) -> bool:
        return not self.resource_types or resource_type.lower() in self.resource_types

    def render(self, name: str, namespace: str, resource_type: str) -> RemediationStep:
        values = {
            "{name}": name,
            "{namespace}": namespace,
            "{resource_type}": resource_type,
        }
        args = []
        for arg in self.args:
            for placeholder, value in values.items():
                arg = arg.replace(placeholder, value)
            args.append(arg)
        return RemediationStep(
            order=0,
            action=self.action,
            description=self.description,
            command=self.command,
            args=args,
            risk=self.risk,
            automated=self.automated,
        )


@dataclass(frozen=True)
class RemediationHandler:
    category: IssueCategory
    steps: tuple[StepTemplate, ...] = ()
    guidance: str = ""


class RemediationRegistry:
    """
    Strategy table: issue category -> RemediationHandler.

    Provider overlays and extra playbook folders register entries here; plan
    synthesis only ever looks categories up.
    """

    def __init__(self, handlers: Iterable[RemediationHandler] = ()):
        self._handlers: dict[IssueCategory, RemediationHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: RemediationHandler, replace: bool = False) -> None:
        """
        Add a handler. Without `replace`, steps are appended to an existing
        handler of the same category and a non-empty guidance wins.
        """
        current = self._handlers.get(handler.category)
        if current is None or replace:
            self._handlers[handler.category] = handler
            return
        self._handlers[handler.category] = RemediationHandler(
            category=handler.category,
            steps=current.steps + handler.steps,
            guidance=handler.guidance or current.guidance,
        )

    def register_playbooks(self, entries: list[dict[str, Any]]) -> None:
        for entry in entries:
            self.register(
                RemediationHandler(
                    category=IssueCategory(entry["category"]),
                    steps=tuple(StepTemplate.from_dict(s) for s in entry.get("steps", [])),
                    guidance=entry.get("guidance", ""),
                )
            )

    def handler_for(self, category: IssueCategory) -> RemediationHandler | None:
        return self._handlers.get(category)

    def categories(self) -> list[IssueCategory]:
        return list(self._handlers)

    def guidance_for(self, category: IssueCategory) -> str:
        handler = self._handlers.get(category)
        return handler.guidance if handler else ""

    def steps_for(
        self, issue: Issue, resource_name: str = "", namespace: str = ""
    ) -> list[RemediationStep]:
        handler = self._handlers.get(issue.category)
        if handler is None:
            return []

        name = issue.resource_name or resource_name
        ns = issue.namespace or namespace
        resource_type = issue.resource_type
        return [
            template.render(name, ns, resource_type)
            for template in handler.steps
            if template.applies_to(resource_type)
        ]


def default_registry(extra_folders: Iterable[str] = ()) -> RemediationRegistry:
    """
    Built-in playbooks plus provider guidance, then any extra playbook folders.
    """
    registry = RemediationRegistry()
    registry.register_playbooks(load_playbooks())

    for overlay in PROVIDERS.values():
        for category, text in overlay.GUIDANCE.items():
            registry.register(RemediationHandler(category=category, guidance=text))

    for folder in extra_folders:
        registry.register_playbooks(load_playbooks(folder))
    return registry


# ----------------------------
# Plan synthesis
# ----------------------------


def _plan_subject(report: DiagnosticReport) -> str:
    if report.resource_name:
        return f"{report.resource_type}/{report.resource_name}"
    if report.namespace:
        return f"namespace {report.namespace}"
    return "cluster"


@dataclass
class _PlanBuilder:
    steps: list[RemediationStep] = field(default_factory=list)
    seen: set[tuple[str, str, tuple[str, ...]]] = field(default_factory=set)

    def add(self, step: RemediationStep) -> None:
        key = (step.action, step.command, tuple(step.args))
        if key in self.seen:
            return
        self.seen.add(key)
        step.order = len(self.steps) + 1
        self.steps.append(step)


def generate_remediation_plan(
    report: DiagnosticReport, registry: RemediationRegistry | None = None
) -> SREPlan:
    """
    Walk the report's issues in order and append each category's steps.

    Steps are numbered 1..n across the whole plan. A step that renders
    identically to an earlier one (same action, command and args) is emitted
    once. Category guidance, when registered, is added to the notes.
    """
    registry = registry or default_registry()
    plan = SREPlan(summary=f"Remediation plan for {_plan_subject(report)}")

    if not report.issues:
        plan.summary = NO_ISSUES_SUMMARY
        return plan

    builder = _PlanBuilder()
    for issue in report.issues:
        for step in registry.steps_for(issue, report.resource_name, report.namespace):
            builder.add(step)

        guidance = registry.guidance_for(issue.category)
        if guidance and guidance not in plan.notes:
            plan.notes.append(guidance)

    plan.steps = builder.steps
    if not plan.steps:
        plan.notes.extend(NO_STEPS_NOTES)

    logger.debug(
        "plan for %s: %d issues -> %d steps",
        _plan_subject(report), len(report.issues), len(plan.steps),
    )
    return plan
