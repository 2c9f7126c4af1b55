import logging
from typing import Any

from kubectl_sre.loader import load_rules
from kubectl_sre.model import (
    DeploymentStatus,
    Issue,
    IssueCategory,
    NodeStatus,
    PodStatus,
    ResourceDescription,
)
from kubectl_sre.rules.base_rule import IssueRule

logger = logging.getLogger(__name__)


class IssueDetector:
    """
    Applies the rule tables to normalized status records.

    Every rule of the record's kind is evaluated; the issues of all matching
    rules are concatenated in rule order. Detection has no side effects and
    holds no per-call state, so one detector can serve concurrent callers.
    """

    def __init__(
        self,
        rules: list[IssueRule] | None = None,
        enabled_categories: list[str] | None = None,
        disabled_categories: list[str] | None = None,
    ):
        if rules is None:
            rules = load_rules()
        self.rules = list(rules)
        self.enabled_categories = set(enabled_categories or [])
        self.disabled_categories = set(disabled_categories or [])

    def _rules_for(self, kind: str) -> list[IssueRule]:
        return [rule for rule in self.rules if rule.resource_kind == kind]

    def _wanted(self, issue: Issue) -> bool:
        # Rules may emit categories other than the one they declare
        category = issue.category.value
        if self.enabled_categories and category not in self.enabled_categories:
            return False
        return category not in self.disabled_categories

    def _run(self, kind: str, status: Any) -> list[Issue]:
        issues: list[Issue] = []
        for rule in self._rules_for(kind):
            if not rule.matches(status):
                continue
            found = rule.explain(status)

            # ---- explain() contract enforcement ----
            if not isinstance(found, list):
                raise TypeError(f"{rule.name}.explain() must return a list")
            for issue in found:
                if not isinstance(issue, Issue):
                    raise TypeError(f"{rule.name}.explain() must return Issue values")
                if not isinstance(issue.category, IssueCategory):
                    raise ValueError(f"{rule.name} produced an untyped category")

            logger.debug("rule %s matched %d issue(s)", rule.name, len(found))
            issues.extend(i for i in found if self._wanted(i))
        return issues

    def detect_pod_issues(self, pod: PodStatus) -> list[Issue]:
        return self._run("pod", pod)

    def detect_deployment_issues(self, deployment: DeploymentStatus) -> list[Issue]:
        return self._run("deployment", deployment)

    def detect_node_issues(self, node: NodeStatus) -> list[Issue]:
        return self._run("node", node)

    def detect_from_description(
        self, resource_type: str, name: str, namespace: str, text: str
    ) -> list[Issue]:
        description = ResourceDescription(
            resource_type=resource_type, name=name, namespace=namespace, text=text
        )
        return self._run("description", description)
