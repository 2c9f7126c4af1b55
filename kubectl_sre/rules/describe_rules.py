import re

from kubectl_sre.model import IssueCategory, ResourceDescription, Severity
from kubectl_sre.rules.base_rule import IssueRule

# ----------------------------
# `kubectl describe` text heuristics
# ----------------------------

DESCRIBE_PATTERNS = (
    (r"ImagePullBackOff", Severity.CRITICAL, IssueCategory.IMAGE_PULL, "Image pull failing"),
    (r"ErrImagePull", Severity.CRITICAL, IssueCategory.IMAGE_PULL, "Error pulling image"),
    (r"CrashLoopBackOff", Severity.CRITICAL, IssueCategory.CRASH, "Container crash loop"),
    (r"OOMKilled", Severity.CRITICAL, IssueCategory.RESOURCE_LIMIT, "Container killed due to OOM"),
    (r"Insufficient cpu", Severity.WARNING, IssueCategory.SCHEDULING, "Insufficient CPU for scheduling"),
    (r"Insufficient memory", Severity.WARNING, IssueCategory.SCHEDULING, "Insufficient memory for scheduling"),
    (r"FailedScheduling", Severity.WARNING, IssueCategory.SCHEDULING, "Pod scheduling failed"),
    (r"FailedMount", Severity.WARNING, IssueCategory.STORAGE, "Volume mount failed"),
    (r"FailedAttach", Severity.WARNING, IssueCategory.STORAGE, "Volume attach failed"),
)


class DescribeTextRule(IssueRule):
    """
    Fallback detection for kinds without a typed status record
    (statefulsets, services, jobs, ...).

    Patterns are checked in table order. The issue id is built from
    resource type, category and name, so only the first matching pattern of
    each category produces an issue.
    """

    name = "DescribeText"
    category = IssueCategory.CONFIGURATION
    resource_kind = "description"
    priority = 100

    _compiled = [
        (re.compile(pattern), severity, category, message)
        for pattern, severity, category, message in DESCRIBE_PATTERNS
    ]

    def matches(self, status: ResourceDescription) -> bool:
        return bool(status.text)

    def explain(self, status: ResourceDescription):
        issues = []
        seen: set[IssueCategory] = set()
        for regex, severity, category, message in self._compiled:
            if category in seen or not regex.search(status.text):
                continue
            seen.add(category)
            issues.append(
                self.issue(
                    (status.resource_type, category.value, status.name),
                    status.resource_type,
                    status.name,
                    message,
                    namespace=status.namespace,
                    category=category,
                    severity=severity,
                )
            )
        return issues
