import textwrap

import pytest

from kubectl_sre.detector import IssueDetector
from kubectl_sre.errors import ConfigError
from kubectl_sre.extractor import parse_pod
from kubectl_sre.loader import RESOURCE_KINDS, load_rules, validate_rule
from kubectl_sre.model import (
    CORE_CATEGORIES,
    DEFAULT_SEVERITY,
    IssueCategory,
    PodStatus,
    Severity,
)
from kubectl_sre.rules.base_rule import IssueRule
from kubectl_sre.tests import k8s_factories as k8s


class BadPriorityRule(IssueRule):
    name = "BadPriority"
    priority = -1


class BadKindRule(IssueRule):
    name = "BadKind"
    resource_kind = "configmap"


class BadCategoryRule(IssueRule):
    name = "BadCategory"
    category = "crash"


def test_priority_range_enforced():
    with pytest.raises(ConfigError):
        validate_rule(BadPriorityRule())


def test_resource_kind_enforced():
    with pytest.raises(ConfigError, match="resource_kind"):
        validate_rule(BadKindRule())


def test_category_must_be_typed():
    with pytest.raises(ConfigError, match="IssueCategory"):
        validate_rule(BadCategoryRule())


class BadExplainRule(IssueRule):
    name = "BadExplain"

    def matches(self, status):
        return True

    def explain(self, status):
        return {"category": "crash"}  # invalid


class BadItemRule(BadExplainRule):
    name = "BadItem"

    def explain(self, status):
        return ["Pod is broken"]


def test_explain_contract_enforced():
    detector = IssueDetector(rules=[BadExplainRule()])
    with pytest.raises(TypeError, match="must return a list"):
        detector.detect_pod_issues(PodStatus(name="p"))

    detector = IssueDetector(rules=[BadItemRule()])
    with pytest.raises(TypeError, match="Issue values"):
        detector.detect_pod_issues(PodStatus(name="p"))


def test_all_rules_have_metadata():
    rules = load_rules()
    assert rules
    for r in rules:
        assert r.name
        assert isinstance(r.category, IssueCategory)
        assert r.resource_kind in RESOURCE_KINDS
        assert 0 <= r.priority <= 1000


def test_rules_have_matches_and_explain():
    for r in load_rules():
        assert callable(getattr(r, "matches", None))
        assert callable(getattr(r, "explain", None))


def test_rules_are_sorted_by_priority_then_name():
    rules = load_rules()
    keys = [(r.priority, r.name) for r in rules]
    assert keys == sorted(keys)
    assert len({r.name for r in rules}) == len(rules)


def test_every_category_has_a_default_severity():
    assert set(DEFAULT_SEVERITY) == set(IssueCategory)
    assert all(isinstance(s, Severity) for s in DEFAULT_SEVERITY.values())


def test_core_categories_exclude_provider_overlays():
    assert IssueCategory.CRASH in CORE_CATEGORIES
    assert not any(c.value.startswith(("aks_", "gke_")) for c in CORE_CATEGORIES)


def test_rule_severity_falls_back_to_category_default():
    class Plain(IssueRule):
        name = "Plain"
        category = IssueCategory.STORAGE

    rule = Plain()
    assert rule.default_severity() is Severity.WARNING
    assert rule.default_severity(IssueCategory.NETWORK) is Severity.CRITICAL


def test_load_rules_from_custom_folder(tmp_path):
    (tmp_path / "custom_rules.py").write_text(
        textwrap.dedent(
            """
            from kubectl_sre.model import IssueCategory
            from kubectl_sre.rules.base_rule import IssueRule


            class EvictedPodRule(IssueRule):
                name = "EvictedPod"
                category = IssueCategory.NODE_PRESSURE
                resource_kind = "pod"
                priority = 5

                def matches(self, status):
                    return status.phase == "Failed" and status.labels.get("evicted") == "true"

                def explain(self, status):
                    return [
                        self.issue(
                            ("pod-evicted", status.name),
                            "pod",
                            status.name,
                            f"Pod {status.name} was evicted",
                            namespace=status.namespace,
                        )
                    ]
            """
        )
    )
    (tmp_path / "base_rule.py").write_text("raise RuntimeError('must be skipped')\n")

    rules = load_rules(str(tmp_path))
    assert [r.name for r in rules] == ["EvictedPod"]

    detector = IssueDetector(rules=rules)
    pod = parse_pod(k8s.pod(phase="Failed", labels={"evicted": "true"}))
    (issue,) = detector.detect_pod_issues(pod)
    assert issue.id == "pod-evicted-web-1"
    assert issue.severity is Severity.WARNING


def test_category_filters():
    pod = parse_pod(
        k8s.pod(
            phase="Failed",
            containers=[k8s.container(state="terminated", reason="OOMKilled")],
        )
    )
    only_limits = IssueDetector(enabled_categories=["resource_limit"])
    assert [i.category for i in only_limits.detect_pod_issues(pod)] == [
        IssueCategory.RESOURCE_LIMIT
    ]

    no_crash = IssueDetector(disabled_categories=["crash"])
    assert IssueCategory.CRASH not in {i.category for i in no_crash.detect_pod_issues(pod)}


def test_category_filters_apply_to_emitted_issues():
    # ContainerWaitingRule is declared "pending" but reports image pulls
    pod = parse_pod(
        k8s.pod(
            phase="Pending",
            ready=False,
            containers=[k8s.container(state="waiting", reason="ImagePullBackOff")],
        )
    )

    no_pulls = IssueDetector(disabled_categories=["image_pull"])
    assert IssueCategory.IMAGE_PULL not in {
        i.category for i in no_pulls.detect_pod_issues(pod)
    }

    only_pulls = IssueDetector(enabled_categories=["image_pull"])
    categories = {i.category for i in only_pulls.detect_pod_issues(pod)}
    assert categories == {IssueCategory.IMAGE_PULL}
