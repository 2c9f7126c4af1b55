import pytest

from kubectl_sre.errors import ConfigError
from kubectl_sre.loader import load_playbook_file, load_playbooks, validate_playbook
from kubectl_sre.model import CORE_CATEGORIES, IssueCategory
from kubectl_sre.remediation import default_registry


def test_builtin_playbooks_are_valid():
    entries = load_playbooks()
    categories = {IssueCategory(e["category"]) for e in entries}

    assert CORE_CATEGORIES <= categories
    assert IssueCategory.AKS_NODE_POOL in categories
    assert IssueCategory.GKE_WORKLOAD_IDENTITY in categories


def test_provider_steps_use_cloud_clis():
    commands = {}
    for entry in load_playbooks():
        for step in entry.get("steps", []):
            if step.get("command"):
                commands.setdefault(entry["category"][:4], set()).add(step["command"])
    assert "az" in commands["aks_"] and "gcloud" not in commands["aks_"]
    assert "gcloud" in commands["gke_"] and "az" not in commands["gke_"]


def test_config_list_is_one_argument():
    entry = next(e for e in load_playbooks() if e["category"] == "configuration")
    assert ["get", "configmaps,secrets", "-n", "{namespace}"] in [s["args"] for s in entry["steps"]]


@pytest.mark.parametrize(
    "entry, message",
    [
        ("crash", "must be a mapping"),
        ({"category": "segfault"}, "unknown category"),
        ({"category": "crash", "runbook": "x"}, "unknown playbook keys"),
        ({"category": "crash", "guidance": 3}, "guidance must be a string"),
        ({"category": "crash", "steps": {"action": "x"}}, "steps must be a list"),
        ({"category": "crash", "steps": [{"action": "", "description": "d"}]}, "action"),
        ({"category": "crash", "steps": [{"action": "a", "description": "d", "args": ["x"]}]}, "without a command"),
        ({"category": "crash", "steps": [{"action": "a", "description": "d", "risk": "extreme"}]}, "risk"),
        ({"category": "crash", "steps": [{"action": "a", "description": "d", "automated": "yes"}]}, "automated"),
        ({"category": "crash", "steps": [{"action": "a", "description": "d", "command": "kubectl", "args": [1]}]}, "args"),
        ({"category": "crash", "steps": [{"action": "a", "description": "d", "when": "always"}]}, "unknown keys"),
    ],
)
def test_invalid_playbooks_are_rejected(entry, message):
    with pytest.raises(ConfigError, match=message):
        validate_playbook(entry, source="test.yaml")


def test_extra_playbook_folder(tmp_path):
    (tmp_path / "storage.yaml").write_text(
        "category: storage\n"
        "guidance: Our CSI driver needs a restart after zone failovers.\n"
        "steps:\n"
        "  - action: Restart CSI controller\n"
        "    description: Roll the CSI controller deployment\n"
        "    command: kubectl\n"
        "    args: [rollout, restart, deployment/csi-controller, -n, kube-system]\n"
        "    risk: medium\n"
    )
    (tmp_path / "empty.yaml").write_text("")

    registry = default_registry([str(tmp_path)])
    handler = registry.handler_for(IssueCategory.STORAGE)

    assert handler.steps[-1].action == "Restart CSI controller"
    assert len(handler.steps) == 3
    assert handler.guidance.startswith("Our CSI driver")


def test_invalid_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("- category: crash\n  steps: [unclosed\n")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_playbook_file(str(path))


def test_missing_folder(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_playbooks(str(tmp_path / "nope"))
