import glob
import importlib.util
import logging
import os
from typing import Any

import yaml

from kubectl_sre.errors import ConfigError
from kubectl_sre.model import IssueCategory, Risk, Severity
from kubectl_sre.rules.base_rule import IssueRule

logger = logging.getLogger(__name__)

RULES_FOLDER = os.path.join(os.path.dirname(__file__), "rules")
PLAYBOOKS_FOLDER = os.path.join(os.path.dirname(__file__), "playbooks")

RESOURCE_KINDS = {"pod", "deployment", "node", "description"}

# ----------------------------
# Dynamic Rule Loader
# ----------------------------


def validate_rule(rule: IssueRule):
    required_fields = ["name", "category", "severity", "resource_kind", "priority"]
    for field in required_fields:
        if not hasattr(rule, field):
            raise ConfigError(f"Rule {rule} missing required field '{field}'")

    if not isinstance(rule.name, str) or not rule.name:
        raise ConfigError("Rule.name must be a non-empty string")
    if not isinstance(rule.category, IssueCategory):
        raise ConfigError(f"Rule {rule.name}.category must be an IssueCategory")
    if rule.severity is not None and not isinstance(rule.severity, Severity):
        raise ConfigError(f"Rule {rule.name}.severity must be a Severity or None")
    if rule.resource_kind not in RESOURCE_KINDS:
        raise ConfigError(
            f"Rule {rule.name}.resource_kind must be one of {sorted(RESOURCE_KINDS)}"
        )
    if not isinstance(rule.priority, int) or isinstance(rule.priority, bool):
        raise ConfigError(f"Rule {rule.name}.priority must be an integer")
    if not (0 <= rule.priority <= 1000):
        raise ConfigError(f"Rule {rule.name}.priority must be between 0 and 1000")


def load_rules(rule_folder=None) -> list[IssueRule]:
    """
    Instantiate every IssueRule subclass defined in the *.py files of
    `rule_folder`. Rules are returned ordered by (priority, name).
    """
    if rule_folder is None:
        rule_folder = RULES_FOLDER

    rules: list[IssueRule] = []

    for file in sorted(glob.glob(os.path.join(rule_folder, "*.py"))):
        if os.path.basename(file) == "base_rule.py":
            continue
        module_name = os.path.splitext(os.path.basename(file))[0]
        spec = importlib.util.spec_from_file_location(module_name, file)
        if spec is None or spec.loader is None:
            continue
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        for attr in dir(module):
            cls = getattr(module, attr)
            if (
                isinstance(cls, type)
                and issubclass(cls, IssueRule)
                and cls is not IssueRule
                and cls.__module__ == module.__name__
            ):
                rules.append(cls())

    # ---- CONTRACT VALIDATION ----
    for rule in rules:
        validate_rule(rule)

    logger.debug("loaded %d rules from %s", len(rules), rule_folder)
    return sorted(rules, key=lambda r: (r.priority, r.name))


# ----------------------------
# Remediation playbooks
# ----------------------------

STEP_FIELDS = {
    "action",
    "description",
    "command",
    "args",
    "risk",
    "automated",
    "resource_types",
}
PLAYBOOK_FIELDS = {"category", "guidance", "steps"}


def validate_playbook(entry: Any, source: str = "<playbook>") -> None:
    """
    One playbook entry describes the remediation of one issue category:

        category: crash
        guidance: optional text added to plan notes
        steps:
          - action: Restart pod
            description: ...
            command: kubectl
            args: [delete, pod, "{name}", -n, "{namespace}"]
            risk: low
            automated: true
            resource_types: [pod]
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"{source}: each playbook entry must be a mapping")

    unknown = set(entry) - PLAYBOOK_FIELDS
    if unknown:
        raise ConfigError(f"{source}: unknown playbook keys {sorted(unknown)}")

    category = entry.get("category")
    try:
        IssueCategory(category)
    except ValueError:
        raise ConfigError(f"{source}: unknown category {category!r}") from None

    if "guidance" in entry and not isinstance(entry["guidance"], str):
        raise ConfigError(f"{source}: {category}.guidance must be a string")

    steps = entry.get("steps", [])
    if not isinstance(steps, list):
        raise ConfigError(f"{source}: {category}.steps must be a list")

    for index, step in enumerate(steps):
        where = f"{source}: {category}.steps[{index}]"
        if not isinstance(step, dict):
            raise ConfigError(f"{where} must be a mapping")
        unknown = set(step) - STEP_FIELDS
        if unknown:
            raise ConfigError(f"{where} has unknown keys {sorted(unknown)}")
        for key in ("action", "description"):
            if not isinstance(step.get(key), str) or not step[key]:
                raise ConfigError(f"{where}.{key} must be a non-empty string")
        if "command" in step and not isinstance(step["command"], str):
            raise ConfigError(f"{where}.command must be a string")
        args = step.get("args", [])
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigError(f"{where}.args must be a list of strings")
        if args and not step.get("command"):
            raise ConfigError(f"{where}.args given without a command")
        try:
            Risk(step.get("risk", "low"))
        except ValueError:
            raise ConfigError(f"{where}.risk must be low, medium or high") from None
        if not isinstance(step.get("automated", False), bool):
            raise ConfigError(f"{where}.automated must be a boolean")
        resource_types = step.get("resource_types", [])
        if not isinstance(resource_types, list) or not all(
            isinstance(t, str) for t in resource_types
        ):
            raise ConfigError(f"{where}.resource_types must be a list of strings")


def load_playbook_file(path: str) -> list[dict[str, Any]]:
    try:
        with open(path, encoding="utf-8") as f:
            spec = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    if not spec:  # skip empty YAML files
        return []
    if isinstance(spec, dict):
        spec = [spec]
    if not isinstance(spec, list):
        raise ConfigError(f"{path}: YAML content must be a mapping or a list")

    for entry in spec:
        validate_playbook(entry, source=os.path.basename(path))
    return spec


def load_playbooks(playbook_folder=None) -> list[dict[str, Any]]:
    """
    Read every *.yaml playbook in the folder, in file name order.
    """
    if playbook_folder is None:
        playbook_folder = PLAYBOOKS_FOLDER
    if not os.path.isdir(playbook_folder):
        raise ConfigError(f"playbook folder not found: {playbook_folder}")

    entries: list[dict[str, Any]] = []
    for yfile in sorted(glob.glob(os.path.join(playbook_folder, "*.yaml"))):
        entries.extend(load_playbook_file(yfile))
    logger.debug("loaded %d playbook entries from %s", len(entries), playbook_folder)
    return entries
