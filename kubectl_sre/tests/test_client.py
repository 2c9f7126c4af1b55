import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from kubectl_sre.client import KubectlClient, RunContext
from kubectl_sre.errors import CollaboratorError


def completed(stdout):
    result = MagicMock()
    result.stdout = stdout
    return result


@patch("kubectl_sre.client.subprocess.run")
def test_run_builds_the_command(mock_run):
    mock_run.return_value = completed("pod/web-1 deleted\n")
    client = KubectlClient(context="prod", kubeconfig="/tmp/kubeconfig")

    output = client.run_with_namespace(RunContext(timeout=None), "shop", "delete", "pod", "web-1")

    assert output == "pod/web-1 deleted\n"
    args, kwargs = mock_run.call_args
    assert args[0] == [
        "kubectl", "delete", "pod", "web-1", "-n", "shop",
        "--context", "prod", "--kubeconfig", "/tmp/kubeconfig",
    ]
    assert kwargs["shell"] is False
    assert kwargs["check"] is True
    assert kwargs["timeout"] is None


@patch("kubectl_sre.client.subprocess.run")
def test_run_json_appends_output_flag(mock_run):
    mock_run.return_value = completed(json.dumps({"items": []}))

    data = KubectlClient().run_json(RunContext(timeout=None), "get", "pods", "-A")

    assert json.loads(data) == {"items": []}
    assert mock_run.call_args[0][0] == ["kubectl", "get", "pods", "-A", "-o", "json"]


@patch("kubectl_sre.client.subprocess.run")
def test_run_json_rejects_non_json(mock_run):
    mock_run.return_value = completed("No resources found")

    with pytest.raises(CollaboratorError, match="non-JSON"):
        KubectlClient().run_json(RunContext(timeout=None), "get", "pods")


@patch("kubectl_sre.client.subprocess.run")
def test_command_failure_keeps_stderr(mock_run):
    mock_run.side_effect = subprocess.CalledProcessError(
        1, ["kubectl"], stderr='Error from server (NotFound): pods "web-1" not found\n'
    )

    with pytest.raises(CollaboratorError) as exc:
        KubectlClient().run(RunContext(timeout=None), "get", "pod", "web-1")

    assert "NotFound" in str(exc.value)
    assert exc.value.command_args == ("get", "pod", "web-1")
    assert exc.value.stderr.startswith("Error from server")


@patch("kubectl_sre.client.subprocess.run")
def test_timeout(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(["kubectl"], 5)

    with pytest.raises(CollaboratorError, match="timed out"):
        KubectlClient().run(RunContext(timeout=5), "get", "nodes")
    assert 0 < mock_run.call_args[1]["timeout"] <= 5


@patch("kubectl_sre.client.subprocess.run")
def test_missing_binary(mock_run):
    mock_run.side_effect = FileNotFoundError()

    with pytest.raises(CollaboratorError, match="not found in PATH"):
        KubectlClient(kubectl="kubectl-1.30").run(RunContext(timeout=None), "version")


@patch("kubectl_sre.client.subprocess.run")
def test_expired_context_skips_the_call(mock_run):
    ctx = RunContext(timeout=1.0, started_at=0.0)

    with pytest.raises(CollaboratorError, match="deadline exceeded"):
        KubectlClient().run(ctx, "get", "nodes")
    mock_run.assert_not_called()
