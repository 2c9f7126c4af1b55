import json
import os

import pytest

from kubectl_sre.client import RunContext
from kubectl_sre.detector import IssueDetector
from kubectl_sre.tests.k8s_factories import FakeK8sClient

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(name):
    with open(os.path.join(FIXTURES_DIR, name), encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def ctx():
    return RunContext(timeout=None)


@pytest.fixture
def client():
    return FakeK8sClient()


@pytest.fixture(scope="session")
def detector():
    return IssueDetector()


@pytest.fixture
def fixture():
    return load_fixture
