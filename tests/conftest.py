"""
Shared pytest fixtures for confbench tests.

The fakes stand in for the configuration backend and the metrics sink so the
run driver can be exercised without Consul or Kafka.
"""

import logging

import pytest

from confbench.backends import insert_leaf, split_key
from confbench.config import RunOptions
from confbench.errors import MetricsError
from confbench.topology import TopologyKind


class FakeBackend:
    """In-memory backend keyed by absolute path."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.gets = []
        self.recursive_gets = []

    def put_string(self, key, value):
        self.data[key] = value

    def get_string(self, key):
        self.gets.append(key)
        return self.data.get(key)

    def get_recursive(self, prefix):
        self.recursive_gets.append(prefix)
        root = prefix.rstrip("/")
        tree = {}
        for key, value in self.data.items():
            if key.startswith(root + "/"):
                insert_leaf(tree, split_key(key[len(root):]), value)
        return tree


class RecordingMetrics:
    def __init__(self, fail=False):
        self.samples = []
        self.fail = fail
        self.closed = False

    def send_tagged(self, value, metric, tags):
        if self.fail:
            raise MetricsError("sink unavailable")
        self.samples.append((value, metric, dict(tags)))

    def close(self):
        self.closed = True


@pytest.fixture
def logger():
    return logging.getLogger("confbench.tests")


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def recording_metrics():
    return RecordingMetrics()


@pytest.fixture
def make_options():
    def factory(**overrides):
        values = {
            "server_uris": ("memory://one",),
            "monitoring_uri": "stdout://",
            "structure": TopologyKind.SEPARATE,
            "parameter_number": 3,
            "process_number": 1,
            "skip_wait": True,
        }
        values.update(overrides)
        return RunOptions(**values)

    return factory
