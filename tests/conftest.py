"""Shared fixtures: in-memory registry and a fake camera network."""

import pytest

from tests.fakes import FakeNetwork, FakeRegistry


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def network_config():
    return {
        "default_ports": [80, 8080],
        "default_username": "admin",
        "default_password": "admin",
        "request_timeout": 0.2,
    }
