"""Pytest configuration and shared fixtures."""
from unittest.mock import Mock

import pytest

from deepproxy import CallbackHandler, RecordingHandler, wrap
import deepproxy.config as config_module


@pytest.fixture(autouse=True)
def reset_default_config():
    """Restore the default config after each test."""
    token = config_module._default_config.set(config_module.DeepProxyConfig())
    yield
    config_module._default_config.reset(token)


@pytest.fixture
def set_stub():
    """Accepting set operation that records its calls."""
    return Mock(return_value=True)


@pytest.fixture
def delete_stub():
    """delete_property operation that records its calls."""
    return Mock(return_value=True)


@pytest.fixture
def stub_proxy(set_stub, delete_stub):
    """Factory wrapping a tree with the stub operations."""
    def _create(tree):
        return wrap(tree, CallbackHandler(set=set_stub, delete_property=delete_stub))
    return _create


@pytest.fixture
def recorder():
    return RecordingHandler()
