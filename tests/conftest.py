"""Shared test fixtures for the Flow Deployer test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("RETELL_API_KEY", "test-retell-key-123")
    os.environ.setdefault("APP_URL", "https://portal.example.com")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def retell_client():
    """A RetellClient stand-in with an llm-bound agent and no existing tools."""
    from flow_deployer.services.retell_client import RetellClient

    client = MagicMock(spec=RetellClient)
    client.get_agent.return_value = {"response_engine": {"type": "retell-llm", "llm_id": "llm_1"}}
    client.get_llm.return_value = {"llm_id": "llm_1", "general_tools": []}
    client.update_llm.return_value = {}
    client.update_agent.return_value = {}
    return client
