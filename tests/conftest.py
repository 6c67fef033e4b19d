"""Shared pytest fixtures for LLM Gatekeeper tests."""

import logging

import pytest
import structlog

from llm_gatekeeper.core.clock import ManualClock
from llm_gatekeeper.sdk.service import reset_ai_service


@pytest.fixture
def clock():
    """Simulated clock starting at 2023-11-14 22:13:20 UTC."""
    return ManualClock()


@pytest.fixture(autouse=True)
def fresh_shared_service():
    """Never leak the process-wide service between tests."""
    reset_ai_service()
    yield
    reset_ai_service()


@pytest.fixture(autouse=True)
def fresh_logging():
    """Undo logging setup done by CLI invocations."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
