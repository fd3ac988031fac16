"""Unit tests for logging setup."""

import logging

import pytest
import structlog

from content_pipeline.core.logging import bind_context, clear_context, configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()


def test_configure_quiets_http_stack():
    """Test urllib3 request chatter is raised to WARNING."""
    configure_logging("DEBUG", json_output=False)
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_bound_context_is_merged():
    """Test bound fields appear on every event until cleared."""
    bind_context(trace_id="abc123")
    assert structlog.contextvars.get_contextvars() == {"trace_id": "abc123"}

    clear_context()
    assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.parametrize(
    "json_output,renderer",
    [(True, structlog.processors.JSONRenderer), (False, structlog.dev.ConsoleRenderer)],
)
def test_renderer_follows_output_mode(json_output, renderer):
    """Test JSON and console rendering both merge the bound trace context first."""
    configure_logging("INFO", json_output=json_output)
    processors = structlog.get_config()["processors"]

    assert processors[0] is structlog.contextvars.merge_contextvars
    assert isinstance(processors[-1], renderer)
