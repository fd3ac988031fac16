"""
Shared pytest fixtures for content_pipeline tests.
"""

import pytest
from unittest.mock import MagicMock

import requests

from content_pipeline.config import Settings
from content_pipeline.core.context import PipelineContext
from content_pipeline.core.models import (
    BodySchema,
    ContentType,
    ContentTypeSpec,
    Destination,
    Endpoint,
    FieldSpec,
    Intent,
    Message,
    ProcessedContent,
    Schema,
)
from content_pipeline.recovery import ErrorCoordinator


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(_env_file=None, log_json=False, backoff_delays=[1.0, 3.0, 5.0], max_workers=4)


@pytest.fixture
def make_response():
    """Factory for fake `requests.Response` objects."""

    def _make(status_code: int = 200, json_data=None, reason: str = "OK"):
        response = MagicMock()
        response.status_code = status_code
        response.reason = reason
        response.json.return_value = json_data if json_data is not None else {}
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
        return response

    return _make


@pytest.fixture
def session() -> MagicMock:
    """Fake HTTP session."""
    return MagicMock()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays passed to the injected sleep callable."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def coordinator(test_settings) -> ErrorCoordinator:
    return ErrorCoordinator(test_settings)


@pytest.fixture
def pipeline_context(test_settings, session, fake_sleep) -> PipelineContext:
    return PipelineContext(
        settings=test_settings,
        coordinator=ErrorCoordinator(test_settings),
        session=session,
        sleep=fake_sleep,
    )


@pytest.fixture
def sample_message() -> Message:
    """Blog submission with a hashtag and a priority line."""
    return Message(
        subject="New Blog Post: Launch Day",
        body="""We shipped the new release today. #blog #launch
priority: high
publish now

--
Alice""",
        sender="alice@example.com",
        timestamp="2026-01-05T10:00:00Z",
    )


@pytest.fixture
def main_site() -> Destination:
    """Main site destination, connected."""
    return Destination(
        name="main_site",
        base_url="https://main.example.com/",
        auth_kind="api_key",
        credentials="key-123",
        is_active=True,
    )


@pytest.fixture
def article_schema() -> Schema:
    """Destination schema exposing an article collection."""
    return Schema(
        name="main_site",
        endpoints=[
            Endpoint(path="/api/articles", method="GET"),
            Endpoint(
                path="/api/articles",
                method="POST",
                request_body=BodySchema(
                    type="object",
                    properties={
                        "title": {"type": "string"},
                        "body": {"type": "string"},
                        "author": {"type": "string"},
                        "type": {"type": "string"},
                    },
                    required=["title", "body"],
                ),
            ),
        ],
        content_types=[
            ContentTypeSpec(
                name="article",
                fields=[
                    FieldSpec("title", "string", True),
                    FieldSpec("body", "string", True),
                    FieldSpec("author", "string", False),
                    FieldSpec("published_at", "string", False),
                ],
            )
        ],
    )


@pytest.fixture
def article_content() -> ProcessedContent:
    """Classified article ready for transformation."""
    return ProcessedContent(
        type=ContentType.ARTICLE,
        intent=Intent.IMMEDIATE,
        fields={
            "title": "Launch Day",
            "body": "We shipped the new release today.",
            "author": "alice@example.com",
            "created_at": "2026-01-05T10:00:00Z",
            "excerpt": "We shipped the new release today.",
            "tags": ["blog", "launch"],
            "metadata": {"priority": "high"},
        },
    )
