"""Unit tests for core models."""

import pytest

from content_pipeline.core.models import (
    Action,
    ActionType,
    Component,
    ContentMapping,
    ContentType,
    Destination,
    DestinationUpdate,
    ErrorRecord,
    FrameworkInput,
    FrameworkOutput,
    Intent,
    NextStep,
    OverallStatus,
    Priority,
    ProcessedContent,
    PublishRequest,
    Severity,
    SystemState,
)


class TestDestination:
    """Tests for Destination model."""

    def test_from_dict_wire_keys(self):
        """Test building from the wire field names."""
        destination = Destination.from_dict({
            "name": "blog",
            "api_endpoint": "https://blog.example.com",
            "auth_type": "jwt",
            "credentials": "token",
            "api_schema": "https://blog.example.com/openapi.json",
            "is_active": True,
        })

        assert destination.base_url == "https://blog.example.com"
        assert destination.auth_kind == "jwt"
        assert destination.schema_source == "https://blog.example.com/openapi.json"
        assert destination.is_active is True

    def test_root_url_strips_trailing_slash(self, main_site):
        """Test the base URL is normalised."""
        assert main_site.root_url == "https://main.example.com"

    def test_apply_returns_copy(self):
        """Test applying an update leaves the original untouched."""
        inactive = Destination(name="x", base_url="https://x.io", auth_kind="jwt", credentials="c")
        updated = inactive.apply(DestinationUpdate(name="x", is_active=True, last_used="2026-01-01T00:00:00+00:00"))

        assert updated.is_active is True
        assert updated.last_used == "2026-01-01T00:00:00+00:00"
        assert inactive.is_active is False
        assert inactive.last_used is None

    def test_apply_keeps_last_used_when_update_has_none(self, main_site):
        """Test a missing last_used in the update keeps the previous value."""
        used = main_site.apply(DestinationUpdate("main_site", True, "2026-01-01T00:00:00+00:00"))
        deactivated = used.apply(DestinationUpdate("main_site", False, None))
        assert deactivated.last_used == "2026-01-01T00:00:00+00:00"

    def test_to_dict_omits_credentials(self, main_site):
        """Test credentials never leave through to_dict."""
        data = main_site.to_dict()
        assert "credentials" not in data
        assert data["api_endpoint"] == "https://main.example.com/"

    def test_frozen(self, main_site):
        """Test destinations cannot be mutated in place."""
        with pytest.raises(AttributeError):
            main_site.is_active = False


class TestProcessedContent:
    """Tests for ProcessedContent model."""

    def test_targets_all(self):
        """Test the `all` sentinel addresses every destination."""
        content = ProcessedContent(type=ContentType.OTHER, intent=Intent.IMMEDIATE)
        assert content.target_destinations == ["all"]
        assert content.targets("anything") is True

    def test_targets_explicit(self):
        """Test explicit targets only address named destinations."""
        content = ProcessedContent(
            type=ContentType.OTHER,
            intent=Intent.IMMEDIATE,
            target_destinations=["blog"],
        )
        assert content.targets("blog") is True
        assert content.targets("main_site") is False

    def test_with_fields(self, article_content):
        """Test with_fields replaces fields but keeps type and intent."""
        copy = article_content.with_fields({"title": "Other"})
        assert copy.fields == {"title": "Other"}
        assert copy.type == ContentType.ARTICLE
        assert article_content.fields["title"] == "Launch Day"


class TestErrorRecord:
    """Tests for ErrorRecord model."""

    def test_to_dict_uses_error_key(self):
        """Test the message is serialised under `error`."""
        record = ErrorRecord("HTTP 500", Severity.HIGH, Component.PUBLISH)
        data = record.to_dict()

        assert data["error"] == "HTTP 500"
        assert data["severity"] == "high"
        assert data["component"] == "publish"
        assert data["resolved"] is False
        assert data["timestamp"]

    def test_from_dict(self):
        """Test parsing a serialised error."""
        record = ErrorRecord.from_dict({
            "error": "boom",
            "severity": "critical",
            "component": "orchestrator",
            "timestamp": "2026-01-01T00:00:00+00:00",
        })
        assert record.message == "boom"
        assert record.severity == Severity.CRITICAL
        assert record.component == Component.ORCHESTRATOR


class TestPublishRequest:
    """Tests for PublishRequest model."""

    def test_to_dict_masks_credentials(self):
        """Test auth headers are masked when serialised."""
        request = PublishRequest(
            method="POST",
            url="https://x.io/api/articles",
            headers={"Authorization": "Bearer secret", "X-API-Key": "secret", "User-Agent": "ua"},
            body={"title": "t"},
            auth_kind="api_key",
        )
        data = request.to_dict()

        assert data["headers"]["Authorization"] == "***"
        assert data["headers"]["X-API-Key"] == "***"
        assert data["headers"]["User-Agent"] == "ua"
        assert data["auth"] == {"type": "api_key"}


class TestAction:
    """Tests for Action model."""

    def test_create_generates_prefixed_id(self):
        """Test ids carry the prefix and are unique."""
        first = Action.create(ActionType.NOTIFY, "admin", prefix="notify_threshold")
        second = Action.create(ActionType.NOTIFY, "admin", prefix="notify_threshold")

        assert first.id.startswith("notify_threshold_")
        assert first.id != second.id
        assert first.priority == Priority.MEDIUM


class TestFrameworkIO:
    """Tests for run-level input and output."""

    def test_input_from_dict(self):
        """Test parsing the wire input."""
        framework_input = FrameworkInput.from_dict({
            "email": {"subject": "s", "body": "b", "attachments": ["aGk="]},
            "frontend_connections": [
                {"name": "blog", "api_endpoint": "https://b.io", "auth_type": "jwt", "credentials": "c"},
            ],
            "user_context": {"id": "u1", "permissions": ["publish"]},
            "system_state": {"total_processed": 4, "success_rate": 50.0},
        })

        assert framework_input.message.attachments == ("aGk=",)
        assert framework_input.destinations[0].name == "blog"
        assert framework_input.user_context.permissions == ["publish"]
        assert framework_input.system_state.total_processed == 4

    def test_output_to_dict(self):
        """Test status is nested under overall/details."""
        output = FrameworkOutput(
            actions=[],
            content_mapping=[ContentMapping("title", "title", ("sanitize",))],
            overall=OverallStatus.PARTIAL_SUCCESS,
            details="Partially processed",
            errors=[],
            next_steps=[NextStep("System health check", "1_hour")],
            system_state=SystemState(total_processed=1, success_rate=100.0),
        )
        data = output.to_dict()

        assert data["status"] == {"overall": "partial_success", "details": "Partially processed"}
        assert data["content_mapping"][0]["transformations"] == ["sanitize"]
        assert data["next_steps"] == [{"action": "System health check", "trigger": "1_hour"}]
        assert data["system_state"]["total_processed"] == 1
