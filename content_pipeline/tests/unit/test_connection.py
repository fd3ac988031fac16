"""Unit tests for ConnectionManager."""

import json

import pytest
import requests

from content_pipeline.core.models import Component, Destination, Severity
from content_pipeline.services.connection import PROBE_PATHS, ConnectionManager, SchemaCache


@pytest.fixture
def manager(test_settings, session) -> ConnectionManager:
    return ConnectionManager(test_settings, session)


@pytest.fixture
def destination() -> Destination:
    """Destination as supplied by the caller, not yet connected."""
    return Destination(
        name="main_site",
        base_url="https://main.example.com/",
        auth_kind="api_key",
        credentials="key-123",
    )


class TestValidation:
    """Tests for destination validation."""

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"credentials": ""}, "Missing required field: credentials"),
            ({"base_url": ""}, "Missing required field: api_endpoint"),
            ({"auth_kind": "basic"}, "Invalid auth type: basic"),
            ({"base_url": "ftp://main.example.com"}, "Invalid API endpoint URL: ftp://main.example.com"),
        ],
    )
    def test_invalid_destination_short_circuits(self, manager, session, destination, overrides, message):
        """Test validation failures are high severity and skip the probe."""
        invalid = Destination(**{**destination.__dict__, **overrides})
        outcome = manager.connect(invalid)

        assert outcome.connected is False
        assert outcome.update is None
        assert [e.message for e in outcome.errors] == [message]
        assert outcome.errors[0].severity == Severity.HIGH
        assert outcome.errors[0].component == Component.CONNECTION
        session.get.assert_not_called()
        assert manager.establish(invalid) is False


class TestProbe:
    """Tests for the authenticated probe."""

    def test_probe_sends_auth_headers(self, manager, session, destination, make_response):
        """Test the probe carries the destination's Authorization header."""
        session.get.return_value = make_response(200)
        manager.connect(destination)

        first_call = session.get.call_args_list[0]
        assert first_call.args[0] == "https://main.example.com/"
        assert first_call.kwargs["headers"]["Authorization"] == "Bearer key-123"
        assert first_call.kwargs["headers"]["Content-Type"] == "application/json"
        assert first_call.kwargs["timeout"] == 10.0

    def test_transport_failure_is_medium(self, manager, session, destination):
        """Test an unreachable destination is a medium error and deactivated."""
        session.get.side_effect = requests.ConnectionError("refused")
        outcome = manager.connect(destination)

        assert outcome.connected is False
        assert outcome.update.is_active is False
        assert outcome.destination.is_active is False
        assert outcome.errors[0].severity == Severity.MEDIUM
        assert outcome.errors[0].message.startswith("Connection test failed for main_site")

    def test_auth_rejection_wording(self, manager, session, destination, make_response):
        """Test 401 responses are reported as authentication rejections."""
        session.get.return_value = make_response(401, reason="Unauthorized")
        outcome = manager.connect(destination)

        assert outcome.errors[0].message == (
            "Connection test failed for main_site: authentication rejected (HTTP 401)"
        )

    def test_unexpected_exception_is_high(self, manager, session, destination):
        """Test an unexpected failure is recorded rather than raised."""
        session.get.side_effect = RuntimeError("socket exploded")
        outcome = manager.connect(destination)

        assert outcome.connected is False
        assert outcome.errors[0].severity == Severity.HIGH
        assert outcome.errors[0].message == "Connection management failed for main_site: socket exploded"


class TestSchemaDiscovery:
    """Tests for the discovery order."""

    def test_success_returns_update_not_mutation(self, manager, session, destination, make_response):
        """Test a successful connect returns an update and leaves the input alone."""
        session.get.return_value = make_response(200)
        outcome = manager.connect(destination)

        assert outcome.connected is True
        assert outcome.update.is_active is True
        assert outcome.update.last_used is not None
        assert outcome.destination.is_active is True
        assert destination.is_active is False
        assert manager.get_schema("main_site") is outcome.schema
        assert [d.name for d in manager.active_destinations()] == ["main_site"]

    def test_conventional_path_probing(self, manager, session, destination, make_response):
        """Test every answering conventional path yields GET and POST endpoints."""

        def respond(url, **kwargs):
            return make_response(200 if url.endswith(("/", "/api/articles", "/api/products")) else 404)

        session.get.side_effect = respond
        schema = manager.connect(destination).schema

        assert [(e.method, e.path) for e in schema.endpoints] == [
            ("GET", "/api/articles"),
            ("POST", "/api/articles"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
        ]
        assert [ct.name for ct in schema.content_types] == ["article", "product"]
        assert session.get.call_count == 1 + len(PROBE_PATHS)

    def test_default_schema_when_nothing_answers(self, manager, session, destination, make_response):
        """Test the generic schema is used when every probe path fails."""
        session.get.side_effect = [make_response(200)] + [make_response(404)] * len(PROBE_PATHS)
        outcome = manager.connect(destination)

        assert outcome.connected is True
        assert [(e.method, e.path) for e in outcome.schema.endpoints] == [("POST", "/api/content")]
        assert outcome.errors == []

    def test_inline_schema(self, manager, session, destination, make_response):
        """Test an inline OpenAPI document is parsed without extra requests."""
        document = {"paths": {"/api/posts": {"post": {"responses": {}}}}}
        inline = Destination(**{**destination.__dict__, "schema_source": json.dumps(document)})
        session.get.return_value = make_response(200)

        outcome = manager.connect(inline)

        assert [(e.method, e.path) for e in outcome.schema.endpoints] == [("POST", "/api/posts")]
        assert session.get.call_count == 1

    def test_malformed_inline_schema_falls_through(self, manager, session, destination, make_response):
        """Test an oddly shaped inline document is a medium error and the default schema is used."""
        document = {"info": "v1", "paths": {"/api/articles": {"post": {}}}}
        inline = Destination(**{**destination.__dict__, "schema_source": json.dumps(document)})
        session.get.side_effect = [make_response(200)] + [make_response(404)] * len(PROBE_PATHS)

        outcome = manager.connect(inline)

        assert outcome.connected is True
        assert [(e.method, e.path) for e in outcome.schema.endpoints] == [("POST", "/api/content")]
        assert len(outcome.errors) == 1
        assert outcome.errors[0].severity == Severity.MEDIUM
        assert outcome.errors[0].message.startswith(
            "Schema discovery failed for main_site: Failed to parse OpenAPI spec"
        )

    def test_malformed_remote_schema_falls_through(self, manager, session, destination, make_response):
        """Test a fetched document with a null media entry does not drop the destination."""
        document = {
            "paths": {"/api/posts": {"get": {"responses": {"200": {"content": {"application/json": None}}}}}}
        }
        remote = Destination(**{**destination.__dict__, "schema_source": "https://main.example.com/openapi.json"})
        session.get.side_effect = (
            [make_response(200), make_response(200, json_data=document)]
            + [make_response(404)] * len(PROBE_PATHS)
        )

        outcome = manager.connect(remote)

        assert outcome.connected is True
        assert outcome.schema.endpoints[0].path == "/api/content"
        assert outcome.errors[0].severity == Severity.MEDIUM

    def test_remote_schema(self, manager, session, destination, make_response):
        """Test a schema URL is fetched with only the user agent."""
        document = {"paths": {"/api/articles": {"post": {"responses": {}}}}}
        remote = Destination(**{**destination.__dict__, "schema_source": "https://main.example.com/openapi.json"})
        session.get.side_effect = [make_response(200), make_response(200, json_data=document)]

        outcome = manager.connect(remote)

        assert outcome.schema.endpoints[0].path == "/api/articles"
        schema_call = session.get.call_args_list[1]
        assert schema_call.args[0] == "https://main.example.com/openapi.json"
        assert "Authorization" not in schema_call.kwargs["headers"]

    def test_remote_schema_failure_falls_through(self, manager, session, destination, make_response):
        """Test a failed schema fetch is a medium error and discovery continues."""
        remote = Destination(**{**destination.__dict__, "schema_source": "https://main.example.com/openapi.json"})
        session.get.side_effect = (
            [make_response(200), requests.ConnectionError("gone")]
            + [make_response(404)] * len(PROBE_PATHS)
        )

        outcome = manager.connect(remote)

        assert outcome.connected is True
        assert outcome.schema.endpoints[0].path == "/api/content"
        assert len(outcome.errors) == 1
        assert outcome.errors[0].severity == Severity.MEDIUM
        assert outcome.errors[0].message.startswith("Schema discovery failed for main_site")


class TestRegistry:
    """Tests for the destination registry."""

    def test_refresh_unknown_returns_none(self, manager):
        """Test refreshing an unknown destination."""
        assert manager.refresh("nope") is None

    def test_refresh_and_remove(self, manager, session, destination, make_response):
        """Test refresh reconnects and remove forgets."""
        session.get.return_value = make_response(200)
        manager.connect(destination)

        assert manager.refresh("main_site").connected is True
        assert manager.remove("main_site") is True
        assert manager.get_schema("main_site") is None
        assert manager.get_destination("main_site") is None

    def test_schema_cache(self, article_schema):
        """Test the schema cache mapping surface."""
        cache = SchemaCache()
        cache.put("main_site", article_schema)

        assert "main_site" in cache
        assert len(cache) == 1
        assert cache.get("main_site") is article_schema
        cache.clear()
        assert cache.get("main_site") is None
