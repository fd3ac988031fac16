"""
Destination connection management.

Validates destination definitions, probes them with an authenticated GET and
discovers their API schema. Failures are recorded as ErrorRecords on the
returned outcome; nothing here raises to the caller.
"""

import threading
from urllib.parse import urlparse

import requests

from content_pipeline.config import Settings, settings as default_settings
from content_pipeline.core.exceptions import ConnectionValidationError, SchemaDiscoveryError
from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import (
    AuthKind,
    Component,
    ConnectionOutcome,
    Destination,
    DestinationUpdate,
    Endpoint,
    ErrorRecord,
    Schema,
    Severity,
    utc_now_iso,
)
from content_pipeline.services.http import build_headers, is_success
from content_pipeline.services.openapi import (
    default_schema,
    infer_content_types,
    parse_openapi,
)

log = get_logger(__name__)

PROBE_PATHS = (
    "/api/articles",
    "/api/posts",
    "/api/products",
    "/api/content",
    "/api/items",
)

REQUIRED_FIELDS = (
    ("name", "name"),
    ("base_url", "api_endpoint"),
    ("auth_kind", "auth_type"),
    ("credentials", "credentials"),
)


class SchemaCache:
    """Schemas keyed by destination name; written once per destination per run."""

    def __init__(self):
        self._schemas: dict[str, Schema] = {}
        self._lock = threading.Lock()

    def put(self, name: str, schema: Schema) -> None:
        with self._lock:
            self._schemas[name] = schema

    def get(self, name: str) -> Schema | None:
        with self._lock:
            return self._schemas.get(name)

    def remove(self, name: str) -> None:
        with self._lock:
            self._schemas.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._schemas

    def __len__(self) -> int:
        with self._lock:
            return len(self._schemas)


class ConnectionManager:
    """Validates, probes and introspects destinations."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        schemas: SchemaCache | None = None,
    ):
        self.settings = settings or default_settings
        self.session = session or requests.Session()
        self.schemas = schemas if schemas is not None else SchemaCache()
        self._destinations: dict[str, Destination] = {}
        self._lock = threading.Lock()

    def establish(self, destination: Destination) -> bool:
        """Connect to a destination; True when it is usable downstream."""
        return self.connect(destination).connected

    def connect(self, destination: Destination) -> ConnectionOutcome:
        """
        Validate, probe and discover the schema of a destination.

        Returns:
            ConnectionOutcome with the refreshed destination, its schema,
            the state update to apply, and any errors recorded on the way
        """
        errors: list[ErrorRecord] = []
        try:
            self.validate(destination)
        except ConnectionValidationError as e:
            log.warning("destination_invalid", destination=destination.name, error=str(e))
            errors.append(self._error(str(e), Severity.HIGH))
            return ConnectionOutcome(destination=destination, connected=False, errors=errors)

        try:
            if not self._probe(destination, errors):
                update = DestinationUpdate(
                    name=destination.name,
                    is_active=False,
                    last_used=destination.last_used,
                )
                return ConnectionOutcome(
                    destination=destination.apply(update),
                    connected=False,
                    update=update,
                    errors=errors,
                )

            schema = self.discover_schema(destination, errors)
        except Exception as e:
            log.error("connection_management_failed", destination=destination.name, error=str(e))
            errors.append(
                self._error(
                    f"Connection management failed for {destination.name}: {e}",
                    Severity.HIGH,
                )
            )
            return ConnectionOutcome(destination=destination, connected=False, errors=errors)

        update = DestinationUpdate(name=destination.name, is_active=True, last_used=utc_now_iso())
        connected = destination.apply(update)
        self.schemas.put(destination.name, schema)
        with self._lock:
            self._destinations[destination.name] = connected

        log.info(
            "destination_connected",
            destination=destination.name,
            endpoints=len(schema.endpoints),
            content_types=[ct.name for ct in schema.content_types],
        )
        return ConnectionOutcome(
            destination=connected,
            connected=True,
            schema=schema,
            update=update,
            errors=errors,
        )

    # -- validation / probe -------------------------------------------------

    @staticmethod
    def validate(destination: Destination) -> None:
        """
        Raises:
            ConnectionValidationError: on a missing field, unknown auth kind
                or malformed base URL
        """
        for attr, wire_name in REQUIRED_FIELDS:
            if not getattr(destination, attr, None):
                raise ConnectionValidationError(f"Missing required field: {wire_name}")

        if destination.auth_kind not in {kind.value for kind in AuthKind}:
            raise ConnectionValidationError(f"Invalid auth type: {destination.auth_kind}")

        parsed = urlparse(destination.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConnectionValidationError(f"Invalid API endpoint URL: {destination.base_url}")

    def _probe(self, destination: Destination, errors: list[ErrorRecord]) -> bool:
        try:
            response = self.session.get(
                destination.base_url,
                headers=build_headers(destination, self.settings.user_agent),
                timeout=self.settings.probe_timeout,
            )
        except requests.RequestException as e:
            log.warning("connection_probe_failed", destination=destination.name, error=str(e))
            errors.append(
                self._error(f"Connection test failed for {destination.name}: {e}", Severity.MEDIUM)
            )
            return False

        if is_success(response):
            return True

        if response.status_code in (401, 403):
            reason = f"authentication rejected (HTTP {response.status_code})"
        else:
            reason = f"HTTP {response.status_code}"
        log.warning(
            "connection_probe_rejected",
            destination=destination.name,
            status=response.status_code,
        )
        errors.append(
            self._error(f"Connection test failed for {destination.name}: {reason}", Severity.MEDIUM)
        )
        return False

    # -- schema discovery ----------------------------------------------------

    def discover_schema(self, destination: Destination, errors: list[ErrorRecord]) -> Schema:
        """
        Discover a destination schema, first success wins:
        remote OpenAPI URL, inline OpenAPI JSON, conventional-path probing,
        then a generic single-endpoint schema.
        """
        source = (destination.schema_source or "").strip()

        if source.startswith(("http://", "https://")):
            try:
                return self._fetch_openapi(destination, source)
            except (SchemaDiscoveryError, requests.RequestException, ValueError) as e:
                self._discovery_failed(destination, e, errors)
        elif source.startswith("{"):
            try:
                return parse_openapi(source, destination.name)
            except SchemaDiscoveryError as e:
                self._discovery_failed(destination, e, errors)

        schema = self._probe_schema(destination)
        if schema is not None:
            return schema

        log.info("schema_default_used", destination=destination.name)
        return default_schema(destination.name)

    def _fetch_openapi(self, destination: Destination, url: str) -> Schema:
        response = self.session.get(
            url,
            headers={"User-Agent": self.settings.user_agent},
            timeout=self.settings.probe_timeout,
        )
        response.raise_for_status()
        return parse_openapi(response.json(), destination.name)

    def _probe_schema(self, destination: Destination) -> Schema | None:
        headers = build_headers(destination, self.settings.user_agent)
        endpoints: list[Endpoint] = []

        for path in PROBE_PATHS:
            try:
                response = self.session.get(
                    f"{destination.root_url}{path}",
                    headers=headers,
                    timeout=self.settings.discovery_timeout,
                )
            except requests.RequestException as e:
                log.debug("schema_probe_skipped", destination=destination.name, path=path, error=str(e))
                continue

            if not is_success(response):
                continue

            resource = path.rsplit("/", 1)[-1]
            endpoints.append(Endpoint(path=path, method="GET", description=f"Get {resource}"))
            endpoints.append(Endpoint(path=path, method="POST", description=f"Create {resource}"))

        if not endpoints:
            return None

        log.info("schema_probed", destination=destination.name, paths=len(endpoints) // 2)
        return Schema(
            name=destination.name,
            version="1.0.0",
            endpoints=endpoints,
            content_types=infer_content_types(endpoints),
        )

    def _discovery_failed(self, destination: Destination, error: Exception, errors: list[ErrorRecord]) -> None:
        log.warning("schema_discovery_failed", destination=destination.name, error=str(error))
        errors.append(
            self._error(f"Schema discovery failed for {destination.name}: {error}", Severity.MEDIUM)
        )

    # -- registry -------------------------------------------------------------

    def get_schema(self, name: str) -> Schema | None:
        return self.schemas.get(name)

    def get_destination(self, name: str) -> Destination | None:
        with self._lock:
            return self._destinations.get(name)

    def active_destinations(self) -> list[Destination]:
        with self._lock:
            return [d for d in self._destinations.values() if d.is_active]

    def refresh(self, name: str) -> ConnectionOutcome | None:
        """Re-run connect for a known destination, None if unknown."""
        destination = self.get_destination(name)
        if destination is None:
            log.warning("refresh_unknown_destination", destination=name)
            return None
        return self.connect(destination)

    def remove(self, name: str) -> bool:
        self.schemas.remove(name)
        with self._lock:
            return self._destinations.pop(name, None) is not None

    def clear(self) -> None:
        """Forget every known destination and cached schema."""
        self.schemas.clear()
        with self._lock:
            self._destinations.clear()

    @staticmethod
    def _error(message: str, severity: Severity) -> ErrorRecord:
        return ErrorRecord(message=message, severity=severity, component=Component.CONNECTION)
