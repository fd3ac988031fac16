"""
Publish execution.

Builds authenticated requests from transformed content and sends them.
A failed send runs the recovery chain in fixed order:

1. identical retries after each configured backoff delay (1s, 3s, 5s)
2. the same body with alternate auth headers (X-API-Key, Bearer, JWT)
3. the body reduced to the essential fields

Only `immediate` content is sent; scheduled and draft content is staged.
"""

import threading
import time
from collections import deque
from typing import Callable, Mapping

import requests

from content_pipeline.config import Settings, settings as default_settings
from content_pipeline.core.exceptions import PublishError, RecoveryExhaustedError
from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import (
    Component,
    ContentType,
    Destination,
    DestinationUpdate,
    Endpoint,
    ErrorRecord,
    Intent,
    ProcessedContent,
    ProcessingResult,
    PublishRequest,
    Schema,
    Severity,
    utc_now_iso,
)
from content_pipeline.services.connection import SchemaCache
from content_pipeline.services.http import alternate_auth_headers, build_headers, is_success

log = get_logger(__name__)

ENDPOINT_PATHS: dict[ContentType, tuple[str, ...]] = {
    ContentType.ARTICLE: ("/articles", "/posts", "/content", "/blog"),
    ContentType.PRODUCT: ("/products", "/items", "/listings"),
    ContentType.UPDATE: ("/updates", "/news", "/announcements"),
    ContentType.ANNOUNCEMENT: ("/announcements", "/news", "/updates"),
}
FALLBACK_PATHS = ("/content",)

ESSENTIAL_FIELDS = ("title", "body", "type", "name", "description")

RecoveryStep = Callable[[PublishRequest, Destination], bool]


def find_endpoint(schema: Schema, content_type: ContentType) -> Endpoint | None:
    """First writable endpoint whose path matches the content type."""
    candidates = ENDPOINT_PATHS.get(content_type, FALLBACK_PATHS)
    for endpoint in schema.endpoints:
        if endpoint.is_write and any(c in endpoint.path for c in candidates):
            return endpoint
    return None


def content_id(content: ProcessedContent) -> str:
    """Identifier for PUT/PATCH: own id, then metadata id, then the current time."""
    metadata = content.fields.get("metadata")
    candidate = content.fields.get("id") or (
        metadata.get("id") if isinstance(metadata, dict) else None
    )
    return str(candidate) if candidate else str(int(time.time() * 1000))


def prepare_body(content: ProcessedContent, endpoint: Endpoint) -> dict:
    """Request body filtered to the endpoint's declared properties, if any."""
    body = dict(content.fields)
    body["type"] = content.type.value

    if content.media:
        body["media"] = [asset.to_dict() for asset in content.media]

    metadata = content.fields.get("metadata")
    if metadata:
        body["metadata"] = metadata

    body["publishing_intent"] = content.intent.value

    schema = endpoint.request_body
    if not schema or not schema.properties:
        return body

    filtered = {}
    for name in schema.required:
        if body.get(name) is not None:
            filtered[name] = body[name]
    for name in schema.properties:
        if name not in filtered and body.get(name) is not None:
            filtered[name] = body[name]
    return filtered


class Publisher:
    """Sends transformed content to destinations with layered recovery."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or default_settings
        self.session = session or requests.Session()
        self.sleep = sleep
        self.history: deque[ProcessingResult] = deque(maxlen=self.settings.publish_history_limit)
        self._lock = threading.Lock()

    @staticmethod
    def select_destinations(content: ProcessedContent, destinations: list[Destination]) -> list[Destination]:
        """Active destinations addressed by the content's target set."""
        return [d for d in destinations if d.is_active and content.targets(d.name)]

    def publish(
        self,
        content: ProcessedContent,
        destinations: list[Destination],
        schemas: SchemaCache | Mapping[str, Schema],
    ) -> ProcessingResult:
        """
        Publish content to every eligible destination.

        Returns:
            ProcessingResult; success is true when there were no errors or
            fewer errors than eligible destinations
        """
        started = time.monotonic()
        targets = self.select_destinations(content, destinations)

        if not targets:
            log.warning("publish_no_destinations", targets=content.target_destinations)
            result = ProcessingResult(
                success=False,
                content=content,
                errors=[
                    ErrorRecord(
                        message="Publishing execution failed: no active destinations found for publishing",
                        severity=Severity.CRITICAL,
                        component=Component.PUBLISH,
                    )
                ],
                execution_time=self._elapsed_ms(started),
            )
            self._record(result)
            return result

        issued: list[PublishRequest] = []
        errors: list[ErrorRecord] = []
        updates: list[DestinationUpdate] = []

        for destination in targets:
            try:
                schema = schemas.get(destination.name)
                if schema is None:
                    raise PublishError(f"No schema found for destination: {destination.name}")

                request = self.build_request(content, destination, schema)
                issued.append(request)

                if content.intent is not Intent.IMMEDIATE:
                    log.info(
                        "publish_staged",
                        destination=destination.name,
                        intent=content.intent.value,
                        url=request.url,
                    )
                    continue

                self.execute(request, destination)
                updates.append(
                    DestinationUpdate(name=destination.name, is_active=True, last_used=utc_now_iso())
                )

            except RecoveryExhaustedError as e:
                errors.append(ErrorRecord(str(e), Severity.CRITICAL, Component.PUBLISH))
            except PublishError as e:
                log.warning("publish_request_invalid", destination=destination.name, error=str(e))
                errors.append(
                    ErrorRecord(
                        f"Failed to generate requests for {destination.name}: {e}",
                        Severity.HIGH,
                        Component.PUBLISH,
                    )
                )
            except Exception as e:
                log.error("publish_unexpected_error", destination=destination.name, error=str(e))
                errors.append(
                    ErrorRecord(
                        f"Publishing execution failed for {destination.name}: {e}",
                        Severity.HIGH,
                        Component.PUBLISH,
                    )
                )

        result = ProcessingResult(
            success=not errors or len(errors) < len(targets),
            content=content,
            requests=issued,
            errors=errors,
            execution_time=self._elapsed_ms(started),
            destinations=[d.name for d in targets],
            destination_updates=updates,
        )
        self._record(result)
        return result

    # -- request construction --------------------------------------------------

    def build_request(self, content: ProcessedContent, destination: Destination, schema: Schema) -> PublishRequest:
        """
        Raises:
            PublishError: if the schema has no writable endpoint for the content type
        """
        endpoint = find_endpoint(schema, content.type)
        if endpoint is None:
            raise PublishError(f"No suitable endpoint found for content type: {content.type.value}")

        url = f"{destination.root_url}{endpoint.path}"
        if endpoint.method in ("PUT", "PATCH"):
            identifier = content_id(content)
            if "{" in endpoint.path:
                head, _, tail = url.partition("{")
                url = head + identifier + tail.partition("}")[2]
            else:
                url = f"{url}/{identifier}"

        return PublishRequest(
            method=endpoint.method,
            url=url,
            headers=build_headers(destination, self.settings.user_agent),
            body=prepare_body(content, endpoint),
            auth_kind=destination.auth_kind,
        )

    # -- execution ----------------------------------------------------------------

    def execute(self, request: PublishRequest, destination: Destination) -> str | None:
        """
        Send a request, falling back to the recovery chain on failure.

        Returns:
            None if the first attempt succeeded, else the name of the
            recovery step that did

        Raises:
            RecoveryExhaustedError: if every recovery step failed
        """
        try:
            self._send(request)
            log.info("publish_succeeded", destination=destination.name, method=request.method, url=request.url)
            return None
        except PublishError as e:
            failure = e
            log.warning("publish_failed", destination=destination.name, url=request.url, error=str(e))

        for name, step in self.recovery_chain():
            try:
                if step(request, destination):
                    log.info("publish_recovered", destination=destination.name, strategy=name)
                    return name
            except Exception as e:
                log.warning("recovery_step_error", destination=destination.name, strategy=name, error=str(e))
            log.info("recovery_step_failed", destination=destination.name, strategy=name)

        log.error("publish_recovery_exhausted", destination=destination.name, error=str(failure))
        raise RecoveryExhaustedError(
            f"All recovery strategies failed for {destination.name}: {failure}",
            status_code=failure.status_code,
        )

    def recovery_chain(self) -> list[tuple[str, RecoveryStep]]:
        return [
            ("retry_with_backoff", self.retry_with_backoff),
            ("retry_with_alternative_auth", self.retry_with_alternative_auth),
            ("retry_with_simplified_content", self.retry_with_simplified_content),
        ]

    def retry_with_backoff(self, request: PublishRequest, destination: Destination) -> bool:
        for delay in self.settings.backoff_delays:
            self.sleep(delay)
            try:
                self._send(request)
                return True
            except PublishError as e:
                log.debug("backoff_retry_failed", destination=destination.name, delay=delay, error=str(e))
        return False

    def retry_with_alternative_auth(self, request: PublishRequest, destination: Destination) -> bool:
        for variant, headers in alternate_auth_headers(request.headers, destination.credentials):
            try:
                self._send(request.with_headers(headers))
                return True
            except PublishError as e:
                log.debug("alternate_auth_failed", destination=destination.name, variant=variant, error=str(e))
        return False

    def retry_with_simplified_content(self, request: PublishRequest, destination: Destination) -> bool:
        essentials = {k: request.body[k] for k in ESSENTIAL_FIELDS if request.body.get(k)}
        try:
            self._send(request.with_body(essentials))
            return True
        except PublishError as e:
            log.debug("simplified_retry_failed", destination=destination.name, error=str(e))
            return False

    def _send(self, request: PublishRequest) -> requests.Response:
        """
        Raises:
            PublishError: on transport failure or a non-2xx response
        """
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
                timeout=self.settings.publish_timeout,
            )
        except requests.Timeout as e:
            raise PublishError(f"Request timeout after {self.settings.publish_timeout}s: {e}") from e
        except requests.RequestException as e:
            raise PublishError(f"Request failed: {e}") from e

        if not is_success(response):
            raise PublishError(
                f"HTTP {response.status_code}: {response.reason or ''}".rstrip(": "),
                status_code=response.status_code,
            )
        return response

    # -- history -------------------------------------------------------------------

    def _record(self, result: ProcessingResult) -> None:
        with self._lock:
            self.history.append(result)

    def clear_history(self) -> None:
        with self._lock:
            self.history.clear()

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.monotonic() - started) * 1000
