"""
Data models for the content pipeline.

Uses dataclasses for clean, typed data structures.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

ALL_DESTINATIONS = "all"


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string (microsecond precision)."""
    return datetime.now(timezone.utc).isoformat()


class ContentType(str, Enum):
    """Kind of content a submission describes."""

    ARTICLE = "article"
    PRODUCT = "product"
    UPDATE = "update"
    ANNOUNCEMENT = "announcement"
    OTHER = "other"


class Intent(str, Enum):
    """When the submitter wants the content to go live."""

    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    DRAFT = "draft"


class AuthKind(str, Enum):
    """Supported destination authentication kinds."""

    OAUTH2 = "oauth2"
    API_KEY = "api_key"
    JWT = "jwt"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Component(str, Enum):
    """Pipeline stages that can own an error."""

    CLASSIFIER = "classifier"
    CONNECTION = "connection"
    TRANSFORM = "transform"
    PUBLISH = "publish"
    COORDINATOR = "coordinator"
    ORCHESTRATOR = "orchestrator"


class ActionType(str, Enum):
    CONNECT = "connect"
    TRANSFORM = "transform"
    PUBLISH = "publish"
    NOTIFY = "notify"
    ERROR = "error"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OverallStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Message:
    """Email-like submission. Attachments are base64 strings."""

    subject: str = ""
    body: str = ""
    attachments: tuple[str, ...] = ()
    sender: str = ""
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            subject=data.get("subject", ""),
            body=data.get("body", ""),
            attachments=tuple(data.get("attachments") or ()),
            sender=data.get("sender", ""),
            timestamp=data.get("timestamp", ""),
        )


@dataclass(frozen=True)
class DestinationUpdate:
    """State change for a destination, applied by the caller."""

    name: str
    is_active: bool
    last_used: str | None = None


@dataclass(frozen=True)
class Destination:
    """A remote content system the pipeline can publish to."""

    name: str
    base_url: str
    auth_kind: str
    credentials: str
    schema_source: str = ""
    is_active: bool = False
    last_used: str | None = None

    @property
    def root_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.rstrip("/")

    def apply(self, update: DestinationUpdate) -> "Destination":
        """Return a copy with the update applied."""
        return replace(
            self,
            is_active=update.is_active,
            last_used=update.last_used or self.last_used,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Destination":
        """Build from the wire format (`api_endpoint`, `auth_type`, `api_schema`)."""
        return cls(
            name=data.get("name", ""),
            base_url=data.get("api_endpoint") or data.get("base_url", ""),
            auth_kind=data.get("auth_type") or data.get("auth_kind", ""),
            credentials=data.get("credentials", ""),
            schema_source=data.get("api_schema") or data.get("schema_source") or "",
            is_active=bool(data.get("is_active", False)),
            last_used=data.get("last_used"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "api_endpoint": self.base_url,
            "auth_type": self.auth_kind,
            "api_schema": self.schema_source,
            "is_active": self.is_active,
            "last_used": self.last_used,
        }


# ---------------------------------------------------------------------------
# Classified content
# ---------------------------------------------------------------------------


@dataclass
class MediaAsset:
    """Decoded attachment metadata. `data` keeps the original base64 payload."""

    filename: str
    content_type: str
    data: str
    alt_text: str | None = None
    caption: str | None = None
    size: int | None = None
    dimensions: tuple[int, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Destination-neutral projection."""
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "data": self.data,
            "alt_text": self.alt_text or "",
            "caption": self.caption or "",
            "size": self.size or 0,
        }


@dataclass
class ProcessedContent:
    """Structured result of classifying a message."""

    type: ContentType
    intent: Intent
    target_destinations: list[str] = field(default_factory=lambda: [ALL_DESTINATIONS])
    fields: dict[str, Any] = field(default_factory=dict)
    media: list[MediaAsset] = field(default_factory=list)

    @property
    def targets_all(self) -> bool:
        return ALL_DESTINATIONS in self.target_destinations

    def targets(self, name: str) -> bool:
        """Check if a destination is addressed by this content."""
        return self.targets_all or name in self.target_destinations

    def with_fields(self, fields: dict[str, Any]) -> "ProcessedContent":
        """Copy carrying a different field mapping (e.g. destination-transformed fields)."""
        return replace(self, fields=dict(fields))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "intent": self.intent.value,
            "target_destinations": list(self.target_destinations),
            "fields": self.fields,
            "media": [m.to_dict() for m in self.media],
        }


# ---------------------------------------------------------------------------
# Destination schema
# ---------------------------------------------------------------------------


@dataclass
class Parameter:
    name: str
    location: str = "query"
    required: bool = False
    type: str = "string"
    description: str | None = None


@dataclass
class BodySchema:
    """Request or response body shape (subset of JSON Schema)."""

    type: str = "object"
    properties: dict[str, Any] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)


@dataclass
class Endpoint:
    path: str
    method: str
    description: str = ""
    parameters: list[Parameter] = field(default_factory=list)
    request_body: BodySchema | None = None
    responses: dict[str, BodySchema] = field(default_factory=dict)

    @property
    def is_write(self) -> bool:
        return self.method in WRITE_METHODS


WRITE_METHODS = ("POST", "PUT", "PATCH")


@dataclass
class FieldSpec:
    name: str
    type: str = "string"
    required: bool = False
    description: str | None = None


@dataclass
class ContentTypeSpec:
    """A content type declared (or inferred) for a destination."""

    name: str
    fields: list[FieldSpec] = field(default_factory=list)
    validations: list[dict[str, str]] = field(default_factory=list)

    @property
    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]


@dataclass
class Schema:
    """Endpoints and content types exposed by one destination."""

    name: str
    version: str = "1.0.0"
    endpoints: list[Endpoint] = field(default_factory=list)
    content_types: list[ContentTypeSpec] = field(default_factory=list)
    title: str | None = None


# ---------------------------------------------------------------------------
# Transform / publish records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentMapping:
    """Which source field fed which destination field, and how."""

    source_field: str
    destination_field: str
    transformations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_field": self.source_field,
            "destination_field": self.destination_field,
            "transformations": list(self.transformations),
        }


@dataclass(frozen=True)
class PublishRequest:
    """Authenticated outbound request. Immutable once built."""

    method: str
    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    auth_kind: str

    def with_headers(self, headers: dict[str, str]) -> "PublishRequest":
        return replace(self, headers=dict(headers))

    def with_body(self, body: dict[str, Any]) -> "PublishRequest":
        return replace(self, body=dict(body))

    def to_dict(self) -> dict[str, Any]:
        headers = {
            k: ("***" if k.lower() in ("authorization", "x-api-key") else v)
            for k, v in self.headers.items()
        }
        return {
            "method": self.method,
            "url": self.url,
            "headers": headers,
            "body": self.body,
            "auth": {"type": self.auth_kind},
        }


@dataclass
class ErrorRecord:
    """A structured pipeline error (never raised)."""

    message: str
    severity: Severity
    component: Component
    timestamp: str = field(default_factory=utc_now_iso)
    resolved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "error": self.message,
            "severity": self.severity.value,
            "component": self.component.value,
            "resolved": self.resolved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorRecord":
        return cls(
            message=data.get("error", ""),
            severity=Severity(data.get("severity", "medium")),
            component=Component(data.get("component", Component.ORCHESTRATOR.value)),
            timestamp=data.get("timestamp") or utc_now_iso(),
            resolved=bool(data.get("resolved", False)),
        )


@dataclass
class ProcessingResult:
    """Result of one publish call."""

    success: bool
    content: ProcessedContent
    requests: list[PublishRequest] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)
    execution_time: float = 0.0  # milliseconds
    destinations: list[str] = field(default_factory=list)
    destination_updates: list[DestinationUpdate] = field(default_factory=list)


@dataclass
class Action:
    """A follow-up or status action emitted by the pipeline."""

    type: ActionType
    target: str
    parameters: dict[str, Any] = field(default_factory=dict)
    priority: Priority = Priority.MEDIUM
    dependencies: list[str] = field(default_factory=list)
    id: str = ""

    @classmethod
    def create(
        cls,
        type: ActionType,
        target: str,
        prefix: str,
        parameters: dict[str, Any] | None = None,
        priority: Priority = Priority.MEDIUM,
        dependencies: list[str] | None = None,
    ) -> "Action":
        """Build an action with a unique `<prefix>_<hex>` id."""
        return cls(
            type=type,
            target=target,
            parameters=parameters or {},
            priority=priority,
            dependencies=dependencies or [],
            id=f"{prefix}_{uuid.uuid4().hex[:12]}",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "target": self.target,
            "parameters": self.parameters,
            "priority": self.priority.value,
            "dependencies": list(self.dependencies),
            "id": self.id,
        }


# ---------------------------------------------------------------------------
# Stage outcomes
# ---------------------------------------------------------------------------


@dataclass
class Interpretation:
    content: ProcessedContent
    errors: list[ErrorRecord] = field(default_factory=list)


@dataclass
class ConnectionOutcome:
    destination: Destination
    connected: bool
    schema: Schema | None = None
    update: DestinationUpdate | None = None
    errors: list[ErrorRecord] = field(default_factory=list)


@dataclass
class TransformOutcome:
    destination: str
    fields: dict[str, Any] = field(default_factory=dict)
    mappings: list[ContentMapping] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Run-level input / output
# ---------------------------------------------------------------------------


@dataclass
class UserContext:
    id: str = ""
    permissions: list[str] = field(default_factory=list)
    preferences: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "UserContext":
        data = data or {}
        return cls(
            id=data.get("id", ""),
            permissions=list(data.get("permissions") or []),
            preferences=dict(data.get("preferences") or {}),
        )


@dataclass
class SystemState:
    active_connections: list[str] = field(default_factory=list)
    recent_errors: list[ErrorRecord] = field(default_factory=list)
    total_processed: int = 0
    success_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SystemState":
        data = data or {}
        return cls(
            active_connections=list(data.get("active_connections") or []),
            recent_errors=[ErrorRecord.from_dict(e) for e in data.get("recent_errors") or []],
            total_processed=int(data.get("total_processed", 0)),
            success_rate=float(data.get("success_rate", 0.0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_connections": list(self.active_connections),
            "recent_errors": [e.to_dict() for e in self.recent_errors],
            "total_processed": self.total_processed,
            "success_rate": self.success_rate,
        }


@dataclass
class FrameworkInput:
    message: Message
    destinations: list[Destination] = field(default_factory=list)
    user_context: UserContext = field(default_factory=UserContext)
    system_state: SystemState = field(default_factory=SystemState)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FrameworkInput":
        """Build from the wire format (`email`, `frontend_connections`, ...)."""
        return cls(
            message=Message.from_dict(data.get("email") or {}),
            destinations=[Destination.from_dict(d) for d in data.get("frontend_connections") or []],
            user_context=UserContext.from_dict(data.get("user_context")),
            system_state=SystemState.from_dict(data.get("system_state")),
        )


@dataclass(frozen=True)
class NextStep:
    action: str
    trigger: str


@dataclass
class FrameworkOutput:
    actions: list[Action]
    content_mapping: list[ContentMapping]
    overall: OverallStatus
    details: str
    errors: list[ErrorRecord]
    next_steps: list[NextStep]
    system_state: SystemState | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "actions": [a.to_dict() for a in self.actions],
            "content_mapping": [m.to_dict() for m in self.content_mapping],
            "status": {"overall": self.overall.value, "details": self.details},
            "errors": [e.to_dict() for e in self.errors],
            "next_steps": [{"action": s.action, "trigger": s.trigger} for s in self.next_steps],
        }
        if self.system_state is not None:
            data["system_state"] = self.system_state.to_dict()
        return data
