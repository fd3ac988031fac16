"""
Schema-driven content transformation.

Maps ProcessedContent fields onto the content type a destination declares,
applying per-destination transformation rules and coercing each value to
the declared primitive type.
"""

import json
import math
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from content_pipeline.core.exceptions import TransformError
from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import (
    ContentMapping,
    ContentType,
    ContentTypeSpec,
    ProcessedContent,
    Schema,
    TransformOutcome,
)

log = get_logger(__name__)

CONTENT_TYPE_SYNONYMS: dict[ContentType, tuple[str, ...]] = {
    ContentType.ARTICLE: ("post", "content", "blog"),
    ContentType.PRODUCT: ("item", "listing"),
    ContentType.UPDATE: ("news", "announcement"),
    ContentType.ANNOUNCEMENT: ("news", "update"),
}

_ARTICLE_SOURCES = {
    "title": "title",
    "body": "body",
    "content": "body",
    "description": "excerpt",
    "summary": "excerpt",
    "author": "author",
    "created_at": "created_at",
    "published_at": "created_at",
    "tags": "tags",
    "categories": "tags",
}

_PRODUCT_SOURCES = {
    "name": "title",
    "title": "title",
    "description": "body",
    "details": "body",
    "price": "metadata.price",
    "sku": "metadata.sku",
    "category": "metadata.category",
}

_UPDATE_SOURCES = {
    "title": "title",
    "message": "body",
    "content": "body",
    "date": "created_at",
}

# Destination field -> source field path, per content type. Unlisted names map to themselves.
SOURCE_FIELDS: dict[ContentType, dict[str, str]] = {
    ContentType.ARTICLE: _ARTICLE_SOURCES,
    ContentType.PRODUCT: _PRODUCT_SOURCES,
    ContentType.UPDATE: _UPDATE_SOURCES,
    ContentType.ANNOUNCEMENT: _UPDATE_SOURCES,
}

MEDIA_MAPPING = ContentMapping(
    source_field="attachments",
    destination_field="media",
    transformations=("extract_metadata", "format_for_frontend"),
)

URL_RE = re.compile(r"https?://[^\s]+")
HTML_TAG_RE = re.compile(r"<[^>]*>")
UNSAFE_CHARS_RE = re.compile(r"[^\w\s.,!?\-:;()\[\]{}\"'/@#$%^&*+=~`]")


@dataclass(frozen=True)
class TransformationRule:
    source_field: str
    target_field: str
    transformation: str
    parameters: dict[str, Any] = field(default_factory=dict)


# -- named transformations ---------------------------------------------------


def _uppercase(value: Any, params: dict[str, Any]) -> Any:
    return value.upper() if isinstance(value, str) else value


def _lowercase(value: Any, params: dict[str, Any]) -> Any:
    return value.lower() if isinstance(value, str) else value


def _capitalize(value: Any, params: dict[str, Any]) -> Any:
    return value[:1].upper() + value[1:] if isinstance(value, str) else value


def _truncate(value: Any, params: dict[str, Any]) -> Any:
    max_length = params.get("max_length", 100)
    if isinstance(value, str) and len(value) > max_length:
        return value[:max_length] + "..."
    return value


def _strip_html(value: Any, params: dict[str, Any]) -> Any:
    return HTML_TAG_RE.sub("", value) if isinstance(value, str) else value


def _extract_urls(value: Any, params: dict[str, Any]) -> Any:
    return URL_RE.findall(value) if isinstance(value, str) else value


def _sanitize(value: Any, params: dict[str, Any]) -> Any:
    if not isinstance(value, str):
        return value
    return UNSAFE_CHARS_RE.sub("", value.replace("<", "").replace(">", "")).strip()


def _format_date(value: Any, params: dict[str, Any]) -> Any:
    if not isinstance(value, str):
        return value
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    fmt = params.get("format", "ISO")
    if fmt == "ISO":
        return dt.astimezone(timezone.utc).isoformat()
    if fmt == "readable":
        return f"{dt:%B} {dt.day}, {dt.year}"
    if fmt == "timestamp":
        return str(int(dt.timestamp() * 1000))
    return value


TRANSFORMATIONS: dict[str, Callable[[Any, dict[str, Any]], Any]] = {
    "uppercase": _uppercase,
    "lowercase": _lowercase,
    "capitalize": _capitalize,
    "truncate": _truncate,
    "strip_html": _strip_html,
    "extract_urls": _extract_urls,
    "sanitize": _sanitize,
    "format_date": _format_date,
}


def apply_rule(value: Any, rule: TransformationRule) -> Any:
    """Apply one named transformation. Missing values pass through except for `default`."""
    if rule.transformation == "default":
        return rule.parameters.get("default_value") if value is None else value
    if value is None:
        return None

    transformation = TRANSFORMATIONS.get(rule.transformation)
    if transformation is None:
        log.warning("unknown_transformation", transformation=rule.transformation)
        return value
    return transformation(value, rule.parameters)


def coerce(value: Any, target_type: str) -> Any:
    """Permissive conversion to a schema primitive type."""
    if value is None:
        return None

    if target_type == "string":
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        if isinstance(value, dict):
            return json.dumps(value)
        return str(value)

    if target_type in ("number", "integer"):
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value if math.isfinite(value) else 0
        try:
            number = float(str(value).strip())
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() else number

    if target_type == "boolean":
        if isinstance(value, str):
            return value.lower() == "true" or value == "1"
        return bool(value)

    if target_type == "array":
        if isinstance(value, (list, tuple)):
            return list(value)
        if isinstance(value, str):
            return [item.strip() for item in value.split(",")]
        return [value]

    if target_type == "object":
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                return {"value": value}
            return parsed if isinstance(parsed, dict) else {"value": parsed}
        return {"value": value}

    return value


def lookup(fields: dict[str, Any], path: str) -> Any:
    """Resolve a dotted path such as `metadata.price`."""
    value: Any = fields
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


# -- destination-specific fields ------------------------------------------------


def _priority(content: ProcessedContent) -> str | None:
    metadata = content.fields.get("metadata")
    return metadata.get("priority") if isinstance(metadata, dict) else None


CUSTOM_FIELDS: dict[str, Callable[[ProcessedContent], dict[str, Any]]] = {
    "main_site": lambda c: {"status": "published", "featured": _priority(c) == "high"},
    "developer_portal": lambda c: {"technical": True, "audience": "developers"},
    "blog": lambda c: {"comments_enabled": True, "shareable": True},
}

DEFAULT_RULES = (
    TransformationRule("title", "title", "sanitize"),
    TransformationRule("body", "body", "strip_html"),
    TransformationRule("excerpt", "excerpt", "truncate", {"max_length": 200}),
    TransformationRule("created_at", "published_at", "format_date", {"format": "ISO"}),
)
DEFAULT_RULE_DESTINATIONS = ("main_site", "developer_portal", "blog")


class TransformEngine:
    """Maps processed content onto destination schemas."""

    def __init__(self, load_defaults: bool = True):
        self._rules: dict[tuple[str, str, str], list[TransformationRule]] = {}
        self._lock = threading.Lock()
        if load_defaults:
            for destination in DEFAULT_RULE_DESTINATIONS:
                for rule in DEFAULT_RULES:
                    self.add_rule(destination, rule)

    def add_rule(self, destination: str, rule: TransformationRule) -> None:
        """Append a rule for (destination, source field, target field)."""
        key = (destination, rule.source_field, rule.target_field)
        with self._lock:
            self._rules.setdefault(key, []).append(rule)

    def rules_for(self, destination: str, source_field: str, target_field: str) -> list[TransformationRule]:
        with self._lock:
            return list(self._rules.get((destination, source_field, target_field), []))

    def transform(self, content: ProcessedContent, schema: Schema) -> TransformOutcome:
        """
        Transform content for one destination schema.

        Raises:
            TransformError: if the schema declares no usable content type
        """
        content_type = self.resolve_content_type(schema, content.type)
        if content_type is None:
            raise TransformError(f"No matching content type found for {content.type.value}")

        sources = SOURCE_FIELDS.get(content.type, {})
        fields: dict[str, Any] = {}
        mappings: list[ContentMapping] = []

        for spec in content_type.fields:
            source = sources.get(spec.name, spec.name)
            rules = self.rules_for(schema.name, source, spec.name)

            value = lookup(content.fields, source)
            for rule in rules:
                value = apply_rule(value, rule)
            value = coerce(value, spec.type)

            if value is None:
                continue
            fields[spec.name] = value
            mappings.append(
                ContentMapping(
                    source_field=source,
                    destination_field=spec.name,
                    transformations=tuple(r.transformation for r in rules),
                )
            )

        if content.media:
            fields["media"] = [asset.to_dict() for asset in content.media]
            mappings.append(MEDIA_MAPPING)

        custom = CUSTOM_FIELDS.get(schema.name)
        if custom:
            fields.update(custom(content))

        log.debug(
            "content_transformed",
            destination=schema.name,
            content_type=content_type.name,
            fields=len(fields),
            mappings=len(mappings),
        )
        return TransformOutcome(destination=schema.name, fields=fields, mappings=mappings)

    @staticmethod
    def resolve_content_type(schema: Schema, content_type: ContentType) -> ContentTypeSpec | None:
        """Exact name, then synonym, then the first declared content type."""
        for spec in schema.content_types:
            if spec.name == content_type.value:
                return spec

        synonyms = CONTENT_TYPE_SYNONYMS.get(content_type, ())
        for spec in schema.content_types:
            if spec.name in synonyms:
                return spec

        return schema.content_types[0] if schema.content_types else None
