"""
OpenAPI document parsing into destination Schemas.

Handles OpenAPI 3 request bodies (`requestBody.content`) and the older
Swagger 2 `in: body` parameters, resolving local `$ref` pointers.
"""

import json
from typing import Any

from content_pipeline.core.exceptions import SchemaDiscoveryError
from content_pipeline.core.models import (
    BodySchema,
    ContentTypeSpec,
    Endpoint,
    FieldSpec,
    Parameter,
    Schema,
)

MAX_REF_DEPTH = 20

ARTICLE_FIELDS = [
    FieldSpec("title", "string", True),
    FieldSpec("body", "string", True),
    FieldSpec("author", "string", False),
    FieldSpec("published_at", "string", False),
]

PRODUCT_FIELDS = [
    FieldSpec("name", "string", True),
    FieldSpec("description", "string", True),
    FieldSpec("price", "number", True),
    FieldSpec("sku", "string", False),
]

GENERIC_FIELDS = [
    FieldSpec("title", "string", True),
    FieldSpec("body", "string", True),
    FieldSpec("type", "string", False),
]


class _RefResolver:
    """Resolves `#/...` JSON pointers against the root document."""

    def __init__(self, document: dict[str, Any]):
        self.document = document

    def resolve(self, node: Any) -> Any:
        depth = 0
        while isinstance(node, dict) and "$ref" in node:
            if depth >= MAX_REF_DEPTH:
                raise SchemaDiscoveryError(f"$ref chain too deep at {node['$ref']}")
            node = self._lookup(node["$ref"])
            depth += 1
        return node

    def _lookup(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            raise SchemaDiscoveryError(f"Unsupported external $ref: {ref}")
        node: Any = self.document
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or part not in node:
                raise SchemaDiscoveryError(f"Unresolvable $ref: {ref}")
            node = node[part]
        return node


def parse_openapi(document: str | dict[str, Any], name: str) -> Schema:
    """
    Parse an OpenAPI document into a Schema for destination `name`.

    Raises:
        SchemaDiscoveryError: if the document is not a JSON object or is
            shaped unlike an OpenAPI document
    """
    if isinstance(document, str):
        try:
            spec = json.loads(document)
        except json.JSONDecodeError as e:
            raise SchemaDiscoveryError(f"Failed to parse OpenAPI spec: {e}") from e
    else:
        spec = document

    if not isinstance(spec, dict):
        raise SchemaDiscoveryError("Failed to parse OpenAPI spec: document is not an object")

    try:
        return _build_schema(spec, name)
    except (AttributeError, TypeError, KeyError, ValueError) as e:
        # Valid JSON in an unexpected shape, e.g. `"info": "v1"` or `"paths": [...]`
        raise SchemaDiscoveryError(f"Failed to parse OpenAPI spec: {e}") from e


def _build_schema(spec: dict[str, Any], name: str) -> Schema:
    resolver = _RefResolver(spec)
    endpoints: list[Endpoint] = []
    declared: list[ContentTypeSpec] = []

    for path, operations in (spec.get("paths") or {}).items():
        if not isinstance(operations, dict):
            continue
        shared_params = operations.get("parameters") or []

        for method, operation in operations.items():
            if method == "parameters" or not isinstance(operation, dict):
                continue

            raw_params = list(shared_params) + list(operation.get("parameters") or [])
            request_body, ref_name = _parse_request_body(operation, raw_params, resolver)
            endpoint = Endpoint(
                path=path,
                method=method.upper(),
                description=(
                    operation.get("summary")
                    or operation.get("description")
                    or f"{method.upper()} {path}"
                ),
                parameters=_parse_parameters(raw_params, resolver),
                request_body=request_body,
                responses=_parse_responses(operation.get("responses") or {}, resolver),
            )
            endpoints.append(endpoint)

            if endpoint.is_write and request_body and request_body.properties:
                content_type = _content_type_from_body(
                    ref_name or _singular(_last_static_segment(path)),
                    request_body,
                )
                if content_type and all(ct.name != content_type.name for ct in declared):
                    declared.append(content_type)

    info = spec.get("info") or {}
    return Schema(
        name=name,
        version=str(info.get("version") or "1.0.0"),
        endpoints=endpoints,
        content_types=declared or _component_content_types(spec) or infer_content_types(endpoints),
        title=info.get("title") or "Unknown API",
    )


def _parse_parameters(raw_params: list[Any], resolver: _RefResolver) -> list[Parameter]:
    params = []
    for raw in raw_params:
        param = resolver.resolve(raw)
        if not isinstance(param, dict) or param.get("in") == "body":
            continue
        schema = param.get("schema") or {}
        params.append(
            Parameter(
                name=param.get("name", ""),
                location=param.get("in", "query"),
                required=bool(param.get("required", False)),
                type=schema.get("type") or param.get("type") or "string",
                description=param.get("description"),
            )
        )
    return params


def _parse_request_body(
    operation: dict[str, Any],
    raw_params: list[Any],
    resolver: _RefResolver,
) -> tuple[BodySchema | None, str | None]:
    """Body schema plus the component name it referenced, if any."""
    raw_schema = None

    request_body = resolver.resolve(operation.get("requestBody"))
    if isinstance(request_body, dict):
        content = request_body.get("content") or {}
        media = content.get("application/json") or next(iter(content.values()), None)
        if isinstance(media, dict):
            raw_schema = media.get("schema")
        if raw_schema is None:
            raw_schema = request_body.get("schema")
    else:
        for raw in raw_params:
            param = resolver.resolve(raw)
            if isinstance(param, dict) and param.get("in") == "body":
                raw_schema = param.get("schema")
                break

    if raw_schema is None:
        return None, None

    ref_name = None
    if isinstance(raw_schema, dict) and "$ref" in raw_schema:
        ref_name = raw_schema["$ref"].rsplit("/", 1)[-1].lower()
    return parse_body_schema(resolver.resolve(raw_schema)), ref_name


def _parse_responses(responses: dict[str, Any], resolver: _RefResolver) -> dict[str, BodySchema]:
    parsed: dict[str, BodySchema] = {}
    for status_code, raw in responses.items():
        response = resolver.resolve(raw)
        content = response.get("content") if isinstance(response, dict) else None
        if content and "application/json" in content:
            schema = resolver.resolve(content["application/json"].get("schema"))
            parsed[str(status_code)] = parse_body_schema(schema) or BodySchema(type="object")
        else:
            parsed[str(status_code)] = BodySchema(type="string")
    return parsed


def parse_body_schema(schema: Any) -> BodySchema | None:
    if not isinstance(schema, dict):
        return None
    return BodySchema(
        type=schema.get("type") or "object",
        properties=dict(schema.get("properties") or {}),
        required=list(schema.get("required") or []),
    )


def _content_type_from_body(name: str, body: BodySchema) -> ContentTypeSpec | None:
    if not name:
        return None
    required = set(body.required)
    fields = []
    for field_name, prop in body.properties.items():
        prop = prop if isinstance(prop, dict) else {}
        field_type = prop.get("type") or ("object" if "$ref" in prop else "string")
        if field_type == "integer":
            field_type = "number"
        fields.append(
            FieldSpec(
                name=field_name,
                type=field_type,
                required=field_name in required,
                description=prop.get("description"),
            )
        )
    return ContentTypeSpec(name=name, fields=fields)


def _component_content_types(spec: dict[str, Any]) -> list[ContentTypeSpec]:
    """Content types from `components.schemas` (OpenAPI 3) or `definitions` (Swagger 2)."""
    schemas = (spec.get("components") or {}).get("schemas") or spec.get("definitions") or {}
    content_types = []
    for name, raw in schemas.items():
        body = parse_body_schema(raw)
        if body and body.properties:
            content_types.append(_content_type_from_body(name.lower(), body))
    return content_types


def _last_static_segment(path: str) -> str:
    segments = [s for s in path.split("/") if s and not s.startswith("{")]
    return segments[-1].lower() if segments else ""


def _singular(word: str) -> str:
    if word in ("news", "content"):
        return word
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def infer_content_types(endpoints: list[Endpoint]) -> list[ContentTypeSpec]:
    """Guess content types from endpoint paths when nothing is declared."""
    content_types = []
    paths = [e.path.lower() for e in endpoints]

    if any("article" in p or "post" in p for p in paths):
        content_types.append(ContentTypeSpec("article", list(ARTICLE_FIELDS)))
    if any("product" in p for p in paths):
        content_types.append(ContentTypeSpec("product", list(PRODUCT_FIELDS)))
    if not content_types and any(e.is_write for e in endpoints):
        content_types.append(ContentTypeSpec("content", list(GENERIC_FIELDS)))

    return content_types


def default_schema(name: str) -> Schema:
    """Generic single-endpoint schema used when discovery finds nothing."""
    return Schema(
        name=name,
        version="1.0.0",
        endpoints=[
            Endpoint(
                path="/api/content",
                method="POST",
                description="Create content",
                request_body=BodySchema(
                    type="object",
                    properties={
                        "title": {"type": "string"},
                        "body": {"type": "string"},
                        "type": {"type": "string"},
                    },
                    required=["title", "body"],
                ),
                responses={"201": BodySchema(type="object")},
            )
        ],
        content_types=[ContentTypeSpec("content", list(GENERIC_FIELDS))],
    )
