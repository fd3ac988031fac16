"""Unit tests for TransformEngine."""

import pytest

from content_pipeline.core.exceptions import TransformError
from content_pipeline.core.models import (
    ContentType,
    ContentTypeSpec,
    FieldSpec,
    Intent,
    MediaAsset,
    ProcessedContent,
    Schema,
)
from content_pipeline.services.transform import (
    TransformEngine,
    TransformationRule,
    apply_rule,
    coerce,
    lookup,
)


@pytest.fixture
def engine() -> TransformEngine:
    return TransformEngine()


def schema_with(name: str, *content_types: ContentTypeSpec) -> Schema:
    return Schema(name=name, content_types=list(content_types))


class TestTransform:
    """Tests for schema-driven mapping."""

    def test_article_for_main_site(self, engine, article_content, article_schema):
        """Test default rules, field mapping and custom fields for main_site."""
        outcome = engine.transform(article_content, article_schema)

        assert outcome.fields["title"] == "Launch Day"
        assert outcome.fields["body"] == "We shipped the new release today."
        assert outcome.fields["author"] == "alice@example.com"
        assert outcome.fields["published_at"] == "2026-01-05T10:00:00+00:00"
        assert outcome.fields["status"] == "published"
        assert outcome.fields["featured"] is True

        mapping = {m.destination_field: m for m in outcome.mappings}
        assert mapping["published_at"].source_field == "created_at"
        assert mapping["published_at"].transformations == ("format_date",)
        assert mapping["title"].transformations == ("sanitize",)

    def test_mappings_reference_schema_fields(self, engine, article_content, article_schema):
        """Test every mapping names a declared field (or media)."""
        article_content.media.append(MediaAsset("attachment_1.png", "image/png", "aGk="))
        outcome = engine.transform(article_content, article_schema)
        declared = {f.name for f in article_schema.content_types[0].fields} | {"media"}

        assert {m.destination_field for m in outcome.mappings} <= declared
        assert outcome.fields["media"][0]["filename"] == "attachment_1.png"

    def test_unknown_destination_gets_no_custom_fields(self, engine, article_content, article_schema):
        """Test destinations without custom transforms get none, nor default rules."""
        article_schema.name = "partner"
        outcome = engine.transform(article_content, article_schema)

        assert "status" not in outcome.fields
        assert "featured" not in outcome.fields
        assert outcome.fields["published_at"] == "2026-01-05T10:00:00Z"

    def test_missing_source_values_are_skipped(self, engine, article_schema):
        """Test fields with no source value are neither written nor mapped."""
        content = ProcessedContent(type=ContentType.ARTICLE, intent=Intent.DRAFT, fields={"title": "T"})
        outcome = engine.transform(content, article_schema)

        assert "body" not in outcome.fields
        assert [m.destination_field for m in outcome.mappings] == ["title"]

    def test_product_synonym_and_dotted_paths(self, engine):
        """Test synonym resolution and metadata.* source paths with numeric coercion."""
        schema = schema_with(
            "shop",
            ContentTypeSpec("page", [FieldSpec("title")]),
            ContentTypeSpec("item", [FieldSpec("name"), FieldSpec("price", "number"), FieldSpec("sku")]),
        )
        content = ProcessedContent(
            type=ContentType.PRODUCT,
            intent=Intent.IMMEDIATE,
            fields={"title": "Widget", "metadata": {"price": "19.99", "sku": "W-1"}},
        )
        outcome = engine.transform(content, schema)

        assert outcome.fields == {"name": "Widget", "price": 19.99, "sku": "W-1"}

    def test_first_content_type_fallback(self, engine, article_content):
        """Test the first declared type is used when nothing matches."""
        schema = schema_with("docs", ContentTypeSpec("page", [FieldSpec("title")]))
        assert engine.transform(article_content, schema).fields == {"title": "Launch Day"}

    def test_no_content_types_raises(self, engine, article_content):
        """Test a schema without content types is a transform failure."""
        with pytest.raises(TransformError, match="No matching content type found for article"):
            engine.transform(article_content, schema_with("empty"))

    def test_rules_apply_in_registration_order(self, article_content, article_schema):
        """Test rules for one field triple run in the order they were added."""
        engine = TransformEngine(load_defaults=False)
        article_schema.name = "partner"
        engine.add_rule("partner", TransformationRule("title", "title", "uppercase"))
        engine.add_rule("partner", TransformationRule("title", "title", "truncate", {"max_length": 6}))

        outcome = engine.transform(article_content, article_schema)

        assert outcome.fields["title"] == "LAUNCH..."
        assert outcome.mappings[0].transformations == ("uppercase", "truncate")


class TestRules:
    """Tests for the named transformations."""

    @pytest.mark.parametrize(
        "name,params,value,expected",
        [
            ("uppercase", {}, "abc", "ABC"),
            ("lowercase", {}, "ABC", "abc"),
            ("capitalize", {}, "hello world", "Hello world"),
            ("truncate", {"max_length": 5}, "abcdefgh", "abcde..."),
            ("truncate", {}, "short", "short"),
            ("strip_html", {}, "<p>Hi <b>there</b></p>", "Hi there"),
            ("extract_urls", {}, "see https://a.io and http://b.io/x", ["https://a.io", "http://b.io/x"]),
            ("sanitize", {}, "  <script>hi</script>  ", "scripthi/script"),
            ("format_date", {"format": "readable"}, "2026-01-05T10:00:00Z", "January 5, 2026"),
            ("format_date", {"format": "timestamp"}, "1970-01-01T00:00:01Z", "1000"),
            ("format_date", {}, "not a date", "not a date"),
        ],
    )
    def test_named_rules(self, name, params, value, expected):
        """Test each named transformation."""
        assert apply_rule(value, TransformationRule("f", "f", name, params)) == expected

    def test_default_value(self):
        """Test `default` only fills missing values."""
        rule = TransformationRule("f", "f", "default", {"default_value": "n/a"})
        assert apply_rule(None, rule) == "n/a"
        assert apply_rule("set", rule) == "set"

    def test_unknown_rule_passes_through(self):
        """Test unknown rule names leave the value untouched."""
        assert apply_rule("x", TransformationRule("f", "f", "rot13")) == "x"


class TestCoercion:
    """Tests for permissive type coercion."""

    @pytest.mark.parametrize(
        "value,target,expected",
        [
            ("42", "number", 42),
            ("4.5", "number", 4.5),
            ("abc", "number", 0),
            ("inf", "number", 0),
            (True, "string", "true"),
            (["a", "b"], "string", "a,b"),
            ("true", "boolean", True),
            ("no", "boolean", False),
            ("a, b", "array", ["a", "b"]),
            ("x", "array", ["x"]),
            ('{"k": 1}', "object", {"k": 1}),
            ("not json", "object", {"value": "not json"}),
        ],
    )
    def test_coerce(self, value, target, expected):
        """Test coercion to schema primitive types."""
        assert coerce(value, target) == expected

    def test_lookup_dotted_path(self):
        """Test nested lookups and missing segments."""
        fields = {"metadata": {"price": "10"}}
        assert lookup(fields, "metadata.price") == "10"
        assert lookup(fields, "metadata.sku") is None
        assert lookup(fields, "title.inner") is None
