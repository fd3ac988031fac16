"""
Keyword classifier.

Turns a raw message into ProcessedContent using ordered keyword tables.
Ambiguous text never fails: it falls through to the defaults
(type `other`, intent `immediate`, targets `all`).
"""

import base64
import binascii
import re
import struct
from typing import Any

from content_pipeline.classifiers.base import BaseClassifier
from content_pipeline.core.exceptions import InterpretationError
from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import (
    ALL_DESTINATIONS,
    Component,
    ContentType,
    ErrorRecord,
    Intent,
    Interpretation,
    MediaAsset,
    Message,
    ProcessedContent,
    Severity,
)

log = get_logger(__name__)

# First matching rule wins.
CONTENT_TYPE_RULES: list[tuple[ContentType, tuple[str, ...]]] = [
    (ContentType.ARTICLE, ("blog", "article", "post")),
    (ContentType.PRODUCT, ("product", "item", "listing")),
    (ContentType.UPDATE, ("update", "changes", "modified")),
    (ContentType.ANNOUNCEMENT, ("announcement", "news", "important")),
]

INTENT_RULES: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.IMMEDIATE, ("publish now", "immediate", "asap")),
    (Intent.SCHEDULED, ("schedule", "later", "specific time")),
    (Intent.DRAFT, ("draft", "review first")),
]

DESTINATION_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("main_site", ("main site", "website", "homepage")),
    ("developer_portal", ("developer portal", "dev portal", "api docs")),
    ("blog", ("blog", "news site")),
    ("admin_panel", ("admin panel", "dashboard")),
]

METADATA_PATTERNS: dict[str, re.Pattern] = {
    "priority": re.compile(r"priority:\s*(high|medium|low)", re.IGNORECASE),
    "category": re.compile(r"category:\s*([^\n]+)", re.IGNORECASE),
    "language": re.compile(r"language:\s*([^\n]+)", re.IGNORECASE),
    "featured": re.compile(r"featured:\s*(true|false)", re.IGNORECASE),
    "price": re.compile(r"price:\s*\$?\s*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE),
    "sku": re.compile(r"\bsku:\s*([\w-]+)", re.IGNORECASE),
    "id": re.compile(r"\bid:\s*([\w-]+)", re.IGNORECASE),
}

SIGNATURE_RE = re.compile(r"^--[ \t]*$.*", re.MULTILINE | re.DOTALL)
QUOTED_LINE_RE = re.compile(r"^>.*$\n?", re.MULTILINE)
REPLY_BANNER_RE = re.compile(r"^\s*On\b.*wrote:\s*$\n?", re.MULTILINE)
BLANK_RUN_RE = re.compile(r"\n{3,}")

HASHTAG_RE = re.compile(r"#(\w+)")
TAGS_LINE_RE = re.compile(r"\btags?:[ \t]*([^\n]+)")
CATEGORY_LINE_RE = re.compile(r"\bcategory:[ \t]*([^,\n]+)")

EXCERPT_WORDS = 50

MAGIC_NUMBERS: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF", "application/pdf"),
]
SNIFF_BYTES = 512
FALLBACK_CONTENT_TYPE = "application/octet-stream"

FILE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "application/pdf": "pdf",
    "text/plain": "txt",
    FALLBACK_CONTENT_TYPE: "bin",
}


def sniff_content_type(data: bytes) -> str:
    """Guess a MIME type from the first bytes of a payload."""
    for magic, content_type in MAGIC_NUMBERS:
        if data.startswith(magic):
            return content_type

    head = data[:SNIFF_BYTES]
    if head:
        try:
            text = head.decode("utf-8")
        except UnicodeDecodeError as e:
            # A multibyte character cut at SNIFF_BYTES is not binary data
            truncated = len(data) > SNIFF_BYTES and e.end == len(head) and e.reason == "unexpected end of data"
            if not truncated:
                return FALLBACK_CONTENT_TYPE
            text = head[: e.start].decode("utf-8")
        if all(ch.isprintable() or ch in "\r\n\t" for ch in text):
            return "text/plain"
    return FALLBACK_CONTENT_TYPE


def image_dimensions(data: bytes, content_type: str) -> tuple[int, int] | None:
    """Read width/height from PNG and GIF headers."""
    if content_type == "image/png" and len(data) >= 24:
        return struct.unpack(">II", data[16:24])
    if content_type == "image/gif" and len(data) >= 10:
        return struct.unpack("<HH", data[6:10])
    return None


class KeywordClassifier(BaseClassifier):
    """Deterministic keyword-table classifier."""

    def interpret(self, message: Message) -> Interpretation:
        """
        Classify a message into ProcessedContent.

        Raises:
            InterpretationError: if the message itself is unusable
                (not a Message, or subject/body are not text)
        """
        self._check_structure(message)

        cleaned = self.clean_body(message.body)

        errors: list[ErrorRecord] = []
        media = self._process_attachments(message.attachments, errors)

        content = ProcessedContent(
            type=self.classify_type(message.subject, message.body),
            intent=self.determine_intent(message.body),
            target_destinations=self.extract_targets(message.body),
            fields=self._extract_fields(message, cleaned),
            media=media,
        )

        log.info(
            "message_classified",
            content_type=content.type.value,
            intent=content.intent.value,
            targets=content.target_destinations,
            media_count=len(media),
            attachment_errors=len(errors),
        )
        return Interpretation(content=content, errors=errors)

    # -- classification ---------------------------------------------------

    @staticmethod
    def classify_type(subject: str, body: str) -> ContentType:
        text = f"{subject} {body}".lower()
        for content_type, keywords in CONTENT_TYPE_RULES:
            if any(k in text for k in keywords):
                return content_type
        return ContentType.OTHER

    @staticmethod
    def determine_intent(body: str) -> Intent:
        text = body.lower()
        for intent, keywords in INTENT_RULES:
            if any(k in text for k in keywords):
                return intent
        return Intent.IMMEDIATE

    @staticmethod
    def extract_targets(body: str) -> list[str]:
        """
        Destination names mentioned in the body, or ['all'].

        Hashtags are tags, not destination directives, so they are removed first.
        """
        text = HASHTAG_RE.sub(" ", body.lower())
        targets = [
            name
            for name, keywords in DESTINATION_RULES
            if any(k in text for k in keywords)
        ]
        return targets or [ALL_DESTINATIONS]

    # -- body processing ----------------------------------------------------

    def clean_body(self, body: str) -> str:
        text = SIGNATURE_RE.sub("", body)
        text = QUOTED_LINE_RE.sub("", text)
        text = REPLY_BANNER_RE.sub("", text)
        return BLANK_RUN_RE.sub("\n\n", text).strip()

    @staticmethod
    def generate_excerpt(cleaned: str) -> str:
        words = cleaned.split()
        excerpt = " ".join(words[:EXCERPT_WORDS])
        return excerpt + "..." if len(words) > EXCERPT_WORDS else excerpt

    @staticmethod
    def extract_tags(body: str) -> list[str]:
        """Hashtags and `tags:`/`category:` values, deduplicated in order of appearance."""
        text = body.lower()
        found: list[tuple[int, str]] = []

        for match in HASHTAG_RE.finditer(text):
            found.append((match.start(1), match.group(1)))

        for match in TAGS_LINE_RE.finditer(text):
            offset = match.start(1)
            for part in match.group(1).split(","):
                tag = part.strip().lstrip("#").strip()
                if tag:
                    found.append((offset + match.group(1).find(part), tag))

        for match in CATEGORY_LINE_RE.finditer(text):
            tag = match.group(1).strip()
            if tag:
                found.append((match.start(1), tag))

        tags: list[str] = []
        for _, tag in sorted(found, key=lambda item: item[0]):
            if tag not in tags:
                tags.append(tag)
        return tags

    @staticmethod
    def extract_metadata(body: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        for key, pattern in METADATA_PATTERNS.items():
            match = pattern.search(body)
            if not match:
                continue
            value = match.group(1).strip()
            if key in ("priority", "featured"):
                value = value.lower()
            elif key == "price":
                value = value.replace(",", "")
            metadata[key] = value
        return metadata

    def _extract_fields(self, message: Message, cleaned: str) -> dict[str, Any]:
        return {
            "title": message.subject.strip(),
            "body": cleaned,
            "author": message.sender,
            "created_at": message.timestamp,
            "excerpt": self.generate_excerpt(cleaned),
            "tags": self.extract_tags(cleaned),
            "metadata": self.extract_metadata(cleaned),
        }

    # -- attachments ----------------------------------------------------------

    def _process_attachments(
        self,
        attachments: tuple[str, ...],
        errors: list[ErrorRecord],
    ) -> list[MediaAsset]:
        media: list[MediaAsset] = []
        for index, payload in enumerate(attachments):
            try:
                media.append(self._decode_attachment(payload, index))
            except (ValueError, TypeError, binascii.Error) as e:
                log.warning("attachment_decode_failed", index=index, error=str(e))
                errors.append(
                    ErrorRecord(
                        message=f"Failed to process attachment {index}: {e}",
                        severity=Severity.MEDIUM,
                        component=Component.CLASSIFIER,
                    )
                )
        return media

    @staticmethod
    def _decode_attachment(payload: str, index: int) -> MediaAsset:
        if not isinstance(payload, str):
            raise TypeError(f"expected base64 text, got {type(payload).__name__}")

        encoded = payload
        if encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        encoded = "".join(encoded.split())
        if not encoded:
            raise ValueError("empty attachment")

        raw = base64.b64decode(encoded, validate=True)
        content_type = sniff_content_type(raw)
        extension = FILE_EXTENSIONS.get(content_type, "bin")

        return MediaAsset(
            filename=f"attachment_{index + 1}.{extension}",
            content_type=content_type,
            data=encoded,
            alt_text=f"Attachment {index + 1}",
            caption="Attached file from email",
            size=len(raw),
            dimensions=image_dimensions(raw, content_type),
        )

    @staticmethod
    def _check_structure(message: Message) -> None:
        if not isinstance(message, Message):
            raise InterpretationError(
                f"classification requires a Message, got {type(message).__name__}"
            )
        if not isinstance(message.subject, str) or not isinstance(message.body, str):
            raise InterpretationError("classification requires text subject and body")
        if not isinstance(message.attachments, (tuple, list)):
            raise InterpretationError("attachments must be a sequence of base64 strings")
