"""
Per-component recovery strategies.

Each strategy is a table of message substrings (matched case-insensitively)
to the follow-up action it proposes. Every matching row contributes one action.
"""

from dataclasses import dataclass, field
from typing import Any

from content_pipeline.core.models import Action, ActionType, Component, ErrorRecord, Priority
from content_pipeline.recovery.base import (
    BaseRecoveryStrategy,
    RecoveryContext,
    TransformFailureContext,
    context_target,
)
from content_pipeline.recovery.registry import register_strategy


@dataclass(frozen=True)
class RecoveryPattern:
    """One row of a recovery table."""

    keywords: tuple[str, ...]
    action_type: ActionType
    action: str
    parameters: dict[str, Any] = field(default_factory=dict)
    priority: Priority = Priority.MEDIUM

    def matches(self, message: str) -> bool:
        text = message.lower()
        return any(k in text for k in self.keywords)


class PatternRecoveryStrategy(BaseRecoveryStrategy):
    """Recovery driven by a RecoveryPattern table."""

    patterns: tuple[RecoveryPattern, ...] = ()

    def recover(self, error: ErrorRecord, context: RecoveryContext | None) -> list[Action]:
        target = context_target(context, default=self.component.value)
        return [
            Action.create(
                type=pattern.action_type,
                target=target,
                prefix=pattern.action,
                parameters={
                    "action": pattern.action,
                    **pattern.parameters,
                    **self.context_parameters(context),
                },
                priority=pattern.priority,
            )
            for pattern in self.patterns
            if pattern.matches(error.message)
        ]

    def context_parameters(self, context: RecoveryContext | None) -> dict[str, Any]:
        destination = getattr(context, "destination_name", None)
        return {"destination": destination} if destination else {}


@register_strategy
class ClassifierRecovery(PatternRecoveryStrategy):
    component = Component.CLASSIFIER
    patterns = (
        RecoveryPattern(
            ("classification",),
            ActionType.TRANSFORM,
            "retry_classification",
            {"fallback_type": "other"},
        ),
        RecoveryPattern(("attachment",), ActionType.TRANSFORM, "retry_without_attachments"),
    )


@register_strategy
class ConnectionRecovery(PatternRecoveryStrategy):
    component = Component.CONNECTION
    patterns = (
        RecoveryPattern(
            ("authentication", "unauthorized"),
            ActionType.CONNECT,
            "retry_with_alt_auth",
            priority=Priority.HIGH,
        ),
        RecoveryPattern(
            ("connection", "timeout"),
            ActionType.CONNECT,
            "retry_with_extended_timeout",
            {"timeout": 30000},
        ),
    )


@register_strategy
class TransformRecovery(PatternRecoveryStrategy):
    component = Component.TRANSFORM
    patterns = (
        RecoveryPattern(("transformation",), ActionType.TRANSFORM, "retry_with_defaults"),
        RecoveryPattern(("mapping",), ActionType.TRANSFORM, "use_fallback_mapping"),
    )

    def context_parameters(self, context: RecoveryContext | None) -> dict[str, Any]:
        params = super().context_parameters(context)
        if isinstance(context, TransformFailureContext) and context.content_type:
            params["content_type"] = context.content_type
        return params


@register_strategy
class PublishRecovery(PatternRecoveryStrategy):
    component = Component.PUBLISH
    patterns = (
        RecoveryPattern(
            ("http",),
            ActionType.PUBLISH,
            "retry_with_backoff",
            {"max_attempts": 3},
            Priority.HIGH,
        ),
        RecoveryPattern(("timeout",), ActionType.PUBLISH, "retry_with_timeout", {"timeout": 60000}),
        RecoveryPattern(("validation",), ActionType.PUBLISH, "retry_simplified"),
    )
