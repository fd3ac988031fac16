"""
Error coordination across pipeline stages.

Every error is logged to a bounded in-memory log and counted against its
component's threshold. Below the threshold the component's recovery
strategy proposes follow-up actions; at or above it the coordinator asks
for the system to be paused and an administrator notified instead.
"""

import threading
from collections import Counter, deque
from typing import Any

from content_pipeline.config import Settings, settings as default_settings
from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import (
    Action,
    ActionType,
    Component,
    ErrorRecord,
    Priority,
    Severity,
)
from content_pipeline.recovery.base import BaseRecoveryStrategy, RecoveryContext
from content_pipeline.recovery.registry import get_all_strategies

log = get_logger(__name__)

RECENT_ERRORS_IN_NOTIFICATION = 5

SEVERITY_PRIORITY = {
    Severity.CRITICAL: Priority.HIGH,
    Severity.HIGH: Priority.HIGH,
    Severity.MEDIUM: Priority.MEDIUM,
    Severity.LOW: Priority.LOW,
}


class ErrorCoordinator:
    """Records errors, enforces thresholds and dispatches recovery."""

    def __init__(
        self,
        settings: Settings | None = None,
        strategies: dict[Component, BaseRecoveryStrategy] | None = None,
    ):
        self.settings = settings or default_settings
        self._strategies = dict(strategies) if strategies is not None else get_all_strategies()
        self._thresholds = dict(self.settings.thresholds)
        self._errors: deque[ErrorRecord] = deque(maxlen=self.settings.error_log_limit)
        self._counts: Counter[Component] = Counter()
        self._lock = threading.Lock()

    def handle(self, error: ErrorRecord, context: RecoveryContext | None = None) -> list[Action]:
        """
        Record an error and decide what to do about it.

        Args:
            error: The error reported by a stage
            context: Tagged context describing what failed

        Returns:
            Pause and notify actions if the component crossed its threshold,
            otherwise the recovery actions (or a single error notification)
        """
        count, threshold = self._record(error)
        self._log_error(error)

        if threshold is not None and count >= threshold:
            log.error(
                "error_threshold_exceeded",
                component=error.component.value,
                error_count=count,
                threshold=threshold,
            )
            return self._threshold_actions(error, count, threshold)

        actions = self._attempt_recovery(error, context)
        if actions:
            with self._lock:
                error.resolved = True
            log.info(
                "error_recovery_planned",
                component=error.component.value,
                actions=[a.parameters.get("action") for a in actions],
            )
            return actions

        return [self._notification(error)]

    def _record(self, error: ErrorRecord) -> tuple[int, int | None]:
        with self._lock:
            self._errors.append(error)
            self._counts[error.component] += 1
            return self._counts[error.component], self._thresholds.get(error.component)

    def _attempt_recovery(self, error: ErrorRecord, context: RecoveryContext | None) -> list[Action]:
        strategy = self._strategies.get(error.component)
        if strategy is None:
            return []

        try:
            return strategy.recover(error, context)
        except Exception as e:
            failure = ErrorRecord(
                message=f"Recovery failed for {error.component.value}: {e}",
                severity=Severity.HIGH,
                component=Component.COORDINATOR,
            )
            self._record(failure)
            self._log_error(failure)
            return []

    def _threshold_actions(self, error: ErrorRecord, count: int, threshold: int) -> list[Action]:
        component = error.component.value
        recent = [e.to_dict() for e in self.get_errors(error.component)[-RECENT_ERRORS_IN_NOTIFICATION:]]
        return [
            Action.create(
                type=ActionType.ERROR,
                target="system",
                prefix="threshold_exceeded",
                parameters={
                    "action": "pause_system",
                    "error": f"Error threshold exceeded for {component}. System paused.",
                    "component": Component.COORDINATOR.value,
                    "severity": Severity.CRITICAL.value,
                },
                priority=Priority.HIGH,
            ),
            Action.create(
                type=ActionType.NOTIFY,
                target="admin",
                prefix="notify_threshold",
                parameters={
                    "message": f"Critical: Error threshold exceeded for {component}",
                    "details": {
                        "error_count": count,
                        "threshold": threshold,
                        "recent_errors": recent,
                    },
                },
                priority=Priority.HIGH,
            ),
        ]

    @staticmethod
    def _notification(error: ErrorRecord) -> Action:
        return Action.create(
            type=ActionType.ERROR,
            target="system",
            prefix="error",
            parameters={
                "error": error.message,
                "component": error.component.value,
                "severity": error.severity.value,
            },
            priority=SEVERITY_PRIORITY.get(error.severity, Priority.MEDIUM),
        )

    @staticmethod
    def _log_error(error: ErrorRecord) -> None:
        emit = log.error if error.severity in (Severity.HIGH, Severity.CRITICAL) else log.warning
        emit(
            "pipeline_error",
            component=error.component.value,
            severity=error.severity.value,
            error=error.message,
        )

    # -- queries ------------------------------------------------------------

    def get_errors(self, component: Component | None = None) -> list[ErrorRecord]:
        with self._lock:
            if component is None:
                return list(self._errors)
            return [e for e in self._errors if e.component == component]

    def get_unresolved_errors(self) -> list[ErrorRecord]:
        with self._lock:
            return [e for e in self._errors if not e.resolved]

    def error_count(self, component: Component) -> int:
        with self._lock:
            return self._counts[component]

    def get_error_stats(self) -> dict[str, Any]:
        """Totals, resolved/unresolved split, grouped by component and severity."""
        with self._lock:
            errors = list(self._errors)

        by_component: dict[str, dict[str, int]] = {}
        by_severity: dict[str, int] = {}
        for error in errors:
            bucket = by_component.setdefault(
                error.component.value, {"total": 0, "resolved": 0, "unresolved": 0}
            )
            bucket["total"] += 1
            bucket["resolved" if error.resolved else "unresolved"] += 1
            by_severity[error.severity.value] = by_severity.get(error.severity.value, 0) + 1

        resolved = sum(1 for e in errors if e.resolved)
        return {
            "total": len(errors),
            "resolved": resolved,
            "unresolved": len(errors) - resolved,
            "by_component": by_component,
            "by_severity": by_severity,
        }

    # -- administration -------------------------------------------------------

    def resolve_error(self, timestamp: str, component: Component) -> bool:
        """Mark the error logged at `timestamp` by `component` as resolved."""
        with self._lock:
            for error in self._errors:
                if error.timestamp == timestamp and error.component == component:
                    error.resolved = True
                    return True
        return False

    def clear_errors(self, component: Component | None = None) -> None:
        """Drop logged errors (and their threshold counts) for one component or all."""
        with self._lock:
            if component is None:
                self._errors.clear()
                self._counts.clear()
            else:
                kept = [e for e in self._errors if e.component != component]
                self._errors.clear()
                self._errors.extend(kept)
                self._counts.pop(component, None)
        log.info("errors_cleared", component=component.value if component else "all")

    def add_recovery_strategy(self, component: Component, strategy: BaseRecoveryStrategy) -> None:
        with self._lock:
            self._strategies[component] = strategy

    def set_error_threshold(self, component: Component, threshold: int) -> None:
        with self._lock:
            self._thresholds[component] = threshold
