"""
Pipeline processor.

Drives one submission through classify -> connect -> transform -> publish.
Per-destination work in the last three stages fans out over a thread pool;
each stage finishes for every destination before the next one starts.
Stage errors are routed through the ErrorCoordinator and the resulting
recovery actions are returned alongside the per-destination status actions.
"""

import contextvars
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, TypeVar

from content_pipeline.classifiers import BaseClassifier, get_classifier
from content_pipeline.core.context import PipelineContext
from content_pipeline.core.logging import bind_context, clear_context, get_logger
from content_pipeline.core.models import (
    ALL_DESTINATIONS,
    Action,
    ActionType,
    Component,
    ConnectionOutcome,
    ContentMapping,
    ContentType,
    Destination,
    DestinationUpdate,
    ErrorRecord,
    FrameworkInput,
    FrameworkOutput,
    Intent,
    Message,
    NextStep,
    OverallStatus,
    Priority,
    ProcessedContent,
    ProcessingResult,
    Schema,
    Severity,
    SystemState,
    TransformOutcome,
    utc_now_iso,
)
from content_pipeline.processors.base import BaseProcessor
from content_pipeline.recovery import (
    ClassifierFailureContext,
    ConnectionFailureContext,
    PipelineFailureContext,
    PublishFailureContext,
    TransformFailureContext,
)
from content_pipeline.services.connection import ConnectionManager
from content_pipeline.services.publisher import Publisher
from content_pipeline.services.transform import TransformEngine

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

FAILURE_ERROR_FLOOR = 3
RECENT_ERRORS_KEPT = 10

DEGRADED_UNRESOLVED = 3
UNHEALTHY_UNRESOLVED = 10


@dataclass
class _Run:
    """Accumulates what one submission produces."""

    errors: list[ErrorRecord] = field(default_factory=list)
    status_actions: list[Action] = field(default_factory=list)
    recovery_actions: list[Action] = field(default_factory=list)
    mappings: list[ContentMapping] = field(default_factory=list)
    updates: list[DestinationUpdate] = field(default_factory=list)

    def action(
        self,
        type: ActionType,
        target: str,
        parameters: dict[str, Any],
        priority: Priority,
        dependencies: list[str] | None = None,
    ) -> Action:
        """Append a status action with the next sequential id."""
        action = Action(
            type=type,
            target=target,
            parameters=parameters,
            priority=priority,
            dependencies=dependencies or [],
            id=f"action_{len(self.status_actions) + 1}",
        )
        self.status_actions.append(action)
        return action


class PipelineProcessor(BaseProcessor):
    """
    Orchestrates the four stages for a single submission.

    The processor never raises from `process`: unexpected failures become a
    single critical error in a `failure` output.
    """

    def __init__(
        self,
        context: PipelineContext | None = None,
        classifier: BaseClassifier | None = None,
        connections: ConnectionManager | None = None,
        transformer: TransformEngine | None = None,
        publisher: Publisher | None = None,
    ):
        self.context = context or PipelineContext.create()
        self.settings = self.context.settings
        self.coordinator = self.context.coordinator
        self.classifier = classifier or get_classifier()
        self.connections = connections or ConnectionManager(
            self.settings, self.context.session, self.context.schemas
        )
        self.transformer = transformer or TransformEngine()
        self.publisher = publisher or Publisher(self.settings, self.context.session, self.context.sleep)

    def process(self, framework_input: FrameworkInput) -> FrameworkOutput:
        """
        Run one submission through the pipeline.

        Returns:
            FrameworkOutput with status actions, recovery actions, mappings,
            aggregated errors, next steps and the updated SystemState
        """
        started = time.monotonic()
        trace_id = uuid.uuid4().hex[:16]
        bind_context(trace_id=trace_id)
        log.info(
            "pipeline_started",
            destinations=len(framework_input.destinations),
            user_id=framework_input.user_context.id or None,
        )

        try:
            output = self._run(framework_input, started)
            log.info(
                "pipeline_complete",
                status=output.overall.value,
                errors=len(output.errors),
                actions=len(output.actions),
            )
            return output
        except Exception as e:
            log.exception("pipeline_failed", error=str(e))
            return self._failure_output(framework_input, e, trace_id)
        finally:
            clear_context()

    def _run(self, framework_input: FrameworkInput, started: float) -> FrameworkOutput:
        run = _Run()

        content = self._interpret(framework_input.message, run)

        # Connect every supplied destination
        outcomes = self._fan_out(self._connect, framework_input.destinations)
        connect_ids: dict[str, str] = {}
        schemas: dict[str, Schema] = {}
        active: list[Destination] = []
        for outcome in outcomes:
            name = outcome.destination.name
            if outcome.update:
                run.updates.append(outcome.update)
            self._route_errors(run, outcome.errors, ConnectionFailureContext(destination_name=name))
            connect_ids[name] = run.action(
                ActionType.CONNECT,
                name,
                {
                    "status": "connected" if outcome.connected else "failed",
                    "api_endpoint": outcome.destination.base_url,
                },
                Priority.HIGH,
            ).id
            if outcome.connected and outcome.schema is not None:
                active.append(outcome.destination)
                schemas[name] = outcome.schema

        # Transform for every connected destination
        transformed: dict[str, TransformOutcome] = {}
        transform_ids: dict[str, str] = {}
        for destination, outcome, errors in self._fan_out(
            lambda d: self._transform(content, d, schemas[d.name]), active
        ):
            name = destination.name
            self._route_errors(
                run,
                errors,
                TransformFailureContext(destination_name=name, content_type=content.type.value),
            )
            parameters: dict[str, Any] = {"content_type": content.type.value}
            if outcome is not None:
                transformed[name] = outcome
                run.mappings.extend(outcome.mappings)
                parameters.update(status="transformed", fields=len(outcome.fields))
            else:
                parameters["status"] = "failed"
            transform_ids[name] = run.action(
                ActionType.TRANSFORM,
                name,
                parameters,
                Priority.MEDIUM,
                [connect_ids[name]],
            ).id

        # Publish to active, targeted, transformed destinations
        eligible = [d for d in active if content.targets(d.name) and d.name in transformed]
        results: list[ProcessingResult] = []
        if not eligible:
            empty = self.publisher.publish(content, eligible, schemas)
            self._route_errors(run, empty.errors, None)
        else:
            results = self._fan_out(
                lambda d: self._publish(content.with_fields(transformed[d.name].fields), d, schemas),
                eligible,
            )
            for destination, result in zip(eligible, results):
                self._record_publish(run, content, destination, result, transform_ids[destination.name])

        return self._build_output(framework_input, content, outcomes, results, run, started)

    # -- stages -------------------------------------------------------------

    def _interpret(self, message: Message, run: _Run) -> ProcessedContent:
        context = ClassifierFailureContext(
            subject=getattr(message, "subject", "") or "",
            attachment_count=len(getattr(message, "attachments", ()) or ()),
        )
        try:
            interpretation = self.classifier.interpret(message)
        except Exception as e:
            log.warning("interpretation_fallback", error=str(e))
            self._route_errors(
                run,
                [ErrorRecord(f"Email classification failed: {e}", Severity.HIGH, Component.CLASSIFIER)],
                context,
            )
            return self._fallback_content(message)

        self._route_errors(run, interpretation.errors, context)
        return interpretation.content

    def _connect(self, destination: Destination) -> ConnectionOutcome:
        try:
            return self.connections.connect(destination)
        except Exception as e:
            log.error("connect_stage_failed", destination=destination.name, error=str(e))
            return ConnectionOutcome(
                destination=destination,
                connected=False,
                errors=[
                    ErrorRecord(
                        f"Connection management failed for {destination.name}: {e}",
                        Severity.HIGH,
                        Component.CONNECTION,
                    )
                ],
            )

    def _transform(
        self,
        content: ProcessedContent,
        destination: Destination,
        schema: Schema,
    ) -> tuple[Destination, TransformOutcome | None, list[ErrorRecord]]:
        try:
            return destination, self.transformer.transform(content, schema), []
        except Exception as e:
            log.warning("transform_stage_failed", destination=destination.name, error=str(e))
            error = ErrorRecord(
                f"Content transformation failed for {destination.name}: {e}",
                Severity.HIGH,
                Component.TRANSFORM,
            )
            return destination, None, [error]

    def _publish(
        self,
        content: ProcessedContent,
        destination: Destination,
        schemas: dict[str, Schema],
    ) -> ProcessingResult:
        try:
            return self.publisher.publish(content, [destination], schemas)
        except Exception as e:
            log.error("publish_stage_failed", destination=destination.name, error=str(e))
            return ProcessingResult(
                success=False,
                content=content,
                errors=[
                    ErrorRecord(
                        f"Publishing execution failed for {destination.name}: {e}",
                        Severity.HIGH,
                        Component.PUBLISH,
                    )
                ],
                destinations=[destination.name],
            )

    def _record_publish(
        self,
        run: _Run,
        content: ProcessedContent,
        destination: Destination,
        result: ProcessingResult,
        transform_id: str,
    ) -> None:
        attempted = result.requests[0] if result.requests else None
        self._route_errors(
            run,
            result.errors,
            PublishFailureContext(destination_name=destination.name, attempted_request=attempted),
        )
        run.updates.extend(result.destination_updates)

        if result.success:
            run.action(
                ActionType.PUBLISH,
                destination.name,
                {
                    "status": "published" if content.intent is Intent.IMMEDIATE else f"staged_{content.intent.value}",
                    "requests": [r.to_dict() for r in result.requests],
                    "execution_time_ms": round(result.execution_time, 2),
                },
                Priority.HIGH if content.intent is Intent.IMMEDIATE else Priority.MEDIUM,
                [transform_id],
            )
        else:
            run.action(
                ActionType.ERROR,
                destination.name,
                {"status": "failed", "errors": [e.message for e in result.errors]},
                Priority.HIGH,
                [transform_id],
            )

    # -- helpers --------------------------------------------------------------

    def _fan_out(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Run `fn` per item on the worker pool; results keep input order."""
        items = list(items)
        if not items:
            return []
        workers = max(1, min(self.settings.max_workers, len(items)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(contextvars.copy_context().run, fn, item) for item in items]
            return [future.result() for future in futures]

    def _route_errors(self, run: _Run, errors: list[ErrorRecord], context: Any) -> None:
        for error in errors:
            run.errors.append(error)
            run.recovery_actions.extend(self.coordinator.handle(error, context))

    @staticmethod
    def _fallback_content(message: Message) -> ProcessedContent:
        return ProcessedContent(
            type=ContentType.OTHER,
            intent=Intent.DRAFT,
            target_destinations=[ALL_DESTINATIONS],
            fields={
                "title": getattr(message, "subject", None) or "Untitled",
                "body": getattr(message, "body", None) or "",
                "author": getattr(message, "sender", None) or "unknown",
                "created_at": getattr(message, "timestamp", None) or utc_now_iso(),
            },
        )

    # -- output -----------------------------------------------------------------

    def _build_output(
        self,
        framework_input: FrameworkInput,
        content: ProcessedContent,
        outcomes: list[ConnectionOutcome],
        results: list[ProcessingResult],
        run: _Run,
        started: float,
    ) -> FrameworkOutput:
        elapsed = time.monotonic() - started
        successes = sum(1 for r in results if r.success)
        error_count = len(run.errors)

        if error_count == 0 and all(r.success for r in results):
            overall = OverallStatus.SUCCESS
            details = f"Successfully processed in {elapsed:.2f}s with no errors"
        elif successes == 0 and error_count >= FAILURE_ERROR_FLOOR:
            overall = OverallStatus.FAILURE
            details = f"Processing failed in {elapsed:.2f}s with {error_count} errors"
        else:
            overall = OverallStatus.PARTIAL_SUCCESS
            details = f"Partially processed in {elapsed:.2f}s with {error_count} errors"

        next_steps = []
        if run.errors:
            next_steps.append(NextStep("Review and resolve errors", "immediate"))
        if any(not r.success for r in results):
            next_steps.append(NextStep("Retry failed publishing operations", "5_minutes"))
        next_steps.append(NextStep("System health check", "1_hour"))

        connected = self._apply_updates(outcomes, run.updates)
        state = self._next_state(
            framework_input.system_state,
            overall,
            [d.name for d in connected if d.is_active],
            run.errors,
        )

        self._emit_metrics(elapsed, run, outcomes, results, content)
        return FrameworkOutput(
            actions=run.status_actions + run.recovery_actions,
            content_mapping=run.mappings,
            overall=overall,
            details=details,
            errors=run.errors,
            next_steps=next_steps,
            system_state=state,
        )

    @staticmethod
    def _apply_updates(outcomes: list[ConnectionOutcome], updates: list[DestinationUpdate]) -> list[Destination]:
        """Destinations after every connect and publish update, in input order."""
        destinations = {o.destination.name: o.destination for o in outcomes}
        for update in updates:
            if update.name in destinations:
                destinations[update.name] = destinations[update.name].apply(update)
        return list(destinations.values())

    @staticmethod
    def _next_state(
        previous: SystemState,
        overall: OverallStatus,
        active_connections: list[str],
        errors: list[ErrorRecord],
    ) -> SystemState:
        total = previous.total_processed + 1
        succeeded = round(previous.success_rate / 100 * previous.total_processed)
        if overall is not OverallStatus.FAILURE:
            succeeded += 1
        return SystemState(
            active_connections=active_connections,
            recent_errors=(list(previous.recent_errors) + list(errors))[-RECENT_ERRORS_KEPT:],
            total_processed=total,
            success_rate=round(succeeded / total * 100, 2),
        )

    def _failure_output(self, framework_input: FrameworkInput, exc: Exception, trace_id: str) -> FrameworkOutput:
        error = ErrorRecord(
            f"Framework processing failed: {exc}",
            Severity.CRITICAL,
            Component.ORCHESTRATOR,
        )
        actions = self.coordinator.handle(error, PipelineFailureContext(stage="process", trace_id=trace_id))
        previous = framework_input.system_state
        return FrameworkOutput(
            actions=actions,
            content_mapping=[],
            overall=OverallStatus.FAILURE,
            details=f"Processing failed: {exc}",
            errors=[error],
            next_steps=[NextStep("System recovery required", "immediate")],
            system_state=self._next_state(previous, OverallStatus.FAILURE, [], [error]),
        )

    @staticmethod
    def _emit_metrics(
        elapsed: float,
        run: _Run,
        outcomes: list[ConnectionOutcome],
        results: list[ProcessingResult],
        content: ProcessedContent,
    ) -> None:
        by_component: dict[Component, int] = {}
        for error in run.errors:
            by_component[error.component] = by_component.get(error.component, 0) + 1

        log.info("metric", name="pipeline.processing_time_ms", value=round(elapsed * 1000, 2))
        log.info("metric", name="pipeline.errors", value=len(run.errors))
        log.info("metric", name="pipeline.connections", value=sum(1 for o in outcomes if o.connected))
        log.info("metric", name="pipeline.published", value=sum(1 for r in results if r.success))
        log.info("metric", name=f"pipeline.content_type.{content.type.value}", value=1)
        for component, count in by_component.items():
            log.info("metric", name=f"components.{component.value}.errors", value=count)

    # -- administration -----------------------------------------------------------

    def health(self) -> dict[str, Any]:
        """healthy / degraded / unhealthy from the number of unresolved errors."""
        stats = self.coordinator.get_error_stats()
        unresolved = stats["unresolved"]
        if unresolved > UNHEALTHY_UNRESOLVED:
            status = "unhealthy"
        elif unresolved > DEGRADED_UNRESOLVED:
            status = "degraded"
        else:
            status = "healthy"
        return {
            "status": status,
            "active_destinations": [d.name for d in self.connections.active_destinations()],
            "stats": stats,
            "timestamp": utc_now_iso(),
        }

    def reset(self) -> None:
        """Forget errors, cached schemas, known destinations and publish history."""
        self.coordinator.clear_errors()
        self.connections.clear()
        self.publisher.clear_history()
        log.info("pipeline_reset")
