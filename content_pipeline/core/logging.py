"""
Structured logging for pipeline runs using structlog.

Every run binds a trace_id with `bind_context`; stage events and `metric`
counters then share one stream that a log shipper can group by trace.
"""

import logging
import sys

import structlog

# Per-request chatter from the HTTP stack used for probes and publishing
QUIET_LOGGERS = ("urllib3", "requests")


def _pipeline_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """
    Route pipeline events through structlog to stdout.

    `json_output` selects one JSON object per event (service deployments);
    otherwise events are rendered for a terminal. Probe and publish requests
    from urllib3 only surface at WARNING and above.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = _pipeline_processors()
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger for a pipeline module; pass the module's `__name__`."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind key/value pairs to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all context-bound log fields."""
    structlog.contextvars.clear_contextvars()
