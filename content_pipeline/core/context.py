"""
Explicit pipeline context.

Owns the collaborators shared across runs. The caller builds one and hands
it to the processor; nothing is constructed lazily on first use.
"""

import time
from dataclasses import dataclass, field
from typing import Callable

import requests

from content_pipeline.config import Settings, settings as default_settings
from content_pipeline.recovery import ErrorCoordinator
from content_pipeline.services.connection import SchemaCache


@dataclass
class PipelineContext:
    settings: Settings
    coordinator: ErrorCoordinator
    session: requests.Session
    schemas: SchemaCache = field(default_factory=SchemaCache)
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "PipelineContext":
        settings = settings or default_settings
        return cls(
            settings=settings,
            coordinator=ErrorCoordinator(settings),
            session=session or requests.Session(),
            sleep=sleep,
        )

    def close(self) -> None:
        self.session.close()
