"""Destination-facing services: connection, transformation and publishing."""

from .connection import ConnectionManager, SchemaCache
from .transform import TransformEngine, TransformationRule
from .publisher import Publisher

__all__ = ["ConnectionManager", "SchemaCache", "TransformEngine", "TransformationRule", "Publisher"]
