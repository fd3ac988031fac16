"""
Strategy registry mapping pipeline components to recovery strategies.
"""

from typing import Type

from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import Component
from content_pipeline.recovery.base import BaseRecoveryStrategy

log = get_logger(__name__)

# Global strategy registry
_strategies: dict[Component, BaseRecoveryStrategy] = {}


def register_strategy(strategy_class: Type[BaseRecoveryStrategy]) -> Type[BaseRecoveryStrategy]:
    """
    Decorator to register a recovery strategy class.

    Usage:
        @register_strategy
        class PublishRecovery(BaseRecoveryStrategy):
            component = Component.PUBLISH
            ...
    """
    _strategies[strategy_class.component] = strategy_class()
    log.debug("strategy_registered", strategy=strategy_class.__name__, component=strategy_class.component.value)
    return strategy_class


def get_strategy(component: Component) -> BaseRecoveryStrategy | None:
    """Get the registered strategy for a component, or None."""
    return _strategies.get(component)


def get_all_strategies() -> dict[Component, BaseRecoveryStrategy]:
    """Get all registered strategies."""
    return _strategies.copy()


def clear_strategies() -> None:
    """Clear all registered strategies (for testing)."""
    _strategies.clear()
