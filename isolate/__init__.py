from .base import (
    CHANNEL_INDEX,
    IsolationStrategy,
    create_strategy,
    create_strategies_from_loaded_config,
    register_strategy,
)

__all__ = [
    "CHANNEL_INDEX",
    "IsolationStrategy",
    "create_strategy",
    "create_strategies_from_loaded_config",
    "register_strategy",
]
