"""Centralized configuration for umlpipe.

Usage:
    from umlpipe.config import get_config, load_config

    config = get_config()
    print(config.engine.render_timeout)
    print(config.bridge.port_range_start)
"""

from umlpipe.config.loader import (
    BridgeConfig,
    EngineConfig,
    UmlPipeConfig,
    get_config,
    load_config,
)

__all__ = [
    "BridgeConfig",
    "EngineConfig",
    "UmlPipeConfig",
    "get_config",
    "load_config",
]
