"""
Configuration du Context Pruning Gateway.
"""

from .loader import load_config, reload_config, get_config, get_settings
from .settings import (
    Settings,
    DeduplicationConfig,
    SupersedeWritesConfig,
    PruneToolConfig,
    StorageConfig,
    UpstreamConfig,
    HostConfig,
)

__all__ = [
    "load_config",
    "reload_config",
    "get_config",
    "get_settings",
    "Settings",
    "DeduplicationConfig",
    "SupersedeWritesConfig",
    "PruneToolConfig",
    "StorageConfig",
    "UpstreamConfig",
    "HostConfig",
]
