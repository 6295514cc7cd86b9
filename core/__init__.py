"""
Core module initialization.
"""

from .config import (
    Config,
    get_config,
    init_config,
    reload_config,
    APIConfig,
    StoreConfig,
    ClientConfig,
    MonitoringConfig,
    YAMLConfigLoader
)

__all__ = [
    'Config',
    'get_config',
    'init_config',
    'reload_config',
    'APIConfig',
    'StoreConfig',
    'ClientConfig',
    'MonitoringConfig',
    'YAMLConfigLoader',
]
