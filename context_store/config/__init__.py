"""
Configuration module - Settings and configuration management
"""

from .store_config import StoreConfig, RedisConfig, BackendType
from .config_properties import ConfigProperties

__all__ = [
    'StoreConfig',
    'RedisConfig',
    'BackendType',
    'ConfigProperties',
]
