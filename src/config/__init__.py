"""
Configuration

YAML-backed configuration with environment variable overrides.
"""

from .config_manager import (
    Config,
    APIConfig,
    WebSocketConfig,
    RetentionConfig,
    AlertThresholdConfig,
    SampleRateConfig,
    SchedulerConfig,
    LoggingConfig,
    ConfigManager,
    load_config
)

__all__ = [
    'Config',
    'APIConfig',
    'WebSocketConfig',
    'RetentionConfig',
    'AlertThresholdConfig',
    'SampleRateConfig',
    'SchedulerConfig',
    'LoggingConfig',
    'ConfigManager',
    'load_config'
]
