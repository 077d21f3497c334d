"""Configuration Manager

This module provides centralized configuration management for the telemetry
dashboard. It supports YAML configuration files, environment variable
overrides, and validation.
"""

import os
import yaml
from typing import Dict, Any, Optional, Union, List
from dataclasses import dataclass, field, fields, is_dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class APIConfig:
    """Configuration for the ingestion/query HTTP server"""
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "info"
    cors_enabled: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class WebSocketConfig:
    """Configuration for the push channel"""
    host: str = "0.0.0.0"
    port: int = 3002
    max_message_size: int = 1024 * 1024  # 1MB
    ping_interval: Optional[float] = 20.0
    ping_timeout: Optional[float] = 20.0


@dataclass
class RetentionConfig:
    """Configuration for in-memory data bounds"""
    metrics_retention_days: float = 7
    realtime_buffer_size: int = 1000
    max_alerts: int = 1000
    session_timeout_minutes: float = 30


@dataclass
class AlertThresholdConfig:
    """Per-family alert thresholds"""
    page_load_time: float = 3000       # ms
    search_response_time: float = 500  # ms
    api_response_time: float = 2000    # ms
    memory_usage: float = 100          # MB
    error_rate: float = 0.05
    cpu_usage: float = 0.8


@dataclass
class SampleRateConfig:
    """Upstream sampling rates, advertised to clients but not enforced here"""
    page_loads: float = 1.0
    searches: float = 0.1
    api_calls: float = 0.5
    user_interactions: float = 0.01


@dataclass
class SchedulerConfig:
    """Periodic task intervals in seconds"""
    aggregation_interval: float = 60
    cleanup_interval: float = 3600
    alert_check_interval: float = 30


@dataclass
class LoggingConfig:
    """Configuration for logging"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = False
    file_path: str = "logs/perf_dashboard.log"
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration class"""
    api: APIConfig = field(default_factory=APIConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    alert_thresholds: AlertThresholdConfig = field(default_factory=AlertThresholdConfig)
    sample_rates: SampleRateConfig = field(default_factory=SampleRateConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Global settings
    environment: str = "development"
    debug: bool = False


class ConfigManager:
    """Manages application configuration from multiple sources"""

    ENV_MAPPINGS = {
        # Global
        'ENVIRONMENT': ['environment'],
        'DEBUG': ['debug'],

        # HTTP server
        'API_HOST': ['api', 'host'],
        'API_PORT': ['api', 'port'],
        'API_LOG_LEVEL': ['api', 'log_level'],

        # Push channel
        'WS_HOST': ['websocket', 'host'],
        'WS_PORT': ['websocket', 'port'],

        # Retention
        'METRICS_RETENTION_DAYS': ['retention', 'metrics_retention_days'],

        # Thresholds
        'ALERT_PAGE_LOAD_MS': ['alert_thresholds', 'page_load_time'],
        'ALERT_SEARCH_MS': ['alert_thresholds', 'search_response_time'],
        'ALERT_API_MS': ['alert_thresholds', 'api_response_time'],

        # Logging
        'LOG_LEVEL': ['logging', 'level'],
        'LOG_FILE_ENABLED': ['logging', 'file_enabled'],
        'LOG_FILE_PATH': ['logging', 'file_path'],
    }

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_file: Path to YAML configuration file
        """
        self.config_file = config_file
        self._config: Optional[Config] = None

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """Load configuration from file, environment variables and overrides

        Args:
            overrides: Nested dictionary applied last (e.g. from CLI flags)

        Returns:
            Loaded configuration object
        """
        config_dict = self._get_default_config()

        if self.config_file and os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = self._merge_configs(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_file}")
            except Exception as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")

        config_dict = self._apply_env_overrides(config_dict)

        if overrides:
            config_dict = self._merge_configs(config_dict, overrides)

        self._config = self._create_config_object(config_dict)
        self._validate_config(self._config)

        logger.info(f"Configuration loaded for environment: {self._config.environment}")
        return self._config

    def get_config(self) -> Config:
        """Get the current configuration

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def _get_default_config(self) -> Dict[str, Any]:
        return self._dataclass_to_dict(Config())

    def _dataclass_to_dict(self, obj) -> Dict[str, Any]:
        """Convert dataclass to dictionary recursively"""
        result = {}
        for field_name, field_value in obj.__dict__.items():
            if is_dataclass(field_value):
                result[field_name] = self._dataclass_to_dict(field_value)
            else:
                result[field_name] = field_value
        return result

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config, config_path, self._convert_env_value(env_value))

        return config

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any):
        current = config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _convert_env_value(self, value: str) -> Union[str, int, float, bool]:
        """Convert environment variable string to appropriate type"""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if '.' in value:
                return float(value)
            return int(value)
        except ValueError:
            return value

    def _create_config_object(self, config_dict: Dict[str, Any]) -> Config:
        """Create Config object from dictionary"""
        sections = {
            f.name: f.default_factory
            for f in fields(Config)
            if is_dataclass(f.default_factory)
        }
        try:
            kwargs = {
                name: section_cls(**(config_dict.get(name) or {}))
                for name, section_cls in sections.items()
            }
            return Config(
                **kwargs,
                environment=config_dict.get('environment', 'development'),
                debug=bool(config_dict.get('debug', False))
            )

        except Exception as e:
            logger.error(f"Failed to create config object: {e}")
            raise ValueError(f"Invalid configuration: {e}")

    def _validate_config(self, config: Config):
        """Validate configuration values"""
        errors = []

        for name, port in (("API", config.api.port), ("WebSocket", config.websocket.port)):
            if not isinstance(port, int) or port < 1 or port > 65535:
                errors.append(f"{name} port must be between 1 and 65535")

        if config.retention.metrics_retention_days <= 0:
            errors.append("Metrics retention must be positive")

        if config.retention.realtime_buffer_size < 1:
            errors.append("Realtime buffer size must be at least 1")

        if config.retention.max_alerts < 1:
            errors.append("Max alerts must be at least 1")

        if config.retention.session_timeout_minutes <= 0:
            errors.append("Session timeout must be positive")

        for name, value in config.alert_thresholds.__dict__.items():
            if value < 0:
                errors.append(f"Alert threshold {name} must be non-negative")

        for name, value in config.sample_rates.__dict__.items():
            if value < 0 or value > 1:
                errors.append(f"Sample rate {name} must be between 0 and 1")

        for name, value in config.scheduler.__dict__.items():
            if value <= 0:
                errors.append(f"Scheduler {name} must be positive")

        if errors:
            raise ValueError("Configuration validation errors: " + "; ".join(errors))

        logger.info("Configuration validation passed")

    def save_sample_config(self, file_path: str):
        """Save a sample configuration file

        Args:
            file_path: Path where to save the sample config
        """
        sample_yaml = """# Performance Dashboard Configuration

# Global settings
environment: development  # development, staging, production
debug: false

# Ingestion/query HTTP server
api:
  host: "0.0.0.0"
  port: 3001
  log_level: "info"
  cors_enabled: true
  cors_origins: ["*"]

# Push channel (WebSocket)
websocket:
  host: "0.0.0.0"
  port: 3002
  max_message_size: 1048576
  ping_interval: 20.0
  ping_timeout: 20.0

# In-memory bounds
retention:
  metrics_retention_days: 7
  realtime_buffer_size: 1000
  max_alerts: 1000
  session_timeout_minutes: 30

# Alert thresholds
alert_thresholds:
  page_load_time: 3000        # ms
  search_response_time: 500   # ms
  api_response_time: 2000     # ms
  memory_usage: 100           # MB
  error_rate: 0.05
  cpu_usage: 0.8

# Upstream sampling rates (advisory)
sample_rates:
  page_loads: 1.0
  searches: 0.1
  api_calls: 0.5
  user_interactions: 0.01

# Periodic tasks (seconds)
scheduler:
  aggregation_interval: 60
  cleanup_interval: 3600
  alert_check_interval: 30

# Logging configuration
logging:
  level: "INFO"
  format: "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
  file_enabled: false
  file_path: "logs/perf_dashboard.log"
  max_file_size: 10485760  # 10MB
  backup_count: 5
"""

        try:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(file_path, 'w') as f:
                f.write(sample_yaml)

            logger.info(f"Sample configuration saved to {file_path}")

        except Exception as e:
            logger.error(f"Failed to save sample config: {e}")
            raise


def load_config(config_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load configuration from file and environment

    Args:
        config_file: Optional path to configuration file
        overrides: Optional nested overrides applied last

    Returns:
        Loaded configuration object
    """
    return ConfigManager(config_file).load(overrides)
