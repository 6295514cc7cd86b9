"""
Configuration management system with environment variable loading and validation.
"""

import yaml
from pathlib import Path
from typing import Annotated, Optional, Dict, Any, List
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator
import logging

logger = logging.getLogger(__name__)


class APIConfig(BaseSettings):
    """API server configuration."""
    model_config = SettingsConfigDict(env_prefix='API_', extra='ignore')

    host: str = Field(default='0.0.0.0')
    port: int = Field(default=3000, ge=1, le=65535)
    workers: int = Field(default=1, ge=1, le=32)
    reload: bool = Field(default=False)
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ['*'])

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        if isinstance(v, list):
            return v
        return []


class StoreConfig(BaseSettings):
    """Preference store configuration."""
    model_config = SettingsConfigDict(env_prefix='PREFERENCE_STORE_', extra='ignore')

    backend: str = Field(default='memory')
    redis_url: str = Field(default='redis://localhost:6379/0')
    hash_key: str = Field(default='cookie_preferences')
    socket_timeout: int = Field(default=5, ge=1, le=60)

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v):
        """Validate store backend."""
        valid_backends = {'memory', 'redis'}
        if v.lower() not in valid_backends:
            raise ValueError(f"Invalid store backend: {v}. Must be one of {valid_backends}")
        return v.lower()


class ClientConfig(BaseSettings):
    """Consent client configuration."""
    model_config = SettingsConfigDict(env_prefix='CONSENT_', extra='ignore')

    api_url: str = Field(default='http://localhost:3000')
    request_timeout: float = Field(default=10.0, gt=0, le=120)
    storage_path: Path = Field(default=Path('.consent/local_storage.json'))


class MonitoringConfig(BaseSettings):
    """Monitoring and observability configuration."""
    model_config = SettingsConfigDict(env_prefix='', extra='ignore')

    log_level: str = Field(default='INFO')
    log_format: str = Field(default='json')
    sentry_dsn: Optional[str] = Field(None)
    enable_metrics: bool = Field(default=True)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class Config(BaseSettings):
    """Main configuration class."""
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # Environment
    environment: str = Field(default='development')
    debug: bool = Field(default=False)

    # Sub-configurations
    api: APIConfig = Field(default_factory=APIConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = {'development', 'staging', 'production', 'test'}
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()

    def validate_config(self) -> List[str]:
        """
        Validate configuration and return list of warnings/errors.

        Returns:
            List of validation messages
        """
        messages = []

        if self.environment == 'production':
            if self.debug:
                messages.append("WARNING: Debug mode enabled in production")

            if self.store.backend == 'memory':
                messages.append("WARNING: In-memory preference store loses all records on restart")

            if '*' in self.api.cors_origins:
                messages.append("WARNING: CORS allows every origin in production")

        if not self.client.api_url.startswith(('http://', 'https://')):
            messages.append(f"ERROR: Consent API URL must include protocol: {self.client.api_url}")

        return messages


class YAMLConfigLoader:
    """Load configuration from YAML files."""

    @staticmethod
    def load_yaml_config(config_path: Path) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            Configuration dictionary
        """
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}")
            return {}

        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
                logger.info(f"Loaded configuration from {config_path}")
                return config or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")
            return {}


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call init_config() first.")
    return _config


def init_config(
    env_file: Optional[str] = None,
    yaml_config_path: Optional[Path] = None
) -> Config:
    """
    Initialize the global configuration instance.

    Values from the YAML file are passed as explicit settings, so they take
    precedence over environment variables and the .env file.

    Args:
        env_file: Path to .env file (optional)
        yaml_config_path: Path to YAML config file (optional)

    Returns:
        Initialized Config instance
    """
    global _config

    yaml_config = {}
    if yaml_config_path:
        yaml_config = YAMLConfigLoader.load_yaml_config(yaml_config_path)

    if env_file:
        _config = Config(_env_file=env_file, **yaml_config)
    else:
        _config = Config(**yaml_config)

    validation_messages = _config.validate_config()
    for msg in validation_messages:
        if msg.startswith('ERROR'):
            logger.error(msg)
            raise ValueError(msg)
        else:
            logger.warning(msg)

    logger.info(f"Configuration initialized for environment: {_config.environment}")
    return _config


def reload_config():
    """Reload configuration (for hot reload support)."""
    global _config
    _config = None
    return init_config()
