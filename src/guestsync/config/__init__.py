"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_int, optional_env, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .opera import OperaConfig, get_opera_config
from .salesforce import SalesforceConfig, get_salesforce_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "OperaConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SalesforceConfig",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "env_flag",
    "env_int",
    "get_database_config",
    "get_opera_config",
    "get_salesforce_config",
    "get_storage_config",
    "get_sync_config",
    "optional_env",
    "require_env_var",
    "require_env_vars",
]
