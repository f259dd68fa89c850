"""Configuration module for Active Directory runbooks."""

from .loader import load_config, validate_config
from .models import (
    CredentialConfig,
    ConnectionConfig,
    SecurityConfig,
    SyncConfig,
    LoggingConfig,
    Config,
)
from .store import (
    Credential,
    ExecutionContext,
    ConfigurationStore,
    JsonConfigurationStore,
    EnvironmentConfigurationStore,
    resolve_context,
)

__all__ = [
    "load_config",
    "validate_config",
    "CredentialConfig",
    "ConnectionConfig",
    "SecurityConfig",
    "SyncConfig",
    "LoggingConfig",
    "Config",
    "Credential",
    "ExecutionContext",
    "ConfigurationStore",
    "JsonConfigurationStore",
    "EnvironmentConfigurationStore",
    "resolve_context",
]
