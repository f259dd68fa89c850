"""Configuration loader for Active Directory runbooks."""

import json
import os
import logging
from pathlib import Path
from typing import Optional

from .models import Config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AD_RUNBOOKS_CONFIG"

# Values every directory runbook reads from the store
DIRECTORY_VARIABLES = ("DomainName", "DomainController")
DOMAIN_CREDENTIAL = "DomainCredentials"
SYNC_SERVER_VARIABLE = "SyncServerName"


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses AD_RUNBOOKS_CONFIG
                    environment variable.

    Returns:
        Config: Loaded and validated configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
        json.JSONDecodeError: If config file is not valid JSON
    """
    if config_path is None:
        config_path = os.getenv(CONFIG_ENV_VAR)
        if not config_path:
            raise ValueError(
                f"No configuration file specified. Either provide config_path or set {CONFIG_ENV_VAR} environment variable."
            )

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.debug(f"Loading configuration from: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = json.load(f)

        config = Config(**config_data)

        # Summary only, credentials are never logged
        logger.debug(f"Variables: {sorted(config.variables)}")
        logger.debug(f"Credentials: {sorted(config.credentials)}")
        logger.debug(f"LDAP SSL Enabled: {config.connection.use_ssl}")

        return config

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file: {e}")
        raise
    except Exception as e:
        logger.error(f"Error loading configuration: {e}")
        raise


def validate_config(config: Config) -> None:
    """
    Warn about well-known values missing from the configuration.

    Missing values are not fatal here; the runbook that needs them fails
    with a ConfigurationError when it resolves its execution context.

    Args:
        config: Configuration to validate
    """
    for name in DIRECTORY_VARIABLES:
        if not config.variables.get(name):
            logger.warning(f"Variable '{name}' is not configured; directory runbooks will fail")

    if not config.variables.get(SYNC_SERVER_VARIABLE):
        logger.warning(f"Variable '{SYNC_SERVER_VARIABLE}' is not configured; SyncDirectory will fail")

    if DOMAIN_CREDENTIAL not in config.credentials:
        logger.warning(f"Credential '{DOMAIN_CREDENTIAL}' is not configured")

    if not config.connection.use_ssl:
        logger.warning("LDAP SSL is disabled; password operations require an encrypted connection")
