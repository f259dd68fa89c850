"""Configuration stores supplying variables and credentials to runbooks."""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .loader import (
    DOMAIN_CREDENTIAL,
    SYNC_SERVER_VARIABLE,
    load_config,
)
from .models import Config
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "AD_RUNBOOKS_"


@dataclass(frozen=True)
class Credential:
    """Identity and secret used to bind to the directory or sync server."""

    identity: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class ExecutionContext:
    """Configuration resolved for a single invocation."""

    domain_name: Optional[str]
    domain_controller: Optional[str]
    credential: Credential
    sync_server_name: Optional[str] = None

    @property
    def base_dn(self) -> str:
        """Naming context derived from the DNS domain name."""
        return ",".join(f"DC={part}" for part in self.domain_name.split(".") if part)

    def principal_name(self, username: str) -> str:
        return f"{username}@{self.domain_name}"


class ConfigurationStore(ABC):
    """Key-value store contract consumed by the runbook envelope."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the named value, or None when it is not set."""

    @abstractmethod
    def get_credential(self, name: str) -> Optional[Credential]:
        """Return the named credential, or None when it is not set."""


class JsonConfigurationStore(ConfigurationStore):
    """Store backed by the ``variables`` and ``credentials`` sections of a config file."""

    def __init__(self, config: Config):
        self.config = config

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> "JsonConfigurationStore":
        return cls(load_config(config_path))

    def get(self, name: str) -> Optional[str]:
        return self.config.variables.get(name)

    def get_credential(self, name: str) -> Optional[Credential]:
        credential = self.config.credentials.get(name)
        if credential is None:
            return None
        return Credential(identity=credential.identity, secret=credential.secret)


class EnvironmentConfigurationStore(ConfigurationStore):
    """
    Store backed by environment variables.

    ``DomainName`` is read from ``AD_RUNBOOKS_DOMAINNAME``; the credential
    ``DomainCredentials`` from ``AD_RUNBOOKS_DOMAINCREDENTIALS_IDENTITY`` and
    ``AD_RUNBOOKS_DOMAINCREDENTIALS_SECRET``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, prefix: str = ENV_PREFIX):
        self.environ = os.environ if environ is None else environ
        self.prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name.upper()}"

    def get(self, name: str) -> Optional[str]:
        return self.environ.get(self._key(name))

    def get_credential(self, name: str) -> Optional[Credential]:
        identity = self.environ.get(f"{self._key(name)}_IDENTITY")
        secret = self.environ.get(f"{self._key(name)}_SECRET")
        if not identity or not secret:
            return None
        return Credential(identity=identity, secret=secret)


def _require(store: ConfigurationStore, name: str) -> str:
    value = store.get(name)
    if value is None or not str(value).strip():
        raise ConfigurationError(f"Configuration value '{name}' is not set")
    return str(value).strip()


def resolve_context(store: ConfigurationStore,
                    needs_directory: bool = True,
                    needs_sync_server: bool = False) -> ExecutionContext:
    """
    Resolve the execution context for one invocation.

    Args:
        store: Configuration store to read from
        needs_directory: Require DomainName and DomainController
        needs_sync_server: Require SyncServerName

    Returns:
        ExecutionContext with every required value present

    Raises:
        ConfigurationError: If a required value or the credential is missing
    """
    domain_name = _require(store, "DomainName") if needs_directory else store.get("DomainName")
    domain_controller = _require(store, "DomainController") if needs_directory else store.get("DomainController")
    sync_server_name = _require(store, SYNC_SERVER_VARIABLE) if needs_sync_server else None

    credential = store.get_credential(DOMAIN_CREDENTIAL)
    if credential is None:
        raise ConfigurationError(f"Credential '{DOMAIN_CREDENTIAL}' is not set")

    logger.debug(f"Resolved context: domain={domain_name}, controller={domain_controller}, "
                 f"sync_server={sync_server_name}, identity={credential.identity}")

    return ExecutionContext(
        domain_name=domain_name,
        domain_controller=domain_controller,
        credential=credential,
        sync_server_name=sync_server_name,
    )
