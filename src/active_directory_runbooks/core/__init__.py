"""Core functionality for Active Directory runbooks."""

from .directory import DirectoryClient
from .logging import setup_logging
from .remote_shell import RemoteShell

__all__ = ["DirectoryClient", "RemoteShell", "setup_logging"]
