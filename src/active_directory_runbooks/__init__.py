"""
Active Directory runbooks.

Single-purpose operations against Active Directory (create/remove users and
groups, manage group membership, reset passwords, unlock accounts) and an
Azure AD Connect delta sync trigger. Each invocation validates its
arguments, resolves configuration and credentials, performs exactly one
remote operation and returns a fixed JSON projection.
"""

__version__ = "0.1.0"

from .errors import (
    RunbookError,
    ValidationError,
    ConfigurationError,
    NotFoundError,
    RemoteOperationError,
)
from .runbooks import Command, OperationResult, execute

__all__ = [
    "Command",
    "OperationResult",
    "execute",
    "RunbookError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
    "RemoteOperationError",
]
