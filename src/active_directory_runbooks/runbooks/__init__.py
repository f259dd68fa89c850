"""Runbooks for Active Directory operations."""

from .base import BaseRunbook, Command, RunbookArguments
from .user import CreateUserRunbook, RemoveUserRunbook, SetPasswordRunbook, UnlockUserRunbook
from .group import (
    AddGroupMemberRunbook,
    CreateGroupRunbook,
    GroupScope,
    RemoveGroupMemberRunbook,
    RemoveGroupRunbook,
)
from .sync import SyncDirectoryRunbook
from .envelope import RUNBOOKS, InvocationContext, OperationResult, execute, get_runbook

__all__ = [
    "BaseRunbook",
    "Command",
    "RunbookArguments",
    "CreateUserRunbook",
    "RemoveUserRunbook",
    "SetPasswordRunbook",
    "UnlockUserRunbook",
    "CreateGroupRunbook",
    "RemoveGroupRunbook",
    "AddGroupMemberRunbook",
    "RemoveGroupMemberRunbook",
    "GroupScope",
    "SyncDirectoryRunbook",
    "RUNBOOKS",
    "InvocationContext",
    "OperationResult",
    "execute",
    "get_runbook",
]
